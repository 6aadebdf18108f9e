from datetime import date, datetime, timedelta, timezone

from app.services.recurrence import MAX_ITERATIONS, Recurrence, due_dates


def test_daily_without_checkpoint_includes_start_and_as_of():
    d = date(2024, 5, 10)
    out = due_dates(d, "daily", None, d + timedelta(days=5))
    assert out == [d + timedelta(days=i) for i in range(6)]


def test_monthly_day_31_clamps_to_feb_28_after_checkpoint():
    out = due_dates(date(2022, 12, 31), "monthly", date(2023, 1, 31), date(2023, 3, 1))
    assert out == [date(2023, 2, 28)]


def test_monthly_clamp_springs_back_to_original_day():
    out = due_dates(date(2024, 1, 31), "monthly", None, date(2024, 5, 1))
    assert out == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31), date(2024, 4, 30)]


def test_monthly_from_clamped_checkpoint_uses_start_day():
    out = due_dates(date(2023, 1, 31), "monthly", date(2023, 2, 28), date(2023, 4, 30))
    assert out == [date(2023, 3, 31), date(2023, 4, 30)]


def test_monthly_crosses_year_boundary():
    out = due_dates(date(2023, 11, 15), "monthly", None, date(2024, 2, 1))
    assert out == [date(2023, 11, 15), date(2023, 12, 15), date(2024, 1, 15)]


def test_yearly_feb_29_clamps_in_non_leap_year():
    out = due_dates(date(2020, 2, 29), "yearly", None, date(2021, 3, 1))
    assert out == [date(2020, 2, 29), date(2021, 2, 28)]


def test_yearly_feb_29_returns_on_next_leap_year():
    out = due_dates(date(2020, 2, 29), "yearly", date(2021, 2, 28), date(2024, 3, 1))
    assert out == [date(2022, 2, 28), date(2023, 2, 28), date(2024, 2, 29)]


def test_weekly_steps_seven_days_from_checkpoint():
    out = due_dates(date(2024, 1, 1), "weekly", date(2024, 1, 8), date(2024, 1, 29))
    assert out == [date(2024, 1, 15), date(2024, 1, 22), date(2024, 1, 29)]


def test_future_start_yields_nothing():
    assert due_dates(date(2030, 1, 1), "daily", None, date(2029, 12, 31)) == []


def test_checkpoint_at_as_of_yields_nothing():
    assert due_dates(date(2024, 1, 1), "daily", date(2024, 3, 1), date(2024, 3, 1)) == []


def test_unknown_unit_yields_nothing():
    assert due_dates(date(2024, 1, 1), "fortnightly", None, date(2024, 3, 1)) == []
    assert due_dates(date(2024, 1, 1), None, None, date(2024, 3, 1)) == []


def test_unit_parsing_is_case_and_space_insensitive():
    assert Recurrence.parse(" Monthly ") is Recurrence.monthly
    assert Recurrence.parse(Recurrence.weekly) is Recurrence.weekly
    assert Recurrence.parse("hourly") is None
    assert due_dates(date(2024, 1, 1), "WEEKLY", None, date(2024, 1, 8)) == [date(2024, 1, 1), date(2024, 1, 8)]


def test_iteration_cap_bounds_ancient_daily_rule():
    today = date(2026, 10, 16)
    start = today - timedelta(days=20 * 365)
    out = due_dates(start, "daily", None, today)
    assert len(out) == MAX_ITERATIONS
    assert out[0] == start
    assert out == sorted(set(out))
    assert all(d <= today for d in out)


def test_custom_iteration_cap():
    out = due_dates(date(2024, 1, 1), "daily", None, date(2024, 12, 31), max_iterations=10)
    assert len(out) == 10


def test_inputs_are_normalized_to_utc_dates():
    # 23:30 in New York on Jan 1 is already Jan 2 in UTC
    as_of = datetime(2024, 1, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    out = due_dates(datetime(2024, 1, 1, 8, 0), "daily", None, as_of)
    assert out == [date(2024, 1, 1), date(2024, 1, 2)]


def test_iso_string_inputs_are_accepted():
    out = due_dates("2024-01-01", "monthly", "2024-01-01", "2024-03-15")
    assert out == [date(2024, 2, 1), date(2024, 3, 1)]


def test_checkpoint_before_start_never_yields_dates_before_start():
    out = due_dates(date(2024, 1, 10), "daily", date(2024, 1, 1), date(2024, 1, 12))
    assert out == [date(2024, 1, 10), date(2024, 1, 11), date(2024, 1, 12)]


def test_output_strictly_increasing_and_after_checkpoint():
    checkpoint = date(2023, 6, 30)
    out = due_dates(date(2020, 1, 30), "monthly", checkpoint, date(2024, 1, 1))
    assert all(a < b for a, b in zip(out, out[1:]))
    assert all(d > checkpoint for d in out)
    assert out[0] == date(2023, 7, 30)

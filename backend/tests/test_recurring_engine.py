from dataclasses import replace
from datetime import date
from decimal import Decimal

from app.services.recurring import MaterializationEngine, RunSummary, run_recurring_job
from app.services.recurring_store import RecurrenceRule


class FakeStore:
    def __init__(self, rules, fail_on=(), fail_checkpoint_for=()):
        self.rules = {r.id: r for r in rules}
        self.entries: list[tuple[int, date]] = []
        self.fail_on = set(fail_on)
        self.fail_checkpoint_for = set(fail_checkpoint_for)
        self.fail_query = False
        self.locks: set[int] = set()

    def query_active_rules(self, as_of):
        if self.fail_query:
            raise RuntimeError("connection reset")
        return [r for r in self.rules.values() if r.start_date <= as_of]

    def insert_concrete_entry(self, rule, entry_date):
        if (rule.id, entry_date) in self.fail_on:
            raise RuntimeError("insert failed")
        if (rule.id, entry_date) in self.entries:
            return False
        self.entries.append((rule.id, entry_date))
        return True

    def update_rule_checkpoint(self, rule_id, checkpoint):
        if rule_id in self.fail_checkpoint_for:
            raise RuntimeError("update failed")
        self.rules[rule_id] = replace(self.rules[rule_id], last_occurrence=checkpoint)

    def try_acquire_lock(self, key):
        if key in self.locks:
            return False
        self.locks.add(key)
        return True

    def release_lock(self, key):
        self.locks.discard(key)


def _rule(rule_id: int, start: date, recurrence: str, last: date | None = None) -> RecurrenceRule:
    return RecurrenceRule(
        id=rule_id,
        user_id=1,
        category_id=1,
        amount=Decimal("1200.00"),
        description=f"rule {rule_id}",
        start_date=start,
        recurrence=recurrence,
        last_occurrence=last,
    )


def test_monthly_rule_end_to_end():
    store = FakeStore([_rule(1, date(2024, 1, 1), "monthly")])

    summary = MaterializationEngine(store).process(date(2024, 3, 15))

    assert store.entries == [(1, date(2024, 1, 1)), (1, date(2024, 2, 1)), (1, date(2024, 3, 1))]
    assert store.rules[1].last_occurrence == date(2024, 3, 1)
    assert summary == RunSummary(rules_processed=1, entries_created=3, rules_with_failures=0)


def test_second_run_without_elapsed_time_creates_nothing():
    store = FakeStore([_rule(1, date(2024, 1, 1), "weekly")])
    engine = MaterializationEngine(store)

    first = engine.process(date(2024, 2, 1))
    second = engine.process(date(2024, 2, 1))

    assert first.entries_created == 5
    assert second.entries_created == 0
    assert second.rules_processed == 0
    assert len(store.entries) == 5


def test_rules_without_due_dates_are_not_counted():
    store = FakeStore(
        [
            _rule(1, date(2030, 1, 1), "daily"),
            _rule(2, date(2024, 1, 1), "fortnightly"),
            _rule(3, date(2024, 1, 1), "daily", last=date(2024, 1, 10)),
        ]
    )

    summary = MaterializationEngine(store).process(date(2024, 1, 10))

    assert summary == RunSummary()
    assert store.entries == []


def test_insert_failure_continues_and_holds_checkpoint_before_gap():
    store = FakeStore([_rule(1, date(2024, 1, 1), "daily")], fail_on={(1, date(2024, 1, 3))})
    engine = MaterializationEngine(store)

    summary = engine.process(date(2024, 1, 5))

    assert [d for _, d in store.entries] == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 4), date(2024, 1, 5)]
    assert summary.entries_created == 4
    assert summary.entries_failed == 1
    assert summary.rules_with_failures == 1
    assert store.rules[1].last_occurrence == date(2024, 1, 2)

    store.fail_on.clear()
    retry = engine.process(date(2024, 1, 5))

    assert retry.entries_created == 1
    assert retry.entries_skipped == 2
    assert retry.rules_with_failures == 0
    assert sorted(d for _, d in store.entries) == [date(2024, 1, d) for d in range(1, 6)]
    assert store.rules[1].last_occurrence == date(2024, 1, 5)


def test_first_due_date_failing_leaves_checkpoint_untouched():
    store = FakeStore([_rule(1, date(2024, 1, 1), "monthly")], fail_on={(1, date(2024, 1, 1))})

    summary = MaterializationEngine(store).process(date(2024, 2, 15))

    assert store.rules[1].last_occurrence is None
    assert store.entries == [(1, date(2024, 2, 1))]
    assert summary.rules_with_failures == 1


def test_checkpoint_failure_keeps_entries_and_moves_on():
    store = FakeStore(
        [_rule(1, date(2024, 1, 1), "daily"), _rule(2, date(2024, 1, 1), "daily")],
        fail_checkpoint_for={1},
    )

    summary = MaterializationEngine(store).process(date(2024, 1, 2))

    assert summary.rules_processed == 2
    assert summary.entries_created == 4
    assert summary.rules_with_failures == 1
    assert store.rules[1].last_occurrence is None
    assert store.rules[2].last_occurrence == date(2024, 1, 2)


def test_one_broken_rule_does_not_stop_the_others():
    class ExplodingRule(FakeStore):
        def insert_concrete_entry(self, rule, entry_date):
            if rule.id == 1:
                raise KeyError("boom")
            return super().insert_concrete_entry(rule, entry_date)

    store = ExplodingRule([_rule(1, date(2024, 1, 1), "daily"), _rule(2, date(2024, 1, 1), "yearly")])

    summary = MaterializationEngine(store).process(date(2024, 1, 2))

    assert store.entries == [(2, date(2024, 1, 1))]
    assert summary.rules_processed == 2
    assert summary.rules_with_failures == 1


def test_query_failure_returns_empty_summary():
    store = FakeStore([_rule(1, date(2024, 1, 1), "daily")])
    store.fail_query = True

    assert MaterializationEngine(store).process(date(2024, 1, 2)) == RunSummary()
    assert store.entries == []


def test_engine_respects_iteration_cap():
    store = FakeStore([_rule(1, date(2000, 1, 1), "daily")])

    summary = MaterializationEngine(store, max_iterations=30).process(date(2024, 1, 1))

    assert summary.entries_created == 30
    assert store.rules[1].last_occurrence == date(2000, 1, 30)


def test_run_is_skipped_while_lock_is_held():
    store = FakeStore([_rule(1, date(2024, 1, 1), "daily")])
    store.locks.add(42)

    assert run_recurring_job(store, 42, reference_date=date(2024, 1, 3)) is None
    assert store.entries == []


def test_run_releases_lock_afterwards():
    store = FakeStore([_rule(1, date(2024, 1, 1), "daily")])

    summary = run_recurring_job(store, 42, reference_date=date(2024, 1, 3))

    assert summary.entries_created == 3
    assert store.locks == set()

from pydantic import BaseModel, field_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

from app.services.recurrence import Recurrence

MAX_AMOUNT = Decimal("1000000000")
MAX_DESCRIPTION_LENGTH = 500

RecurrenceUnit = Literal["daily", "weekly", "monthly", "yearly"]


class RecurringFields(BaseModel):
    amount: Decimal
    description: str | None = None
    start_date: date
    recurrence: str

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, v: Decimal):
        if not v.is_finite():
            raise ValueError("amount must be finite")
        if v <= 0:
            raise ValueError("amount must be positive")
        if v > MAX_AMOUNT:
            raise ValueError("amount is too large")
        return v.quantize(Decimal("0.01"))

    @field_validator("description")
    @classmethod
    def description_trim(cls, v: str | None):
        if v is None:
            return None
        v = v.strip()
        if len(v) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(f"description must be at most {MAX_DESCRIPTION_LENGTH} characters")
        return v or None

    @field_validator("recurrence")
    @classmethod
    def recurrence_known(cls, v: str):
        unit = Recurrence.parse(v)
        if unit is None:
            raise ValueError("recurrence must be daily, weekly, monthly, or yearly")
        return unit.value


class RecurringCreate(RecurringFields):
    category_id: int


class RecurringUpdate(RecurringFields):
    pass


class RecurringOut(BaseModel):
    id: int
    user_id: int
    category_id: int
    amount: Decimal
    description: str | None
    start_date: date
    recurrence: RecurrenceUnit
    last_occurrence: date | None
    created_at: datetime | None

    class Config:
        from_attributes = True


class JobRunOut(BaseModel):
    skipped: bool
    rules_processed: int = 0
    entries_created: int = 0
    rules_with_failures: int = 0
    entries_failed: int = 0
    entries_skipped: int = 0


class JobStatusOut(BaseModel):
    state: Literal["idle", "running", "stopped"]
    interval_seconds: float
    runs: int
    last_run_at: datetime | None = None
    last_summary: dict | None = None
    last_error: str | None = None

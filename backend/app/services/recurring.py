from __future__ import annotations

import logging
from dataclasses import dataclass, asdict
from datetime import date
from typing import Any, Dict

from app.core.config import settings
from app.services.job_lock import SingleFlightLock
from app.services.recurrence import MAX_ITERATIONS, due_dates
from app.services.recurring_store import RecurrenceRule, RecurringStore, SqlRecurringStore
from app.utils.timezone import today_utc, to_utc_date

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    rules_processed: int = 0
    entries_created: int = 0
    rules_with_failures: int = 0
    entries_failed: int = 0
    entries_skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class MaterializationEngine:
    """Turns every missed due date of every active rule into a ledger entry.

    Inserts are idempotent per (rule, date). The checkpoint moves to the last
    due date of the unbroken run of materialized dates at the front of the
    pass, so a failed date is retried on the next run and the dates after it
    are recognised as already present rather than duplicated.
    """

    def __init__(self, store: RecurringStore, max_iterations: int = MAX_ITERATIONS):
        self._store = store
        self._max_iterations = max_iterations

    def process(self, reference_date=None) -> RunSummary:
        as_of = to_utc_date(reference_date) if reference_date is not None else today_utc()
        summary = RunSummary()

        try:
            rules = self._store.query_active_rules(as_of)
        except Exception:
            logger.exception("recurring job: querying rules failed", extra={"as_of": as_of.isoformat()})
            return summary

        for rule in rules:
            try:
                self._process_rule(rule, as_of, summary)
            except Exception:
                summary.rules_with_failures += 1
                logger.exception("recurring job: rule failed", extra={"rule_id": rule.id})

        logger.info("recurring job: run finished", extra={"as_of": as_of.isoformat(), **summary.to_dict()})
        return summary

    def _process_rule(self, rule: RecurrenceRule, as_of: date, summary: RunSummary) -> None:
        dates = due_dates(
            rule.start_date,
            rule.recurrence,
            rule.last_occurrence,
            as_of,
            max_iterations=self._max_iterations,
        )
        if not dates:
            return

        summary.rules_processed += 1
        failed = False
        checkpoint: date | None = None

        for d in dates:
            try:
                created = self._store.insert_concrete_entry(rule, d)
            except Exception:
                failed = True
                summary.entries_failed += 1
                logger.exception(
                    "recurring job: creating entry failed",
                    extra={"rule_id": rule.id, "due_date": d.isoformat()},
                )
                continue

            if created:
                summary.entries_created += 1
            else:
                summary.entries_skipped += 1
            if not failed:
                checkpoint = d

        if checkpoint is not None:
            try:
                self._store.update_rule_checkpoint(rule.id, checkpoint)
                logger.info(
                    "recurring job: checkpoint advanced",
                    extra={"rule_id": rule.id, "last_occurrence": checkpoint.isoformat()},
                )
            except Exception:
                failed = True
                logger.exception(
                    "recurring job: updating last_occurrence failed",
                    extra={"rule_id": rule.id, "last_occurrence": checkpoint.isoformat()},
                )

        if failed:
            summary.rules_with_failures += 1


def run_recurring_job(
    store: RecurringStore,
    lock_key: int,
    reference_date=None,
    max_iterations: int = MAX_ITERATIONS,
) -> RunSummary | None:
    """One lock-coordinated engine pass; None when the run was skipped."""
    engine = MaterializationEngine(store, max_iterations=max_iterations)
    return SingleFlightLock(store, lock_key).run(lambda: engine.process(reference_date))


_default_store: SqlRecurringStore | None = None


def default_store() -> SqlRecurringStore:
    global _default_store
    if _default_store is None:
        from app.db.session import engine

        _default_store = SqlRecurringStore(engine, max_retries=settings.db_max_retries)
    return _default_store


def process_recurring_once(reference_date=None) -> RunSummary | None:
    return run_recurring_job(
        default_store(),
        settings.recurring_job_lock_id,
        reference_date=reference_date,
        max_iterations=settings.recurring_max_iterations,
    )

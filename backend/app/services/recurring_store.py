from __future__ import annotations

import logging
import os
import socket
import threading
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from app.db.retry import with_retry
from app.models.job_lock import JobLock
from app.models.recurring_transaction import RecurringTransaction
from app.models.transaction import Transaction
from app.utils.timezone import now_utc, to_utc_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecurrenceRule:
    id: int
    user_id: int
    category_id: int
    amount: Decimal
    description: str | None
    start_date: date
    recurrence: str
    last_occurrence: date | None = None
    created_at: datetime | None = None


class RecurringStore(Protocol):
    def query_active_rules(self, as_of: date) -> list[RecurrenceRule]: ...

    def try_acquire_lock(self, key: int) -> bool: ...

    def release_lock(self, key: int) -> None: ...

    def insert_concrete_entry(self, rule: RecurrenceRule, entry_date: date) -> bool: ...

    def update_rule_checkpoint(self, rule_id: int, checkpoint: date) -> None: ...


def _to_rule(row: RecurringTransaction) -> RecurrenceRule:
    amount = Decimal(str(row.amount))
    if amount <= 0:
        raise ValueError(f"non-positive amount {amount}")
    return RecurrenceRule(
        id=int(row.id),
        user_id=int(row.user_id),
        category_id=int(row.category_id),
        amount=amount,
        description=row.description,
        start_date=to_utc_date(row.start_date),
        recurrence=row.recurrence,
        last_occurrence=to_utc_date(row.last_occurrence) if row.last_occurrence is not None else None,
        created_at=row.created_at,
    )


class SqlRecurringStore:
    """Persistence for the recurring job, one short-lived session per call.

    Locks use ``pg_try_advisory_lock`` on PostgreSQL, held on a dedicated
    connection until released. Other dialects fall back to a ``job_locks`` row.
    """

    def __init__(self, engine: Engine, max_retries: int = 3, lock_ttl_seconds: int = 6 * 3600):
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
        self._max_retries = max_retries
        self._lock_ttl_seconds = lock_ttl_seconds
        self._advisory = engine.dialect.name == "postgresql"
        self._holder = f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"
        self._lock_conns: dict[int, Connection] = {}
        self._mu = threading.Lock()

    def _session(self) -> Session:
        return self._sessions()

    def query_active_rules(self, as_of: date) -> list[RecurrenceRule]:
        def op() -> list[RecurringTransaction]:
            with self._session() as s:
                q = (
                    select(RecurringTransaction)
                    .where(RecurringTransaction.start_date <= as_of)
                    .order_by(RecurringTransaction.id.asc())
                )
                return list(s.execute(q).scalars().all())

        rules: list[RecurrenceRule] = []
        for row in with_retry(op, self._max_retries):
            try:
                rules.append(_to_rule(row))
            except Exception:
                logger.exception("skipping unreadable recurring rule", extra={"rule_id": row.id})
        return rules

    def insert_concrete_entry(self, rule: RecurrenceRule, entry_date: date) -> bool:
        def exists(s: Session) -> bool:
            n = s.execute(
                select(func.count())
                .select_from(Transaction)
                .where(Transaction.recurring_id == rule.id, Transaction.date == entry_date)
            ).scalar_one()
            return bool(n)

        def op() -> bool:
            with self._session() as s:
                if exists(s):
                    return False
                s.add(
                    Transaction(
                        user_id=rule.user_id,
                        category_id=rule.category_id,
                        recurring_id=rule.id,
                        amount=rule.amount,
                        description=rule.description,
                        date=entry_date,
                    )
                )
                try:
                    s.commit()
                except IntegrityError:
                    s.rollback()
                    # another writer materialized the same (rule, date) first
                    if exists(s):
                        return False
                    raise
                return True

        return with_retry(op, self._max_retries)

    def update_rule_checkpoint(self, rule_id: int, checkpoint: date) -> None:
        def op() -> None:
            with self._session() as s:
                res = s.execute(
                    update(RecurringTransaction)
                    .where(RecurringTransaction.id == rule_id)
                    .values(last_occurrence=checkpoint)
                )
                s.commit()
                if res.rowcount == 0:
                    raise LookupError(f"recurring rule {rule_id} no longer exists")

        with_retry(op, self._max_retries)

    def try_acquire_lock(self, key: int) -> bool:
        if self._advisory:
            return self._try_advisory(key)
        return self._try_row_lock(key)

    def release_lock(self, key: int) -> None:
        if self._advisory:
            self._release_advisory(key)
        else:
            self._release_row_lock(key)

    def _try_advisory(self, key: int) -> bool:
        with self._mu:
            if key in self._lock_conns:
                return False
            conn = self._engine.connect()
            try:
                got = bool(conn.execute(select(func.pg_try_advisory_lock(key))).scalar_one())
                conn.commit()
            except Exception:
                conn.close()
                raise
            if not got:
                conn.close()
                return False
            self._lock_conns[key] = conn
            return True

    def _release_advisory(self, key: int) -> None:
        with self._mu:
            conn = self._lock_conns.pop(key, None)
        if conn is None:
            return
        try:
            released = bool(conn.execute(select(func.pg_advisory_unlock(key))).scalar_one())
            conn.commit()
        except Exception:
            # the server drops session-level locks with the physical connection
            conn.invalidate()
            raise
        finally:
            conn.close()
        if not released:
            logger.warning("advisory lock was not held at release", extra={"lock_key": key})

    def _try_row_lock(self, key: int) -> bool:
        now = now_utc().replace(tzinfo=None)
        with self._session() as s:
            # a crashed holder never releases; reap rows past their ttl
            s.execute(
                delete(JobLock).where(
                    JobLock.lock_key == key,
                    JobLock.acquired_at < now - timedelta(seconds=self._lock_ttl_seconds),
                )
            )
            s.commit()
            s.add(JobLock(lock_key=key, holder=self._holder, acquired_at=now))
            try:
                s.commit()
            except IntegrityError:
                s.rollback()
                return False
            return True

    def _release_row_lock(self, key: int) -> None:
        with self._session() as s:
            # only our own row; a reaped lock may belong to another instance by now
            s.execute(delete(JobLock).where(JobLock.lock_key == key, JobLock.holder == self._holder))
            s.commit()

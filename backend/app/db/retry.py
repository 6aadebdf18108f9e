from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from sqlalchemy.exc import DBAPIError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_CONNECTION_ERRORS = (
    "connection refused",
    "connection reset",
    "broken pipe",
    "no such host",
    "i/o timeout",
    "connection timed out",
    "network is unreachable",
    "too many connections",
    "server closed the connection",
)


class DatabaseUnavailable(RuntimeError):
    pass


def is_connection_error(exc: BaseException) -> bool:
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    msg = str(exc).lower()
    return any(m in msg for m in _CONNECTION_ERRORS)


def with_retry(op: Callable[[], T], max_retries: int = 3, backoff_base: float = 0.1) -> T:
    """Run ``op``, retrying only on connection-level failures.

    Backoff doubles per attempt (100ms, 200ms, 400ms with the defaults). Any
    other error propagates immediately.
    """
    attempt = 0
    while True:
        try:
            return op()
        except DBAPIError as e:
            if not is_connection_error(e):
                raise
            if attempt >= max_retries:
                raise DatabaseUnavailable("database connection unavailable") from e
            delay = backoff_base * (2 ** attempt)
            logger.warning("db connection error, retrying", extra={"attempt": attempt + 1, "delay_s": delay})
            time.sleep(delay)
            attempt += 1

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker

from app.core.config import settings


def build_engine(url: str | None = None, op_timeout_seconds: int | None = None) -> Engine:
    url = url or settings.database_url
    timeout = int(op_timeout_seconds or settings.db_op_timeout_seconds)
    backend = make_url(url).get_backend_name()

    if backend == "sqlite":
        return create_engine(url, future=True, connect_args={"timeout": timeout})

    connect_args: dict = {}
    if backend == "postgresql":
        connect_args = {
            "connect_timeout": timeout,
            "options": f"-c statement_timeout={timeout * 1000}",
        }

    return create_engine(
        url,
        future=True,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle_seconds,
        pool_timeout=timeout,
        connect_args=connect_args,
    )


engine = build_engine()
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

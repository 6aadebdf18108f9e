from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base


class JobLock(Base):
    """Row-per-lock fallback for databases without advisory locks."""

    __tablename__ = "job_locks"

    lock_key: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    holder: Mapped[str] = mapped_column(String(128))
    acquired_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())

from sqlalchemy import Integer, Date, DateTime, func, ForeignKey, Numeric, String, Text, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base

class RecurringTransaction(Base):
    __tablename__ = "recurring_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_recurring_amount_positive"),
        CheckConstraint(
            "recurrence IN ('daily', 'weekly', 'monthly', 'yearly')", name="ck_recurring_recurrence"
        ),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id", ondelete="CASCADE"), index=True)
    amount: Mapped[float] = mapped_column(Numeric(10, 2))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[Date] = mapped_column(Date, index=True)
    recurrence: Mapped[str] = mapped_column(String(10))
    last_occurrence: Mapped[Date | None] = mapped_column(Date, nullable=True, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())

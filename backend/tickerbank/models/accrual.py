from datetime import date, datetime

from sqlalchemy import BigInteger, Integer, Date, DateTime, func, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from tickerbank.db.base import Base


class AccrualRecord(Base):
    __tablename__ = "accrual_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    account_id: Mapped[int] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), index=True)
    run_date: Mapped[date] = mapped_column(Date, index=True)
    interest_posted: Mapped[int] = mapped_column(BigInteger)
    residual_after: Mapped[int] = mapped_column(BigInteger)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("account_id", "run_date", name="uq_accrual_records_account_run_date"),
    )


class AccrualRun(Base):
    __tablename__ = "accrual_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    through_date: Mapped[date] = mapped_column(Date, index=True)
    status: Mapped[str] = mapped_column(String(16), default="running")
    accounts_processed: Mapped[int] = mapped_column(Integer, default=0)
    accounts_halted: Mapped[int] = mapped_column(Integer, default=0)
    total_interest_posted: Mapped[int] = mapped_column(BigInteger, default=0)
    message: Mapped[str | None] = mapped_column(String(512), nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

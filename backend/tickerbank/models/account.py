from datetime import date, datetime

from sqlalchemy import BigInteger, Integer, Date, DateTime, func, ForeignKey, String, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from tickerbank.db.base import Base

class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(128))

    # minor units (cents)
    current_balance: Mapped[int] = mapped_column(BigInteger, default=0)
    as_of: Mapped[date] = mapped_column(Date)
    # micro-units of a minor unit, always in [0, 1_000_000)
    residual_carry: Mapped[int] = mapped_column(BigInteger, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint("current_balance >= 0", name="ck_accounts_balance_non_negative"),
        CheckConstraint("residual_carry >= 0 AND residual_carry < 1000000", name="ck_accounts_carry_range"),
    )

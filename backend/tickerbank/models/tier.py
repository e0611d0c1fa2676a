from datetime import date, datetime

from sqlalchemy import BigInteger, Integer, Date, DateTime, func, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from tickerbank.db.base import Base


class TierSetRow(Base):
    __tablename__ = "tier_sets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    family_id: Mapped[int] = mapped_column(ForeignKey("families.id", ondelete="CASCADE"), index=True)
    effective_from: Mapped[date] = mapped_column(Date, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("family_id", "effective_from", name="uq_tier_sets_family_effective_from"),
    )


class TierRow(Base):
    __tablename__ = "interest_tiers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tier_set_id: Mapped[int] = mapped_column(ForeignKey("tier_sets.id", ondelete="CASCADE"), index=True)
    lower_bound: Mapped[int] = mapped_column(BigInteger)
    upper_bound: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    annual_rate_bps: Mapped[int] = mapped_column(Integer)

import os
import threading
from datetime import date, timedelta

from sqlalchemy import select

from tickerbank.db.session import SessionLocal
from tickerbank.models.account import Account
from tickerbank.models.family import Family
from tickerbank.services.accrual_store import MemoryAccrualStore
from tickerbank.services.interest import Tier, TierSet
from tickerbank.services.tiers import schedule_tier_set
from tickerbank.utils.clock import today_local

DEMO_TIERS = (
    Tier(lower_bound=0, upper_bound=10_000, annual_rate_bps=200),
    Tier(lower_bound=10_000, upper_bound=50_000, annual_rate_bps=300),
    Tier(lower_bound=50_000, upper_bound=None, annual_rate_bps=400),
)

_demo_lock = threading.Lock()
_demo: MemoryAccrualStore | None = None


def build_demo_store(today: date) -> MemoryAccrualStore:
    store = MemoryAccrualStore()
    start = today - timedelta(days=30)
    store.add_tier_set(1, TierSet(effective_from=start, tiers=DEMO_TIERS))
    store.add_account(1, entity_id=1, balance=12_500, as_of=start)
    store.add_account(2, entity_id=1, balance=75_000, as_of=start)
    return store


def demo_store() -> MemoryAccrualStore:
    global _demo
    with _demo_lock:
        if _demo is None:
            _demo = build_demo_store(today_local())
        return _demo


def main():
    family_name = os.environ.get("SEED_FAMILY_NAME", "Demo Family")
    opening_balance = int(os.environ.get("SEED_OPENING_BALANCE_CENTS", "12500"))

    db = SessionLocal()
    try:
        existing = db.execute(select(Family).where(Family.name == family_name)).scalar_one_or_none()
        if existing:
            return
        fam = Family(name=family_name)
        db.add(fam)
        db.commit()

        start = today_local() - timedelta(days=30)
        schedule_tier_set(db, fam.id, start, DEMO_TIERS)
        db.add(Account(family_id=fam.id, name="Savings", current_balance=opening_balance, as_of=start, residual_carry=0))
        db.commit()
    finally:
        db.close()

if __name__ == "__main__":
    main()

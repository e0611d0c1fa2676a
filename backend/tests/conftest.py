from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tickerbank.db.base import Base
from tickerbank.models import Account, Family, TierRow, TierSetRow
from tickerbank.services.interest import Tier


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite+pysqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session(engine):
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    s = Session()
    try:
        yield s
    finally:
        s.close()


def mk_family(session) -> Family:
    f = Family(name=f"Family-{uuid4().hex[:10]}")
    session.add(f)
    session.commit()
    return f


def mk_account(session, family_id: int, balance: int, as_of: date, carry: int = 0) -> Account:
    a = Account(
        family_id=family_id,
        name=f"Account-{uuid4().hex[:10]}",
        current_balance=balance,
        as_of=as_of,
        residual_carry=carry,
    )
    session.add(a)
    session.commit()
    return a


def add_tier_set(session, family_id: int, effective_from: date, tiers: list[Tier]) -> TierSetRow:
    row = TierSetRow(family_id=family_id, effective_from=effective_from)
    session.add(row)
    session.flush()
    for t in tiers:
        session.add(
            TierRow(
                tier_set_id=row.id,
                lower_bound=t.lower_bound,
                upper_bound=t.upper_bound,
                annual_rate_bps=t.annual_rate_bps,
            )
        )
    session.commit()
    return row

from datetime import date
from io import BytesIO
import re

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from tickerbank.api.deps import db, require_account, require_family
from tickerbank.core.config import settings
from tickerbank.models.account import Account
from tickerbank.models.accrual import AccrualRecord
from tickerbank.models.family import Family
from tickerbank.schemas.account import AccountCreate, AccountOut, AccrualRecordOut
from tickerbank.schemas.projection import ProjectionOut, ProjectionPointOut, SimulationIn, SimulationOut
from tickerbank.schemas.ticker import TickerOut
from tickerbank.schemas.transaction import TransactionOut
from tickerbank.schemas.tier import TierOut
from tickerbank.services.ledger import list_transactions
from tickerbank.services.projection import WhatIf, project_balance, simulate
from tickerbank.services.reports import build_accrual_statement
from tickerbank.services.ticker import per_second_increment
from tickerbank.services.tiers import load_tier_sets, tiers_for_day
from tickerbank.utils.clock import now_ms, today_local

router = APIRouter(tags=["accounts"])


def _safe_part(v: str) -> str:
    s = (v or "").strip()
    s = re.sub(r"\s+", "_", s)
    s = re.sub(r"[^A-Za-z0-9._-]+", "_", s)
    s = re.sub(r"_+", "_", s).strip("_")
    return (s[:40] or "unknown")


@router.post("/families/{family_id}/accounts", response_model=AccountOut)
def open_account(family_id: int, body: AccountCreate, s: Session = Depends(db)):
    require_family(s, family_id)
    a = Account(
        family_id=family_id,
        name=body.name,
        current_balance=body.opening_balance,
        as_of=body.as_of or today_local(),
        residual_carry=0,
    )
    s.add(a)
    s.commit()
    s.refresh(a)
    return a


@router.get("/families/{family_id}/accounts", response_model=list[AccountOut])
def list_accounts(family_id: int, s: Session = Depends(db)):
    require_family(s, family_id)
    return s.execute(select(Account).where(Account.family_id == family_id).order_by(Account.id.asc())).scalars().all()


@router.get("/accounts/{account_id}", response_model=AccountOut)
def get_account(account_id: int, s: Session = Depends(db)):
    return require_account(s, account_id)


@router.get("/accounts/{account_id}/accruals", response_model=list[AccrualRecordOut])
def list_accruals(
    account_id: int,
    start: date | None = Query(None),
    end: date | None = Query(None),
    s: Session = Depends(db),
):
    require_account(s, account_id)
    q = select(AccrualRecord).where(AccrualRecord.account_id == account_id)
    if start is not None:
        q = q.where(AccrualRecord.run_date >= start)
    if end is not None:
        q = q.where(AccrualRecord.run_date <= end)
    return s.execute(q.order_by(AccrualRecord.run_date.asc())).scalars().all()


@router.get("/accounts/{account_id}/transactions", response_model=list[TransactionOut])
def account_transactions(
    account_id: int,
    start: date | None = Query(None),
    end: date | None = Query(None),
    s: Session = Depends(db),
):
    require_account(s, account_id)
    return list_transactions(s, account_id, start, end)


@router.get("/accounts/{account_id}/ticker", response_model=TickerOut)
def ticker_feed(account_id: int, s: Session = Depends(db)):
    a = require_account(s, account_id)
    today = today_local()
    tiers = tiers_for_day(load_tier_sets(s, a.family_id, end=today), today)
    return TickerOut(
        account_id=a.id,
        balance=int(a.current_balance),
        timestamp_ms=now_ms(),
        as_of=a.as_of,
        tiers=[TierOut.from_tier(t) for t in tiers],
        per_second=per_second_increment(int(a.current_balance), tiers),
    )


@router.get("/accounts/{account_id}/projection", response_model=ProjectionOut)
def projection(
    account_id: int,
    horizon_days: int | None = Query(None, ge=1, le=3650),
    s: Session = Depends(db),
):
    a = require_account(s, account_id)
    points = project_balance(
        int(a.current_balance),
        load_tier_sets(s, a.family_id),
        today_local(),
        horizon_days or settings.projection_horizon_days,
        carry=int(a.residual_carry),
    )
    return ProjectionOut(
        account_id=a.id,
        baseline=[ProjectionPointOut(date=p.date, balance=p.balance) for p in points],
    )


@router.post("/accounts/{account_id}/projection/simulate", response_model=SimulationOut)
def projection_simulate(account_id: int, body: SimulationIn, s: Session = Depends(db)):
    a = require_account(s, account_id)
    out = simulate(
        int(a.current_balance),
        load_tier_sets(s, a.family_id),
        today_local(),
        WhatIf(kind=body.what_if.type, amount=body.what_if.amount),
        horizon_days=body.horizon_days or settings.projection_horizon_days,
        carry=int(a.residual_carry),
    )
    return SimulationOut(
        account_id=a.id,
        baseline=[ProjectionPointOut(date=p.date, balance=p.balance) for p in out["baseline"]],
        simulated=[ProjectionPointOut(date=p.date, balance=p.balance) for p in out["simulated"]],
        deltas=out["deltas"],
    )


@router.get("/accounts/{account_id}/report")
def report(
    account_id: int,
    start: date = Query(...),
    end: date = Query(...),
    s: Session = Depends(db),
):
    a = require_account(s, account_id)
    family = s.execute(select(Family).where(Family.id == a.family_id)).scalar_one()

    buf = BytesIO()
    build_accrual_statement(s, account_id, start, end, buf)
    buf.seek(0)

    filename = f"{_safe_part(family.name)}_{_safe_part(a.name)}_{start}_to_{end}.xlsx"
    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

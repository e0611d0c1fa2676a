from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from tickerbank.api.deps import db, require_family
from tickerbank.schemas.tier import TierSetCreate, TierSetOut, TierSetReplace
from tickerbank.services.interest import InvariantViolation
from tickerbank.services.tiers import (
    TierSetLocked,
    TierSetNotFound,
    delete_tier_set,
    list_tier_sets,
    replace_tier_set,
    resolve,
    schedule_tier_set,
)
from tickerbank.utils.clock import today_local

router = APIRouter(prefix="/families/{family_id}/tier-sets", tags=["tiers"])


@router.get("", response_model=list[TierSetOut])
def list_sets(family_id: int, s: Session = Depends(db)):
    require_family(s, family_id)
    return [TierSetOut.from_tier_set(ts) for ts in list_tier_sets(s, family_id)]


@router.get("/current", response_model=TierSetOut | None)
def current_set(family_id: int, on: date | None = Query(None), s: Session = Depends(db)):
    require_family(s, family_id)
    ts = resolve(s, family_id, on or today_local())
    return TierSetOut.from_tier_set(ts) if ts is not None else None


@router.post("", response_model=TierSetOut)
def schedule_set(family_id: int, body: TierSetCreate, s: Session = Depends(db)):
    require_family(s, family_id)
    tiers = [t.to_tier() for t in body.tiers]
    try:
        ts = schedule_tier_set(s, family_id, body.effective_from, tiers)
    except InvariantViolation as e:
        raise HTTPException(status_code=400, detail=f"tier_set_invalid:{e}")
    except TierSetLocked:
        raise HTTPException(status_code=409, detail="tier_set_locked")
    return TierSetOut.from_tier_set(ts)


@router.put("/{effective_from}", response_model=TierSetOut)
def replace_set(family_id: int, effective_from: date, body: TierSetReplace, s: Session = Depends(db)):
    require_family(s, family_id)
    tiers = [t.to_tier() for t in body.tiers]
    try:
        ts = replace_tier_set(s, family_id, effective_from, tiers)
    except InvariantViolation as e:
        raise HTTPException(status_code=400, detail=f"tier_set_invalid:{e}")
    except TierSetLocked:
        raise HTTPException(status_code=409, detail="tier_set_locked")
    except TierSetNotFound:
        raise HTTPException(status_code=404, detail="tier_set_not_found")
    return TierSetOut.from_tier_set(ts)


@router.delete("/{effective_from}")
def delete_set(family_id: int, effective_from: date, s: Session = Depends(db)):
    require_family(s, family_id)
    try:
        delete_tier_set(s, family_id, effective_from)
    except TierSetLocked:
        raise HTTPException(status_code=409, detail="tier_set_locked")
    except TierSetNotFound:
        raise HTTPException(status_code=404, detail="tier_set_not_found")
    return {"ok": True}

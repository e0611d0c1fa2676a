from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from tickerbank.api.deps import db
from tickerbank.schemas.accrual import AccrualRunOut, AccrualStartIn, AccrualStatusOut
from tickerbank.services.accrual_job import ensure_started, get_status, list_runs


router = APIRouter(prefix="/accrual", tags=["accrual"])


@router.get("/status", response_model=AccrualStatusOut)
def status():
    return get_status()


@router.post("/start", response_model=AccrualStatusOut)
def start(body: AccrualStartIn | None = None):
    # Starts in background thread and returns immediately
    return ensure_started(body.through if body else None)


@router.get("/runs", response_model=list[AccrualRunOut])
def runs(limit: int = Query(default=50, ge=1, le=500), s: Session = Depends(db)):
    return list_runs(s, limit)

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, asdict
from datetime import date, datetime
from typing import Optional, Dict, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from tickerbank.db.session import SessionLocal
from tickerbank.models.accrual import AccrualRun
from tickerbank.services.accrual import AccrualRunner, RunSummary
from tickerbank.services.accrual_store import open_store
from tickerbank.utils.clock import yesterday_local

logger = logging.getLogger(__name__)


def _iso_now() -> str:
    return datetime.utcnow().replace(microsecond=0).isoformat() + "Z"


@dataclass
class _Job:
    status: str = "idle"  # idle|running|done|error
    through: Optional[str] = None
    total_accounts: int = 0
    processed_accounts: int = 0
    halted_accounts: int = 0
    retry_accounts: int = 0
    interest_posted: int = 0
    started_at: Optional[str] = None
    updated_at: Optional[str] = None
    message: Optional[str] = None


_lock = threading.Lock()
_job = _Job()


def get_status() -> Dict[str, Any]:
    with _lock:
        return asdict(_job)


def _set_status(**kwargs) -> None:
    with _lock:
        for k, v in kwargs.items():
            setattr(_job, k, v)
        _job.updated_at = _iso_now()


def run_accruals(s: Session, through: date) -> RunSummary:
    run = AccrualRun(through_date=through, status="running")
    s.add(run)
    s.commit()
    run_id = run.id

    store = open_store(s)
    runner = AccrualRunner(store)
    try:
        summary = runner.run_all(through)
    except Exception as e:
        s.rollback()
        _finish_run(s, run_id, status="error", message=str(e))
        raise

    msg = None
    if summary.accounts_halted or summary.accounts_retrying:
        msg = f"halted={summary.accounts_halted} retry={summary.accounts_retrying}"
    _finish_run(
        s,
        run_id,
        status="completed" if not summary.accounts_halted else "partial",
        accounts_processed=summary.accounts_processed,
        accounts_halted=summary.accounts_halted,
        total_interest_posted=summary.total_interest_posted,
        message=msg,
    )
    return summary


def _finish_run(s: Session, run_id: int, **values) -> None:
    run = s.execute(select(AccrualRun).where(AccrualRun.id == run_id)).scalar_one()
    for k, v in values.items():
        setattr(run, k, v)
    run.completed_at = datetime.utcnow()
    s.commit()


def list_runs(s: Session, limit: int = 50):
    return (
        s.execute(select(AccrualRun).order_by(AccrualRun.started_at.desc(), AccrualRun.id.desc()).limit(limit))
        .scalars()
        .all()
    )


def ensure_started(through: date | None = None) -> Dict[str, Any]:
    # If already running, just return status
    st = get_status()
    if st.get("status") == "running":
        return st

    target = through or yesterday_local()
    _set_status(
        status="running",
        through=target.isoformat(),
        total_accounts=0,
        processed_accounts=0,
        halted_accounts=0,
        retry_accounts=0,
        interest_posted=0,
        started_at=_iso_now(),
        message=None,
    )

    t = threading.Thread(target=_run_job, args=(target,), daemon=True)
    t.start()
    return get_status()


def _run_job(through: date) -> None:
    try:
        with SessionLocal() as s:
            summary = run_accruals(s, through)
        _set_status(
            status="done",
            total_accounts=len(summary.results),
            processed_accounts=summary.accounts_processed,
            halted_accounts=summary.accounts_halted,
            retry_accounts=summary.accounts_retrying,
            interest_posted=summary.total_interest_posted,
            message=None,
        )
    except Exception as e:
        logger.exception("accrual_job_failed")
        _set_status(status="error", message=str(e))

from __future__ import annotations

import asyncio
import logging

from tickerbank.core.config import settings
from tickerbank.db.session import SessionLocal
from tickerbank.services.accrual_job import run_accruals
from tickerbank.utils.clock import yesterday_local

logger = logging.getLogger(__name__)


def sync_accruals_once() -> None:
    with SessionLocal() as s:
        summary = run_accruals(s, yesterday_local())
    logger.info(
        "accrual_sync_completed",
        extra={
            "through": summary.through.isoformat(),
            "accounts_processed": summary.accounts_processed,
            "accounts_halted": summary.accounts_halted,
            "total_interest_posted": summary.total_interest_posted,
        },
    )


async def accrual_sync_loop() -> None:
    if not getattr(settings, "accrual_sync_enabled", True):
        return

    interval = int(getattr(settings, "accrual_sync_interval_seconds", 3600) or 3600)
    await asyncio.sleep(3)

    while True:
        try:
            await asyncio.to_thread(sync_accruals_once)
        except Exception as e:
            logger.exception("accrual_sync failed", exc_info=e)

        await asyncio.sleep(max(60, interval))

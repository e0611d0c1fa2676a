"""
Display-only balance extrapolation between authoritative syncs.

Nothing in this module writes state. The projected value is a linear
approximation that a display re-anchors periodically; the accrual runner
remains the only source of posted interest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Sequence

import httpx

from tickerbank.core.config import settings
from tickerbank.services.interest import BPS_DENOMINATOR, DAYS_PER_YEAR, Tier, slice_balance

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400
MS_PER_SECOND = 1_000

_PER_SECOND_DENOMINATOR = Decimal(BPS_DENOMINATOR * DAYS_PER_YEAR * SECONDS_PER_DAY)


@dataclass(frozen=True)
class TickerBase:
    base_balance: int
    base_timestamp_ms: int
    tiers: tuple[Tier, ...] = field(default_factory=tuple)


def per_second_increment(balance: int, tiers: Sequence[Tier]) -> Decimal:
    weighted = sum((sl.amount * sl.annual_rate_bps for sl in slice_balance(balance, tiers)), 0)
    return Decimal(weighted) / _PER_SECOND_DENOMINATOR


def elapsed_seconds(now_ms: int, base_timestamp_ms: int) -> int:
    return max(0, (now_ms - base_timestamp_ms) // MS_PER_SECOND)


def project(now_ms: int, base: TickerBase) -> Decimal:
    elapsed = elapsed_seconds(now_ms, base.base_timestamp_ms)
    return Decimal(base.base_balance) + per_second_increment(base.base_balance, base.tiers) * elapsed


class Ticker:
    def __init__(self, base: TickerBase, resync_seconds: int | None = None):
        self.base = base
        self.resync_seconds = settings.ticker_resync_seconds if resync_seconds is None else resync_seconds
        self.last_sync_ms = base.base_timestamp_ms

    def value(self, now_ms: int) -> Decimal:
        return project(now_ms, self.base)

    def display_cents(self, now_ms: int) -> int:
        return int(self.value(now_ms).to_integral_value())

    def needs_resync(self, now_ms: int) -> bool:
        return now_ms - self.last_sync_ms >= self.resync_seconds * MS_PER_SECOND

    def rebase(
        self,
        balance: int,
        timestamp_ms: int,
        tiers: Sequence[Tier] | None = None,
        synced_at_ms: int | None = None,
    ) -> None:
        self.base = TickerBase(
            base_balance=balance,
            base_timestamp_ms=timestamp_ms,
            tiers=tuple(tiers) if tiers is not None else self.base.tiers,
        )
        self.last_sync_ms = timestamp_ms if synced_at_ms is None else synced_at_ms

    def sync(self, feed: "TickerFeedClient", account_id: int, now_ms: int) -> bool:
        """
        Re-anchor to the feed's authoritative (balance, timestamp) pair. On any
        feed failure the previous base is kept so the display continues
        extrapolating from the last known value.
        """
        try:
            fresh = feed.fetch(account_id)
        except (httpx.HTTPError, ValueError, KeyError):
            logger.warning("ticker_sync_failed", exc_info=True, extra={"account_id": account_id})
            return False

        if fresh is None:
            return False

        self.rebase(fresh.base_balance, fresh.base_timestamp_ms, fresh.tiers, synced_at_ms=now_ms)
        return True


def ticker_base_from_payload(payload: dict) -> TickerBase | None:
    balance = payload.get("balance")
    if balance is None:
        return None
    tiers = tuple(
        Tier(
            lower_bound=int(t["lower_bound"]),
            upper_bound=int(t["upper_bound"]) if t.get("upper_bound") is not None else None,
            annual_rate_bps=int(t["annual_rate_bps"]),
        )
        for t in payload.get("tiers") or []
    )
    return TickerBase(base_balance=int(balance), base_timestamp_ms=int(payload["timestamp_ms"]), tiers=tiers)


class TickerFeedClient:
    def __init__(self, base_url: str, *, timeout_s: float = 5.0, transport: httpx.BaseTransport | None = None):
        self.client = httpx.Client(base_url=base_url, timeout=timeout_s, transport=transport)

    def fetch(self, account_id: int) -> TickerBase | None:
        r = self.client.get(f"/accounts/{account_id}/ticker")
        r.raise_for_status()
        return ticker_base_from_payload(r.json())

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "TickerFeedClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

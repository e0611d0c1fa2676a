from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Literal, Sequence

from tickerbank.services.interest import TierSet, daily_interest_micros, settle
from tickerbank.services.tiers import tiers_for_day


@dataclass(frozen=True)
class ProjectionPoint:
    date: date
    balance: int


@dataclass(frozen=True)
class WhatIf:
    kind: Literal["deposit", "withdrawal"]
    amount: int


def project_balance(
    balance: int,
    tier_sets: Sequence[TierSet],
    start: date,
    horizon_days: int = 365,
    carry: int = 0,
    what_if: WhatIf | None = None,
) -> list[ProjectionPoint]:
    principal = balance
    if what_if is not None:
        if what_if.kind == "deposit":
            principal += what_if.amount
        else:
            principal = max(0, principal - what_if.amount)

    points = [ProjectionPoint(date=start, balance=principal)]
    for i in range(1, horizon_days + 1):
        day = start + timedelta(days=i)
        micros = daily_interest_micros(principal, tiers_for_day(tier_sets, day))
        posted, carry = settle(micros, carry)
        principal += posted
        points.append(ProjectionPoint(date=day, balance=principal))
    return points


def _balance_at(points: list[ProjectionPoint], days: int) -> int:
    return points[min(days, len(points) - 1)].balance


def simulate(
    balance: int,
    tier_sets: Sequence[TierSet],
    start: date,
    what_if: WhatIf,
    horizon_days: int = 365,
    carry: int = 0,
) -> dict:
    baseline = project_balance(balance, tier_sets, start, horizon_days, carry)
    simulated = project_balance(balance, tier_sets, start, horizon_days, carry, what_if=what_if)
    deltas = {f"d{n}": _balance_at(simulated, n) - _balance_at(baseline, n) for n in (30, 90, 365)}
    return {"baseline": baseline, "simulated": simulated, "deltas": deltas}

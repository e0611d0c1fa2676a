"""
Fixed-point interest math.

Balances are integer minor units (cents). Daily interest is expressed in
integer micro-units of a minor unit (1e-6 cent). Nothing here touches
floating point, so repeated runs are bit-for-bit identical.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Sequence

MICROS_PER_UNIT = 1_000_000
BPS_DENOMINATOR = 10_000
DAYS_PER_YEAR = 365  # Actual/365, leap days included

# Stand-in for an open-ended top tier.
UNBOUNDED = 2**63 - 1


class InvariantViolation(ValueError):
    pass


@dataclass(frozen=True)
class Tier:
    lower_bound: int
    upper_bound: int | None
    annual_rate_bps: int

    @property
    def upper(self) -> int:
        return UNBOUNDED if self.upper_bound is None else self.upper_bound


@dataclass(frozen=True)
class TierSet:
    effective_from: date
    tiers: tuple[Tier, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Slice:
    amount: int
    annual_rate_bps: int


def validate_tiers(tiers: Sequence[Tier]) -> None:
    if not tiers:
        raise InvariantViolation("tier_set_empty")

    ordered = sorted(tiers, key=lambda t: t.lower_bound)
    if ordered[0].lower_bound != 0:
        raise InvariantViolation("first_tier_must_start_at_zero")

    for i, t in enumerate(ordered):
        if t.annual_rate_bps < 0:
            raise InvariantViolation("tier_rate_negative")
        if t.upper_bound is not None and t.upper_bound <= t.lower_bound:
            raise InvariantViolation("tier_upper_not_above_lower")

        if i + 1 < len(ordered):
            nxt = ordered[i + 1]
            if t.upper_bound is None:
                raise InvariantViolation("only_last_tier_may_be_unbounded")
            if t.upper_bound != nxt.lower_bound:
                raise InvariantViolation("tiers_not_contiguous")


def slice_balance(balance: int, tiers: Iterable[Tier]) -> list[Slice]:
    if balance < 0:
        raise InvariantViolation("balance_negative")

    out: list[Slice] = []
    for t in tiers:
        amount = max(0, min(balance, t.upper) - t.lower_bound)
        if amount > 0:
            out.append(Slice(amount=amount, annual_rate_bps=t.annual_rate_bps))
    return out


def slice_interest_micros(sl: Slice) -> int:
    return (sl.amount * sl.annual_rate_bps * MICROS_PER_UNIT) // (BPS_DENOMINATOR * DAYS_PER_YEAR)


def daily_interest_micros(balance: int, tiers: Iterable[Tier]) -> int:
    """
    One day of interest in micro-units.

    Each slice is truncated to whole micro-units on its own,
    floor(amount * bps / 10_000 / 365 * 1_000_000), and the slices are
    then summed.
    """
    micros = sum((slice_interest_micros(sl) for sl in slice_balance(balance, tiers)), 0)
    if micros < 0:
        raise InvariantViolation("daily_interest_negative")
    return micros


def settle(daily_micros: int, carry_in: int) -> tuple[int, int]:
    if daily_micros < 0:
        raise InvariantViolation("daily_interest_negative")
    if not 0 <= carry_in < MICROS_PER_UNIT:
        raise InvariantViolation("carry_out_of_range")

    total = daily_micros + carry_in
    posted = total // MICROS_PER_UNIT
    carry_out = total - posted * MICROS_PER_UNIT

    if not 0 <= carry_out < MICROS_PER_UNIT:
        raise InvariantViolation("carry_out_of_range")
    return posted, carry_out

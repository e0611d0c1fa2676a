from __future__ import annotations

from datetime import date
from typing import Sequence

from sqlalchemy import select, func, delete
from sqlalchemy.orm import Session

from tickerbank.models.account import Account
from tickerbank.models.tier import TierSetRow, TierRow
from tickerbank.services.interest import Tier, TierSet, validate_tiers


class TierSetLocked(ValueError):
    pass


class TierSetNotFound(LookupError):
    pass


def resolve_tier_set(tier_sets: Sequence[TierSet], day: date) -> TierSet | None:
    latest: TierSet | None = None
    for ts in tier_sets:
        if ts.effective_from <= day and (latest is None or ts.effective_from > latest.effective_from):
            latest = ts
    return latest


def tiers_for_day(tier_sets: Sequence[TierSet], day: date) -> tuple[Tier, ...]:
    ts = resolve_tier_set(tier_sets, day)
    return ts.tiers if ts is not None else ()


def load_tier_sets(s: Session, family_id: int, end: date | None = None) -> list[TierSet]:
    q = (
        select(TierSetRow.effective_from, TierRow.lower_bound, TierRow.upper_bound, TierRow.annual_rate_bps)
        .join(TierRow, TierRow.tier_set_id == TierSetRow.id)
        .where(TierSetRow.family_id == family_id)
        .order_by(TierSetRow.effective_from.asc(), TierRow.lower_bound.asc())
    )
    if end is not None:
        q = q.where(TierSetRow.effective_from <= end)

    grouped: dict[date, list[Tier]] = {}
    for eff, lower, upper, bps in s.execute(q).all():
        grouped.setdefault(eff, []).append(
            Tier(
                lower_bound=int(lower),
                upper_bound=int(upper) if upper is not None else None,
                annual_rate_bps=int(bps),
            )
        )
    return [TierSet(effective_from=eff, tiers=tuple(rows)) for eff, rows in grouped.items()]


def resolve(s: Session, family_id: int, day: date) -> TierSet | None:
    return resolve_tier_set(load_tier_sets(s, family_id, end=day), day)


def last_accrued_date(s: Session, family_id: int) -> date | None:
    return s.execute(select(func.max(Account.as_of)).where(Account.family_id == family_id)).scalar_one()


def _ensure_editable(s: Session, family_id: int, effective_from: date) -> None:
    locked_through = last_accrued_date(s, family_id)
    if locked_through is not None and effective_from <= locked_through:
        raise TierSetLocked(f"tier_set_locked_through_{locked_through.isoformat()}")


def _insert_tiers(s: Session, tier_set_id: int, tiers: Sequence[Tier]) -> None:
    for t in sorted(tiers, key=lambda x: x.lower_bound):
        s.add(
            TierRow(
                tier_set_id=tier_set_id,
                lower_bound=t.lower_bound,
                upper_bound=t.upper_bound,
                annual_rate_bps=t.annual_rate_bps,
            )
        )


def _get_row(s: Session, family_id: int, effective_from: date) -> TierSetRow:
    row = s.execute(
        select(TierSetRow).where(TierSetRow.family_id == family_id, TierSetRow.effective_from == effective_from)
    ).scalar_one_or_none()
    if row is None:
        raise TierSetNotFound(f"tier_set_not_found_{effective_from.isoformat()}")
    return row


def schedule_tier_set(s: Session, family_id: int, effective_from: date, tiers: Sequence[Tier]) -> TierSet:
    validate_tiers(tiers)
    _ensure_editable(s, family_id, effective_from)

    row = TierSetRow(family_id=family_id, effective_from=effective_from)
    s.add(row)
    s.flush()
    _insert_tiers(s, row.id, tiers)
    s.commit()
    return TierSet(effective_from=effective_from, tiers=tuple(sorted(tiers, key=lambda x: x.lower_bound)))


def replace_tier_set(s: Session, family_id: int, effective_from: date, tiers: Sequence[Tier]) -> TierSet:
    validate_tiers(tiers)
    _ensure_editable(s, family_id, effective_from)

    row = _get_row(s, family_id, effective_from)
    s.execute(delete(TierRow).where(TierRow.tier_set_id == row.id))
    _insert_tiers(s, row.id, tiers)
    s.commit()
    return TierSet(effective_from=effective_from, tiers=tuple(sorted(tiers, key=lambda x: x.lower_bound)))


def delete_tier_set(s: Session, family_id: int, effective_from: date) -> None:
    _ensure_editable(s, family_id, effective_from)

    row = _get_row(s, family_id, effective_from)
    s.execute(delete(TierRow).where(TierRow.tier_set_id == row.id))
    s.delete(row)
    s.commit()


def list_tier_sets(s: Session, family_id: int) -> list[TierSet]:
    return load_tier_sets(s, family_id)

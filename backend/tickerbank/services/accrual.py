from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from tickerbank.services.accrual_store import AccrualStore, AccountState, PostingError, TierSourceUnavailable
from tickerbank.services.interest import (
    InvariantViolation,
    MICROS_PER_UNIT,
    Tier,
    TierSet,
    daily_interest_micros,
    settle,
    validate_tiers,
)
from tickerbank.services.tiers import resolve_tier_set

logger = logging.getLogger(__name__)


@dataclass
class AccountRunResult:
    account_id: int
    status: str = "up_to_date"  # up_to_date|advanced|retry|halted
    days_accrued: int = 0
    days_skipped: int = 0
    interest_posted: int = 0
    as_of: date | None = None
    message: str | None = None


@dataclass
class RunSummary:
    through: date
    results: list[AccountRunResult] = field(default_factory=list)

    @property
    def accounts_processed(self) -> int:
        return sum(1 for r in self.results if r.status in ("advanced", "up_to_date"))

    @property
    def accounts_halted(self) -> int:
        return sum(1 for r in self.results if r.status == "halted")

    @property
    def accounts_retrying(self) -> int:
        return sum(1 for r in self.results if r.status == "retry")

    @property
    def total_interest_posted(self) -> int:
        return sum(r.interest_posted for r in self.results)


class AccrualRunner:
    """
    Walks each account forward one calendar day at a time from its `as_of`
    to `through`, posting at most one interest amount per account-day.

    Days for one account are strictly sequential: a day's principal is the
    balance after the previous day's posting. Accounts are independent.
    """

    def __init__(self, store: AccrualStore):
        self.store = store

    def _load_tier_sets(self, state: AccountState) -> list[TierSet] | None:
        try:
            return self.store.tier_sets(state.entity_id)
        except TierSourceUnavailable:
            logger.warning(
                "tier_source_unavailable",
                exc_info=True,
                extra={"account_id": state.account_id, "entity_id": state.entity_id},
            )
            return None

    def _tiers_for(self, state: AccountState, tier_sets: list[TierSet] | None, day: date) -> tuple[Tier, ...]:
        if tier_sets is None:
            logger.warning(
                "tier_source_unavailable_zero_interest",
                extra={"account_id": state.account_id, "entity_id": state.entity_id, "day": day.isoformat()},
            )
            return ()

        ts = resolve_tier_set(tier_sets, day)
        if ts is None:
            return ()
        validate_tiers(ts.tiers)
        return ts.tiers

    def run_account(self, account_id: int, through: date) -> AccountRunResult:
        state = self.store.account_state(account_id)
        result = AccountRunResult(account_id=account_id, as_of=state.as_of)

        if state.as_of >= through:
            return result

        if not 0 <= state.residual_carry < MICROS_PER_UNIT:
            raise InvariantViolation("carry_out_of_range")

        tier_sets = self._load_tier_sets(state)
        carry = state.residual_carry

        day = state.as_of + timedelta(days=1)
        while day <= through:
            existing = self.store.find_record(account_id, day)
            if existing is not None:
                result.days_skipped += 1
                state = self.store.account_state(account_id)
                carry = existing.residual_after
                day += timedelta(days=1)
                continue

            tiers = self._tiers_for(state, tier_sets, day)
            micros = daily_interest_micros(state.balance, tiers)
            posted, carry_after = settle(micros, carry)

            try:
                committed = self.store.commit_day(state, day, posted, carry_after)
            except PostingError as e:
                logger.warning(
                    "posting_failed",
                    exc_info=True,
                    extra={"account_id": account_id, "day": day.isoformat()},
                )
                result.status = "retry"
                result.message = str(e)
                result.as_of = state.as_of
                return result

            if committed:
                result.days_accrued += 1
                result.interest_posted += posted
                carry = carry_after
            else:
                # Another runner won this day; adopt what it recorded.
                won = self.store.find_record(account_id, day)
                if won is None:
                    logger.warning(
                        "commit_rejected_without_record",
                        extra={"account_id": account_id, "day": day.isoformat()},
                    )
                    result.status = "retry"
                    result.message = f"commit_rejected_without_record_{day.isoformat()}"
                    result.as_of = state.as_of
                    return result
                result.days_skipped += 1
                carry = won.residual_after

            state = self.store.account_state(account_id)
            day += timedelta(days=1)

        result.status = "advanced" if (result.days_accrued or result.days_skipped) else "up_to_date"
        result.as_of = state.as_of
        logger.info(
            "account_accrued",
            extra={
                "account_id": account_id,
                "days_accrued": result.days_accrued,
                "days_skipped": result.days_skipped,
                "interest_posted": result.interest_posted,
                "as_of": result.as_of.isoformat() if result.as_of else None,
            },
        )
        return result

    def run_all(self, through: date) -> RunSummary:
        summary = RunSummary(through=through)
        for account_id in self.store.account_ids():
            try:
                summary.results.append(self.run_account(account_id, through))
            except InvariantViolation as e:
                logger.error(
                    "accrual_invariant_violation",
                    exc_info=True,
                    extra={"account_id": account_id},
                )
                summary.results.append(AccountRunResult(account_id=account_id, status="halted", message=str(e)))
        return summary

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from datetime import date
from typing import Callable, Protocol, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from tickerbank.core.config import settings
from tickerbank.models.account import Account
from tickerbank.models.accrual import AccrualRecord
from tickerbank.services.interest import TierSet
from tickerbank.services.ledger import post_interest
from tickerbank.services.tiers import load_tier_sets


class TierSourceUnavailable(RuntimeError):
    pass


class PostingError(RuntimeError):
    pass


@dataclass(frozen=True)
class AccountState:
    account_id: int
    entity_id: int
    balance: int
    as_of: date
    residual_carry: int


@dataclass(frozen=True)
class RecordState:
    account_id: int
    run_date: date
    interest_posted: int
    residual_after: int


def interest_description(day: date) -> str:
    return f"Interest accrued for {day.isoformat()}"


class AccrualStore(Protocol):
    def account_ids(self) -> list[int]: ...

    def account_state(self, account_id: int) -> AccountState: ...

    def tier_sets(self, entity_id: int) -> list[TierSet]: ...

    def find_record(self, account_id: int, day: date) -> RecordState | None: ...

    def commit_day(self, state: AccountState, day: date, posted: int, carry_after: int) -> bool: ...


class SqlAccrualStore:
    def __init__(self, s: Session):
        self.s = s

    def account_ids(self) -> list[int]:
        return list(self.s.execute(select(Account.id).order_by(Account.id.asc())).scalars().all())

    def account_state(self, account_id: int) -> AccountState:
        # Other runners may have committed since our last read.
        self.s.expire_all()
        acct = self.s.execute(select(Account).where(Account.id == account_id)).scalar_one()
        return AccountState(
            account_id=acct.id,
            entity_id=acct.family_id,
            balance=int(acct.current_balance),
            as_of=acct.as_of,
            residual_carry=int(acct.residual_carry),
        )

    def tier_sets(self, entity_id: int) -> list[TierSet]:
        try:
            return load_tier_sets(self.s, entity_id)
        except SQLAlchemyError as e:
            self.s.rollback()
            raise TierSourceUnavailable(f"tier_sets_unreadable_for_entity_{entity_id}") from e

    def find_record(self, account_id: int, day: date) -> RecordState | None:
        row = self.s.execute(
            select(AccrualRecord).where(AccrualRecord.account_id == account_id, AccrualRecord.run_date == day)
        ).scalar_one_or_none()
        if row is None:
            return None
        return RecordState(
            account_id=row.account_id,
            run_date=row.run_date,
            interest_posted=int(row.interest_posted),
            residual_after=int(row.residual_after),
        )

    def commit_day(self, state: AccountState, day: date, posted: int, carry_after: int) -> bool:
        s = self.s
        try:
            if posted:
                post_interest(s, state.account_id, posted, interest_description(day), day)
            s.add(
                AccrualRecord(
                    account_id=state.account_id,
                    run_date=day,
                    interest_posted=posted,
                    residual_after=carry_after,
                )
            )
            s.execute(
                update(Account)
                .where(Account.id == state.account_id)
                .values(as_of=day, residual_carry=carry_after)
            )
            s.commit()
        except IntegrityError as e:
            s.rollback()
            # Only a record already present for this day means "done";
            # FK, CHECK or NOT NULL failures leave the day to be retried.
            if self.find_record(state.account_id, day) is not None:
                return False
            raise PostingError(f"posting_failed_for_account_{state.account_id}_{day.isoformat()}") from e
        except SQLAlchemyError as e:
            s.rollback()
            raise PostingError(f"posting_failed_for_account_{state.account_id}_{day.isoformat()}") from e
        return True


@dataclass
class _MemAccount:
    entity_id: int
    balance: int
    as_of: date
    residual_carry: int = 0


class MemoryAccrualStore:
    """
    In-process store with the same uniqueness and all-or-nothing commit
    semantics as the database. Used for demo mode and as a test double.

    `poster` is called for every non-zero posting before anything is
    recorded; raising from it leaves the day uncommitted.
    """

    def __init__(self, poster: Callable[[int, int, str, date], None] | None = None):
        self._lock = threading.Lock()
        self._accounts: dict[int, _MemAccount] = {}
        self._tier_sets: dict[int, list[TierSet]] = {}
        self._records: dict[tuple[int, date], RecordState] = {}
        self.postings: list[tuple[int, int, str, date]] = []
        self.poster = poster

    def add_account(self, account_id: int, entity_id: int, balance: int, as_of: date, residual_carry: int = 0) -> None:
        with self._lock:
            self._accounts[account_id] = _MemAccount(entity_id, balance, as_of, residual_carry)

    def add_tier_set(self, entity_id: int, tier_set: TierSet) -> None:
        with self._lock:
            sets = [ts for ts in self._tier_sets.get(entity_id, []) if ts.effective_from != tier_set.effective_from]
            sets.append(tier_set)
            sets.sort(key=lambda ts: ts.effective_from)
            self._tier_sets[entity_id] = sets

    def set_tier_sets(self, entity_id: int, tier_sets: Sequence[TierSet]) -> None:
        with self._lock:
            self._tier_sets[entity_id] = sorted(tier_sets, key=lambda ts: ts.effective_from)

    def records(self, account_id: int) -> list[RecordState]:
        with self._lock:
            return sorted((r for (aid, _), r in self._records.items() if aid == account_id), key=lambda r: r.run_date)

    def account_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._accounts)

    def account_state(self, account_id: int) -> AccountState:
        with self._lock:
            a = self._accounts[account_id]
            return AccountState(account_id, a.entity_id, a.balance, a.as_of, a.residual_carry)

    def tier_sets(self, entity_id: int) -> list[TierSet]:
        with self._lock:
            return list(self._tier_sets.get(entity_id, []))

    def find_record(self, account_id: int, day: date) -> RecordState | None:
        with self._lock:
            return self._records.get((account_id, day))

    def commit_day(self, state: AccountState, day: date, posted: int, carry_after: int) -> bool:
        key = (state.account_id, day)
        with self._lock:
            if key in self._records:
                return False

            description = interest_description(day)
            if posted:
                if self.poster is not None:
                    try:
                        self.poster(state.account_id, posted, description, day)
                    except Exception as e:
                        raise PostingError(
                            f"posting_failed_for_account_{state.account_id}_{day.isoformat()}"
                        ) from e
                self.postings.append((state.account_id, posted, description, day))

            a = self._accounts[state.account_id]
            self._accounts[state.account_id] = replace(
                a,
                balance=a.balance + posted,
                as_of=max(a.as_of, day),
                residual_carry=carry_after,
            )
            self._records[key] = RecordState(state.account_id, day, posted, carry_after)
        return True


def open_store(s: Session | None = None) -> AccrualStore:
    if settings.data_source == "memory":
        from tickerbank.seed import demo_store

        return demo_store()
    if s is None:
        raise ValueError("session_required_for_database_store")
    return SqlAccrualStore(s)

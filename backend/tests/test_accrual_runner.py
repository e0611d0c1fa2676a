import logging
from datetime import date, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import sessionmaker

import tickerbank.services.accrual_store as store_mod
from conftest import add_tier_set, mk_account, mk_family
from tickerbank.models import Account, AccrualRecord, Transaction
from tickerbank.services.accrual import AccrualRunner
from tickerbank.services.accrual_store import (
    MemoryAccrualStore,
    SqlAccrualStore,
    TierSourceUnavailable,
)
from tickerbank.services.interest import Tier, TierSet

FLAT_200 = [Tier(0, None, 200)]
START = date(2026, 1, 1)


def _records(session, account_id):
    return (
        session.execute(
            select(AccrualRecord).where(AccrualRecord.account_id == account_id).order_by(AccrualRecord.run_date)
        )
        .scalars()
        .all()
    )


def _account(session, account_id) -> Account:
    session.expire_all()
    return session.execute(select(Account).where(Account.id == account_id)).scalar_one()


def test_catch_up_walks_each_missed_day(session):
    fam = mk_family(session)
    add_tier_set(session, fam.id, START, FLAT_200)
    acct = mk_account(session, fam.id, 10_000, START)

    result = AccrualRunner(SqlAccrualStore(session)).run_account(acct.id, date(2026, 1, 3))

    assert result.status == "advanced"
    assert result.days_accrued == 2
    assert result.interest_posted == 1
    assert result.as_of == date(2026, 1, 3)

    rows = _records(session, acct.id)
    assert [(r.run_date, r.interest_posted, r.residual_after) for r in rows] == [
        (date(2026, 1, 2), 0, 547_945),
        (date(2026, 1, 3), 1, 95_890),
    ]

    a = _account(session, acct.id)
    assert a.current_balance == 10_001
    assert a.as_of == date(2026, 1, 3)
    assert a.residual_carry == 95_890

    txs = session.execute(select(Transaction).where(Transaction.account_id == acct.id)).scalars().all()
    assert [(t.date, t.kind, t.amount) for t in txs] == [(date(2026, 1, 3), "interest", 1)]


def test_next_day_uses_balance_after_previous_posting(session):
    fam = mk_family(session)
    add_tier_set(session, fam.id, START, FLAT_200)
    acct = mk_account(session, fam.id, 10_000, START)
    runner = AccrualRunner(SqlAccrualStore(session))

    runner.run_account(acct.id, date(2026, 1, 3))
    runner.run_account(acct.id, date(2026, 1, 4))

    # 10001 cents at 2% = 548_000 micros exactly
    last = _records(session, acct.id)[-1]
    assert last.run_date == date(2026, 1, 4)
    assert last.residual_after == 95_890 + 548_000


def test_rerun_for_same_range_changes_nothing(session):
    fam = mk_family(session)
    add_tier_set(session, fam.id, START, FLAT_200)
    acct = mk_account(session, fam.id, 2_500_000, START)
    runner = AccrualRunner(SqlAccrualStore(session))

    runner.run_account(acct.id, date(2026, 1, 10))
    before = _account(session, acct.id)
    snapshot = (before.current_balance, before.as_of, before.residual_carry)

    again = runner.run_account(acct.id, date(2026, 1, 10))

    assert again.status == "up_to_date"
    assert again.days_accrued == 0
    after = _account(session, acct.id)
    assert (after.current_balance, after.as_of, after.residual_carry) == snapshot
    assert len(_records(session, acct.id)) == 9


def test_no_records_without_elapsed_days(session):
    fam = mk_family(session)
    add_tier_set(session, fam.id, START, FLAT_200)
    acct = mk_account(session, fam.id, 10_000, date(2026, 1, 5))

    result = AccrualRunner(SqlAccrualStore(session)).run_account(acct.id, date(2026, 1, 5))

    assert result.status == "up_to_date"
    assert _records(session, acct.id) == []


def test_leap_day_is_accrued_like_any_other(session):
    fam = mk_family(session)
    add_tier_set(session, fam.id, date(2028, 1, 1), FLAT_200)
    acct = mk_account(session, fam.id, 100, date(2028, 2, 27))

    AccrualRunner(SqlAccrualStore(session)).run_account(acct.id, date(2028, 3, 1))

    rows = _records(session, acct.id)
    assert [r.run_date for r in rows] == [date(2028, 2, 28), date(2028, 2, 29), date(2028, 3, 1)]
    assert rows[-1].residual_after == 3 * 5_479


def test_tier_change_mid_range_applies_from_effective_date(session):
    fam = mk_family(session)
    add_tier_set(session, fam.id, START, [Tier(0, None, 100)])
    add_tier_set(session, fam.id, date(2026, 1, 3), [Tier(0, None, 0)])
    acct = mk_account(session, fam.id, 10_000, START)

    AccrualRunner(SqlAccrualStore(session)).run_account(acct.id, date(2026, 1, 4))

    assert [r.residual_after for r in _records(session, acct.id)] == [273_972, 273_972, 273_972]


def test_existing_record_is_skipped_and_its_carry_adopted(session):
    fam = mk_family(session)
    add_tier_set(session, fam.id, START, FLAT_200)
    acct = mk_account(session, fam.id, 10_000, START)

    # Another runner recorded 01-02 but has not advanced as_of yet.
    session.add(AccrualRecord(account_id=acct.id, run_date=date(2026, 1, 2), interest_posted=0, residual_after=500_000))
    session.commit()

    result = AccrualRunner(SqlAccrualStore(session)).run_account(acct.id, date(2026, 1, 3))

    assert result.days_skipped == 1
    assert result.days_accrued == 1
    assert len(_records(session, acct.id)) == 2
    assert _account(session, acct.id).residual_carry == (500_000 + 547_945) - 1_000_000


def test_commit_day_reports_duplicate_day_without_changes(session):
    fam = mk_family(session)
    acct = mk_account(session, fam.id, 10_000, START)
    store = SqlAccrualStore(session)
    state = store.account_state(acct.id)

    assert store.commit_day(state, date(2026, 1, 2), 5, 10) is True
    assert store.commit_day(state, date(2026, 1, 2), 5, 10) is False

    a = _account(session, acct.id)
    assert a.current_balance == 10_005
    assert session.execute(select(func.count(Transaction.id))).scalar_one() == 1


def test_posting_failure_leaves_day_uncommitted_and_retries(session, monkeypatch, caplog):
    fam = mk_family(session)
    add_tier_set(session, fam.id, START, FLAT_200)
    acct = mk_account(session, fam.id, 10_000_000, START)

    def _boom(*args, **kwargs):
        raise OperationalError("INSERT INTO transactions", {}, Exception("ledger down"))

    monkeypatch.setattr(store_mod, "post_interest", _boom)
    caplog.set_level(logging.WARNING)

    result = AccrualRunner(SqlAccrualStore(session)).run_account(acct.id, date(2026, 1, 3))

    assert result.status == "retry"
    assert _records(session, acct.id) == []
    a = _account(session, acct.id)
    assert (a.current_balance, a.as_of, a.residual_carry) == (10_000_000, START, 0)
    assert any(r.getMessage() == "posting_failed" for r in caplog.records)

    monkeypatch.undo()
    retried = AccrualRunner(SqlAccrualStore(session)).run_account(acct.id, date(2026, 1, 3))
    assert retried.days_accrued == 2
    assert _account(session, acct.id).as_of == date(2026, 1, 3)


def test_unreadable_tier_source_accrues_zero_and_warns(session, monkeypatch, caplog):
    fam = mk_family(session)
    add_tier_set(session, fam.id, START, FLAT_200)
    acct = mk_account(session, fam.id, 10_000, START, carry=400_000)

    def _down(*args, **kwargs):
        raise OperationalError("SELECT tier_sets", {}, Exception("timeout"))

    monkeypatch.setattr(store_mod, "load_tier_sets", _down)
    caplog.set_level(logging.WARNING)

    result = AccrualRunner(SqlAccrualStore(session)).run_account(acct.id, date(2026, 1, 2))

    assert result.days_accrued == 1
    assert result.interest_posted == 0
    assert [(r.interest_posted, r.residual_after) for r in _records(session, acct.id)] == [(0, 400_000)]
    messages = [r.getMessage() for r in caplog.records]
    assert "tier_source_unavailable" in messages
    assert "tier_source_unavailable_zero_interest" in messages


def test_tier_source_error_is_wrapped(session, monkeypatch):
    def _down(*args, **kwargs):
        raise OperationalError("SELECT tier_sets", {}, Exception("timeout"))

    monkeypatch.setattr(store_mod, "load_tier_sets", _down)
    with pytest.raises(TierSourceUnavailable):
        SqlAccrualStore(session).tier_sets(1)


def test_malformed_tiers_halt_only_that_account(session, caplog):
    good = mk_family(session)
    bad = mk_family(session)
    add_tier_set(session, good.id, START, FLAT_200)
    # gap between 100 and 200, written directly past validation
    add_tier_set(session, bad.id, START, [Tier(0, 100, 200), Tier(200, None, 300)])
    ok_acct = mk_account(session, good.id, 10_000, START)
    bad_acct = mk_account(session, bad.id, 10_000, START)
    caplog.set_level(logging.ERROR)

    summary = AccrualRunner(SqlAccrualStore(session)).run_all(date(2026, 1, 5))

    by_id = {r.account_id: r for r in summary.results}
    assert by_id[ok_acct.id].status == "advanced"
    assert by_id[bad_acct.id].status == "halted"
    assert "tiers_not_contiguous" in by_id[bad_acct.id].message
    assert summary.accounts_processed == 1
    assert summary.accounts_halted == 1

    assert len(_records(session, ok_acct.id)) == 4
    assert _records(session, bad_acct.id) == []
    assert _account(session, bad_acct.id).as_of == START
    assert any(r.getMessage() == "accrual_invariant_violation" for r in caplog.records)


def test_memory_store_matches_database_store(session):
    tiers = [Tier(0, 10_000, 200), Tier(10_000, 50_000, 300), Tier(50_000, None, 400)]
    through = START + timedelta(days=120)

    fam = mk_family(session)
    add_tier_set(session, fam.id, START, tiers)
    acct = mk_account(session, fam.id, 60_000, START)
    AccrualRunner(SqlAccrualStore(session)).run_account(acct.id, through)

    mem = MemoryAccrualStore()
    mem.add_tier_set(7, TierSet(effective_from=START, tiers=tuple(tiers)))
    mem.add_account(1, entity_id=7, balance=60_000, as_of=START)
    AccrualRunner(mem).run_account(1, through)

    db_rows = [(r.run_date, r.interest_posted, r.residual_after) for r in _records(session, acct.id)]
    mem_rows = [(r.run_date, r.interest_posted, r.residual_after) for r in mem.records(1)]
    assert db_rows == mem_rows

    state = mem.account_state(1)
    a = _account(session, acct.id)
    assert (state.balance, state.as_of, state.residual_carry) == (a.current_balance, a.as_of, a.residual_carry)


def test_memory_store_poster_failure_is_retryable():
    calls = []

    def _poster(account_id, amount, description, day):
        calls.append(day)
        if len(calls) == 1:
            raise ConnectionError("ledger unavailable")

    mem = MemoryAccrualStore(poster=_poster)
    mem.add_tier_set(1, TierSet(effective_from=START, tiers=(Tier(0, None, 200),)))
    mem.add_account(1, entity_id=1, balance=10_000_000, as_of=START)
    runner = AccrualRunner(mem)

    first = runner.run_account(1, date(2026, 1, 2))
    assert first.status == "retry"
    assert mem.records(1) == []
    assert mem.account_state(1).balance == 10_000_000

    second = runner.run_account(1, date(2026, 1, 2))
    assert second.status == "advanced"
    assert mem.postings == [(1, 547, "Interest accrued for 2026-01-02", date(2026, 1, 2))]
    assert mem.account_state(1).residual_carry == 945_205


def test_run_all_totals(session):
    fam = mk_family(session)
    add_tier_set(session, fam.id, START, FLAT_200)
    mk_account(session, fam.id, 10_000_000, START)
    mk_account(session, fam.id, 10_000_000, START)

    summary = AccrualRunner(SqlAccrualStore(session)).run_all(date(2026, 1, 2))

    assert summary.accounts_processed == 2
    assert summary.total_interest_posted == 2 * 547


def test_integrity_error_other_than_duplicate_day_is_retried(session, monkeypatch):
    fam = mk_family(session)
    add_tier_set(session, fam.id, START, FLAT_200)
    acct = mk_account(session, fam.id, 10_000_000, START)
    real_post = store_mod.post_interest

    def _fk_failure(s, account_id, amount, description, day):
        if day == date(2026, 1, 2):
            raise IntegrityError("INSERT INTO transactions", {}, Exception("foreign key violation"))
        return real_post(s, account_id, amount, description, day)

    monkeypatch.setattr(store_mod, "post_interest", _fk_failure)

    result = AccrualRunner(SqlAccrualStore(session)).run_account(acct.id, date(2026, 1, 3))

    assert result.status == "retry"
    assert result.days_skipped == 0
    assert _records(session, acct.id) == []
    a = _account(session, acct.id)
    assert (a.current_balance, a.as_of, a.residual_carry) == (10_000_000, START, 0)

    monkeypatch.undo()
    retried = AccrualRunner(SqlAccrualStore(session)).run_account(acct.id, date(2026, 1, 3))
    assert retried.days_accrued == 2
    assert [r.run_date for r in _records(session, acct.id)] == [date(2026, 1, 2), date(2026, 1, 3)]


class _RivalWinsDay(SqlAccrualStore):
    """Commits another runner's result for `day` just before ours lands."""

    def __init__(self, s, day, posted, carry_after):
        super().__init__(s)
        self.rival = (day, posted, carry_after)
        self.rival_done = False

    def commit_day(self, state, day, posted, carry_after):
        rival_day, rival_posted, rival_carry = self.rival
        if day == rival_day and not self.rival_done:
            self.rival_done = True
            assert super().commit_day(state, day, rival_posted, rival_carry) is True
        return super().commit_day(state, day, posted, carry_after)


def test_lost_race_posts_once_and_adopts_winning_carry(session):
    fam = mk_family(session)
    add_tier_set(session, fam.id, START, FLAT_200)
    acct = mk_account(session, fam.id, 10_000_000, START)
    store = _RivalWinsDay(session, date(2026, 1, 2), 547, 100_000)

    result = AccrualRunner(store).run_account(acct.id, date(2026, 1, 3))

    assert result.status == "advanced"
    assert result.days_skipped == 1
    assert result.days_accrued == 1

    txs = session.execute(
        select(Transaction).where(Transaction.account_id == acct.id).order_by(Transaction.date)
    ).scalars().all()
    assert [(t.date, t.amount) for t in txs] == [(date(2026, 1, 2), 547), (date(2026, 1, 3), 548)]

    # 01-03 starts from the winner's carry: 547_975_178 + 100_000 micros
    rows = _records(session, acct.id)
    assert [(r.run_date, r.residual_after) for r in rows] == [
        (date(2026, 1, 2), 100_000),
        (date(2026, 1, 3), 75_178),
    ]
    a = _account(session, acct.id)
    assert (a.current_balance, a.residual_carry) == (10_001_095, 75_178)


def test_two_runners_over_same_range_post_once(engine):
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    with Session() as s1, Session() as s2:
        fam = mk_family(s1)
        add_tier_set(s1, fam.id, START, FLAT_200)
        acct = mk_account(s1, fam.id, 10_000_000, START)

        first = AccrualRunner(SqlAccrualStore(s1)).run_account(acct.id, date(2026, 1, 3))
        second = AccrualRunner(SqlAccrualStore(s2)).run_account(acct.id, date(2026, 1, 3))

        assert first.days_accrued == 2
        assert second.status == "up_to_date"
        assert s2.execute(select(func.count(Transaction.id))).scalar_one() == 2


class _RejectsWithoutRecord(MemoryAccrualStore):
    def commit_day(self, state, day, posted, carry_after):
        return False


def test_rejected_commit_without_record_stops_for_retry(caplog):
    mem = _RejectsWithoutRecord()
    mem.add_tier_set(1, TierSet(effective_from=START, tiers=(Tier(0, None, 200),)))
    mem.add_account(1, entity_id=1, balance=10_000, as_of=START)
    caplog.set_level(logging.WARNING)

    result = AccrualRunner(mem).run_account(1, date(2026, 1, 5))

    assert result.status == "retry"
    assert result.days_skipped == 0
    assert result.as_of == START
    assert mem.account_state(1).as_of == START
    assert any(r.getMessage() == "commit_rejected_without_record" for r in caplog.records)

from __future__ import annotations

from datetime import date

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from tickerbank.models.account import Account
from tickerbank.models.transaction import Transaction


def post_interest(s: Session, account_id: int, amount: int, description: str, day: date) -> Transaction:
    """
    Add an interest posting and credit the account balance.

    Does not commit: the caller owns the transaction so the posting can be
    committed together with its accrual record.
    """
    if amount <= 0:
        raise ValueError("interest_amount_must_be_positive")

    tx = Transaction(account_id=account_id, date=day, kind="interest", amount=amount, description=description)
    s.add(tx)
    s.execute(
        update(Account)
        .where(Account.id == account_id)
        .values(current_balance=Account.current_balance + amount)
    )
    return tx


def list_transactions(s: Session, account_id: int, start: date | None = None, end: date | None = None):
    q = select(Transaction).where(Transaction.account_id == account_id)
    if start is not None:
        q = q.where(Transaction.date >= start)
    if end is not None:
        q = q.where(Transaction.date <= end)
    return s.execute(q.order_by(Transaction.date.asc(), Transaction.id.asc())).scalars().all()

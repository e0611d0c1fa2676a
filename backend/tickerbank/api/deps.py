from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from tickerbank.db.session import SessionLocal
from tickerbank.models.account import Account
from tickerbank.models.family import Family

def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()

def require_family(s: Session, family_id: int) -> Family:
    f = s.execute(select(Family).where(Family.id == family_id)).scalar_one_or_none()
    if f is None:
        raise HTTPException(status_code=404, detail="family_not_found")
    return f

def require_account(s: Session, account_id: int) -> Account:
    a = s.execute(select(Account).where(Account.id == account_id)).scalar_one_or_none()
    if a is None:
        raise HTTPException(status_code=404, detail="account_not_found")
    return a

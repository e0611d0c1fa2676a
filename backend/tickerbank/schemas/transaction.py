from pydantic import BaseModel
from datetime import date, datetime

class TransactionOut(BaseModel):
    id: int
    account_id: int
    date: date
    kind: str
    amount: int
    description: str | None = None
    created_at: datetime

    class Config:
        from_attributes = True

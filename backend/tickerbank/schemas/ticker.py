from pydantic import BaseModel
from datetime import date
from decimal import Decimal

from tickerbank.schemas.tier import TierOut

class TickerOut(BaseModel):
    account_id: int
    balance: int
    timestamp_ms: int
    as_of: date
    tiers: list[TierOut]
    per_second: Decimal

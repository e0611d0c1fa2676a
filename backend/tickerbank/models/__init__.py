from tickerbank.models.family import Family
from tickerbank.models.tier import TierSetRow, TierRow
from tickerbank.models.account import Account
from tickerbank.models.transaction import Transaction
from tickerbank.models.accrual import AccrualRecord, AccrualRun

__all__ = [
    "Family",
    "TierSetRow",
    "TierRow",
    "Account",
    "Transaction",
    "AccrualRecord",
    "AccrualRun",
]

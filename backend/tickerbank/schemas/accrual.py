from __future__ import annotations

from pydantic import BaseModel
from datetime import date, datetime
from typing import Literal, Optional


class AccrualStartIn(BaseModel):
    through: Optional[date] = None


class AccrualStatusOut(BaseModel):
    status: Literal["idle", "running", "done", "error"] = "idle"
    through: Optional[str] = None
    total_accounts: int = 0
    processed_accounts: int = 0
    halted_accounts: int = 0
    retry_accounts: int = 0
    interest_posted: int = 0
    started_at: Optional[str] = None
    updated_at: Optional[str] = None
    message: Optional[str] = None


class AccrualRunOut(BaseModel):
    id: int
    through_date: date
    status: str
    accounts_processed: int
    accounts_halted: int
    total_interest_posted: int
    message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True

from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime

class AccountCreate(BaseModel):
    name: str
    opening_balance: int = Field(default=0, ge=0)
    as_of: date | None = None

    @field_validator("name")
    @classmethod
    def name_trim(cls, v: str):
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v

class AccountOut(BaseModel):
    id: int
    family_id: int
    name: str
    current_balance: int
    as_of: date
    residual_carry: int
    created_at: datetime

    class Config:
        from_attributes = True

class AccrualRecordOut(BaseModel):
    account_id: int
    run_date: date
    interest_posted: int
    residual_after: int

    class Config:
        from_attributes = True

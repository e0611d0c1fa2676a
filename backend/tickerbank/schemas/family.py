from pydantic import BaseModel, field_validator
from datetime import datetime

class FamilyCreate(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def name_trim(cls, v: str):
        v = (v or "").strip()
        if not v:
            raise ValueError("name is required")
        return v

class FamilyOut(BaseModel):
    id: int
    name: str
    created_at: datetime

    class Config:
        from_attributes = True

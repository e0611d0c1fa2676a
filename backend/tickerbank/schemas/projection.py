from pydantic import BaseModel, Field
from datetime import date
from typing import Literal

class ProjectionPointOut(BaseModel):
    date: date
    balance: int

class ProjectionOut(BaseModel):
    account_id: int
    baseline: list[ProjectionPointOut]

class WhatIfIn(BaseModel):
    type: Literal["deposit", "withdrawal"]
    amount: int = Field(gt=0)

class SimulationIn(BaseModel):
    what_if: WhatIfIn
    horizon_days: int | None = Field(default=None, ge=1, le=3650)

class SimulationOut(BaseModel):
    account_id: int
    baseline: list[ProjectionPointOut]
    simulated: list[ProjectionPointOut]
    deltas: dict[str, int]

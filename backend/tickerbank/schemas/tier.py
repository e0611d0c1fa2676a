from pydantic import BaseModel, Field
from datetime import date

from tickerbank.services.interest import Tier, TierSet

class TierIn(BaseModel):
    lower_bound: int = Field(ge=0)
    upper_bound: int | None = None
    annual_rate_bps: int = Field(ge=0)

    def to_tier(self) -> Tier:
        return Tier(lower_bound=self.lower_bound, upper_bound=self.upper_bound, annual_rate_bps=self.annual_rate_bps)

class TierOut(BaseModel):
    lower_bound: int
    upper_bound: int | None
    annual_rate_bps: int

    @classmethod
    def from_tier(cls, t: Tier) -> "TierOut":
        return cls(lower_bound=t.lower_bound, upper_bound=t.upper_bound, annual_rate_bps=t.annual_rate_bps)

class TierSetCreate(BaseModel):
    effective_from: date
    tiers: list[TierIn]

class TierSetReplace(BaseModel):
    tiers: list[TierIn]

class TierSetOut(BaseModel):
    effective_from: date
    tiers: list[TierOut]

    @classmethod
    def from_tier_set(cls, ts: TierSet) -> "TierSetOut":
        return cls(effective_from=ts.effective_from, tiers=[TierOut.from_tier(t) for t in ts.tiers])

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select
from tickerbank.api.deps import db
from tickerbank.schemas.family import FamilyCreate, FamilyOut
from tickerbank.models.family import Family

router = APIRouter(prefix="/families", tags=["families"])

@router.get("", response_model=list[FamilyOut])
def list_families(s: Session = Depends(db)):
    return s.execute(select(Family).order_by(Family.id.asc())).scalars().all()

@router.post("", response_model=FamilyOut)
def create_family(body: FamilyCreate, s: Session = Depends(db)):
    existing = s.execute(select(Family).where(Family.name == body.name)).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=409, detail="family_name_taken")

    f = Family(name=body.name)
    s.add(f)
    s.commit()
    s.refresh(f)
    return f

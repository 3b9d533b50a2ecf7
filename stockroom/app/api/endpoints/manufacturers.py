from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockroom.app.api.deps import get_db
from stockroom.app.schemas.manufacturer_order import ManufacturerCreate, ManufacturerRead
from stockroom.services import procurement

router = APIRouter(prefix="/manufacturers")


@router.get("", response_model=list[ManufacturerRead])
def list_manufacturers(db: Session = Depends(get_db)):
    return procurement.list_manufacturers(db)


@router.post("", response_model=ManufacturerRead, status_code=201)
def create_manufacturer(payload: ManufacturerCreate, db: Session = Depends(get_db)):
    m = procurement.create_manufacturer(db, payload)
    db.commit()
    db.refresh(m)
    return m

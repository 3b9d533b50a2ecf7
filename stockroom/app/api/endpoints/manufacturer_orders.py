from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stockroom.app.api.deps import get_db, get_tracking
from stockroom.app.db.models.core_types import OrderStatus
from stockroom.app.db.models.models_v1 import ManufacturerOrder
from stockroom.app.schemas.manufacturer_order import ApplyResult, OrderCreate, OrderRead, OrderUpdate
from stockroom.services import procurement
from stockroom.services.tracking import TrackingService

router = APIRouter(prefix="/manufacturer-orders")


def _read(order: ManufacturerOrder, tracking: TrackingService | None) -> OrderRead:
    out = OrderRead.model_validate(order)
    return out.model_copy(update={"display_status": procurement.display_status(order, tracking)})


@router.get("", response_model=list[OrderRead])
def list_orders(
    bucket: Literal["incoming", "past"] | None = None,
    status: OrderStatus | None = None,
    manufacturer_id: int | None = None,
    with_tracking: bool = False,
    db: Session = Depends(get_db),
    tracking: TrackingService = Depends(get_tracking),
):
    """
    Orders with their items.
    - bucket=incoming|past is derived from the stored status only
    - display_status uses live tracking only when with_tracking=true
    """
    rows = procurement.list_orders(db, bucket=bucket, status=status, manufacturer_id=manufacturer_id)
    return [_read(o, tracking if with_tracking else None) for o in rows]


@router.post("", response_model=OrderRead, status_code=201)
def create_order(payload: OrderCreate, db: Session = Depends(get_db)):
    order = procurement.create_order(db, payload)
    db.commit()
    return _read(procurement.get_order(db, order.id), None)


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    tracking: TrackingService = Depends(get_tracking),
):
    return _read(procurement.get_order(db, order_id), tracking)


@router.patch("/{order_id}", response_model=OrderRead)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    db: Session = Depends(get_db),
):
    order = procurement.update_order(db, order_id, payload)
    db.commit()
    return _read(procurement.get_order(db, order.id), None)


@router.post("/{order_id}/apply-to-inventory", response_model=ApplyResult)
def apply_to_inventory(
    order_id: int,
    db: Session = Depends(get_db),
    tracking: TrackingService = Depends(get_tracking),
):
    """
    Idempotent: credits the ledger once per order.
    Not received yet / already applied -> 200 with applied=false.
    """
    result = procurement.apply_to_inventory(db, order_id, tracking)
    if result.applied:
        db.commit()
    return result

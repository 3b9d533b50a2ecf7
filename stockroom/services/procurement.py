"""
Procurement service.

Manufacturer purchase orders: creation, updates, listing and the one-time
"apply to inventory" transition. No stock arithmetic lives here; every
quantity change goes through ``stockroom.services.inventory``.

Like the ledger, these functions flush and leave the commit to the caller.
"""

from __future__ import annotations

import time
from decimal import Decimal

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from stockroom.app.db.models.core_types import AdjustmentKind, DisplayStatus, OrderStatus
from stockroom.app.db.models.models_v1 import (
    Manufacturer,
    ManufacturerOrder,
    ManufacturerOrderItem,
    utcnow,
)
from stockroom.app.schemas.manufacturer_order import (
    AppliedItem,
    ApplyResult,
    ManufacturerCreate,
    OrderCreate,
    OrderUpdate,
)
from stockroom.services import inventory
from stockroom.services.errors import ConflictError, NotFoundError, ValidationError
from stockroom.services.order_status import TERMINAL_STATUSES, resolve_display_status, transition
from stockroom.services.tracking import TrackingService

logger = structlog.get_logger(__name__)

MSG_ALREADY_APPLIED = "Order quantities already applied to inventory."
MSG_NOT_RECEIVED = "Order has not been received yet."
MSG_NO_ITEMS = "No order items found."


# ---------- Manufacturers ----------
def list_manufacturers(db: Session) -> list[Manufacturer]:
    return list(db.execute(select(Manufacturer).order_by(Manufacturer.name)).scalars().all())


def create_manufacturer(db: Session, payload: ManufacturerCreate) -> Manufacturer:
    exists = db.execute(select(Manufacturer).where(Manufacturer.name == payload.name)).scalar_one_or_none()
    if exists:
        raise ConflictError("Manufacturer already exists")
    m = Manufacturer(**payload.model_dump())
    db.add(m)
    db.flush()
    return m


# ---------- Orders ----------
def get_order(db: Session, order_id: int) -> ManufacturerOrder:
    order = (
        db.execute(
            select(ManufacturerOrder)
            .where(ManufacturerOrder.id == order_id)
            .options(selectinload(ManufacturerOrder.items))
            .execution_options(populate_existing=True)
        )
        .scalars()
        .first()
    )
    if order is None:
        raise NotFoundError("Order not found")
    return order


def list_orders(
    db: Session,
    *,
    bucket: str | None = None,
    status: OrderStatus | None = None,
    manufacturer_id: int | None = None,
) -> list[ManufacturerOrder]:
    stmt = (
        select(ManufacturerOrder)
        .options(selectinload(ManufacturerOrder.items))
        .order_by(ManufacturerOrder.order_date.desc(), ManufacturerOrder.id.desc())
    )
    if manufacturer_id is not None:
        stmt = stmt.where(ManufacturerOrder.manufacturer_id == manufacturer_id)
    if status is not None:
        stmt = stmt.where(ManufacturerOrder.status == status)
    if bucket == "incoming":
        stmt = stmt.where(ManufacturerOrder.status.not_in(TERMINAL_STATUSES))
    elif bucket == "past":
        stmt = stmt.where(ManufacturerOrder.status.in_(TERMINAL_STATUSES))
    elif bucket is not None:
        raise ValidationError("bucket must be 'incoming' or 'past'")
    return list(db.execute(stmt).scalars().all())


def create_order(db: Session, payload: OrderCreate) -> ManufacturerOrder:
    if not db.get(Manufacturer, payload.manufacturer_id):
        raise ValidationError("Invalid manufacturer_id")

    order_number = payload.order_number or f"MO-{int(time.time() * 1000)}"
    exists = db.execute(
        select(ManufacturerOrder.id).where(ManufacturerOrder.order_number == order_number)
    ).scalar_one_or_none()
    if exists:
        raise ConflictError("Order number already exists")

    items = [
        ManufacturerOrderItem(
            sku=it.sku.strip(),
            product_name=it.product_name,
            quantity_ordered=it.quantity_ordered,
            quantity_received=0,
            unit_cost=it.unit_cost,
            total_cost=it.unit_cost * it.quantity_ordered,
        )
        for it in payload.items
    ]
    total = payload.total_amount
    if total is None:
        total = sum((i.total_cost for i in items), Decimal("0"))

    order = ManufacturerOrder(
        order_number=order_number,
        manufacturer_id=payload.manufacturer_id,
        status=OrderStatus.pending,
        expected_delivery=payload.expected_delivery,
        tracking_number=payload.tracking_number,
        tracking_url=payload.tracking_url,
        carrier=payload.carrier,
        total_amount=total,
        notes=payload.notes,
        items=items,
    )
    db.add(order)
    db.flush()
    logger.info("manufacturer_order_created", order_id=order.id, order_number=order_number, items=len(items))
    return order


def update_order(db: Session, order_id: int, payload: OrderUpdate) -> ManufacturerOrder:
    order = get_order(db, order_id)
    fields = payload.model_dump(exclude_unset=True, exclude={"status", "items"})

    if payload.status is not None and transition(order, payload.status):
        logger.info("manufacturer_order_status", order_id=order.id, status=payload.status.value)

    for name, value in fields.items():
        setattr(order, name, value)

    if payload.items:
        by_id = {i.id: i for i in order.items}
        for upd in payload.items:
            item = by_id.get(upd.id)
            if item is None:
                raise ValidationError(f"Item {upd.id} does not belong to order {order.order_number}")
            if upd.quantity_received > item.quantity_ordered:
                raise ValidationError(
                    f"quantity_received for {item.sku} cannot exceed quantity_ordered ({item.quantity_ordered})"
                )
            item.quantity_received = upd.quantity_received

    db.flush()
    return order


def display_status(order: ManufacturerOrder, tracking: TrackingService | None) -> DisplayStatus:
    """Resolve with a best-effort snapshot; a missing or failing carrier falls back."""
    snapshot = None
    if tracking is not None:
        snapshot = tracking.try_fetch_snapshot(order.tracking_number, order.carrier, order.tracking_url)
    return resolve_display_status(order, snapshot)


def apply_to_inventory(db: Session, order_id: int, tracking: TrackingService | None) -> ApplyResult:
    """
    Credit the ledger with the order's quantities, once.

    The order row is claimed with a conditional UPDATE
    (``inventory_applied_at IS NULL``) before any ledger write, inside the
    caller's transaction. A concurrent second call blocks on that row and
    then matches nothing, so it reports ``applied=False``. Items whose SKU
    has no ledger row are skipped and reported.
    """
    order = get_order(db, order_id)

    if order.inventory_applied_at is not None:
        return ApplyResult(applied=False, message=MSG_ALREADY_APPLIED)

    if not order.items:
        return ApplyResult(applied=False, message=MSG_NO_ITEMS)

    status = display_status(order, tracking)
    if status != DisplayStatus.received:
        logger.info("inventory_apply_not_received", order_id=order.id, display_status=status.value)
        return ApplyResult(applied=False, message=f"{MSG_NOT_RECEIVED} (status: {status.value})")

    now = utcnow()
    claimed = db.execute(
        update(ManufacturerOrder)
        .where(ManufacturerOrder.id == order.id)
        .where(ManufacturerOrder.inventory_applied_at.is_(None))
        .where(ManufacturerOrder.status != OrderStatus.cancelled)
        .values(
            inventory_applied_at=now,
            status=OrderStatus.delivered,
            actual_delivery=func.coalesce(ManufacturerOrder.actual_delivery, now.date()),
        )
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 0:
        logger.info("inventory_apply_lost_race", order_id=order.id)
        return ApplyResult(applied=False, message=MSG_ALREADY_APPLIED)

    applied: list[AppliedItem] = []
    skipped: list[str] = []
    for item in order.items:
        if item.quantity_ordered <= 0:
            continue
        try:
            inventory.adjust(
                db,
                item.sku,
                item.quantity_ordered,
                kind=AdjustmentKind.receipt,
                reason=f"Manufacturer order {order.order_number}",
                manufacturer_order_id=order.id,
            )
        except NotFoundError:
            skipped.append(item.sku)
            continue
        applied.append(AppliedItem(sku=item.sku, quantity=item.quantity_ordered))

    db.flush()
    db.expire(order)

    if skipped:
        logger.warning("inventory_apply_skipped_skus", order_id=order_id, skus=skipped)
    logger.info("inventory_applied", order_id=order_id, items=len(applied))
    return ApplyResult(applied=True, applied_items=applied, skipped_skus=skipped)

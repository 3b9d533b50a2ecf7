"""
Manufacturer order lifecycle.

Stored status:   pending -> confirmed -> shipped -> delivered
                 any non-terminal state -> cancelled
Display status:  stored status overlaid with carrier tracking (ordered,
                 shipped, received, cancelled).

Stored status is moved by users or by tracking sync through
``transition``; this module never advances it on its own.
"""

from __future__ import annotations

from typing import Iterable

from stockroom.app.db.models.core_types import DisplayStatus, OrderStatus
from stockroom.app.db.models.models_v1 import ManufacturerOrder
from stockroom.app.schemas.tracking import TrackingSnapshot
from stockroom.services.errors import InvalidTransitionError

FORWARD_ORDER = [
    OrderStatus.pending,
    OrderStatus.confirmed,
    OrderStatus.shipped,
    OrderStatus.delivered,
]
TERMINAL_STATUSES = {OrderStatus.delivered, OrderStatus.cancelled}

CARRIER_RECEIVED = {"delivered"}
CARRIER_SHIPPED = {"in_transit", "out_for_delivery"}


def resolve_display_status(order: ManufacturerOrder, snapshot: TrackingSnapshot | None) -> DisplayStatus:
    """
    1. cancelled stays cancelled whatever the carrier says
    2. a carrier status overrides the stored one
    3. tracking number but no carrier status yet: stored "delivered" is not
       trusted, only "shipped" is
    4. no tracking number (freight, manual carriers): stored status as is
    """
    if order.status == OrderStatus.cancelled:
        return DisplayStatus.cancelled

    carrier_status = (snapshot.status or "").strip().lower() if snapshot is not None else ""
    if carrier_status:
        if carrier_status in CARRIER_RECEIVED:
            return DisplayStatus.received
        if carrier_status in CARRIER_SHIPPED:
            return DisplayStatus.shipped
        return DisplayStatus.ordered

    if (order.tracking_number or "").strip():
        return DisplayStatus.shipped if order.status == OrderStatus.shipped else DisplayStatus.ordered

    if order.status == OrderStatus.delivered:
        return DisplayStatus.received
    if order.status == OrderStatus.shipped:
        return DisplayStatus.shipped
    return DisplayStatus.ordered


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    if current == target:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if target == OrderStatus.cancelled:
        return True
    return FORWARD_ORDER.index(target) > FORWARD_ORDER.index(current)


def transition(order: ManufacturerOrder, target: OrderStatus) -> bool:
    """Move the stored status. Returns False when already there."""
    current = OrderStatus(order.status)
    if not can_transition(current, target):
        raise InvalidTransitionError(f"Cannot move order {order.order_number} from {current.value} to {target.value}")
    if current == target:
        return False
    order.status = target
    return True


def is_incoming(order: ManufacturerOrder) -> bool:
    return order.status not in TERMINAL_STATUSES


def split_incoming_past(
    orders: Iterable[ManufacturerOrder],
) -> tuple[list[ManufacturerOrder], list[ManufacturerOrder]]:
    incoming, past = [], []
    for o in orders:
        (incoming if is_incoming(o) else past).append(o)
    return incoming, past

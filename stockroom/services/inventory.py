"""
Stock ledger.

The ``inventory`` table holds the authoritative on-hand count per local SKU.
Quantities move only through ``adjust`` (signed delta, applied as one SQL
increment) or the explicitly labeled ``overwrite``. Every mutation leaves a
``StockAdjustment`` row in the same transaction.

Functions here flush but never commit: the caller owns the transaction.
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from stockroom.app.config import get_settings
from stockroom.app.db.models.core_types import AdjustmentKind
from stockroom.app.db.models.models_v1 import StockAdjustment, StockLedgerEntry
from stockroom.app.schemas.stock_ledger import StockAlert
from stockroom.services import alerts
from stockroom.services.errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)

logger = structlog.get_logger(__name__)


def _require_int(value, field: str) -> int:
    # bool is an int subclass; a JSON true is not a quantity
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer")
    return value


def _load_entry(db: Session, sku: str) -> StockLedgerEntry | None:
    return (
        db.execute(
            select(StockLedgerEntry)
            .where(StockLedgerEntry.sku == sku)
            .execution_options(populate_existing=True)
        )
        .scalars()
        .first()
    )


def get_entry(db: Session, sku: str) -> StockLedgerEntry:
    entry = _load_entry(db, sku)
    if entry is None:
        raise NotFoundError(f"Inventory record not found for SKU {sku}")
    return entry


def list_entries(db: Session, sku: str | None = None) -> list[StockLedgerEntry]:
    stmt = select(StockLedgerEntry).order_by(StockLedgerEntry.sku)
    if sku:
        stmt = stmt.where(StockLedgerEntry.sku == sku)
    return list(db.execute(stmt).scalars().all())


def find_adjustment(db: Session, idempotency_key: str) -> StockAdjustment | None:
    return (
        db.execute(select(StockAdjustment).where(StockAdjustment.idempotency_key == idempotency_key))
        .scalars()
        .first()
    )


def register(
    db: Session,
    *,
    sku: str,
    name: str,
    price: Decimal | None = None,
    quantity: int = 0,
    min_stock: int = 0,
    location: str | None = None,
    allow_negative: bool | None = None,
) -> StockLedgerEntry:
    """Create the ledger row for a new SKU. Adjustments require it to exist."""
    sku = (sku or "").strip()
    if not sku:
        raise ValidationError("SKU is required")
    if allow_negative is None:
        allow_negative = get_settings().allow_negative_stock
    if _require_int(quantity, "quantity") < 0 and not allow_negative:
        raise ValidationError("quantity must be >= 0")
    if _require_int(min_stock, "min_stock") < 0:
        raise ValidationError("min_stock must be >= 0")

    if _load_entry(db, sku) is not None:
        raise ConflictError(f"SKU {sku} already exists")

    entry = StockLedgerEntry(
        sku=sku,
        name=name,
        price=price,
        quantity=quantity,
        min_stock=min_stock,
        location=location,
    )
    db.add(entry)
    db.flush()
    alerts.refresh_stock_alerts(db, [entry])
    logger.info("ledger_sku_registered", sku=sku, quantity=quantity)
    return entry


def adjust(
    db: Session,
    sku: str,
    delta: int,
    *,
    reason: str | None = None,
    idempotency_key: str | None = None,
    kind: AdjustmentKind = AdjustmentKind.adjustment,
    manufacturer_order_id: int | None = None,
    allow_negative: bool | None = None,
) -> StockLedgerEntry:
    """
    Apply a signed delta to the on-hand quantity of ``sku``.

    The increment runs as ``UPDATE inventory SET quantity = quantity + :delta``
    so concurrent adjustments on the same SKU serialize in the database and
    none is lost. When negative stock is disallowed the floor check is part
    of the same statement.

    A replayed ``idempotency_key`` returns the current entry unchanged.
    """
    _require_int(delta, "delta")
    if allow_negative is None:
        allow_negative = get_settings().allow_negative_stock

    if idempotency_key:
        previous = find_adjustment(db, idempotency_key)
        if previous is not None:
            if previous.sku != sku:
                raise ConflictError("Idempotency-Key already used for another SKU")
            logger.info("ledger_adjust_replayed", sku=sku, idempotency_key=idempotency_key)
            return get_entry(db, sku)

    stmt = (
        update(StockLedgerEntry)
        .where(StockLedgerEntry.sku == sku)
        .values(quantity=StockLedgerEntry.quantity + delta)
        .execution_options(synchronize_session=False)
    )
    # the floor only blocks decrements; a receipt may still land on a negative row
    if not allow_negative and delta < 0:
        stmt = stmt.where(StockLedgerEntry.quantity + delta >= 0)

    result = db.execute(stmt)
    if result.rowcount == 0:
        current = db.execute(
            select(StockLedgerEntry.quantity).where(StockLedgerEntry.sku == sku)
        ).scalar_one_or_none()
        if current is None:
            raise NotFoundError(f"Inventory record not found for SKU {sku}")
        logger.warning("ledger_adjust_refused", sku=sku, delta=delta, quantity=current)
        raise InsufficientStockError(sku, current, delta)

    entry = get_entry(db, sku)
    db.add(
        StockAdjustment(
            sku=sku,
            kind=kind,
            delta=delta,
            quantity_after=entry.quantity,
            reason=reason,
            idempotency_key=idempotency_key,
            manufacturer_order_id=manufacturer_order_id,
        )
    )
    db.flush()
    alerts.refresh_stock_alerts(db, [entry])

    logger.info("ledger_adjusted", sku=sku, delta=delta, quantity=entry.quantity, kind=kind.value)
    if entry.quantity < 0:
        logger.warning("ledger_negative_on_hand", sku=sku, quantity=entry.quantity)
    return entry


def overwrite(db: Session, sku: str, quantity: int, *, reason: str | None = None) -> StockLedgerEntry:
    """
    Set an absolute on-hand count (stock take). Not an adjustment: callers
    must ask for it explicitly. The row is locked while the delta is computed.
    """
    _require_int(quantity, "quantity")
    if quantity < 0 and not get_settings().allow_negative_stock:
        raise ValidationError("quantity must be >= 0")

    entry = (
        db.execute(
            select(StockLedgerEntry)
            .where(StockLedgerEntry.sku == sku)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        .scalars()
        .first()
    )
    if entry is None:
        raise NotFoundError(f"Inventory record not found for SKU {sku}")

    delta = quantity - entry.quantity
    entry.quantity = quantity
    db.add(
        StockAdjustment(
            sku=sku,
            kind=AdjustmentKind.overwrite,
            delta=delta,
            quantity_after=quantity,
            reason=reason,
        )
    )
    db.flush()
    alerts.refresh_stock_alerts(db, [entry])
    logger.info("ledger_overwritten", sku=sku, quantity=quantity, delta=delta)
    return entry


def low_stock_report(db: Session) -> list[StockAlert]:
    """
    Entries at or under their minimum, computed from the ledger as it is now.
    The persisted, acknowledgeable view lives in ``stockroom.services.alerts``.
    """
    rows = (
        db.execute(
            select(StockLedgerEntry)
            .where(
                or_(
                    StockLedgerEntry.quantity <= 0,
                    StockLedgerEntry.quantity <= StockLedgerEntry.min_stock,
                )
            )
            .order_by(StockLedgerEntry.quantity, StockLedgerEntry.sku)
        )
        .scalars()
        .all()
    )

    report: list[StockAlert] = []
    for e in rows:
        kind, severity = alerts.classify_stock(e.quantity, e.min_stock)
        _, message = alerts.describe(e, kind)
        report.append(
            StockAlert(
                kind=kind,
                severity=severity,
                sku=e.sku,
                name=e.name,
                quantity=e.quantity,
                min_stock=e.min_stock,
                message=message,
            )
        )
    return report

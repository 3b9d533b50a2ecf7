"""
Stock alerts.

The ledger calls ``refresh_stock_alerts`` after every quantity change, in the
same transaction. Per SKU:

    quantity <= 0            -> out_of_stock (critical)
    0 < quantity <= min      -> low_stock (warning)
    otherwise                -> open stock alerts are resolved

An unresolved alert of the same kind is refreshed instead of duplicated.
Callers hold the ledger row (the increment UPDATE locks it), so two writers
never refresh the same SKU at once.
"""

from __future__ import annotations

from typing import Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from stockroom.app.db.models.core_types import AlertKind, AlertSeverity
from stockroom.app.db.models.models_v1 import Alert, StockLedgerEntry, utcnow
from stockroom.services.errors import ConflictError, NotFoundError

logger = structlog.get_logger(__name__)

STOCK_ALERT_KINDS = (AlertKind.low_stock, AlertKind.out_of_stock)


def classify_stock(quantity: int, min_stock: int) -> tuple[AlertKind, AlertSeverity] | None:
    if quantity <= 0:
        return AlertKind.out_of_stock, AlertSeverity.critical
    if quantity <= min_stock:
        return AlertKind.low_stock, AlertSeverity.warning
    return None


def describe(entry: StockLedgerEntry, kind: AlertKind) -> tuple[str, str]:
    """(title, message) for an entry in alert state."""
    name = entry.name or entry.sku
    if kind == AlertKind.out_of_stock:
        return f"Out of Stock: {name}", f"{name} (SKU: {entry.sku}) is out of stock."
    return (
        f"Low Stock: {name}",
        f"{name} (SKU: {entry.sku}) has {entry.quantity} units remaining (min: {entry.min_stock}).",
    )


def _open_alerts(db: Session, sku: str) -> list[Alert]:
    return list(
        db.execute(
            select(Alert)
            .where(Alert.sku == sku, Alert.resolved.is_(False), Alert.kind.in_(STOCK_ALERT_KINDS))
            .order_by(Alert.id)
        )
        .scalars()
        .all()
    )


def _resolve(alerts: Iterable[Alert]) -> int:
    now = utcnow()
    n = 0
    for a in alerts:
        a.resolved = True
        a.resolved_at = now
        n += 1
    return n


def refresh_stock_alerts(db: Session, entries: Iterable[StockLedgerEntry]) -> None:
    for entry in entries:
        open_alerts = _open_alerts(db, entry.sku)
        state = classify_stock(entry.quantity, entry.min_stock)

        if state is None:
            if _resolve(open_alerts):
                logger.info("stock_alert_resolved", sku=entry.sku, quantity=entry.quantity)
            continue

        kind, severity = state
        title, message = describe(entry, kind)
        # low -> out (or back) closes the other kind
        _resolve(a for a in open_alerts if a.kind != kind)

        current = next((a for a in open_alerts if a.kind == kind), None)
        if current is None:
            db.add(Alert(kind=kind, severity=severity, sku=entry.sku, title=title, message=message))
            logger.warning("stock_alert_raised", sku=entry.sku, kind=kind.value, quantity=entry.quantity)
        else:
            current.severity = severity
            current.title = title
            current.message = message
            current.read = False
            current.created_at = utcnow()
    db.flush()


def check_stock_alerts(db: Session) -> int:
    """Re-evaluate every ledger entry. Returns the number of open stock alerts."""
    entries = db.execute(select(StockLedgerEntry).order_by(StockLedgerEntry.sku)).scalars().all()
    refresh_stock_alerts(db, entries)
    return len(
        db.execute(select(Alert.id).where(Alert.resolved.is_(False), Alert.kind.in_(STOCK_ALERT_KINDS))).all()
    )


def list_alerts(
    db: Session,
    *,
    resolved: bool = False,
    kind: AlertKind | None = None,
    severity: AlertSeverity | None = None,
    limit: int = 50,
) -> list[Alert]:
    stmt = select(Alert).where(Alert.resolved.is_(resolved)).order_by(Alert.created_at.desc(), Alert.id.desc())
    if kind is not None:
        stmt = stmt.where(Alert.kind == kind)
    if severity is not None:
        stmt = stmt.where(Alert.severity == severity)
    return list(db.execute(stmt.limit(limit)).scalars().all())


def update_alert(
    db: Session,
    alert_id: int,
    *,
    read: bool | None = None,
    resolved: bool | None = None,
) -> Alert:
    alert = db.get(Alert, alert_id)
    if alert is None:
        raise NotFoundError("Alert not found")
    if read is not None:
        alert.read = read
    if resolved is False and alert.resolved:
        duplicate = db.execute(
            select(Alert.id).where(
                Alert.sku == alert.sku,
                Alert.kind == alert.kind,
                Alert.resolved.is_(False),
            )
        ).first()
        if duplicate is not None:
            raise ConflictError(f"An open {alert.kind.value} alert already exists for {alert.sku}")
    if resolved is not None:
        alert.resolved = resolved
        alert.resolved_at = utcnow() if resolved else None
    db.flush()
    return alert


from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from stockroom.app.api.deps import get_db
from stockroom.app.db.models.core_types import AlertKind, AlertSeverity
from stockroom.app.schemas.alert import AlertCheckRead, AlertRead, AlertUpdate
from stockroom.services import alerts

router = APIRouter(prefix="/alerts")


@router.get("", response_model=list[AlertRead])
def list_alerts(
    resolved: bool = False,
    kind: AlertKind | None = None,
    severity: AlertSeverity | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """Open alerts by default, newest first."""
    return alerts.list_alerts(db, resolved=resolved, kind=kind, severity=severity, limit=limit)


@router.post("/check", response_model=AlertCheckRead)
def run_alert_check(db: Session = Depends(get_db)):
    """Re-evaluate the whole ledger (alerts are otherwise refreshed on every stock change)."""
    open_alerts = alerts.check_stock_alerts(db)
    db.commit()
    return AlertCheckRead(open_alerts=open_alerts)


@router.patch("/{alert_id}", response_model=AlertRead)
def update_alert(alert_id: int, payload: AlertUpdate, db: Session = Depends(get_db)):
    alert = alerts.update_alert(db, alert_id, read=payload.read, resolved=payload.resolved)
    db.commit()
    db.refresh(alert)
    return alert

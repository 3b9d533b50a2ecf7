from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from stockroom.app.db.models.core_types import AlertKind, AlertSeverity


class AlertRead(BaseModel):
    id: int
    kind: AlertKind
    severity: AlertSeverity
    sku: str
    title: str
    message: str
    read: bool
    resolved: bool
    resolved_at: datetime | None
    created_at: datetime

    class Config:
        from_attributes = True


class AlertUpdate(BaseModel):
    read: bool | None = None
    resolved: bool | None = None


class AlertCheckRead(BaseModel):
    open_alerts: int

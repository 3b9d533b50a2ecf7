from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, StrictInt, field_validator

from stockroom.app.db.models.core_types import AlertKind, AlertSeverity

# quantity columns are 32-bit INTEGER
QTY_MAX = 2_147_483_647


class StockLedgerEntryRead(BaseModel):
    sku: str
    name: str
    price: Decimal | None
    quantity: int
    min_stock: int
    location: str | None
    updated_at: datetime

    class Config:
        from_attributes = True


class AdjustmentCreate(BaseModel):
    sku: str = Field(min_length=1, max_length=64)
    # signed delta, not a new total
    quantity: StrictInt = Field(ge=-QTY_MAX, le=QTY_MAX)
    reason: str | None = Field(default=None, max_length=255)

    @field_validator("sku")
    @classmethod
    def strip_sku(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("SKU is required")
        return v


class OverwriteCreate(BaseModel):
    quantity: StrictInt = Field(ge=-QTY_MAX, le=QTY_MAX)
    reason: str | None = Field(default=None, max_length=255)


class LedgerEntryCreate(BaseModel):
    sku: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=255)
    price: Decimal | None = Field(default=None, ge=0)
    quantity: StrictInt = Field(default=0, ge=-QTY_MAX, le=QTY_MAX)
    min_stock: int = Field(default=0, ge=0, le=QTY_MAX)
    location: str | None = Field(default=None, max_length=128)


class StockAlert(BaseModel):
    kind: AlertKind
    severity: AlertSeverity
    sku: str
    name: str
    quantity: int
    min_stock: int
    message: str


class StockAlertsRead(BaseModel):
    alerts: list[StockAlert]

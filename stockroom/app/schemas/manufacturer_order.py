from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from stockroom.app.db.models.core_types import DisplayStatus, OrderStatus
from stockroom.app.schemas.stock_ledger import QTY_MAX


class ManufacturerCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    contact_email: str | None = Field(default=None, max_length=255)
    lead_time: str | None = Field(default=None, max_length=64)
    is_active: bool = True


class ManufacturerRead(BaseModel):
    id: int
    name: str
    contact_email: str | None
    lead_time: str | None
    is_active: bool

    class Config:
        from_attributes = True


class OrderItemCreate(BaseModel):
    sku: str = Field(min_length=1, max_length=64)
    product_name: str = Field(min_length=1, max_length=255)
    quantity_ordered: int = Field(gt=0, le=QTY_MAX)
    unit_cost: Decimal = Field(ge=0)


class OrderCreate(BaseModel):
    manufacturer_id: int
    order_number: str | None = Field(default=None, min_length=1, max_length=64)
    expected_delivery: date | None = None
    tracking_number: str | None = Field(default=None, max_length=128)
    tracking_url: str | None = None
    carrier: str | None = Field(default=None, max_length=64)
    total_amount: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None
    items: list[OrderItemCreate] = Field(default_factory=list)


class ItemReceivedUpdate(BaseModel):
    id: int
    quantity_received: int = Field(ge=0, le=QTY_MAX)


class OrderUpdate(BaseModel):
    status: OrderStatus | None = None
    expected_delivery: date | None = None
    actual_delivery: date | None = None
    tracking_number: str | None = Field(default=None, max_length=128)
    tracking_url: str | None = None
    carrier: str | None = Field(default=None, max_length=64)
    notes: str | None = None
    items: list[ItemReceivedUpdate] = Field(default_factory=list)


class OrderItemRead(BaseModel):
    id: int
    sku: str
    product_name: str
    quantity_ordered: int
    quantity_received: int
    unit_cost: Decimal
    total_cost: Decimal

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: int
    order_number: str
    manufacturer_id: int
    status: OrderStatus
    display_status: DisplayStatus | None = None
    order_date: datetime
    expected_delivery: date | None
    actual_delivery: date | None
    tracking_number: str | None
    tracking_url: str | None
    carrier: str | None
    total_amount: Decimal
    notes: str | None
    inventory_applied_at: datetime | None
    items: list[OrderItemRead]

    class Config:
        from_attributes = True


class AppliedItem(BaseModel):
    sku: str
    quantity: int


class ApplyResult(BaseModel):
    applied: bool
    message: str | None = None
    applied_items: list[AppliedItem] = Field(default_factory=list)
    skipped_skus: list[str] = Field(default_factory=list)

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from stockroom.app.db.models.core_types import CatalogSource


class CatalogEntry(BaseModel):
    """One sellable item as seen by one source. Rebuilt on every read."""

    sku: str
    display_id: str
    name: str
    price: Decimal | None = None
    source: CatalogSource
    quantity_on_hand: int | None = None  # None: Shopify row not reconciled
    min_stock: int = Field(default=0, ge=0)
    location: str | None = None
    updated_at: datetime | None = None


class CatalogRead(BaseModel):
    inventory: list[CatalogEntry]

from __future__ import annotations

from fastapi import APIRouter, Depends, Header
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stockroom.app.api.deps import get_db, get_local_catalog, get_shopify_catalog
from stockroom.app.db.models.core_types import CatalogSource
from stockroom.app.schemas.catalog import CatalogRead
from stockroom.app.schemas.stock_ledger import (
    AdjustmentCreate,
    LedgerEntryCreate,
    OverwriteCreate,
    StockAlertsRead,
    StockLedgerEntryRead,
)
from stockroom.services import inventory
from stockroom.services.errors import ConflictError
from stockroom.services.catalog import LocalCatalogAdapter, load_catalog
from stockroom.services.shopify import ShopifyCatalogAdapter

router = APIRouter(prefix="/inventory")


@router.get("", response_model=CatalogRead)
def get_inventory(
    source: CatalogSource | None = None,
    sku: str | None = None,
    local: LocalCatalogAdapter = Depends(get_local_catalog),
    shopify: ShopifyCatalogAdapter = Depends(get_shopify_catalog),
):
    """
    Catalog view (READ ONLY)
    - local and Shopify rows side by side, never merged into one identity
    - Shopify unavailable -> local rows only
    """
    return CatalogRead(inventory=load_catalog(local, shopify, source=source, sku=sku))


@router.post("", response_model=StockLedgerEntryRead)
def adjust_inventory(
    payload: AdjustmentCreate,
    db: Session = Depends(get_db),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key", max_length=64),
):
    # quantity is a signed delta
    idem = idempotency_key.strip() if idempotency_key and idempotency_key.strip() else None
    try:
        entry = inventory.adjust(
            db,
            payload.sku,
            payload.quantity,
            reason=payload.reason,
            idempotency_key=idem,
        )
        db.commit()
    except IntegrityError:
        # same key raced in from another request: that one won, report its result
        db.rollback()
        if idem is None or inventory.find_adjustment(db, idem) is None:
            raise
        entry = inventory.get_entry(db, payload.sku)
    return StockLedgerEntryRead.model_validate(entry)


@router.post("/items", response_model=StockLedgerEntryRead, status_code=201)
def register_item(payload: LedgerEntryCreate, db: Session = Depends(get_db)):
    try:
        entry = inventory.register(db, **payload.model_dump())
        db.commit()
    except IntegrityError:
        # a concurrent register of the same SKU committed first
        db.rollback()
        raise ConflictError(f"SKU {payload.sku} already exists")
    db.refresh(entry)
    return StockLedgerEntryRead.model_validate(entry)


@router.put("/{sku}/quantity", response_model=StockLedgerEntryRead)
def overwrite_quantity(sku: str, payload: OverwriteCreate, db: Session = Depends(get_db)):
    """Absolute stock-take count. Use POST /inventory for deltas."""
    entry = inventory.overwrite(db, sku, payload.quantity, reason=payload.reason)
    db.commit()
    return StockLedgerEntryRead.model_validate(entry)


@router.get("/alerts", response_model=StockAlertsRead)
def get_alerts(db: Session = Depends(get_db)):
    return StockAlertsRead(alerts=inventory.low_stock_report(db))

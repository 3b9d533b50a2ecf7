"""
Catalog view: local ledger rows and Shopify variants side by side.

The two sources are never unified. A SKU present in both shows up twice,
once per ``source``; callers filter on ``source`` when they need one side.
"""

from __future__ import annotations

from typing import Iterable, Protocol

import structlog
from sqlalchemy.orm import Session

from stockroom.app.db.models.core_types import CatalogSource
from stockroom.app.db.models.models_v1 import StockLedgerEntry
from stockroom.app.schemas.catalog import CatalogEntry
from stockroom.services import inventory
from stockroom.services.errors import UpstreamError
from stockroom.services.shopify import SHOPIFY_ID_PREFIX

logger = structlog.get_logger(__name__)


class CatalogAdapter(Protocol):
    source: CatalogSource

    def get_catalog_entries(self, sku: str | None = None) -> list[CatalogEntry]: ...


def normalize_ledger_entry(entry: StockLedgerEntry) -> CatalogEntry:
    return CatalogEntry(
        sku=entry.sku,
        display_id=entry.sku,
        name=entry.name or f"Product {entry.sku}",
        price=entry.price,
        source=CatalogSource.local,
        quantity_on_hand=entry.quantity,
        min_stock=entry.min_stock,
        location=entry.location,
        updated_at=entry.updated_at,
    )


class LocalCatalogAdapter:
    source = CatalogSource.local

    def __init__(self, db: Session):
        self.db = db

    def get_catalog_entries(self, sku: str | None = None) -> list[CatalogEntry]:
        return [normalize_ledger_entry(e) for e in inventory.list_entries(self.db, sku=sku)]


def merge_catalog(
    local_entries: Iterable[CatalogEntry],
    shopify_entries: Iterable[CatalogEntry],
) -> list[CatalogEntry]:
    """Local rows first, then Shopify rows. No de-duplication across sources."""
    merged = list(local_entries)
    for entry in shopify_entries:
        if not entry.display_id.startswith(SHOPIFY_ID_PREFIX):
            raise ValueError(f"Shopify entry {entry.sku!r} has unqualified display_id {entry.display_id!r}")
        merged.append(entry)
    return merged


def load_catalog(
    local_adapter: CatalogAdapter,
    shopify_adapter: CatalogAdapter,
    *,
    source: CatalogSource | None = None,
    sku: str | None = None,
) -> list[CatalogEntry]:
    """
    Fetch from the requested adapters and merge.

    A Shopify failure degrades to the local rows; local failures propagate.
    """
    local: list[CatalogEntry] = []
    shopify: list[CatalogEntry] = []

    if source in (None, CatalogSource.local):
        local = local_adapter.get_catalog_entries(sku=sku)

    if source in (None, CatalogSource.shopify):
        try:
            shopify = shopify_adapter.get_catalog_entries(sku=sku)
        except UpstreamError as e:
            logger.warning("catalog_shopify_unavailable", error=e.message, local_count=len(local))
            shopify = []
        except Exception:
            # malformed payloads must not take the local catalog down with them
            logger.exception("catalog_shopify_failed", local_count=len(local))
            shopify = []

    return merge_catalog(local, shopify)

from __future__ import annotations

from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from stockroom.app.db.session import SessionLocal
from stockroom.services.catalog import LocalCatalogAdapter
from stockroom.services.shopify import ShopifyCatalogAdapter
from stockroom.services.tracking import TrackingService, get_tracking_service


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_local_catalog(db: Session = Depends(get_db)) -> LocalCatalogAdapter:
    return LocalCatalogAdapter(db)


def get_shopify_catalog() -> ShopifyCatalogAdapter:
    return ShopifyCatalogAdapter.from_settings()


def get_tracking() -> TrackingService:
    # new instance per request: its snapshot cache must not outlive the request
    return get_tracking_service()

import json
import os

# must be set before stockroom.app.db.session builds its engine
os.environ.setdefault("STOCKROOM_DATABASE_URL", "sqlite+pysqlite:///:memory:")

from decimal import Decimal

import pytest
import requests
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from stockroom.app.db.base import Base
from stockroom.app.db.models import models_v1  # noqa: F401
from stockroom.app.db.models.core_types import CatalogSource, OrderStatus
from stockroom.app.db.models.models_v1 import (
    Manufacturer,
    ManufacturerOrder,
    ManufacturerOrderItem,
    StockLedgerEntry,
)
from stockroom.app.schemas.catalog import CatalogEntry
from stockroom.app.schemas.tracking import TrackingSnapshot
from stockroom.services.errors import UpstreamError
from stockroom.services.tracking import TrackingService


@pytest.fixture(scope="function")
def engine(tmp_path):
    """
    SQLite file database per test.

    A file (not :memory:) so that threads in the concurrency tests each get
    their own connection to the same data.
    """
    eng = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'stockroom.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------- collaborators ----------
class StubTracking(TrackingService):
    """Carrier statuses keyed by tracking number; ``fail`` simulates an outage."""

    def __init__(self, statuses=None, fail=False):
        super().__init__(fedex=None)
        self.statuses = dict(statuses or {})
        self.fail = fail
        self.calls = []

    def fetch_snapshot(self, tracking_number, carrier=None, tracking_url=None):
        self.calls.append(tracking_number)
        if self.fail:
            raise UpstreamError("fedex", "carrier unreachable")
        return TrackingSnapshot(status=self.statuses.get(tracking_number), tracking_url=tracking_url)


class StubShopifyCatalog:
    source = CatalogSource.shopify

    def __init__(self, entries=None, error=None):
        self.entries = list(entries or [])
        self.error = error
        self.calls = 0

    def get_catalog_entries(self, sku=None):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return [e for e in self.entries if sku is None or e.sku == sku]


@pytest.fixture
def stub_tracking():
    return StubTracking


@pytest.fixture
def stub_shopify():
    return StubShopifyCatalog


@pytest.fixture
def tracking():
    return StubTracking()


@pytest.fixture
def shopify_catalog():
    return StubShopifyCatalog(
        [
            CatalogEntry(
                sku="ARM-100",
                display_id="shopify-4401",
                name="Armadillo Stand",
                price=Decimal("49.00"),
                source=CatalogSource.shopify,
                quantity_on_hand=7,
                min_stock=10,
            )
        ]
    )


@pytest.fixture
def client(session_factory, tracking, shopify_catalog):
    from stockroom.app.api.deps import get_db, get_shopify_catalog, get_tracking
    from stockroom.app.main import app

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_tracking] = lambda: tracking
    app.dependency_overrides[get_shopify_catalog] = lambda: shopify_catalog
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


# ---------- data builders ----------
@pytest.fixture
def make_ledger_entry(db_session):
    def _make(sku="ARM-100", quantity=50, min_stock=0, name=None, price=None):
        entry = StockLedgerEntry(
            sku=sku,
            name=name or f"TEST-PROD-{sku}",
            price=price,
            quantity=quantity,
            min_stock=min_stock,
        )
        db_session.add(entry)
        db_session.commit()
        return entry

    return _make


@pytest.fixture
def make_order(db_session):
    def _make(
        items=(("ARM-100", 20),),
        status=OrderStatus.delivered,
        tracking_number=None,
        carrier=None,
        order_number=None,
    ):
        manufacturer = db_session.query(Manufacturer).filter_by(name="TEST-MFR").one_or_none()
        if manufacturer is None:
            manufacturer = Manufacturer(name="TEST-MFR")
            db_session.add(manufacturer)
            db_session.flush()

        n = db_session.query(ManufacturerOrder).count() + 1
        order = ManufacturerOrder(
            order_number=order_number or f"TEST-MO-{n}",
            manufacturer_id=manufacturer.id,
            status=status,
            tracking_number=tracking_number,
            carrier=carrier,
            total_amount=Decimal("0"),
            items=[
                ManufacturerOrderItem(
                    sku=sku,
                    product_name=f"TEST-PROD-{sku}",
                    quantity_ordered=qty,
                    quantity_received=0,
                    unit_cost=Decimal("2.50"),
                    total_cost=Decimal("2.50") * qty,
                )
                for sku, qty in items
            ],
        )
        db_session.add(order)
        db_session.commit()
        return order

    return _make


# ---------- fake HTTP for the requests-based clients ----------
def build_response(status_code=200, payload=None, link=None, text=None):
    r = requests.Response()
    r.status_code = status_code
    r.url = "https://example.test/"
    r.encoding = "utf-8"
    if text is not None:
        r._content = text.encode()
    else:
        r._content = json.dumps(payload if payload is not None else {}).encode()
        r.headers["Content-Type"] = "application/json"
    if link:
        r.headers["Link"] = link
    return r


class FakeHTTPSession:
    """Replays queued responses (or raises queued exceptions) in order."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def http_response():
    return build_response


@pytest.fixture
def fake_http():
    return FakeHTTPSession

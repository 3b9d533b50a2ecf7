"""
Shopify source: a thin Admin REST client and the catalog adapter on top of it.

Read only. Writes to Shopify's own inventory are not done from here.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Iterator
from urllib.parse import urlparse

import requests
import structlog

from stockroom.app.config import Settings, get_settings
from stockroom.app.db.models.core_types import CatalogSource
from stockroom.app.schemas.catalog import CatalogEntry
from stockroom.services.errors import UpstreamError

logger = structlog.get_logger(__name__)

SHOPIFY_ID_PREFIX = "shopify-"


def normalize_shop_domain(value: str | None) -> str:
    """'https://acme.myshopify.com/admin' -> 'acme.myshopify.com'"""
    value = (value or "").strip()
    if "://" in value:
        return urlparse(value).netloc
    return value.rstrip("/")


class ShopifyClient:
    def __init__(
        self,
        store_domain: str | None,
        access_token: str | None,
        *,
        api_version: str = "2026-01",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.store_domain = normalize_shop_domain(store_domain)
        self.access_token = access_token or ""
        self.api_version = api_version
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ShopifyClient":
        settings = settings or get_settings()
        token = settings.shopify_access_token.get_secret_value() if settings.shopify_access_token else None
        return cls(
            settings.shopify_store_domain,
            token,
            api_version=settings.shopify_api_version,
            timeout=settings.http_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.store_domain and self.access_token)

    @property
    def base_url(self) -> str:
        return f"https://{self.store_domain}/admin/api/{self.api_version}"

    def _get(self, url: str, params: dict[str, Any] | None = None) -> requests.Response:
        if not self.configured:
            raise UpstreamError(
                "shopify",
                "Shopify integration not configured. Set STOCKROOM_SHOPIFY_STORE_DOMAIN "
                "and STOCKROOM_SHOPIFY_ACCESS_TOKEN.",
            )
        try:
            resp = self.session.request(
                "GET",
                url,
                params=params,
                headers={
                    "Content-Type": "application/json",
                    "X-Shopify-Access-Token": self.access_token,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamError("shopify", str(e)) from e

        if not resp.ok:
            raise UpstreamError("shopify", f"API error ({resp.status_code}): {resp.text[:500]}")
        return resp

    def iter_products(self, *, status: str = "active", limit: int = 250) -> Iterator[dict]:
        """Walk every page of products.json following the Link rel="next" header."""
        url: str | None = f"{self.base_url}/products.json"
        params: dict[str, Any] | None = {"status": status, "limit": limit}
        while url:
            resp = self._get(url, params=params)
            try:
                payload = resp.json()
            except ValueError as e:
                raise UpstreamError("shopify", "invalid JSON in products response") from e
            yield from payload.get("products") or []

            # the next link already carries page_info; Shopify rejects extra filters with it
            url = resp.links.get("next", {}).get("url")
            params = None


def _to_decimal(value: Any) -> Decimal | None:
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def normalize_variant(product: dict, variant: dict, *, default_min_stock: int = 10) -> CatalogEntry:
    """One Shopify variant -> one catalog row."""
    variant_id = variant["id"]
    variants = product.get("variants") or []
    title = product.get("title") or ""
    if len(variants) > 1 and variant.get("title"):
        name = f"{title} - {variant['title']}"
    else:
        name = title

    quantity = variant.get("inventory_quantity")
    return CatalogEntry(
        sku=(variant.get("sku") or "").strip() or f"SHOP-{variant_id}",
        display_id=f"{SHOPIFY_ID_PREFIX}{variant_id}",
        name=name or f"Shopify variant {variant_id}",
        price=_to_decimal(variant.get("price")),
        source=CatalogSource.shopify,
        quantity_on_hand=int(quantity) if quantity is not None else None,
        min_stock=default_min_stock,
    )


class ShopifyCatalogAdapter:
    source = CatalogSource.shopify

    def __init__(self, client: ShopifyClient, *, default_min_stock: int = 10, page_size: int = 250):
        self.client = client
        self.default_min_stock = default_min_stock
        self.page_size = page_size

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ShopifyCatalogAdapter":
        settings = settings or get_settings()
        return cls(
            ShopifyClient.from_settings(settings),
            default_min_stock=settings.shopify_default_min_stock,
            page_size=settings.shopify_page_size,
        )

    def get_catalog_entries(self, sku: str | None = None) -> list[CatalogEntry]:
        entries: list[CatalogEntry] = []
        for product in self.client.iter_products(limit=self.page_size):
            for variant in product.get("variants") or []:
                if "id" not in variant:
                    continue
                entry = normalize_variant(product, variant, default_min_stock=self.default_min_stock)
                if sku and entry.sku != sku:
                    continue
                entries.append(entry)
        logger.debug("shopify_catalog_fetched", count=len(entries))
        return entries

"""
Carrier tracking.

``TrackingService.fetch_snapshot`` is the only entry point the rest of the
code uses. FedEx is queried live (Track API, OAuth client credentials) when
credentials are configured; every other carrier gets a snapshot without a
status and a public tracking link.

Snapshots are cached on the service instance, and a service instance lives
for one request.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import requests
import structlog

from stockroom.app.config import Settings, get_settings
from stockroom.app.schemas.tracking import TrackingEvent, TrackingSnapshot
from stockroom.services.errors import UpstreamError, ValidationError

logger = structlog.get_logger(__name__)

TRACKING_URL_TEMPLATES = {
    "fedex": "https://www.fedex.com/fedextrack/?trknbr={number}",
    "ups": "https://www.ups.com/track?tracknum={number}",
    "usps": "https://tools.usps.com/go/TrackConfirmAction?tLabels={number}",
    "dhl": "https://www.dhl.com/en/express/tracking.html?AWB={number}",
}

# FedEx scan eventType -> description, used when eventDescription is missing
FEDEX_EVENT_TYPES = {
    "DL": "Delivered",
    "PU": "Picked up",
    "OD": "Out for delivery",
    "DP": "Departed",
    "AR": "Arrived",
    "IT": "In transit",
    "OC": "Order created",
    "OF": "Ready for shipment",
    "AA": "At airport",
    "AD": "At delivery",
    "AF": "At FedEx facility",
    "AP": "At pickup",
    "TR": "In transit",
    "PL": "Plane landed",
    "LO": "Left origin",
}


def get_tracking_url(carrier: str | None, tracking_number: str | None) -> str | None:
    number = (tracking_number or "").strip()
    if not number:
        return None
    c = (carrier or "").lower()
    for key, template in TRACKING_URL_TEMPLATES.items():
        if key in c:
            return template.format(number=quote(number, safe=""))
    # Freight / Other: no public page
    return None


def get_effective_tracking_url(
    tracking_url: str | None,
    carrier: str | None,
    tracking_number: str | None,
) -> str | None:
    if tracking_url and tracking_url.strip():
        return tracking_url.strip()
    return get_tracking_url(carrier, tracking_number)


def is_fedex_carrier(carrier: str | None) -> bool:
    return "fedex" in (carrier or "").lower()


def map_fedex_status(description: str | None) -> str | None:
    """
    Latest FedEx status description -> carrier token.

    "out for delivery" is tested before "delivered" since it contains "deliver".
    Unrecognized descriptions give None.
    """
    s = (description or "").lower()
    if "out for delivery" in s or "on vehicle" in s or "vehicle for delivery" in s:
        return "out_for_delivery"
    if "delivered" in s:
        return "delivered"
    if "transit" in s or "picked up" in s or "departed" in s:
        return "in_transit"
    if "exception" in s:
        return "exception"
    if "pending" in s or "label" in s:
        return "pending"
    return None


def _location_str(loc: Any) -> str | None:
    if not isinstance(loc, dict):
        return None
    addr = loc.get("address") or loc.get("locationContactAndAddress", {}).get("address") or loc
    if not isinstance(addr, dict):
        return None
    parts = [p for p in (addr.get("city"), addr.get("stateOrProvinceCode")) if p]
    return ", ".join(parts) if parts else None


def _parse_scan_event(evt: dict) -> TrackingEvent:
    raw = evt.get("timestamp") or evt.get("date") or ""
    date, time = raw, evt.get("time")
    if "T" in raw:
        date, rest = raw.split("T", 1)
        time = rest[:8]

    event_type = evt.get("eventType")
    description = (
        evt.get("eventDescription")
        or (FEDEX_EVENT_TYPES.get(event_type) if event_type else None)
        or event_type
        or "Scan"
    )
    return TrackingEvent(
        date=date,
        time=time or None,
        location=_location_str(evt.get("scanLocation") or evt.get("address")),
        description=description,
        event_type=event_type,
        status=evt.get("derivedStatus"),
    )


def parse_fedex_track_response(data: dict) -> TrackingSnapshot | None:
    """output.completeTrackResults[0].trackResults[0] -> snapshot (None if absent)."""
    complete = (data.get("output") or {}).get("completeTrackResults")
    if not isinstance(complete, list) or not complete:
        return None
    results = complete[0].get("trackResults")
    if not isinstance(results, list) or not results:
        return None
    result = results[0]

    events = [_parse_scan_event(e) for e in result.get("scanEvents") or [] if isinstance(e, dict)]
    events.sort(key=lambda e: (e.date, e.time or ""))

    estimated = None
    for d in result.get("dateAndTimes") or []:
        if d.get("type") == "ESTIMATED_DELIVERY":
            estimated = d.get("dateTime")
            break
    if not estimated:
        estimated = ((result.get("estimatedDeliveryTimeWindow") or {}).get("window") or {}).get("begins")

    return TrackingSnapshot(
        status=map_fedex_status((result.get("latestStatusDetail") or {}).get("description")),
        events=events,
        origin=_location_str(result.get("originLocation")),
        destination=_location_str(result.get("destinationLocation")),
        estimated_delivery=estimated,
    )


class FedExTrackingClient:
    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        *,
        base_url: str = "https://apis-sandbox.fedex.com",
        timeout: float = 5.0,
        session: requests.Session | None = None,
    ):
        self.client_id = (client_id or "").strip()
        self.client_secret = (client_secret or "").strip()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._access_token: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "FedExTrackingClient":
        settings = settings or get_settings()
        secret = settings.fedex_client_secret.get_secret_value() if settings.fedex_client_secret else None
        return cls(
            settings.fedex_client_id,
            secret,
            base_url=settings.fedex_base_url,
            timeout=settings.tracking_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _post(self, path: str, **kwargs) -> requests.Response:
        try:
            resp = self.session.request("POST", f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise UpstreamError("fedex", str(e)) from e
        if not resp.ok:
            raise UpstreamError("fedex", f"{path} failed ({resp.status_code}): {resp.text[:500]}")
        return resp

    def _token(self) -> str:
        if self._access_token:
            return self._access_token
        resp = self._post(
            "/oauth/token",
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        try:
            token = resp.json().get("access_token")
        except ValueError as e:
            raise UpstreamError("fedex", "invalid JSON in OAuth response") from e
        if not token:
            raise UpstreamError("fedex", "OAuth response without access_token")
        self._access_token = token
        return token

    def track(self, tracking_number: str) -> TrackingSnapshot | None:
        resp = self._post(
            "/track/v1/trackingnumbers",
            json={
                "trackingInfo": [{"trackingNumberInfo": {"trackingNumber": tracking_number}}],
                "includeDetailedScans": True,
            },
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._token()}",
                "X-locale": "en_US",
            },
        )
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError("fedex", "invalid JSON in track response") from e
        # the parser trusts the documented shape; anything else is a carrier fault
        try:
            return parse_fedex_track_response(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise UpstreamError("fedex", "malformed track response") from e


class TrackingService:
    def __init__(self, fedex: FedExTrackingClient | None = None):
        self.fedex = fedex
        self._cache: dict[tuple[str, str], TrackingSnapshot] = {}

    def fetch_snapshot(
        self,
        tracking_number: str,
        carrier: str | None = None,
        tracking_url: str | None = None,
    ) -> TrackingSnapshot:
        """Raises UpstreamError when the carrier API fails."""
        number = (tracking_number or "").strip()
        if not number:
            raise ValidationError("tracking_number is required")

        key = (number, (carrier or "").lower())
        if key in self._cache:
            return self._cache[key]

        snapshot = TrackingSnapshot(tracking_url=get_effective_tracking_url(tracking_url, carrier, number))
        if is_fedex_carrier(carrier) and self.fedex is not None and self.fedex.configured:
            live = self.fedex.track(number)
            if live is not None:
                snapshot = live.model_copy(update={"tracking_url": snapshot.tracking_url})

        self._cache[key] = snapshot
        return snapshot

    def try_fetch_snapshot(
        self,
        tracking_number: str | None,
        carrier: str | None = None,
        tracking_url: str | None = None,
    ) -> TrackingSnapshot | None:
        """Best-effort variant: no tracking number or a carrier failure gives None."""
        if not (tracking_number or "").strip():
            return None
        try:
            return self.fetch_snapshot(tracking_number, carrier, tracking_url)
        except UpstreamError as e:
            logger.warning("tracking_unavailable", tracking_number=tracking_number, carrier=carrier, error=e.message)
            return None


def get_tracking_service() -> TrackingService:
    return TrackingService(FedExTrackingClient.from_settings())

from __future__ import annotations

from fastapi import APIRouter, Depends

from stockroom.app.api.deps import get_tracking
from stockroom.app.schemas.tracking import TrackingRead, TrackingRequest
from stockroom.services.tracking import TrackingService

router = APIRouter(prefix="/tracking")


@router.post("", response_model=TrackingRead)
def fetch_tracking(payload: TrackingRequest, tracking: TrackingService = Depends(get_tracking)):
    """
    Live FedEx tracking when configured; other carriers get status "unknown"
    and a public tracking link. Carrier failure -> 502, the caller keeps its
    stored status.
    """
    snapshot = tracking.fetch_snapshot(payload.tracking_number, payload.carrier, payload.tracking_url)
    return TrackingRead(
        tracking_number=payload.tracking_number.strip(),
        carrier=payload.carrier or "Unknown",
        status=snapshot.status or "unknown",
        events=snapshot.events,
        origin=snapshot.origin,
        destination=snapshot.destination,
        estimated_delivery=snapshot.estimated_delivery,
        tracking_url=snapshot.tracking_url,
    )

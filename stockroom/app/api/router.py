from fastapi import APIRouter

from stockroom.app.api.endpoints.alerts import router as alerts_router
from stockroom.app.api.endpoints.health import router as health_router
from stockroom.app.api.endpoints.inventory import router as inventory_router
from stockroom.app.api.endpoints.manufacturers import router as manufacturers_router
from stockroom.app.api.endpoints.manufacturer_orders import router as manufacturer_orders_router
from stockroom.app.api.endpoints.tracking import router as tracking_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(inventory_router, tags=["inventory"])
router.include_router(alerts_router, tags=["alerts"])
router.include_router(manufacturers_router, tags=["manufacturers"])
router.include_router(manufacturer_orders_router, tags=["manufacturer_orders"])
router.include_router(tracking_router, tags=["tracking"])

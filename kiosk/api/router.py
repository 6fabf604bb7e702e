"""
API Router - JSON Endpoints for the kiosk UI
"""
from fastapi import APIRouter
from datetime import datetime

from kiosk.api.venues import router as venues_router
from kiosk.api.customers import router as customers_router
from kiosk.api.checkins import router as checkins_router
from kiosk.api.sync import router as sync_router

api_router = APIRouter(tags=["API"])

# Include sub-routers
api_router.include_router(venues_router)
api_router.include_router(customers_router)
api_router.include_router(checkins_router)
api_router.include_router(sync_router)


@api_router.get("/status")
async def api_status():
    return {"status": "ok", "version": "1.0.0", "timestamp": datetime.now().isoformat()}

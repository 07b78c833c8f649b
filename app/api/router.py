"""
API Router - JSON Endpoints
"""
from fastapi import APIRouter
from datetime import datetime

from app.api.auth import router as auth_router
from app.api.drugs import router as drugs_router
from app.api.movements import router as movements_router
from app.api.alerts import router as alerts_router
from app.api.reports import router as reports_router

api_router = APIRouter(tags=["API"])

# Include sub-routers
api_router.include_router(auth_router)
api_router.include_router(drugs_router)
api_router.include_router(movements_router)
api_router.include_router(alerts_router)
api_router.include_router(reports_router)

# ===================== HEALTH & STATUS =====================

@api_router.get("/status")
async def api_status():
    return {"status": "ok", "version": "1.0.0", "timestamp": datetime.now().isoformat()}

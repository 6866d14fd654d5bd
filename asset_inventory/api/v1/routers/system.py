# asset_inventory/api/v1/routers/system.py
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter

from ....config import settings
from ....services.database_service import database_service
from ....services.scan_service import scan_service

router = APIRouter(tags=["System"])


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint."""
    database = await database_service.health_check()
    return {
        "status": database["status"],
        "timestamp": datetime.now(),
        "version": settings.api_version,
        "database": database,
        "active_scan_id": scan_service.active_scan_id,
    }

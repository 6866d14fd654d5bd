from fastapi import APIRouter

# Aggregate all v1 routers here
from .routers import archives, inventory, scans, system

api_router = APIRouter()
api_router.include_router(system.router)
api_router.include_router(scans.router)
api_router.include_router(inventory.router)
api_router.include_router(archives.router)

__all__ = ["api_router"]

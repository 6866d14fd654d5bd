# asset_inventory/api/v1/routers/inventory.py
"""
Inventory API Router.

Read-only views of the live inventory generation: assets, usage and orphan
references.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ....database.base import get_db
from ....services.inventory_service import inventory_service
from ..models import (
    AssetResponse,
    AssetsListResponse,
    OrphanResponse,
    UsageResponse,
    UsageSummaryResponse,
)

router = APIRouter(prefix="/assets", tags=["inventory"])


@router.get(
    "",
    response_model=AssetsListResponse,
    summary="List assets",
    description="List live assets ordered by category, then file name.",
)
async def list_assets(
    category: Optional[str] = Query(None, description="Filter by category (Documents, Videos, ...)"),
    source_type: Optional[str] = Query(None, description="Filter by source type"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum results to return"),
    offset: int = Query(0, ge=0, description="Number of results to skip"),
    session: AsyncSession = Depends(get_db),
) -> AssetsListResponse:
    assets = await inventory_service.list_assets(
        session, category=category, source_type=source_type, limit=limit, offset=offset
    )
    total = await inventory_service.count_assets(session, category=category)
    return AssetsListResponse(
        items=[AssetResponse.model_validate(a) for a in assets],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{asset_id}", response_model=AssetResponse, summary="Get asset")
async def get_asset(asset_id: UUID, session: AsyncSession = Depends(get_db)) -> AssetResponse:
    asset = await inventory_service.get_live_asset(session, asset_id)
    return AssetResponse.model_validate(asset)


@router.get(
    "/{asset_id}/usage",
    response_model=UsageSummaryResponse,
    summary="Get asset usage",
    description=(
        "Usage rows and orphan references for a live asset. The usage count "
        "only includes references reachable from a live root entity."
    ),
)
async def get_asset_usage(asset_id: UUID, session: AsyncSession = Depends(get_db)) -> UsageSummaryResponse:
    await inventory_service.get_live_asset(session, asset_id)
    summary = await inventory_service.get_usage_summary(session, asset_id)
    usages = await inventory_service.list_usages(session, asset_id)
    orphans = await inventory_service.list_orphans(session, asset_id)
    return UsageSummaryResponse(
        asset_id=asset_id,
        usages=[UsageResponse.model_validate(u) for u in usages],
        orphans=[OrphanResponse.model_validate(o) for o in orphans],
        **summary,
    )

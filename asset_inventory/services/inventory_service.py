"""
Read-side queries over the live inventory generation.

Everything here filters on is_temp=False so a scan in progress is never
visible to readers.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import AssetItem, AssetUsage, OrphanReference
from ..exceptions import RecordNotFoundError

logger = logging.getLogger("asset_inventory.services.inventory")

USAGE_IN_USE = "in_use"
USAGE_ORPHAN_ONLY = "orphan_only"
USAGE_UNUSED = "unused"


def _live():
    return AssetItem.is_temp.is_(False)


class InventoryService:
    """Usage and orphan lookups for live assets."""

    async def get_usage_count(self, session: AsyncSession, asset_id: uuid.UUID) -> int:
        """Number of usage rows (distinct root entity fields) for an asset."""
        result = await session.scalar(
            select(func.count()).select_from(AssetUsage).where(AssetUsage.asset_id == asset_id)
        )
        return result or 0

    async def get_orphan_count(self, session: AsyncSession, asset_id: uuid.UUID) -> int:
        result = await session.scalar(
            select(func.count()).select_from(OrphanReference).where(OrphanReference.asset_id == asset_id)
        )
        return result or 0

    async def get_live_asset(self, session: AsyncSession, asset_id: uuid.UUID) -> AssetItem:
        asset = await session.scalar(select(AssetItem).where(AssetItem.id == asset_id, _live()))
        if asset is None:
            raise RecordNotFoundError(f"Asset {asset_id} not found")
        return asset

    async def find_live_asset(self, session: AsyncSession, url_hash: str) -> Optional[AssetItem]:
        return await session.scalar(select(AssetItem).where(AssetItem.url_hash == url_hash, _live()))

    async def find_live_asset_by_fid(self, session: AsyncSession, fid: int) -> Optional[AssetItem]:
        return await session.scalar(select(AssetItem).where(AssetItem.fid == fid, _live()))

    async def usage_count_for_hash(self, session: AsyncSession, url_hash: str) -> int:
        """
        Live usage count for an identity hash.

        Returns 0 when the identity has no live asset.
        """
        result = await session.scalar(
            select(func.count())
            .select_from(AssetUsage)
            .join(AssetItem, AssetItem.id == AssetUsage.asset_id)
            .where(AssetItem.url_hash == url_hash, _live())
        )
        return result or 0

    async def orphan_count_for_hash(self, session: AsyncSession, url_hash: str) -> int:
        result = await session.scalar(
            select(func.count())
            .select_from(OrphanReference)
            .join(AssetItem, AssetItem.id == OrphanReference.asset_id)
            .where(AssetItem.url_hash == url_hash, _live())
        )
        return result or 0

    async def get_usage_summary(self, session: AsyncSession, asset_id: uuid.UUID) -> Dict[str, Any]:
        """
        Usage and orphan counts plus a classification.

        Returns:
            {"usage_count", "orphan_count", "classification"} where
            classification is in_use, orphan_only or unused
        """
        usage_count = await self.get_usage_count(session, asset_id)
        orphan_count = await self.get_orphan_count(session, asset_id)
        if usage_count:
            classification = USAGE_IN_USE
        elif orphan_count:
            classification = USAGE_ORPHAN_ONLY
        else:
            classification = USAGE_UNUSED
        return {
            "usage_count": usage_count,
            "orphan_count": orphan_count,
            "classification": classification,
        }

    async def list_usages(self, session: AsyncSession, asset_id: uuid.UUID) -> List[AssetUsage]:
        result = await session.execute(
            select(AssetUsage)
            .where(AssetUsage.asset_id == asset_id)
            .order_by(AssetUsage.entity_type, AssetUsage.entity_id, AssetUsage.field_name)
        )
        return list(result.scalars().all())

    async def list_orphans(self, session: AsyncSession, asset_id: uuid.UUID) -> List[OrphanReference]:
        result = await session.execute(
            select(OrphanReference)
            .where(OrphanReference.asset_id == asset_id)
            .order_by(OrphanReference.source_entity_type, OrphanReference.source_entity_id)
        )
        return list(result.scalars().all())

    async def list_assets(
        self,
        session: AsyncSession,
        category: Optional[str] = None,
        source_type: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[AssetItem]:
        """
        Live assets ordered by category sort order, then file name.

        Args:
            category: Only this category
            source_type: Only this source type
            limit: Page size
            offset: Page start
        """
        query = select(AssetItem).where(_live())
        if category:
            query = query.where(AssetItem.category == category)
        if source_type:
            query = query.where(AssetItem.source_type == source_type)
        query = query.order_by(AssetItem.sort_order, AssetItem.file_name, AssetItem.id).offset(offset).limit(limit)
        result = await session.execute(query)
        return list(result.scalars().all())

    async def count_assets(self, session: AsyncSession, category: Optional[str] = None) -> int:
        query = select(func.count()).select_from(AssetItem).where(_live())
        if category:
            query = query.where(AssetItem.category == category)
        return (await session.scalar(query)) or 0


# Global inventory service instance
inventory_service = InventoryService()

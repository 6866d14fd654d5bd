"""
Atomic swap between the live and staged inventory generations.

Rows carry an is_temp flag: False for the live generation readers see,
True for the generation a scan is building. Promotion deletes the live
generation and flips the staged one to live inside a single transaction, so
readers observe either the old generation or the new one and never a mix.

Deletion order is always orphans -> usages -> assets. Orphan references
have no foreign key to their asset; usages do.
"""

import logging
from typing import Dict

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..database.models import AssetItem, AssetUsage, OrphanReference

logger = logging.getLogger("asset_inventory.swap_manager")


class SwapManager:
    """
    Generation cleanup and promotion.

    Methods take the session owning the transaction; the caller commits.
    """

    async def _delete_generation(self, session: AsyncSession, is_temp: bool) -> Dict[str, int]:
        generation = select(AssetItem.id).where(AssetItem.is_temp.is_(is_temp))

        orphans = await session.execute(
            delete(OrphanReference)
            .where(OrphanReference.asset_id.in_(generation))
            .execution_options(synchronize_session=False)
        )
        usages = await session.execute(
            delete(AssetUsage)
            .where(AssetUsage.asset_id.in_(generation))
            .execution_options(synchronize_session=False)
        )
        assets = await session.execute(
            delete(AssetItem)
            .where(AssetItem.is_temp.is_(is_temp))
            .execution_options(synchronize_session=False)
        )
        return {
            "orphans": orphans.rowcount or 0,
            "usages": usages.rowcount or 0,
            "assets": assets.rowcount or 0,
        }

    async def clear_staging(self, session: AsyncSession) -> Dict[str, int]:
        """
        Remove every staged row.

        Called before a scan starts (leftovers of a crashed scan) and to
        discard a failed or cancelled scan.

        Returns:
            Deleted row counts per table
        """
        deleted = await self._delete_generation(session, is_temp=True)
        if any(deleted.values()):
            logger.info(
                f"Cleared staged generation: {deleted['assets']} assets, "
                f"{deleted['usages']} usages, {deleted['orphans']} orphans"
            )
        return deleted

    async def discard(self, session: AsyncSession) -> Dict[str, int]:
        """Discard a failed or cancelled scan; the live generation is untouched."""
        return await self.clear_staging(session)

    async def promote(self, session: AsyncSession) -> Dict[str, int]:
        """
        Replace the live generation with the staged one.

        Both steps run in the caller's transaction: if the commit fails,
        the previous live generation stays in place.

        Returns:
            Counts of removed live rows and promoted assets
        """
        removed = await self._delete_generation(session, is_temp=False)
        promoted = await session.execute(
            update(AssetItem)
            .where(AssetItem.is_temp.is_(True))
            .values(is_temp=False)
            .execution_options(synchronize_session=False)
        )
        result = {
            "removed_assets": removed["assets"],
            "removed_usages": removed["usages"],
            "removed_orphans": removed["orphans"],
            "promoted_assets": promoted.rowcount or 0,
        }
        logger.info(
            f"Promoted staged generation: {result['promoted_assets']} assets live, "
            f"{result['removed_assets']} previous assets removed"
        )
        return result

    async def generation_sizes(self, session: AsyncSession) -> Dict[str, int]:
        """Asset counts per generation."""
        rows = await session.execute(
            select(AssetItem.is_temp, func.count()).group_by(AssetItem.is_temp)
        )
        sizes = {"live": 0, "staged": 0}
        for is_temp, count in rows.all():
            sizes["staged" if is_temp else "live"] = count
        return sizes


# Global swap manager instance
swap_manager = SwapManager()

"""
Inventory builder: turns scanner sightings into staged rows.

Every row written here carries is_temp=True. The builder keeps in-memory
indexes of what it has staged during the current scan so that:

    - each canonical identity is staged once (first sighting wins)
    - repeated usage of an asset in the same root entity field increments
      the existing usage row instead of inserting a duplicate
    - each orphan reference is recorded once

One builder instance serves exactly one scan.
"""

import logging
import uuid
from dataclasses import dataclass, fields
from typing import Dict, Iterable, Optional, Set, Tuple

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database.models import AssetItem, AssetUsage, OrphanReference
from .reachability import NotFound, Orphan, Reachable, ReachabilityResolver
from .retry import retry_on_transient_error
from .scanners.base import AssetCandidate, Sighting

logger = logging.getLogger("asset_inventory.inventory_builder")

UsageKey = Tuple[uuid.UUID, str, str, str]
OrphanKey = Tuple[uuid.UUID, str, str, str, str]


@dataclass
class StageStats:
    """Counters for one chunk (or a whole scan when accumulated)."""
    assets: int = 0
    usages: int = 0
    usage_increments: int = 0
    orphans: int = 0
    dropped_references: int = 0
    missing_hosts: int = 0

    def add(self, other: "StageStats") -> "StageStats":
        for f in fields(self):
            setattr(self, f.name, getattr(self, f.name) + getattr(other, f.name))
        return self

    def to_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class InventoryBuilder:
    """
    Stages assets, usages and orphan references for one scan.

    Attributes:
        resolver: Reachability resolver for the scan's content graph
        max_retries: Retries for transient graph reads during resolution
        retry_delay_seconds: Delay between those retries
    """

    def __init__(
        self,
        resolver: ReachabilityResolver,
        max_retries: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
    ):
        self.resolver = resolver
        self.max_retries = settings.scan_max_retries if max_retries is None else max_retries
        self.retry_delay_seconds = (
            settings.scan_retry_delay_seconds if retry_delay_seconds is None else retry_delay_seconds
        )
        self._assets: Dict[str, uuid.UUID] = {}
        self._usages: Dict[UsageKey, uuid.UUID] = {}
        self._orphans: Set[OrphanKey] = set()
        self.totals = StageStats()

    @property
    def staged_asset_count(self) -> int:
        return len(self._assets)

    def staged_asset_id(self, url_hash: str) -> Optional[uuid.UUID]:
        return self._assets.get(url_hash)

    async def stage_chunk(self, session: AsyncSession, sightings: Iterable[Sighting]) -> StageStats:
        """
        Stage one chunk of sightings.

        The caller owns the transaction; rows are flushed but not committed.

        Args:
            session: Session the staged rows are written through
            sightings: Sightings produced by a scanner for one chunk

        Returns:
            StageStats for this chunk
        """
        stats = StageStats()

        for sighting in sightings:
            asset_id = self._asset_for(session, sighting.candidate, stats)
            if asset_id is None or sighting.host is None:
                continue

            result = await retry_on_transient_error(
                self.resolver.resolve,
                sighting.host,
                description=f"reachability of {sighting.host}",
                max_retries=self.max_retries,
                retry_delay_seconds=self.retry_delay_seconds,
            )

            if isinstance(result, Reachable):
                await self._record_usage(session, asset_id, result, sighting, stats)
            elif isinstance(result, Orphan):
                self._record_orphan(session, asset_id, result, sighting, stats)
            elif isinstance(result, NotFound):
                stats.missing_hosts += 1
                logger.debug(f"Host {result.ref} no longer exists; reference not recorded")

        await session.flush()
        self.totals.add(stats)
        return stats

    # =========================================================================
    # ROW WRITERS
    # =========================================================================

    def _asset_for(self, session: AsyncSession, candidate: AssetCandidate, stats: StageStats) -> Optional[uuid.UUID]:
        key = candidate.url_hash
        existing = self._assets.get(key)
        if existing is not None:
            return existing

        if candidate.local_reference:
            stats.dropped_references += 1
            logger.debug(f"No staged asset for local reference {candidate.identity}; dropped")
            return None

        asset = AssetItem(
            id=uuid.uuid4(),
            url_hash=key,
            source_type=candidate.source_type,
            fid=candidate.fid,
            media_id=candidate.media_id,
            asset_type=candidate.asset_type,
            category=candidate.category,
            sort_order=candidate.sort_order,
            file_path=candidate.identity,
            url=candidate.url,
            file_name=candidate.file_name,
            mime_type=candidate.mime_type,
            filesize=candidate.filesize,
            is_private=candidate.is_private,
            is_temp=True,
        )
        session.add(asset)
        self._assets[key] = asset.id
        stats.assets += 1
        return asset.id

    async def _record_usage(
        self,
        session: AsyncSession,
        asset_id: uuid.UUID,
        result: Reachable,
        sighting: Sighting,
        stats: StageStats,
    ) -> None:
        field_name = sighting.field_name or ""
        key = (asset_id, result.root.entity_type, result.root.entity_id, field_name)
        occurrences = max(1, sighting.occurrences)

        usage_id = self._usages.get(key)
        if usage_id is not None:
            await session.flush()
            await session.execute(
                update(AssetUsage)
                .where(AssetUsage.id == usage_id)
                .values(count=AssetUsage.count + occurrences)
            )
            stats.usage_increments += 1
            return

        usage = AssetUsage(
            id=uuid.uuid4(),
            asset_id=asset_id,
            entity_type=result.root.entity_type,
            entity_id=result.root.entity_id,
            field_name=field_name,
            embed_method=sighting.embed_method or "field_reference",
            count=occurrences,
            presentation_type=sighting.presentation_type,
            accessibility_signals=sighting.accessibility_signals,
        )
        session.add(usage)
        self._usages[key] = usage.id
        stats.usages += 1

    def _record_orphan(
        self,
        session: AsyncSession,
        asset_id: uuid.UUID,
        result: Orphan,
        sighting: Sighting,
        stats: StageStats,
    ) -> None:
        field_name = sighting.field_name or ""
        embed_method = sighting.embed_method or "field_reference"
        key = (asset_id, result.source.entity_type, result.source.entity_id, field_name, embed_method)
        if key in self._orphans:
            return

        session.add(
            OrphanReference(
                id=uuid.uuid4(),
                asset_id=asset_id,
                source_entity_type=result.source.entity_type,
                source_entity_id=result.source.entity_id,
                source_bundle=result.bundle,
                source_revision_id=result.revision_id,
                field_name=field_name,
                embed_method=embed_method,
                reference_context=result.reason.value,
            )
        )
        self._orphans.add(key)
        stats.orphans += 1
        logger.debug(f"Orphan reference from {result.source} ({result.reason.value}): {result.detail}")

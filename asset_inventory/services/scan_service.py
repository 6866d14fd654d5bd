# ============================================================================
# Asset Inventory - Scan Service
# ============================================================================
"""
Runs inventory scans and tracks their progress.

A scan walks five phases in order, staging every sighting through the
InventoryBuilder and committing once per chunk:

    1. managed_files   file registry
    2. filesystem      loose files on disk (optional)
    3. content         text and link fields
    4. remote_media    oEmbed-style media
    5. menu_links      navigation links

When every phase finishes, the SwapManager promotes the staged generation
in one transaction and archive records are reconciled against the new
inventory. Any failure, timeout or cancellation discards the staged
generation; the live generation is never touched by a scan that does not
complete.

Only one scan runs at a time per service instance.

Usage:
    from asset_inventory.services.scan_service import scan_service

    handle = await scan_service.start_scan(sources)
    status = scan_service.get_scan_status(handle.scan_id)
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..config import settings
from ..core.asset_types import AssetCatalog
from ..core.inventory_builder import InventoryBuilder, StageStats
from ..core.path_resolver import PathResolver
from ..core.reachability import ReachabilityResolver
from ..core.scanners import (
    BaseScanner,
    ContentFieldScanner,
    FilesystemScanner,
    ManagedFileScanner,
    MenuLinkScanner,
    RemoteMediaScanner,
)
from ..core.sources import ScanSources
from ..core.swap_manager import SwapManager, swap_manager
from ..exceptions import RecordNotFoundError, ScanInProgressError
from .database_service import database_service

logger = logging.getLogger("asset_inventory.services.scan")


class ScanPhase(str, Enum):
    PENDING = "pending"
    MANAGED_FILES = "managed_files"
    FILESYSTEM = "filesystem"
    CONTENT = "content"
    REMOTE_MEDIA = "remote_media"
    MENU_LINKS = "menu_links"
    PROMOTING = "promoting"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ScanHandle:
    scan_id: str


@dataclass
class ScanSession:
    """
    Progress of one scan.

    processed/total count records in the current phase.
    """
    scan_id: str
    phase: str = ScanPhase.PENDING.value
    processed: int = 0
    total: int = 0
    done: bool = False
    error: Optional[str] = None
    skipped: int = 0
    stats: StageStats = field(default_factory=StageStats)
    promotion: Dict[str, int] = field(default_factory=dict)
    phases_completed: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None

    @property
    def succeeded(self) -> bool:
        return self.done and self.phase == ScanPhase.COMPLETED.value

    def status(self) -> Dict[str, Any]:
        return {
            "scan_id": self.scan_id,
            "phase": self.phase,
            "processed": self.processed,
            "total": self.total,
            "done": self.done,
            "error": self.error,
            "skipped": self.skipped,
            "stats": self.stats.to_dict(),
            "promotion": dict(self.promotion),
            "phases_completed": list(self.phases_completed),
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class ScanService:
    """
    Scan orchestration with single-writer guard and discard-on-failure.

    Attributes:
        session_factory: Callable returning an async session context manager
        swap: SwapManager used to clear, discard and promote generations
        timeout_seconds: Optional wall-clock limit for a whole scan
        reconcile_archives: Reconcile archive records after a successful swap
    """

    def __init__(
        self,
        session_factory: Optional[Callable] = None,
        swap: Optional[SwapManager] = None,
        resolver: Optional[PathResolver] = None,
        catalog: Optional[AssetCatalog] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
        reconcile_archives: bool = True,
    ):
        self.session_factory = session_factory or database_service.get_session
        self.swap = swap or swap_manager
        self.resolver = resolver
        self.catalog = catalog
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.scan_timeout_seconds
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self.reconcile_archives = reconcile_archives

        self._sessions: Dict[str, ScanSession] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._active_scan_id: Optional[str] = None

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @property
    def active_scan_id(self) -> Optional[str]:
        return self._active_scan_id

    async def start_scan(self, sources: ScanSources) -> ScanHandle:
        """
        Start a scan in the background.

        Args:
            sources: Content graph and record sources to scan

        Returns:
            ScanHandle identifying the scan

        Raises:
            ScanInProgressError: If a scan is already running
        """
        scan = self._begin()
        self._tasks[scan.scan_id] = asyncio.create_task(
            self._run(scan, sources), name=f"scan-{scan.scan_id}"
        )
        return ScanHandle(scan.scan_id)

    async def run_scan(self, sources: ScanSources) -> ScanSession:
        """
        Run a scan to completion in the current task.

        Failures are reported on the returned session rather than raised.

        Raises:
            ScanInProgressError: If a scan is already running
        """
        scan = self._begin()
        await self._run(scan, sources)
        return scan

    def get_scan_status(self, scan_id: str) -> Dict[str, Any]:
        return self._get(scan_id).status()

    def get_scan(self, scan_id: str) -> ScanSession:
        return self._get(scan_id)

    async def cancel_scan(self, scan_id: str) -> bool:
        """
        Cancel a running scan. Its staged rows are discarded.

        Returns:
            True if a running scan was cancelled, False if it had already finished
        """
        scan = self._get(scan_id)
        task = self._tasks.get(scan_id)
        if scan.done or task is None or task.done():
            return False

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return True

    async def wait(self, scan_id: str) -> ScanSession:
        """Wait for a background scan to finish."""
        scan = self._get(scan_id)
        task = self._tasks.get(scan_id)
        if task is not None:
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise
        return scan

    # =========================================================================
    # EXECUTION
    # =========================================================================

    def _begin(self) -> ScanSession:
        if self._active_scan_id is not None:
            raise ScanInProgressError(f"Scan {self._active_scan_id} is already running")
        scan = ScanSession(scan_id=str(uuid.uuid4()))
        self._sessions[scan.scan_id] = scan
        self._active_scan_id = scan.scan_id
        logger.info(f"Scan {scan.scan_id} started")
        return scan

    def _get(self, scan_id: str) -> ScanSession:
        scan = self._sessions.get(scan_id)
        if scan is None:
            raise RecordNotFoundError(f"Scan {scan_id} not found")
        return scan

    def build_scanners(self, sources: ScanSources) -> List[BaseScanner]:
        common = {
            "resolver": self.resolver,
            "catalog": self.catalog,
            "max_retries": self.max_retries,
            "retry_delay_seconds": self.retry_delay_seconds,
        }
        scanners: List[BaseScanner] = [ManagedFileScanner(sources.managed_files, **common)]
        if sources.scan_filesystem:
            scanners.append(FilesystemScanner(**common))
        scanners.extend(
            [
                ContentFieldScanner(sources.content_fields, **common),
                RemoteMediaScanner(sources.remote_media, **common),
                MenuLinkScanner(sources.menu_links, **common),
            ]
        )
        return scanners

    async def _run(self, scan: ScanSession, sources: ScanSources) -> None:
        try:
            if self.timeout_seconds:
                await asyncio.wait_for(self._execute(scan, sources), timeout=self.timeout_seconds)
            else:
                await self._execute(scan, sources)
        except asyncio.CancelledError:
            scan.phase = ScanPhase.CANCELLED.value
            scan.error = "Scan cancelled"
            logger.warning(f"Scan {scan.scan_id} cancelled; discarding staged rows")
            await self._discard(scan)
            raise
        except asyncio.TimeoutError:
            scan.phase = ScanPhase.FAILED.value
            scan.error = f"Scan exceeded {self.timeout_seconds}s timeout"
            logger.error(f"Scan {scan.scan_id} timed out; discarding staged rows")
            await self._discard(scan)
        except Exception as e:
            scan.phase = ScanPhase.FAILED.value
            scan.error = str(e) or type(e).__name__
            logger.error(f"Scan {scan.scan_id} failed: {e}", exc_info=True)
            await self._discard(scan)
        finally:
            scan.done = True
            scan.finished_at = datetime.utcnow()
            if self._active_scan_id == scan.scan_id:
                self._active_scan_id = None

    async def _execute(self, scan: ScanSession, sources: ScanSources) -> None:
        async with self.session_factory() as session:
            await self.swap.clear_staging(session)

        builder = InventoryBuilder(
            ReachabilityResolver(sources.graph),
            max_retries=self.max_retries,
            retry_delay_seconds=self.retry_delay_seconds,
        )
        scan.stats = builder.totals

        for scanner in self.build_scanners(sources):
            scan.phase = scanner.phase
            scan.processed = 0
            scan.total = await scanner.total()
            logger.info(f"Scan {scan.scan_id}: phase {scanner.phase} ({scan.total} records)")

            async for record_count, sightings in scanner.iter_chunks(scan.total):
                async with self.session_factory() as session:
                    await builder.stage_chunk(session, sightings)
                scan.processed += record_count

            scan.skipped += scanner.skipped
            scan.phases_completed.append(scanner.phase)

        scan.phase = ScanPhase.PROMOTING.value
        async with self.session_factory() as session:
            scan.promotion = await self.swap.promote(session)

        scan.phase = ScanPhase.COMPLETED.value
        logger.info(
            f"Scan {scan.scan_id} completed: {builder.staged_asset_count} assets, "
            f"{scan.stats.usages} usages, {scan.stats.orphans} orphans, {scan.skipped} records skipped"
        )

        if self.reconcile_archives:
            await self._reconcile_archives(scan)

    async def _discard(self, scan: ScanSession) -> None:
        try:
            async with self.session_factory() as session:
                await self.swap.discard(session)
        except Exception as e:
            logger.error(f"Scan {scan.scan_id}: failed to discard staged rows: {e}")

    async def _reconcile_archives(self, scan: ScanSession) -> None:
        from .archive_service import archive_service

        try:
            async with self.session_factory() as session:
                summary = await archive_service.validate_archived_files(session)
            logger.info(f"Scan {scan.scan_id}: archive reconciliation {summary}")
        except Exception as e:
            # The new generation is already live; reconciliation runs again on demand
            logger.error(f"Scan {scan.scan_id}: archive reconciliation failed: {e}")


# Global scan service instance
scan_service = ScanService()

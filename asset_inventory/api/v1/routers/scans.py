# asset_inventory/api/v1/routers/scans.py
"""
Scans API Router.

Starts inventory scans from a site snapshot and reports their progress.
Only one scan runs at a time; starting a second one returns 409.
"""

import logging

from fastapi import APIRouter, HTTPException

from ....config import settings
from ....core.sources import SiteSnapshot
from ....services.scan_service import scan_service
from ..models import ScanRequest, ScanStatusResponse

logger = logging.getLogger("asset_inventory.api.scans")

router = APIRouter(prefix="/scans", tags=["scans"])


@router.post(
    "",
    response_model=ScanStatusResponse,
    status_code=202,
    summary="Start a scan",
    description="Start a background inventory scan of a YAML site snapshot.",
)
async def start_scan(request: ScanRequest) -> ScanStatusResponse:
    snapshot_path = request.snapshot_path or settings.site_snapshot_file
    if not snapshot_path:
        raise HTTPException(status_code=400, detail="No snapshot_path given and SITE_SNAPSHOT_FILE is not set")

    try:
        snapshot = SiteSnapshot.from_yaml(snapshot_path)
    except FileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    sources = snapshot.to_sources()
    if request.scan_filesystem is not None:
        sources.scan_filesystem = request.scan_filesystem

    handle = await scan_service.start_scan(sources)
    logger.info(f"Scan {handle.scan_id} started from {snapshot_path}")
    return ScanStatusResponse(**scan_service.get_scan_status(handle.scan_id))


@router.get(
    "/{scan_id}",
    response_model=ScanStatusResponse,
    summary="Get scan status",
)
async def get_scan_status(scan_id: str) -> ScanStatusResponse:
    """Phase, progress within the phase, and the error of a failed scan."""
    return ScanStatusResponse(**scan_service.get_scan_status(scan_id))


@router.post(
    "/{scan_id}/cancel",
    response_model=ScanStatusResponse,
    summary="Cancel a scan",
    description="Cancel a running scan. Its staged rows are discarded; the live inventory is untouched.",
)
async def cancel_scan(scan_id: str) -> ScanStatusResponse:
    cancelled = await scan_service.cancel_scan(scan_id)
    if not cancelled:
        logger.info(f"Scan {scan_id} had already finished; nothing to cancel")
    return ScanStatusResponse(**scan_service.get_scan_status(scan_id))

# asset_inventory/api/v1/routers/archives.py
"""
Archives API Router.

Archive lifecycle actions, notes, reconciliation and the audit export.

Every action takes the acting user from the X-Actor header and an optional
expected_version for optimistic concurrency. Errors map to HTTP status codes
in main.py: unknown record 404, disallowed transition or stale version 409,
invalid input 422.
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from ....database.base import get_db
from ....services.archive_service import archive_service
from ....services.audit_export_service import audit_export_service, export_filename
from ..models import (
    ArchiveActionSummary,
    ArchiveRecordResponse,
    ContentModifiedRequest,
    EditArchiveRequest,
    ExecuteArchiveRequest,
    ManualEntryRequest,
    NoteRequest,
    NoteResponse,
    QueueArchiveRequest,
    ReconcileResponse,
    VersionedActionRequest,
)

logger = logging.getLogger("asset_inventory.api.archives")

router = APIRouter(prefix="/archives", tags=["archives"])


def _record(record) -> ArchiveRecordResponse:
    return ArchiveRecordResponse.model_validate(record)


# ============================================================================
# LISTING AND EXPORT
# ============================================================================

@router.get("", response_model=List[ArchiveRecordResponse], summary="List archive records")
async def list_archives(
    status: Optional[List[str]] = Query(None, description="Only these statuses"),
    manual: Optional[bool] = Query(None, description="Only manual entries (true) or file archives (false)"),
    session: AsyncSession = Depends(get_db),
) -> List[ArchiveRecordResponse]:
    records = await archive_service.list_records(session, statuses=status, manual=manual)
    return [_record(r) for r in records]


@router.get(
    "/export",
    summary="Audit export",
    description="Every archive record as CSV, newest classification first.",
    response_class=Response,
)
async def export_archives(session: AsyncSession = Depends(get_db)) -> Response:
    content = await audit_export_service.export_csv(session)
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename()}"',
            "Cache-Control": "no-cache, no-store, must-revalidate",
        },
    )


@router.get("/{record_id}", response_model=ArchiveRecordResponse, summary="Get archive record")
async def get_archive(record_id: UUID, session: AsyncSession = Depends(get_db)) -> ArchiveRecordResponse:
    return _record(await archive_service.get_record(session, record_id))


# ============================================================================
# FILE ARCHIVES
# ============================================================================

@router.post("", response_model=ArchiveRecordResponse, status_code=201, summary="Queue a file for archiving")
async def queue_archive(
    request: QueueArchiveRequest,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    session: AsyncSession = Depends(get_db),
) -> ArchiveRecordResponse:
    record = await archive_service.queue(
        session,
        request.asset_id,
        reason=request.archive_reason,
        public_description=request.public_description,
        reason_other=request.archive_reason_other,
        internal_notes=request.internal_notes,
        actor=actor,
    )
    return _record(record)


@router.post("/{record_id}/execute", response_model=ArchiveRecordResponse, summary="Execute a queued archive")
async def execute_archive(
    record_id: UUID,
    request: ExecuteArchiveRequest,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    session: AsyncSession = Depends(get_db),
) -> ArchiveRecordResponse:
    record = await archive_service.execute(
        session, record_id, request.visibility, actor=actor, expected_version=request.expected_version
    )
    return _record(record)


@router.post("/{record_id}/toggle-visibility", response_model=ArchiveRecordResponse, summary="Toggle visibility")
async def toggle_visibility(
    record_id: UUID,
    request: VersionedActionRequest,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    session: AsyncSession = Depends(get_db),
) -> ArchiveRecordResponse:
    record = await archive_service.toggle_visibility(
        session, record_id, actor=actor, expected_version=request.expected_version
    )
    return _record(record)


@router.post("/{record_id}/unarchive", response_model=ArchiveRecordResponse, summary="Unarchive")
async def unarchive(
    record_id: UUID,
    request: VersionedActionRequest,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    session: AsyncSession = Depends(get_db),
) -> ArchiveRecordResponse:
    record = await archive_service.unarchive(
        session, record_id, actor=actor, expected_version=request.expected_version
    )
    return _record(record)


@router.post(
    "/{record_id}/delete-file",
    response_model=ArchiveRecordResponse,
    summary="Delete the archived file",
    description="Remove the underlying file from storage; the record is kept as archived_deleted.",
)
async def delete_underlying(
    record_id: UUID,
    request: VersionedActionRequest,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    session: AsyncSession = Depends(get_db),
) -> ArchiveRecordResponse:
    record = await archive_service.delete_underlying(
        session, record_id, actor=actor, expected_version=request.expected_version
    )
    return _record(record)


@router.post("/{record_id}/remove-from-queue", response_model=ArchiveRecordResponse, summary="Remove from queue")
async def remove_from_queue(
    record_id: UUID,
    request: VersionedActionRequest,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    session: AsyncSession = Depends(get_db),
) -> ArchiveRecordResponse:
    record = await archive_service.remove_from_queue(
        session, record_id, actor=actor, expected_version=request.expected_version
    )
    return _record(record)


# ============================================================================
# MANUAL ENTRIES
# ============================================================================

@router.post(
    "/manual",
    response_model=ArchiveRecordResponse,
    status_code=201,
    summary="Archive a page or external resource",
)
async def create_manual_entry(
    request: ManualEntryRequest,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    session: AsyncSession = Depends(get_db),
) -> ArchiveRecordResponse:
    record = await archive_service.create_manual_entry(
        session,
        title=request.title,
        url=request.url,
        asset_type=request.asset_type,
        reason=request.archive_reason,
        public_description=request.public_description,
        visibility=request.visibility,
        reason_other=request.archive_reason_other,
        internal_notes=request.internal_notes,
        actor=actor,
    )
    return _record(record)


@router.patch("/{record_id}", response_model=ArchiveRecordResponse, summary="Edit a manual entry")
async def edit_manual_entry(
    record_id: UUID,
    request: EditArchiveRequest,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    session: AsyncSession = Depends(get_db),
) -> ArchiveRecordResponse:
    record = await archive_service.edit(
        session,
        record_id,
        actor=actor,
        expected_version=request.expected_version,
        title=request.title,
        reason=request.archive_reason,
        reason_other=request.archive_reason_other,
        public_description=request.public_description,
        internal_notes=request.internal_notes,
    )
    return _record(record)


@router.post("/{record_id}/remove", response_model=ArchiveRecordResponse, summary="Remove a manual entry")
async def remove_entry(
    record_id: UUID,
    request: VersionedActionRequest,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    session: AsyncSession = Depends(get_db),
) -> ArchiveRecordResponse:
    record = await archive_service.remove_entry(
        session, record_id, actor=actor, expected_version=request.expected_version
    )
    return _record(record)


@router.post(
    "/content-modified",
    response_model=List[ArchiveRecordResponse],
    summary="Report a modified page",
    description="Void or close archived page entries whose content changed.",
)
async def content_modified(
    request: ContentModifiedRequest,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    session: AsyncSession = Depends(get_db),
) -> List[ArchiveRecordResponse]:
    records = await archive_service.handle_content_modified(session, request.url, actor=actor)
    return [_record(r) for r in records]


# ============================================================================
# MAINTENANCE
# ============================================================================

@router.post("/reconcile", response_model=ReconcileResponse, summary="Reconcile file archives")
async def reconcile(session: AsyncSession = Depends(get_db)) -> ReconcileResponse:
    summary = await archive_service.validate_archived_files(session)
    return ReconcileResponse(**summary)


@router.post("/process-checksums", response_model=ArchiveActionSummary, summary="Compute pending checksums")
async def process_checksums(session: AsyncSession = Depends(get_db)) -> ArchiveActionSummary:
    processed = await archive_service.process_pending_checksums(session)
    return ArchiveActionSummary(processed=processed)


# ============================================================================
# NOTES
# ============================================================================

@router.get("/{record_id}/notes", response_model=List[NoteResponse], summary="List notes")
async def list_notes(record_id: UUID, session: AsyncSession = Depends(get_db)) -> List[NoteResponse]:
    notes = await archive_service.list_notes(session, record_id)
    return [NoteResponse.model_validate(n) for n in notes]


@router.post("/{record_id}/notes", response_model=NoteResponse, status_code=201, summary="Add a note")
async def add_note(
    record_id: UUID,
    request: NoteRequest,
    actor: Optional[str] = Header(None, alias="X-Actor"),
    session: AsyncSession = Depends(get_db),
) -> NoteResponse:
    note = await archive_service.add_note(session, record_id, request.note_text, author=actor)
    return NoteResponse.model_validate(note)

"""
Request and response models for API v1.

Response models read straight from ORM rows (from_attributes), so routers
can hand back service results without copying fields by hand.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


# ============================================================================
# ERROR MODELS
# ============================================================================

class ErrorResponse(BaseModel):
    """
    Standard error response model for API errors.

    Attributes:
        error: Error category or type
        detail: Detailed error message
        timestamp: When the error occurred
        issues: Blocking issues (archive execution gates only)
    """
    error: str = Field(description="Error category or type")
    detail: Optional[str] = Field(default=None, description="Detailed error message")
    timestamp: datetime = Field(default_factory=datetime.now, description="Timestamp when error occurred")
    issues: Optional[List[str]] = Field(default=None, description="Blocking issues, when any")


# ============================================================================
# SCANS
# ============================================================================

class ScanRequest(BaseModel):
    """Start a scan from a site snapshot file."""
    snapshot_path: Optional[str] = Field(
        default=None, description="YAML site snapshot; defaults to SITE_SNAPSHOT_FILE"
    )
    scan_filesystem: Optional[bool] = Field(
        default=None, description="Override the snapshot's filesystem phase switch"
    )


class ScanStatusResponse(BaseModel):
    scan_id: str
    phase: str
    processed: int
    total: int
    done: bool
    error: Optional[str] = None
    skipped: int = 0
    stats: Dict[str, int] = Field(default_factory=dict)
    promotion: Dict[str, int] = Field(default_factory=dict)
    phases_completed: List[str] = Field(default_factory=list)
    started_at: datetime
    finished_at: Optional[datetime] = None


# ============================================================================
# INVENTORY
# ============================================================================

class AssetResponse(BaseModel):
    id: UUID
    url_hash: str
    source_type: str
    fid: Optional[int] = None
    media_id: Optional[int] = None
    asset_type: str
    category: str
    file_path: str
    url: Optional[str] = None
    file_name: str
    mime_type: Optional[str] = None
    filesize: Optional[int] = None
    is_private: bool
    created_at: datetime

    class Config:
        from_attributes = True


class AssetsListResponse(BaseModel):
    items: List[AssetResponse]
    total: int
    limit: int
    offset: int


class UsageResponse(BaseModel):
    entity_type: str
    entity_id: str
    field_name: str
    embed_method: str
    count: int
    presentation_type: Optional[str] = None
    accessibility_signals: Optional[Dict[str, str]] = None

    class Config:
        from_attributes = True


class OrphanResponse(BaseModel):
    source_entity_type: str
    source_entity_id: str
    source_bundle: Optional[str] = None
    field_name: str
    embed_method: str
    reference_context: str
    detected_at: datetime

    class Config:
        from_attributes = True


class UsageSummaryResponse(BaseModel):
    """Usage counts for one asset; orphan references never count as usage."""
    asset_id: UUID
    usage_count: int
    orphan_count: int
    classification: str = Field(description="in_use, orphan_only or unused")
    usages: List[UsageResponse] = Field(default_factory=list)
    orphans: List[OrphanResponse] = Field(default_factory=list)


# ============================================================================
# ARCHIVES
# ============================================================================

class QueueArchiveRequest(BaseModel):
    asset_id: UUID
    archive_reason: str
    public_description: str
    archive_reason_other: Optional[str] = None
    internal_notes: Optional[str] = None


class ManualEntryRequest(BaseModel):
    title: str
    url: str
    asset_type: str = Field(description="page or external")
    archive_reason: str
    public_description: str
    visibility: str = "public"
    archive_reason_other: Optional[str] = None
    internal_notes: Optional[str] = None


class ExecuteArchiveRequest(BaseModel):
    visibility: str = Field(description="public or admin")
    expected_version: Optional[int] = None


class VersionedActionRequest(BaseModel):
    expected_version: Optional[int] = None


class EditArchiveRequest(BaseModel):
    expected_version: Optional[int] = None
    title: Optional[str] = None
    archive_reason: Optional[str] = None
    archive_reason_other: Optional[str] = None
    public_description: Optional[str] = None
    internal_notes: Optional[str] = None


class ContentModifiedRequest(BaseModel):
    url: str


class NoteRequest(BaseModel):
    note_text: str


class NoteResponse(BaseModel):
    id: UUID
    archive_id: UUID
    note_text: str
    author: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class ArchiveRecordResponse(BaseModel):
    id: UUID
    version: int
    original_fid: Optional[int] = None
    original_path: str
    archive_path: Optional[str] = None
    file_name: str
    archive_reason: str
    archive_reason_other: Optional[str] = None
    public_description: str
    internal_notes: Optional[str] = None
    asset_type: str
    mime_type: Optional[str] = None
    filesize: Optional[int] = None
    is_private: bool
    status: str
    archive_type: str
    archive_classification_date: Optional[datetime] = None
    file_checksum: Optional[str] = None
    flag_usage: bool
    flag_missing: bool
    flag_integrity: bool
    flag_late_archive: bool
    flag_prior_void: bool
    flag_modified: bool
    archived_while_in_use: bool
    usage_count_at_archive: Optional[int] = None
    archived_by: Optional[str] = None
    created_at: datetime
    deleted_date: Optional[datetime] = None
    deleted_by: Optional[str] = None

    class Config:
        from_attributes = True


class ReconcileResponse(BaseModel):
    checked: int
    flagged: int
    closed: int
    voided: int


class ArchiveActionSummary(BaseModel):
    """Generic count result for bulk archive maintenance."""
    processed: int
    details: Dict[str, Any] = Field(default_factory=dict)

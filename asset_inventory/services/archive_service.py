# ============================================================================
# Asset Inventory - Archive Service
# ============================================================================
"""
Archive lifecycle state machine.

States:
    queued             file marked for archiving, not yet classified
    archived_public    classified, listed on the public archive registry
    archived_admin     classified, visible to administrators only
    archived_deleted   terminal: removed from the registry (no compliance impact)
    exemption_void     terminal: content changed after a pre-deadline archive

Transitions:
    queue              (new record)        -> queued            file assets only
    execute            queued              -> archived_*        stamps classification date
    create_manual_entry (new record)       -> archived_*        pages / external URLs
    toggle_visibility  archived_public    <-> archived_admin
    unarchive          archived_*          -> archived_deleted
    delete_underlying  archived_*          -> archived_deleted  file archives, removes the file
    remove_entry       archived_*          -> archived_deleted  manual entries
    remove_from_queue  queued              -> archived_deleted
    integrity change   archived_*          -> exemption_void    pre-deadline category
                                           -> archived_deleted  post-deadline category

The archive category is decided once, at classification: records classified
after the compliance deadline, and every record for a target that already
has an exemption_void record, are post-deadline ("General Archive").
Everything else is pre-deadline ("Legacy Archive").

Terminal records never change again; only notes may be appended. The ORM
layer enforces the same rule independently (see database/models.py).

Every action takes the caller's session and flushes its changes. The
session context manager commits or rolls back, so an action either applies
completely or leaves no trace.

Usage:
    from asset_inventory.services.archive_service import archive_service

    async with database_service.get_session() as session:
        record = await archive_service.queue(
            session, asset_id, reason="reference",
            public_description="Annual report kept for reference purposes.",
            actor="editor@example.edu",
        )
        record = await archive_service.execute(session, record.id, "public", actor="editor@example.edu")
"""

import asyncio
import hashlib
import logging
import re
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional
from urllib.parse import urlsplit

from sqlalchemy import inspect, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from ..config import settings
from ..core.asset_types import AssetCatalog, asset_catalog
from ..core.path_resolver import PathResolver, normalize_url, path_resolver, url_hash
from ..database.models import (
    ARCHIVED_STATUSES,
    BLOCKING_STATUSES,
    MANUAL_ASSET_TYPES,
    ArchiveNote,
    ArchiveReason,
    ArchiveRecord,
    ArchiveStatus,
    SourceType,
)
from ..exceptions import (
    ExecutionBlockedError,
    InvalidTransitionError,
    RecordNotFoundError,
    StaleVersionError,
    ValidationError,
)
from .inventory_service import InventoryService, inventory_service

logger = logging.getLogger("asset_inventory.services.archive")

MIN_REASON_OTHER_LENGTH = 10
MIN_DESCRIPTION_LENGTH = 20
MAX_NOTE_LENGTH = 500
CHECKSUM_BLOCK_SIZE = 1024 * 1024
SYSTEM_ACTOR = "system"

VISIBILITY_STATUSES = {
    "public": ArchiveStatus.ARCHIVED_PUBLIC.value,
    "admin": ArchiveStatus.ARCHIVED_ADMIN.value,
}
FILE_SOURCE_TYPES = frozenset({SourceType.REGISTERED_FILE.value, SourceType.LOOSE_FILE.value})

_FILE_STORAGE_PATH = re.compile(r"/(sites/[^/]+/files|system/files)(/|$)", re.IGNORECASE)
_FILE_EXTENSION_URL = re.compile(
    r"\.(pdf|doc|docx|xls|xlsx|ppt|pptx|txt|csv|mp4|webm|mov|avi|jpg|jpeg|png|gif|svg|webp|ico|bmp|"
    r"tiff|avif|mp3|wav|m4a|ogg|flac|aac|wma|zip|tar|gz|7z|rar)$",
    re.IGNORECASE,
)
_MEDIA_URL = re.compile(r"/media/\d+", re.IGNORECASE)
_INCOMPLETE_NODE_PATH = re.compile(r"^/?node/?$", re.IGNORECASE)
_MEDIA_PATH = re.compile(r"^(entity:media/\d+|/?media/\d+)$", re.IGNORECASE)
_USER_PATH = re.compile(r"^/?user/\d+$", re.IGNORECASE)
_ENTITY_URI = re.compile(r"^entity:(\w+)/(\d+)$")
_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)
_LOCAL_HOSTS = ("localhost", "127.0.0.1")


def compute_checksum(path: Path) -> str:
    """SHA-256 hex digest of a file, read in blocks."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(CHECKSUM_BLOCK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def is_file_storage_url(url: str) -> bool:
    """True for URLs that point at stored files, media pages or folders."""
    path = urlsplit(url).path if _HTTP_URL.match(url) else url
    return bool(
        _FILE_STORAGE_PATH.search(path)
        or _FILE_EXTENSION_URL.search(path)
        or _MEDIA_URL.search(path)
        or url.endswith("/")
    )


class ArchiveService:
    """
    Service for archive records: actions, reconciliation and notes.

    Attributes:
        resolver: Maps archived stream URIs to files on disk
        inventory: Live-usage lookups
        catalog: Archivable category rules
        compliance_deadline: Naive UTC cutoff between archive categories
        allow_archive_in_use: Permit executing and toggling while in use
        checksum_size_limit: Files larger than this get their checksum later
    """

    def __init__(
        self,
        resolver: Optional[PathResolver] = None,
        inventory: Optional[InventoryService] = None,
        catalog: Optional[AssetCatalog] = None,
        compliance_deadline: Optional[datetime] = None,
        allow_archive_in_use: Optional[bool] = None,
        checksum_size_limit: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.resolver = resolver or path_resolver
        self.inventory = inventory or inventory_service
        self.catalog = catalog or asset_catalog
        deadline = compliance_deadline or settings.compliance_deadline
        if deadline.tzinfo is not None:
            deadline = deadline.astimezone(timezone.utc).replace(tzinfo=None)
        self.compliance_deadline = deadline
        self.allow_archive_in_use = (
            settings.allow_archive_in_use if allow_archive_in_use is None else allow_archive_in_use
        )
        self.checksum_size_limit = (
            settings.checksum_size_limit if checksum_size_limit is None else checksum_size_limit
        )
        self._clock = clock or datetime.utcnow

    def now(self) -> datetime:
        return self._clock()

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def get_record(
        self, session: AsyncSession, record_id: uuid.UUID, expected_version: Optional[int] = None
    ) -> ArchiveRecord:
        """
        Load an archive record, optionally checking its version.

        Raises:
            RecordNotFoundError: If the record does not exist
            StaleVersionError: If expected_version does not match
        """
        record = await session.get(ArchiveRecord, record_id)
        if record is None:
            raise RecordNotFoundError(f"Archive record {record_id} not found")
        if expected_version is not None and record.version != expected_version:
            raise StaleVersionError(
                f"Archive record {record_id} is at version {record.version}, expected {expected_version}",
                expected=expected_version,
                actual=record.version,
            )
        return record

    async def list_records(
        self,
        session: AsyncSession,
        statuses: Optional[Iterable[str]] = None,
        manual: Optional[bool] = None,
    ) -> List[ArchiveRecord]:
        query = select(ArchiveRecord)
        if statuses:
            query = query.where(ArchiveRecord.status.in_(list(statuses)))
        if manual is True:
            query = query.where(ArchiveRecord.asset_type.in_(list(MANUAL_ASSET_TYPES)))
        elif manual is False:
            query = query.where(ArchiveRecord.asset_type.notin_(list(MANUAL_ASSET_TYPES)))
        query = query.order_by(ArchiveRecord.created_at, ArchiveRecord.id)
        result = await session.execute(query)
        return list(result.scalars().all())

    def _target_clause(self, fid: Optional[int], path: str):
        if fid:
            return or_(ArchiveRecord.original_fid == fid, ArchiveRecord.original_path == path)
        return ArchiveRecord.original_path == path

    async def find_open_record(
        self, session: AsyncSession, fid: Optional[int], path: str
    ) -> Optional[ArchiveRecord]:
        """Queued or archived record for the same file id or path, if any."""
        return await session.scalar(
            select(ArchiveRecord)
            .where(self._target_clause(fid, path), ArchiveRecord.status.in_(list(BLOCKING_STATUSES)))
            .limit(1)
        )

    async def has_voided_exemption(self, session: AsyncSession, fid: Optional[int], path: str) -> bool:
        """True when any record for the same target ever reached exemption_void."""
        found = await session.scalar(
            select(ArchiveRecord.id)
            .where(
                self._target_clause(fid, path),
                ArchiveRecord.status == ArchiveStatus.EXEMPTION_VOID.value,
            )
            .limit(1)
        )
        return found is not None

    async def usage_count(self, session: AsyncSession, record: ArchiveRecord) -> int:
        """Live usage of the record's target; manual entries have none."""
        if record.is_manual_entry:
            return 0
        return await self.inventory.usage_count_for_hash(session, record.asset_url_hash)

    def source_path(self, record: ArchiveRecord) -> Optional[Path]:
        return self.resolver.stream_uri_to_path(record.original_path)

    def source_exists(self, record: ArchiveRecord) -> bool:
        path = self.source_path(record)
        return path is not None and path.is_file()

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate_purpose(
        self,
        reason: Optional[str],
        reason_other: Optional[str],
        public_description: Optional[str],
    ) -> None:
        """
        Validate archive reason and public description.

        Raises:
            ValidationError: On an unknown reason, a short custom reason or description
        """
        valid_reasons = {r.value for r in ArchiveReason}
        if not reason or reason not in valid_reasons:
            raise ValidationError(
                f"Invalid archive reason {reason!r}; expected one of {sorted(valid_reasons)}",
                field="archive_reason",
            )
        if reason == ArchiveReason.OTHER.value:
            custom = (reason_other or "").strip()
            if not custom:
                raise ValidationError("Please specify the reason for archiving", field="archive_reason_other")
            if len(custom) < MIN_REASON_OTHER_LENGTH:
                raise ValidationError(
                    f"Custom archive reason must be at least {MIN_REASON_OTHER_LENGTH} characters",
                    field="archive_reason_other",
                )
        description = (public_description or "").strip()
        if not description:
            raise ValidationError("A public description is required", field="public_description")
        if len(description) < MIN_DESCRIPTION_LENGTH:
            raise ValidationError(
                f"Public description must be at least {MIN_DESCRIPTION_LENGTH} characters",
                field="public_description",
            )

    def resolve_manual_url(self, url: str, asset_type: str) -> str:
        """
        Validate and normalize the target of a manual entry.

        Args:
            url: Page path/URL (asset_type "page") or external URL ("external")
            asset_type: "page" or "external"

        Returns:
            Normalized absolute URL

        Raises:
            ValidationError: If the URL is not an archivable page or resource
        """
        value = (url or "").strip()

        if asset_type == "page":
            if not value:
                raise ValidationError("Please enter a page URL or path", field="url")
            if _INCOMPLETE_NODE_PATH.match(value):
                raise ValidationError("Please enter a complete path with an ID, such as node/123", field="url")
            if _MEDIA_PATH.match(value):
                raise ValidationError(
                    "Media entities cannot be archived as pages; archive the file from the inventory",
                    field="url",
                )
            if _USER_PATH.match(value):
                raise ValidationError("User pages cannot be archived", field="url")

            entity = _ENTITY_URI.match(value)
            if entity:
                resolved = f"{self.resolver.site_base_url}/{entity.group(1)}/{entity.group(2)}"
            elif _HTTP_URL.match(value):
                host = (urlsplit(value).hostname or "").lower()
                site_host = (urlsplit(self.resolver.site_base_url).hostname or "").lower()
                if host != site_host and host not in _LOCAL_HOSTS:
                    raise ValidationError("External URLs must be archived as external resources", field="url")
                resolved = value
            else:
                resolved = f"{self.resolver.site_base_url}/{value.lstrip('/')}"

            if is_file_storage_url(resolved):
                raise ValidationError(
                    "File URLs cannot be archived as pages; archive the file from the inventory",
                    field="url",
                )

        elif asset_type == "external":
            if not value:
                raise ValidationError("Please enter an external URL", field="url")
            if not _HTTP_URL.match(value):
                raise ValidationError("Please enter a full URL starting with http:// or https://", field="url")
            if not urlsplit(value).hostname:
                raise ValidationError("Please enter a valid URL", field="url")
            if is_file_storage_url(value):
                raise ValidationError("File URLs cannot be archived as external resources", field="url")
            resolved = value

        else:
            raise ValidationError(f"Unknown manual entry type {asset_type!r}", field="asset_type")

        return normalize_url(resolved)

    def _require_status(self, record: ArchiveRecord, allowed: Iterable[str], action: str) -> None:
        allowed = set(allowed)
        if record.status not in allowed:
            raise InvalidTransitionError(
                f"Cannot {action} archive {record.id}: status is {record.status}",
                status=record.status,
            )

    async def _flush(self, session: AsyncSession, record: ArchiveRecord) -> ArchiveRecord:
        # A failed flush rolls back and expires the record; read its key first
        identity = inspect(record).identity
        try:
            await session.flush()
        except StaleDataError as e:
            record_id = identity[0] if identity else None
            raise StaleVersionError(
                f"Archive record {record_id} was modified concurrently; reload and retry"
            ) from e
        return record

    def _category_flags(self, classified_at: datetime, prior_void: bool) -> Dict[str, bool]:
        late = classified_at > self.compliance_deadline
        return {"flag_late_archive": late or prior_void, "flag_prior_void": prior_void}

    # =========================================================================
    # FILE ARCHIVE ACTIONS
    # =========================================================================

    async def queue(
        self,
        session: AsyncSession,
        asset_id: uuid.UUID,
        reason: str,
        public_description: str,
        reason_other: Optional[str] = None,
        internal_notes: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> ArchiveRecord:
        """
        Mark a live file asset for archiving.

        Args:
            session: Database session
            asset_id: Live AssetItem id
            reason: reference, research, recordkeeping or other
            public_description: Description for the archive registry
            reason_other: Custom reason (required when reason is "other")
            internal_notes: Free-form internal notes
            actor: Who queued the asset

        Returns:
            New ArchiveRecord in the queued state

        Raises:
            RecordNotFoundError: Asset is not in the live inventory
            ValidationError: Asset not archivable, or invalid purpose fields
            InvalidTransitionError: The asset already has an open archive record
        """
        asset = await self.inventory.get_live_asset(session, asset_id)
        if asset.source_type not in FILE_SOURCE_TYPES or not self.catalog.can_archive(asset.category):
            raise ValidationError(
                f"Only {' and '.join(self.catalog.archivable_categories)} files can be archived "
                f"({asset.file_name} is {asset.category})",
                field="asset_id",
            )
        self.validate_purpose(reason, reason_other, public_description)

        existing = await self.find_open_record(session, asset.fid, asset.file_path)
        if existing is not None:
            raise InvalidTransitionError(
                f"{asset.file_name} already has an open archive record "
                f"(status: {ArchiveStatus(existing.status).label}); unarchive it first",
                status=existing.status,
            )

        record = ArchiveRecord(
            id=uuid.uuid4(),
            original_fid=asset.fid,
            original_path=asset.file_path,
            asset_url_hash=asset.url_hash,
            file_name=asset.file_name,
            archive_reason=reason,
            archive_reason_other=(reason_other or "").strip() or None,
            public_description=public_description.strip(),
            internal_notes=(internal_notes or "").strip() or None,
            asset_type=asset.asset_type,
            mime_type=asset.mime_type,
            filesize=asset.filesize,
            is_private=asset.is_private,
            status=ArchiveStatus.QUEUED.value,
            archived_by=actor,
        )
        session.add(record)
        await self._flush(session, record)

        logger.info(f"{actor or 'unknown'} queued {asset.file_name} for archive (record {record.id}, reason: {reason})")
        return record

    async def check_execution_gates(self, session: AsyncSession, record: ArchiveRecord) -> List[str]:
        """
        Blocking issues for executing a queued record (empty when it may proceed).

        The file must exist, and the live usage count must be zero unless
        archiving in-use assets is allowed.
        """
        if not self.source_exists(record):
            return [f"Source file does not exist at {record.original_path}"]

        usage = await self.usage_count(session, record)
        if usage and not self.allow_archive_in_use:
            return [f"File is still referenced in {usage} location(s); remove references before archiving"]
        return []

    async def execute(
        self,
        session: AsyncSession,
        record_id: uuid.UUID,
        visibility: str,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ArchiveRecord:
        """
        Classify a queued record as archived.

        Stamps the classification date (once), records the SHA-256 checksum
        (or leaves it pending for large files) and decides the archive
        category.

        Args:
            session: Database session
            record_id: Queued ArchiveRecord id
            visibility: "public" or "admin" (no default)
            actor: Who executed the archive
            expected_version: Version the caller last saw

        Raises:
            InvalidTransitionError: Record is not queued
            ValidationError: Invalid visibility
            ExecutionBlockedError: File missing, or in use without the override
            StaleVersionError: Record changed since the caller loaded it
        """
        record = await self.get_record(session, record_id, expected_version)
        self._require_status(record, [ArchiveStatus.QUEUED.value], "execute")
        if visibility not in VISIBILITY_STATUSES:
            raise ValidationError('Visibility must be "public" or "admin"', field="visibility")

        issues = await self.check_execution_gates(session, record)
        if issues:
            raise ExecutionBlockedError(f"Archive blocked: {'; '.join(issues)}", issues=issues, status=record.status)

        usage = await self.usage_count(session, record)
        path = self.source_path(record)
        size = path.stat().st_size
        checksum = None
        if size <= self.checksum_size_limit:
            checksum = await asyncio.to_thread(compute_checksum, path)

        classified_at = self.now()
        prior_void = await self.has_voided_exemption(session, record.original_fid, record.original_path)

        record.status = VISIBILITY_STATUSES[visibility]
        record.archive_classification_date = classified_at
        record.archive_path = self.resolver.stream_uri_to_url(record.original_path)
        record.filesize = size
        if checksum:
            record.file_checksum = checksum
        record.flag_missing = False
        record.flag_integrity = False
        record.flag_usage = usage > 0
        record.archived_while_in_use = usage > 0
        record.usage_count_at_archive = usage
        for key, value in self._category_flags(classified_at, prior_void).items():
            setattr(record, key, value)
        await self._flush(session, record)

        if prior_void:
            logger.warning(f"{record.file_name} forced to General Archive: prior exemption_void on record")
        logger.info(
            f"{actor or 'unknown'} archived {record.file_name} ({visibility}, {record.archive_type}, "
            f"checksum: {checksum or 'pending'})"
        )
        return record

    async def is_visibility_toggle_blocked(self, session: AsyncSession, record: ArchiveRecord) -> bool:
        """Visibility changes are blocked while a file archive is in use, unless allowed."""
        if self.allow_archive_in_use or record.is_manual_entry:
            return False
        return await self.usage_count(session, record) > 0

    async def toggle_visibility(
        self,
        session: AsyncSession,
        record_id: uuid.UUID,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ArchiveRecord:
        """Switch archived_public <-> archived_admin."""
        record = await self.get_record(session, record_id, expected_version)
        self._require_status(record, ARCHIVED_STATUSES, "toggle visibility of")
        if await self.is_visibility_toggle_blocked(session, record):
            raise InvalidTransitionError(
                f"Cannot change visibility of {record.file_name} while it is in use",
                status=record.status,
            )

        if record.status == ArchiveStatus.ARCHIVED_PUBLIC.value:
            record.status = ArchiveStatus.ARCHIVED_ADMIN.value
        else:
            record.status = ArchiveStatus.ARCHIVED_PUBLIC.value
        await self._flush(session, record)

        logger.info(f"{actor or 'unknown'} changed visibility of {record.file_name} to {record.status}")
        return record

    async def unarchive(
        self,
        session: AsyncSession,
        record_id: uuid.UUID,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ArchiveRecord:
        """
        Remove an archived record from the registry.

        The record is kept as archived_deleted; archiving the same target
        again creates a new record.
        """
        record = await self.get_record(session, record_id, expected_version)
        self._require_status(record, ARCHIVED_STATUSES, "unarchive")

        record.status = ArchiveStatus.ARCHIVED_DELETED.value
        record.flag_usage = False
        record.flag_missing = False
        record.flag_integrity = False
        await self._flush(session, record)

        logger.info(f"{actor or 'unknown'} unarchived {record.file_name} (record preserved as deleted)")
        return record

    async def delete_underlying(
        self,
        session: AsyncSession,
        record_id: uuid.UUID,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ArchiveRecord:
        """
        Delete the archived file from disk and close the record.

        Raises:
            InvalidTransitionError: Not an archived file record
            OSError: The file exists but could not be removed
        """
        record = await self.get_record(session, record_id, expected_version)
        self._require_status(record, ARCHIVED_STATUSES, "delete the file of")
        if record.is_manual_entry:
            raise InvalidTransitionError(
                f"Archive {record.id} is a manual entry with no file; use remove_entry",
                status=record.status,
            )

        path = self.source_path(record)
        if path is not None and path.is_file():
            await asyncio.to_thread(path.unlink)
            logger.info(f"Deleted archived file {path}")

        record.status = ArchiveStatus.ARCHIVED_DELETED.value
        record.deleted_date = self.now()
        record.deleted_by = actor
        await self._flush(session, record)

        logger.info(f"{actor or 'unknown'} deleted archived file {record.file_name}; record preserved")
        return record

    async def remove_from_queue(
        self,
        session: AsyncSession,
        record_id: uuid.UUID,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ArchiveRecord:
        """Withdraw a queued record. It is kept as archived_deleted and never classified."""
        record = await self.get_record(session, record_id, expected_version)
        self._require_status(record, [ArchiveStatus.QUEUED.value], "remove from queue")

        record.status = ArchiveStatus.ARCHIVED_DELETED.value
        await self._flush(session, record)

        logger.info(f"{actor or 'unknown'} removed {record.file_name} from the archive queue")
        return record

    # =========================================================================
    # MANUAL ENTRIES
    # =========================================================================

    async def create_manual_entry(
        self,
        session: AsyncSession,
        title: str,
        url: str,
        asset_type: str,
        reason: str,
        public_description: str,
        visibility: str = "public",
        reason_other: Optional[str] = None,
        internal_notes: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> ArchiveRecord:
        """
        Archive a web page or external resource directly.

        Manual entries skip the queue and are classified on creation.

        Args:
            session: Database session
            title: Display title
            url: Page path/URL or external URL
            asset_type: "page" or "external"
            reason: Archive reason
            public_description: Description for the archive registry
            visibility: "public" or "admin"
            reason_other: Custom reason (required when reason is "other")
            internal_notes: Free-form internal notes
            actor: Who created the entry

        Raises:
            ValidationError: Invalid title, URL, purpose or visibility
            InvalidTransitionError: The URL already has an open archive record
        """
        title = (title or "").strip()
        if not title:
            raise ValidationError("A title is required", field="title")
        if visibility not in VISIBILITY_STATUSES:
            raise ValidationError('Visibility must be "public" or "admin"', field="visibility")
        self.validate_purpose(reason, reason_other, public_description)
        resolved = self.resolve_manual_url(url, asset_type)

        existing = await self.find_open_record(session, None, resolved)
        if existing is not None:
            raise InvalidTransitionError(
                f"{resolved} is already in the archive registry (record {existing.id})",
                status=existing.status,
            )

        classified_at = self.now()
        prior_void = await self.has_voided_exemption(session, None, resolved)

        record = ArchiveRecord(
            id=uuid.uuid4(),
            original_fid=None,
            original_path=resolved,
            asset_url_hash=url_hash(resolved),
            archive_path=resolved,
            file_name=title,
            archive_reason=reason,
            archive_reason_other=(reason_other or "").strip() or None,
            public_description=public_description.strip(),
            internal_notes=(internal_notes or "").strip() or None,
            asset_type=asset_type,
            status=VISIBILITY_STATUSES[visibility],
            archive_classification_date=classified_at,
            archived_by=actor,
            **self._category_flags(classified_at, prior_void),
        )
        session.add(record)
        await self._flush(session, record)

        if prior_void:
            logger.warning(f'Manual entry "{title}" forced to General Archive: prior exemption_void on record')
        logger.info(f'{actor or "unknown"} created manual archive entry "{title}" ({asset_type}, {visibility})')
        return record

    async def edit(
        self,
        session: AsyncSession,
        record_id: uuid.UUID,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None,
        title: Optional[str] = None,
        reason: Optional[str] = None,
        reason_other: Optional[str] = None,
        public_description: Optional[str] = None,
        internal_notes: Optional[str] = None,
    ) -> ArchiveRecord:
        """
        Edit the descriptive fields of an open manual entry.

        Only the given fields change. URL, status, category and
        classification date are not editable.
        """
        record = await self.get_record(session, record_id, expected_version)
        if not record.is_manual_entry:
            raise InvalidTransitionError(f"Archive {record.id} is not a manual entry", status=record.status)
        self._require_status(record, ARCHIVED_STATUSES, "edit")

        new_reason = reason if reason is not None else record.archive_reason
        new_reason_other = reason_other if reason_other is not None else record.archive_reason_other
        new_description = public_description if public_description is not None else record.public_description
        self.validate_purpose(new_reason, new_reason_other, new_description)

        if title is not None:
            if not title.strip():
                raise ValidationError("A title is required", field="title")
            record.file_name = title.strip()
        record.archive_reason = new_reason
        record.archive_reason_other = (
            (new_reason_other or "").strip() or None if new_reason == ArchiveReason.OTHER.value else None
        )
        record.public_description = new_description.strip()
        if internal_notes is not None:
            record.internal_notes = internal_notes.strip() or None
        await self._flush(session, record)

        logger.info(f"{actor or 'unknown'} edited manual archive entry {record.id}")
        return record

    async def remove_entry(
        self,
        session: AsyncSession,
        record_id: uuid.UUID,
        actor: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> ArchiveRecord:
        """Remove a manual entry from the registry (kept as archived_deleted)."""
        record = await self.get_record(session, record_id, expected_version)
        if not record.is_manual_entry:
            raise InvalidTransitionError(
                f"Archive {record.id} is a file archive; use unarchive or delete_underlying",
                status=record.status,
            )
        self._require_status(record, ARCHIVED_STATUSES, "remove")

        record.status = ArchiveStatus.ARCHIVED_DELETED.value
        record.deleted_date = self.now()
        record.deleted_by = actor
        await self._flush(session, record)

        logger.info(f'{actor or "unknown"} removed manual archive entry "{record.file_name}"')
        return record

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    @staticmethod
    def _assign(record: ArchiveRecord, key: str, value: Any) -> bool:
        if getattr(record, key) == value:
            return False
        setattr(record, key, value)
        return True

    async def _verify_integrity(self, record: ArchiveRecord, path: Path) -> bool:
        if not record.file_checksum:
            return True
        try:
            current = await asyncio.to_thread(compute_checksum, path)
        except OSError as e:
            logger.warning(f"Cannot read {path} to verify {record.file_name}: {e}")
            return False
        return current == record.file_checksum

    async def reconcile_status(self, session: AsyncSession, record: ArchiveRecord) -> List[str]:
        """
        Re-check one file record against disk and the live inventory.

        Queued records: a missing file closes the record as archived_deleted
        with flag_missing; live usage sets flag_usage.

        Archived records: missing file sets flag_missing; a checksum mismatch
        sets flag_integrity. Once the compliance deadline has passed, a
        mismatch also closes the record (exemption_void for the pre-deadline
        category, archived_deleted otherwise). Live usage sets flag_usage.

        Manual entries and terminal records are skipped. The record is only
        written when something changed.

        Returns:
            Names of the flags (or outcomes) now set on the record
        """
        if record.is_manual_entry or record.is_terminal:
            return []

        changed = False
        active: List[str] = []
        path = self.source_path(record)
        exists = path is not None and path.is_file()
        usage = await self.usage_count(session, record)

        if record.status == ArchiveStatus.QUEUED.value:
            if not exists:
                record.status = ArchiveStatus.ARCHIVED_DELETED.value
                record.flag_missing = True
                record.deleted_date = self.now()
                record.deleted_by = SYSTEM_ACTOR
                await self._flush(session, record)
                logger.info(f"Closed queued archive {record.file_name}: source file no longer exists")
                return ["flag_missing", ArchiveStatus.ARCHIVED_DELETED.value]

            changed |= self._assign(record, "flag_missing", False)
            changed |= self._assign(record, "flag_usage", usage > 0)
            if usage:
                active.append("flag_usage")
            if changed:
                await self._flush(session, record)
            return active

        integrity_ok = True
        if exists:
            integrity_ok = await self._verify_integrity(record, path)
        changed |= self._assign(record, "flag_missing", not exists)
        changed |= self._assign(record, "flag_integrity", not integrity_ok)
        changed |= self._assign(record, "flag_usage", usage > 0)
        if not exists:
            active.append("flag_missing")
        if not integrity_ok:
            active.append("flag_integrity")
        if usage:
            active.append("flag_usage")

        # Before the deadline a modified file is only flagged
        if not integrity_ok and self.now() > self.compliance_deadline:
            previous = record.status
            if record.flag_late_archive:
                record.status = ArchiveStatus.ARCHIVED_DELETED.value
                record.deleted_date = self.now()
                record.deleted_by = SYSTEM_ACTOR
                logger.warning(
                    f"General archive {record.file_name} closed: file modified after archiving (was {previous})"
                )
            else:
                record.status = ArchiveStatus.EXEMPTION_VOID.value
                logger.warning(
                    f"Exemption voided for {record.file_name}: file modified after archiving (was {previous})"
                )
            active.append(record.status)
            changed = True

        if changed:
            await self._flush(session, record)
        return active

    async def validate_archived_files(self, session: AsyncSession) -> Dict[str, int]:
        """
        Reconcile every open file record.

        Returns:
            Summary counts: checked, flagged, closed, voided
        """
        records = await self.list_records(session, statuses=BLOCKING_STATUSES, manual=False)
        summary = {"checked": 0, "flagged": 0, "closed": 0, "voided": 0}
        for record in records:
            outcome = await self.reconcile_status(session, record)
            summary["checked"] += 1
            if any(flag.startswith("flag_") for flag in outcome):
                summary["flagged"] += 1
            if ArchiveStatus.ARCHIVED_DELETED.value in outcome:
                summary["closed"] += 1
            if ArchiveStatus.EXEMPTION_VOID.value in outcome:
                summary["voided"] += 1
        return summary

    async def handle_content_modified(
        self, session: AsyncSession, url: str, actor: Optional[str] = None
    ) -> List[ArchiveRecord]:
        """
        React to an archived page being edited.

        Pre-deadline page archives lose their exemption (exemption_void);
        post-deadline ones are closed as archived_deleted with flag_modified.

        Args:
            session: Database session
            url: URL or site path of the modified page

        Returns:
            Records that changed
        """
        value = (url or "").strip()
        if not _HTTP_URL.match(value):
            value = f"{self.resolver.site_base_url}/{value.lstrip('/')}"
        target = normalize_url(value)

        records = await self.list_records(session, statuses=ARCHIVED_STATUSES, manual=True)
        changed = []
        for record in records:
            if record.asset_type != "page" or record.original_path != target:
                continue
            previous = record.status
            if record.flag_late_archive:
                record.status = ArchiveStatus.ARCHIVED_DELETED.value
                record.flag_modified = True
                record.deleted_date = self.now()
                record.deleted_by = actor or SYSTEM_ACTOR
                logger.warning(f'General archive "{record.file_name}" closed: page modified (was {previous})')
            else:
                record.status = ArchiveStatus.EXEMPTION_VOID.value
                record.flag_modified = True
                logger.warning(f'Exemption voided for "{record.file_name}": page modified (was {previous})')
            await self._flush(session, record)
            changed.append(record)
        return changed

    async def process_pending_checksums(self, session: AsyncSession) -> int:
        """
        Compute checksums left pending for large files.

        Returns:
            Number of checksums recorded
        """
        records = await self.list_records(session, statuses=ARCHIVED_STATUSES, manual=False)
        processed = 0
        for record in records:
            if record.file_checksum:
                continue
            path = self.source_path(record)
            if path is None or not path.is_file():
                logger.warning(f"Pending checksum for {record.file_name}: file not found")
                continue
            try:
                record.file_checksum = await asyncio.to_thread(compute_checksum, path)
            except OSError as e:
                logger.error(f"Failed to calculate checksum for {record.file_name}: {e}")
                continue
            await self._flush(session, record)
            processed += 1
            logger.info(f"Checksum calculated for {record.file_name}: {record.file_checksum}")
        return processed

    # =========================================================================
    # NOTES
    # =========================================================================

    async def add_note(
        self,
        session: AsyncSession,
        record_id: uuid.UUID,
        note_text: str,
        author: Optional[str] = None,
    ) -> ArchiveNote:
        """
        Append a note to a record in any state.

        Raises:
            ValidationError: Empty note or longer than 500 characters
        """
        await self.get_record(session, record_id)
        text = (note_text or "").strip()
        if not text:
            raise ValidationError("Note text cannot be empty", field="note_text")
        if len(text) > MAX_NOTE_LENGTH:
            raise ValidationError(f"Notes are limited to {MAX_NOTE_LENGTH} characters", field="note_text")

        note = ArchiveNote(id=uuid.uuid4(), archive_id=record_id, note_text=text, author=author)
        session.add(note)
        await session.flush()
        return note

    async def list_notes(self, session: AsyncSession, record_id: uuid.UUID) -> List[ArchiveNote]:
        await self.get_record(session, record_id)
        result = await session.execute(
            select(ArchiveNote)
            .where(ArchiveNote.archive_id == record_id)
            .order_by(ArchiveNote.created_at, ArchiveNote.id)
        )
        return list(result.scalars().all())


# Global archive service instance
archive_service = ArchiveService()

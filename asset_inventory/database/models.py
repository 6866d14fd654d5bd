# asset_inventory/database/models.py
"""
SQLAlchemy ORM models for the asset inventory and archive lifecycle.

Models:
    - AssetItem: One discovered asset per generation (staged or live)
    - AssetUsage: Reachable usage of an asset by a root content entity
    - OrphanReference: Reference from a component that no longer reaches a root
    - ArchiveRecord: One archival episode for a file or manual entry
    - ArchiveNote: Append-only audit note attached to an ArchiveRecord

AssetItem/AssetUsage/OrphanReference are written only by a scan and replaced
wholesale by the atomic swap. ArchiveRecord/ArchiveNote are permanent.

All models use UUID primary keys and include timestamps for auditing.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    TypeDecorator,
    event,
    inspect,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm.attributes import get_history

from ..exceptions import InvalidTransitionError
from .base import Base


# UUID type that works with both SQLite and PostgreSQL
class UUID(TypeDecorator):
    """Platform-independent UUID type.

    Uses PostgreSQL's UUID type when available, otherwise uses String(36).
    """
    impl = String
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


# =========================================================================
# ENUMERATIONS
# =========================================================================


class SourceType(str, Enum):
    """Where an asset was discovered."""
    REGISTERED_FILE = "registered_file"
    LOOSE_FILE = "loose_file"
    REMOTE_REFERENCE = "remote_reference"
    EXTERNAL_URL = "external_url"


class ArchiveStatus(str, Enum):
    """Archive lifecycle states."""
    QUEUED = "queued"
    ARCHIVED_PUBLIC = "archived_public"
    ARCHIVED_ADMIN = "archived_admin"
    ARCHIVED_DELETED = "archived_deleted"
    EXEMPTION_VOID = "exemption_void"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS = {
    ArchiveStatus.QUEUED: "Queued",
    ArchiveStatus.ARCHIVED_PUBLIC: "Archived (Public)",
    ArchiveStatus.ARCHIVED_ADMIN: "Archived (Admin-only)",
    ArchiveStatus.ARCHIVED_DELETED: "Archived (Deleted)",
    ArchiveStatus.EXEMPTION_VOID: "Exemption Void",
}

ARCHIVED_STATUSES = frozenset({ArchiveStatus.ARCHIVED_PUBLIC.value, ArchiveStatus.ARCHIVED_ADMIN.value})
TERMINAL_STATUSES = frozenset({ArchiveStatus.ARCHIVED_DELETED.value, ArchiveStatus.EXEMPTION_VOID.value})
# Statuses that block a fresh archival episode for the same target
BLOCKING_STATUSES = frozenset({ArchiveStatus.QUEUED.value}) | ARCHIVED_STATUSES

# Legal status changes; anything else is rejected at flush time
ALLOWED_TRANSITIONS = {
    ArchiveStatus.QUEUED.value: frozenset(
        {ArchiveStatus.ARCHIVED_PUBLIC.value, ArchiveStatus.ARCHIVED_ADMIN.value, ArchiveStatus.ARCHIVED_DELETED.value}
    ),
    ArchiveStatus.ARCHIVED_PUBLIC.value: frozenset(
        {ArchiveStatus.ARCHIVED_ADMIN.value, ArchiveStatus.ARCHIVED_DELETED.value, ArchiveStatus.EXEMPTION_VOID.value}
    ),
    ArchiveStatus.ARCHIVED_ADMIN.value: frozenset(
        {ArchiveStatus.ARCHIVED_PUBLIC.value, ArchiveStatus.ARCHIVED_DELETED.value, ArchiveStatus.EXEMPTION_VOID.value}
    ),
    ArchiveStatus.ARCHIVED_DELETED.value: frozenset(),
    ArchiveStatus.EXEMPTION_VOID.value: frozenset(),
}


class ArchiveReason(str, Enum):
    """Purpose recorded for an archive classification."""
    REFERENCE = "reference"
    RESEARCH = "research"
    RECORDKEEPING = "recordkeeping"
    OTHER = "other"


MANUAL_ASSET_TYPES = frozenset({"page", "external"})


# =========================================================================
# INVENTORY
# =========================================================================


class AssetItem(Base):
    """
    AssetItem model for discovered digital assets.

    One row per unique asset per generation. The canonical identity is the
    stream URI (public://, private://) for local files and the normalized URL
    for remote references; url_hash is the MD5 of that identity and is unique
    within a generation.

    Attributes:
        id: Unique asset identifier (changes every scan)
        url_hash: MD5 of the canonical identity, stable across scans
        source_type: registered_file, loose_file, remote_reference, external_url
        fid: File registry id (registered files only)
        media_id: Media entity id wrapping the file or remote reference
        asset_type: Catalog type (pdf, word, google_doc, youtube, ...)
        category: Catalog category (Documents, Videos, Embedded Media, ...)
        sort_order: Category sort position
        file_path: Canonical identity (stream URI or normalized URL)
        url: Absolute URL of the asset
        file_name: Display name
        mime_type: MIME type, or the type label for remote references
        filesize: Size in bytes (null for remote references)
        is_private: Whether the file lives under private://
        is_temp: Staging flag (True while a scan is building the generation)
        created_at: When the row was staged

    Lifecycle:
        1. Staged with is_temp=True during a scan
        2. Promoted to is_temp=False by the atomic swap
        3. Deleted wholesale by the next successful swap
    """

    __tablename__ = "asset_items"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    url_hash = Column(String(32), nullable=False)
    source_type = Column(String(32), nullable=False, index=True)  # registered_file, loose_file, ...
    fid = Column(Integer, nullable=True, index=True)
    media_id = Column(Integer, nullable=True)

    # Classification
    asset_type = Column(String(50), nullable=False, default="other")
    category = Column(String(50), nullable=False, default="Other", index=True)
    sort_order = Column(Integer, nullable=False, default=99)

    # Location and file metadata
    file_path = Column(String(2048), nullable=False)
    url = Column(String(2048), nullable=True)
    file_name = Column(String(512), nullable=False)
    mime_type = Column(String(255), nullable=True)
    filesize = Column(BigInteger, nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)

    # Generation marker
    is_temp = Column(Boolean, nullable=False, default=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_asset_items_generation_hash", "is_temp", "url_hash", unique=True),
        Index("ix_asset_items_generation_fid", "is_temp", "fid"),
    )

    def __repr__(self) -> str:
        return f"<AssetItem(id={self.id}, path={self.file_path}, temp={self.is_temp})>"


class AssetUsage(Base):
    """
    AssetUsage model for reachable references.

    One row per (asset, root entity, field). Only written when the hosting
    chain of a sighting resolves to a live root entity; orphan sightings never
    produce a usage row.

    Attributes:
        id: Unique usage identifier
        asset_id: Asset being used (same generation as the asset)
        entity_type: Root entity type (node, menu_link_content, ...)
        entity_id: Root entity id
        field_name: Field or slot holding the reference on the original host
        embed_method: How the asset is embedded (field_reference, text_link, ...)
        count: Number of occurrences observed
        presentation_type: VIDEO_HTML5 or AUDIO_HTML5 for HTML5 player embeds
        accessibility_signals: Player attributes and caption presence for HTML5 embeds
    """

    __tablename__ = "asset_usages"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    asset_id = Column(UUID(), ForeignKey("asset_items.id"), nullable=False, index=True)
    entity_type = Column(String(64), nullable=False)
    entity_id = Column(String(64), nullable=False)
    field_name = Column(String(255), nullable=False)
    embed_method = Column(String(50), nullable=False, default="field_reference")
    count = Column(Integer, nullable=False, default=1)
    presentation_type = Column(String(32), nullable=True)
    accessibility_signals = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index(
            "ix_asset_usages_unique_slot",
            "asset_id",
            "entity_type",
            "entity_id",
            "field_name",
            unique=True,
        ),
        Index("ix_asset_usages_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<AssetUsage(asset_id={self.asset_id}, entity={self.entity_type}/{self.entity_id}, "
            f"field={self.field_name}, count={self.count})>"
        )


class OrphanReference(Base):
    """
    OrphanReference model for references that do not reach a live root.

    Associated with AssetItem by asset_id without a hard foreign key, so
    cleanup must remove orphan rows before the assets they point at.

    Attributes:
        id: Unique orphan identifier
        asset_id: Asset referenced (same generation as the asset)
        source_entity_type: Entity type of the component hosting the reference
        source_entity_id: Entity id of the hosting component
        source_bundle: Bundle/kind of the hosting component
        source_revision_id: Revision of the hosting component, when known
        field_name: Field on the component holding the reference
        embed_method: How the asset is embedded
        reference_context: missing_parent_entity or detached_component
        detected_at: When the orphan was detected
    """

    __tablename__ = "asset_orphan_references"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    asset_id = Column(UUID(), nullable=False, index=True)
    source_entity_type = Column(String(64), nullable=False)
    source_entity_id = Column(String(64), nullable=False)
    source_bundle = Column(String(128), nullable=True)
    source_revision_id = Column(String(64), nullable=True)
    field_name = Column(String(255), nullable=False)
    embed_method = Column(String(50), nullable=False)
    reference_context = Column(String(50), nullable=False)  # missing_parent_entity, detached_component
    detected_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index(
            "ix_orphan_refs_unique_source",
            "asset_id",
            "source_entity_type",
            "source_entity_id",
            "field_name",
            "embed_method",
            unique=True,
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<OrphanReference(asset_id={self.asset_id}, source={self.source_entity_type}/"
            f"{self.source_entity_id}, context={self.reference_context})>"
        )


# =========================================================================
# ARCHIVE
# =========================================================================


class ArchiveRecord(Base):
    """
    ArchiveRecord model for one archival episode.

    File archives start queued and are executed into an archived state; manual
    entries (pages and external URLs) are created directly in an archived
    state. Records are never deleted: a new episode for the same target always
    creates a new record.

    Attributes:
        id: Immutable archive identifier
        version: Optimistic-concurrency counter (bumped on every update)
        original_fid: File registry id of the archived file (file archives)
        original_path: Stream URI for files, normalized URL for manual entries
        asset_url_hash: MD5 of the target identity, used to find live usage
        archive_path: Public URL of the archive entry
        file_name: Display name (title for manual entries)
        archive_reason: reference, research, recordkeeping, other
        archive_reason_other: Custom reason when archive_reason is "other"
        public_description: Description shown on the public registry
        internal_notes: Free-form internal notes
        asset_type: Catalog type, or page/external for manual entries
        mime_type: MIME type of the file
        filesize: Size in bytes
        is_private: Whether the file lives under private://
        status: queued, archived_public, archived_admin, archived_deleted, exemption_void
        archive_classification_date: Set once when the record becomes visible
        file_checksum: SHA-256 of the file at classification (set once)
        flag_usage: Live usage detected
        flag_missing: Source file missing
        flag_integrity: Checksum mismatch detected
        flag_late_archive: Post-deadline category
        flag_prior_void: A previous episode for this target was voided
        flag_modified: Content changed after a post-deadline archive
        archived_while_in_use: Executed with live usage under the override
        usage_count_at_archive: Live usage count at execution
        archived_by: Actor who queued or created the record
        deleted_date: When the record entered archived_deleted
        deleted_by: Actor who caused the deletion

    Lifecycle:
        queued -> archived_public <-> archived_admin -> archived_deleted | exemption_void
    """

    __tablename__ = "archive_records"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    version = Column(Integer, nullable=False)

    # Target
    original_fid = Column(Integer, nullable=True, index=True)
    original_path = Column(String(2048), nullable=False)
    asset_url_hash = Column(String(32), nullable=False, index=True)
    archive_path = Column(String(2048), nullable=True)

    # Description
    file_name = Column(String(512), nullable=False)
    archive_reason = Column(String(32), nullable=False)
    archive_reason_other = Column(String(255), nullable=True)
    public_description = Column(Text, nullable=False)
    internal_notes = Column(Text, nullable=True)
    asset_type = Column(String(50), nullable=False)
    mime_type = Column(String(255), nullable=True)
    filesize = Column(BigInteger, nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)

    # Lifecycle
    status = Column(String(32), nullable=False, default=ArchiveStatus.QUEUED.value, index=True)
    archive_classification_date = Column(DateTime, nullable=True)  # write-once
    file_checksum = Column(String(64), nullable=True)  # write-once

    # Warning flags
    flag_usage = Column(Boolean, nullable=False, default=False)
    flag_missing = Column(Boolean, nullable=False, default=False)
    flag_integrity = Column(Boolean, nullable=False, default=False)
    flag_late_archive = Column(Boolean, nullable=False, default=False)
    flag_prior_void = Column(Boolean, nullable=False, default=False)
    flag_modified = Column(Boolean, nullable=False, default=False)

    # In-use audit
    archived_while_in_use = Column(Boolean, nullable=False, default=False)
    usage_count_at_archive = Column(Integer, nullable=True)

    # Actors and timestamps
    archived_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_date = Column(DateTime, nullable=True)
    deleted_by = Column(String(255), nullable=True)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("ix_archive_records_status_classified", "status", "archive_classification_date"),
    )

    @property
    def is_manual_entry(self) -> bool:
        return self.asset_type in MANUAL_ASSET_TYPES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_archived(self) -> bool:
        return self.status in ARCHIVED_STATUSES

    @property
    def archive_type(self) -> str:
        """Compliance category: "General Archive" when post-deadline, otherwise "Legacy Archive"."""
        return "General Archive" if self.flag_late_archive else "Legacy Archive"

    def __repr__(self) -> str:
        return f"<ArchiveRecord(id={self.id}, path={self.original_path}, status={self.status})>"


class ArchiveNote(Base):
    """
    ArchiveNote model for append-only audit notes.

    Notes may be added to records in any state, including terminal ones.
    Updates and deletes are rejected at flush time.

    Attributes:
        id: Unique note identifier
        archive_id: Owning archive record
        note_text: Note body (max 500 characters)
        author: Actor who wrote the note
        created_at: When the note was written
    """

    __tablename__ = "archive_notes"

    id = Column(UUID(), primary_key=True, default=uuid.uuid4)
    archive_id = Column(UUID(), ForeignKey("archive_records.id"), nullable=False, index=True)
    note_text = Column(String(500), nullable=False)
    author = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ArchiveNote(id={self.id}, archive_id={self.archive_id})>"


# =========================================================================
# PERSISTENCE GUARDS
# =========================================================================

# Columns that never count as a content change on their own
_BOOKKEEPING_COLUMNS = frozenset({"version", "updated_at"})
_WRITE_ONCE_COLUMNS = ("archive_classification_date", "file_checksum")


def _changed_columns(target) -> list:
    state = inspect(target)
    changed = []
    for attr in state.mapper.column_attrs:
        if attr.key in _BOOKKEEPING_COLUMNS:
            continue
        if state.attrs[attr.key].history.has_changes():
            changed.append(attr.key)
    return changed


@event.listens_for(ArchiveRecord, "before_update")
def _guard_archive_record_update(mapper, connection, target):
    changed = _changed_columns(target)
    if not changed:
        return

    status_history = get_history(target, "status")
    previous_status = status_history.deleted[0] if status_history.deleted else target.status

    if previous_status in TERMINAL_STATUSES:
        raise InvalidTransitionError(
            f"Archive {target.id} is {previous_status}; terminal records cannot change ({', '.join(changed)})",
            status=previous_status,
        )

    if status_history.deleted and target.status != previous_status:
        if target.status not in ALLOWED_TRANSITIONS.get(previous_status, frozenset()):
            raise InvalidTransitionError(
                f"Archive {target.id}: transition {previous_status} -> {target.status} is not allowed",
                status=previous_status,
            )

    for key in _WRITE_ONCE_COLUMNS:
        history = get_history(target, key)
        if history.deleted and history.deleted[0] is not None:
            raise InvalidTransitionError(
                f"Archive {target.id}: {key} is write-once and already set",
                status=previous_status,
            )


@event.listens_for(ArchiveRecord, "before_delete")
def _guard_archive_record_delete(mapper, connection, target):
    raise InvalidTransitionError(f"Archive {target.id} cannot be deleted", status=target.status)


@event.listens_for(ArchiveNote, "before_update")
def _guard_archive_note_update(mapper, connection, target):
    if _changed_columns(target):
        raise InvalidTransitionError(f"Archive note {target.id} is append-only")


@event.listens_for(ArchiveNote, "before_delete")
def _guard_archive_note_delete(mapper, connection, target):
    raise InvalidTransitionError(f"Archive note {target.id} is append-only")

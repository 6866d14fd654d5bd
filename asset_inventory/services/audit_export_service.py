"""
Audit export of archive records.

The column set is a contract with auditors: columns are only ever appended,
never renamed or reordered. Every record is exported, terminal ones included,
newest classification first (records that were never classified go last).
"""

import csv
import io
import logging
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.asset_types import AssetCatalog, asset_catalog
from ..core.path_resolver import PathResolver, is_stream_uri, path_resolver
from ..database.models import ArchiveReason, ArchiveRecord, ArchiveStatus
from .inventory_service import InventoryService, inventory_service

logger = logging.getLogger("asset_inventory.services.audit_export")

AUDIT_COLUMNS = [
    "Archive ID",
    "Name",
    "Asset Type",
    "Archive Type",
    "Archive Classification Date",
    "Current Archive Status",
    "Archived By",
    "File Deletion Date",
    "File Deleted By",
    "Reason for Archive Classification",
    "Public Archive Description",
    "File Checksum (SHA-256)",
    "Integrity Issue Detected",
    "Active Usage Detected",
    "File Missing",
    "File Access",
    "Late Archive",
    "Prior Exemption Voided",
    "Exemption Voided / Modified",
    "Archived While In Use",
    "Usage Count at Archive",
    "Original URL",
    "Archive Record Created Date",
]

REASON_LABELS = {
    ArchiveReason.REFERENCE.value: "Reference",
    ArchiveReason.RESEARCH.value: "Research",
    ArchiveReason.RECORDKEEPING.value: "Recordkeeping",
    ArchiveReason.OTHER.value: "Other",
}

MANUAL_TYPE_LABELS = {"page": "Web Page", "external": "External Resource"}

FILE_ONLY = "N/A (File-only)"
NOT_YET_ARCHIVED = "N/A (Not yet archived)"


def _iso(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def export_filename(today: Optional[date] = None) -> str:
    return f"archive-audit-export-{(today or date.today()).isoformat()}.csv"


class AuditExportService:
    """Builds audit rows and CSV documents from archive records."""

    def __init__(
        self,
        resolver: Optional[PathResolver] = None,
        inventory: Optional[InventoryService] = None,
        catalog: Optional[AssetCatalog] = None,
    ):
        self.resolver = resolver or path_resolver
        self.inventory = inventory or inventory_service
        self.catalog = catalog or asset_catalog

    def asset_type_label(self, record: ArchiveRecord) -> str:
        return MANUAL_TYPE_LABELS.get(record.asset_type) or self.catalog.label_for(record.asset_type)

    def reason_label(self, record: ArchiveRecord) -> str:
        if record.archive_reason == ArchiveReason.OTHER.value and record.archive_reason_other:
            return f"Other: {record.archive_reason_other}"
        return REASON_LABELS.get(record.archive_reason, record.archive_reason)

    def original_url(self, record: ArchiveRecord) -> str:
        target = record.archive_path or record.original_path or ""
        if is_stream_uri(target):
            return self.resolver.stream_uri_to_url(target)
        return target

    async def usage_detected(self, session: AsyncSession, record: ArchiveRecord) -> str:
        """
        Active Usage Detected column.

        Closed file records no longer get reconciled, so their current live
        usage is looked up directly.
        """
        in_use = record.flag_usage
        if not in_use and record.status == ArchiveStatus.ARCHIVED_DELETED.value and not record.is_manual_entry:
            in_use = await self.inventory.usage_count_for_hash(session, record.asset_url_hash) > 0
        if in_use:
            return "Yes (Active content references this document)"
        return "No (No active content references detected)"

    @staticmethod
    def exemption_voided(record: ArchiveRecord) -> str:
        """Exemption Voided / Modified column; wording depends on the archive category."""
        if not record.flag_late_archive:
            if record.status == ArchiveStatus.EXEMPTION_VOID.value:
                subject = "content" if record.is_manual_entry else "file"
                return f"Yes (Exemption voided: {subject} was modified after being archived)"
            return "No (Exemption remains valid)"

        modified = record.flag_modified if record.is_manual_entry else record.flag_integrity
        if modified:
            subject = "Content" if record.is_manual_entry else "File"
            return f"Yes ({subject} was modified after being archived)"
        return "No (Archive has not been modified)"

    async def build_row(self, session: AsyncSession, record: ArchiveRecord) -> Dict[str, str]:
        manual = record.is_manual_entry
        queued = record.status == ArchiveStatus.QUEUED.value

        if manual:
            checksum = integrity = missing = access = FILE_ONLY
        else:
            access = "Private (Login required)" if record.is_private else "Public"
            missing = (
                "Yes (Underlying file no longer exists in storage)"
                if record.flag_missing or record.deleted_date
                else "No (File exists in storage)"
            )
            if queued:
                checksum = integrity = NOT_YET_ARCHIVED
            else:
                checksum = record.file_checksum or "Pending"
                integrity = (
                    "Yes (File checksum does not match the stored value)"
                    if record.flag_integrity
                    else "No (File checksum matches the stored value)"
                )

        values = [
            str(record.id),
            record.file_name,
            self.asset_type_label(record),
            record.archive_type,
            _iso(record.archive_classification_date),
            ArchiveStatus(record.status).label,
            record.archived_by or "",
            _iso(record.deleted_date),
            record.deleted_by or "",
            self.reason_label(record),
            record.public_description or "",
            checksum,
            integrity,
            await self.usage_detected(session, record),
            missing,
            access,
            (
                "Yes (Archive classification occurred after the compliance deadline)"
                if record.flag_late_archive
                else "No (Archive classification occurred before the compliance deadline)"
            ),
            "Yes (Forced to General Archive due to prior voided exemption)" if record.flag_prior_void else "No",
            self.exemption_voided(record),
            "Yes (Archived with active content references)" if record.archived_while_in_use else "No",
            str(record.usage_count_at_archive or 0) if record.archived_while_in_use else "",
            self.original_url(record),
            _iso(record.created_at),
        ]
        return dict(zip(AUDIT_COLUMNS, values))

    async def export_rows(self, session: AsyncSession) -> List[Dict[str, str]]:
        """
        One row per archive record, keyed by column name.

        Returns:
            Rows ordered by classification date, newest first
        """
        result = await session.execute(select(ArchiveRecord))
        records = list(result.scalars().all())
        records.sort(
            key=lambda r: (
                r.archive_classification_date is not None,
                r.archive_classification_date or datetime.min,
                r.created_at or datetime.min,
            ),
            reverse=True,
        )
        return [await self.build_row(session, record) for record in records]

    async def export_csv(self, session: AsyncSession) -> str:
        """
        Render every archive record as CSV.

        An empty archive still yields the header row.
        """
        rows = await self.export_rows(session)
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=AUDIT_COLUMNS, lineterminator="\n")
        writer.writeheader()
        writer.writerows(rows)
        logger.info(f"Exported {len(rows)} archive records for audit")
        return buffer.getvalue()


# Global audit export service instance
audit_export_service = AuditExportService()

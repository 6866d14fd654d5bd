"""
Scanner base class and the sighting types every scanner emits.

A scanner reads one source in bounded chunks and turns each record into
zero or more Sightings. A Sighting pairs an AssetCandidate (what was found)
with the entity and field hosting it (where it was found). A sighting without
a host only registers the asset.

Per-record problems raise MalformedReferenceError inside sightings_for();
the base class logs and skips the record. Chunk reads are retried on
TransientSourceError and escalate to FatalScanError when the retries run out.
"""

import logging
import posixpath
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence, Tuple

from ...config import settings
from ...database.models import SourceType
from ...exceptions import MalformedReferenceError
from ..asset_types import AssetCatalog, asset_catalog
from ..content_graph import EntityRef
from ..path_resolver import PathResolver, path_resolver, url_hash
from ..retry import retry_on_transient_error

logger = logging.getLogger("asset_inventory.scanners")


@dataclass(frozen=True)
class AssetCandidate:
    """
    An asset as seen by a scanner, before staging.

    local_reference candidates point at a local file by stream URI without
    knowing anything else about it. The builder attaches them to the staged
    asset with the same identity and drops them when there is none.
    """
    identity: str
    source_type: str
    asset_type: str
    category: str
    sort_order: int
    file_name: str
    url: Optional[str] = None
    mime_type: Optional[str] = None
    filesize: Optional[int] = None
    is_private: bool = False
    fid: Optional[int] = None
    media_id: Optional[int] = None
    local_reference: bool = False

    @property
    def url_hash(self) -> str:
        return url_hash(self.identity)


@dataclass(frozen=True)
class Sighting:
    candidate: AssetCandidate
    host: Optional[EntityRef] = None
    field_name: Optional[str] = None
    embed_method: Optional[str] = None
    occurrences: int = 1
    # HTML5 media player only
    presentation_type: Optional[str] = None
    accessibility_signals: Optional[Dict[str, str]] = field(default=None, compare=False)


class BaseScanner(ABC):
    """
    Chunked producer of sightings for one source.

    Subclasses implement count(), fetch_chunk() and sightings_for().

    Attributes:
        phase: Scan phase name reported in scan status
        batch_size: Records per chunk
        skipped: Records skipped as malformed during the last pass
    """

    phase: str = "scan"

    def __init__(
        self,
        batch_size: int,
        resolver: Optional[PathResolver] = None,
        catalog: Optional[AssetCatalog] = None,
        max_retries: Optional[int] = None,
        retry_delay_seconds: Optional[float] = None,
    ):
        self.batch_size = max(1, batch_size)
        self.resolver = resolver or path_resolver
        self.catalog = catalog or asset_catalog
        self.max_retries = settings.scan_max_retries if max_retries is None else max_retries
        self.retry_delay_seconds = (
            settings.scan_retry_delay_seconds if retry_delay_seconds is None else retry_delay_seconds
        )
        self.skipped = 0

    @abstractmethod
    async def count(self) -> int:
        """Total number of records in the source."""

    @abstractmethod
    async def fetch_chunk(self, offset: int, limit: int) -> Sequence:
        """Records [offset, offset + limit)."""

    @abstractmethod
    def sightings_for(self, record) -> Iterable[Sighting]:
        """Sightings for one record; raise MalformedReferenceError to skip it."""

    async def total(self) -> int:
        return await retry_on_transient_error(
            self.count,
            description=f"{self.phase} count",
            max_retries=self.max_retries,
            retry_delay_seconds=self.retry_delay_seconds,
        )

    async def iter_chunks(self, total: Optional[int] = None) -> AsyncIterator[Tuple[int, List[Sighting]]]:
        """
        Walk the source chunk by chunk.

        Yields:
            (records_in_chunk, sightings) per chunk
        """
        self.skipped = 0
        if total is None:
            total = await self.total()

        offset = 0
        while offset < total:
            records = await retry_on_transient_error(
                self.fetch_chunk,
                offset,
                self.batch_size,
                description=f"{self.phase} chunk at offset {offset}",
                max_retries=self.max_retries,
                retry_delay_seconds=self.retry_delay_seconds,
            )
            if not records:
                break

            sightings: List[Sighting] = []
            for record in records:
                try:
                    sightings.extend(self.sightings_for(record))
                except MalformedReferenceError as e:
                    self.skipped += 1
                    logger.warning(f"[{self.phase}] Skipping malformed record: {e}")

            yield len(records), sightings
            offset += len(records)

    # =========================================================================
    # CANDIDATE HELPERS
    # =========================================================================

    def file_candidate(
        self,
        uri: str,
        source_type: str,
        file_name: Optional[str] = None,
        mime_type: Optional[str] = None,
        filesize: Optional[int] = None,
        fid: Optional[int] = None,
        media_id: Optional[int] = None,
        local_reference: bool = False,
    ) -> AssetCandidate:
        """Candidate for a local file identified by stream URI."""
        name = file_name or posixpath.basename(uri.split("://", 1)[-1])
        mime = mime_type or self.catalog.mime_for_filename(uri)
        classification = self.catalog.classify_file(name if "." in name else uri, mime)
        return AssetCandidate(
            identity=uri,
            source_type=source_type,
            asset_type=classification.asset_type,
            category=classification.category,
            sort_order=classification.sort_order,
            file_name=name,
            url=self.resolver.stream_uri_to_url(uri),
            mime_type=mime,
            filesize=filesize,
            is_private=uri.startswith("private://"),
            fid=fid,
            media_id=media_id,
            local_reference=local_reference,
        )

    def local_reference_candidate(self, uri: str, file_name: Optional[str] = None) -> AssetCandidate:
        return self.file_candidate(
            uri, SourceType.LOOSE_FILE.value, file_name=file_name, local_reference=True
        )

    def remote_candidate(
        self,
        url: str,
        asset_type: str,
        source_type: str = SourceType.EXTERNAL_URL.value,
        file_name: Optional[str] = None,
        media_id: Optional[int] = None,
    ) -> AssetCandidate:
        """Candidate for a remote reference identified by its normalized URL."""
        classification = self.catalog.classification_for(asset_type)
        label = self.catalog.label_for(asset_type)
        return AssetCandidate(
            identity=url,
            source_type=source_type,
            asset_type=classification.asset_type,
            category=classification.category,
            sort_order=classification.sort_order,
            file_name=file_name or label,
            url=url,
            mime_type=label,
            filesize=None,
            media_id=media_id,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(phase={self.phase}, batch_size={self.batch_size})>"

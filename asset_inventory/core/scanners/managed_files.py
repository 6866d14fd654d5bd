"""Phase 1: the managed-file registry."""

import logging
from typing import Iterable, Optional, Sequence

from ...config import settings
from ...database.models import SourceType
from ...exceptions import MalformedReferenceError
from ..path_resolver import is_stream_uri, is_system_generated
from ..sources import ManagedFile, RecordSource
from .base import BaseScanner, Sighting

logger = logging.getLogger("asset_inventory.scanners.managed_files")


class ManagedFileScanner(BaseScanner):
    """
    Registers every registry file outside system-generated directories and
    emits one sighting per declared usage.

    Usages declared through a media entity are reported as media_reference,
    direct file-field usages as field_reference.
    """

    phase = "managed_files"

    def __init__(self, source: RecordSource, batch_size: Optional[int] = None, **kwargs):
        super().__init__(batch_size or settings.managed_files_batch_size, **kwargs)
        self.source = source

    async def count(self) -> int:
        return await self.source.count()

    async def fetch_chunk(self, offset: int, limit: int) -> Sequence[ManagedFile]:
        return await self.source.fetch(offset, limit)

    def sightings_for(self, record: ManagedFile) -> Iterable[Sighting]:
        uri = (record.uri or "").strip()
        if not is_stream_uri(uri):
            raise MalformedReferenceError(f"fid {record.fid}: unsupported file URI {record.uri!r}")
        if is_system_generated(uri):
            logger.debug(f"Skipping system-generated file {uri}")
            return []
        if record.filesize is not None and record.filesize < 0:
            raise MalformedReferenceError(f"fid {record.fid}: negative file size {record.filesize}")

        candidate = self.file_candidate(
            uri,
            SourceType.REGISTERED_FILE.value,
            file_name=record.filename,
            mime_type=record.filemime,
            filesize=record.filesize,
            fid=record.fid,
            media_id=record.media_id,
        )
        embed_method = "media_reference" if record.media_id else "field_reference"

        sightings = [Sighting(candidate)]
        for usage in record.usages:
            sightings.append(
                Sighting(
                    candidate,
                    host=usage.host,
                    field_name=usage.field_name,
                    embed_method=embed_method,
                    occurrences=max(1, usage.count),
                )
            )
        return sightings

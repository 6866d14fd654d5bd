"""Phase 4: media entities wrapping a remote (oEmbed) URL."""

import logging
from typing import Iterable, Optional, Sequence

from ...config import settings
from ...database.models import SourceType
from ...exceptions import MalformedReferenceError
from ..path_resolver import normalize_url, normalize_video_url
from ..sources import RecordSource, RemoteMedia
from .base import BaseScanner, Sighting

logger = logging.getLogger("asset_inventory.scanners.remote_media")


class RemoteMediaScanner(BaseScanner):
    """
    Registers remote media as remote_reference assets.

    The source URL is canonicalized through the video normalizer first and
    the URL-pattern table second. Records matching neither are discarded.
    """

    phase = "remote_media"

    def __init__(self, source: RecordSource, batch_size: Optional[int] = None, **kwargs):
        super().__init__(batch_size or settings.remote_media_batch_size, **kwargs)
        self.source = source

    async def count(self) -> int:
        return await self.source.count()

    async def fetch_chunk(self, offset: int, limit: int) -> Sequence[RemoteMedia]:
        return await self.source.fetch(offset, limit)

    def sightings_for(self, record: RemoteMedia) -> Iterable[Sighting]:
        source_url = (record.source_url or "").strip()
        if not source_url:
            raise MalformedReferenceError(f"media {record.media_id}: empty source URL")

        video = normalize_video_url(source_url)
        if video:
            identity, asset_type = video.url, video.platform
        else:
            asset_type = self.catalog.match_url(source_url)
            if asset_type is None:
                logger.debug(f"media {record.media_id}: unrecognized source {source_url}, skipping")
                return []
            identity = normalize_url(source_url)

        candidate = self.remote_candidate(
            identity,
            asset_type,
            source_type=SourceType.REMOTE_REFERENCE.value,
            file_name=record.name,
            media_id=record.media_id,
        )

        sightings = [Sighting(candidate)]
        for usage in record.usages:
            sightings.append(
                Sighting(
                    candidate,
                    host=usage.host,
                    field_name=usage.field_name,
                    embed_method="media_reference",
                    occurrences=max(1, usage.count),
                )
            )
        return sightings

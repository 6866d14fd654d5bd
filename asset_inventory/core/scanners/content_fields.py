"""
Phase 3: references embedded in text and link fields.

Text values go through MarkupExtractor. Link values are a single URL or
path. Short values in fields named like a video-id field are read as a bare
YouTube or Vimeo id.
"""

import logging
import re
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence

from ...config import settings
from ...database.models import SourceType
from ..asset_types import file_extension
from ..extraction import Html5Embed, MarkupExtractor
from ..path_resolver import is_stream_uri, normalize_url, normalize_video_url
from ..sources import ContentField, RecordSource
from .base import BaseScanner, Sighting

logger = logging.getLogger("asset_inventory.scanners.content_fields")

YOUTUBE_FIELD_KEYWORDS = ("youtube", "yt_id", "ytid", "youtube_id", "youtubeid")
VIMEO_FIELD_KEYWORDS = ("vimeo", "vimeo_id", "vimeoid")
GENERIC_VIDEO_FIELD_KEYWORDS = ("video_id", "videoid")
MAX_VIDEO_ID_LENGTH = 20

_YOUTUBE_ID = re.compile(r"^[a-zA-Z0-9_-]{11}$")
_VIMEO_ID = re.compile(r"^\d+$")
_HTTP = re.compile(r"^https?://", re.IGNORECASE)

CAPTION_TYPES = ("vtt", "srt")


def detect_video_id(value: Optional[str], field_name: str) -> Optional[str]:
    """
    Interpret a short field value as a video id based on the field's name.

    Args:
        value: Raw field value
        field_name: Machine name of the field

    Returns:
        Canonical video URL, or None
    """
    value = (value or "").strip()
    if not value or len(value) > MAX_VIDEO_ID_LENGTH:
        return None

    context = field_name.lower()
    if any(k in context for k in YOUTUBE_FIELD_KEYWORDS) and _YOUTUBE_ID.match(value):
        return f"https://www.youtube.com/watch?v={value}"
    if any(k in context for k in VIMEO_FIELD_KEYWORDS) and _VIMEO_ID.match(value):
        return f"https://vimeo.com/{value}"
    if any(k in context for k in GENERIC_VIDEO_FIELD_KEYWORDS):
        if _YOUTUBE_ID.match(value):
            return f"https://www.youtube.com/watch?v={value}"
        if _VIMEO_ID.match(value):
            return f"https://vimeo.com/{value}"
    return None


class ContentFieldScanner(BaseScanner):
    """Scans text/link field values for local files and external resources."""

    phase = "content"

    def __init__(self, source: RecordSource, batch_size: Optional[int] = None, **kwargs):
        super().__init__(batch_size or settings.content_batch_size, **kwargs)
        self.source = source
        self.extractor = MarkupExtractor(self.resolver)

    async def count(self) -> int:
        return await self.source.count()

    async def fetch_chunk(self, offset: int, limit: int) -> Sequence[ContentField]:
        return await self.source.fetch(offset, limit)

    def sightings_for(self, record: ContentField) -> Iterable[Sighting]:
        value = record.value or ""
        if not value.strip():
            return []

        if record.field_type == "link":
            sightings = self._link_sightings(record, value.strip())
            embed_method = "link_field"
        else:
            sightings = self._text_sightings(record, value)
            embed_method = "text_url"

        video_url = detect_video_id(value, record.field_name)
        if video_url:
            logger.debug(f"Video id detected in {record.host}.{record.field_name}: {value.strip()}")
            sighting = self._external_sighting(record, video_url, embed_method)
            if sighting:
                sightings.append(sighting)

        return sightings

    # =========================================================================
    # FIELD TYPES
    # =========================================================================

    def _text_sightings(self, record: ContentField, value: str) -> List[Sighting]:
        refs = self.extractor.extract(value)
        sightings: List[Sighting] = []

        for embed in refs.html5_embeds:
            sightings.extend(self._html5_sightings(record, embed))

        for uri, embed_method in refs.local_references:
            sightings.append(self._local_sighting(record, uri, embed_method))

        for url in refs.iframe_urls:
            sighting = self._external_sighting(record, url, "inline_iframe")
            if sighting:
                sightings.append(sighting)

        for url in refs.bare_urls:
            # Local-file URLs are already covered by the tag references
            if self.resolver.is_file_storage_path(url):
                continue
            sighting = self._external_sighting(record, url, "text_url")
            if sighting:
                sightings.append(sighting)

        return sightings

    def _link_sightings(self, record: ContentField, value: str) -> List[Sighting]:
        uri = self.resolver.url_path_to_stream_uri(value)
        if uri:
            return [self._local_sighting(record, uri, "link_field")]
        if _HTTP.match(value):
            sighting = self._external_sighting(record, value, "link_field")
            return [sighting] if sighting else []
        return []

    def _html5_sightings(self, record: ContentField, embed: Html5Embed) -> List[Sighting]:
        sightings: List[Sighting] = []
        fallback_type = "external_video" if embed.media_type == "video" else "external_audio"

        player = {
            "presentation_type": embed.presentation_type,
            "accessibility_signals": embed.accessibility_signals(),
        }
        for src in embed.sources:
            if is_stream_uri(src):
                sighting = self._local_sighting(record, src, embed.embed_method)
            elif _HTTP.match(src) or src.startswith("//"):
                sighting = self._external_sighting(record, src, embed.embed_method, fallback_type=fallback_type)
            else:
                continue
            if sighting is not None:
                sightings.append(replace(sighting, **player))

        for track in embed.tracks:
            if is_stream_uri(track.url):
                sightings.append(self._local_sighting(record, track.url, "html5_track"))
            elif _HTTP.match(track.url) or track.url.startswith("//"):
                ext = file_extension(track.url)
                sightings.append(
                    self._external_sighting(
                        record,
                        track.url,
                        "html5_track",
                        fallback_type=ext if ext in CAPTION_TYPES else "other",
                    )
                )

        return [s for s in sightings if s is not None]

    # =========================================================================
    # SIGHTINGS
    # =========================================================================

    def _local_sighting(self, record: ContentField, uri: str, embed_method: str) -> Sighting:
        return Sighting(
            self.local_reference_candidate(uri),
            host=record.host,
            field_name=record.field_name,
            embed_method=embed_method,
        )

    def _external_sighting(
        self,
        record: ContentField,
        url: str,
        embed_method: str,
        fallback_type: Optional[str] = None,
    ) -> Optional[Sighting]:
        """
        Classify an external URL and build its sighting.

        Video URLs collapse onto their canonical watch URL. Anything else is
        identified by its normalized URL. URLs matching no known pattern are
        dropped unless a fallback type is given (HTML5 media sources).
        """
        asset_type = self.catalog.match_url(url)
        if asset_type is None and fallback_type is None:
            return None

        video = normalize_video_url(url) if asset_type is not None else None
        if video:
            identity, asset_type = video.url, video.platform
        else:
            identity = normalize_url(url)
            asset_type = asset_type or fallback_type

        return Sighting(
            self.remote_candidate(identity, asset_type, SourceType.EXTERNAL_URL.value),
            host=record.host,
            field_name=record.field_name,
            embed_method=embed_method,
        )

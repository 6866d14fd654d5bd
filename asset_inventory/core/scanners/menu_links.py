"""Phase 5: navigation links pointing at files."""

import logging
from typing import Iterable, Optional, Sequence
from urllib.parse import urlsplit

from ...config import settings
from ..sources import MenuLink, RecordSource
from .base import BaseScanner, Sighting

logger = logging.getLogger("asset_inventory.scanners.menu_links")


class MenuLinkScanner(BaseScanner):
    """Menu links are root entities; a file link is a usage hosted by the link itself."""

    phase = "menu_links"

    def __init__(self, source: RecordSource, batch_size: Optional[int] = None, **kwargs):
        super().__init__(batch_size or settings.menu_links_batch_size, **kwargs)
        self.source = source

    async def count(self) -> int:
        return await self.source.count()

    async def fetch_chunk(self, offset: int, limit: int) -> Sequence[MenuLink]:
        return await self.source.fetch(offset, limit)

    def link_path(self, uri: str) -> Optional[str]:
        """
        Extract the site path from a menu link URI.

        Handles internal:/path, base:path and absolute http(s) URLs.
        entity: and route: URIs never point at files.
        """
        uri = (uri or "").strip()
        if uri.startswith("internal:/"):
            return uri[len("internal:"):]
        if uri.startswith("base:"):
            return "/" + uri[len("base:"):].lstrip("/")
        if uri.startswith(("entity:", "route:")):
            return None
        if uri.startswith(("http://", "https://")):
            return urlsplit(uri).path or None
        return None

    def sightings_for(self, record: MenuLink) -> Iterable[Sighting]:
        path = self.link_path(record.uri)
        if not path:
            return []
        stream_uri = self.resolver.url_path_to_stream_uri(path)
        if not stream_uri:
            return []

        return [
            Sighting(
                self.local_reference_candidate(stream_uri),
                host=record.ref,
                field_name=f"link ({record.menu_name})",
                embed_method="menu_link",
            )
        ]

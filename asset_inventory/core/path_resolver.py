# ============================================================================
# Asset Inventory - Path Resolver
# ============================================================================
"""
Conversion between raw reference strings and canonical asset identities.

Local files are identified by stream URIs:
    public://docs/report.pdf    served from <public base path>/docs/report.pdf
    private://hr/policy.pdf     served from /system/files/hr/policy.pdf

Remote references are identified by their normalized URL. Either identity is
hashed with MD5 to produce the url_hash stored on every AssetItem.

Everything here is pure: results depend only on the input and the site
layout the resolver was constructed with.

Usage:
    from asset_inventory.core.path_resolver import path_resolver

    path_resolver.url_path_to_stream_uri("/sites/default/files/a%20b.pdf")
    # Returns: "public://a b.pdf"

    normalize_url("HTTPS://Example.COM:443/Path/")
    # Returns: "https://example.com/Path"
"""

import hashlib
import logging
import re
from pathlib import Path, PurePosixPath
from typing import NamedTuple, Optional
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from ..config import settings

logger = logging.getLogger("asset_inventory.path_resolver")

PUBLIC_SCHEME = "public://"
PRIVATE_SCHEME = "private://"

# Path segments that only ever hold derivatives, caches or generated files
SYSTEM_DIRECTORIES = frozenset(
    {
        "styles",
        "thumbnails",
        "media-icons",
        "oembed_thumbnails",
        "video_thumbnails",
        "css",
        "js",
        "php",
        "ctools",
        "xmlsitemap",
        "archive",
    }
)
SYSTEM_DIRECTORY_PREFIXES = ("config_",)

_MULTISITE_PRIVATE = re.compile(r"^/sites/[^/]+/files/private/(.+)$", re.IGNORECASE)
_MULTISITE_PUBLIC = re.compile(r"^/sites/[^/]+/files/(.+)$", re.IGNORECASE)
_SYSTEM_FILES = re.compile(r"^/system/files/(.+)$", re.IGNORECASE)
_QUERY_OR_FRAGMENT = re.compile(r"[?#].*$")
_HTTP_URL = re.compile(r"^https?://", re.IGNORECASE)

_YOUTUBE_PATTERNS = [
    re.compile(r"(?:https?://)?(?:www\.|m\.)?youtube\.com/watch\?(?:.*&)?v=([a-zA-Z0-9_-]{11})(?:&|#|$)", re.I),
    re.compile(r"(?:https?://)?youtu\.be/([a-zA-Z0-9_-]{11})(?:\?|$)", re.I),
    re.compile(r"(?:https?://)?(?:www\.)?youtube\.com/(?:embed|v|shorts)/([a-zA-Z0-9_-]{11})(?:\?|$)", re.I),
    re.compile(r"(?:https?://)?(?:www\.)?youtube-nocookie\.com/embed/([a-zA-Z0-9_-]{11})(?:\?|$)", re.I),
]
_VIMEO_PATTERNS = [
    re.compile(r"(?:https?://)?(?:www\.)?vimeo\.com/(\d+)(?:\?|/|$)", re.I),
    re.compile(r"(?:https?://)?player\.vimeo\.com/video/(\d+)(?:\?|$)", re.I),
]
_BARE_YOUTUBE_ID = re.compile(r"^[a-zA-Z0-9_-]{11}$")
_BARE_VIMEO_ID = re.compile(r"^\d{1,12}$")

_DEFAULT_PORTS = {"http": 80, "https": 443}


class VideoReference(NamedTuple):
    """Canonical form of a YouTube or Vimeo reference."""
    url: str
    video_id: str
    platform: str


# =========================================================================
# PURE HELPERS
# =========================================================================


def url_hash(identity: str) -> str:
    """MD5 hex digest of a canonical identity (stream URI or normalized URL)."""
    return hashlib.md5(identity.encode("utf-8")).hexdigest()


def is_stream_uri(value: str) -> bool:
    return value.startswith(PUBLIC_SCHEME) or value.startswith(PRIVATE_SCHEME)


def stream_uri_parts(uri: str) -> tuple:
    """Split a stream URI into (scheme, relative path)."""
    scheme, _, relative = uri.partition("://")
    return scheme, relative


def is_system_generated(uri: str) -> bool:
    """
    Check whether a stream URI points into a system-generated directory.

    Any directory segment (never the file name itself) that matches the deny
    list disqualifies the file.
    """
    _, relative = stream_uri_parts(uri) if is_stream_uri(uri) else ("", uri)
    segments = [s for s in relative.split("/") if s][:-1]
    for segment in segments:
        lowered = segment.lower()
        if lowered in SYSTEM_DIRECTORIES or lowered.startswith(SYSTEM_DIRECTORY_PREFIXES):
            return True
    return False


def normalize_url(url: str) -> str:
    """
    Normalize an absolute URL for duplicate detection.

    Lowercases scheme and host, drops default ports, removes the fragment and
    any trailing slash (the root path keeps its slash). Path case and query
    string are preserved. Scheme-relative URLs become https; relative paths
    are returned unchanged.

    Args:
        url: Raw URL

    Returns:
        Normalized URL string
    """
    url = url.strip()
    if url.startswith("//"):
        url = "https:" + url

    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return url

    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    try:
        port = parts.port
    except ValueError:
        return url

    netloc = host
    if parts.username:
        userinfo = parts.username
        if parts.password:
            userinfo += f":{parts.password}"
        netloc = f"{userinfo}@{netloc}"
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc += f":{port}"

    path = parts.path or "/"
    if len(path) > 1:
        path = path.rstrip("/") or "/"

    return urlunsplit((scheme, netloc, path, parts.query, ""))


def normalize_video_url(value: str) -> Optional[VideoReference]:
    """
    Canonicalize YouTube/Vimeo URLs and bare video ids.

    Returns:
        VideoReference, or None when the value is not a recognizable video
    """
    value = (value or "").strip()
    if not value:
        return None

    for pattern in _YOUTUBE_PATTERNS:
        match = pattern.search(value)
        if match:
            video_id = match.group(1)
            return VideoReference(f"https://www.youtube.com/watch?v={video_id}", video_id, "youtube")

    for pattern in _VIMEO_PATTERNS:
        match = pattern.search(value)
        if match:
            video_id = match.group(1)
            return VideoReference(f"https://vimeo.com/{video_id}", video_id, "vimeo")

    if _BARE_YOUTUBE_ID.match(value):
        return VideoReference(f"https://www.youtube.com/watch?v={value}", value, "youtube")
    if _BARE_VIMEO_ID.match(value):
        return VideoReference(f"https://vimeo.com/{value}", value, "vimeo")

    return None


def strip_query(value: str) -> str:
    return _QUERY_OR_FRAGMENT.sub("", value)


# =========================================================================
# SITE-AWARE RESOLVER
# =========================================================================


class PathResolver:
    """
    Site-aware conversion between URLs, stream URIs and filesystem paths.

    Attributes:
        site_base_url: Absolute base URL of the site (no trailing slash)
        public_base_path: URL path prefix of public files (no trailing slash)
        public_root: Filesystem root of public:// files
        private_root: Filesystem root of private:// files
    """

    def __init__(
        self,
        site_base_url: Optional[str] = None,
        public_base_path: Optional[str] = None,
        public_root: Optional[str] = None,
        private_root: Optional[str] = None,
    ):
        self.site_base_url = (site_base_url or settings.site_base_url).rstrip("/")
        base = public_base_path or settings.public_files_base_path
        self.public_base_path = "/" + base.strip("/")
        self.public_root = Path(public_root or settings.public_files_root)
        self.private_root = Path(private_root or settings.private_files_root)

    def url_path_to_stream_uri(self, value: str) -> Optional[str]:
        """
        Convert a URL, root-relative path or stream URI into a stream URI.

        Args:
            value: Raw reference (may be quoted, absolute, scheme-relative)

        Returns:
            "public://..." or "private://...", or None for non-file references
        """
        if not value:
            return None
        value = value.strip().strip("\"'").strip()
        if not value:
            return None

        if is_stream_uri(value):
            return value

        if value.startswith("//"):
            value = "https:" + value

        if _HTTP_URL.match(value):
            path = urlsplit(value).path or ""
        else:
            path = value

        path = strip_query(path)
        if not path.startswith("/"):
            return None

        match = _MULTISITE_PRIVATE.match(path)
        if match:
            return PRIVATE_SCHEME + unquote(match.group(1))

        match = _MULTISITE_PUBLIC.match(path)
        if match:
            return PUBLIC_SCHEME + unquote(match.group(1))

        if self.public_base_path != "/sites/default/files":
            private_prefix = f"{self.public_base_path}/private/"
            if path.startswith(private_prefix) and len(path) > len(private_prefix):
                return PRIVATE_SCHEME + unquote(path[len(private_prefix):])
            public_prefix = f"{self.public_base_path}/"
            if path.startswith(public_prefix) and len(path) > len(public_prefix):
                return PUBLIC_SCHEME + unquote(path[len(public_prefix):])

        match = _SYSTEM_FILES.match(path)
        if match:
            return PRIVATE_SCHEME + unquote(match.group(1))

        return None

    def stream_uri_to_url(self, uri: str) -> str:
        """Absolute URL at which a stream URI is served."""
        scheme, relative = stream_uri_parts(uri)
        encoded = quote(relative, safe="/")
        if scheme == "private":
            return f"{self.site_base_url}/system/files/{encoded}"
        return f"{self.site_base_url}{self.public_base_path}/{encoded}"

    def stream_uri_to_path(self, uri: str) -> Optional[Path]:
        """
        Filesystem location of a stream URI.

        Returns:
            Path under the matching root, or None for non-stream or escaping URIs
        """
        if not is_stream_uri(uri):
            return None
        scheme, relative = stream_uri_parts(uri)
        parts = PurePosixPath(relative).parts
        if not parts or ".." in parts or relative.startswith("/"):
            logger.warning(f"Refusing to map stream URI outside its root: {uri}")
            return None
        root = self.private_root if scheme == "private" else self.public_root
        return root.joinpath(*parts)

    def path_to_stream_uri(self, path: Path, private: bool) -> str:
        """Stream URI for a file located under the public or private root."""
        root = self.private_root if private else self.public_root
        relative = Path(path).relative_to(root).as_posix()
        return (PRIVATE_SCHEME if private else PUBLIC_SCHEME) + relative

    def is_file_storage_path(self, value: str) -> bool:
        """True when the value points into public or private file storage."""
        return self.url_path_to_stream_uri(value) is not None

    def __repr__(self) -> str:
        return f"<PathResolver(base_url={self.site_base_url}, public_base={self.public_base_path})>"


# Global resolver built from settings
path_resolver = PathResolver()

"""Source scanners, one per scan phase."""

from .base import AssetCandidate, BaseScanner, Sighting
from .content_fields import ContentFieldScanner, detect_video_id
from .filesystem import FilesystemScanner
from .managed_files import ManagedFileScanner
from .menu_links import MenuLinkScanner
from .remote_media import RemoteMediaScanner

__all__ = [
    "AssetCandidate",
    "BaseScanner",
    "Sighting",
    "ManagedFileScanner",
    "FilesystemScanner",
    "ContentFieldScanner",
    "RemoteMediaScanner",
    "MenuLinkScanner",
    "detect_video_id",
]

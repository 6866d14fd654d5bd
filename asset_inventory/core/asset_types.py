"""
Asset-type catalog.

Maps files to asset types by MIME type (falling back to the file extension),
maps remote URLs to asset types by configurable URL patterns, and assigns each
type a category with a fixed sort position. Only Documents and Videos are
eligible for archiving.

File types are built in. URL-pattern types have built-in defaults that the
YAML catalog (ASSET_TYPES_FILE) can override or extend.
"""

import logging
import posixpath
from typing import Dict, List, NamedTuple, Optional

from ..models.config_models import AssetTypeConfig, CatalogConfig
from ..services.config_loader import config_loader

logger = logging.getLogger("asset_inventory.asset_types")

DEFAULT_MIME_TYPE = "application/octet-stream"
UNKNOWN_SORT_ORDER = 99

EXTENSION_MIME_TYPES: Dict[str, str] = {
    # Documents
    "pdf": "application/pdf",
    "doc": "application/msword",
    "docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "xls": "application/vnd.ms-excel",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "ppt": "application/vnd.ms-powerpoint",
    "pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "txt": "text/plain",
    "csv": "text/csv",
    "vtt": "text/vtt",
    "srt": "application/x-subrip",
    # Images
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "webp": "image/webp",
    # Videos
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    # Audio
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "m4a": "audio/mp4",
    "ogg": "audio/ogg",
    # Compressed
    "zip": "application/zip",
    "tar": "application/x-tar",
    "gz": "application/gzip",
    "7z": "application/x-7z-compressed",
    "rar": "application/x-rar-compressed",
}

# Extensions picked up by the loose-file filesystem walk
KNOWN_EXTENSIONS = frozenset(EXTENSION_MIME_TYPES) - {"vtt", "srt"}

MIME_ASSET_TYPES: Dict[str, str] = {
    "application/pdf": "pdf",
    "application/msword": "word",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "word",
    "application/vnd.ms-excel": "excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "excel",
    "application/vnd.ms-powerpoint": "powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "powerpoint",
    "text/plain": "text",
    "text/csv": "csv",
    "application/csv": "csv",
    "text/vtt": "vtt",
    "application/x-subrip": "srt",
    "text/srt": "srt",
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/svg+xml": "svg",
    "image/webp": "webp",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "video/x-msvideo": "avi",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
    "audio/mp4": "m4a",
    "audio/ogg": "ogg",
    "application/zip": "compressed",
    "application/x-tar": "compressed",
    "application/gzip": "compressed",
    "application/x-gzip": "compressed",
    "application/x-7z-compressed": "compressed",
    "application/x-rar-compressed": "compressed",
}

FILE_TYPES: Dict[str, AssetTypeConfig] = {
    "pdf": AssetTypeConfig(label="PDF", category="Documents"),
    "word": AssetTypeConfig(label="Word", category="Documents"),
    "excel": AssetTypeConfig(label="Excel", category="Documents"),
    "powerpoint": AssetTypeConfig(label="PowerPoint", category="Documents"),
    "text": AssetTypeConfig(label="Text", category="Documents"),
    "csv": AssetTypeConfig(label="CSV", category="Documents"),
    "vtt": AssetTypeConfig(label="WebVTT Captions", category="Documents"),
    "srt": AssetTypeConfig(label="SRT Captions", category="Documents"),
    "jpg": AssetTypeConfig(label="JPEG", category="Images"),
    "png": AssetTypeConfig(label="PNG", category="Images"),
    "gif": AssetTypeConfig(label="GIF", category="Images"),
    "svg": AssetTypeConfig(label="SVG", category="Images"),
    "webp": AssetTypeConfig(label="WebP", category="Images"),
    "mp4": AssetTypeConfig(label="MP4", category="Videos"),
    "webm": AssetTypeConfig(label="WebM", category="Videos"),
    "mov": AssetTypeConfig(label="QuickTime", category="Videos"),
    "avi": AssetTypeConfig(label="AVI", category="Videos"),
    "mp3": AssetTypeConfig(label="MP3", category="Audio"),
    "wav": AssetTypeConfig(label="WAV", category="Audio"),
    "m4a": AssetTypeConfig(label="M4A", category="Audio"),
    "ogg": AssetTypeConfig(label="OGG", category="Audio"),
    "compressed": AssetTypeConfig(label="Compressed", category="Other"),
    "external_video": AssetTypeConfig(label="External Video", category="Embedded Media"),
    "external_audio": AssetTypeConfig(label="External Audio", category="Audio"),
    "other": AssetTypeConfig(label="Other", category="Other"),
}

DEFAULT_URL_TYPES: Dict[str, AssetTypeConfig] = {
    "google_doc": AssetTypeConfig(
        label="Google Doc", category="Google Workspace", url_patterns=["docs.google.com/document"]
    ),
    "google_sheet": AssetTypeConfig(
        label="Google Sheet", category="Google Workspace", url_patterns=["docs.google.com/spreadsheets"]
    ),
    "google_slide": AssetTypeConfig(
        label="Google Slides", category="Google Workspace", url_patterns=["docs.google.com/presentation"]
    ),
    "google_form": AssetTypeConfig(
        label="Google Form", category="Forms & Surveys", url_patterns=["docs.google.com/forms", "forms.gle"]
    ),
    # dropbox before box_link: "dropbox.com" contains "box.com"
    "dropbox": AssetTypeConfig(label="Dropbox", category="Document Services", url_patterns=["dropbox.com"]),
    "box_link": AssetTypeConfig(label="Box", category="Document Services", url_patterns=["box.com"]),
    "onedrive": AssetTypeConfig(
        label="OneDrive/SharePoint",
        category="Document Services",
        url_patterns=["onedrive.live.com", "1drv.ms", "sharepoint.com"],
    ),
    "microsoft_form": AssetTypeConfig(
        label="Microsoft Form", category="Forms & Surveys", url_patterns=["forms.office.com", "forms.microsoft.com"]
    ),
    "qualtrics": AssetTypeConfig(label="Qualtrics", category="Forms & Surveys", url_patterns=["qualtrics.com"]),
    "surveymonkey": AssetTypeConfig(
        label="SurveyMonkey", category="Forms & Surveys", url_patterns=["surveymonkey.com"]
    ),
    "canvas": AssetTypeConfig(
        label="Canvas", category="Education Platforms", url_patterns=["instructure.com", "canvas."]
    ),
    "youtube": AssetTypeConfig(label="YouTube", category="Embedded Media", url_patterns=["youtube.com", "youtu.be", "youtube-nocookie.com"]),
    "vimeo": AssetTypeConfig(label="Vimeo", category="Embedded Media", url_patterns=["vimeo.com"]),
}

CATEGORY_SORT_ORDER: Dict[str, int] = {
    "Documents": 1,
    "Videos": 2,
    "Audio": 3,
    "Google Workspace": 4,
    "Document Services": 5,
    "Forms & Surveys": 6,
    "Education Platforms": 7,
    "Embedded Media": 8,
    "Images": 9,
    "Other": 10,
}

ARCHIVABLE_CATEGORIES = ("Documents", "Videos")


class Classification(NamedTuple):
    asset_type: str
    category: str
    sort_order: int


def file_extension(name: str) -> str:
    """Lower-cased extension of a file name or path, without the dot."""
    _, ext = posixpath.splitext(name.rsplit("/", 1)[-1])
    return ext[1:].lower()


class AssetCatalog:
    """
    Asset-type lookup tables with optional YAML overrides.

    Attributes:
        url_types: URL-pattern types in match order
        sort_orders: Category sort positions
        archivable_categories: Categories eligible for archiving
    """

    def __init__(self, config: Optional[CatalogConfig] = None):
        self.url_types: Dict[str, AssetTypeConfig] = dict(DEFAULT_URL_TYPES)
        self.sort_orders: Dict[str, int] = dict(CATEGORY_SORT_ORDER)
        self.archivable_categories: List[str] = list(ARCHIVABLE_CATEGORIES)

        if config is not None:
            self.url_types.update(config.asset_types)
            self.sort_orders.update(config.category_sort_order)
            if config.archivable_categories is not None:
                self.archivable_categories = list(config.archivable_categories)
            logger.debug(f"Asset catalog overrides applied ({len(config.asset_types)} url types)")

    # =========================================================================
    # FILES
    # =========================================================================

    def mime_for_filename(self, name: str) -> str:
        return EXTENSION_MIME_TYPES.get(file_extension(name), DEFAULT_MIME_TYPE)

    def is_known_extension(self, name: str) -> bool:
        return file_extension(name) in KNOWN_EXTENSIONS

    def asset_type_for_mime(self, mime: Optional[str]) -> str:
        return MIME_ASSET_TYPES.get((mime or "").strip().lower(), "other")

    def classify_file(self, name: str, mime: Optional[str] = None) -> Classification:
        """
        Classify a file by MIME type, falling back to its extension.

        Args:
            name: File name or path
            mime: Declared MIME type, if any

        Returns:
            Classification (asset_type, category, sort_order)
        """
        asset_type = self.asset_type_for_mime(mime)
        if asset_type == "other":
            asset_type = self.asset_type_for_mime(self.mime_for_filename(name))
        return self._classification(asset_type)

    # =========================================================================
    # URLS
    # =========================================================================

    def match_url(self, url: str) -> Optional[str]:
        """
        Match a URL against the URL-pattern types.

        Returns:
            Asset type name, or None when no pattern matches
        """
        lowered = (url or "").strip().lower()
        if not lowered:
            return None
        for asset_type, config in self.url_types.items():
            for pattern in config.url_patterns:
                if pattern and pattern in lowered:
                    return asset_type
        return None

    def classify_url(self, url: str) -> Optional[Classification]:
        asset_type = self.match_url(url)
        if asset_type is None:
            return None
        return self._classification(asset_type)

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    def type_config(self, asset_type: str) -> Optional[AssetTypeConfig]:
        return self.url_types.get(asset_type) or FILE_TYPES.get(asset_type)

    def label_for(self, asset_type: str) -> str:
        config = self.type_config(asset_type)
        return config.label if config else asset_type

    def category_for(self, asset_type: str) -> str:
        config = self.type_config(asset_type)
        return config.category if config else "Other"

    def sort_order_for(self, category: str) -> int:
        return self.sort_orders.get(category, UNKNOWN_SORT_ORDER)

    def can_archive(self, category: str) -> bool:
        return category in self.archivable_categories

    def classification_for(self, asset_type: str) -> Classification:
        return self._classification(asset_type)

    def _classification(self, asset_type: str) -> Classification:
        category = self.category_for(asset_type)
        return Classification(asset_type, category, self.sort_order_for(category))


# Global catalog (built-in types plus any configured overrides)
asset_catalog = AssetCatalog(config_loader.get_config())

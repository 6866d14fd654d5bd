"""
Tests for the asset-type catalog.
"""

from asset_inventory.core.asset_types import AssetCatalog, file_extension
from asset_inventory.models.config_models import AssetTypeConfig, CatalogConfig


class TestFileClassification:
    """MIME first, extension second."""

    def test_classify_by_mime(self):
        catalog = AssetCatalog()
        result = catalog.classify_file("upload.bin", "application/msword")
        assert result.asset_type == "word"
        assert result.category == "Documents"
        assert result.sort_order == 1

    def test_classify_by_extension_when_mime_unknown(self):
        """An unknown or missing MIME type falls back to the extension."""
        catalog = AssetCatalog()
        assert catalog.classify_file("report.PDF").asset_type == "pdf"
        assert catalog.classify_file("clip.mp4", "application/octet-stream").category == "Videos"

    def test_unknown_file_is_other(self):
        result = AssetCatalog().classify_file("data.xyz")
        assert result.asset_type == "other"
        assert result.category == "Other"
        assert result.sort_order == 10

    def test_known_extensions_exclude_captions(self):
        """Caption files are only inventoried when something references them."""
        catalog = AssetCatalog()
        assert catalog.is_known_extension("a.pdf") is True
        assert catalog.is_known_extension("a.vtt") is False
        assert catalog.is_known_extension("README") is False

    def test_file_extension(self):
        assert file_extension("dir.v2/report.tar.GZ") == "gz"
        assert file_extension("noext") == ""


class TestUrlClassification:
    def test_google_workspace(self):
        catalog = AssetCatalog()
        assert catalog.match_url("https://docs.google.com/document/d/1/edit") == "google_doc"
        assert catalog.match_url("https://docs.google.com/spreadsheets/d/1") == "google_sheet"
        assert catalog.classify_url("https://forms.gle/abc").category == "Forms & Surveys"

    def test_dropbox_is_not_box(self):
        """dropbox.com contains box.com; match order keeps them apart."""
        catalog = AssetCatalog()
        assert catalog.match_url("https://www.dropbox.com/s/x/file.pdf") == "dropbox"
        assert catalog.match_url("https://app.box.com/s/x") == "box_link"

    def test_case_insensitive(self):
        assert AssetCatalog().match_url("HTTPS://WWW.YOUTUBE.COM/watch?v=dQw4w9WgXcQ") == "youtube"

    def test_unmatched_url(self):
        catalog = AssetCatalog()
        assert catalog.match_url("https://example.org/page") is None
        assert catalog.classify_url("https://example.org/page") is None
        assert catalog.match_url("") is None


class TestCategories:
    def test_only_documents_and_videos_are_archivable(self):
        catalog = AssetCatalog()
        assert catalog.can_archive("Documents") is True
        assert catalog.can_archive("Videos") is True
        assert catalog.can_archive("Images") is False
        assert catalog.can_archive("Embedded Media") is False

    def test_sort_order(self):
        catalog = AssetCatalog()
        assert catalog.sort_order_for("Documents") < catalog.sort_order_for("Videos")
        assert catalog.sort_order_for("Other") == 10
        assert catalog.sort_order_for("Unheard Of") == 99

    def test_labels(self):
        catalog = AssetCatalog()
        assert catalog.label_for("google_doc") == "Google Doc"
        assert catalog.label_for("pdf") == "PDF"
        assert catalog.label_for("mystery") == "mystery"


class TestCatalogOverrides:
    """YAML catalog entries extend and replace the built-in tables."""

    def test_new_url_type(self):
        config = CatalogConfig(
            asset_types={
                "panopto": AssetTypeConfig(label="Panopto", category="Embedded Media", url_patterns=["Panopto.com"])
            }
        )
        catalog = AssetCatalog(config)
        assert catalog.match_url("https://university.hosted.panopto.com/Panopto/Viewer") == "panopto"
        assert catalog.classify_url("https://x.panopto.com/v").sort_order == 8
        # built-in types remain
        assert catalog.match_url("https://vimeo.com/1") == "vimeo"

    def test_archivable_categories_override(self):
        catalog = AssetCatalog(CatalogConfig(archivable_categories=["Documents"]))
        assert catalog.can_archive("Documents") is True
        assert catalog.can_archive("Videos") is False

    def test_sort_order_override(self):
        catalog = AssetCatalog(CatalogConfig(category_sort_order={"Images": 2}))
        assert catalog.sort_order_for("Images") == 2

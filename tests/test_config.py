"""
Tests for environment-driven Settings.
"""

import os
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

from asset_inventory.config import Settings
from asset_inventory.core.path_resolver import PathResolver


class TestSettings:
    """Test Settings loading from the environment."""

    @patch.dict(os.environ, {
        "COMPLIANCE_DEADLINE": "2027-01-01T00:00:00",
        "ALLOW_ARCHIVE_IN_USE": "true",
        "SCAN_TIMEOUT_SECONDS": "90",
    })
    def test_environment_overrides(self):
        """Test that upper-case environment variables override defaults."""
        config = Settings()
        assert config.compliance_deadline == datetime(2027, 1, 1)
        assert config.allow_archive_in_use is True
        assert config.scan_timeout_seconds == 90.0

    @patch.dict(os.environ, {"ARCHIVE_REGISTRY_PATH": "/registry", "UNRELATED_SETTING": "x"})
    def test_unknown_variables_ignored(self):
        """Test that variables without a matching field are not exposed."""
        config = Settings()
        assert not hasattr(config, "archive_registry_path")
        assert not hasattr(config, "unrelated_setting")

    def test_file_roots_feed_the_resolver(self, tmp_path):
        """Test that the configured roots decide where stream URIs live on disk."""
        with patch.dict(os.environ, {
            "PUBLIC_FILES_ROOT": str(tmp_path / "pub"),
            "PRIVATE_FILES_ROOT": str(tmp_path / "priv"),
        }):
            config = Settings()

        resolver = PathResolver(
            public_root=config.public_files_root,
            private_root=config.private_files_root,
        )
        assert resolver.stream_uri_to_path("public://a/b.pdf") == Path(tmp_path / "pub" / "a" / "b.pdf")
        assert resolver.stream_uri_to_path("private://c.pdf") == Path(tmp_path / "priv" / "c.pdf")

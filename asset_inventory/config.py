# ============================================================================
# Asset Inventory - Application Configuration
# ============================================================================
"""
Application configuration module using Pydantic Settings.

This module defines all configuration parameters for the asset inventory,
including:
- API settings
- Site layout (base URL, public/private file roots)
- Scan tuning (batch sizes, retry limit, reachability depth)
- Archive compliance policy (deadline, in-use override, checksum limits)

Environment Variables:
    Every field can be supplied as an upper-case environment variable or via
    a local .env file (e.g. COMPLIANCE_DEADLINE=2026-04-24T00:00:00).

Usage:
    from asset_inventory.config import settings
    deadline = settings.compliance_deadline
"""

from datetime import datetime
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # =========================================================================
    # API SETTINGS
    # =========================================================================
    api_title: str = "Asset Inventory API"
    api_version: str = "1.0.0"
    debug: bool = Field(default=False, description="Enable verbose logging & SQL echo")

    # =========================================================================
    # SITE LAYOUT
    # =========================================================================
    site_base_url: str = Field(
        default="http://localhost", description="Absolute base URL of the content site"
    )
    public_files_base_path: str = Field(
        default="/sites/default/files",
        description="URL path prefix under which public files are served",
    )
    public_files_root: str = Field(
        default="./files/public", description="Filesystem root of public:// files"
    )
    private_files_root: str = Field(
        default="./files/private", description="Filesystem root of private:// files"
    )

    # =========================================================================
    # SCAN CONFIGURATION
    # =========================================================================
    managed_files_batch_size: int = Field(default=50, description="Registry rows per chunk")
    filesystem_batch_size: int = Field(default=50, description="Loose files per chunk")
    content_batch_size: int = Field(default=25, description="Text/link field rows per chunk")
    remote_media_batch_size: int = Field(default=25, description="Remote media rows per chunk")
    menu_links_batch_size: int = Field(default=50, description="Menu links per chunk")
    scan_max_retries: int = Field(default=3, description="Retries per chunk for transient source errors")
    scan_retry_delay_seconds: float = Field(default=1.0, description="Delay between chunk retries")
    scan_timeout_seconds: Optional[float] = Field(
        default=None, description="Cancel (and discard) a scan running longer than this"
    )
    max_reachability_depth: int = Field(
        default=32, description="Parent hops walked before a chain is treated as detached"
    )

    # =========================================================================
    # ARCHIVE POLICY
    # =========================================================================
    compliance_deadline: datetime = Field(
        default=datetime(2026, 4, 24, 0, 0, 0),
        description="UTC cutoff separating pre- and post-deadline archive categories",
    )
    allow_archive_in_use: bool = Field(
        default=False, description="Permit archiving assets that still have live usage"
    )
    checksum_size_limit: int = Field(
        default=50 * 1024 * 1024,
        description="Files above this size get their checksum computed later",
    )

    # =========================================================================
    # EXTERNAL CONFIG FILES
    # =========================================================================
    asset_types_file: Optional[str] = Field(
        default=None, description="YAML file overriding the URL-pattern asset types"
    )
    site_snapshot_file: Optional[str] = Field(
        default=None, description="Default YAML site snapshot used by the CLI scan command"
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance (imported elsewhere)
settings = Settings()

"""
Configuration loader for the YAML asset-type catalog.

Loads and caches the catalog file named by ASSET_TYPES_FILE, validating it
against the pydantic models in asset_inventory.models.config_models and
resolving ${ENV_VAR} references.

Usage:
    from asset_inventory.services.config_loader import config_loader

    catalog = config_loader.get_config()
    label = config_loader.get("asset_types.google_doc.label")

    config_loader.reload()
"""

import logging
from pathlib import Path
from typing import Any, Optional

from ..config import settings
from ..models.config_models import CatalogConfig

logger = logging.getLogger("asset_inventory.config_loader")


class ConfigLoader:
    """
    Catalog configuration loader and cache manager.

    When no path is configured the loader reports "not loaded" and callers
    fall back to the built-in catalog.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration loader.

        Args:
            config_path: Path to the catalog file (defaults to settings, then
                asset_types.yml in the working directory when present)
        """
        if config_path is None:
            config_path = settings.asset_types_file
        if config_path is None:
            candidate = Path.cwd() / "asset_types.yml"
            if candidate.exists():
                config_path = str(candidate)

        self.config_path = config_path
        self._config: Optional[CatalogConfig] = None
        self._loaded = False

    def load(self) -> CatalogConfig:
        """
        Load and parse the catalog file.

        Returns:
            Validated CatalogConfig instance

        Raises:
            FileNotFoundError: If no catalog file is configured or it doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        if not self.config_path:
            raise FileNotFoundError("No asset type catalog configured")

        logger.info(f"Loading asset type catalog from: {self.config_path}")

        try:
            self._config = CatalogConfig.from_yaml(self.config_path)
            self._loaded = True
            logger.info(f"Asset type catalog loaded ({len(self._config.asset_types)} types)")
            return self._config
        except FileNotFoundError:
            logger.warning(f"Asset type catalog not found: {self.config_path}")
            self._loaded = False
            raise
        except Exception as e:
            logger.error(f"Failed to load asset type catalog: {e}")
            self._loaded = False
            raise ValueError(f"Configuration error: {e}") from e

    def reload(self) -> CatalogConfig:
        """Reload the catalog from file."""
        logger.info("Reloading asset type catalog")
        self._config = None
        self._loaded = False
        return self.load()

    def is_loaded(self) -> bool:
        return self._loaded and self._config is not None

    def get_config(self) -> Optional[CatalogConfig]:
        """
        Get the catalog configuration, loading it on first use.

        Returns:
            CatalogConfig instance or None if no usable file is configured
        """
        if not self.is_loaded():
            if not self.config_path:
                return None
            try:
                return self.load()
            except (FileNotFoundError, ValueError):
                return None
        return self._config

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation path.

        Args:
            key_path: Dot-notation path (e.g., "asset_types.youtube.category")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        config = self.get_config()
        if config is None:
            return default

        obj = config
        for key in key_path.split('.'):
            if isinstance(obj, dict) and key in obj:
                obj = obj[key]
            elif not isinstance(obj, dict) and hasattr(obj, key):
                obj = getattr(obj, key)
            else:
                return default

        return obj


# Global configuration loader instance
config_loader = ConfigLoader()

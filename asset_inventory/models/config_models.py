"""
Pydantic models for YAML configuration validation.

This module defines the schema for the asset-type catalog file, which lets a
site add or override URL-pattern asset types (Google Workspace, document
services, forms, education platforms, embedded media) and their categories.

Example asset_types.yml:

    asset_types:
      google_doc:
        label: Google Doc
        category: Google Workspace
        url_patterns: ["docs.google.com/document"]
      panopto:
        label: Panopto Video
        category: Embedded Media
        url_patterns: ["${PANOPTO_HOST}"]
    category_sort_order:
      Google Workspace: 4

Usage:
    from asset_inventory.models.config_models import CatalogConfig
    config = CatalogConfig.from_yaml("asset_types.yml")
"""

import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AssetTypeConfig(BaseModel):
    """
    One URL-pattern asset type.

    A URL belongs to the type when any pattern is a (case-insensitive)
    substring of it.
    """
    model_config = ConfigDict(extra='forbid')

    label: str = Field(description="Human-readable type label")
    category: str = Field(description="Category the type is listed under")
    url_patterns: List[str] = Field(default_factory=list, description="Substrings identifying the type")

    @field_validator("url_patterns")
    @classmethod
    def lowercase_patterns(cls, v: List[str]) -> List[str]:
        return [p.strip().lower() for p in v if p and p.strip()]


class CatalogConfig(BaseModel):
    """
    Root configuration model for the asset-type catalog file.

    Entries in asset_types replace the built-in type of the same name; new
    names are appended after the built-in types.
    """
    model_config = ConfigDict(extra='forbid')

    asset_types: Dict[str, AssetTypeConfig] = Field(default_factory=dict)
    category_sort_order: Dict[str, int] = Field(
        default_factory=dict, description="Sort position overrides per category"
    )
    archivable_categories: Optional[List[str]] = Field(
        default=None, description="Categories eligible for archiving (defaults to Documents, Videos)"
    )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "CatalogConfig":
        """
        Load and parse the catalog from a YAML file.

        Args:
            yaml_path: Path to the catalog file

        Returns:
            Validated CatalogConfig instance

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        import yaml

        if not os.path.exists(yaml_path):
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        resolved_config = cls._resolve_env_vars(raw_config)

        return cls(**resolved_config)

    @classmethod
    def _resolve_env_vars(cls, obj: Any) -> Any:
        """
        Recursively resolve ${ENV_VAR} references in configuration.

        Args:
            obj: Configuration object (dict, list, str, etc.)

        Returns:
            Configuration with environment variables resolved
        """
        if isinstance(obj, dict):
            return {k: cls._resolve_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [cls._resolve_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            if obj.startswith("${") and obj.endswith("}"):
                var_name = obj[2:-1]
                value = os.getenv(var_name)
                if value is None:
                    raise ValueError(f"Environment variable not set: {var_name}")
                return value
            return obj
        else:
            return obj

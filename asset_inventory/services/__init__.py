# asset_inventory/services/__init__.py
"""
Services package for the asset inventory.

Each module exposes a class plus a module-level singleton:
    - database_service: async engine and sessions
    - config_loader: optional YAML asset-type overrides
    - scan_service: scan orchestration
    - inventory_service: live usage and orphan queries
    - archive_service: archive lifecycle actions and reconciliation
    - audit_export_service: audit CSV export
"""

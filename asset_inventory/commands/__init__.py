# asset_inventory/commands/__init__.py
"""
Command-line utilities for the asset inventory.

Usage:
    python -m asset_inventory.commands.inventory init-db
    python -m asset_inventory.commands.inventory scan --snapshot site.yml
"""

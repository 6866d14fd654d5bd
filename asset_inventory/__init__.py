"""
Asset Inventory.

Discovers digital assets across a content site, records which live pages
actually use them (separating genuine usage from orphaned references), and
manages the archive compliance lifecycle of those assets.
"""

__version__ = "1.0.0"

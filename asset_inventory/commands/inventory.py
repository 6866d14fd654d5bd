#!/usr/bin/env python3
"""
Asset inventory command-line utility.

Runs the same operations as the HTTP API against the configured database.

Usage:
    # Create tables
    python -m asset_inventory.commands.inventory init-db

    # Scan a site snapshot and promote the result
    python -m asset_inventory.commands.inventory scan --snapshot site.yml

    # Scan without walking the file storage roots
    python -m asset_inventory.commands.inventory scan --snapshot site.yml --no-filesystem

    # Re-check archived files against disk and live usage
    python -m asset_inventory.commands.inventory reconcile

    # Compute checksums left pending for large files
    python -m asset_inventory.commands.inventory process-checksums

    # Write the audit CSV
    python -m asset_inventory.commands.inventory export --output audit.csv
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from ..config import settings
from ..core.sources import SiteSnapshot
from ..services.archive_service import archive_service
from ..services.audit_export_service import audit_export_service, export_filename
from ..services.database_service import database_service
from ..services.scan_service import ScanService

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger("asset_inventory.commands.inventory")


async def init_db() -> int:
    await database_service.init_db()
    return 0


async def run_scan(snapshot_path: str, scan_filesystem: bool = True) -> int:
    """
    Scan a snapshot in the foreground.

    Returns:
        Process exit code (0 when the scan completed and was promoted)
    """
    await database_service.init_db()
    sources = SiteSnapshot.from_yaml(snapshot_path).to_sources()
    sources.scan_filesystem = sources.scan_filesystem and scan_filesystem

    scan = await ScanService().run_scan(sources)
    status = scan.status()
    if not scan.succeeded:
        logger.error(f"Scan {scan.scan_id} {status['phase']}: {status['error']}")
        return 1

    stats = status["stats"]
    print(f"Scan {scan.scan_id} completed")
    print(f"  Assets:         {status['promotion'].get('promoted_assets', 0)}")
    print(f"  Usages:         {stats['usages']}")
    print(f"  Orphans:        {stats['orphans']}")
    print(f"  Skipped:        {status['skipped']}")
    return 0


async def reconcile() -> int:
    async with database_service.get_session() as session:
        summary = await archive_service.validate_archived_files(session)
    print(
        f"Checked {summary['checked']} archive records: {summary['flagged']} flagged, "
        f"{summary['closed']} closed, {summary['voided']} voided"
    )
    return 0


async def process_checksums() -> int:
    async with database_service.get_session() as session:
        processed = await archive_service.process_pending_checksums(session)
    print(f"Recorded {processed} pending checksum(s)")
    return 0


async def export(output: Optional[str]) -> int:
    async with database_service.get_session() as session:
        content = await audit_export_service.export_csv(session)

    if output == "-":
        sys.stdout.write(content)
        return 0

    path = output or export_filename()
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    print(f"Audit export written to {path}")
    return 0


async def _dispatch(args: argparse.Namespace) -> int:
    try:
        if args.command == "init-db":
            return await init_db()
        if args.command == "scan":
            snapshot = args.snapshot or settings.site_snapshot_file
            if not snapshot:
                logger.error("No --snapshot given and SITE_SNAPSHOT_FILE is not set")
                return 2
            return await run_scan(snapshot, scan_filesystem=not args.no_filesystem)
        if args.command == "reconcile":
            return await reconcile()
        if args.command == "process-checksums":
            return await process_checksums()
        if args.command == "export":
            return await export(args.output)
        return 2
    finally:
        await database_service.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="asset-inventory",
        description="Digital asset inventory and archive maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  DATABASE_URL         SQLAlchemy async URL (default: sqlite+aiosqlite:///./data/asset_inventory.db)
  SITE_BASE_URL        Absolute base URL of the content site
  PUBLIC_FILES_ROOT    Filesystem root of public:// files
  PRIVATE_FILES_ROOT   Filesystem root of private:// files
  COMPLIANCE_DEADLINE  Archive category cutoff (ISO 8601, UTC)
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init-db", help="Create database tables")

    scan = subparsers.add_parser("scan", help="Scan a YAML site snapshot")
    scan.add_argument("--snapshot", help="Site snapshot file (default: SITE_SNAPSHOT_FILE)")
    scan.add_argument("--no-filesystem", action="store_true", help="Skip the loose-file phase")

    subparsers.add_parser("reconcile", help="Reconcile archive records with disk and live usage")
    subparsers.add_parser("process-checksums", help="Compute checksums left pending for large files")

    export_parser = subparsers.add_parser("export", help="Write the archive audit CSV")
    export_parser.add_argument("--output", "-o", help="Output file ('-' for stdout)")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the inventory command."""
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    sys.exit(asyncio.run(_dispatch(args)))


if __name__ == "__main__":
    main()

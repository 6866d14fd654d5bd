"""
Tests for the asset-inventory command-line utility.
"""

from unittest.mock import patch

import pytest

from asset_inventory.commands import inventory as cli
from asset_inventory.services.audit_export_service import AUDIT_COLUMNS
from asset_inventory.services.database_service import DatabaseService

SNAPSHOT = """
entities:
  - {type: node, id: 7, root: true}
managed_files:
  - fid: 1
    uri: public://forms/application.pdf
    usages:
      - {entity: node/7, field: field_attachment}
"""


@pytest.fixture
def file_db(tmp_path):
    """Point the CLI and the scan service at a throwaway SQLite file."""
    service = DatabaseService(f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}")
    with patch.object(cli, "database_service", service), patch(
        "asset_inventory.services.scan_service.database_service", service
    ):
        yield service


def run(argv):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(argv)
    return exc_info.value.code


class TestParser:
    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])

    def test_scan_options(self):
        args = cli.build_parser().parse_args(["scan", "--snapshot", "site.yml", "--no-filesystem"])
        assert args.command == "scan"
        assert args.snapshot == "site.yml"
        assert args.no_filesystem is True

    def test_export_output(self):
        args = cli.build_parser().parse_args(["export", "-o", "-"])
        assert args.output == "-"


class TestCommands:
    def test_init_and_empty_export(self, file_db, capsys):
        assert run(["init-db"]) == 0
        assert run(["export", "--output", "-"]) == 0

        out = capsys.readouterr().out
        assert out.splitlines()[0].split(",") == AUDIT_COLUMNS

    def test_scan_snapshot(self, file_db, tmp_path, capsys):
        snapshot = tmp_path / "site.yml"
        snapshot.write_text(SNAPSHOT)

        assert run(["scan", "--snapshot", str(snapshot), "--no-filesystem"]) == 0

        out = capsys.readouterr().out
        assert "completed" in out
        assert "Assets:         1" in out
        assert "Usages:         1" in out

    def test_scan_missing_snapshot_setting(self, file_db):
        with patch.object(cli.settings, "site_snapshot_file", None):
            assert run(["scan"]) == 2

    def test_reconcile_and_checksums(self, file_db, capsys):
        assert run(["init-db"]) == 0
        assert run(["reconcile"]) == 0
        assert run(["process-checksums"]) == 0

        out = capsys.readouterr().out
        assert "Checked 0 archive records" in out
        assert "Recorded 0 pending checksum(s)" in out

    def test_export_to_file(self, file_db, tmp_path):
        target = tmp_path / "audit.csv"
        assert run(["init-db"]) == 0
        assert run(["export", "-o", str(target)]) == 0
        assert target.read_text().startswith("Archive ID,")

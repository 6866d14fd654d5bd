import os
import shutil
import tempfile
import uuid
from datetime import datetime
from pathlib import Path

# Configure the environment before importing package modules: settings and
# the global services read it at import time.
_SESSION_DIR = Path(tempfile.mkdtemp(prefix="asset_inventory_pytest_"))

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SITE_BASE_URL", "https://www.example.edu")
os.environ.setdefault("PUBLIC_FILES_ROOT", str(_SESSION_DIR / "public"))
os.environ.setdefault("PRIVATE_FILES_ROOT", str(_SESSION_DIR / "private"))
os.environ.setdefault("SCAN_RETRY_DELAY_SECONDS", "0")

for sub in ("public", "private"):
    (_SESSION_DIR / sub).mkdir(parents=True, exist_ok=True)

import pytest
import pytest_asyncio

from asset_inventory.core.path_resolver import PathResolver, url_hash
from asset_inventory.database.models import AssetItem, AssetUsage, OrphanReference
from asset_inventory.services.database_service import DatabaseService

SITE_BASE_URL = "https://www.example.edu"
DEADLINE = datetime(2026, 4, 24)
BEFORE_DEADLINE = datetime(2026, 1, 15, 9, 30)
AFTER_DEADLINE = datetime(2026, 6, 1, 14, 0)


def pytest_sessionfinish(session, exitstatus):
    """Cleanup temporary test files after the test session."""
    shutil.rmtree(_SESSION_DIR, ignore_errors=True)


@pytest.fixture
def session_dir() -> Path:
    return _SESSION_DIR


@pytest.fixture
def resolver(tmp_path) -> PathResolver:
    """Resolver whose public/private roots live in the test's tmp_path."""
    public = tmp_path / "public"
    private = tmp_path / "private"
    public.mkdir()
    private.mkdir()
    return PathResolver(
        site_base_url=SITE_BASE_URL,
        public_base_path="/sites/default/files",
        public_root=str(public),
        private_root=str(private),
    )


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database per test."""
    service = DatabaseService("sqlite+aiosqlite:///:memory:")
    await service.init_db()
    yield service
    await service.close()


@pytest_asyncio.fixture
async def session(db):
    """A session left uncommitted; whatever the test did is rolled back."""
    async with db.session_factory() as s:
        yield s
        await s.rollback()


class Clock:
    """Settable clock for archive services."""

    def __init__(self, now: datetime = BEFORE_DEADLINE):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def make_asset(session):
    """Insert a live (or staged) asset row."""

    async def _make(
        identity: str = "public://docs/report.pdf",
        fid=1,
        asset_type: str = "pdf",
        category: str = "Documents",
        is_temp: bool = False,
        source_type: str = "registered_file",
        is_private: bool = False,
        filesize: int = 1024,
    ) -> AssetItem:
        asset = AssetItem(
            id=uuid.uuid4(),
            url_hash=url_hash(identity),
            source_type=source_type,
            fid=fid,
            asset_type=asset_type,
            category=category,
            sort_order=1 if category == "Documents" else 9,
            file_path=identity,
            url=f"{SITE_BASE_URL}/sites/default/files/{identity.split('://', 1)[-1]}",
            file_name=identity.rsplit("/", 1)[-1],
            mime_type="application/pdf",
            filesize=filesize,
            is_private=is_private,
            is_temp=is_temp,
        )
        session.add(asset)
        await session.flush()
        return asset

    return _make


@pytest.fixture
def add_usage(session):
    async def _add(asset: AssetItem, entity_type: str = "node", entity_id: str = "1", field_name: str = "field_document"):
        usage = AssetUsage(
            id=uuid.uuid4(),
            asset_id=asset.id,
            entity_type=entity_type,
            entity_id=entity_id,
            field_name=field_name,
            embed_method="field_reference",
            count=1,
        )
        session.add(usage)
        await session.flush()
        return usage

    return _add


@pytest.fixture
def add_orphan(session):
    async def _add(asset: AssetItem, entity_type: str = "paragraph", entity_id: str = "9"):
        orphan = OrphanReference(
            id=uuid.uuid4(),
            asset_id=asset.id,
            source_entity_type=entity_type,
            source_entity_id=entity_id,
            field_name="field_document",
            embed_method="field_reference",
            reference_context="detached_component",
        )
        session.add(orphan)
        await session.flush()
        return orphan

    return _add

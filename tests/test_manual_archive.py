"""
Tests for manual archive entries (web pages and external resources).
"""

import pytest

from asset_inventory.database.models import ArchiveStatus
from asset_inventory.exceptions import InvalidTransitionError, ValidationError
from asset_inventory.services.archive_service import ArchiveService, is_file_storage_url
from conftest import AFTER_DEADLINE, BEFORE_DEADLINE, DEADLINE, SITE_BASE_URL

DESCRIPTION = "Legacy program page kept for historical reference."


@pytest.fixture
def archives(resolver, clock):
    return ArchiveService(resolver=resolver, compliance_deadline=DEADLINE, clock=clock)


@pytest.fixture
def create(session, archives):
    async def _create(url: str = "/node/5", asset_type: str = "page", title: str = "Program page", **kwargs):
        kwargs.setdefault("reason", "reference")
        kwargs.setdefault("public_description", DESCRIPTION)
        return await archives.create_manual_entry(session, title, url, asset_type, **kwargs)

    return _create


class TestManualUrlValidation:
    @pytest.mark.parametrize(
        "url",
        [
            "",
            "node",
            "/node/",
            "/media/12",
            "entity:media/3",
            "user/5",
            "https://elsewhere.org/page",
            "/sites/default/files/report.pdf",
            "/system/files/private.pdf",
            "/downloads/report.docx",
            "/about/",
        ],
    )
    def test_rejected_page_urls(self, archives, url):
        with pytest.raises(ValidationError) as exc_info:
            archives.resolve_manual_url(url, "page")
        assert exc_info.value.field == "url"

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("entity:node/5", f"{SITE_BASE_URL}/node/5"),
            ("/node/5", f"{SITE_BASE_URL}/node/5"),
            ("node/5", f"{SITE_BASE_URL}/node/5"),
            ("about-us", f"{SITE_BASE_URL}/about-us"),
            ("https://WWW.Example.edu/About#staff", f"{SITE_BASE_URL}/About"),
            ("http://localhost:8080/node/3", "http://localhost:8080/node/3"),
        ],
    )
    def test_accepted_page_urls(self, archives, url, expected):
        assert archives.resolve_manual_url(url, "page") == expected

    @pytest.mark.parametrize(
        "url",
        ["", "example.org/resource", "ftp://example.org/resource", "https://example.org/report.pdf", "https://example.org/"],
    )
    def test_rejected_external_urls(self, archives, url):
        with pytest.raises(ValidationError):
            archives.resolve_manual_url(url, "external")

    def test_accepted_external_url(self, archives):
        assert archives.resolve_manual_url("https://Partner.org/Resource?id=4", "external") == (
            "https://partner.org/Resource?id=4"
        )

    def test_unknown_entry_type(self, archives):
        with pytest.raises(ValidationError) as exc_info:
            archives.resolve_manual_url("/node/5", "document")
        assert exc_info.value.field == "asset_type"

    def test_file_storage_detection(self):
        assert is_file_storage_url("https://www.example.edu/sites/default/files/a/b.txt")
        assert is_file_storage_url("/media/44")
        assert not is_file_storage_url("https://www.example.edu/programs/history")


class TestCreateManualEntry:
    @pytest.mark.asyncio
    async def test_created_archived(self, create):
        """Manual entries skip the queue and are classified immediately."""
        entry = await create(visibility="admin", actor="editor")

        assert entry.status == ArchiveStatus.ARCHIVED_ADMIN.value
        assert entry.original_path == f"{SITE_BASE_URL}/node/5"
        assert entry.archive_path == entry.original_path
        assert entry.archive_classification_date == BEFORE_DEADLINE
        assert entry.original_fid is None
        assert entry.is_manual_entry
        assert entry.archive_type == "Legacy Archive"
        assert entry.archived_by == "editor"

    @pytest.mark.asyncio
    async def test_created_after_deadline(self, create, clock):
        clock.now = AFTER_DEADLINE
        entry = await create("https://partner.org/guide", "external")
        assert entry.flag_late_archive is True
        assert entry.archive_type == "General Archive"

    @pytest.mark.asyncio
    async def test_title_and_visibility_required(self, create):
        with pytest.raises(ValidationError):
            await create(title="   ")
        with pytest.raises(ValidationError):
            await create(visibility="hidden")

    @pytest.mark.asyncio
    async def test_duplicate_url_rejected(self, session, archives, create):
        """Equivalent spellings of one page share a single open entry."""
        entry = await create("entity:node/5")
        with pytest.raises(InvalidTransitionError):
            await create("/node/5")

        await archives.remove_entry(session, entry.id)
        again = await create("/node/5")
        assert again.id != entry.id

    @pytest.mark.asyncio
    async def test_toggle_never_blocked(self, session, archives, create):
        entry = await create()
        entry = await archives.toggle_visibility(session, entry.id)
        assert entry.status == ArchiveStatus.ARCHIVED_ADMIN.value


class TestEditAndRemove:
    @pytest.mark.asyncio
    async def test_edit_descriptive_fields(self, session, archives, create):
        entry = await create()

        entry = await archives.edit(
            session,
            entry.id,
            actor="editor",
            expected_version=1,
            title="Program page (2019)",
            reason="other",
            reason_other="Accreditation evidence",
        )

        assert entry.file_name == "Program page (2019)"
        assert entry.archive_reason == "other"
        assert entry.archive_reason_other == "Accreditation evidence"
        assert entry.public_description == DESCRIPTION
        assert entry.archive_classification_date == BEFORE_DEADLINE
        assert entry.version == 2

    @pytest.mark.asyncio
    async def test_edit_revalidates(self, session, archives, create):
        entry = await create()
        with pytest.raises(ValidationError):
            await archives.edit(session, entry.id, public_description="short")
        with pytest.raises(ValidationError):
            await archives.edit(session, entry.id, reason="other")
        assert entry.public_description == DESCRIPTION

    @pytest.mark.asyncio
    async def test_switching_away_from_other_clears_custom_reason(self, session, archives, create):
        entry = await create(reason="other", reason_other="Accreditation evidence")
        entry = await archives.edit(session, entry.id, reason="research")
        assert entry.archive_reason_other is None

    @pytest.mark.asyncio
    async def test_remove_entry(self, session, archives, create, clock):
        entry = await create()
        clock.now = AFTER_DEADLINE

        entry = await archives.remove_entry(session, entry.id, actor="admin")

        assert entry.status == ArchiveStatus.ARCHIVED_DELETED.value
        assert entry.deleted_date == AFTER_DEADLINE
        assert entry.deleted_by == "admin"
        with pytest.raises(InvalidTransitionError):
            await archives.edit(session, entry.id, title="Too late")

    @pytest.mark.asyncio
    async def test_manual_entries_have_no_file(self, session, archives, create):
        entry = await create()
        with pytest.raises(InvalidTransitionError):
            await archives.delete_underlying(session, entry.id)


class TestContentModified:
    @pytest.mark.asyncio
    async def test_legacy_page_voided(self, session, archives, create):
        entry = await create("/programs/history")

        changed = await archives.handle_content_modified(session, "programs/history", actor="editor")

        assert [r.id for r in changed] == [entry.id]
        assert entry.status == ArchiveStatus.EXEMPTION_VOID.value
        assert entry.flag_modified is True
        assert entry.deleted_date is None

    @pytest.mark.asyncio
    async def test_general_page_closed(self, session, archives, create, clock):
        clock.now = AFTER_DEADLINE
        entry = await create("/programs/history")

        await archives.handle_content_modified(session, f"{SITE_BASE_URL}/programs/history/", actor="editor")

        assert entry.status == ArchiveStatus.ARCHIVED_DELETED.value
        assert entry.flag_modified is True
        assert entry.deleted_by == "editor"

    @pytest.mark.asyncio
    async def test_external_entries_unaffected(self, session, archives, create):
        await create("https://partner.org/guide", "external")
        assert await archives.handle_content_modified(session, "https://partner.org/guide") == []

    @pytest.mark.asyncio
    async def test_prior_void_forces_general(self, session, archives, create):
        """Re-archiving a page whose exemption was voided is never Legacy."""
        await create("/programs/history")
        await archives.handle_content_modified(session, "/programs/history")

        entry = await create("/programs/history")

        assert entry.flag_prior_void is True
        assert entry.flag_late_archive is True
        assert entry.archive_type == "General Archive"

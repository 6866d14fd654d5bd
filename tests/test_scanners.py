"""
Tests for the five source scanners and their shared chunking and retry logic.
"""

import pytest

from asset_inventory.core.content_graph import EntityRef
from asset_inventory.core.scanners import (
    ContentFieldScanner,
    FilesystemScanner,
    ManagedFileScanner,
    MenuLinkScanner,
    RemoteMediaScanner,
    detect_video_id,
)
from asset_inventory.core.sources import (
    ContentField,
    EntityUsage,
    InMemoryRecordSource,
    ManagedFile,
    MenuLink,
    RemoteMedia,
)
from asset_inventory.exceptions import FatalScanError, TransientSourceError

NODE = EntityRef("node", "1")
PARA = EntityRef("paragraph", "10")


async def collect(scanner):
    """Run a scanner to completion and return (chunk sizes, sightings)."""
    sizes, sightings = [], []
    async for count, chunk in scanner.iter_chunks():
        sizes.append(count)
        sightings.extend(chunk)
    return sizes, sightings


class FlakySource(InMemoryRecordSource):
    """Fails the first `failures` fetches with a transient error."""

    def __init__(self, records, failures):
        super().__init__(records)
        self.failures = failures
        self.calls = 0

    async def fetch(self, offset, limit):
        self.calls += 1
        if self.calls <= self.failures:
            raise TransientSourceError("connection reset")
        return await super().fetch(offset, limit)


class TestChunking:
    @pytest.mark.asyncio
    async def test_bounded_chunks(self, resolver):
        """Records are read batch_size at a time."""
        files = [ManagedFile(fid=i, uri=f"public://f{i}.pdf", filename=f"f{i}.pdf") for i in range(5)]
        scanner = ManagedFileScanner(InMemoryRecordSource(files), batch_size=2, resolver=resolver)
        sizes, sightings = await collect(scanner)
        assert sizes == [2, 2, 1]
        assert len(sightings) == 5

    @pytest.mark.asyncio
    async def test_transient_error_retried(self, resolver):
        source = FlakySource([ManagedFile(fid=1, uri="public://a.pdf", filename="a.pdf")], failures=2)
        scanner = ManagedFileScanner(source, resolver=resolver, max_retries=3, retry_delay_seconds=0)
        _, sightings = await collect(scanner)
        assert len(sightings) == 1
        assert source.calls == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_escalate(self, resolver):
        """A source that keeps failing aborts the scan."""
        source = FlakySource([ManagedFile(fid=1, uri="public://a.pdf", filename="a.pdf")], failures=10)
        scanner = ManagedFileScanner(source, resolver=resolver, max_retries=2, retry_delay_seconds=0)
        with pytest.raises(FatalScanError):
            await collect(scanner)
        assert source.calls == 3


class TestManagedFileScanner:
    @pytest.mark.asyncio
    async def test_registration_and_usages(self, resolver):
        record = ManagedFile(
            fid=7,
            uri="public://docs/report.pdf",
            filename="report.pdf",
            filemime="application/pdf",
            filesize=2048,
            usages=[EntityUsage(PARA, "field_document", 2), EntityUsage(NODE, "field_attachment")],
        )
        scanner = ManagedFileScanner(InMemoryRecordSource([record]), resolver=resolver)
        _, sightings = await collect(scanner)

        registration, *usages = sightings
        assert registration.host is None
        candidate = registration.candidate
        assert candidate.identity == "public://docs/report.pdf"
        assert candidate.source_type == "registered_file"
        assert candidate.asset_type == "pdf"
        assert candidate.fid == 7
        assert candidate.url == "https://www.example.edu/sites/default/files/docs/report.pdf"

        assert [(u.host, u.field_name, u.occurrences) for u in usages] == [
            (PARA, "field_document", 2),
            (NODE, "field_attachment", 1),
        ]
        assert all(u.embed_method == "field_reference" for u in usages)

    @pytest.mark.asyncio
    async def test_media_usage_embed_method(self, resolver):
        record = ManagedFile(
            fid=8, uri="public://v.mp4", filename="v.mp4", media_id=3, usages=[EntityUsage(NODE, "field_media")]
        )
        _, sightings = await collect(ManagedFileScanner(InMemoryRecordSource([record]), resolver=resolver))
        assert sightings[1].embed_method == "media_reference"
        assert sightings[0].candidate.category == "Videos"

    @pytest.mark.asyncio
    async def test_system_generated_and_malformed(self, resolver):
        """Derivatives are ignored; unusable rows are skipped and counted."""
        records = [
            ManagedFile(fid=1, uri="public://styles/large/public/photo.jpg", filename="photo.jpg"),
            ManagedFile(fid=2, uri="https://cdn.example.org/x.pdf", filename="x.pdf"),
            ManagedFile(fid=3, uri="public://neg.pdf", filename="neg.pdf", filesize=-1),
            ManagedFile(fid=4, uri="private://hr/p.pdf", filename="p.pdf"),
        ]
        scanner = ManagedFileScanner(InMemoryRecordSource(records), resolver=resolver)
        _, sightings = await collect(scanner)

        assert [s.candidate.identity for s in sightings] == ["private://hr/p.pdf"]
        assert sightings[0].candidate.is_private is True
        assert scanner.skipped == 2


class TestFilesystemScanner:
    @pytest.mark.asyncio
    async def test_walks_both_roots(self, resolver):
        public, private = resolver.public_root, resolver.private_root
        (public / "docs").mkdir()
        (public / "docs" / "a.pdf").write_bytes(b"%PDF-1.4")
        (public / "styles" / "thumb").mkdir(parents=True)
        (public / "styles" / "thumb" / "x.jpg").write_bytes(b"jpg")
        (public / "private").mkdir()
        (public / "private" / "dup.pdf").write_bytes(b"dup")
        (public / "notes.xyz").write_text("unknown")
        (private / "hr").mkdir()
        (private / "hr" / "p.docx").write_bytes(b"docx")

        scanner = FilesystemScanner(resolver=resolver, batch_size=10)
        assert await scanner.total() == 2
        _, sightings = await collect(scanner)

        identities = sorted(s.candidate.identity for s in sightings)
        assert identities == ["private://hr/p.docx", "public://docs/a.pdf"]
        pdf = next(s.candidate for s in sightings if s.candidate.identity == "public://docs/a.pdf")
        assert pdf.source_type == "loose_file"
        assert pdf.filesize == len(b"%PDF-1.4")
        assert pdf.local_reference is False

    @pytest.mark.asyncio
    async def test_missing_root(self, tmp_path, resolver):
        scanner = FilesystemScanner(public_root=tmp_path / "nope", private_root=tmp_path / "nope2", resolver=resolver)
        assert await scanner.total() == 0


class TestContentFieldScanner:
    def scan_one(self, resolver, record):
        return list(ContentFieldScanner(InMemoryRecordSource([record]), resolver=resolver).sightings_for(record))

    def test_local_file_link(self, resolver):
        record = ContentField(NODE, "body", "text", '<a href="/sites/default/files/docs/report.pdf">Report</a>')
        sightings = self.scan_one(resolver, record)
        assert len(sightings) == 1
        assert sightings[0].candidate.identity == "public://docs/report.pdf"
        assert sightings[0].candidate.local_reference is True
        assert sightings[0].embed_method == "text_link"
        assert sightings[0].host == NODE

    def test_known_external_url(self, resolver):
        record = ContentField(NODE, "body", "text", "<p>https://DOCS.google.com/document/d/abc/edit#h1</p>")
        sightings = self.scan_one(resolver, record)
        assert len(sightings) == 1
        candidate = sightings[0].candidate
        assert candidate.identity == "https://docs.google.com/document/d/abc/edit"
        assert candidate.asset_type == "google_doc"
        assert candidate.source_type == "external_url"
        assert sightings[0].embed_method == "text_url"

    def test_unknown_external_url_ignored(self, resolver):
        record = ContentField(NODE, "body", "text", "<p>See https://example.org/page</p>")
        assert self.scan_one(resolver, record) == []

    def test_iframe_video_is_canonical(self, resolver):
        record = ContentField(NODE, "body", "text", '<iframe src="https://www.youtube.com/embed/dQw4w9WgXcQ"></iframe>')
        sightings = self.scan_one(resolver, record)
        assert len(sightings) == 1
        assert sightings[0].candidate.identity == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
        assert sightings[0].candidate.asset_type == "youtube"
        assert sightings[0].embed_method == "inline_iframe"

    def test_link_field(self, resolver):
        external = ContentField(NODE, "field_link", "link", "https://vimeo.com/123456")
        local = ContentField(NODE, "field_link", "link", "/sites/default/files/forms/a.pdf")
        assert self.scan_one(resolver, external)[0].candidate.identity == "https://vimeo.com/123456"
        assert self.scan_one(resolver, external)[0].embed_method == "link_field"
        assert self.scan_one(resolver, local)[0].candidate.identity == "public://forms/a.pdf"

    def test_video_id_field(self, resolver):
        record = ContentField(PARA, "field_youtube_id", "text", "dQw4w9WgXcQ")
        sightings = self.scan_one(resolver, record)
        assert len(sightings) == 1
        assert sightings[0].candidate.identity == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

    def test_html5_external_source_falls_back(self, resolver):
        """Unrecognized HTML5 sources are still inventoried as external media."""
        record = ContentField(NODE, "body", "text", '<video controls><source src="https://cdn.example.org/v.mp4"></video>')
        sightings = self.scan_one(resolver, record)
        assert len(sightings) == 1
        assert sightings[0].candidate.asset_type == "external_video"
        assert sightings[0].embed_method == "html5_video"

    def test_html5_local_track(self, resolver):
        record = ContentField(
            NODE,
            "body",
            "text",
            '<video><source src="/sites/default/files/v.mp4"><track src="/sites/default/files/v.vtt"></video>',
        )
        sightings = self.scan_one(resolver, record)
        assert [(s.candidate.identity, s.embed_method) for s in sightings] == [
            ("public://v.mp4", "html5_video"),
            ("public://v.vtt", "html5_track"),
        ]

    def test_html5_player_metadata(self, resolver):
        """Media sources carry the player attributes; caption tracks do not."""
        record = ContentField(
            NODE,
            "body",
            "text",
            '<video autoplay muted><source src="/sites/default/files/v.mp4">'
            '<track kind="captions" src="/sites/default/files/v.vtt"></video>',
        )
        source, track = self.scan_one(resolver, record)

        assert source.presentation_type == "VIDEO_HTML5"
        assert source.accessibility_signals == {
            "controls": "not_detected",
            "autoplay": "detected",
            "muted": "detected",
            "loop": "not_detected",
            "captions": "detected",
        }
        assert track.presentation_type is None
        assert track.accessibility_signals is None

    def test_blank_value(self, resolver):
        assert self.scan_one(resolver, ContentField(NODE, "body", "text", "   ")) == []
        assert self.scan_one(resolver, ContentField(NODE, "body", "text", None)) == []


class TestDetectVideoId:
    def test_by_field_name(self):
        assert detect_video_id("dQw4w9WgXcQ", "field_youtube_id") == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
        assert detect_video_id("76979871", "field_vimeo") == "https://vimeo.com/76979871"
        assert detect_video_id("76979871", "field_video_id") == "https://vimeo.com/76979871"

    def test_requires_matching_field(self):
        assert detect_video_id("dQw4w9WgXcQ", "field_title") is None
        assert detect_video_id("not a video id at all", "field_youtube_id") is None


class TestRemoteMediaScanner:
    @pytest.mark.asyncio
    async def test_video_media(self, resolver):
        record = RemoteMedia(
            media_id=5,
            source_url="https://youtu.be/dQw4w9WgXcQ",
            name="Welcome video",
            usages=[EntityUsage(NODE, "field_media")],
        )
        _, sightings = await collect(RemoteMediaScanner(InMemoryRecordSource([record]), resolver=resolver))
        candidate = sightings[0].candidate
        assert candidate.identity == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
        assert candidate.source_type == "remote_reference"
        assert candidate.file_name == "Welcome video"
        assert candidate.media_id == 5
        assert sightings[1].host == NODE
        assert sightings[1].embed_method == "media_reference"

    @pytest.mark.asyncio
    async def test_unrecognized_and_empty(self, resolver):
        records = [
            RemoteMedia(media_id=1, source_url="https://example.org/x"),
            RemoteMedia(media_id=2, source_url="  "),
        ]
        scanner = RemoteMediaScanner(InMemoryRecordSource(records), resolver=resolver)
        _, sightings = await collect(scanner)
        assert sightings == []
        assert scanner.skipped == 1


class TestMenuLinkScanner:
    def test_link_path(self, resolver):
        scanner = MenuLinkScanner(InMemoryRecordSource(), resolver=resolver)
        assert scanner.link_path("internal:/sites/default/files/a.pdf") == "/sites/default/files/a.pdf"
        assert scanner.link_path("base:sites/default/files/a.pdf") == "/sites/default/files/a.pdf"
        assert scanner.link_path("https://www.example.edu/system/files/b.pdf") == "/system/files/b.pdf"
        assert scanner.link_path("entity:node/1") is None
        assert scanner.link_path("route:<front>") is None

    @pytest.mark.asyncio
    async def test_file_link_hosted_by_menu_link(self, resolver):
        links = [
            MenuLink("7", "main", "internal:/sites/default/files/forms/a.pdf", "Form"),
            MenuLink("8", "main", "entity:node/1", "Home"),
        ]
        _, sightings = await collect(MenuLinkScanner(InMemoryRecordSource(links), resolver=resolver))
        assert len(sightings) == 1
        sighting = sightings[0]
        assert sighting.host == EntityRef("menu_link_content", "7")
        assert sighting.field_name == "link (main)"
        assert sighting.embed_method == "menu_link"
        assert sighting.candidate.identity == "public://forms/a.pdf"
        assert sighting.candidate.local_reference is True

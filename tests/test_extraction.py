"""
Tests for reference extraction from rich-text markup.
"""

from asset_inventory.core.extraction import (
    MarkupExtractor,
    extract_iframe_urls,
    extract_tag_attribute,
    extract_urls,
    parse_markup,
)


class TestPatternHelpers:
    def test_extract_urls_dedupes_and_trims_punctuation(self):
        """Sentence punctuation after a URL is not part of it."""
        text = "See https://example.com/a. Also (https://example.com/b), and https://example.com/a"
        assert extract_urls(text) == ["https://example.com/a", "https://example.com/b"]

    def test_extract_iframe_urls(self):
        text = '<iframe width="560" src="https://www.youtube.com/embed/dQw4w9WgXcQ"></iframe>'
        assert extract_iframe_urls(parse_markup(text)) == ["https://www.youtube.com/embed/dQw4w9WgXcQ"]

    def test_extract_tag_attribute_strips_query(self):
        text = '<a class="x" href="/sites/default/files/a.pdf?v=1#p2">A</a><a href="/node/3">N</a>'
        assert extract_tag_attribute(parse_markup(text), "a", "href") == ["/sites/default/files/a.pdf", "/node/3"]

    def test_audio_tag_is_not_an_anchor(self):
        """<audio src> must not be read as <a href>."""
        assert extract_tag_attribute(parse_markup('<audio src="/x.mp3" href="/y"></audio>'), "a", "href") == []


class TestMarkupExtractor:
    """End-to-end extraction of one text value."""

    def test_local_links_and_images(self, resolver):
        text = (
            '<p><a href="/sites/default/files/doc.pdf?x=1">Doc</a>'
            '<img src="https://www.example.edu/sites/default/files/img/a.png" alt=""></p>'
        )
        refs = MarkupExtractor(resolver).extract(text)
        assert refs.local_references == [("public://doc.pdf", "text_link"), ("public://img/a.png", "inline_image")]

    def test_object_and_embed(self, resolver):
        text = (
            '<object data="/sites/default/files/flash/intro.swf"></object>'
            '<embed src="/system/files/media/clip.mov">'
        )
        refs = MarkupExtractor(resolver).extract(text)
        assert ("public://flash/intro.swf", "inline_object") in refs.local_references
        assert ("private://media/clip.mov", "inline_embed") in refs.local_references

    def test_entities_decoded_once(self, resolver):
        """Entity-encoded markup (as stored by some editors) is decoded before matching."""
        text = "&lt;iframe src=&quot;https://www.youtube.com/embed/dQw4w9WgXcQ&quot;&gt;&lt;/iframe&gt;"
        refs = MarkupExtractor(resolver).extract(text)
        assert refs.iframe_urls == ["https://www.youtube.com/embed/dQw4w9WgXcQ"]

    def test_iframe_urls_not_repeated_as_bare_urls(self, resolver):
        text = '<iframe src="https://player.vimeo.com/video/1234?h=ab"></iframe>'
        refs = MarkupExtractor(resolver).extract(text)
        assert refs.iframe_urls == ["https://player.vimeo.com/video/1234?h=ab"]
        assert refs.bare_urls == []

    def test_bare_urls(self, resolver):
        text = "<p>Form: https://forms.gle/abc123 and https://docs.google.com/document/d/xyz/edit</p>"
        refs = MarkupExtractor(resolver).extract(text)
        assert refs.bare_urls == ["https://forms.gle/abc123", "https://docs.google.com/document/d/xyz/edit"]

    def test_html5_video_with_sources_and_tracks(self, resolver):
        text = (
            '<video controls poster="/sites/default/files/p.jpg">'
            '<source src="/sites/default/files/v.mp4?t=1" type="video/mp4">'
            '<source src="https://cdn.example.org/v.webm" type="video/webm">'
            '<track src="/sites/default/files/c.vtt" kind="captions" srclang="en" label="English">'
            "</video>"
        )
        refs = MarkupExtractor(resolver).extract(text)

        assert len(refs.html5_embeds) == 1
        embed = refs.html5_embeds[0]
        assert embed.embed_method == "html5_video"
        assert embed.sources == ["public://v.mp4", "https://cdn.example.org/v.webm"]
        assert embed.tracks[0].url == "public://c.vtt"
        assert embed.tracks[0].kind == "captions"
        assert embed.signals["controls"] is True
        assert embed.signals["autoplay"] is False
        assert embed.presentation_type == "VIDEO_HTML5"
        assert embed.accessibility_signals() == {
            "controls": "detected",
            "autoplay": "not_detected",
            "muted": "not_detected",
            "loop": "not_detected",
            "captions": "detected",
        }

    def test_self_closing_audio(self, resolver):
        text = '<audio src="https://cdn.example.org/a.mp3" controls />'
        refs = MarkupExtractor(resolver).extract(text)
        assert len(refs.html5_embeds) == 1
        assert refs.html5_embeds[0].embed_method == "html5_audio"
        assert refs.html5_embeds[0].sources == ["https://cdn.example.org/a.mp3"]

    def test_empty_text(self, resolver):
        refs = MarkupExtractor(resolver).extract(None)
        assert refs.iframe_urls == []
        assert refs.bare_urls == []
        assert refs.html5_embeds == []
        assert refs.local_references == []

    def test_uppercase_tags_and_unquoted_attributes(self, resolver):
        """Markup pasted from older editors still yields its references."""
        text = "<P><A HREF=/sites/default/files/forms/f.pdf>Form</A><IMG SRC='/sites/default/files/i.gif'></P>"
        refs = MarkupExtractor(resolver).extract(text)
        assert refs.local_references == [("public://forms/f.pdf", "text_link"), ("public://i.gif", "inline_image")]

    def test_audio_without_captions(self, resolver):
        text = '<audio autoplay loop><source src="/sites/default/files/a.mp3"></audio>'
        embed = MarkupExtractor(resolver).extract(text).html5_embeds[0]
        assert embed.presentation_type == "AUDIO_HTML5"
        signals = embed.accessibility_signals()
        assert signals["autoplay"] == "detected"
        assert signals["loop"] == "detected"
        assert signals["controls"] == "not_detected"
        assert signals["captions"] == "not_detected"

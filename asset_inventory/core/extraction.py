"""
Reference extraction from rich-text markup.

Text is HTML-entity decoded exactly once by MarkupExtractor.extract() and
parsed once with BeautifulSoup; the tag helpers below all take that parsed
document. Bare URLs are found in the decoded text.

Recognized shapes:
    <iframe src>                       embed URLs (inline_iframe)
    bare http(s) URLs                  (text_url), minus iframe URLs
    <video>/<audio> with <source>      HTML5 media (html5_video / html5_audio)
    <track src>                        captions (html5_track)
    <a href>                           local file links (text_link)
    <img src>                          local images (inline_image)
    <object data>, <embed src>         legacy embeds (inline_object / inline_embed)
"""

import html
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from .path_resolver import PathResolver, strip_query

_URL_PATTERN = re.compile(r"https?://[^\s<>\"'{}|\\^`\[\]]+", re.IGNORECASE)
_URL_TRAILING_PUNCTUATION = ".,;:!?)"

# (tag, attribute, embed method) for local file references
LOCAL_TAG_REFERENCES: Tuple[Tuple[str, str, str], ...] = (
    ("a", "href", "text_link"),
    ("img", "src", "inline_image"),
    ("object", "data", "inline_object"),
    ("embed", "src", "inline_embed"),
)

MEDIA_SIGNALS = ("controls", "autoplay", "muted", "loop")
CAPTION_KINDS = ("captions", "subtitles")

PRESENTATION_TYPES = {
    "video": "VIDEO_HTML5",
    "audio": "AUDIO_HTML5",
}


@dataclass
class MediaTrack:
    url: str
    kind: str = "subtitles"


@dataclass
class Html5Embed:
    media_type: str  # "video" or "audio"
    sources: List[str] = field(default_factory=list)
    tracks: List[MediaTrack] = field(default_factory=list)
    signals: Dict[str, bool] = field(default_factory=dict)

    @property
    def embed_method(self) -> str:
        return f"html5_{self.media_type}"

    @property
    def presentation_type(self) -> str:
        return PRESENTATION_TYPES[self.media_type]

    def accessibility_signals(self) -> Dict[str, str]:
        """Player attributes and caption presence, as stored on the usage row."""
        result = {
            signal: "detected" if self.signals.get(signal) else "not_detected"
            for signal in MEDIA_SIGNALS
        }
        has_captions = any(track.kind in CAPTION_KINDS for track in self.tracks)
        result["captions"] = "detected" if has_captions else "not_detected"
        return result


@dataclass
class MarkupReferences:
    """Everything found in one text value."""
    iframe_urls: List[str] = field(default_factory=list)
    bare_urls: List[str] = field(default_factory=list)
    html5_embeds: List[Html5Embed] = field(default_factory=list)
    local_references: List[Tuple[str, str]] = field(default_factory=list)  # (stream URI, embed method)


# =========================================================================
# HELPERS
# =========================================================================


def parse_markup(text: Optional[str]) -> BeautifulSoup:
    return BeautifulSoup(text or "", "html.parser")


def extract_urls(text: str) -> List[str]:
    """Unique bare http(s) URLs in order of first appearance."""
    seen: Dict[str, None] = {}
    for match in _URL_PATTERN.finditer(text or ""):
        url = match.group(0).rstrip(_URL_TRAILING_PUNCTUATION)
        if url:
            seen.setdefault(url, None)
    return list(seen)


def extract_iframe_urls(soup: BeautifulSoup) -> List[str]:
    seen: Dict[str, None] = {}
    for iframe in soup.find_all("iframe", src=True):
        url = iframe["src"].strip()
        if url:
            seen.setdefault(url, None)
    return list(seen)


def extract_tag_attribute(soup: BeautifulSoup, tag: str, attribute: str) -> List[str]:
    """Values of `attribute` on every `<tag>` element, query and fragment stripped."""
    values: Dict[str, None] = {}
    for element in soup.find_all(tag, attrs={attribute: True}):
        value = strip_query(element[attribute].strip())
        if value:
            values.setdefault(value, None)
    return list(values)


def parse_media_tag(element, normalize: Callable[[str], str]) -> Html5Embed:
    """
    Parse one <video> or <audio> element.

    Args:
        element: The parsed media element
        normalize: Maps a raw src to its canonical form

    Returns:
        Html5Embed with unique sources, tracks and boolean player signals
    """
    embed = Html5Embed(media_type=element.name)

    sources: Dict[str, None] = {}
    if element.get("src"):
        sources.setdefault(normalize(element["src"]), None)
    for source in element.find_all("source", src=True):
        sources.setdefault(normalize(source["src"]), None)
    embed.sources = [s for s in sources if s]

    for track in element.find_all("track", src=True):
        embed.tracks.append(
            MediaTrack(url=normalize(track["src"]), kind=(track.get("kind") or "subtitles").lower())
        )

    for signal in MEDIA_SIGNALS:
        embed.signals[signal] = element.has_attr(signal)

    return embed


def extract_html5_embeds(soup: BeautifulSoup, normalize: Callable[[str], str]) -> List[Html5Embed]:
    """
    Find <video>/<audio> embeds, both paired and self-closing.

    Embeds are de-duplicated on media type plus the ordered source list.
    """
    embeds: List[Html5Embed] = []
    seen = set()

    for element in soup.find_all(["video", "audio"]):
        embed = parse_media_tag(element, normalize)
        if not embed.sources:
            continue
        key = f"{embed.media_type}:" + "|".join(embed.sources)
        if key in seen:
            continue
        seen.add(key)
        embeds.append(embed)

    return embeds


# =========================================================================
# EXTRACTOR
# =========================================================================


class MarkupExtractor:
    """Pulls every recognized reference out of a rich-text value."""

    def __init__(self, resolver: PathResolver):
        self.resolver = resolver

    def normalize_media_src(self, value: str) -> str:
        """Strip query/fragment and convert local paths to stream URIs."""
        value = strip_query(value.strip())
        return self.resolver.url_path_to_stream_uri(value) or value

    def extract(self, text: str) -> MarkupReferences:
        decoded = html.unescape(text or "")
        soup = parse_markup(decoded)
        refs = MarkupReferences()

        refs.iframe_urls = extract_iframe_urls(soup)
        iframe_bases = {strip_query(u) for u in refs.iframe_urls} | set(refs.iframe_urls)
        refs.bare_urls = [
            url for url in extract_urls(decoded)
            if url not in iframe_bases and strip_query(url) not in iframe_bases
        ]

        refs.html5_embeds = extract_html5_embeds(soup, self.normalize_media_src)

        seen = set()
        for tag, attribute, embed_method in LOCAL_TAG_REFERENCES:
            for value in extract_tag_attribute(soup, tag, attribute):
                uri = self.resolver.url_path_to_stream_uri(value)
                if uri and (uri, embed_method) not in seen:
                    seen.add((uri, embed_method))
                    refs.local_references.append((uri, embed_method))

        return refs

"""
Bluesky rich text segmentation and markdown rendering.

Bluesky posts carry plain text plus *facets*: annotations over UTF-8 byte
ranges marking links, mentions and hashtags. Segmenting the text by those
ranges and rendering each segment gives a markdown-like string where links
show their full URI and mentions link to a profile page keyed by DID.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import tldextract

logger = logging.getLogger(__name__)

LINK_FEATURE = "app.bsky.richtext.facet#link"
MENTION_FEATURE = "app.bsky.richtext.facet#mention"
TAG_FEATURE = "app.bsky.richtext.facet#tag"

_MENTION_RE = re.compile(r"(?:^|\s|\()@([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})\b")
_URL_RE = re.compile(
    r"(?:^|\s|\()((https?://\S+)|(?P<domain>[a-z][a-z0-9]*(?:\.[a-z0-9]+)+)\S*)",
    re.IGNORECASE,
)
_TRAILING_PUNCTUATION = ".,;:!?"

# Bundled public suffix list only, no network fetch
_EXTRACT_DOMAIN = tldextract.TLDExtract(cache_dir=None, suffix_list_urls=())


@dataclass(frozen=True)
class RichTextSegment:
    """A run of text with at most one link, mention or tag feature."""

    text: str
    link: Optional[str] = None
    mention: Optional[str] = None  # DID
    tag: Optional[str] = None

    @property
    def is_link(self) -> bool:
        return self.link is not None

    @property
    def is_mention(self) -> bool:
        return self.mention is not None


def _byte_range(facet: Dict[str, Any]) -> Optional[tuple]:
    index = facet.get("index") or {}
    start = index.get("byteStart")
    end = index.get("byteEnd")
    if not isinstance(start, int) or not isinstance(end, int) or start >= end:
        return None
    return start, end


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="ignore")


def segment_text(text: str, facets: Optional[List[Dict[str, Any]]]) -> List[RichTextSegment]:
    """
    Split text into segments according to its facets.

    Facets are applied in byte order; facets that overlap an earlier one or
    run past the end of the text are ignored.

    Args:
        text: Post text
        facets: Facet list from the post record

    Returns:
        Segments in original order; concatenating their text gives ``text``
    """
    data = text.encode("utf-8")
    ranged = []
    for facet in facets or []:
        byte_range = _byte_range(facet)
        if byte_range and byte_range[1] <= len(data):
            ranged.append((byte_range, facet))
    ranged.sort(key=lambda pair: pair[0][0])

    segments = []
    cursor = 0
    for (start, end), facet in ranged:
        if start < cursor:
            logger.debug(f"Skipping overlapping facet at bytes {start}-{end}")
            continue
        if start > cursor:
            segments.append(RichTextSegment(text=_decode(data[cursor:start])))

        link = mention = tag = None
        for feature in facet.get("features", []):
            feature_type = feature.get("$type")
            if feature_type == LINK_FEATURE:
                link = feature.get("uri")
            elif feature_type == MENTION_FEATURE:
                mention = feature.get("did")
            elif feature_type == TAG_FEATURE:
                tag = feature.get("tag")

        segments.append(
            RichTextSegment(text=_decode(data[start:end]), link=link, mention=mention, tag=tag)
        )
        cursor = end

    if cursor < len(data):
        segments.append(RichTextSegment(text=_decode(data[cursor:])))

    return segments


def render_markdown(segments: List[RichTextSegment], profile_base_url: str) -> str:
    """
    Render segments as markdown.

    Links emit their raw URI, mentions emit ``[text](<profile_base_url>/<did>)``
    and every other segment emits its text verbatim.
    """
    base = profile_base_url.rstrip("/")
    parts = []
    for segment in segments:
        if segment.is_link:
            parts.append(segment.link)
        elif segment.is_mention:
            parts.append(f"[{segment.text}]({base}/{segment.mention})")
        else:
            parts.append(segment.text)
    return "".join(parts)


def detect_facets(text: str) -> List[Dict[str, Any]]:
    """
    Detect link and mention facets in plain text.

    Bare domains such as ``arxiv.org/abs/1`` become ``https://`` links when
    they end in a public suffix.

    Mention features carry the ``handle`` they were written with and no
    ``did`` yet; see ``resolve_mentions``.

    Args:
        text: Post text

    Returns:
        Facets sorted by byte offset
    """
    facets = []

    def byte_offset(char_index: int) -> int:
        return len(text[:char_index].encode("utf-8"))

    for match in _MENTION_RE.finditer(text):
        start = match.start(1) - 1  # include the @
        end = match.end(1)
        facets.append({
            "index": {"byteStart": byte_offset(start), "byteEnd": byte_offset(end)},
            "features": [{"$type": MENTION_FEATURE, "handle": match.group(1).lower()}],
        })

    for match in _URL_RE.finditer(text):
        written = match.group(1)
        start = match.start(1)
        while written and written[-1] in _TRAILING_PUNCTUATION:
            written = written[:-1]
        if written.endswith(")") and "(" not in written:
            written = written[:-1]

        domain = match.group("domain")
        if domain:
            if not _EXTRACT_DOMAIN(domain).suffix:
                continue
            uri = f"https://{written}"
        else:
            if len(written) <= len("https://"):
                continue
            uri = written

        facets.append({
            "index": {"byteStart": byte_offset(start), "byteEnd": byte_offset(start + len(written))},
            "features": [{"$type": LINK_FEATURE, "uri": uri}],
        })

    facets.sort(key=lambda f: f["index"]["byteStart"])
    return facets


async def resolve_mentions(
    facets: List[Dict[str, Any]],
    resolve_handle: Callable[[str], Awaitable[Optional[str]]],
) -> List[Dict[str, Any]]:
    """
    Fill in DIDs for detected mention facets.

    Handles are resolved concurrently; mentions whose handle does not
    resolve are dropped, other facets pass through unchanged.

    Args:
        facets: Facets from ``detect_facets``
        resolve_handle: Coroutine returning the DID for a handle, or None

    Returns:
        Facets ready for ``segment_text``
    """
    pending = {}
    for facet in facets:
        for feature in facet.get("features", []):
            if feature.get("$type") == MENTION_FEATURE and "did" not in feature:
                pending[feature["handle"]] = None

    handles = list(pending)
    dids = await asyncio.gather(*(resolve_handle(h) for h in handles))
    pending.update(zip(handles, dids))

    resolved = []
    for facet in facets:
        features = []
        for feature in facet.get("features", []):
            if feature.get("$type") == MENTION_FEATURE and "did" not in feature:
                did = pending.get(feature["handle"])
                if not did:
                    continue
                feature = {"$type": MENTION_FEATURE, "did": did}
            features.append(feature)
        if features:
            resolved.append({"index": facet["index"], "features": features})
    return resolved

"""
Unit tests for Bluesky rich text segmentation and rendering.
"""

import pytest

from feed_agent.processing.richtext import (
    LINK_FEATURE,
    MENTION_FEATURE,
    TAG_FEATURE,
    detect_facets,
    render_markdown,
    resolve_mentions,
    segment_text,
)
from tests.fixtures import ALICE_DID

PROFILE = "https://my-bsky-app.com/user"


def facet(start, end, **feature):
    return {"index": {"byteStart": start, "byteEnd": end}, "features": [feature]}


def test_plain_text_is_one_segment():
    segments = segment_text("hello world", [])

    assert len(segments) == 1
    assert render_markdown(segments, PROFILE) == "hello world"


def test_link_renders_full_uri():
    text = "paper: arxiv.org/abs/24..."
    uri = "https://arxiv.org/abs/2401.00001"
    facets = [facet(7, len(text.encode()), **{"$type": LINK_FEATURE, "uri": uri})]

    assert render_markdown(segment_text(text, facets), PROFILE) == f"paper: {uri}"


def test_mention_renders_profile_link():
    text = "thanks @alice.bsky.social!"
    facets = [facet(7, 25, **{"$type": MENTION_FEATURE, "did": ALICE_DID})]

    rendered = render_markdown(segment_text(text, facets), PROFILE)

    assert rendered == f"thanks [@alice.bsky.social]({PROFILE}/{ALICE_DID})!"


def test_tag_renders_verbatim():
    text = "so #science"
    facets = [facet(3, 11, **{"$type": TAG_FEATURE, "tag": "science"})]

    segments = segment_text(text, facets)

    assert segments[-1].tag == "science"
    assert render_markdown(segments, PROFILE) == text


def test_byte_offsets_handle_multibyte_text():
    """Offsets count UTF-8 bytes, not characters."""
    text = "🔬 new https://nasa.gov/x"
    start = len("🔬 new ".encode("utf-8"))
    facets = [facet(start, len(text.encode()), **{"$type": LINK_FEATURE, "uri": "https://nasa.gov/x"})]

    segments = segment_text(text, facets)

    assert segments[0].text == "🔬 new "
    assert segments[1].link == "https://nasa.gov/x"


def test_segments_concatenate_to_original_text():
    text = "a @b.com c https://d.org e"
    facets = detect_facets(text)

    assert "".join(s.text for s in segment_text(text, facets)) == text


def test_overlapping_and_out_of_range_facets_are_ignored():
    text = "abcdef"
    facets = [
        facet(0, 4, **{"$type": LINK_FEATURE, "uri": "https://one"}),
        facet(2, 6, **{"$type": LINK_FEATURE, "uri": "https://two"}),
        facet(4, 99, **{"$type": LINK_FEATURE, "uri": "https://three"}),
    ]

    rendered = render_markdown(segment_text(text, facets), PROFILE)

    assert rendered == "https://oneef"


def test_unsorted_facets_are_applied_in_byte_order():
    text = "x https://a.org y https://b.org"
    facets = list(reversed(detect_facets(text)))

    assert render_markdown(segment_text(text, facets), PROFILE) == text


def test_detect_facets_finds_links_and_mentions():
    text = "hi @Alice.bsky.social see https://arxiv.org/abs/1."

    facets = detect_facets(text)

    assert len(facets) == 2
    mention, link = facets
    assert mention["features"][0] == {"$type": MENTION_FEATURE, "handle": "alice.bsky.social"}
    assert link["features"][0] == {"$type": LINK_FEATURE, "uri": "https://arxiv.org/abs/1"}
    data = text.encode()
    assert data[link["index"]["byteStart"]:link["index"]["byteEnd"]] == b"https://arxiv.org/abs/1"


def test_detect_facets_links_bare_domains():
    text = "read arxiv.org/abs/2401.00001, then nasa.gov."

    facets = detect_facets(text)

    assert [f["features"][0]["uri"] for f in facets] == [
        "https://arxiv.org/abs/2401.00001",
        "https://nasa.gov",
    ]
    data = text.encode()
    first = facets[0]["index"]
    assert data[first["byteStart"]:first["byteEnd"]] == b"arxiv.org/abs/2401.00001"
    assert render_markdown(segment_text(text, facets), PROFILE) == (
        "read https://arxiv.org/abs/2401.00001, then https://nasa.gov."
    )


def test_detect_facets_skips_dotted_words_without_public_suffix():
    assert detect_facets("bump to v1.2 or see Mr.Smithzz later") == []


def test_detect_facets_ignores_email_addresses():
    assert detect_facets("mail me at bob@example.com") == []


@pytest.mark.asyncio
async def test_resolve_mentions_fills_dids_and_drops_unknown():
    text = "@alice.bsky.social and @ghost.bsky.social"
    facets = detect_facets(text)

    async def resolve(handle):
        return {"alice.bsky.social": ALICE_DID}.get(handle)

    resolved = await resolve_mentions(facets, resolve)

    assert len(resolved) == 1
    assert resolved[0]["features"][0] == {"$type": MENTION_FEATURE, "did": ALICE_DID}
    rendered = render_markdown(segment_text(text, resolved), PROFILE)
    assert rendered == f"[@alice.bsky.social]({PROFILE}/{ALICE_DID}) and @ghost.bsky.social"


@pytest.mark.asyncio
async def test_resolve_mentions_resolves_each_handle_once():
    text = "@alice.bsky.social @alice.bsky.social"
    calls = []

    async def resolve(handle):
        calls.append(handle)
        return ALICE_DID

    await resolve_mentions(detect_facets(text), resolve)

    assert calls == ["alice.bsky.social"]

"""
Tests for the Bluesky fetcher against a local fake entryway.
"""

import time

import pytest
from aiohttp.test_utils import TestServer

from feed_agent.ingestion.health import SourceHealthTracker
from feed_agent.ingestion.plugins.bluesky import BlueskyFetcher
from feed_agent.ingestion.rate_limiter import TokenBucketRateLimiter
from feed_agent.observability.metrics import metrics_registry
from feed_agent.processing.richtext import LINK_FEATURE
from feed_agent.types import FetchOptions
from tests.fixtures import (
    ALICE_DID,
    SCI_TAB,
    base_url,
    create_bluesky_app,
    create_classifier,
    create_feed_item,
)


def rejections() -> float:
    return metrics_registry.get_sample_value(
        "rate_limit_rejections_total", {"source": "bluesky"}
    ) or 0.0


def make_fetcher(server, limiter=None, **kwargs) -> BlueskyFetcher:
    options = dict(
        rate_limiter=limiter or TokenBucketRateLimiter(),
        service_url=base_url(server),
        identifier="me.bsky.social",
        password="app-password",
    )
    options.update(kwargs)
    return BlueskyFetcher(create_classifier(), **options)


@pytest.mark.asyncio
async def test_fetch_renders_feed_with_stored_facets():
    text = "New: arxiv.org/abs/2401..."
    uri = "https://arxiv.org/abs/2401.00001"
    facets = [{
        "index": {"byteStart": 5, "byteEnd": len(text.encode())},
        "features": [{"$type": LINK_FEATURE, "uri": uri}],
    }]
    app = create_bluesky_app([create_feed_item(text, facets=facets)])

    async with TestServer(app) as server:
        fetcher = make_fetcher(server)
        posts = await fetcher.fetch(SCI_TAB, FetchOptions(preferred_language="de-DE"))

    assert len(posts) == 1
    assert posts[0].markdown == f"New: {uri}"
    assert posts[0].facets == facets

    paths = [path for path, _, _ in app["requests"]]
    assert paths == [
        "/xrpc/com.atproto.server.createSession",
        "/xrpc/app.bsky.feed.getFeed",
    ]
    _, query, headers = app["requests"][1]
    assert query["feed"] == create_classifier().get_tab(SCI_TAB).feed_uri
    assert query["limit"] == "50"
    assert headers["Authorization"] == "Bearer jwt-me.bsky.social"
    assert headers["Accept-Language"] == "de-DE"


@pytest.mark.asyncio
async def test_posts_are_not_reclassified():
    """Feed generators curate their own topic, so off-pattern posts are kept."""
    app = create_bluesky_app([create_feed_item("no link at all", facets=[])])

    async with TestServer(app) as server:
        posts = await make_fetcher(server).fetch(SCI_TAB)

    assert [p.text for p in posts] == ["no link at all"]


@pytest.mark.asyncio
async def test_mentions_without_facets_are_resolved():
    text = "cc @alice.bsky.social and @ghost.bsky.social"
    app = create_bluesky_app(
        [create_feed_item(text)],
        handles={"alice.bsky.social": ALICE_DID},
    )

    async with TestServer(app) as server:
        posts = await make_fetcher(server).fetch(SCI_TAB)

    assert posts[0].markdown == (
        f"cc [@alice.bsky.social](https://my-bsky-app.com/user/{ALICE_DID}) and @ghost.bsky.social"
    )


@pytest.mark.asyncio
async def test_posts_resolve_mentions_concurrently():
    handles = {f"user{i}.bsky.social": f"did:plc:user{i}" for i in range(5)}
    feed = [
        create_feed_item(f"thanks @{handle}", uri=f"at://did:plc:author/app.bsky.feed.post/{i}")
        for i, handle in enumerate(handles)
    ]
    app = create_bluesky_app(feed, handles=handles, resolve_delay=0.2)

    async with TestServer(app) as server:
        started = time.monotonic()
        posts = await make_fetcher(server).fetch(SCI_TAB)
        elapsed = time.monotonic() - started

    assert elapsed < 0.6
    assert [p.markdown for p in posts] == [
        f"thanks [@{handle}](https://my-bsky-app.com/user/{did})"
        for handle, did in handles.items()
    ]


@pytest.mark.asyncio
async def test_rate_limited_fetch_makes_no_request():
    app = create_bluesky_app([create_feed_item("x", facets=[])])
    limiter = TokenBucketRateLimiter(capacity=1)

    async with TestServer(app) as server:
        fetcher = make_fetcher(server, limiter=limiter)
        first = await fetcher.fetch(SCI_TAB)
        before = rejections()
        second = await fetcher.fetch(SCI_TAB)

    assert len(first) == 1
    assert second == []
    assert rejections() == before + 1
    assert len(app["requests"]) == 2


@pytest.mark.asyncio
async def test_token_consumed_even_when_login_fails():
    app = create_bluesky_app([], login_status=401)
    limiter = TokenBucketRateLimiter(capacity=5)
    health = SourceHealthTracker()

    async with TestServer(app) as server:
        fetcher = make_fetcher(server, limiter=limiter, health=health)
        posts = await fetcher.fetch(SCI_TAB)

    assert posts == []
    assert await limiter.get_remaining_tokens() == 4
    status = await health.get_health("bluesky")
    assert status.consecutive_failures == 1
    assert "authentication" in status.last_error


@pytest.mark.asyncio
async def test_feed_error_returns_empty_list():
    app = create_bluesky_app([], feed_status=502)

    async with TestServer(app) as server:
        posts = await make_fetcher(server).fetch(SCI_TAB)

    assert posts == []


@pytest.mark.asyncio
async def test_missing_credentials_return_empty_list():
    app = create_bluesky_app([create_feed_item("x", facets=[])])

    async with TestServer(app) as server:
        fetcher = make_fetcher(server, identifier=None, password=None)
        posts = await fetcher.fetch(SCI_TAB)

    assert posts == []
    assert app["requests"] == []


@pytest.mark.asyncio
async def test_invalid_tab_returns_empty_list_without_consuming_token():
    app = create_bluesky_app([])
    limiter = TokenBucketRateLimiter()

    async with TestServer(app) as server:
        posts = await make_fetcher(server, limiter=limiter).fetch(42)

    assert posts == []
    assert await limiter.get_remaining_tokens() == 5

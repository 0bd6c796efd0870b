"""
Test fixtures and fake upstreams.

Sample payloads mirror the upstream wire formats (AT Protocol feed views,
NIP-01 events, Mastodon statuses). The ``create_*_app`` helpers build small
aiohttp applications that stand in for the real services; run them with
``aiohttp.test_utils.TestServer``.
"""

import asyncio
import json
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer

from feed_agent.ingestion.classifier import TopicClassifier
from feed_agent.tabs import load_tabs

SCI_TAB = 3
GOV_TAB = 1

ALICE_DID = "did:plc:alice1234567890abcdefghij"
PUBKEY = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"
NPUB = "npub180cvv07tjdrrgpa0j7j7tmnyl2yr6yr7l8j4s3evf6u64th6gkwsyjh6w6"


def create_classifier() -> TopicClassifier:
    """Classifier over the built-in taxonomy."""
    return TopicClassifier(load_tabs())


def base_url(server: TestServer) -> str:
    """HTTP base URL of a running test server, without trailing slash."""
    return str(server.make_url("/")).rstrip("/")


def ws_url(server: TestServer) -> str:
    """WebSocket URL of a running test server."""
    return base_url(server).replace("http://", "ws://", 1) + "/"


# ============================================================================
# Bluesky
# ============================================================================


def create_feed_item(
    text: str,
    facets: Optional[List[Dict[str, Any]]] = None,
    uri: str = "at://did:plc:author/app.bsky.feed.post/3k1",
) -> Dict[str, Any]:
    """Create an ``app.bsky.feed.getFeed`` item."""
    record = {
        "$type": "app.bsky.feed.post",
        "text": text,
        "createdAt": "2024-05-01T12:00:00.000Z",
        "langs": ["en"],
    }
    if facets is not None:
        record["facets"] = facets
    return {
        "post": {
            "uri": uri,
            "cid": "bafyreib2rxk3rh6kzwq",
            "author": {
                "did": "did:plc:author",
                "handle": "author.bsky.social",
                "displayName": "Author",
            },
            "record": record,
            "indexedAt": "2024-05-01T12:00:01.000Z",
        }
    }


def create_bluesky_app(
    feed: List[Dict[str, Any]],
    handles: Optional[Dict[str, str]] = None,
    login_status: int = 200,
    feed_status: int = 200,
    resolve_delay: float = 0.0,
) -> web.Application:
    """
    Fake Bluesky entryway.

    Request log is kept in ``app["requests"]`` as ``(path, query, headers)``.
    """
    handles = handles or {}
    app = web.Application()
    app["requests"] = []

    async def create_session(request: web.Request) -> web.Response:
        body = await request.json()
        app["requests"].append((request.path, dict(request.query), dict(request.headers)))
        if login_status != 200:
            return web.json_response({"error": "AuthenticationRequired"}, status=login_status)
        return web.json_response(
            {"accessJwt": f"jwt-{body['identifier']}", "did": "did:plc:me"}
        )

    async def get_feed(request: web.Request) -> web.Response:
        app["requests"].append((request.path, dict(request.query), dict(request.headers)))
        if feed_status != 200:
            return web.json_response({"error": "InternalServerError"}, status=feed_status)
        return web.json_response({"feed": feed})

    async def resolve_handle(request: web.Request) -> web.Response:
        app["requests"].append((request.path, dict(request.query), dict(request.headers)))
        if resolve_delay:
            await asyncio.sleep(resolve_delay)
        did = handles.get(request.query["handle"])
        if did is None:
            return web.json_response({"error": "InvalidRequest"}, status=400)
        return web.json_response({"did": did})

    app.router.add_post("/xrpc/com.atproto.server.createSession", create_session)
    app.router.add_get("/xrpc/app.bsky.feed.getFeed", get_feed)
    app.router.add_get("/xrpc/com.atproto.identity.resolveHandle", resolve_handle)
    return app


# ============================================================================
# Nostr
# ============================================================================


def create_nostr_event(
    content: str,
    event_id: Optional[str] = None,
    created_at: Optional[int] = None,
    kind: int = 1,
) -> Dict[str, Any]:
    """Create a NIP-01 event (unsigned; signatures are not checked)."""
    if event_id is None:
        event_id = format(abs(hash(content)), "x").rjust(64, "0")[:64]
    return {
        "id": event_id,
        "pubkey": PUBKEY,
        "created_at": created_at or int(datetime.utcnow().timestamp()),
        "kind": kind,
        "tags": [["t", "science"]],
        "content": content,
        "sig": "0" * 128,
    }


def create_relay_app(events: List[Dict[str, Any]], stream_forever: bool = False) -> web.Application:
    """
    Fake Nostr relay.

    Replies to ``REQ`` with the stored events and ``EOSE``. With
    ``stream_forever`` it then keeps sending fresh events until the client
    disconnects. Received REQ filters and CLOSE ids are kept in
    ``app["filters"]`` and ``app["closed"]``.
    """
    app = web.Application()
    app["filters"] = []
    app["closed"] = []

    async def stream(ws: web.WebSocketResponse, sub_id: str) -> None:
        n = 0
        while not ws.closed:
            n += 1
            event = create_nostr_event(f"live note {n} https://arxiv.org/abs/{n}", event_id=f"{n:064x}")
            try:
                await ws.send_str(json.dumps(["EVENT", sub_id, event]))
            except ConnectionResetError:
                return
            await asyncio.sleep(0.01)

    async def handler(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        streamer = None

        async for msg in ws:
            if msg.type != WSMsgType.TEXT:
                continue
            message = json.loads(msg.data)
            if message[0] == "REQ":
                sub_id = message[1]
                app["filters"].append(message[2])
                for event in events:
                    await ws.send_str(json.dumps(["EVENT", sub_id, event]))
                await ws.send_str(json.dumps(["EOSE", sub_id]))
                if stream_forever:
                    streamer = asyncio.create_task(stream(ws, sub_id))
            elif message[0] == "CLOSE":
                app["closed"].append(message[1])

        if streamer is not None:
            streamer.cancel()
            await asyncio.gather(streamer, return_exceptions=True)
        return ws

    app.router.add_get("/", handler)
    return app


# ============================================================================
# Mastodon
# ============================================================================


def create_status(status_id: int, content: str) -> Dict[str, Any]:
    """Create a Mastodon status entity."""
    created = datetime(2024, 5, 1, 12, 0, 0) - timedelta(minutes=status_id)
    return {
        "id": str(status_id),
        "created_at": created.isoformat() + ".000Z",
        "content": content,
        "url": f"https://mastodon.social/@scientist/{status_id}",
        "account": {
            "id": "42",
            "username": "scientist",
            "display_name": "A Scientist",
        },
    }


def create_status_pages(page_sizes: List[int], content: str) -> List[List[Dict[str, Any]]]:
    """Create consecutive pages with descending ids."""
    pages = []
    next_id = 100000
    for size in page_sizes:
        page = []
        for _ in range(size):
            page.append(create_status(next_id, content))
            next_id -= 1
        pages.append(page)
    return pages


def create_mastodon_app(
    pages: List[List[Dict[str, Any]]],
    fail_on_request: Optional[int] = None,
) -> web.Application:
    """
    Fake Mastodon search endpoint serving ``pages`` in order.

    The page is picked from ``max_id`` so out-of-order requests would show
    up as wrong results. Requests are kept in ``app["requests"]``;
    ``fail_on_request`` (1-based) answers that request with HTTP 500.
    """
    app = web.Application()
    app["requests"] = []

    async def search(request: web.Request) -> web.Response:
        app["requests"].append((dict(request.query), dict(request.headers)))
        if fail_on_request is not None and len(app["requests"]) == fail_on_request:
            return web.json_response({"error": "boom"}, status=500)

        max_id = request.query.get("max_id")
        index = 0
        if max_id is not None:
            for i, page in enumerate(pages):
                if page and page[-1]["id"] == max_id:
                    index = i + 1
                    break
        page = pages[index] if index < len(pages) else []
        return web.json_response({"accounts": [], "hashtags": [], "statuses": page})

    app.router.add_get("/api/v2/search", search)
    return app

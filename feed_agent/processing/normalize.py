"""
Normalization of upstream payloads into the feed's post models.
"""

import logging
import re
from typing import Any, Dict, List

from bech32 import bech32_encode, convertbits
from bs4 import BeautifulSoup

from feed_agent.types import (
    BlueskyAuthor,
    BlueskyPost,
    MastodonAccount,
    MastodonPost,
    NostrEvent,
)

logger = logging.getLogger(__name__)

_HEX_KEY = re.compile(r"^[0-9a-f]{64}$")


def html_to_text(html: str, include_links: bool = True) -> str:
    """
    Reduce HTML content to the text a reader sees.

    Args:
        html: HTML fragment, e.g. a Mastodon status body
        include_links: Append anchor ``href`` values so shortened link text
                       still carries the full URL

    Returns:
        Whitespace-collapsed text
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")
    parts = [soup.get_text(" ")]
    if include_links:
        parts.extend(a["href"] for a in soup.find_all("a", href=True))

    return re.sub(r"\s+", " ", " ".join(parts)).strip()


def npub_encode(pubkey: str) -> str:
    """
    Encode a hex public key as a bech32 ``npub1...`` identifier.

    Raises:
        ValueError: If the key is not 32 bytes of lowercase hex
    """
    if not _HEX_KEY.match(pubkey or ""):
        raise ValueError(f"Invalid public key: {pubkey!r}")

    data = convertbits(bytes.fromhex(pubkey), 8, 5)
    return bech32_encode("npub", data)


def bluesky_post_from_feed_item(item: Dict[str, Any], markdown: str) -> BlueskyPost:
    """
    Build a BlueskyPost from an ``app.bsky.feed.getFeed`` item.

    Args:
        item: Feed view item (``{"post": {...}, ...}``)
        markdown: Rendered rich text of the post

    Returns:
        BlueskyPost
    """
    post = item["post"]
    record = post.get("record", {})
    author = post.get("author", {})

    return BlueskyPost(
        uri=post["uri"],
        cid=post.get("cid"),
        author=BlueskyAuthor(
            did=author["did"],
            handle=author.get("handle"),
            display_name=author.get("displayName"),
            avatar=author.get("avatar"),
        ),
        indexed_at=post.get("indexedAt") or record.get("createdAt"),
        text=record.get("text", ""),
        facets=record.get("facets") or [],
        embed=record.get("embed"),
        langs=record.get("langs") or [],
        markdown=markdown,
    )


def nostr_event_from_wire(event: Dict[str, Any]) -> NostrEvent:
    """
    Build a NostrEvent from a relay ``EVENT`` payload.

    Args:
        event: NIP-01 event object

    Returns:
        NostrEvent with the derived npub
    """
    tags: List[List[str]] = [
        [str(value) for value in tag] for tag in event.get("tags", []) if isinstance(tag, list)
    ]
    return NostrEvent(
        id=event["id"],
        pubkey=event["pubkey"],
        content=event.get("content", ""),
        created_at=int(event["created_at"]),
        tags=tags,
        npub=npub_encode(event["pubkey"]),
    )


def mastodon_post_from_status(status: Dict[str, Any]) -> MastodonPost:
    """
    Build a MastodonPost from a Mastodon status entity.

    Args:
        status: Status object from ``/api/v2/search``

    Returns:
        MastodonPost
    """
    account = status.get("account", {})
    return MastodonPost(
        id=str(status["id"]),
        content=status.get("content", ""),
        created_at=status["created_at"],
        account=MastodonAccount(
            username=account.get("username", ""),
            display_name=account.get("display_name"),
        ),
        url=status.get("url"),
    )

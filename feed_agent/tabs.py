"""
Topic tab taxonomy.

Each tab pairs a case-insensitive match pattern (used to classify Nostr and
Mastodon content) with the Bluesky feed generator that pre-curates the same
topic. The built-in list can be replaced by a JSON file whose entries carry
``display_name``, ``match_pattern`` and ``feed_uri``; the list position is the
tab index.
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from feed_agent.types import TabDefinition

logger = logging.getLogger(__name__)

_FEED_GENERATOR = "at://did:plc:hd4p7hmwqy3egilcv6lgjpzf/app.bsky.feed.generator"

_GOV = r"\.gov/"
_ECON = (
    r"bea\.gov|stlouisfed\.org|worldbank\.org|bls\.gov|imf\.org|oecd\.org"
    r"|europa\.eu/eurostat|unstats\.un\.org"
)
_SCI = r"arxiv\.org|nih\.gov|nasa\.gov|science\.org|cell\.com|pnas\.org"

DEFAULT_TABS: List[Dict[str, Any]] = [
    {
        "display_name": "Sources",
        "match_pattern": f"{_GOV}|{_ECON}|{_SCI}",
        "feed_uri": f"{_FEED_GENERATOR}/aaap7msb6vmdg",
    },
    {
        "display_name": "Gov",
        "match_pattern": _GOV,
        "feed_uri": f"{_FEED_GENERATOR}/aaap7i2f6e3kq",
    },
    {
        "display_name": "Econ",
        "match_pattern": _ECON,
        "feed_uri": f"{_FEED_GENERATOR}/aaacsjo76q5g4",
    },
    {
        "display_name": "Sci",
        "match_pattern": _SCI,
        "feed_uri": f"{_FEED_GENERATOR}/aaab4n3ofdehe",
    },
    {
        "display_name": "Film",
        "match_pattern": (
            r"imdb\.com|rottentomatoes\.com|netflix\.com|hulu\.com"
            r"|amazon\.com/gp/video/|play\.max\.com"
        ),
        "feed_uri": f"{_FEED_GENERATOR}/aaaburmrbef3k",
    },
    {
        "display_name": "Pod",
        "match_pattern": (
            r"podcasts\.apple\.com|open\.spotify\.com/episode/|open\.spotify\.com/show/"
        ),
        "feed_uri": f"{_FEED_GENERATOR}/aaab4xs76ypte",
    },
    {
        "display_name": "Music",
        "match_pattern": (
            r"spotify\.com/artist|spotify\.com/track|spotify\.com/album"
            r"|music\.apple\.com|soundcloud\.com"
        ),
        "feed_uri": f"{_FEED_GENERATOR}/aaabut5jyrc6c",
    },
]


def build_tabs(entries: List[Dict[str, Any]]) -> List[TabDefinition]:
    """
    Build tab definitions from raw entries, assigning indexes by position.

    Args:
        entries: Mappings with display_name, match_pattern and feed_uri

    Returns:
        List of TabDefinition

    Raises:
        ValueError: If the list is empty or an entry is invalid
    """
    if not entries:
        raise ValueError("At least one tab definition is required")

    tabs = []
    for index, entry in enumerate(entries):
        try:
            tabs.append(TabDefinition(index=index, **entry))
        except (TypeError, ValidationError) as e:
            raise ValueError(f"Invalid tab definition at index {index}: {e}") from e
    return tabs


def load_tabs(path: Optional[str] = None) -> List[TabDefinition]:
    """
    Load the tab taxonomy.

    Args:
        path: Optional JSON file with a ``tabs`` list (or a bare list).
              Uses the built-in taxonomy when None.

    Returns:
        List of TabDefinition ordered by index

    Raises:
        ValueError: If the file cannot be read or holds invalid tabs
    """
    if not path:
        return build_tabs(DEFAULT_TABS)

    if not os.path.exists(path):
        raise ValueError(f"Tabs file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Could not load tabs from {path}: {e}") from e

    entries = data.get("tabs", []) if isinstance(data, dict) else data
    tabs = build_tabs(entries)
    logger.info(f"Loaded {len(tabs)} tabs from {path}")
    return tabs

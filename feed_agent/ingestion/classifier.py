"""
Topic classification shared by all source fetchers.

The classifier holds the ordered tab definitions and answers one question:
does this piece of text belong to tab N? It is stateless once built and is
shared by every fetcher, so the same pattern decides membership for plain
Bluesky text, raw Nostr note content and HTML-stripped Mastodon statuses.

For upstreams with server-side search the same pattern is also translated
into a plain query string (``regex_to_search_query``); results are then
re-filtered through ``matches`` because upstream search may over-match.
"""

import logging
import re
from typing import Callable, Iterable, List, Sequence, TypeVar

from feed_agent.types import TabDefinition

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Backslash followed by a non-word character: an escaped literal
_ESCAPED_LITERAL = re.compile(r"\\(\W)")


class InvalidTabError(ValueError):
    """Raised when a tab index is outside the known taxonomy."""


def split_alternation(pattern: str) -> List[str]:
    """
    Split a pattern on its top-level ``|`` operators.

    Escaped pipes, pipes inside groups and pipes inside character classes
    are left alone.

    Args:
        pattern: Regular expression source

    Returns:
        List of alternative branches (a single item if there is no alternation)
    """
    branches = []
    current = []
    depth = 0
    in_class = False
    i = 0

    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i + 1 < len(pattern):
            current.append(pattern[i : i + 2])
            i += 2
            continue
        if in_class:
            if char == "]":
                in_class = False
        elif char == "[":
            in_class = True
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        elif char == "|" and depth == 0:
            branches.append("".join(current))
            current = []
            i += 1
            continue
        current.append(char)
        i += 1

    branches.append("".join(current))
    return branches


def _strip_outer_group(pattern: str) -> str:
    """Remove one wrapping ``(...)`` or ``(?:...)`` group spanning the whole pattern."""
    for prefix in ("(?:", "("):
        if not (pattern.startswith(prefix) and pattern.endswith(")")):
            continue
        inner = pattern[len(prefix) : -1]
        # The wrapping group must close at the very end, not earlier
        depth = 0
        balanced = True
        i = 0
        while i < len(inner):
            if inner[i] == "\\":
                i += 2
                continue
            if inner[i] == "(":
                depth += 1
            elif inner[i] == ")":
                depth -= 1
                if depth < 0:
                    balanced = False
                    break
            i += 1
        if balanced and depth == 0:
            return inner
    return pattern


def regex_to_search_query(pattern: str) -> str:
    """
    Translate a tab's match pattern into a plain-language search query.

    Alternation branches become OR-joined literal terms and escaped
    punctuation is unescaped::

        >>> regex_to_search_query(r"arxiv\\.org|nih\\.gov")
        'arxiv.org OR nih.gov'

    Args:
        pattern: Regular expression source

    Returns:
        Search query suitable for an upstream full-text search
    """
    pattern = _strip_outer_group(pattern.strip())
    terms = []
    for branch in split_alternation(pattern):
        term = _ESCAPED_LITERAL.sub(r"\1", branch).strip()
        if term:
            terms.append(term)
    return " OR ".join(terms)


class TopicClassifier:
    """
    Classifies text against an ordered list of topic tabs.

    Attributes:
        tabs: Tab definitions ordered by index
    """

    def __init__(self, tabs: Sequence[TabDefinition]):
        """
        Initialize the classifier.

        Args:
            tabs: Tab definitions; ``tabs[i].index`` must equal ``i``

        Raises:
            ValueError: If the list is empty or indexes are not contiguous
        """
        if not tabs:
            raise ValueError("TopicClassifier requires at least one tab")
        for position, tab in enumerate(tabs):
            if tab.index != position:
                raise ValueError(
                    f"Tab '{tab.display_name}' has index {tab.index}, expected {position}"
                )
        self.tabs = list(tabs)

    def __len__(self) -> int:
        return len(self.tabs)

    @property
    def tab_count(self) -> int:
        return len(self.tabs)

    def get_tab(self, tab_index: int) -> TabDefinition:
        """
        Get the tab definition for an index.

        Raises:
            InvalidTabError: If the index is outside ``[0, tab_count)``
        """
        if not isinstance(tab_index, int) or not 0 <= tab_index < len(self.tabs):
            raise InvalidTabError(
                f"Tab index {tab_index!r} out of range [0, {len(self.tabs)})"
            )
        return self.tabs[tab_index]

    def matches(self, tab_index: int, text: str) -> bool:
        """
        Check whether text belongs to a tab.

        Args:
            tab_index: Tab to test against
            text: Textual content only (no markup)

        Returns:
            True if the tab pattern occurs anywhere in the text
        """
        if not text:
            return False
        return self.get_tab(tab_index).match_pattern.search(text) is not None

    def filter(
        self, tab_index: int, items: Iterable[T], text_of: Callable[[T], str]
    ) -> List[T]:
        """
        Keep the items whose text matches a tab, preserving order.

        Args:
            tab_index: Tab to test against
            items: Items of any shape
            text_of: Extracts the textual content of an item

        Returns:
            Matching items
        """
        pattern = self.get_tab(tab_index).match_pattern
        kept = []
        for item in items:
            text = text_of(item)
            if text and pattern.search(text):
                kept.append(item)
        return kept

    def search_query(self, tab_index: int) -> str:
        """Plain search query equivalent of a tab's pattern."""
        return regex_to_search_query(self.get_tab(tab_index).match_pattern.pattern)

"""
Content processing: rich text rendering and payload normalization.
"""

from feed_agent.processing.normalize import html_to_text, npub_encode
from feed_agent.processing.richtext import (
    RichTextSegment,
    detect_facets,
    render_markdown,
    segment_text,
)

__all__ = [
    "html_to_text",
    "npub_encode",
    "RichTextSegment",
    "detect_facets",
    "render_markdown",
    "segment_text",
]

"""
HTML sanitizer for literal markup

Strips every tag, attribute and URI scheme outside an explicit allow-list
using bleach. Sanitization is selected by the caller (RenderOptions.sanitize)
rather than inferred from the environment, so both trusted and sanitized
output paths are deterministic.
"""

import html
from functools import lru_cache

import bleach
from bleach.sanitizer import Cleaner

from .log import LOG


ALLOWED_TAGS = frozenset({
    # headings and text
    "h1", "h2", "h3", "h4", "h5", "h6",
    "p", "br", "hr", "div", "span",
    "strong", "em", "del", "sup", "kbd",
    # code
    "code", "pre",
    # lists
    "ul", "ol", "li",
    # links and media
    "a", "img",
})

ALLOWED_ATTRIBUTES = {
    "*": ["class", "id"],
    "a": ["href", "target", "rel", "class", "id"],
    "img": ["src", "alt", "class"],
    "span": ["class", "aria-label", "role"],
}

# Relative and same-origin paths carry no scheme and are always kept
ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto", "tel"})


@lru_cache(maxsize=1)
def cleaner_get() -> Cleaner:
    """Build the shared bleach Cleaner once"""
    return Cleaner(
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
        strip_comments=True,
    )


def html_sanitize(markup: str) -> str:
    """
    Remove disallowed markup from an HTML fragment

    Args:
        markup: HTML produced by the block transformer or inline formatter

    Returns:
        Cleaned HTML. Text content of stripped tags is kept as escaped text;
        if cleaning itself fails, the whole fragment is escaped instead.

    Example:
        >>> html_sanitize('<a href="javascript:alert(1)">x</a><script>y</script>')
        '<a>x</a>y'
    """
    try:
        return cleaner_get().clean(markup)
    except Exception as e:
        LOG(f"Sanitization failed, escaping fragment: {e}", level=1)
        return html.escape(markup)


def markup_strip(markup: str) -> str:
    """Visible text of a fragment (all tags removed)"""
    return bleach.clean(markup, tags=set(), strip=True)

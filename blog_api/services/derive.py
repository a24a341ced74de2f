"""Slug and excerpt derivation for posts that omit them."""

import html
import re
import unicodedata

EXCERPT_MAX_CHARS = 150
EXCERPT_ELLIPSIS = "..."

_TAG_RE = re.compile(r"<[^>]*>")
# Line and block boundaries become spaces so adjacent paragraphs don't fuse
_BREAK_TAG_RE = re.compile(
    r"<(?:br|/(?:p|div|h[1-6]|li|blockquote|pre))\b[^>]*>", re.IGNORECASE
)
_WHITESPACE_RE = re.compile(r"\s+")
_NON_SLUG_CHARS_RE = re.compile(r"[^a-z0-9\s-]")
_SEPARATOR_RUN_RE = re.compile(r"[\s-]+")


def derive_slug(title: str) -> str:
    """Build a URL-safe slug from a post title.

    "Hello, World!" -> "hello-world". Accented letters fold to ASCII; other
    non-alphanumerics are dropped. Returns "" when nothing usable remains.
    """
    folded = unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode()
    slug = _NON_SLUG_CHARS_RE.sub("", folded.lower())
    slug = _SEPARATOR_RUN_RE.sub("-", slug)
    return slug.strip("-")


def html_to_text(content: str) -> str:
    """Strip markup and entities from HTML, collapsing whitespace."""
    text = _BREAK_TAG_RE.sub(" ", content)
    text = _TAG_RE.sub("", text)
    text = html.unescape(text).replace("\xa0", " ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def derive_excerpt(content: str, max_chars: int = EXCERPT_MAX_CHARS) -> str:
    """Plain-text teaser from sanitized HTML content.

    Truncated to *max_chars* characters with an ellipsis appended when the
    text is longer.
    """
    text = html_to_text(content)
    if len(text) > max_chars:
        return text[:max_chars] + EXCERPT_ELLIPSIS
    return text

"""Post HTML sanitization service.

Reduces untrusted editor HTML to the tag and attribute subset the reader
site renders. Everything else is stripped before the HTML is stored.
"""

import re

import bleach
from bleach.css_sanitizer import CSSSanitizer

ALLOWED_TAGS = frozenset(
    {
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "p",
        "br",
        "strong",
        "em",
        "u",
        "strike",
        "ul",
        "ol",
        "li",
        "blockquote",
        "pre",
        "code",
        "a",
        "img",
        "div",
        "span",
    }
)

# Attributes every allowed tag may carry
GLOBAL_ATTRIBUTES = ("class", "style")

ALLOWED_ATTRIBUTES: dict[str, list[str]] = {
    tag: list(GLOBAL_ATTRIBUTES) for tag in ALLOWED_TAGS
}
ALLOWED_ATTRIBUTES["a"] += ["href", "target"]
ALLOWED_ATTRIBUTES["img"] += ["src", "alt", "width", "height"]

ALLOWED_PROTOCOLS = ("http", "https", "mailto")

# Elements whose body is code or markup rather than readable text. bleach
# keeps the inner text of stripped tags, so these are removed wholesale first.
# An unclosed element swallows the rest of the document.
_RAW_TEXT_ELEMENT_RE = re.compile(
    r"<(script|style|textarea|noscript|iframe|object)\b[^>]*>.*?(?:</\1\s*>|\Z)",
    re.IGNORECASE | re.DOTALL,
)

# The HTML parser drops one newline right after an opening <pre> tag
_PRE_LEADING_NEWLINE_RE = re.compile(r"(<pre\b[^>]*>)\n")

_css_sanitizer = CSSSanitizer()


def sanitize_html(html: str) -> str:
    """Return *html* restricted to the allowed tags and attributes.

    Disallowed tags are dropped but their text is kept; disallowed
    attributes, comments, and unsafe URL schemes are removed. Never raises
    on malformed markup, and sanitizing the output again is a no-op.
    """
    if not html:
        return ""

    html = _RAW_TEXT_ELEMENT_RE.sub("", html)

    cleaned = bleach.clean(
        html,
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        css_sanitizer=_css_sanitizer,
        strip=True,
        strip_comments=True,
    )
    return _PRE_LEADING_NEWLINE_RE.sub(r"\1\n\n", cleaned)

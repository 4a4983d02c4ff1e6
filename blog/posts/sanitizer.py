"""HTML sanitizing for post bodies.

Post content is rich text written in the browser editor and rendered as
HTML for every reader, so it is reduced to a fixed allow-list before it is
stored. Links always open in a new tab without leaking the opener.
"""

import html
import re
from collections.abc import Iterable

import bleach
from bleach.linkifier import Linker
from bleach.sanitizer import Cleaner


ALLOWED_TAGS = frozenset(
    {
        "p",
        "br",
        "strong",
        "em",
        "u",
        "ol",
        "ul",
        "li",
        "blockquote",
        "pre",
        "code",
        "a",
        "img",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
    }
)

ALLOWED_ATTRIBUTES = {
    "a": ["href", "target", "rel"],
    "img": ["src", "alt"],
}

ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto"})

EXCERPT_LENGTH = 200
EXCERPT_SUFFIX = "…"

# Bare URLs in text are left alone; only existing anchors are rewritten
_NEVER_MATCHES = re.compile(r"(?!)")


def _harden_link(attrs: dict, new: bool = False) -> dict:
    attrs[(None, "target")] = "_blank"
    attrs[(None, "rel")] = "noopener noreferrer"
    return attrs


_WHITESPACE = re.compile(r"\s+")


def sanitize_html(content: str) -> str:
    """Reduce HTML to the allowed tags and attributes.

    Disallowed tags are removed but their text is kept.
    """
    # Cleaner and Linker keep parser state, so they are not shared
    cleaner = Cleaner(
        tags=ALLOWED_TAGS,
        attributes=ALLOWED_ATTRIBUTES,
        protocols=ALLOWED_PROTOCOLS,
        strip=True,
        strip_comments=True,
    )
    linker = Linker(
        callbacks=[_harden_link],
        skip_tags={"pre", "code"},
        parse_email=False,
        url_re=_NEVER_MATCHES,
    )
    return linker.linkify(cleaner.clean(content))


def extract_plain_text(content: str) -> str:
    """Text of an HTML fragment with whitespace collapsed."""
    text = html.unescape(bleach.clean(content, tags=set(), strip=True))
    return _WHITESPACE.sub(" ", text).strip()


def build_excerpt(plain_text: str, length: int = EXCERPT_LENGTH) -> str:
    if len(plain_text) <= length:
        return plain_text
    return plain_text[:length] + EXCERPT_SUFFIX


def normalize_tags(raw: Iterable[str] | str | None) -> list[str]:
    """Lowercase, trim and de-duplicate tags, keeping first-seen order.

    Accepts a list of tags, a comma-separated string, or a list of
    comma-separated strings (repeated form fields).
    """
    if raw is None:
        return []
    items = [raw] if isinstance(raw, str) else raw

    tags: list[str] = []
    for item in items:
        for piece in item.split(","):
            tag = piece.strip().lower()
            if tag and tag not in tags:
                tags.append(tag)
    return tags

"""Text helpers shared by the resolvers: markup cleanup and title matching."""

import re

_TAG_RE = re.compile(r"<[^>]*>")
_MATCH_STRIP_RE = re.compile(r"[\s\[\]()\-.]")
_QUALIFIER_RE = re.compile(r"[\[(].*?[\])]")

# order matters: &amp; last so "&amp;lt;" decodes one level per pass
_ENTITIES = (
    ("&quot;", '"'),
    ("&apos;", "'"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&amp;", "&"),
)


def _decode_entities(text: str) -> str:
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return text


def clean(text: str) -> str:
    """Strip HTML-like tags, decode the common entities and trim.

    Tag stripping and decoding are repeated until the text stops changing,
    so markup that only appears after decoding (``&lt;b&gt;``) is removed
    too and ``clean(clean(x)) == clean(x)`` holds.
    """
    if not text:
        return ""
    previous = None
    while text != previous:
        previous = text
        text = _decode_entities(_TAG_RE.sub("", text))
    return text.strip()


def title_key_for_match(text: str) -> str:
    return _MATCH_STRIP_RE.sub("", text or "").lower()


def is_title_matched(query: str, result_title: str) -> bool:
    """True when the normalized query is contained in the normalized result title."""
    if not query or not result_title:
        return False
    return title_key_for_match(query) in title_key_for_match(result_title)


def strip_qualifiers(title: str) -> str:
    """Drop bracketed/parenthetical qualifiers: "[뮤지컬] 레미제라블 (앙코르)" -> "레미제라블"."""
    return _QUALIFIER_RE.sub("", title or "").strip()

"""Text helpers: slug derivation, reading time, and plain-text sanitisation."""

import html
import math
import re
from typing import Any, Optional

import bleach

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
WORDS_PER_MINUTE = 200


def slugify(value: Optional[str]) -> str:
    """
    Derive a URL slug.

    Lowercases `value`, collapses every run of characters outside `[a-z0-9]` into a single
    hyphen, and trims leading/trailing hyphens. `"Hello, World!"` becomes `"hello-world"`.
    """
    if not value:
        return ""
    return _NON_ALNUM.sub("-", value.lower()).strip("-")


def estimate_reading_time(content: Optional[str]) -> str:
    """Reading time as `"<n> min"` at 200 words per minute, never below one minute."""
    words = len((content or "").split())
    minutes = max(1, math.ceil(words / WORDS_PER_MINUTE))
    return f"{minutes} min"


def strip_markup(value: Any) -> Any:
    """
    Strip HTML tags from a plain-text field.

    Values without a `<` are returned untouched. bleach escapes the text it keeps, so the
    result is unescaped again: the field stays plain text, not HTML.
    """
    if not isinstance(value, str) or "<" not in value:
        return value
    return html.unescape(bleach.clean(value, tags=[], attributes={}, strip=True))


def normalize_tag(value: str) -> str:
    return value.strip().lower()

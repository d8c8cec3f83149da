"""Text helpers for slugs and generated keys."""

import re
import secrets
import string
import unicodedata

_NON_SLUG = re.compile(r"[^a-z0-9]+")

_KEY_ALPHABET = string.ascii_lowercase + string.digits


def make_slug(value: object) -> str:
    """Turn arbitrary text into a URL-safe slug.

    Accents are folded to ASCII, everything that is not a letter or digit
    becomes a single dash.

    Examples:
        >>> make_slug("Lorem Ipsum, dolor!")
        'lorem-ipsum-dolor'
        >>> make_slug("Café Crème")
        'cafe-creme'
    """
    if value is None:
        return ""
    text = unicodedata.normalize("NFKD", str(value))
    text = text.encode("ascii", "ignore").decode("ascii").lower()
    return _NON_SLUG.sub("-", text).strip("-")


def trim_text(value: str, length: int) -> str:
    """Cut text to at most `length` characters without a trailing dash."""
    return value[:length].rstrip("-")


def make_key(length: int) -> str:
    """Random lowercase alphanumeric key."""
    return "".join(secrets.choice(_KEY_ALPHABET) for _ in range(length))

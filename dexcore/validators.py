"""
Identifier sanitization and validation.

Everything a caller passes as an id or name is normalized here before it is
used in an upstream path or a cache key, so 'Mr. Mime', 'mr mime' and
'MR-MIME' all resolve to the same slug and the same cache entries.
"""

import unicodedata
from typing import Optional, Tuple

from dexcore.constants import (
    IDENTIFIER_PATTERN,
    MAX_IDENTIFIER_LENGTH,
    MIN_IDENTIFIER_LENGTH,
)


def normalize_identifier(value) -> str:
    """
    Reduce a user-supplied id or name to an upstream slug.

    Folds accents ('Flabébé' -> 'flabebe'), lower-cases, turns spaces and
    underscores into hyphens, and drops every other non-alphanumeric character.

    Args:
        value: Raw id or name (ints are accepted).

    Returns:
        The slug, or '' if nothing usable remains.
    """
    if value is None:
        return ""

    text = unicodedata.normalize("NFKD", str(value)).encode("ascii", "ignore").decode()
    text = text.strip().lower()
    text = "".join(c for c in text if c.isalnum() or c in "-_ ")
    text = "-".join(text.replace("_", " ").split())

    # Collapse runs of hyphens left behind by stripped punctuation
    while "--" in text:
        text = text.replace("--", "-")
    return text.strip("-")


def validate_identifier(slug: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a normalized slug against length and character constraints.

    Returns:
        Tuple containing (is_valid, error_message).
        If valid, error_message is None.
    """
    if not slug:
        return False, "Identifier cannot be empty."

    if len(slug) < MIN_IDENTIFIER_LENGTH:
        return False, f"Identifier must be at least {MIN_IDENTIFIER_LENGTH} character."

    if len(slug) > MAX_IDENTIFIER_LENGTH:
        return (
            False,
            f"Identifier is too long (max {MAX_IDENTIFIER_LENGTH} characters).",
        )

    if not IDENTIFIER_PATTERN.match(slug):
        return (
            False,
            "Identifier contains invalid characters. Use letters, digits and hyphens.",
        )

    return True, None

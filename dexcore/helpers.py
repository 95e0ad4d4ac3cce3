"""
Small text and URL helpers shared by the decoders and resolvers.
"""

from typing import Any, Optional

from dexcore.constants import OFFICIAL_ARTWORK_URL


def capitalize(text: Optional[str]) -> Optional[str]:
    """
    Upper-case the first character only ('mr-mime' -> 'Mr-mime').

    Blank input is returned unchanged.
    """
    if not text or not text.strip():
        return text
    return text[0].upper() + text[1:]


def clean_flavor_text(text: Optional[str]) -> Optional[str]:
    """
    Normalize catalog prose, which carries hard line breaks and form feeds
    from the original game text boxes.
    """
    if not text or not text.strip():
        return text
    return text.replace("\n", " ").replace("\f", " ").replace("\r", " ").strip()


def id_from_url(url: Optional[str]) -> int:
    """
    Extract the trailing numeric segment of a resource URL.

    Args:
        url: e.g. 'https://pokeapi.co/api/v2/pokemon-species/25/'.

    Returns:
        The id (25), or 0 if the URL has no numeric tail.
    """
    if not url:
        return 0
    tail = url.rstrip("/").split("/")[-1]
    try:
        return int(tail)
    except ValueError:
        return 0


def artwork_url_for_id(entity_id: int) -> str:
    return OFFICIAL_ARTWORK_URL.format(id=entity_id)


def move_display_name(slug: str) -> str:
    return slug.replace("-", " ")


def nested_name(obj: Any, field: str) -> Optional[str]:
    """
    Read ``obj[field]["name"]`` from a named-resource reference.

    Returns None unless the value is a non-blank string.
    """
    if not isinstance(obj, dict):
        return None
    ref = obj.get(field)
    if not isinstance(ref, dict):
        return None
    name = ref.get("name")
    if isinstance(name, str) and name.strip():
        return name
    return None


def nested_url(obj: Any, field: str) -> Optional[str]:
    """Read ``obj[field]["url"]`` the same way as :func:`nested_name`."""
    if not isinstance(obj, dict):
        return None
    ref = obj.get(field)
    if not isinstance(ref, dict):
        return None
    url = ref.get("url")
    if isinstance(url, str) and url.strip():
        return url
    return None

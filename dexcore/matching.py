"""
Name suggestions over the cached list of entity names.

Prefix matching is cheap and runs inline. Fuzzy matching uses the standard
library's ``difflib``, which is CPU-bound on a list of this size, so it is
offloaded to a worker thread to keep the event loop responsive.
"""

import asyncio
import difflib
from typing import List, Sequence

from dexcore.constants import FUZZY_MATCH_COUNT, FUZZY_MATCH_CUTOFF
from dexcore.helpers import capitalize


def prefix_matches(prefix: str, names: Sequence[str], limit: int) -> List[str]:
    """
    Names starting with ``prefix`` (case-insensitive), in list order, capitalized.

    Args:
        prefix: Search term; blank terms match nothing.
        names: Candidate name tags, already in the desired order.
        limit: Maximum results; values below 1 are treated as 1.

    Returns:
        Up to ``limit`` display names.
    """
    term = (prefix or "").strip().lower()
    if not term:
        return []

    limit = max(1, limit)
    matches = []
    for name in names:
        if name.lower().startswith(term):
            matches.append(capitalize(name))
            if len(matches) >= limit:
                break
    return matches


def _get_close_matches_sync(
    word: str, possibilities: Sequence[str], n: int, cutoff: float
) -> List[str]:
    return difflib.get_close_matches(word, possibilities, n=n, cutoff=cutoff)


async def get_close_matches_async(
    word: str,
    possibilities: Sequence[str],
    n: int = FUZZY_MATCH_COUNT,
    cutoff: float = FUZZY_MATCH_CUTOFF,
) -> List[str]:
    """
    Fuzzy "did you mean" matching, run in a thread via ``asyncio.to_thread``.

    Args:
        word: The (probably misspelled) name.
        possibilities: Candidate name tags.
        n: Maximum number of matches to return.
        cutoff: Similarity threshold (0.0 to 1.0).

    Returns:
        Matching name tags, best first.
    """
    word = (word or "").strip().lower()
    if not word or not possibilities:
        return []

    return await asyncio.to_thread(
        _get_close_matches_sync, word, list(possibilities), n, cutoff
    )

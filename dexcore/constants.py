"""
This module contains static constant definitions used throughout the data-access
layer, including:
- Upstream resource paths and field tags
- HTTP status classification for the retry executor
- Stat-tag mapping for the composite record
- Input validation patterns
"""

import re

# Upstream resource paths (relative to POKEAPI_URL)
PATH_POKEMON = "pokemon"
PATH_SPECIES = "pokemon-species"
PATH_ABILITY = "ability"
PATH_MOVE = "move"
PATH_TYPE = "type"
PATH_EVOLUTION_CHAIN = "evolution-chain"

# Large enough to list every entity in one request
ALL_NAMES_PAGE_LIMIT = 20000

# Artwork derived from an id when the payload carries no sprite block
OFFICIAL_ARTWORK_URL = (
    "https://raw.githubusercontent.com/PokeAPI/sprites/master/"
    "sprites/pokemon/other/official-artwork/{id}.png"
)

# Type listing entries that are not real elemental types
PSEUDO_TYPES = frozenset({"unknown", "shadow", "stellar"})

# Upstream stat tag -> composite field
STAT_FIELDS = {
    "hp": "hp",
    "attack": "attack",
    "defense": "defense",
    "special-attack": "special_attack",
    "special-defense": "special_defense",
    "speed": "speed",
}

ENGLISH = "en"
LEVEL_UP_METHOD = "level-up"

# Retry Classification
STATUS_NOT_FOUND = 404
STATUS_TOO_MANY_REQUESTS = 429
RETRY_AFTER_HEADER = "retry-after"

# Cache key prefixes
KEY_POKEMON = "pokemon"
KEY_COMPOSITE = "composite"
KEY_ABILITY = "ability"
KEY_SPECIES = "species"
KEY_CHAIN = "evolution-chain"
KEY_LINEAGE = "lineage"
KEY_MOVE = "move"
KEY_TYPES = "types:all"
KEY_TYPE_MEMBERS = "type:members"
KEY_PAGE_IDS = "pokemon:ids"
KEY_COUNT = "pokemon:count"
KEY_ALL_NAMES = "names:all"

# Input Validation
MAX_IDENTIFIER_LENGTH = 50
MIN_IDENTIFIER_LENGTH = 1
IDENTIFIER_PATTERN = re.compile(r"^[a-z0-9\-]+$")

# Fuzzy matching
FUZZY_MATCH_CUTOFF = 0.6
FUZZY_MATCH_COUNT = 3

# Startup connectivity check
API_STARTUP_VALIDATION_TIMEOUT = 10  # Seconds

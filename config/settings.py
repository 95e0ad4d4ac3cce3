import logging
import os

from dotenv import load_dotenv

"""
Configuration settings for the Pokedex data-access layer.

This module loads environment variables, defines the tunables that govern
caching, retries and upstream concurrency, and validates the configuration
so that a bad deployment fails at startup rather than under load.
"""

load_dotenv()

logger = logging.getLogger("dexcore.config")


def _float_setting(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return float(default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"❌ {name} must be a number (got {raw!r}).\n\n"
            f"Fix or remove it in your .env file, e.g.:\n"
            f"  {name}={default}"
        )


def _int_setting(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return int(default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"❌ {name} must be an integer (got {raw!r}).\n\n"
            f"Fix or remove it in your .env file, e.g.:\n"
            f"  {name}={default}"
        )


# Upstream API
POKEAPI_URL = os.getenv("POKEAPI_URL", "https://pokeapi.co/api/v2").rstrip("/")
USER_AGENT = os.getenv("USER_AGENT", "Pokedex-DataAccess/1.0")
API_REQUEST_TIMEOUT = _float_setting("API_REQUEST_TIMEOUT", 30)  # Seconds

# Connection pool settings
CONNECTION_POOL_LIMIT = _int_setting("CONNECTION_POOL_LIMIT", 100)
CONNECTION_POOL_LIMIT_PER_HOST = _int_setting("CONNECTION_POOL_LIMIT_PER_HOST", 20)
CONNECTION_KEEPALIVE_TIMEOUT = _float_setting("CONNECTION_KEEPALIVE_TIMEOUT", 30)
DNS_CACHE_TTL = _int_setting("DNS_CACHE_TTL", 300)

# Cache TTLs (seconds). Relative ordering matters more than the exact values:
# paged views and counts refresh sooner than entity detail, which refreshes
# sooner than static lookup data (abilities, species, evolution chains).
CACHE_TTL_DETAIL = _float_setting("CACHE_TTL_DETAIL", 12 * 60 * 60)
CACHE_TTL_LOOKUP = _float_setting("CACHE_TTL_LOOKUP", 24 * 60 * 60)
CACHE_TTL_LIST = _float_setting("CACHE_TTL_LIST", 30 * 60)
CACHE_TTL_COUNT = _float_setting("CACHE_TTL_COUNT", 30 * 60)

# Retry Configuration
MAX_FETCH_ATTEMPTS = _int_setting("MAX_FETCH_ATTEMPTS", 4)
RETRY_BASE_DELAY = _float_setting("RETRY_BASE_DELAY", 0.25)  # Doubles per attempt
RETRY_JITTER_MIN = _float_setting("RETRY_JITTER_MIN", 0.05)
RETRY_JITTER_MAX = _float_setting("RETRY_JITTER_MAX", 0.2)

# Circuit Breaker Configuration
BREAKER_FAILURE_THRESHOLD = _int_setting("BREAKER_FAILURE_THRESHOLD", 5)
BREAKER_RECOVERY_TIMEOUT = _float_setting("BREAKER_RECOVERY_TIMEOUT", 60)
BREAKER_SUCCESS_THRESHOLD = _int_setting("BREAKER_SUCCESS_THRESHOLD", 2)

# Upstream Rate Limiting
# Maximum number of concurrent move lookups across ALL composite fetches.
# A single full composite can reference well over a hundred moves.
MOVE_TYPE_MAX_CONCURRENT = _int_setting("MOVE_TYPE_MAX_CONCURRENT", 6)

# Collection Settings
DEFAULT_PAGE_SIZE = _int_setting("DEFAULT_PAGE_SIZE", 20)
FLAVOR_TEXT_LIMIT = _int_setting("FLAVOR_TEXT_LIMIT", 40)
DEFAULT_TYPE_LOOKUP_LIMIT = _int_setting("DEFAULT_TYPE_LOOKUP_LIMIT", 50)
DEFAULT_SUGGESTION_LIMIT = _int_setting("DEFAULT_SUGGESTION_LIMIT", 10)

# Logging Configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", "dexcore.log")


def validate_settings():
    """
    Validate all configuration settings to catch errors at startup.

    Raises:
        ValueError: If any configuration value is invalid (e.g., negative
            timeouts, zero concurrency, or TTLs in the wrong relative order).
    """
    if not POKEAPI_URL.startswith(("http://", "https://")):
        raise ValueError("POKEAPI_URL must be an http(s) URL")

    if API_REQUEST_TIMEOUT <= 0:
        raise ValueError("API_REQUEST_TIMEOUT must be positive")

    if CONNECTION_POOL_LIMIT < 1 or CONNECTION_POOL_LIMIT_PER_HOST < 1:
        raise ValueError("Connection pool limits must be at least 1")

    # Validate cache settings
    for name, ttl in (
        ("CACHE_TTL_DETAIL", CACHE_TTL_DETAIL),
        ("CACHE_TTL_LOOKUP", CACHE_TTL_LOOKUP),
        ("CACHE_TTL_LIST", CACHE_TTL_LIST),
        ("CACHE_TTL_COUNT", CACHE_TTL_COUNT),
    ):
        if ttl <= 0:
            raise ValueError(f"{name} must be positive")

    if CACHE_TTL_DETAIL >= CACHE_TTL_LOOKUP:
        raise ValueError("CACHE_TTL_DETAIL must be shorter than CACHE_TTL_LOOKUP")

    if CACHE_TTL_LIST > CACHE_TTL_DETAIL or CACHE_TTL_COUNT > CACHE_TTL_DETAIL:
        raise ValueError(
            "CACHE_TTL_LIST and CACHE_TTL_COUNT must not exceed CACHE_TTL_DETAIL"
        )

    # Validate retry settings
    if MAX_FETCH_ATTEMPTS < 1:
        raise ValueError("MAX_FETCH_ATTEMPTS must be at least 1")

    if RETRY_BASE_DELAY < 0:
        raise ValueError("RETRY_BASE_DELAY must be non-negative")

    if RETRY_JITTER_MIN < 0 or RETRY_JITTER_MAX < RETRY_JITTER_MIN:
        raise ValueError("RETRY_JITTER_MAX must be >= RETRY_JITTER_MIN >= 0")

    # Validate breaker settings
    if BREAKER_FAILURE_THRESHOLD < 1 or BREAKER_SUCCESS_THRESHOLD < 1:
        raise ValueError("Circuit breaker thresholds must be at least 1")

    if BREAKER_RECOVERY_TIMEOUT <= 0:
        raise ValueError("BREAKER_RECOVERY_TIMEOUT must be positive")

    if MOVE_TYPE_MAX_CONCURRENT < 1:
        raise ValueError("MOVE_TYPE_MAX_CONCURRENT must be at least 1")

    # Validate collection settings
    if DEFAULT_PAGE_SIZE < 1:
        raise ValueError("DEFAULT_PAGE_SIZE must be at least 1")

    if FLAVOR_TEXT_LIMIT < 0:
        raise ValueError("FLAVOR_TEXT_LIMIT must be non-negative")

    if DEFAULT_TYPE_LOOKUP_LIMIT < 1 or DEFAULT_SUGGESTION_LIMIT < 1:
        raise ValueError("Lookup and suggestion limits must be at least 1")

    logger.info("✅ Configuration validation completed successfully")

"""
Command-line entry point for the catalog data-access layer.

Configures logging, validates settings, checks that the catalog API is
reachable and warms the cache with the FULL composite of every name given on
the command line:

    python dex.py pikachu eevee 133
"""

import asyncio
import logging
import sys
import time
from typing import List

from config.settings import LOG_FILE, LOG_LEVEL, validate_settings
from dexcore.api_models import Variant
from dexcore.catalog import CatalogClient

# Setup logging FIRST
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(LOG_FILE, encoding="utf-8"),
    ],
)
logger = logging.getLogger("dexcore")

logging.getLogger().setLevel(getattr(logging, LOG_LEVEL.upper(), logging.INFO))
logger.setLevel(getattr(logging, LOG_LEVEL.upper(), logging.INFO))


async def warm(client: CatalogClient, names: List[str]) -> int:
    """
    Fetch the FULL composite for each name concurrently.

    Returns:
        Number of names that resolved.
    """
    composites = await asyncio.gather(
        *(client.get_composite(name, Variant.FULL) for name in names)
    )

    resolved = 0
    for name, composite in zip(names, composites):
        if composite is None:
            suggestions = await client.closest_names(name)
            hint = f" (did you mean: {', '.join(suggestions)}?)" if suggestions else ""
            logger.warning(f"⚠️ No entry for '{name}'{hint}")
            continue

        resolved += 1
        logger.info(
            f"#{composite.id} {composite.name}: {', '.join(composite.types)} | "
            f"{len(composite.moves)} moves | "
            f"lineage: {' -> '.join(stage.name for stage in composite.evolution_line) or '-'}"
        )
    return resolved


async def main(names: List[str]) -> int:
    client = CatalogClient()
    try:
        if not await client.validate_api_connectivity():
            logger.critical("❌ Catalog API unreachable, aborting")
            return 1

        total = await client.get_total_count()
        logger.info(f"Catalog holds {total:,} entries")

        if names:
            started = time.perf_counter()
            resolved = await warm(client, names)
            logger.info(
                f"✅ Warmed {resolved}/{len(names)} entries in "
                f"{time.perf_counter() - started:.2f}s",
                extra=dict(client.get_cache_stats()),
            )
        return 0
    finally:
        await client.close()


if __name__ == "__main__":
    try:
        validate_settings()
        logger.info("✅ Configuration validation passed")
    except ValueError as e:
        logger.critical(f"❌ Configuration validation failed: {e}")
        sys.exit(1)

    try:
        sys.exit(asyncio.run(main(sys.argv[1:])))
    except KeyboardInterrupt:
        logger.info("Interrupted")

"""
Rebuild the virtual field index for one or all searchable entity types.

Recomputes every virtual field (e.g. Product price and category membership) and
overwrites the stored vfi_ columns and list member rows. Records whose accessors
fail are skipped and reported. Work is committed per chunk, so an interrupted run
keeps the chunks already finished.

Requires: DATABASE_URL in .env.
Run from the project root: python scripts/rebuild_vfi.py [--entity Product] [--chunk-size N]
"""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

logger = logging.getLogger(__name__)

from shop_search.adapters.sql import SqlAlchemyAdapter
from shop_search.catalog import get_search_config
from shop_search.core.config import get_settings
from shop_search.db.session import async_session
from shop_search.errors import ConfigError
from shop_search.index.builder import VirtualFieldIndexBuilder


async def rebuild(entity_name: str | None, chunk_size: int | None) -> int:
    """Returns the total number of skipped records."""
    config = get_search_config()
    entities = [config.entity(entity_name)] if entity_name else config.entities
    skipped = 0
    async with async_session() as session:
        builder = VirtualFieldIndexBuilder(
            SqlAlchemyAdapter(session), chunk_size or config.vfi_build_chunk_size
        )
        for entity in entities:
            report = await builder.build(entity)
            skipped += report.skipped
            logger.info("%s: %s built, %s skipped", entity.name, report.built, report.skipped)
            for err in report.errors:
                logger.info("  skipped %s", err)
    return skipped


def main():
    parser = argparse.ArgumentParser(description="Rebuild the virtual field index.")
    parser.add_argument("--entity", default=None, help="Entity type to rebuild (default: all searchable types)")
    parser.add_argument("--chunk-size", type=int, default=None,
                        help="Records per committed chunk (default: VFI_BUILD_CHUNK_SIZE setting)")
    parser.add_argument("--log-level", type=str.upper, default=get_settings().log_level.upper(),
                        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
                        help="Log verbosity (default: LOG_LEVEL setting)")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    try:
        skipped = asyncio.run(rebuild(args.entity, args.chunk_size))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
        sys.exit(0)
    except ConfigError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(2)
    sys.exit(1 if skipped else 0)


if __name__ == "__main__":
    main()

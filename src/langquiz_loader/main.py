"""
Command line entry point for the langquiz loader.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from .cache import ContentCache
from .config import LoaderConfig
from .exceptions import ConfigurationError, LoaderError
from .provider import HttpCourseProvider
from .store import DocumentStore, InMemoryDocumentStore, MongoDocumentStore
from .translation import TranslationBatcher
from .traversal import CourseTraverser, RunReport
from .writer import CollectionNames, PersistenceWriter

logger = logging.getLogger("langquiz-loader")


def create_store(config: LoaderConfig, dry_run: bool = False) -> DocumentStore:
    """Build the document store for a run; dry runs write to memory only."""
    if dry_run:
        logger.info("Dry run: writes go to an in-memory store")
        return InMemoryDocumentStore()
    if not config.mongo_url:
        raise ConfigurationError(
            "No MongoDB URL configured. Set LANGQUIZ_MONGO_URL or add secrets/db.json."
        )
    return MongoDocumentStore.connect(
        config.mongo_url,
        user=config.mongo_user,
        password=config.mongo_password,
        database=config.database,
    )


async def run_pipeline(config: LoaderConfig, dry_run: bool = False) -> RunReport:
    """Log in to the provider, then load the configured courses into the store."""
    store = create_store(config, dry_run=dry_run)
    try:
        async with HttpCourseProvider.create_client(config.provider_url) as client:
            provider = HttpCourseProvider(client)
            await provider.login(config.provider_user or "", config.provider_password or "")

            cache = ContentCache(config.cache_dir)
            writer = PersistenceWriter(
                store, CollectionNames(words=config.words_collection)
            )
            batcher = TranslationBatcher(provider, cache, batch_size=config.batch_size)
            traverser = CourseTraverser(provider, cache, writer, batcher)

            report = await traverser.run(config.course_ids)

            stats = cache.get_stats()
            logger.info(
                f"Cache: {stats.hit_count} hits, {stats.miss_count} misses "
                f"({stats.hit_rate:.0%} hit rate)"
            )
            return report
    finally:
        await store.close()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Load provider courses, skills and word translations into MongoDB",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load the configured courses
  langquiz-loader

  # Load a single course without touching the database
  langquiz-loader --course DUOLINGO_VI_EN --dry-run
        """,
    )
    parser.add_argument(
        "--course",
        dest="courses",
        action="append",
        metavar="ID",
        help="Course id to load; repeat for several (default: LANGQUIZ_COURSE_IDS)",
    )
    parser.add_argument(
        "--cache-dir",
        type=Path,
        help="Response cache directory (default: LANGQUIZ_CACHE_DIR or out)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Words per translation request (default: 50)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and cache as usual but keep writes in memory",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log cache hits and per-request detail",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the loader."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )
    # keep driver chatter out of --verbose output
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)

    if not load_dotenv():
        logger.warning(".env file not found, using environment variables and secrets files only")

    try:
        config = LoaderConfig.from_env().with_overrides(
            course_ids=args.courses,
            cache_dir=args.cache_dir,
            batch_size=args.batch_size,
        )
        asyncio.run(run_pipeline(config, dry_run=args.dry_run))
    except LoaderError as e:
        logger.error(f"Loader failed: {e}")
        if e.details:
            logger.error(f"Details: {e.details}")
        sys.exit(1)


if __name__ == "__main__":
    main()

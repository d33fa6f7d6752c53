import argparse
import asyncio
import json
import sys
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from config import CONFIGS, options_from_config
from crawler import Crawler, create_crawler
from events import CrawlEvent
from sqlite_queue import SqliteQueueStore
from utils.logger import VALID_LEVELS, logger, setup_logger

load_dotenv()


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    help_text = "Configuration to use. Available options:\n"
    for name in CONFIGS:
        help_text += f"  {name}\n"

    parser = argparse.ArgumentParser(
        description="Crawl the pages of a set of hosts",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=str,
        default="default",
        choices=list(CONFIGS.keys()),
        help=help_text,
    )
    parser.add_argument(
        "--list", action="store_true", help="List available configurations and exit"
    )
    parser.add_argument("--url", type=str, help="Start URL")
    parser.add_argument(
        "--domain",
        action="append",
        dest="domains",
        help="Hostname allowed for crawling (repeatable, default: the start URL's host)",
    )
    parser.add_argument("--concurrency", type=int, help="Maximum simultaneous fetches")
    parser.add_argument("--interval", type=int, help="Delay in milliseconds before each fetch")
    parser.add_argument(
        "--queue-db",
        type=str,
        help="SQLite file used as a persistent queue (resumes interrupted crawls)",
    )
    parser.add_argument(
        "--max-documents",
        type=int,
        help="Abort the crawl after this many documents",
    )
    parser.add_argument(
        "--output",
        type=str,
        help="Write one JSON line per fetched document to this file",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=VALID_LEVELS,
        help="Log level (default: LOG_LEVEL from the environment, then INFO)",
    )

    args = parser.parse_args(argv)

    if args.list:
        logger.info("Available configurations:")
        for name, config in CONFIGS.items():
            logger.info(f"  {name}: {config['CRAWLER_CONFIG']}")
        sys.exit(0)

    if not args.url and not args.queue_db:
        parser.error("--url is required unless resuming from --queue-db")

    return args


def get_config(template: str) -> Dict[str, Any]:
    """Get configuration based on template name."""
    if template not in CONFIGS:
        logger.error(f"Error: Unknown configuration '{template}'")
        logger.info("To see available configurations, run: python main.py --list")
        sys.exit(1)
    return CONFIGS[template]


def build_crawler(args: argparse.Namespace) -> Crawler:
    options = options_from_config(get_config(args.config))
    if args.url:
        options["url"] = args.url
    if args.domains:
        options["domains"] = args.domains
    if args.concurrency is not None:
        options["max_concurrency"] = args.concurrency
    if args.interval is not None:
        options["interval"] = args.interval

    queue_store = SqliteQueueStore(args.queue_db) if args.queue_db else None
    return create_crawler(queue_store=queue_store, **options)


async def crawl_site(args: argparse.Namespace) -> Dict[str, int]:
    """
    Run one crawl and report what happened.

    Args:
        args: Parsed command line arguments

    Returns:
        Counts of documents, navigated links and errors
    """
    crawler = build_crawler(args)
    stats = {"documents": 0, "navigated": 0, "errors": 0}
    output = open(args.output, "a", encoding="utf-8") if args.output else None

    def on_document(request, response, body, document):
        stats["documents"] += 1
        title = document.title.get_text(strip=True) if document.title else None
        logger.info(f"Document {stats['documents']}: {request.url} ({response.status})")

        if output is not None:
            record = {
                "url": request.url,
                "status": response.status,
                "title": title,
                "links": len(document.find_all(href=True)),
            }
            output.write(json.dumps(record) + "\n")

        if args.max_documents and stats["documents"] >= args.max_documents:
            logger.info("Reached %d documents, aborting", args.max_documents)
            crawler.abort()

    def on_navigated(location):
        stats["navigated"] += 1

    def on_error(error):
        stats["errors"] += 1
        logger.warning(f"{error.__class__.__name__}: {error}")

    crawler.on(CrawlEvent.DOCUMENT, on_document)
    crawler.on(CrawlEvent.NAVIGATED, on_navigated)
    crawler.on(CrawlEvent.ERROR, on_error)

    logger.info(f"Starting crawler with {crawler.options.url or args.queue_db}")
    logger.info("Allowed domains: %s", ", ".join(sorted(crawler.domains or [])) or "any")

    try:
        await crawler.run()
    finally:
        if output is not None:
            output.close()
        if isinstance(crawler.queue, SqliteQueueStore):
            logger.info("Queue status: %s", await crawler.queue.counts())
            await crawler.queue.close()

    return stats


async def main(argv: Optional[list[str]] = None) -> None:
    """Entry point of the script."""
    args = parse_args(argv)
    if args.log_level:
        setup_logger(level=args.log_level)

    try:
        stats = await crawl_site(args)
        logger.info(
            "Crawled %d documents, queued %d links, %d errors",
            stats["documents"],
            stats["navigated"],
            stats["errors"],
        )
    except KeyboardInterrupt:
        logger.warning("Crawling interrupted by user.")
    finally:
        logger.info("Crawling completed.")


def cli() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    cli()

"""
Async crawl orchestrator: lifecycle, staging pump and per-item processing.
"""

import asyncio
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlsplit

from errors import CrawlerError, DisallowedLocationError, InvalidLocationError, QueueStoreError
from events import CrawlEvent, EventEmitter
from fetcher import AsyncFetcher
from middleware import Middleware, MiddlewarePipeline, QueryStringMiddleware, RouteHandler, Router
from models.fetch_result import FetchResult
from models.options import CrawlerOptions
from models.queue_item import QueueItem
from queue_store import MemoryQueueStore, QueueStore
from url_utils import discover_locations, ensure_scheme
from utils.logger import logger
from worker_pool import WorkerPool


class CrawlPhase(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    ABORTED = "aborted"
    COMPLETED = "completed"


class Crawler(EventEmitter):
    """
    Crawls the hosts of a domain whitelist until no work remains.

    Items flow from the queue store, through the staging pump, into a
    bounded worker pool. Every finished item re-runs the pump, which is what
    keeps the crawl going as links are discovered. The crawl completes once
    the pool drains with nothing left in the store.

    Events: error, navigated, document, paused, resumed, complete.
    """

    def __init__(
        self,
        options: Any = None,
        *,
        queue_store: Optional[QueueStore] = None,
        fetcher: Optional[Any] = None,
        **overrides: Any,
    ):
        """
        Initialize the crawler.

        Args:
            options: CrawlerOptions, a mapping of option values, or a start URL
            queue_store: Store for pending and active items (default: in memory)
            fetcher: Object with `async fetch(url)` returning a FetchResult
                (default: an AsyncFetcher built from the options)
            **overrides: Option values that win over `options`
        """
        super().__init__()
        self.options = CrawlerOptions.coerce(options, **overrides)
        self.queue: QueueStore = queue_store if queue_store is not None else MemoryQueueStore()
        self.fetcher = fetcher if fetcher is not None else AsyncFetcher.from_options(self.options)
        self._owns_fetcher = fetcher is None

        self.domains: Optional[frozenset[str]] = None
        if self.options.domains is not None:
            self.domains = frozenset(domain.lower() for domain in self.options.domains)

        self.middleware = MiddlewarePipeline()
        self.router: Optional[Router] = None
        self.pool = WorkerPool(
            self._process,
            self.options.max_concurrency,
            on_drain=self._complete,
            on_error=self._worker_failed,
        )

        self._phase = CrawlPhase.RUNNING
        self._aborted = False
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._done = asyncio.Event()
        self._pump_lock = asyncio.Lock()

    @property
    def phase(self) -> CrawlPhase:
        return self._phase

    @property
    def paused(self) -> bool:
        return self._phase is CrawlPhase.PAUSED

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def completed(self) -> bool:
        return self._phase is CrawlPhase.COMPLETED

    def use(self, handler: Middleware) -> "Crawler":
        """Append a middleware to the document chain."""
        self.middleware.append(handler)
        return self

    def route(self, pattern: str, handler: RouteHandler) -> "Crawler":
        """Run `handler(crawler, result)` for documents whose URL matches `pattern`."""
        if self.router is None:
            self.router = Router()
            self.use(self.router)
        self.router.route(pattern, handler)
        return self

    async def navigate(self, location: str) -> str:
        """
        Queue a location for crawling.

        Args:
            location: Absolute URL, or a location without scheme (http is assumed)

        Returns:
            The absolute location that was added to the queue store

        Raises:
            InvalidLocationError: If the location cannot be parsed
            DisallowedLocationError: If the hostname is outside the whitelist
            QueueStoreError: If the store rejects the item
        """
        location = ensure_scheme(location)
        try:
            hostname = urlsplit(location).hostname
        except ValueError as e:
            raise InvalidLocationError(location, str(e)) from e

        if self.domains is not None and hostname not in self.domains:
            raise DisallowedLocationError(location)

        try:
            await self.queue.add(location)
        except QueueStoreError:
            raise
        except Exception as e:
            raise QueueStoreError(f"Failed to add {location}: {e}") from e
        return location

    async def crawl(self) -> None:
        """
        Pull queued items into the worker pool.

        While paused this waits for resume; once aborted or completed it does
        nothing. A queue store failure is emitted and ends the crawl.
        """
        self.middleware.freeze()

        while self._phase is CrawlPhase.PAUSED:
            await self._resumed.wait()
        if self._phase is not CrawlPhase.RUNNING:
            return

        try:
            await self._pump()
        except QueueStoreError as e:
            logger.error("Queue store failed, ending crawl: %s", e)
            self.emit(CrawlEvent.ERROR, e)
            self._stop("Queue store failed")
            return

        if self.pool.idle():
            self._complete()

    async def _pump(self) -> None:
        ceiling = self.options.max_crawl_queue_length

        # Serialized so concurrent re-entries cannot overshoot the ceiling.
        async with self._pump_lock:
            while self._phase is CrawlPhase.RUNNING and self.pool.length() < ceiling:
                try:
                    item = await self.queue.get()
                except QueueStoreError:
                    raise
                except Exception as e:
                    raise QueueStoreError(f"Failed to get the next item: {e}") from e

                if item is None:
                    break
                if self._phase in (CrawlPhase.ABORTED, CrawlPhase.COMPLETED):
                    break
                self.pool.push(item)

    def pause(self) -> None:
        """Stop starting new pump cycles; in-flight fetches carry on."""
        if self._phase is not CrawlPhase.RUNNING:
            return

        self._phase = CrawlPhase.PAUSED
        self._resumed.clear()
        logger.info("Crawl paused")
        self.emit(CrawlEvent.PAUSED)

    def resume(self) -> None:
        if self._phase is not CrawlPhase.PAUSED:
            return

        self._phase = CrawlPhase.RUNNING
        self._resumed.set()
        logger.info("Crawl resumed")
        self.emit(CrawlEvent.RESUMED)

    def abort(self) -> None:
        """Drop pending tasks and complete once running tasks have finished."""
        if self._phase in (CrawlPhase.COMPLETED, CrawlPhase.ABORTED):
            return
        self._aborted = True
        self._stop("Crawl aborted")

    def _stop(self, reason: str) -> None:
        if self._phase in (CrawlPhase.COMPLETED, CrawlPhase.ABORTED):
            return
        if self._phase is CrawlPhase.PAUSED:
            self.resume()

        self._phase = CrawlPhase.ABORTED
        dropped = self.pool.clear()
        logger.info("%s, %d pending item(s) dropped", reason, len(dropped))

        # Running tasks finish first; the pool drain hook completes the crawl.
        if self.pool.running() == 0:
            self._complete()

    def _complete(self) -> None:
        if self._phase is CrawlPhase.COMPLETED:
            return

        self._phase = CrawlPhase.COMPLETED
        self._resumed.set()
        self._done.set()
        logger.info("Crawl complete")
        self.emit(CrawlEvent.COMPLETE)

    def _worker_failed(self, error: BaseException, item: QueueItem) -> None:
        logger.error("Worker failed on %s", item.url, exc_info=error)
        self.emit(CrawlEvent.ERROR, error)

    async def _process(self, item: QueueItem) -> None:
        result: Optional[FetchResult] = None
        error: Optional[Exception] = None

        try:
            await asyncio.sleep(self.options.interval / 1000)
            logger.info("Crawling: %s", item.url)
            result = await self.fetcher.fetch(item.url)
        except Exception as e:
            error = e

        if result is not None:
            await self._navigate_discovered(result)

        try:
            ended = await self.queue.end(item, error)
        except Exception as end_error:
            end_error.queue_item = item
            logger.error("Failed to end %s: %s", item.url, end_error)
            self.emit(CrawlEvent.ERROR, end_error)
        else:
            if error is not None:
                error.queue_item = ended
                logger.warning("Failed to crawl %s: %s", item.url, error)
                self.emit(CrawlEvent.ERROR, error)
            elif result is not None:
                await self._run_middleware(result)

        await self.crawl()

    async def _navigate_discovered(self, result: FetchResult) -> None:
        locations = discover_locations(
            result.document,
            result.request.scheme,
            result.request.host,
            hostname=result.request.hostname,
        )
        for location in locations:
            try:
                queued = await self.navigate(location)
            except CrawlerError as e:
                logger.debug("Not navigating to %s: %s", location, e)
                self.emit(CrawlEvent.ERROR, e)
            else:
                self.emit(CrawlEvent.NAVIGATED, queued)

    async def _run_middleware(self, result: FetchResult) -> None:
        try:
            await self.middleware.run(self, result, self._emit_document)
        except Exception as e:
            logger.warning("Middleware failed for %s: %s", result.request.url, e)
            self.emit(CrawlEvent.ERROR, e)

    async def _emit_document(self, crawler: "Crawler", result: FetchResult) -> None:
        self.emit(
            CrawlEvent.DOCUMENT,
            result.request,
            result.response,
            result.body,
            result.document,
        )

    async def start(self) -> "Crawler":
        """Queue the configured start URL, if any, and begin crawling."""
        if self.options.url:
            try:
                await self.navigate(self.options.url)
            except CrawlerError as e:
                self.emit(CrawlEvent.ERROR, e)
                self._complete()
                return self

        await self.crawl()
        return self

    async def wait(self) -> None:
        """Wait for the complete notification."""
        await self._done.wait()

    async def run(self) -> "Crawler":
        """Start, wait for completion and release the fetcher."""
        try:
            await self.start()
            await self.wait()
        finally:
            await self.close()
        return self

    async def close(self) -> None:
        if self._owns_fetcher:
            await self.fetcher.close()

    async def __aenter__(self) -> "Crawler":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if not self.completed:
            self.abort()
            await self.wait()
        await self.close()


def create_crawler(options: Any = None, **kwargs: Any) -> Crawler:
    """
    Build a crawler with the stock middleware installed.

    Query strings are parsed into `request.query` and `crawler.route()`
    patterns are served by the crawler's router.
    """
    crawler = Crawler(options, **kwargs)
    crawler.router = Router()
    return crawler.use(QueryStringMiddleware()).use(crawler.router)


async def main():
    """Example usage of the crawler."""
    crawler = create_crawler("https://example.com", interval=1000)
    crawler.on(CrawlEvent.DOCUMENT, lambda request, response, body, document: print(
        f"  - {request.url} ({response.status})"
    ))
    crawler.on(CrawlEvent.ERROR, lambda error: print(f"  ! {error}"))

    await crawler.run()


if __name__ == "__main__":
    asyncio.run(main())

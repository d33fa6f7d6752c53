"""
Async HTTP fetcher for HTML documents.

Bodies are streamed and decoded chunk by chunk, then parsed once the whole
document has arrived.
"""

import asyncio
import codecs
from typing import Any, Mapping, Optional

import aiohttp
from aiohttp.abc import AbstractCookieJar

from errors import FetchError, MissingContentTypeError, UnsupportedContentTypeError
from models.fetch_result import FetchResult
from models.options import CrawlerOptions, default_headers
from utils.logger import logger

CHUNK_SIZE = 16 * 1024


def check_content_type(url: str, headers: Mapping[str, str]) -> str:
    """
    Validate that a response holds an HTML-family document.

    Args:
        url: The fetched URL, for error context
        headers: Response headers (case-insensitive mapping)

    Returns:
        The content-type header value

    Raises:
        MissingContentTypeError: If no content-type header is present
        UnsupportedContentTypeError: If the content-type is not HTML
    """
    content_type = headers.get("Content-Type")
    if not content_type:
        raise MissingContentTypeError(url)
    if "html" not in content_type.lower():
        raise UnsupportedContentTypeError(url, content_type)
    return content_type


class AsyncFetcher:
    """
    Asynchronous HTTP fetcher for HTML documents.

    Owns an aiohttp session created on first use. When a connector is
    supplied as `pool` it is shared, not closed, by this fetcher.
    """

    def __init__(
        self,
        *,
        encoding: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        proxy: Optional[str] = None,
        timeout: Optional[float] = None,
        follow_redirect: bool = True,
        max_redirects: int = 10,
        auth: Optional[tuple[str, str]] = None,
        pool: Optional[aiohttp.BaseConnector] = None,
        jar: Optional[AbstractCookieJar] = None,
    ):
        """
        Initialize the async fetcher.

        Args:
            encoding: Character encoding forced on every body (default: the
                response charset, then UTF-8)
            headers: Request headers sent with every fetch
            proxy: HTTP proxy URL
            timeout: Total request timeout in seconds
            follow_redirect: Whether redirects are followed
            max_redirects: Redirect limit when following
            auth: (user, password) for HTTP basic auth
            pool: Shared aiohttp connector
            jar: Cookie jar shared across fetches
        """
        if encoding is not None:
            codecs.lookup(encoding)  # fail fast on an unknown codec

        self.encoding = encoding
        self.headers = dict(headers if headers is not None else default_headers())
        self.proxy = proxy
        self.timeout = timeout
        self.follow_redirect = follow_redirect
        self.max_redirects = max_redirects
        self.auth = aiohttp.BasicAuth(*auth) if auth else None
        self.pool = pool
        self.jar = jar
        self._session: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_options(cls, options: CrawlerOptions) -> "AsyncFetcher":
        return cls(
            encoding=options.encoding,
            headers=options.headers,
            proxy=options.proxy,
            timeout=options.timeout_seconds(),
            follow_redirect=options.follow_redirect,
            max_redirects=options.max_redirects,
            auth=options.auth,
            pool=options.pool,
            jar=options.jar,
        )

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            kwargs: dict[str, Any] = {"headers": self.headers}
            if self.pool is not None:
                kwargs["connector"] = self.pool
                kwargs["connector_owner"] = False
            if self.jar is not None:
                kwargs["cookie_jar"] = self.jar
            self._session = aiohttp.ClientSession(**kwargs)
        return self._session

    def _request_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "allow_redirects": self.follow_redirect,
            "max_redirects": self.max_redirects,
        }
        if self.proxy:
            kwargs["proxy"] = self.proxy
        if self.timeout is not None:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=self.timeout)
        if self.auth is not None:
            kwargs["auth"] = self.auth
        return kwargs

    async def fetch(self, url: str) -> FetchResult:
        """
        Fetch and parse one HTML document.

        The body is decoded incrementally while it streams in; the complete
        text is parsed in a single pass afterwards.

        Args:
            url: The absolute URL to fetch

        Returns:
            The parsed fetch result

        Raises:
            MissingContentTypeError: If the response has no content-type
            UnsupportedContentTypeError: If the response is not HTML
            FetchError: On connection, timeout or protocol failures
        """
        session = self._get_session()

        try:
            async with session.get(url, **self._request_kwargs()) as response:
                check_content_type(url, response.headers)

                encoding = self.encoding or response.charset or "utf-8"
                try:
                    decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
                except LookupError:
                    logger.warning("Unknown charset %r for %s, decoding as UTF-8", encoding, url)
                    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

                parts = []
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    parts.append(decoder.decode(chunk))
                parts.append(decoder.decode(b"", final=True))
                body = "".join(parts)

                final_url = str(response.url)
                status = response.status
                headers = dict(response.headers)
        except aiohttp.ClientError as e:
            raise FetchError(url, f"{e.__class__.__name__}: {e}") from e
        except asyncio.TimeoutError as e:
            raise FetchError(url, "request timed out") from e

        logger.debug("Fetched %s (%d, %d chars)", final_url, status, len(body))

        return FetchResult.from_html(final_url, body, status=status, headers=headers)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

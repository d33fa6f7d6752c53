"""
Document-processing middleware.

A middleware is an async callable `handler(crawler, result, call_next)`.
Awaiting `call_next()` hands the document to the rest of the chain; raising
halts the chain for that document.
"""

import re
from typing import Any, Awaitable, Callable
from urllib.parse import parse_qs, urlsplit

from models.fetch_result import FetchResult

Next = Callable[[], Awaitable[None]]
Middleware = Callable[[Any, FetchResult, Next], Awaitable[None]]
RouteHandler = Callable[[Any, FetchResult], Awaitable[None]]


class MiddlewarePipeline:
    """Ordered chain of middleware, frozen once crawling starts."""

    def __init__(self) -> None:
        self._handlers: list[Middleware] = []
        self._frozen = False

    def __len__(self) -> int:
        return len(self._handlers)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def append(self, handler: Middleware) -> None:
        if self._frozen:
            raise RuntimeError("Middleware cannot be added once crawling has started")
        if not callable(handler):
            raise TypeError(f"Middleware must be callable, got {handler!r}")
        self._handlers.append(handler)

    def freeze(self) -> None:
        self._frozen = True

    async def run(
        self,
        crawler: Any,
        result: FetchResult,
        final: Callable[[Any, FetchResult], Awaitable[None]],
    ) -> None:
        """
        Thread `crawler` and `result` through every handler, then `final`.

        Exceptions raised by a handler propagate to the caller.
        """
        handlers = list(self._handlers)

        async def dispatch(index: int) -> None:
            if index == len(handlers):
                await final(crawler, result)
                return
            await handlers[index](crawler, result, lambda: dispatch(index + 1))

        await dispatch(0)


class QueryStringMiddleware:
    """Parse the request URL's query string into `result.request.query`."""

    async def __call__(self, crawler: Any, result: FetchResult, call_next: Next) -> None:
        query = urlsplit(result.request.url).query
        parsed = parse_qs(query, keep_blank_values=True)
        result.request.query = {
            key: values[0] if len(values) == 1 else values
            for key, values in parsed.items()
        }
        await call_next()


def compile_route(pattern: str) -> re.Pattern:
    """
    Compile a route pattern matched against whole URLs.

    `*` matches any run of characters and `:name` captures one path segment.
    """
    parts = []
    for token in re.split(r"(\*|:[A-Za-z_][A-Za-z0-9_]*)", pattern):
        if token == "*":
            parts.append(".*")
        elif token.startswith(":") and len(token) > 1:
            parts.append(f"(?P<{token[1:]}>[^/?#]+)")
        else:
            parts.append(re.escape(token))
    return re.compile("".join(parts) + r"\Z")


class Router:
    """Run route handlers whose pattern matches the fetched URL."""

    def __init__(self) -> None:
        self.routes: list[tuple[re.Pattern, RouteHandler]] = []

    def route(self, pattern: str, handler: RouteHandler) -> "Router":
        self.routes.append((compile_route(pattern), handler))
        return self

    async def __call__(self, crawler: Any, result: FetchResult, call_next: Next) -> None:
        for regex, handler in self.routes:
            match = regex.match(result.request.url)
            if match is None:
                continue
            result.request.params = match.groupdict()
            await handler(crawler, result)
        await call_next()

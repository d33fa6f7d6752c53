"""
Exception taxonomy for the crawler.

Item-scoped errors (content-type, transport) carry the queue item they were
raised for once the worker has ended that item.
"""

from typing import Any


class CrawlerError(Exception):
    """Base class for every error the crawler raises or emits."""

    def __init__(self, message: str, *, queue_item: Any = None):
        super().__init__(message)
        self.queue_item = queue_item


class DisallowedLocationError(CrawlerError):
    """The location's hostname is not in the domain whitelist."""

    def __init__(self, location: str):
        super().__init__(f"Location is not allowed: {location}")
        self.location = location


class MissingContentTypeError(CrawlerError):
    """The response carried no content-type header."""

    def __init__(self, url: str):
        super().__init__(f"Missing the content-type: {url}")
        self.url = url


class UnsupportedContentTypeError(CrawlerError):
    """The response is not an HTML-family document."""

    def __init__(self, url: str, content_type: str):
        super().__init__(f"Unsupported content-type {content_type!r}: {url}")
        self.url = url
        self.content_type = content_type


class FetchError(CrawlerError):
    """Transport-level failure while fetching a document."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url


class QueueStoreError(CrawlerError):
    """A queue store operation failed."""


class InvalidLocationError(CrawlerError):
    """The location cannot be parsed as a URL."""

    def __init__(self, location: str, reason: str):
        super().__init__(f"Invalid location {location!r}: {reason}")
        self.location = location

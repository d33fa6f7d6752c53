"""
Records produced by one fetch: the request it answered, the response
metadata, the decoded body and the parsed document tree.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass
class RequestInfo:
    url: str
    scheme: str
    hostname: str
    host: str  # hostname plus any non-default port
    query: dict[str, Any] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_url(cls, url: str) -> "RequestInfo":
        parts = urlsplit(url)
        scheme = parts.scheme.lower() or "http"
        hostname = parts.hostname or ""
        host = hostname
        if parts.port is not None and parts.port != DEFAULT_PORTS.get(scheme):
            host = f"{hostname}:{parts.port}"
        return cls(url=url, scheme=scheme, hostname=hostname, host=host)


@dataclass
class ResponseInfo:
    url: str
    status: int
    headers: Mapping[str, str]


@dataclass
class FetchResult:
    request: RequestInfo
    response: ResponseInfo
    body: str
    document: BeautifulSoup

    @classmethod
    def from_html(
        cls,
        url: str,
        body: str,
        *,
        status: int = 200,
        headers: Mapping[str, str] | None = None,
    ) -> "FetchResult":
        """Parse an already-decoded HTML body fetched from `url`."""
        return cls(
            request=RequestInfo.from_url(url),
            response=ResponseInfo(
                url=url,
                status=status,
                headers=dict(headers or {"content-type": "text/html"}),
            ),
            body=body,
            document=BeautifulSoup(body, "html.parser"),
        )

"""
Construction-time options for a crawler.
"""

from typing import Any, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, model_validator

from url_utils import ensure_scheme

DEFAULT_USER_AGENT = "Python/flexcrawl 0.1.0"


def default_headers() -> dict[str, str]:
    return {"user-agent": DEFAULT_USER_AGENT}


class CrawlerOptions(BaseModel):
    """
    Immutable snapshot of everything a crawler is configured with.

    `interval` and `timeout` are in milliseconds. When `url` is given and
    `domains` is not, the whitelist becomes the URL's hostname; leaving both
    out means any host may be crawled.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    url: Optional[str] = None
    domains: Optional[list[str]] = None
    max_concurrency: int = Field(default=4, ge=1)
    max_crawl_queue_length: int = Field(default=10, ge=1)
    interval: int = Field(default=250, ge=0)
    encoding: Optional[str] = None
    proxy: Optional[str] = None
    headers: dict[str, str] = Field(default_factory=default_headers)
    timeout: Optional[int] = Field(default=None, gt=0)
    follow_redirect: bool = True
    max_redirects: int = Field(default=10, ge=0)
    auth: Optional[tuple[str, str]] = None
    pool: Any = None  # aiohttp.BaseConnector shared between crawlers
    jar: Any = None  # aiohttp.abc.AbstractCookieJar

    @model_validator(mode="before")
    @classmethod
    def _derive_defaults(cls, data: Any) -> Any:
        if isinstance(data, str):
            data = {"url": data}
        if not isinstance(data, dict):
            return data

        data = dict(data)
        if not data.get("url") and data.get("uri"):
            data["url"] = data.pop("uri")
        else:
            data.pop("uri", None)

        if data.get("url") and data.get("domains") is None:
            hostname = urlsplit(ensure_scheme(data["url"])).hostname
            if hostname:
                data["domains"] = [hostname]
        return data

    @classmethod
    def coerce(cls, options: Any = None, **overrides: Any) -> "CrawlerOptions":
        """
        Build options from a URL string, a mapping or an existing instance.

        Keyword overrides win over values from `options`.
        """
        if options is None:
            data: dict[str, Any] = {}
        elif isinstance(options, cls):
            data = {
                name: getattr(options, name)
                for name in cls.model_fields
                if name in options.model_fields_set
            }
        elif isinstance(options, str):
            data = {"url": options}
        else:
            data = dict(options)

        data.update(overrides)
        return cls.model_validate(data)

    def timeout_seconds(self) -> Optional[float]:
        return self.timeout / 1000 if self.timeout is not None else None

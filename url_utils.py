"""
URL utilities for link discovery and normalization.

The resolution rules here are deliberately simple string rules rather than
RFC 3986 resolution; each one is a named function so it can be tested on
its own.
"""

import re
from typing import Iterator, Optional
from urllib.parse import urlsplit

from bs4 import BeautifulSoup, Tag

HTTP_SCHEMES = ("http", "https")

# A trailing digit after the colon means host:port, not a scheme.
_SCHEME_RE = re.compile(r"^([a-z][a-z0-9+.\-]*):(?!\d)", re.IGNORECASE)


def parse_scheme(location: str) -> Optional[str]:
    """
    Return the lowercased scheme of a location, or None if it has none.

    Args:
        location: An absolute or relative location

    Returns:
        The scheme without its colon, e.g. "https" or "mailto"
    """
    match = _SCHEME_RE.match(location.strip())
    return match.group(1).lower() if match else None


def ensure_scheme(location: str) -> str:
    """Prefix `http://` to a location that has no scheme."""
    if parse_scheme(location) is None:
        return "http://" + location
    return location


def resolve_href(
    href: str, scheme: str, host: str, hostname: Optional[str] = None
) -> Optional[str]:
    """
    Resolve an href against the page it was found on.

    Args:
        href: Raw attribute value
        scheme: Scheme of the fetched page
        host: Host (with any non-default port) of the fetched page
        hostname: Hostname of the fetched page without port (default: `host`)

    Returns:
        An absolute location, the bare hostname for the root shorthand, or None
        when the href uses a non-HTTP scheme
    """
    if href == "/":
        return hostname or host

    href_scheme = parse_scheme(href)
    if href_scheme is None:
        if href.startswith("//"):
            return "http:" + href
        if href.startswith("/"):
            return f"{scheme}://{host}{href}"
        return f"{scheme}://{host}/{href}"

    if href_scheme not in HTTP_SCHEMES:
        return None
    return href


def collapse_double_slash_after_first_dot(location: str) -> str:
    """
    Collapse the first `//` that follows the first `.` of the location.

    Without any `.` the first `//` anywhere is collapsed.
    """
    start = location[: location.find(".") + 1]
    return start + location[len(start):].replace("//", "/", 1)


def strip_trailing_slash(location: str) -> str:
    """Remove exactly one trailing `/`."""
    if location.endswith("/"):
        return location[:-1]
    return location


def normalize_location(location: str) -> str:
    return strip_trailing_slash(collapse_double_slash_after_first_dot(location))


def iter_href_nodes(document: BeautifulSoup) -> Iterator[Tag]:
    """Yield, depth first and in document order, every element with a non-empty href."""
    for node in document.descendants:
        if isinstance(node, Tag) and node.get("href"):
            yield node


def is_parseable(location: str) -> bool:
    try:
        urlsplit(ensure_scheme(location))
    except ValueError:
        return False
    return True


def discover_locations(
    document: BeautifulSoup,
    scheme: str,
    host: str,
    *,
    hostname: Optional[str] = None,
) -> list[str]:
    """
    Extract candidate locations from a parsed document.

    Duplicates are kept; suppressing them is the queue store's job. Hrefs
    that do not parse as URLs are skipped.

    Args:
        document: Parsed HTML document
        scheme: Scheme of the fetched page
        host: Host of the fetched page
        hostname: Hostname of the fetched page, used for the root shorthand

    Returns:
        Locations in document order
    """
    locations = []

    for node in iter_href_nodes(document):
        href = node.get("href")
        if not isinstance(href, str):
            continue
        href = href.strip()
        if not href:
            continue

        resolved = resolve_href(href, scheme, host, hostname)
        if resolved is None:
            continue
        location = normalize_location(resolved)
        if not is_parseable(location):
            continue
        locations.append(location)

    return locations

"""
Tests for link discovery and URL normalization.
"""

from bs4 import BeautifulSoup

from url_utils import (
    collapse_double_slash_after_first_dot,
    discover_locations,
    ensure_scheme,
    parse_scheme,
    resolve_href,
    strip_trailing_slash,
)


def discover(html: str, scheme: str = "http", host: str = "example.com") -> list[str]:
    return discover_locations(BeautifulSoup(html, "html.parser"), scheme, host)


class TestSchemes:
    """Test suite for scheme detection."""

    def test_http_schemes_detected(self):
        assert parse_scheme("http://example.com") == "http"
        assert parse_scheme("HTTPS://example.com") == "https"

    def test_other_schemes_detected(self):
        assert parse_scheme("mailto:someone@example.com") == "mailto"
        assert parse_scheme("javascript:void(0)") == "javascript"

    def test_relative_locations_have_no_scheme(self):
        assert parse_scheme("/about") is None
        assert parse_scheme("//cdn.example.com/x") is None
        assert parse_scheme("page.html") is None

    def test_host_and_port_is_not_a_scheme(self):
        assert parse_scheme("localhost:8080/page") is None

    def test_ensure_scheme_prefixes_http(self):
        assert ensure_scheme("example.com/a") == "http://example.com/a"
        assert ensure_scheme("https://example.com/a") == "https://example.com/a"


class TestResolveHref:
    """Test suite for resolving hrefs against the fetched page."""

    def test_root_shorthand_becomes_bare_host(self):
        assert resolve_href("/", "http", "example.com") == "example.com"

    def test_protocol_relative_gets_http(self):
        assert resolve_href("//cdn.example.com/x", "https", "example.com") == "http://cdn.example.com/x"

    def test_absolute_path_uses_page_scheme_and_host(self):
        assert resolve_href("/about", "https", "example.com") == "https://example.com/about"

    def test_relative_path_is_joined_at_host_root(self):
        assert resolve_href("page.html", "http", "example.com") == "http://example.com/page.html"

    def test_non_http_schemes_are_discarded(self):
        assert resolve_href("mailto:someone@example.com", "http", "example.com") is None
        assert resolve_href("ftp://example.com/file", "http", "example.com") is None

    def test_port_is_kept_in_host(self):
        assert resolve_href("/a", "http", "127.0.0.1:8080") == "http://127.0.0.1:8080/a"

    def test_root_shorthand_drops_the_port(self):
        assert resolve_href("/", "http", "example.com:8080", "example.com") == "example.com"


class TestNormalization:
    """Test suite for the post-resolution normalization rules."""

    def test_double_slash_after_first_dot_is_collapsed(self):
        assert collapse_double_slash_after_first_dot("http://example.com//a") == "http://example.com/a"

    def test_only_first_double_slash_is_collapsed(self):
        assert collapse_double_slash_after_first_dot("http://example.com//a//b") == "http://example.com/a//b"

    def test_scheme_slashes_before_first_dot_survive(self):
        assert collapse_double_slash_after_first_dot("http://example.com/a") == "http://example.com/a"

    def test_without_dot_first_double_slash_is_collapsed(self):
        assert collapse_double_slash_after_first_dot("http://localhost/a") == "http:/localhost/a"

    def test_exactly_one_trailing_slash_is_stripped(self):
        assert strip_trailing_slash("http://example.com/x/") == "http://example.com/x"
        assert strip_trailing_slash("http://example.com/x//") == "http://example.com/x/"
        assert strip_trailing_slash("http://example.com/x") == "http://example.com/x"


class TestDiscoverLocations:
    """Test suite for discovery over parsed documents."""

    def test_root_href_yields_bare_hostname(self):
        assert discover('<a href="/">Home</a>') == ["example.com"]

    def test_protocol_relative_href(self):
        assert discover('<a href="//cdn.example.com/x">CDN</a>') == ["http://cdn.example.com/x"]

    def test_trailing_slash_is_stripped(self):
        assert discover('<a href="/x/">X</a>') == ["http://example.com/x"]

    def test_every_element_with_href_is_visited_in_document_order(self):
        html = """
        <html>
            <head><link rel="stylesheet" href="/style.css"></head>
            <body>
                <div><a href="/first">1</a><p><a href="second">2</a></p></div>
                <map><area href="https://other.example.org/third"></map>
            </body>
        </html>
        """
        assert discover(html) == [
            "http://example.com/style.css",
            "http://example.com/first",
            "http://example.com/second",
            "https://other.example.org/third",
        ]

    def test_duplicates_are_kept(self):
        html = '<a href="/a">1</a><a href="/a">2</a>'
        assert discover(html) == ["http://example.com/a", "http://example.com/a"]

    def test_non_http_and_empty_hrefs_are_skipped(self):
        html = """
        <a href="mailto:someone@example.com">mail</a>
        <a href="javascript:void(0)">js</a>
        <a href="">empty</a>
        <a>no href</a>
        <a href="/kept">kept</a>
        """
        assert discover(html) == ["http://example.com/kept"]

    def test_page_scheme_is_used(self):
        assert discover('<a href="/secure">S</a>', scheme="https") == ["https://example.com/secure"]

    def test_root_href_on_non_default_port_yields_hostname(self):
        document = BeautifulSoup('<a href="/">Home</a><a href="/a">A</a>', "html.parser")
        locations = discover_locations(
            document, "http", "example.com:8080", hostname="example.com"
        )
        assert locations == ["example.com", "http://example.com:8080/a"]

    def test_unparseable_hrefs_are_skipped(self):
        html = '<a href="/a">A</a><a href="http://[v1.x">bad</a><a href="/b">B</a>'
        assert discover(html) == ["http://example.com/a", "http://example.com/b"]

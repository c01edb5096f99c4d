"""
Tests for the Link Discoverer and URL normalization.
"""

import pytest

from app.engines.discovery.engine import LinkDiscoverer, URLNormalizer


def page(*hrefs: str) -> str:
    anchors = "".join(f'<a href="{h}">link</a>' for h in hrefs)
    return f"<html><body>{anchors}</body></html>"


# ─────────────────────────────────────────────
# URL Normalizer Tests
# ─────────────────────────────────────────────

class TestURLNormalizer:

    def test_origin_drops_default_port(self):
        assert URLNormalizer.origin("https://Example.com:443/path") == "https://example.com"
        assert URLNormalizer.origin("http://example.com:80") == "http://example.com"

    def test_origin_keeps_custom_port(self):
        assert URLNormalizer.origin("http://example.com:8080/x") == "http://example.com:8080"

    def test_origin_of_non_http_is_none(self):
        assert URLNormalizer.origin("mailto:someone@example.com") is None
        assert URLNormalizer.origin("/relative") is None

    def test_normalize_removes_fragment(self):
        assert URLNormalizer.normalize("https://example.com/page#section") == "https://example.com/page"

    def test_normalize_empty_path_becomes_slash(self):
        assert URLNormalizer.normalize("https://example.com") == "https://example.com/"

    def test_normalize_keeps_query(self):
        assert URLNormalizer.normalize("https://example.com/p?id=1#x") == "https://example.com/p?id=1"

    def test_same_origin(self):
        assert URLNormalizer.is_same_origin("https://example.com/a", "https://example.com:443/b")
        assert not URLNormalizer.is_same_origin("https://example.com/a", "http://example.com/a")
        assert not URLNormalizer.is_same_origin("https://sub.example.com/", "https://example.com/")


# ─────────────────────────────────────────────
# Discoverer Tests
# ─────────────────────────────────────────────

class TestLinkDiscoverer:

    @pytest.fixture
    def discoverer(self):
        return LinkDiscoverer(max_pages=10)

    def test_first_element_is_base_url(self, discoverer):
        result = discoverer.discover("https://example.com", page("/about"))
        assert result == ["https://example.com", "https://example.com/about"]

    def test_resolves_relative_links_against_origin(self, discoverer):
        result = discoverer.extract_links("https://example.com/blog/post", page("pricing", "/team"))
        assert result == ["https://example.com/pricing", "https://example.com/team"]

    def test_drops_special_schemes_and_fragments(self, discoverer):
        html = page("#top", "mailto:a@example.com", "tel:+123", "javascript:void(0)", "/ok")
        assert discoverer.extract_links("https://example.com", html) == ["https://example.com/ok"]

    def test_drops_other_origins(self, discoverer):
        html = page("https://other.com/x", "http://example.com/insecure", "https://sub.example.com/", "/mine")
        assert discoverer.extract_links("https://example.com", html) == ["https://example.com/mine"]

    @pytest.mark.parametrize("href", [
        "/login", "/logout", "/signup", "/register", "/api/v1/users",
        "/admin/settings", "/_next/static/chunk.js", "/assets/logo", "/static/app", "/cdn/img",
    ])
    def test_drops_excluded_paths(self, discoverer, href):
        assert discoverer.extract_links("https://example.com", page(href)) == []

    @pytest.mark.parametrize("href", ["/report.pdf", "/photo.JPG", "/archive.zip", "/deck.pptx"])
    def test_drops_binary_extensions(self, discoverer, href):
        assert discoverer.extract_links("https://example.com", page(href)) == []

    def test_drops_base_url_and_duplicates(self, discoverer):
        html = page("/", "https://example.com", "/a", "/a#frag", "/a", "/b")
        result = discoverer.extract_links("https://example.com/", html)
        assert result == ["https://example.com/a", "https://example.com/b"]

    def test_caps_at_max_pages(self, discoverer):
        html = page(*(f"/page-{i}" for i in range(30)))
        result = discoverer.discover("https://example.com", html)
        assert len(result) == 10
        assert result[0] == "https://example.com"
        assert result[1:] == [f"https://example.com/page-{i}" for i in range(9)]

    def test_never_returns_other_origin(self, discoverer):
        html = page(*(f"https://evil{i}.com/" for i in range(5)), "/x", "//cdn.other.com/y")
        result = discoverer.discover("https://example.com", html)
        assert all(URLNormalizer.is_same_origin(u, "https://example.com") for u in result)

    def test_no_html_returns_only_base(self, discoverer):
        assert discoverer.discover("https://example.com", "") == ["https://example.com"]

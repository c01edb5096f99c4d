"""
Link Discoverer - bounded same-origin sublink extraction from one page.

The crawl is one level deep: the homepage's anchors are filtered and capped
so an analysis never fetches more than CRAWLER_MAX_PAGES pages.
"""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlsplit, urlunsplit

import structlog
from bs4 import BeautifulSoup

from app.core.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()

DEFAULT_PORTS = {"http": 80, "https": 443}
SKIPPED_HREF_PREFIXES = ("#", "mailto:", "tel:", "javascript:")


# ─────────────────────────────────────────────
# URL Utilities
# ─────────────────────────────────────────────

class URLNormalizer:
    """Origin comparison and fragment-free absolute URLs."""

    @classmethod
    def origin(cls, url: str) -> str | None:
        """scheme://host[:port] with default ports dropped, or None if unparseable."""
        try:
            parsed = urlsplit(url)
            port = parsed.port
        except ValueError:
            return None
        scheme = parsed.scheme.lower()
        host = parsed.hostname
        if scheme not in DEFAULT_PORTS or not host:
            return None
        if ":" in host:
            host = f"[{host}]"
        if port is None or port == DEFAULT_PORTS[scheme]:
            return f"{scheme}://{host}"
        return f"{scheme}://{host}:{port}"

    @classmethod
    def normalize(cls, url: str) -> str | None:
        """Absolute URL without fragment, lowercase scheme/host, '/' for an empty path."""
        origin = cls.origin(url)
        if origin is None:
            return None
        parsed = urlsplit(url)
        return urlunsplit((*urlsplit(origin)[:2], parsed.path or "/", parsed.query, ""))

    @classmethod
    def is_same_origin(cls, url: str, other: str) -> bool:
        origin = cls.origin(url)
        return origin is not None and origin == cls.origin(other)


# ─────────────────────────────────────────────
# Discoverer
# ─────────────────────────────────────────────

class LinkDiscoverer:
    """Extracts crawlable same-origin links from a page in document order."""

    EXCLUDED_PATH_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
        r"/login",
        r"/logout",
        r"/signup",
        r"/register",
        r"/api/",
        r"/admin",
        r"/_next",
        r"/assets",
        r"/static",
        r"/cdn",
    ))
    EXCLUDED_EXTENSIONS = re.compile(
        r"\.(pdf|zip|gz|tar|jpg|jpeg|png|gif|svg|webp|ico|mp4|mp3|avi|mov|exe|dmg|apk"
        r"|doc|docx|xls|xlsx|ppt|pptx)$",
        re.IGNORECASE,
    )

    def __init__(self, max_pages: int = settings.CRAWLER_MAX_PAGES):
        self.max_pages = max_pages

    def extract_links(self, base_url: str, html: str) -> list[str]:
        """All acceptable sublinks of base_url, deduplicated, in first-appearance order."""
        origin = URLNormalizer.origin(base_url)
        if origin is None or not html:
            return []
        normalized_base = URLNormalizer.normalize(base_url)

        soup = BeautifulSoup(html, "lxml")
        seen: set[str] = set()
        links: list[str] = []

        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if not href or href.lower().startswith(SKIPPED_HREF_PREFIXES):
                continue

            absolute = URLNormalizer.normalize(urljoin(origin, href))
            if absolute is None or URLNormalizer.origin(absolute) != origin:
                continue

            path = urlsplit(absolute).path
            if any(p.search(path) for p in self.EXCLUDED_PATH_PATTERNS):
                continue
            if self.EXCLUDED_EXTENSIONS.search(path):
                continue

            if absolute == normalized_base or absolute in seen:
                continue
            seen.add(absolute)
            links.append(absolute)

        return links

    def discover(self, base_url: str, html: str) -> list[str]:
        """base_url followed by at most max_pages - 1 sublinks."""
        links = self.extract_links(base_url, html)
        selected = [base_url, *links[: self.max_pages - 1]]
        logger.info("Sublinks discovered", base_url=base_url, found=len(links), selected=len(selected) - 1)
        return selected

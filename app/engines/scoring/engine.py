"""
GEO Content Scorer - ten-factor rubric for AI-answer readiness of one page.

Scoring Model:
- Each factor is scored independently against fixed tiers (see rubric.py)
- Factor max scores sum to 100; the page score is the plain factor sum
- A factor that fails internally drops to zero with an explanatory detail,
  the other nine are unaffected
- Pure: identical (html, url) input always yields an identical breakdown
"""

from __future__ import annotations

import functools
import json
import re
from functools import cached_property
from typing import Any, Callable

import structlog
from bs4 import BeautifulSoup, Tag
from bs4.element import PreformattedString

from app.engines.base import FactorKey, GeoFactor, GeoScoreResult, round_half_up
from app.engines.discovery.engine import URLNormalizer
from app.engines.scoring.rubric import LABELS, MAX_SCORES

logger = structlog.get_logger(__name__)

JsonObject = dict[str, Any]

INVISIBLE_TAGS = frozenset({"script", "style", "noscript", "template"})
HIGH_VALUE_TYPES = frozenset({"Article", "NewsArticle", "FAQPage", "HowTo", "Product"})
MID_VALUE_TYPES = frozenset({"WebPage", "Organization", "WebSite"})
SEMANTIC_TAGS = ("article", "main", "section", "nav", "aside", "header", "footer")
AI_BOT_META_NAMES = ("GPTBot", "ChatGPT-User", "Claude-Web", "PerplexityBot")
BOT_BLOCKING_VALUES = ("noindex", "none", "noai")

DEFINITIONAL_RE = re.compile(r"\b(is|are|means|refers to|defined as)\b", re.IGNORECASE)
FAQ_TEXT_RE = re.compile(r"frequently asked questions|\bfaqs?\b", re.IGNORECASE)
LD_JSON_TYPE_RE = re.compile(r"^\s*application/ld\+json\s*$", re.IGNORECASE)


# ─────────────────────────────────────────────
# Document access
# ─────────────────────────────────────────────

class PageDocument:
    """
    Parsed page with the three queries the factors need:
    select_all(selector), text(element), attr(element, name).
    Derived views (JSON-LD, visible text) are computed once on first use.
    """

    def __init__(self, html: str, url: str):
        self.url = url
        self.soup = BeautifulSoup(html or "", "lxml")

    def select_all(self, selector: str) -> list[Tag]:
        return self.soup.select(selector)

    def exists(self, selector: str) -> bool:
        return self.soup.select_one(selector) is not None

    @staticmethod
    def text(element: Tag) -> str:
        return element.get_text(" ", strip=True)

    @staticmethod
    def attr(element: Tag, name: str) -> str | None:
        value = element.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return value

    @cached_property
    def json_ld(self) -> list[JsonObject]:
        """Top-level JSON-LD objects; arrays are flattened, malformed blocks skipped."""
        items: list[JsonObject] = []
        for script in self.soup.find_all("script", attrs={"type": LD_JSON_TYPE_RE}):
            raw = script.string if script.string is not None else script.get_text()
            if not raw or not raw.strip():
                continue
            try:
                parsed = json.loads(raw)
            except ValueError:
                logger.debug("Malformed JSON-LD skipped", url=self.url)
                continue
            candidates = parsed if isinstance(parsed, list) else [parsed]
            items.extend(c for c in candidates if isinstance(c, dict))
        return items

    @cached_property
    def graph_nodes(self) -> list[JsonObject]:
        nodes: list[JsonObject] = []
        for item in self.json_ld:
            graph = item.get("@graph")
            if isinstance(graph, list):
                nodes.extend(g for g in graph if isinstance(g, dict))
        return nodes

    @cached_property
    def schema_types(self) -> list[str]:
        """Declared @type values of top-level items and @graph nodes, in document order."""
        types: list[str] = []
        for item in self.json_ld:
            types.extend(_types_of(item))
            graph = item.get("@graph")
            if isinstance(graph, list):
                for node in graph:
                    if isinstance(node, dict):
                        types.extend(_types_of(node))
        return types

    @cached_property
    def body_text(self) -> str:
        """Visible body text with whitespace collapsed; scripts, styles and comments excluded."""
        root = self.soup.body or self.soup
        parts = []
        for node in root.find_all(string=True):
            if isinstance(node, PreformattedString):
                continue
            if any(p.name in INVISIBLE_TAGS for p in node.parents):
                continue
            parts.append(str(node))
        return " ".join(" ".join(parts).split())

    @cached_property
    def word_count(self) -> int:
        return len(self.body_text.split())


def _types_of(node: JsonObject) -> list[str]:
    declared = node.get("@type")
    if isinstance(declared, str):
        return [declared]
    if isinstance(declared, list):
        return [t for t in declared if isinstance(t, str)]
    return []


# ─────────────────────────────────────────────
# Factor registry
# ─────────────────────────────────────────────

FactorFn = Callable[[PageDocument], GeoFactor]
FACTORS: dict[FactorKey, FactorFn] = {}


def factor(key: FactorKey, error_detail: str) -> Callable[[Callable[[PageDocument], tuple[int, str]]], FactorFn]:
    """Register a factor scorer returning (score, details); internal errors degrade to zero."""

    def decorator(fn: Callable[[PageDocument], tuple[int, str]]) -> FactorFn:
        @functools.wraps(fn)
        def wrapper(doc: PageDocument) -> GeoFactor:
            try:
                score, details = fn(doc)
                score = max(0, min(MAX_SCORES[key], int(score)))
            except Exception as e:
                logger.warning("Factor scoring failed", factor=key.value, url=doc.url, error=str(e))
                score, details = 0, error_detail
            return GeoFactor(score=score, max_score=MAX_SCORES[key], label=LABELS[key], details=details)

        FACTORS[key] = wrapper
        return wrapper

    return decorator


# ─────────────────────────────────────────────
# Factors
# ─────────────────────────────────────────────

@factor(FactorKey.SCHEMA_MARKUP, "Error parsing structured data")
def score_schema_markup(doc: PageDocument) -> tuple[int, str]:
    types = doc.schema_types
    listed = ", ".join(types)

    if HIGH_VALUE_TYPES.intersection(types):
        return 20, f"Found schema types: {listed}"
    if MID_VALUE_TYPES.intersection(types):
        return 15, f"Found schema types: {listed}"
    if types or doc.json_ld:
        return 10, f"Found JSON-LD with types: {listed or 'none declared'}"
    if doc.exists("[itemtype], [itemscope]"):
        return 5, "Found microdata attributes but no JSON-LD"
    return 0, "No structured data found"


@factor(FactorKey.CONTENT_STRUCTURE, "Error analyzing content structure")
def score_content_structure(doc: PageDocument) -> tuple[int, str]:
    found = [tag for tag in SEMANTIC_TAGS if doc.exists(tag)]
    has_h1 = doc.exists("h1")
    has_h2 = doc.exists("h2")
    paragraphs = len(doc.select_all("p"))

    score = min(6, round_half_up(len(found) / len(SEMANTIC_TAGS) * 6))
    details = [f"Semantic tags: {', '.join(found) if found else 'none'}"]

    if has_h1 and has_h2:
        score += 5
        details.append("Good heading hierarchy (H1 + H2)")
    elif has_h1:
        score += 3
        details.append("H1 present but no H2s")
    else:
        details.append("Missing H1")

    if paragraphs > 3:
        score += 4
        details.append(f"{paragraphs} paragraphs")
    elif paragraphs > 0:
        score += 2
        details.append(f"Only {paragraphs} paragraph(s)")
    else:
        details.append("No paragraphs found")

    return min(15, score), "; ".join(details)


@factor(FactorKey.META_TAGS, "Error checking meta tags")
def score_meta_tags(doc: PageDocument) -> tuple[int, str]:
    checks = {
        "title": any(doc.text(t) for t in doc.select_all("title")),
        "description": doc.exists('meta[name="description" i]'),
        "og:title": doc.exists('meta[property="og:title"]'),
        "og:description": doc.exists('meta[property="og:description"]'),
        "canonical": doc.exists('link[rel~="canonical" i], meta[name="canonical" i]'),
    }
    found = [name for name, ok in checks.items() if ok]
    missing = [name for name, ok in checks.items() if not ok]

    details = "; ".join(filter(None, [
        f"Found: {', '.join(found)}" if found else "",
        f"Missing: {', '.join(missing)}" if missing else "",
    ]))
    return 2 * len(found), details


@factor(FactorKey.FAQ_CONTENT, "Error checking FAQ content")
def score_faq_content(doc: PageDocument) -> tuple[int, str]:
    if "FAQPage" in doc.schema_types:
        return 10, "FAQPage schema found"

    signals: list[str] = []
    if doc.exists("dl dt"):
        signals.append("Definition list (dl/dt/dd) found")
    if doc.exists('[class*="question" i], [class*="answer" i], [class*="faq" i], [class*="accordion" i]'):
        signals.append("Q&A class patterns found")

    question_headings = sum(1 for h in doc.select_all("h2, h3, h4") if doc.text(h).endswith("?"))
    if question_headings >= 2:
        signals.append(f"{question_headings} question-style headings found")
    if FAQ_TEXT_RE.search(doc.body_text):
        signals.append("FAQ section text found")

    if signals:
        return 5, "; ".join(signals)
    return 0, "No FAQ patterns found"


@factor(FactorKey.AUTHOR_EEAT, "Error checking author E-E-A-T")
def score_author_eeat(doc: PageDocument) -> tuple[int, str]:
    signals: list[str] = []

    if doc.exists('meta[name="author" i]'):
        signals.append('meta[name="author"]')
    if doc.exists('meta[property="article:author"]'):
        signals.append("article:author meta")
    if doc.exists('[class*="author" i], [class*="byline" i], [class*="writer" i], [id*="author" i], [id*="byline" i]'):
        signals.append("Author/byline element")
    if doc.exists('a[rel~="author" i], link[rel~="author" i]'):
        signals.append('rel="author" link')

    for item in doc.json_ld:
        if item.get("author"):
            signals.append("JSON-LD author property")
        if "Person" in _types_of(item):
            signals.append("Person schema")
    for node in doc.graph_nodes:
        if "Person" in _types_of(node):
            signals.append("Person schema in @graph")
        if node.get("author"):
            signals.append("JSON-LD author in @graph")

    unique = list(dict.fromkeys(signals))
    if len(unique) >= 2:
        return 10, f"Multiple E-E-A-T signals: {', '.join(unique)}"
    if unique:
        return 5, f"Basic author info: {unique[0]}"
    return 0, "No author information found"


@factor(FactorKey.CONTENT_FRESHNESS, "Error checking content freshness")
def score_content_freshness(doc: PageDocument) -> tuple[int, str]:
    details: list[str] = []
    has_modified = has_published = False

    for node in [*doc.json_ld, *doc.graph_nodes]:
        if node.get("dateModified"):
            has_modified = True
            details.append(f"dateModified: {node['dateModified']}")
        if node.get("datePublished"):
            has_published = True
            details.append(f"datePublished: {node['datePublished']}")

    for meta in doc.select_all('meta[name="date" i], meta[property="article:published_time"]'):
        if doc.attr(meta, "content"):
            has_published = True
            details.append(f"Meta date: {doc.attr(meta, 'content')}")
            break
    for meta in doc.select_all('meta[property="article:modified_time"], meta[name="last-modified" i]'):
        if doc.attr(meta, "content"):
            has_modified = True
            details.append(f"Modified meta: {doc.attr(meta, 'content')}")
            break

    has_time = doc.exists("time[datetime]")
    if has_time:
        details.append("<time> element found")

    if has_modified:
        return 5, "; ".join(details)
    if has_published:
        return 3, "; ".join(details)
    if has_time:
        return 1, "; ".join(details)
    return 0, "No date information found"


def count_internal_links(doc: PageDocument) -> int:
    """Anchors pointing at the page's own origin; relative hrefs count as internal."""
    page_origin = URLNormalizer.origin(doc.url)
    count = 0
    for anchor in doc.select_all("a[href]"):
        href = (doc.attr(anchor, "href") or "").strip()
        if not href:
            continue
        lowered = href.lower()
        if not lowered.startswith("http"):
            if not lowered.startswith(("mailto:", "tel:", "javascript:")):
                count += 1
            continue
        if page_origin is not None and URLNormalizer.origin(href) == page_origin:
            count += 1
    return count


@factor(FactorKey.INTERNAL_LINKING, "Error checking internal linking")
def score_internal_linking(doc: PageDocument) -> tuple[int, str]:
    internal = count_internal_links(doc)
    has_breadcrumbs = (
        doc.exists('[aria-label*="breadcrumb" i], .breadcrumb, [class*="breadcrumb" i]')
        or "BreadcrumbList" in doc.schema_types
    )
    details = f"{internal} internal links, {'breadcrumbs found' if has_breadcrumbs else 'no breadcrumbs'}"

    if internal > 10 and has_breadcrumbs:
        return 5, details
    if internal > 5 or has_breadcrumbs:
        return 3, details
    if internal > 0:
        return 1, details
    return 0, "No internal links found"


@factor(FactorKey.IMAGE_ALT_TEXT, "Error checking image alt text")
def score_image_alt_text(doc: PageDocument) -> tuple[int, str]:
    images = doc.select_all("img")
    if not images:
        return 5, "No images on page (not penalized)"

    with_alt = sum(1 for img in images if (doc.attr(img, "alt") or "").strip())
    return round_half_up(5 * with_alt / len(images)), f"{with_alt}/{len(images)} images have alt text"


@factor(FactorKey.AI_CRAWLABILITY, "Error checking AI crawlability")
def score_ai_crawlability(doc: PageDocument) -> tuple[int, str]:
    blocking: list[str] = []

    robots = " ".join(
        (doc.attr(m, "content") or "").lower() for m in doc.select_all('meta[name="robots" i]')
    )
    if "noindex" in robots:
        blocking.append("noindex found")
    if "noai" in robots:
        blocking.append("noai directive found")
    if "noimageai" in robots:
        blocking.append("noimageai directive found")

    for bot in AI_BOT_META_NAMES:
        content = " ".join(
            (doc.attr(m, "content") or "").lower() for m in doc.select_all(f'meta[name="{bot}" i]')
        )
        if any(value in content for value in BOT_BLOCKING_VALUES):
            blocking.append(f"{bot} blocked")

    words = doc.word_count
    if blocking:
        return 0, "; ".join(blocking)
    if words <= 200:
        return 5, f"Low word count ({words} words)"
    return 10, f"No blocking signals, {words} words of content"


@factor(FactorKey.ANSWER_FORWARD_WRITING, "Error checking answer-forward writing")
def score_answer_forward_writing(doc: PageDocument) -> tuple[int, str]:
    score = 0
    signals: list[str] = []

    first_paragraph = doc.soup.find("p")
    if first_paragraph is not None and len(first_paragraph.get_text().strip()) > 80:
        score += 3
        signals.append("Substantive opening paragraph")

    if doc.exists("dl, aside, blockquote"):
        score += 2
        signals.append("Definition lists or callout boxes")

    if len(doc.select_all("ol li, ul li")) >= 3:
        score += 2
        signals.append("Structured lists found")

    headings = len(doc.select_all("h1, h2, h3, h4, h5, h6"))
    if headings > 0 and doc.word_count / headings > 100:
        score += 1
        signals.append("Dense informational content")

    definitional = len(DEFINITIONAL_RE.findall(doc.body_text))
    if definitional >= 5:
        score += 2
        signals.append(f"{definitional} definitional phrases")
    elif definitional >= 2:
        score += 1
        signals.append(f"{definitional} definitional phrases")

    return min(10, score), "; ".join(signals) if signals else "No answer-forward signals found"


# ─────────────────────────────────────────────
# Scorer
# ─────────────────────────────────────────────

class GeoScorer:
    """Scores one page's HTML against every registered factor."""

    def score(self, html: str, page_url: str) -> GeoScoreResult:
        doc = PageDocument(html, page_url)
        breakdown = {key: FACTORS[key](doc) for key in FactorKey}
        total = sum(f.score for f in breakdown.values())
        logger.debug("Page scored", url=page_url, score=total)
        return GeoScoreResult(total_score=total, breakdown=breakdown)


def score_page_content(html: str, page_url: str) -> GeoScoreResult:
    return GeoScorer().score(html, page_url)

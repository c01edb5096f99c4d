"""
Content Preview - what a stored page looks like to an AI crawler.

Read-only summary of a page's raw HTML: meta tags, structured data,
heading outline, a short text excerpt and link/image counts.
"""

from __future__ import annotations

import json

from pydantic import BaseModel

from app.engines.scoring.engine import PageDocument, count_internal_links

MAX_HEADINGS = 20
MAX_HEADING_CHARS = 120
EXCERPT_WORDS = 120


class SchemaEntry(BaseModel):
    type: str
    json_text: str


class HeadingEntry(BaseModel):
    level: int
    text: str


class ContentPreview(BaseModel):
    page_url: str
    title: str | None = None
    meta_description: str | None = None
    og_title: str | None = None
    og_description: str | None = None
    canonical_url: str | None = None
    robots_meta: str | None = None
    schemas: list[SchemaEntry] = []
    headings: list[HeadingEntry] = []
    text_excerpt: str = ""
    word_count: int = 0
    image_count: int = 0
    images_with_alt: int = 0
    internal_link_count: int = 0


def _first_attr(doc: PageDocument, selector: str, name: str) -> str | None:
    for element in doc.select_all(selector):
        value = (doc.attr(element, name) or "").strip()
        return value or None
    return None


def _schema_entries(doc: PageDocument) -> list[SchemaEntry]:
    entries = []
    for item in doc.json_ld:
        types: list[str] = []
        declared = item.get("@type")
        if isinstance(declared, str):
            types.append(declared)
        elif isinstance(declared, list):
            types.extend(str(t) for t in declared)
        graph = item.get("@graph")
        if isinstance(graph, list):
            types.extend(g["@type"] for g in graph if isinstance(g, dict) and isinstance(g.get("@type"), str))
        entries.append(SchemaEntry(
            type=", ".join(types) or "Unknown",
            json_text=json.dumps(item, indent=2, ensure_ascii=False),
        ))
    return entries


def _headings(doc: PageDocument) -> list[HeadingEntry]:
    headings = []
    for element in doc.select_all("h1, h2, h3, h4"):
        if len(headings) >= MAX_HEADINGS:
            break
        text = doc.text(element)[:MAX_HEADING_CHARS]
        if text:
            headings.append(HeadingEntry(level=int(element.name[1]), text=text))
    return headings


def extract_content_preview(html: str, page_url: str) -> ContentPreview:
    doc = PageDocument(html, page_url)

    titles = doc.select_all("title")
    title = doc.text(titles[0]) if titles else ""

    words = doc.body_text.split()
    images = doc.select_all("img")

    return ContentPreview(
        page_url=page_url,
        title=title or None,
        meta_description=_first_attr(doc, 'meta[name="description" i]', "content"),
        og_title=_first_attr(doc, 'meta[property="og:title"]', "content"),
        og_description=_first_attr(doc, 'meta[property="og:description"]', "content"),
        canonical_url=_first_attr(doc, 'link[rel~="canonical" i]', "href"),
        robots_meta=_first_attr(doc, 'meta[name="robots" i]', "content"),
        schemas=_schema_entries(doc),
        headings=_headings(doc),
        text_excerpt=" ".join(words[:EXCERPT_WORDS]),
        word_count=len(words),
        image_count=len(images),
        images_with_alt=sum(1 for img in images if (doc.attr(img, "alt") or "").strip()),
        internal_link_count=count_internal_links(doc),
    )

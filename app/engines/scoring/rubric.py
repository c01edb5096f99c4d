"""
Scoring rubric - the fixed ten-factor GEO model as data.

The scorer takes labels and max scores from here; the API serves the
table so clients can explain a breakdown and show the next tier to reach.
"""

from __future__ import annotations

from pydantic import BaseModel

from app.engines.base import FactorKey


class RubricTier(BaseModel):
    pts: int
    description: str


class FactorRubric(BaseModel):
    key: FactorKey
    label: str
    max_score: int
    tiers: list[RubricTier]
    tip: str


SCORING_RUBRIC: list[FactorRubric] = [
    FactorRubric(
        key=FactorKey.SCHEMA_MARKUP,
        label="Schema Markup",
        max_score=20,
        tiers=[
            RubricTier(pts=20, description="High-value schema present: Article, NewsArticle, FAQPage, HowTo, or Product"),
            RubricTier(pts=15, description="Mid-value schema present: WebPage, Organization, or WebSite"),
            RubricTier(pts=10, description="Any valid JSON-LD found on the page"),
            RubricTier(pts=5, description="Microdata attributes (itemtype / itemscope) found, no JSON-LD"),
            RubricTier(pts=0, description="No structured data detected"),
        ],
        tip="Add a FAQPage schema to any page with a Q&A section. It is the highest-signal format for AI search.",
    ),
    FactorRubric(
        key=FactorKey.CONTENT_STRUCTURE,
        label="Content Structure",
        max_score=15,
        tiers=[
            RubricTier(pts=15, description="Full semantic HTML, proper H1+H2 hierarchy, 4+ paragraphs"),
            RubricTier(pts=10, description="Some semantic tags and headings present"),
            RubricTier(pts=5, description="Basic heading or paragraph structure found"),
            RubricTier(pts=0, description="No semantic structure detected"),
        ],
        tip="Use a single <h1>, structure subsections with <h2>, and wrap main content in <article> or <main>.",
    ),
    FactorRubric(
        key=FactorKey.META_TAGS,
        label="Meta Tags",
        max_score=10,
        tiers=[
            RubricTier(pts=10, description="All 5 tags present: title, description, og:title, og:description, canonical"),
            RubricTier(pts=8, description="4 of 5 tags present"),
            RubricTier(pts=6, description="3 of 5 tags present"),
            RubricTier(pts=4, description="2 of 5 tags present"),
            RubricTier(pts=2, description="1 of 5 tags present"),
            RubricTier(pts=0, description="No meta tags found"),
        ],
        tip="Every page needs a unique, descriptive title and meta description plus Open Graph and canonical tags.",
    ),
    FactorRubric(
        key=FactorKey.FAQ_CONTENT,
        label="FAQ / Q&A Content",
        max_score=10,
        tiers=[
            RubricTier(pts=10, description="FAQPage JSON-LD schema found"),
            RubricTier(pts=5, description="Definition lists, Q&A class patterns, question headings, or FAQ text detected"),
            RubricTier(pts=0, description="No FAQ or Q&A patterns found"),
        ],
        tip="Add a FAQ section with FAQPage schema. Even 3-5 questions can get a page cited.",
    ),
    FactorRubric(
        key=FactorKey.AUTHOR_EEAT,
        label="Author / E-E-A-T",
        max_score=10,
        tiers=[
            RubricTier(pts=10, description="Multiple E-E-A-T signals, e.g. author meta plus JSON-LD Person"),
            RubricTier(pts=5, description="Basic author information: byline, rel=author link, or meta author"),
            RubricTier(pts=0, description="No author information found"),
        ],
        tip="Add a JSON-LD author property with a Person schema and link to an author bio page.",
    ),
    FactorRubric(
        key=FactorKey.CONTENT_FRESHNESS,
        label="Content Freshness",
        max_score=5,
        tiers=[
            RubricTier(pts=5, description="dateModified found in JSON-LD or meta tags"),
            RubricTier(pts=3, description="datePublished found in JSON-LD or meta tags"),
            RubricTier(pts=1, description="A <time datetime> element found"),
            RubricTier(pts=0, description="No date information detected"),
        ],
        tip="Include both datePublished and dateModified in your Article JSON-LD.",
    ),
    FactorRubric(
        key=FactorKey.INTERNAL_LINKING,
        label="Internal Linking",
        max_score=5,
        tiers=[
            RubricTier(pts=5, description="More than 10 internal links and breadcrumb navigation"),
            RubricTier(pts=3, description="More than 5 internal links or breadcrumb navigation"),
            RubricTier(pts=1, description="At least one internal link"),
            RubricTier(pts=0, description="No internal links detected"),
        ],
        tip="Add BreadcrumbList schema and a visible breadcrumb nav on content pages.",
    ),
    FactorRubric(
        key=FactorKey.IMAGE_ALT_TEXT,
        label="Image Alt Text",
        max_score=5,
        tiers=[
            RubricTier(pts=5, description="All images have alt text, or no images on the page"),
            RubricTier(pts=3, description="Most images (60-99%) have alt text"),
            RubricTier(pts=1, description="Some images (1-59%) have alt text"),
            RubricTier(pts=0, description="No images have alt text"),
        ],
        tip="Write alt text that says what is in the image and why it matters.",
    ),
    FactorRubric(
        key=FactorKey.AI_CRAWLABILITY,
        label="AI Crawlability",
        max_score=10,
        tiers=[
            RubricTier(pts=10, description="No blocking signals and 200+ words of content"),
            RubricTier(pts=5, description="Minor issues only, e.g. low word count without blocking"),
            RubricTier(pts=0, description="noindex, noai, noimageai, or AI bot blocking meta tags found"),
        ],
        tip='Check meta[name="robots"]. Do not add "noai" if you want AI visibility.',
    ),
    FactorRubric(
        key=FactorKey.ANSWER_FORWARD_WRITING,
        label="Answer-Forward Writing",
        max_score=10,
        tiers=[
            RubricTier(pts=10, description="Substantive opening, callouts, lists, and definitional language all present"),
            RubricTier(pts=7, description="Multiple answer-forward signals detected"),
            RubricTier(pts=4, description="Some answer-forward signals detected"),
            RubricTier(pts=0, description="No answer-forward writing signals found"),
        ],
        tip='Open with a direct 1-2 sentence answer. Use lists and sentences like "X is Y that does Z."',
    ),
]

RUBRIC_BY_KEY: dict[FactorKey, FactorRubric] = {r.key: r for r in SCORING_RUBRIC}
MAX_SCORES: dict[FactorKey, int] = {r.key: r.max_score for r in SCORING_RUBRIC}
LABELS: dict[FactorKey, str] = {r.key: r.label for r in SCORING_RUBRIC}

assert sum(MAX_SCORES.values()) == 100, "rubric max scores must sum to 100"
assert set(MAX_SCORES) == set(FactorKey), "rubric must cover every factor"


def get_rubric(key: FactorKey | str) -> FactorRubric | None:
    try:
        return RUBRIC_BY_KEY.get(FactorKey(key))
    except ValueError:
        return None


def achieved_tier(rubric: FactorRubric, score: int) -> RubricTier:
    """Highest tier the score reaches; the lowest tier when it reaches none."""
    ordered = sorted(rubric.tiers, key=lambda t: t.pts, reverse=True)
    return next((t for t in ordered if score >= t.pts), ordered[-1])


def next_tier(rubric: FactorRubric, score: int) -> RubricTier | None:
    """Lowest tier strictly above the score, or None at the top."""
    ordered = sorted(rubric.tiers, key=lambda t: t.pts)
    return next((t for t in ordered if t.pts > score), None)

"""
Tests for the content preview extractor.
"""

import json

from app.engines.preview.engine import extract_content_preview

PAGE = """
<html>
<head>
  <title> GEO Guide </title>
  <meta name="description" content=" What GEO is ">
  <meta property="og:title" content="GEO Guide">
  <link rel="canonical" href="https://example.com/guide">
  <meta name="robots" content="index, follow">
  <script type="application/ld+json">{"@type": "Article", "headline": "GEO"}</script>
  <script type="application/ld+json">{"@graph": [{"@type": "WebSite"}, {"@type": "Organization"}]}</script>
  <script type="application/ld+json">{broken</script>
</head>
<body>
  <h1>GEO Guide</h1>
  <h2>   </h2>
  <h3>Details</h3>
  <h5>Ignored level</h5>
  <p>Generative engine optimization explained.</p>
  <script>var hidden = "not words";</script>
  <noscript>enable javascript</noscript>
  <img src="a.png" alt="Diagram"><img src="b.png">
  <a href="/about">About</a><a href="https://example.com/x">X</a><a href="https://other.com">O</a>
</body>
</html>
"""


class TestContentPreview:

    def test_meta_fields(self):
        preview = extract_content_preview(PAGE, "https://example.com/guide")

        assert preview.page_url == "https://example.com/guide"
        assert preview.title == "GEO Guide"
        assert preview.meta_description == "What GEO is"
        assert preview.og_title == "GEO Guide"
        assert preview.og_description is None
        assert preview.canonical_url == "https://example.com/guide"
        assert preview.robots_meta == "index, follow"

    def test_schemas(self):
        preview = extract_content_preview(PAGE, "https://example.com/guide")

        assert [s.type for s in preview.schemas] == ["Article", "WebSite, Organization"]
        assert json.loads(preview.schemas[0].json_text) == {"@type": "Article", "headline": "GEO"}

    def test_headings_skip_empty_and_deep_levels(self):
        preview = extract_content_preview(PAGE, "https://example.com/guide")
        assert [(h.level, h.text) for h in preview.headings] == [(1, "GEO Guide"), (3, "Details")]

    def test_headings_capped_and_truncated(self):
        html = "<body>" + "".join(f"<h2>{'x' * 200}</h2>" for _ in range(25)) + "</body>"
        preview = extract_content_preview(html, "https://example.com/")

        assert len(preview.headings) == 20
        assert all(len(h.text) == 120 for h in preview.headings)

    def test_text_excludes_scripts(self):
        preview = extract_content_preview(PAGE, "https://example.com/guide")

        assert "hidden" not in preview.text_excerpt
        assert "javascript" not in preview.text_excerpt
        assert preview.text_excerpt.startswith("GEO Guide Details Ignored level Generative")

    def test_excerpt_limited_to_120_words(self):
        html = "<body><p>" + "word " * 300 + "</p></body>"
        preview = extract_content_preview(html, "https://example.com/")

        assert preview.word_count == 300
        assert len(preview.text_excerpt.split()) == 120

    def test_counts(self):
        preview = extract_content_preview(PAGE, "https://example.com/guide")

        assert preview.image_count == 2
        assert preview.images_with_alt == 1
        assert preview.internal_link_count == 2

    def test_empty_html(self):
        preview = extract_content_preview("", "https://example.com/")

        assert preview.title is None
        assert preview.schemas == []
        assert preview.headings == []
        assert preview.word_count == 0

"""
Tests for the HTTP layer.
Datastore, rate limiter and DNS are overridden; Celery dispatch is patched.
"""

import uuid
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from app.api.v1.dependencies import get_datastore, get_rate_limiter, get_url_validator
from app.core.rate_limit import InMemoryRateLimiter
from app.engines.base import AnalysisStatus, ScraperType
from app.engines.validator.engine import URLSafetyValidator
from app.main import app
from app.services.datastore import NewPageScore
from tests.conftest import InMemoryDatastore, make_resolver


@pytest.fixture
def store():
    return InMemoryDatastore()


@pytest.fixture
def limiter():
    return InMemoryRateLimiter(max_requests=5, window_seconds=60)


@pytest.fixture
def client(store, limiter):
    app.dependency_overrides[get_datastore] = lambda: store
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_url_validator] = lambda: URLSafetyValidator(
        resolver=make_resolver({"intranet.example": ["10.0.0.7"]})
    )
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def dispatch():
    with patch("app.api.v1.routes.analyses.run_analysis_task") as task:
        yield task.apply_async


# ─────────────────────────────────────────────
# Submission
# ─────────────────────────────────────────────

class TestCreateAnalysis:

    def test_accepts_and_dispatches(self, client, store, dispatch):
        response = client.post("/api/v1/analyses", json={"url": "example.com"})

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "pending"

        analysis_id = uuid.UUID(body["id"])
        record = store.analyses[analysis_id]
        assert record.url == "https://example.com"
        assert record.domain == "example.com"
        assert record.scraper_type == ScraperType.HEADLESS

        dispatch.assert_called_once_with(
            args=[str(analysis_id), "https://example.com", "headless", None],
            task_id=str(analysis_id),
        )

    def test_api_scraper_passes_credential(self, client, dispatch):
        response = client.post(
            "/api/v1/analyses",
            json={"url": "https://example.com/docs", "scraper_type": "api", "credential": "fc-123"},
        )

        assert response.status_code == 202
        assert dispatch.call_args.kwargs["args"][2:] == ["api", "fc-123"]

    @pytest.mark.parametrize("payload", [{}, {"url": ""}, {"url": "   "}])
    def test_missing_url(self, client, store, dispatch, payload):
        response = client.post("/api/v1/analyses", json=payload)

        assert response.status_code == 400
        assert response.json()["detail"] == "URL is required"
        assert store.analyses == {}
        dispatch.assert_not_called()

    def test_api_scraper_requires_credential(self, client, store, dispatch):
        response = client.post("/api/v1/analyses", json={"url": "example.com", "scraper_type": "api"})

        assert response.status_code == 400
        assert store.analyses == {}

    @pytest.mark.parametrize("url, detail", [
        ("http://127.0.0.1/", "This URL targets a restricted IP address"),
        ("http://169.254.169.254/latest/meta-data", "This URL targets a restricted IP address"),
        ("http://localhost:3000", "This URL targets a restricted host"),
        ("https://intranet.example/", "This URL resolves to a restricted IP address"),
        ("ftp://example.com/", "Only HTTP and HTTPS URLs are allowed"),
    ])
    def test_ssrf_rejected_before_job_created(self, client, store, dispatch, url, detail):
        response = client.post("/api/v1/analyses", json={"url": url})

        assert response.status_code == 400
        assert response.json()["detail"] == detail
        assert store.analyses == {}
        dispatch.assert_not_called()

    def test_rate_limited(self, client, dispatch):
        for _ in range(5):
            assert client.post("/api/v1/analyses", json={"url": "example.com"}).status_code == 202

        response = client.post("/api/v1/analyses", json={"url": "example.com"})

        assert response.status_code == 429
        assert int(response.headers["retry-after"]) >= 1
        assert dispatch.call_count == 5

    def test_rate_limit_checked_before_validation(self, client, dispatch):
        for _ in range(5):
            client.post("/api/v1/analyses", json={"url": ""})

        assert client.post("/api/v1/analyses", json={"url": "example.com"}).status_code == 429


# ─────────────────────────────────────────────
# Retrieval
# ─────────────────────────────────────────────

class TestGetAnalysis:

    @staticmethod
    async def seed(store: InMemoryDatastore):
        analysis = await store.create_analysis("https://example.com", "example.com", ScraperType.HEADLESS)
        await store.insert_page_scores([
            NewPageScore(analysis_id=analysis.id, url="https://example.com", score=50,
                         scores_breakdown={}, raw_content="<html><title>Home</title><body><a href='/a'>a</a></body></html>"),
            NewPageScore(analysis_id=analysis.id, url="https://example.com/a", score=30,
                         scores_breakdown={}, raw_content="<p>a</p>"),
        ])
        return analysis

    @pytest.mark.asyncio
    async def test_returns_analysis_with_pages(self, client, store):
        analysis = await self.seed(store)

        body = client.get(f"/api/v1/analyses/{analysis.id}").json()

        assert body["status"] == "pending"
        assert [p["url"] for p in body["page_scores"]] == ["https://example.com", "https://example.com/a"]
        assert all(p["raw_content"] is None for p in body["page_scores"])

    @pytest.mark.asyncio
    async def test_include_content(self, client, store):
        analysis = await self.seed(store)

        body = client.get(f"/api/v1/analyses/{analysis.id}", params={"include_content": "true"}).json()

        assert body["page_scores"][1]["raw_content"] == "<p>a</p>"

    def test_unknown_id(self, client):
        assert client.get(f"/api/v1/analyses/{uuid.uuid4()}").status_code == 404

    @pytest.mark.asyncio
    async def test_page_preview(self, client, store):
        analysis = await self.seed(store)
        page = (await store.list_page_scores(analysis.id))[0]

        response = client.get(f"/api/v1/analyses/{analysis.id}/pages/{page.id}/preview")

        assert response.status_code == 200
        body = response.json()
        assert body["title"] == "Home"
        assert body["internal_link_count"] == 1

    @pytest.mark.asyncio
    async def test_page_preview_unknown_page(self, client, store):
        analysis = await self.seed(store)
        response = client.get(f"/api/v1/analyses/{analysis.id}/pages/{uuid.uuid4()}/preview")
        assert response.status_code == 404


# ─────────────────────────────────────────────
# Rankings, history, rubric
# ─────────────────────────────────────────────

class TestRankings:

    def test_latest_per_domain_sorted_by_score(self, client, store):
        store.add_completed("a.com", 90)
        store.add_completed("a.com", 40)   # newer, replaces 90
        store.add_completed("b.com", 70)
        store.add_completed("c.org", 55)

        body = client.get("/api/v1/rankings").json()

        assert [(r["domain"], r["overall_score"]) for r in body["data"]] == [
            ("b.com", 70), ("c.org", 55), ("a.com", 40),
        ]
        assert body["pagination"] == {"page": 1, "page_size": 50, "total_pages": 1, "total_items": 3}

    def test_search_and_page_clamp(self, client, store):
        store.add_completed("shop.example.com", 60)
        store.add_completed("blog.example.com", 80)
        store.add_completed("unrelated.net", 99)

        body = client.get("/api/v1/rankings", params={"q": "EXAMPLE", "page": 9}).json()

        assert [r["domain"] for r in body["data"]] == ["blog.example.com", "shop.example.com"]
        assert body["pagination"]["page"] == 1

    def test_empty(self, client):
        body = client.get("/api/v1/rankings", params={"page": 0}).json()
        assert body["data"] == []
        assert body["pagination"]["total_pages"] == 1

    @pytest.mark.asyncio
    async def test_domain_history_oldest_first(self, client, store):
        store.add_completed("a.com", 10)
        store.add_completed("a.com", 20)
        pending = await store.create_analysis("https://a.com", "a.com", ScraperType.HEADLESS)

        body = client.get("/api/v1/rankings/a.com/history").json()

        assert [r["overall_score"] for r in body] == [10, 20]
        assert str(pending.id) not in [r["id"] for r in body]


class TestRubricEndpoint:

    def test_lists_ten_factors(self, client):
        body = client.get("/api/v1/scoring/rubric").json()

        assert len(body) == 10
        assert sum(f["max_score"] for f in body) == 100

    def test_single_factor(self, client):
        assert client.get("/api/v1/scoring/rubric/faqContent").json()["max_score"] == 10
        assert client.get("/api/v1/scoring/rubric/nope").status_code == 404


class TestProbes:

    def test_live_and_ready(self, client):
        assert client.get("/health/live").json() == {"alive": True}
        assert client.get("/health/ready").json() == {"ready": True}


def test_status_values_match_persisted_strings():
    assert [s.value for s in AnalysisStatus] == ["pending", "processing", "completed", "failed"]

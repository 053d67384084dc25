"""
Unit tests for the Hotlist HTTP surface.
"""

import json

import httpx
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, patch

from shared.config import get_config
from service_hotlist.app.adapters.upstream_client import UpstreamClient
from service_hotlist.app.assist.llm_client import LLMClient
from service_hotlist.app.caching.store import MemoryCacheStore
from service_hotlist.app.main import HotlistService, create_app, wants_no_cache


DEVTO_ARTICLES = [
    {"id": index, "title": f"Article {index}", "url": f"https://dev.to/a/{index}", "public_reactions_count": 10 - index}
    for index in range(3)
]


class CountingUpstream:
    def __init__(self):
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if request.url.host == "dev.to":
            return httpx.Response(200, json=DEVTO_ARTICLES)
        return httpx.Response(502, text="bad gateway")


def llm_handler(request: httpx.Request) -> httpx.Response:
    body = json.loads(request.content)
    if body["temperature"] == 0.3:
        texts = json.loads(body["messages"][1]["content"])
        content = json.dumps([f"译:{text}" for text in texts], ensure_ascii=False)
    else:
        content = '{"summary": "摘要", "sentiment": "neutral", "sentimentScore": 0.5}'
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


class TestHotlistService:
    """Test cases for HotlistService."""

    @pytest.fixture
    def upstream(self):
        return CountingUpstream()

    @pytest.fixture
    def config(self):
        return get_config("hotlist", 6688, ai_enabled=True, openai_api_key="sk-test")

    @pytest.fixture
    def service(self, config, upstream):
        return HotlistService(
            config,
            store=MemoryCacheStore(),
            upstream=UpstreamClient(transport=httpx.MockTransport(upstream)),
            llm=LLMClient("https://api.openai.com/v1", "sk-test", "gpt-3.5-turbo", transport=httpx.MockTransport(llm_handler)),
        )

    @pytest.fixture
    def client(self, service):
        return TestClient(service.app)

    def test_root_endpoint(self, client):
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "hotlist"
        assert "devto" in data["sources"]

    def test_all_lists_sources(self, client):
        data = client.get("/all").json()

        assert data["code"] == 200
        assert data["count"] == len(data["routes"]) == 8
        assert {"name": "baidu", "path": "/baidu"} in data["routes"]

    def test_health_endpoint(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "hotlist"
        assert data["status"] == "ok"
        assert data["dependencies"] == {"cache": "ok"}

    def test_health_degraded_when_cache_down(self, client, service):
        with patch.object(service.store, "ping", new_callable=AsyncMock) as mock_ping:
            mock_ping.return_value = False

            data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["dependencies"] == {"cache": "error"}

    def test_metrics_endpoint(self, client):
        client.get("/devto")

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert "cache_misses_total" in response.text

    def test_source_dispatch_and_cache(self, client, upstream):
        first = client.get("/devto?type=week")
        second = client.get("/devto?type=week")

        assert first.status_code == 200
        body = first.json()
        assert body["code"] == 200
        assert body["message"] == "success"
        assert body["data"]["name"] == "devto"
        assert body["data"]["total"] == 3
        assert body["data"]["fromCache"] is False
        assert second.json()["data"]["fromCache"] is True
        assert second.json()["data"]["updateTime"] == body["data"]["updateTime"]
        assert upstream.calls == 1

    def test_absent_fields_are_omitted(self, client):
        item = client.get("/devto").json()["data"]["data"][0]

        assert "cover" not in item
        assert item["mobileUrl"] == "https://dev.to/a/0"

    @pytest.mark.parametrize("query", ["noCache=true", "noCache=1", "noCache=yes", "cache=false"])
    def test_no_cache_query_forces_refetch(self, client, upstream, query):
        client.get("/devto")
        response = client.get(f"/devto?{query}")

        assert response.json()["data"]["fromCache"] is False
        assert upstream.calls == 2

    def test_force_no_cache_config(self, upstream):
        config = get_config("hotlist", 6688, force_no_cache=True)
        service = HotlistService(
            config,
            store=MemoryCacheStore(),
            upstream=UpstreamClient(transport=httpx.MockTransport(upstream)),
        )
        client = TestClient(service.app)

        client.get("/devto")
        client.get("/devto")

        assert upstream.calls == 2

    def test_unknown_source_returns_404(self, client):
        response = client.get("/no-such-source")

        assert response.status_code == 404
        assert response.json() == {
            "code": 404,
            "message": "Unknown source: no-such-source",
            "error": "UNKNOWN_SOURCE",
        }

    def test_upstream_failure_returns_502(self, client):
        response = client.get("/lobsters")

        assert response.status_code == 502
        body = response.json()
        assert body["code"] == 502
        assert body["error"] == "UPSTREAM_FAILURE"
        assert "details" not in body

    def test_request_id_is_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"

    def test_cache_stats(self, client):
        client.get("/devto")

        data = client.get("/api/v1/cache/stats").json()

        assert data["backend"] == "memory"
        assert data["entries"] == 1
        assert data["inflight"] == 0

    def test_ai_status(self, client):
        data = client.get("/ai/status").json()

        assert data["code"] == 200
        assert data["data"]["provider"] == "OpenAI"

    def test_ai_analyze(self, client):
        response = client.post(
            "/ai/analyze",
            json={"item": {"id": 1, "title": "Article 1"}, "source": "devto", "features": ["summary"]},
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["id"] == 1
        assert data["summary"] == "摘要"
        assert data["fromCache"] is False

    def test_ai_analyze_requires_title(self, client):
        response = client.post("/ai/analyze", json={"item": {"id": 1}, "source": "devto"})

        assert response.status_code == 400
        assert response.json()["error"] == "INVALID_REQUEST"

    def test_ai_analyze_rejects_non_object_body(self, client):
        response = client.post("/ai/analyze", json=["not", "an", "object"])

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == 400
        assert body["error"] == "INVALID_REQUEST"
        assert "detail" not in body
        assert "details" not in body

    def test_translate_rejects_malformed_json(self, client):
        response = client.post(
            "/translate/batch",
            content=b'{"texts": [',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {
            "code": 400,
            "message": "Request body is not valid JSON",
            "error": "INVALID_REQUEST",
        }

    def test_context_cleared_when_route_raises(self, service):
        @service.app.get("/internal/boom")
        async def boom():
            raise RuntimeError("boom")

        client = TestClient(service.app, raise_server_exceptions=False)
        with patch("shared.base_service.clear_context") as mock_clear:
            response = client.get("/internal/boom")

        assert response.status_code == 500
        mock_clear.assert_called_once()

    def test_ai_batch_limit(self, client):
        items = [{"id": index, "title": f"t{index}"} for index in range(11)]

        response = client.post("/ai/analyze/batch", json={"items": items, "source": "devto"})

        assert response.status_code == 400

    def test_ai_batch(self, client):
        items = [{"id": index, "title": f"t{index}"} for index in range(2)]

        body = client.post("/ai/analyze/batch", json={"items": items, "source": "devto"}).json()

        assert body["total"] == 2
        assert [result["id"] for result in body["data"]] == [0, 1]

    def test_ai_disabled_returns_503(self, upstream):
        service = HotlistService(
            get_config("hotlist", 6688, ai_enabled=False),
            store=MemoryCacheStore(),
            upstream=UpstreamClient(transport=httpx.MockTransport(upstream)),
        )
        client = TestClient(service.app)

        response = client.post("/ai/analyze", json={"item": {"id": 1, "title": "t"}, "source": "devto"})
        translate = client.post("/translate/batch", json={"texts": ["a"], "source": "bbc"})

        assert response.status_code == 503
        assert translate.status_code == 503
        assert client.get("/translate/status").json()["data"] == {"enabled": False, "available": False}

    def test_translate_batch(self, client):
        body = client.post(
            "/translate/batch",
            json={"texts": ["hello", "world"], "source": "bbc", "targetLang": "zh-CN"},
        ).json()

        assert body["total"] == 2
        assert body["data"][0] == {"original": "hello", "translated": "译:hello", "fromCache": False}

    def test_translate_batch_limit(self, client):
        response = client.post("/translate/batch", json={"texts": ["x"] * 21, "source": "bbc"})

        assert response.status_code == 400

    def test_lifespan_starts_and_stops_sweeper(self, service):
        with TestClient(service.app) as client:
            assert client.get("/health").status_code == 200
            assert service._sweeper is not None

        assert service._sweeper is None


def test_wants_no_cache():
    assert wants_no_cache({}) is False
    assert wants_no_cache({}, force=True) is True
    assert wants_no_cache({"noCache": "TRUE"}) is True
    assert wants_no_cache({"noCache": "false"}) is False
    assert wants_no_cache({"cache": "false"}) is True
    assert wants_no_cache({"cache": "true"}) is False


def test_create_app():
    app = create_app(get_config("hotlist", 6688))

    paths = [route.path for route in app.routes]
    assert paths.index("/all") < paths.index("/{source}")

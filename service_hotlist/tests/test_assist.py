"""
Unit tests for the AI analysis and translation helpers.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from shared.config import get_config
from shared.errors import CacheUnavailable, MalformedUpstreamPayload, ServiceUnavailable, UpstreamFailure
from service_hotlist.app.assist.analysis import (
    AIService,
    AnalyzeItem,
    build_prompt,
    cache_key as analysis_cache_key,
    parse_analysis,
    provider_name,
)
from service_hotlist.app.assist.llm_client import LLMClient
from service_hotlist.app.assist.translation import (
    TranslateService,
    cache_key as translation_cache_key,
    parse_translations,
)
from service_hotlist.app.caching.store import MemoryCacheStore
from service_hotlist.app.fetching.fetch_layer import FetchLayer


ANALYSIS_REPLY = """```json
{
  "summary": "A short summary.",
  "sentiment": "Positive",
  "sentimentScore": 0.8,
  "category": ["科技"],
  "keywords": ["asyncio", "python", "events"]
}
```"""


def completion(content: str) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"index": 0, "message": {"role": "assistant", "content": content}}]})


class FakeLLM:
    """Records chat calls and replays canned responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        response = self.responses.pop(0)
        return response if isinstance(response, httpx.Response) else completion(response)


@pytest.fixture
def config():
    return get_config("hotlist", 6688, ai_enabled=True, openai_api_key="sk-test", ai_cache_ttl=600)


def make_llm(fake: FakeLLM) -> LLMClient:
    return LLMClient("https://api.deepseek.com/v1/", "sk-test", "deepseek-chat", transport=httpx.MockTransport(fake))


class TestLLMClient:
    @pytest.mark.asyncio
    async def test_chat_posts_completion_request(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["authorization"]
            captured["body"] = json.loads(request.content)
            return completion("hi")

        client = LLMClient("https://api.example.com/v1/", "sk-test", "model-x", transport=httpx.MockTransport(handler))

        reply = await client.chat("system", "user", max_tokens=10, temperature=0.1)

        assert reply == "hi"
        assert captured["url"] == "https://api.example.com/v1/chat/completions"
        assert captured["auth"] == "Bearer sk-test"
        assert captured["body"]["model"] == "model-x"
        assert captured["body"]["messages"][0] == {"role": "system", "content": "system"}
        assert captured["body"]["max_tokens"] == 10

    @pytest.mark.asyncio
    async def test_error_status_raises_upstream_failure(self):
        client = make_llm(FakeLLM(httpx.Response(429, text="slow down")))

        with pytest.raises(UpstreamFailure):
            await client.chat("s", "u", max_tokens=10, temperature=0.1)

    @pytest.mark.asyncio
    async def test_unexpected_shape_is_malformed(self):
        client = make_llm(FakeLLM(httpx.Response(200, json={"choices": []})))

        with pytest.raises(MalformedUpstreamPayload):
            await client.chat("s", "u", max_tokens=10, temperature=0.1)


class TestAnalysisHelpers:
    def test_provider_name(self):
        assert provider_name("https://api.openai.com/v1") == "OpenAI"
        assert provider_name("https://api.deepseek.com") == "DeepSeek"
        assert provider_name("https://open.bigmodel.cn/api/paas/v4") == "智谱AI"
        assert provider_name("https://dashscope.aliyuncs.com/compatible-mode/v1") == "通义千问"
        assert provider_name("https://api.moonshot.cn/v1") == "Moonshot"
        assert provider_name("http://localhost:11434/v1") == "Custom"

    def test_cache_key_sorts_features(self):
        assert analysis_cache_key("devto", 101, ["sentiment", "category"]) == "ai:devto:101:category,sentiment"

    def test_build_prompt_lists_only_present_fields(self):
        prompt = build_prompt(AnalyzeItem(id=1, title="Title"), ["summary"])

        assert "标题：Title" in prompt
        assert "描述" not in prompt
        assert "摘要(summary)" in prompt

    def test_parse_fenced_reply(self):
        analysis = parse_analysis(ANALYSIS_REPLY)

        assert analysis.summary == "A short summary."
        assert analysis.sentiment == "positive"
        assert analysis.sentiment_score == 0.8

    def test_parse_bare_reply_with_chatter(self):
        analysis = parse_analysis('Sure! {"summary": "ok"} Hope that helps.')

        assert analysis.summary == "ok"
        assert analysis.sentiment is None

    def test_parse_garbage_is_malformed(self):
        with pytest.raises(MalformedUpstreamPayload):
            parse_analysis("I cannot answer that.")


class TestAIService:
    def test_status(self, config):
        service = AIService(config, FetchLayer(MemoryCacheStore()), make_llm(FakeLLM()))

        assert service.is_available() is True
        assert service.status() == {
            "enabled": True,
            "provider": "OpenAI",
            "model": "gpt-3.5-turbo",
            "availableFeatures": ["summary", "sentiment", "category"],
        }

    @pytest.mark.asyncio
    async def test_unavailable_when_disabled(self):
        config = get_config("hotlist", 6688, ai_enabled=False, openai_api_key="sk-test")
        service = AIService(config, FetchLayer(MemoryCacheStore()), make_llm(FakeLLM()))

        with pytest.raises(ServiceUnavailable):
            await service.analyze(AnalyzeItem(id=1, title="t"), "devto", ["summary"])

    @pytest.mark.asyncio
    async def test_analyze_caches_result(self, config):
        fake = FakeLLM(ANALYSIS_REPLY)
        store = MemoryCacheStore()
        service = AIService(config, FetchLayer(store), make_llm(fake))
        item = AnalyzeItem(id=101, title="Understanding asyncio", desc="event loop")

        first = await service.analyze(item, "devto", ["summary", "sentiment"])
        second = await service.analyze(item, "devto", ["sentiment", "summary"])

        assert len(fake.requests) == 1
        assert first.from_cache is False
        assert second.from_cache is True
        assert second.update_time == first.update_time
        assert second.summary == "A short summary."
        entry = await store.get("ai:devto:101:sentiment,summary")
        assert entry.ttl_seconds == 600
        assert first.model_dump(by_alias=True, exclude_none=True, mode="json")["sentimentScore"] == 0.8

    @pytest.mark.asyncio
    async def test_batch_degrades_failed_items(self, config):
        fake = FakeLLM(ANALYSIS_REPLY, httpx.Response(500, text="boom"))
        service = AIService(config, FetchLayer(MemoryCacheStore()), make_llm(fake))
        items = [AnalyzeItem(id=1, title="ok"), AnalyzeItem(id=2, title="fails")]

        results = await service.batch_analyze(items, "devto", ["summary"])

        assert [result.id for result in results] == [1, 2]
        assert results[0].summary == "A short summary."
        assert results[1].summary is None
        assert results[1].from_cache is False


class TestTranslateService:
    def test_parse_pads_short_reply(self):
        assert parse_translations('["一"]', ["one", "two"]) == ["一", "two"]

    def test_parse_truncates_long_reply(self):
        assert parse_translations('["一", "二", "三"]', ["one", "two"]) == ["一", "二"]

    def test_parse_rejects_object(self):
        with pytest.raises(ValueError):
            parse_translations('{"a": 1}', ["one"])

    @pytest.mark.asyncio
    async def test_translates_misses_in_one_call(self, config):
        fake = FakeLLM('```json\n["你好", "世界"]\n```')
        store = MemoryCacheStore()
        service = TranslateService(config, store, make_llm(fake))
        await store.set(translation_cache_key("bbc", "cached", "zh-CN"), "已缓存", 60)

        results = await service.batch_translate(["hello", "cached", "world"], "bbc")

        assert len(fake.requests) == 1
        assert json.loads(fake.requests[0]["messages"][1]["content"]) == ["hello", "world"]
        assert [result.translated for result in results] == ["你好", "已缓存", "世界"]
        assert [result.from_cache for result in results] == [False, True, False]
        assert (await store.get(translation_cache_key("bbc", "hello", "zh-CN"))).payload == "你好"

    @pytest.mark.asyncio
    async def test_failure_returns_originals(self, config):
        fake = FakeLLM(httpx.Response(500, text="boom"))
        store = MemoryCacheStore()
        service = TranslateService(config, store, make_llm(fake))

        results = await service.batch_translate(["hello"], "bbc")

        assert results[0].translated == "hello"
        assert results[0].from_cache is False
        assert await store.get(translation_cache_key("bbc", "hello", "zh-CN")) is None

    @pytest.mark.asyncio
    async def test_unreadable_reply_returns_originals(self, config):
        service = TranslateService(config, MemoryCacheStore(), make_llm(FakeLLM("no idea")))

        results = await service.batch_translate(["hello", "world"], "bbc")

        assert [result.translated for result in results] == ["hello", "world"]

    @pytest.mark.asyncio
    async def test_cache_read_failure_is_a_miss(self, config):
        store = MemoryCacheStore()
        service = TranslateService(config, store, make_llm(FakeLLM('["你好"]')))

        with patch.object(store, "get", new_callable=AsyncMock) as mock_get:
            mock_get.side_effect = CacheUnavailable("Redis read failed")
            results = await service.batch_translate(["hello"], "bbc")

        assert results[0].translated == "你好"
        assert results[0].from_cache is False

    @pytest.mark.asyncio
    async def test_unavailable_without_key(self):
        config = get_config("hotlist", 6688, ai_enabled=True, openai_api_key="")
        service = TranslateService(config, MemoryCacheStore(), make_llm(FakeLLM()))

        assert service.status() == {"enabled": True, "available": False}
        with pytest.raises(ServiceUnavailable):
            await service.batch_translate(["hello"], "bbc")

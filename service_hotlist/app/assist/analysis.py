"""
Per-item AI analysis: summary, sentiment and category tags.

Results are cached through the fetch layer, so concurrent requests for the
same item and feature set share one LLM call.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shared.config import BaseConfig
from shared.errors import HotlistError, MalformedUpstreamPayload, ServiceUnavailable
from shared.logging import get_logger

from ..fetching.fetch_layer import FetchLayer
from ..routing.models import ItemId
from .llm_client import LLM_SOURCE, LLMClient


Feature = Literal["summary", "sentiment", "category"]
ALL_FEATURES: List[Feature] = ["summary", "sentiment", "category"]
MAX_BATCH_ITEMS = 10
LLM_TIMEOUT = 30.0

FEATURE_TEXT = {
    "summary": "摘要(summary)",
    "sentiment": "情感分析(sentiment+sentimentScore)",
    "category": "分类标签(category+keywords)",
}

SYSTEM_PROMPT = """你是一个专业的新闻分析助手。请根据用户提供的热点内容，提供以下分析：
1. 摘要(summary)：用2-3句话概括事件的来龙去脉，简明扼要
2. 情感分析(sentiment)：判断整体舆论倾向，只能是 "positive"(正面)、"negative"(负面) 或 "neutral"(中立) 之一
3. 情感分数(sentimentScore)：给出0到1之间的数值，0表示完全负面，0.5表示中立，1表示完全正面
4. 分类(category)：从以下类别中选择1-2个最相关的标签：科技、娱乐、财经、体育、社会、政治、军事、教育、健康、文化、游戏、其他
5. 关键词(keywords)：提取3-5个核心关键词

请务必以 JSON 格式返回结果，格式如下：
{
  "summary": "摘要内容",
  "sentiment": "positive/negative/neutral",
  "sentimentScore": 0.75,
  "category": ["科技", "社会"],
  "keywords": ["关键词1", "关键词2", "关键词3"]
}

只返回 JSON，不要有其他文字。"""

_FENCED_JSON = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.S)
_BARE_OBJECT = re.compile(r"\{.*\}", re.S)


class AnalyzeItem(BaseModel):
    id: ItemId
    title: str = Field(min_length=1)
    desc: Optional[str] = None
    url: Optional[str] = None


class AnalyzeRequest(BaseModel):
    item: AnalyzeItem
    source: str = Field(min_length=1)
    features: List[Feature] = Field(default_factory=lambda: list(ALL_FEATURES))


class BatchAnalyzeRequest(BaseModel):
    items: List[AnalyzeItem] = Field(min_length=1, max_length=MAX_BATCH_ITEMS)
    source: str = Field(min_length=1)
    features: List[Feature] = Field(default_factory=lambda: list(ALL_FEATURES))


class Analysis(BaseModel):
    """What the model is asked to return."""

    model_config = ConfigDict(populate_by_name=True)

    summary: Optional[str] = None
    sentiment: Optional[Literal["positive", "negative", "neutral"]] = None
    sentiment_score: Optional[float] = Field(default=None, alias="sentimentScore")
    category: Optional[List[str]] = None
    keywords: Optional[List[str]] = None

    @field_validator("sentiment", mode="before")
    @classmethod
    def _lower_sentiment(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value


class AnalysisResult(Analysis):
    id: ItemId
    from_cache: bool = Field(alias="fromCache")
    update_time: datetime = Field(alias="updateTime")


def provider_name(base_url: str) -> str:
    """Guess a display name for the provider behind ``base_url``."""
    url = base_url.lower()
    if "openai.com" in url:
        return "OpenAI"
    if "deepseek" in url:
        return "DeepSeek"
    if "zhipu" in url or "bigmodel" in url:
        return "智谱AI"
    if "dashscope" in url or "aliyun" in url:
        return "通义千问"
    if "moonshot" in url:
        return "Moonshot"
    return "Custom"


def cache_key(source: str, item_id: ItemId, features: List[str]) -> str:
    return f"ai:{source}:{item_id}:{','.join(sorted(set(features)))}"


def build_prompt(item: AnalyzeItem, features: List[str]) -> str:
    lines = ["请分析以下热点内容：", "", f"标题：{item.title}"]
    if item.desc:
        lines.append(f"描述：{item.desc}")
    if item.url:
        lines.append(f"链接：{item.url}")
    wanted = "、".join(FEATURE_TEXT[feature] for feature in features)
    lines.extend(["", f"请只分析并返回以下内容：{wanted}"])
    return "\n".join(lines)


def extract_json(reply: str, pattern: "re.Pattern[str]") -> Any:
    """Decode the JSON carried by an LLM reply, fenced or bare."""
    fenced = _FENCED_JSON.search(reply)
    if fenced:
        text = fenced.group(1)
    else:
        bare = pattern.search(reply)
        text = bare.group(0) if bare else reply
    try:
        return json.loads(text)
    except ValueError as exc:
        raise MalformedUpstreamPayload(LLM_SOURCE, "reply is not valid JSON") from exc


def parse_analysis(reply: str) -> Analysis:
    data = extract_json(reply, _BARE_OBJECT)
    if not isinstance(data, dict):
        raise MalformedUpstreamPayload(LLM_SOURCE, "reply is not a JSON object")
    try:
        return Analysis.model_validate(data)
    except ValidationError as exc:
        raise MalformedUpstreamPayload(
            LLM_SOURCE,
            "reply has unexpected fields",
            {"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


class AIService:
    """Analyzes hot-list items with an OpenAI-compatible model."""

    def __init__(self, config: BaseConfig, fetch_layer: FetchLayer, llm: Optional[LLMClient] = None):
        self.enabled = config.ai_enabled
        self.base_url = config.openai_base_url
        self.api_key = config.openai_api_key
        self.model = config.openai_model
        self.cache_ttl = config.ai_cache_ttl
        self.max_tokens = config.ai_max_tokens
        self.temperature = config.ai_temperature
        self.fetch_layer = fetch_layer
        self.llm = llm or LLMClient(self.base_url, self.api_key, self.model, timeout=LLM_TIMEOUT)
        self.logger = get_logger("hotlist.ai")

    def is_available(self) -> bool:
        return bool(self.enabled and self.api_key and self.base_url)

    def status(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "provider": provider_name(self.base_url),
            "model": self.model,
            "availableFeatures": list(ALL_FEATURES),
        }

    def require_available(self) -> None:
        if not self.is_available():
            raise ServiceUnavailable("AI service is not available. Please check configuration.")

    async def analyze(self, item: AnalyzeItem, source: str, features: List[str]) -> AnalysisResult:
        self.require_available()
        features = sorted(set(features)) or list(ALL_FEATURES)

        async def producer() -> Dict[str, Any]:
            self.logger.info("Analyzing item", source=source, item_id=item.id, title=item.title[:30])
            reply = await self.llm.chat(
                SYSTEM_PROMPT,
                build_prompt(item, features),
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            return parse_analysis(reply).model_dump(by_alias=True, exclude_none=True)

        result = await self.fetch_layer.fetch(
            cache_key(source, item.id, features),
            self.cache_ttl,
            False,
            producer,
            timeout=LLM_TIMEOUT,
        )
        return AnalysisResult.model_validate(
            {**result.data, "id": item.id, "fromCache": result.from_cache, "updateTime": result.updated_at}
        )

    async def batch_analyze(self, items: List[AnalyzeItem], source: str, features: List[str]) -> List[AnalysisResult]:
        """Analyze items one at a time; a failed item yields an empty result."""
        self.require_available()
        results = []
        for item in items:
            try:
                results.append(await self.analyze(item, source, features))
            except HotlistError as exc:
                self.logger.error("Batch analysis failed for item", item_id=item.id, error=str(exc))
                results.append(
                    AnalysisResult(id=item.id, from_cache=False, update_time=datetime.now(timezone.utc))
                )
        return results

"""
Batch title translation with per-text caching.
"""

import hashlib
import json
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.config import BaseConfig
from shared.errors import CacheUnavailable, HotlistError, ServiceUnavailable
from shared.logging import get_logger

from ..caching.store import CacheStore
from .analysis import LLM_TIMEOUT, extract_json
from .llm_client import LLMClient


MAX_BATCH_TEXTS = 20
DEFAULT_TARGET_LANG = "zh-CN"
TRANSLATE_MAX_TOKENS = 2000
TRANSLATE_TEMPERATURE = 0.3

SYSTEM_PROMPT = """你是一个专业的翻译助手。请将用户提供的文本翻译成{lang}。

要求：
1. 保持原文的语义和语气
2. 翻译要通顺自然，符合目标语言的表达习惯
3. 专有名词、人名、地名等可保留原文或翻译
4. 对于新闻标题，翻译要简洁有力

用户会提供一个 JSON 数组，包含需要翻译的文本列表。
请返回同样格式的 JSON 数组，包含翻译后的文本，顺序保持一致。

只返回 JSON 数组，不要有其他文字。"""

_BARE_ARRAY = re.compile(r"\[.*\]", re.S)


class TranslateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    texts: List[str] = Field(min_length=1, max_length=MAX_BATCH_TEXTS)
    source: str = Field(min_length=1)
    target_lang: str = Field(default=DEFAULT_TARGET_LANG, alias="targetLang")


class Translation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    original: str
    translated: str
    from_cache: bool = Field(alias="fromCache")


def cache_key(source: str, text: str, target_lang: str) -> str:
    digest = hashlib.sha1(text.encode("utf-8")).hexdigest()[:16]
    return f"translate:{source}:{target_lang}:{digest}"


def parse_translations(reply: str, originals: List[str]) -> List[str]:
    """Decode the reply into one translation per original, padding with originals."""
    data = extract_json(reply, _BARE_ARRAY)
    if not isinstance(data, list):
        raise ValueError("reply is not a JSON array")

    translated = [str(value) if value else original for value, original in zip(data, originals)]
    translated.extend(originals[len(translated):])
    return translated


class TranslateService:
    """Translates short texts with an OpenAI-compatible model."""

    def __init__(self, config: BaseConfig, store: CacheStore, llm: Optional[LLMClient] = None):
        self.enabled = config.ai_enabled
        self.base_url = config.openai_base_url
        self.api_key = config.openai_api_key
        self.cache_ttl = config.translate_cache_ttl
        self.store = store
        self.llm = llm or LLMClient(self.base_url, self.api_key, config.openai_model, timeout=LLM_TIMEOUT)
        self.logger = get_logger("hotlist.translate")

    def is_available(self) -> bool:
        return bool(self.enabled and self.api_key and self.base_url)

    def status(self) -> Dict[str, Any]:
        return {"enabled": self.enabled, "available": self.is_available()}

    def require_available(self) -> None:
        if not self.is_available():
            raise ServiceUnavailable("Translation service is not available. Please check AI configuration.")

    async def batch_translate(
        self, texts: List[str], source: str, target_lang: str = DEFAULT_TARGET_LANG
    ) -> List[Translation]:
        """Translate ``texts`` in order; failures return the originals untranslated."""
        self.require_available()

        results: List[Optional[Translation]] = [None] * len(texts)
        pending = []
        for index, text in enumerate(texts):
            cached = await self._cached(cache_key(source, text, target_lang))
            if isinstance(cached, str):
                results[index] = Translation(original=text, translated=cached, from_cache=True)
            else:
                pending.append(index)

        if pending:
            originals = [texts[index] for index in pending]
            translations = await self._translate(originals, source, target_lang)
            for index, translated in zip(pending, translations):
                results[index] = Translation(original=texts[index], translated=translated, from_cache=False)

        return [result for result in results if result is not None]

    async def _translate(self, originals: List[str], source: str, target_lang: str) -> List[str]:
        self.logger.info("Translating texts", source=source, count=len(originals), target_lang=target_lang)
        try:
            reply = await self.llm.chat(
                SYSTEM_PROMPT.format(lang=target_lang),
                json.dumps(originals, ensure_ascii=False),
                max_tokens=TRANSLATE_MAX_TOKENS,
                temperature=TRANSLATE_TEMPERATURE,
            )
            translations = parse_translations(reply, originals)
        except (HotlistError, ValueError) as exc:
            self.logger.error("Batch translation failed, returning originals", source=source, error=str(exc))
            return list(originals)

        for original, translated in zip(originals, translations):
            await self._remember(cache_key(source, original, target_lang), translated)
        return translations

    async def _cached(self, key: str) -> Any:
        try:
            entry = await self.store.get(key)
        except CacheUnavailable as exc:
            self.logger.warning("Cache read failed, treating as miss", key=key, error=exc.message)
            return None
        return entry.payload if entry else None

    async def _remember(self, key: str, translated: str) -> None:
        try:
            await self.store.set(key, translated, self.cache_ttl)
        except CacheUnavailable as exc:
            self.logger.warning("Cache write failed, translation not cached", key=key, error=exc.message)

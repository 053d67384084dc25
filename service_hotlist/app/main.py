"""
Hotlist service: trending lists from many sites behind one API.
"""

import asyncio
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from shared.base_service import BaseService
from shared.config import ServiceConfig, get_config
from shared.errors import InvalidRequest

from .adapters import UpstreamClient
from .assist.analysis import AIService, AnalyzeRequest, BatchAnalyzeRequest
from .assist.llm_client import LLMClient
from .assist.translation import TranslateRequest, TranslateService
from .caching.store import CacheStore, create_cache_store
from .fetching.fetch_layer import FetchLayer
from .routing.models import Envelope
from .routing.registry import RequestContext, RouteRegistry
from .sources import build_registry


SERVICE_NAME = "hotlist"
SERVICE_PORT = 6688

TRUTHY = {"true", "1", "yes"}

M = TypeVar("M", bound=BaseModel)


def wants_no_cache(query: Dict[str, str], force: bool = False) -> bool:
    """Whether the caller asked to bypass cached payloads."""
    if force:
        return True
    if query.get("noCache", "").lower() in TRUTHY:
        return True
    return query.get("cache", "").lower() == "false"


def parse_body(model: Type[M], body: Any) -> M:
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        raise InvalidRequest(
            "Invalid request body",
            {"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


async def read_body(model: Type[M], request: Request) -> M:
    """Decode the JSON body of ``request`` and validate it against ``model``."""
    try:
        body = await request.json()
    except ValueError as exc:
        raise InvalidRequest("Request body is not valid JSON") from exc
    return parse_body(model, body)


def success(data: Any, **extra: Any) -> Dict[str, Any]:
    envelope = Envelope[Any](data=data).model_dump(by_alias=True, exclude_none=True, mode="json")
    envelope.update(extra)
    return envelope


class HotlistService(BaseService):
    """Hot list aggregation service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        store: Optional[CacheStore] = None,
        upstream: Optional[UpstreamClient] = None,
        llm: Optional[LLMClient] = None,
    ):
        super().__init__(SERVICE_NAME, SERVICE_PORT, config or get_config(SERVICE_NAME, SERVICE_PORT))

        self.store = store or create_cache_store(
            self.config.cache_backend,
            redis_url=self.config.redis_url,
            namespace=self.config.cache_namespace,
        )
        self.upstream = upstream or UpstreamClient(timeout=self.config.request_timeout_seconds)
        self.fetch_layer = FetchLayer(
            self.store,
            upstream=self.upstream,
            default_ttl=self.config.cache_ttl,
            default_timeout=self.config.request_timeout_seconds,
            metrics=self.metrics,
        )
        self.registry: RouteRegistry = build_registry(self.fetch_layer, metrics=self.metrics)

        self.llm = llm or LLMClient(
            self.config.openai_base_url,
            self.config.openai_api_key,
            self.config.openai_model,
        )
        self.ai_service = AIService(self.config, self.fetch_layer, self.llm)
        self.translate_service = TranslateService(self.config, self.store, self.llm)

        self._sweeper: Optional[asyncio.Task] = None
        self._setup_hotlist_routes()

    async def _on_startup(self) -> None:
        interval = self.config.cache_sweep_interval
        if self.store.backend == "memory" and interval > 0:
            self._sweeper = asyncio.create_task(self._sweep_forever(interval))
        self.logger.info(
            "Hotlist service started",
            cache_backend=self.store.backend,
            sources=len(self.registry),
        )

    async def _on_shutdown(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None

        await self.fetch_layer.close()
        await self.upstream.close()
        await self.llm.close()
        await self.store.close()
        self.logger.info("Hotlist service stopped")

    async def _sweep_forever(self, interval: int) -> None:
        while True:
            await asyncio.sleep(interval)
            removed = await self.store.sweep()
            if removed:
                self.logger.info("Cache sweep removed expired entries", removed=removed)

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"cache": "ok" if await self.store.ping() else "error"}

    def _setup_hotlist_routes(self):
        """Set up hotlist routes. The source catch-all is registered last."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": self.service_name,
                "message": "Hotlist - trending lists aggregated behind one API",
                "version": "1.0.0",
                "sources": self.registry.sources(),
            }

        @self.app.get("/all")
        async def list_sources():
            """List every registered source."""
            routes = [{"name": name, "path": f"/{name}"} for name in self.registry.sources()]
            return {"code": 200, "message": "success", "count": len(routes), "routes": routes}

        @self.app.get("/api/v1/cache/stats")
        async def get_cache_stats():
            """Get cache statistics."""
            stats = await self.store.stats()
            stats["inflight"] = self.fetch_layer.inflight_count()
            return stats

        @self.app.get("/ai/status")
        async def ai_status():
            return success(self.ai_service.status())

        @self.app.post("/ai/analyze")
        async def ai_analyze(raw: Request):
            """Analyze one item."""
            self.ai_service.require_available()
            request = await read_body(AnalyzeRequest, raw)
            result = await self.ai_service.analyze(request.item, request.source, request.features)
            return success(result)

        @self.app.post("/ai/analyze/batch")
        async def ai_analyze_batch(raw: Request):
            """Analyze up to ten items, one at a time."""
            self.ai_service.require_available()
            request = await read_body(BatchAnalyzeRequest, raw)
            results = await self.ai_service.batch_analyze(request.items, request.source, request.features)
            return success(results, total=len(results))

        @self.app.get("/translate/status")
        async def translate_status():
            return success(self.translate_service.status())

        @self.app.post("/translate/batch")
        async def translate_batch(raw: Request):
            """Translate up to twenty texts."""
            self.translate_service.require_available()
            request = await read_body(TranslateRequest, raw)
            results = await self.translate_service.batch_translate(
                request.texts, request.source, request.target_lang
            )
            return success(results, total=len(results))

        @self.app.get("/{source}")
        async def get_source(source: str, request: Request):
            """Dispatch to the handler registered for ``source``."""
            query = dict(request.query_params)
            no_cache = wants_no_cache(query, self.config.force_no_cache)
            router_data = await self.registry.dispatch(source, RequestContext(query=query), no_cache)
            return success(router_data)


def create_app(config: Optional[ServiceConfig] = None):
    """Create FastAPI application."""
    service = HotlistService(config)
    return service.app


if __name__ == "__main__":
    service = HotlistService()
    service.run()

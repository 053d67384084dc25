"""
Source-key to handler registry and the uniform dispatch entry point.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Mapping, Optional

from shared.errors import HotlistError, UnknownSource
from shared.logging import get_logger, set_source

from .models import RouterData
from .normalizer import ensure_router_data

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass(frozen=True)
class RequestContext:
    """Query parameters a handler may read."""

    query: Mapping[str, str] = field(default_factory=dict)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        value = self.query.get(name)
        return value if value else default

    def choice(self, name: str, options: Mapping[str, str], default: str) -> str:
        """Return the requested variant, falling back to ``default`` when unknown."""
        value = self.get(name)
        return value if value in options else default


RouteHandler = Callable[[RequestContext, bool], Awaitable[RouterData]]


class RouteRegistry:
    """Immutable source-key to handler mapping."""

    def __init__(self, handlers: Mapping[str, RouteHandler], *, metrics: Optional["MetricsCollector"] = None):
        self._handlers = MappingProxyType(dict(handlers))
        self.metrics = metrics
        self.logger = get_logger("hotlist.registry")

    def __contains__(self, source_key: str) -> bool:
        return source_key in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    @property
    def handlers(self) -> Mapping[str, RouteHandler]:
        return self._handlers

    def sources(self) -> List[str]:
        return list(self._handlers)

    async def dispatch(
        self,
        source_key: str,
        context: Optional[RequestContext] = None,
        no_cache: bool = False,
    ) -> RouterData:
        """Invoke the handler for ``source_key`` and validate its envelope."""
        handler = self._handlers.get(source_key)
        if handler is None:
            self._count(source_key, "unknown")
            raise UnknownSource(source_key)

        set_source(source_key)
        try:
            result = await handler(context or RequestContext(), no_cache)
            router_data = ensure_router_data(source_key, result)
        except HotlistError as exc:
            self._count(source_key, "error")
            self.logger.warning("Dispatch failed", source=source_key, code=exc.code)
            raise

        self._count(source_key, "cache" if router_data.from_cache else "fresh")
        return router_data

    def _count(self, source_key: str, outcome: str) -> None:
        if self.metrics:
            # Unknown keys share one label value to keep cardinality bounded.
            label = source_key if outcome != "unknown" else "_unknown"
            self.metrics.increment_counter("dispatch_total", source=label, outcome=outcome)


class RegistryBuilder:
    """Collects handlers at startup and freezes them into a RouteRegistry."""

    def __init__(self) -> None:
        self._handlers: Dict[str, RouteHandler] = {}
        self.logger = get_logger("hotlist.registry")

    def register(self, source_key: str, handler: RouteHandler) -> "RegistryBuilder":
        if source_key in self._handlers:
            self.logger.info("Replacing handler", source=source_key)
        self._handlers[source_key] = handler
        return self

    def build(self, *, metrics: Optional["MetricsCollector"] = None) -> RouteRegistry:
        return RouteRegistry(self._handlers, metrics=metrics)

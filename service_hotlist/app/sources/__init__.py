"""
Source adapters, one module per upstream.

Each module exposes ``NAME`` and ``create_handler(fetch_layer)``.
"""

from typing import TYPE_CHECKING, Optional

from ..fetching.fetch_layer import FetchLayer
from ..routing.registry import RegistryBuilder, RouteRegistry
from . import baidu, bbc, devto, linuxdo, lobsters, mastodon, producthunt, reddit

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


SOURCE_MODULES = (baidu, bbc, devto, linuxdo, lobsters, mastodon, producthunt, reddit)


def build_registry(fetch_layer: FetchLayer, *, metrics: Optional["MetricsCollector"] = None) -> RouteRegistry:
    """Register every built-in source against ``fetch_layer``."""
    builder = RegistryBuilder()
    for module in SOURCE_MODULES:
        builder.register(module.NAME, module.create_handler(fetch_layer))
    return builder.build(metrics=metrics)

"""
Assemble handler output into the RouterData envelope.

The normalizer never sorts, filters or deduplicates: the order handlers
return is the upstream's ranking order and is kept as-is.
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from shared.errors import MalformedUpstreamPayload

from ..fetching.fetch_layer import FetchResult
from .models import ListItem, RouteParam, RouterData


ParamSpec = Mapping[str, Union[RouteParam, Mapping[str, Any]]]


def build_router_data(
    *,
    name: str,
    title: str,
    type: str,
    link: str,
    items: Iterable[ListItem],
    result: FetchResult,
    description: Optional[str] = None,
    params: Optional[ParamSpec] = None,
) -> RouterData:
    """Wrap ``items`` with metadata, taking ``update_time``/``from_cache`` from ``result``."""
    data = list(items)
    return RouterData(
        name=name,
        title=title,
        type=type,
        description=description,
        params=_normalize_params(params),
        link=link,
        total=len(data),
        data=data,
        update_time=result.updated_at,
        from_cache=result.from_cache,
    )


def ensure_router_data(source: str, value: Any) -> RouterData:
    """Validate whatever a handler returned as a RouterData."""
    if isinstance(value, RouterData):
        # Re-run validation so a handler that mutated ``data`` after
        # construction still reports an exact ``total``.
        return RouterData.model_validate(value.model_dump(by_alias=True))
    try:
        return RouterData.model_validate(value)
    except ValidationError as exc:
        raise MalformedUpstreamPayload(
            source,
            "handler returned an invalid envelope",
            {"errors": exc.errors(include_url=False, include_context=False, include_input=False)},
        ) from exc


def _normalize_params(params: Optional[ParamSpec]) -> Optional[Dict[str, RouteParam]]:
    if not params:
        return None
    return {
        key: value if isinstance(value, RouteParam) else RouteParam.model_validate(value)
        for key, value in params.items()
    }

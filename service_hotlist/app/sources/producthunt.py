"""
Product Hunt daily launches, read from the public feed.
"""

from ..fetching.fetch_layer import FetchLayer
from ..routing.models import RouterData
from ..routing.normalizer import build_router_data
from ..routing.registry import RequestContext, RouteHandler
from .common import FEED_HEADERS, MAX_ITEMS, feed_entry_to_item, parse_feed


NAME = "producthunt"
CACHE_TTL = 1800
URL = "https://www.producthunt.com/feed"


def create_handler(fetch_layer: FetchLayer) -> RouteHandler:
    async def handle_route(context: RequestContext, no_cache: bool) -> RouterData:
        result = await fetch_layer.get(
            f"{NAME}:feed",
            URL,
            ttl=CACHE_TTL,
            no_cache=no_cache,
            headers=FEED_HEADERS,
        )
        entries = parse_feed(NAME, result.data)[:MAX_ITEMS]
        return build_router_data(
            name=NAME,
            title="Product Hunt",
            type="Today",
            description="The best new products, every day",
            link="https://www.producthunt.com/",
            items=[feed_entry_to_item(entry, index) for index, entry in enumerate(entries)],
            result=result,
        )

    return handle_route

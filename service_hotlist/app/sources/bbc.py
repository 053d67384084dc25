"""
BBC News RSS feeds.
"""

from ..fetching.fetch_layer import FetchLayer
from ..routing.models import RouterData
from ..routing.normalizer import build_router_data
from ..routing.registry import RequestContext, RouteHandler
from .common import FEED_HEADERS, MAX_ITEMS, feed_entry_to_item, parse_feed


NAME = "bbc"
CACHE_TTL = 1800

CATEGORY_MAP = {
    "world": "国际新闻",
    "technology": "科技",
    "business": "商业",
    "science": "科学",
}
DEFAULT_CATEGORY = "world"

FEED_URLS = {
    "world": "https://feeds.bbci.co.uk/news/world/rss.xml",
    "technology": "https://feeds.bbci.co.uk/news/technology/rss.xml",
    "business": "https://feeds.bbci.co.uk/news/business/rss.xml",
    "science": "https://feeds.bbci.co.uk/news/science_and_environment/rss.xml",
}


def create_handler(fetch_layer: FetchLayer) -> RouteHandler:
    async def handle_route(context: RequestContext, no_cache: bool) -> RouterData:
        category = context.choice("type", CATEGORY_MAP, DEFAULT_CATEGORY)
        result = await fetch_layer.get(
            f"{NAME}:{category}",
            FEED_URLS[category],
            ttl=CACHE_TTL,
            no_cache=no_cache,
            headers=FEED_HEADERS,
        )
        entries = parse_feed(NAME, result.data)[:MAX_ITEMS]
        return build_router_data(
            name=NAME,
            title="BBC News",
            type=CATEGORY_MAP[category],
            description="BBC 新闻",
            params={"type": {"name": "新闻分类", "type": CATEGORY_MAP}},
            link="https://www.bbc.com/news",
            items=[feed_entry_to_item(entry, index, default_author="BBC") for index, entry in enumerate(entries)],
            result=result,
        )

    return handle_route

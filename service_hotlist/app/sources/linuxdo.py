"""
Linux.do top topics by period.
"""

from ..fetching.fetch_layer import FetchLayer
from ..routing.models import RouterData
from ..routing.normalizer import build_router_data
from ..routing.registry import RequestContext, RouteHandler
from .common import FEED_HEADERS, feed_entry_to_item, parse_feed


NAME = "linuxdo"

PERIOD_MAP = {
    "daily": "日榜",
    "weekly": "周榜",
    "monthly": "月榜",
}
DEFAULT_PERIOD = "weekly"


def create_handler(fetch_layer: FetchLayer) -> RouteHandler:
    async def handle_route(context: RequestContext, no_cache: bool) -> RouterData:
        period = context.choice("period", PERIOD_MAP, DEFAULT_PERIOD)
        result = await fetch_layer.get(
            f"{NAME}:{period}",
            f"https://linux.do/top.rss?period={period}",
            no_cache=no_cache,
            headers=FEED_HEADERS,
        )
        entries = parse_feed(NAME, result.data)
        return build_router_data(
            name=NAME,
            title="Linux.do",
            type=PERIOD_MAP[period],
            description="Linux 技术社区热搜",
            params={"period": {"name": "榜单周期", "type": PERIOD_MAP}},
            link=f"https://linux.do/top/{period}",
            items=[feed_entry_to_item(entry, index) for index, entry in enumerate(entries)],
            result=result,
        )

    return handle_route

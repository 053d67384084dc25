"""
Trending statuses on mastodon.social.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from ..fetching.fetch_layer import FetchLayer
from ..routing.models import ListItem, RouterData
from ..routing.normalizer import build_router_data
from ..routing.registry import RequestContext, RouteHandler
from .common import BROWSER_HEADERS, MAX_ITEMS, html_to_text, non_empty, parse_payload, to_millis


NAME = "mastodon"
CACHE_TTL = 1800
URL = f"https://mastodon.social/api/v1/trends/statuses?limit={MAX_ITEMS}"
TITLE_LENGTH = 100


class MastodonAccount(BaseModel):
    display_name: Optional[str] = None
    username: Optional[str] = None


class MastodonStatus(BaseModel):
    id: str
    content: str = ""
    account: Optional[MastodonAccount] = None
    favourites_count: int = 0
    reblogs_count: int = 0
    created_at: Optional[datetime] = None
    url: Optional[str] = None
    uri: str = ""


def to_list_item(status: MastodonStatus) -> ListItem:
    text = html_to_text(status.content) or ""
    author = non_empty(status.account.display_name, status.account.username) if status.account else None
    url = status.url or status.uri
    return ListItem(
        id=status.id,
        title=text[:TITLE_LENGTH] or "无标题",
        desc=text or None,
        author=author,
        hot=status.favourites_count + status.reblogs_count,
        timestamp=to_millis(status.created_at),
        url=url,
        mobile_url=url,
    )


def create_handler(fetch_layer: FetchLayer) -> RouteHandler:
    async def handle_route(context: RequestContext, no_cache: bool) -> RouterData:
        result = await fetch_layer.get(
            f"{NAME}:trends",
            URL,
            ttl=CACHE_TTL,
            no_cache=no_cache,
            headers=BROWSER_HEADERS,
        )
        statuses = parse_payload(NAME, List[MastodonStatus], result.data)
        return build_router_data(
            name=NAME,
            title="Mastodon",
            type="趋势",
            description="Mastodon 社交网络趋势",
            link="https://mastodon.social/explore",
            items=[to_list_item(status) for status in statuses[:MAX_ITEMS]],
            result=result,
        )

    return handle_route

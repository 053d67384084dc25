"""
Dev.to top articles.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from ..fetching.fetch_layer import FetchLayer
from ..routing.models import ListItem, RouterData
from ..routing.normalizer import build_router_data
from ..routing.registry import RequestContext, RouteHandler
from .common import BROWSER_HEADERS, MAX_ITEMS, non_empty, parse_payload, to_millis


NAME = "devto"
CACHE_TTL = 3600

PERIOD_MAP = {
    "week": "本周热门",
    "month": "本月热门",
    "year": "年度热门",
    "infinity": "全部时间",
}
DEFAULT_PERIOD = "week"

# The API ranks by reactions over the last N days.
TOP_DAYS = {"week": 7, "month": 30, "year": 365, "infinity": 365}


class DevtoUser(BaseModel):
    name: Optional[str] = None
    username: Optional[str] = None


class DevtoArticle(BaseModel):
    id: int
    title: str = ""
    description: Optional[str] = None
    cover_image: Optional[str] = None
    social_image: Optional[str] = None
    user: Optional[DevtoUser] = None
    public_reactions_count: int = 0
    published_at: Optional[datetime] = None
    url: str


def build_url(period: str) -> str:
    return f"https://dev.to/api/articles?top={TOP_DAYS[period]}&per_page={MAX_ITEMS}"


def to_list_item(article: DevtoArticle) -> ListItem:
    author = non_empty(article.user.name, article.user.username) if article.user else None
    return ListItem(
        id=article.id,
        title=article.title,
        desc=article.description or None,
        cover=non_empty(article.cover_image, article.social_image),
        author=author,
        hot=article.public_reactions_count,
        timestamp=to_millis(article.published_at),
        url=article.url,
        mobile_url=article.url,
    )


def create_handler(fetch_layer: FetchLayer) -> RouteHandler:
    async def handle_route(context: RequestContext, no_cache: bool) -> RouterData:
        period = context.choice("type", PERIOD_MAP, DEFAULT_PERIOD)
        result = await fetch_layer.get(
            f"{NAME}:{period}",
            build_url(period),
            ttl=CACHE_TTL,
            no_cache=no_cache,
            headers=BROWSER_HEADERS,
        )
        articles = parse_payload(NAME, List[DevtoArticle], result.data)
        return build_router_data(
            name=NAME,
            title="Dev.to",
            type=PERIOD_MAP[period],
            description="Dev.to 开发者社区热门文章",
            params={"type": {"name": "时间范围", "type": PERIOD_MAP}},
            link="https://dev.to/",
            items=[to_list_item(article) for article in articles[:MAX_ITEMS]],
            result=result,
        )

    return handle_route

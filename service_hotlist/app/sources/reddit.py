"""
Reddit hot posts for a handful of subreddits.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field

from ..fetching.fetch_layer import FetchLayer
from ..routing.models import ListItem, RouterData
from ..routing.normalizer import build_router_data
from ..routing.registry import RequestContext, RouteHandler
from .common import BROWSER_HEADERS, MAX_ITEMS, parse_payload, to_millis


NAME = "reddit"
CACHE_TTL = 1800

SUBREDDIT_MAP = {
    "popular": "热门",
    "programming": "编程",
    "technology": "科技",
    "webdev": "Web开发",
    "javascript": "JavaScript",
}
DEFAULT_SUBREDDIT = "popular"


class RedditPost(BaseModel):
    id: str
    title: str = ""
    selftext: str = ""
    author: Optional[str] = None
    ups: int = 0
    created_utc: Optional[float] = None
    permalink: str = ""


class RedditChild(BaseModel):
    data: RedditPost


class RedditListingData(BaseModel):
    children: List[RedditChild] = Field(default_factory=list)


class RedditListing(BaseModel):
    data: RedditListingData


def to_list_item(post: RedditPost) -> ListItem:
    url = f"https://reddit.com{post.permalink}"
    created = datetime.fromtimestamp(post.created_utc, tz=timezone.utc) if post.created_utc else None
    return ListItem(
        id=post.id,
        title=post.title,
        desc=post.selftext[:200] or None,
        author=post.author,
        hot=post.ups,
        timestamp=to_millis(created),
        url=url,
        mobile_url=url,
    )


def create_handler(fetch_layer: FetchLayer) -> RouteHandler:
    async def handle_route(context: RequestContext, no_cache: bool) -> RouterData:
        subreddit = context.choice("type", SUBREDDIT_MAP, DEFAULT_SUBREDDIT)
        result = await fetch_layer.get(
            f"{NAME}:{subreddit}",
            f"https://www.reddit.com/r/{subreddit}/hot.json?limit={MAX_ITEMS}",
            ttl=CACHE_TTL,
            no_cache=no_cache,
            headers=BROWSER_HEADERS,
        )
        listing = parse_payload(NAME, RedditListing, result.data)
        return build_router_data(
            name=NAME,
            title="Reddit",
            type=SUBREDDIT_MAP[subreddit],
            description="Reddit 热门帖子",
            params={"type": {"name": "版块分类", "type": SUBREDDIT_MAP}},
            link=f"https://www.reddit.com/r/{subreddit}/",
            items=[to_list_item(child.data) for child in listing.data.children[:MAX_ITEMS]],
            result=result,
        )

    return handle_route

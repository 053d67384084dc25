"""
Lobsters hottest stories.
"""

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel

from ..fetching.fetch_layer import FetchLayer
from ..routing.models import ListItem, RouterData
from ..routing.normalizer import build_router_data
from ..routing.registry import RequestContext, RouteHandler
from .common import BROWSER_HEADERS, MAX_ITEMS, non_empty, parse_payload, to_millis


NAME = "lobsters"
CACHE_TTL = 1800
URL = "https://lobste.rs/hottest.json"


class LobstersUser(BaseModel):
    username: Optional[str] = None


class LobstersStory(BaseModel):
    short_id: str
    title: str = ""
    description: Optional[str] = None
    # Older API versions embed the user object, newer ones just the name.
    submitter_user: Union[LobstersUser, str, None] = None
    score: int = 0
    created_at: Optional[datetime] = None
    url: Optional[str] = None
    comments_url: Optional[str] = None


def to_list_item(story: LobstersStory) -> ListItem:
    submitter = story.submitter_user
    author = submitter.username if isinstance(submitter, LobstersUser) else submitter
    url = non_empty(story.url, story.comments_url) or f"https://lobste.rs/s/{story.short_id}"
    return ListItem(
        id=story.short_id,
        title=story.title,
        desc=story.description or None,
        author=author or None,
        hot=story.score,
        timestamp=to_millis(story.created_at),
        url=url,
        mobile_url=url,
    )


def create_handler(fetch_layer: FetchLayer) -> RouteHandler:
    async def handle_route(context: RequestContext, no_cache: bool) -> RouterData:
        result = await fetch_layer.get(
            f"{NAME}:hottest",
            URL,
            ttl=CACHE_TTL,
            no_cache=no_cache,
            headers=BROWSER_HEADERS,
        )
        stories = parse_payload(NAME, List[LobstersStory], result.data)
        return build_router_data(
            name=NAME,
            title="Lobsters",
            type="热门",
            description="Lobsters 技术社区热门文章",
            link="https://lobste.rs/",
            items=[to_list_item(story) for story in stories[:MAX_ITEMS]],
            result=result,
        )

    return handle_route

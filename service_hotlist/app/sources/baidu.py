"""
Baidu hot search boards.

The board page embeds its data as JSON inside an ``<!--s-data:...-->``
comment. Desktop pages carry the rich shape (``data.cards[0].content``),
lightweight pages a nested lite shape (``cards[0].content[0].content``).
"""

import json
import re
from typing import Any, List, Literal, Optional, Union
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.errors import MalformedUpstreamPayload

from ..fetching.fetch_layer import FetchLayer
from ..routing.models import ListItem, RouterData
from ..routing.normalizer import build_router_data
from ..routing.registry import RequestContext, RouteHandler
from .common import parse_payload


NAME = "baidu"

TYPE_MAP = {
    "realtime": "热搜",
    "novel": "小说",
    "movie": "电影",
    "teleplay": "电视剧",
    "car": "汽车",
    "game": "游戏",
}
DEFAULT_TYPE = "realtime"

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (iPhone; CPU iPhone OS 14_2_1 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) FxiOS/1.0 Mobile/12F69 Safari/605.1.15"
    ),
}

_S_DATA = re.compile(r"<!--s-data:(.*?)-->", re.S)


class BaiduRichEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: Literal["rich"] = "rich"
    index: Optional[int] = None
    word: str = ""
    query: Optional[str] = None
    raw_url: Optional[str] = Field(default=None, alias="rawUrl")
    img: Optional[str] = None
    desc: Optional[str] = None
    show: List[str] = Field(default_factory=list)
    hot_score: Optional[int] = Field(default=None, alias="hotScore")

    @field_validator("show", mode="before")
    @classmethod
    def _show_as_list(cls, value: Any) -> List[str]:
        if isinstance(value, list):
            return [str(part) for part in value if part]
        return []


class BaiduLiteEntry(BaseModel):
    kind: Literal["lite"] = "lite"
    index: Optional[int] = None
    word: str = ""
    url: Optional[str] = None


BaiduEntry = Union[BaiduRichEntry, BaiduLiteEntry]


def extract_entries(page: Any) -> List[BaiduEntry]:
    """Pull the board entries out of the page, tagged by shape.

    A page without the embedded block yields an empty list.
    """
    if not isinstance(page, str):
        raise MalformedUpstreamPayload(NAME, "expected an HTML page")

    match = _S_DATA.search(page)
    if not match:
        return []

    try:
        payload = json.loads(match.group(1))
    except ValueError as exc:
        raise MalformedUpstreamPayload(NAME, "embedded board data is not valid JSON") from exc

    rich = _dig(payload, "data", "cards", 0, "content")
    if isinstance(rich, list):
        return list(parse_payload(NAME, List[BaiduRichEntry], rich))

    lite = _dig(payload, "cards", 0, "content", 0, "content")
    if isinstance(lite, list):
        return list(parse_payload(NAME, List[BaiduLiteEntry], lite))

    return []


def _dig(value: Any, *path: Union[str, int]) -> Any:
    for step in path:
        if isinstance(step, int):
            if not isinstance(value, list) or len(value) <= step:
                return None
        elif not isinstance(value, dict):
            return None
        value = value[step] if isinstance(step, int) else value.get(step)
    return value


def to_list_item(entry: BaiduEntry) -> ListItem:
    if isinstance(entry, BaiduRichEntry):
        query = entry.query or entry.word
        raw_url = entry.raw_url
        cover, desc, hot = entry.img, entry.desc, entry.hot_score
        author = " ".join(entry.show) or None
    else:
        query = entry.word
        raw_url = entry.url
        cover = desc = author = hot = None

    url = f"https://www.baidu.com/s?wd={quote(query)}" if query else raw_url or ""
    return ListItem(
        id=entry.index if entry.index is not None else entry.word,
        title=entry.word,
        desc=desc or None,
        cover=cover or None,
        author=author,
        hot=hot,
        url=url,
        mobile_url=raw_url or url,
    )


def create_handler(fetch_layer: FetchLayer) -> RouteHandler:
    async def handle_route(context: RequestContext, no_cache: bool) -> RouterData:
        board = context.choice("type", TYPE_MAP, DEFAULT_TYPE)
        result = await fetch_layer.get(
            f"{NAME}:{board}",
            f"https://top.baidu.com/board?tab={board}",
            no_cache=no_cache,
            headers=HEADERS,
        )
        return build_router_data(
            name=NAME,
            title="百度",
            type=TYPE_MAP[board],
            params={"type": {"name": "热搜类别", "type": TYPE_MAP}},
            link="https://top.baidu.com/board",
            items=[to_list_item(entry) for entry in extract_entries(result.data)],
            result=result,
        )

    return handle_route

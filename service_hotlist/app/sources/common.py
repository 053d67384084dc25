"""
Parsing helpers shared by the source adapters.
"""

from __future__ import annotations

import calendar
import functools
import html
import io
from datetime import datetime, timezone
from typing import Any, List, Optional, Type, TypeVar

import feedparser
from bs4 import BeautifulSoup
from pydantic import BaseModel, TypeAdapter, ValidationError

from shared.errors import MalformedUpstreamPayload

from ..routing.models import ListItem


MAX_ITEMS = 30

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
}

FEED_HEADERS = {
    **BROWSER_HEADERS,
    "Accept": "application/rss+xml, application/xml;q=0.9, */*;q=0.8",
}

M = TypeVar("M")


class FeedEntry(BaseModel):
    """The subset of an RSS/Atom entry the adapters use."""

    guid: Optional[str] = None
    title: str = ""
    link: str = ""
    summary: Optional[str] = None
    author: Optional[str] = None
    published: Optional[datetime] = None


def parse_payload(source: str, model: Type[M], data: Any) -> M:
    """Validate a decoded upstream payload against ``model``."""
    try:
        return _adapter(model).validate_python(data)
    except ValidationError as exc:
        raise MalformedUpstreamPayload(
            source,
            f"unexpected payload shape ({exc.error_count()} errors)",
            {"errors": exc.errors(include_url=False, include_context=False, include_input=False)[:5]},
        ) from exc


@functools.lru_cache(maxsize=None)
def _adapter(model: Any) -> TypeAdapter:
    return TypeAdapter(model)


def parse_feed(source: str, document: Any) -> List[FeedEntry]:
    """Parse an RSS/Atom document into FeedEntry models."""
    if not isinstance(document, (str, bytes)) or not document.strip():
        raise MalformedUpstreamPayload(source, "empty or non-text feed document")

    raw = document.encode("utf-8") if isinstance(document, str) else document
    parsed = feedparser.parse(io.BytesIO(raw))
    if parsed.bozo and not parsed.entries:
        raise MalformedUpstreamPayload(source, f"unreadable feed: {parsed.get('bozo_exception')}")

    entries = []
    for entry in parsed.entries:
        summary = entry.get("summary")
        if not summary and entry.get("content"):
            summary = entry["content"][0].get("value")
        entries.append(
            FeedEntry(
                guid=entry.get("id"),
                title=html_to_text(entry.get("title")) or "",
                link=entry.get("link", ""),
                summary=html_to_text(summary),
                author=entry.get("author") or None,
                published=struct_to_datetime(entry.get("published_parsed") or entry.get("updated_parsed")),
            )
        )
    return entries


def html_to_text(value: Optional[str]) -> Optional[str]:
    """Reduce an HTML fragment to whitespace-normalized text."""
    if not value:
        return None
    if "<" in value:
        text = BeautifulSoup(value, "html.parser").get_text(" ", strip=True)
    else:
        text = html.unescape(value)
    text = " ".join(text.split())
    return text or None


def struct_to_datetime(value: Any) -> Optional[datetime]:
    """feedparser normalizes dates to UTC struct_time."""
    if not value:
        return None
    return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)


def to_millis(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def non_empty(*values: Optional[str]) -> Optional[str]:
    """First truthy value, or None."""
    for value in values:
        if value:
            return value
    return None


def feed_entry_to_item(entry: FeedEntry, position: int, *, default_author: Optional[str] = None) -> ListItem:
    """Map a feed entry to a ListItem; ``position`` only backs entries with neither guid nor link."""
    return ListItem(
        id=entry.guid or entry.link or position,
        title=entry.title,
        desc=entry.summary,
        author=entry.author or default_author,
        timestamp=to_millis(entry.published),
        url=entry.link,
        mobile_url=entry.link,
    )

"""
Response envelope models shared by every source handler.
"""

from datetime import datetime
from typing import Dict, Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator


ItemId = Union[int, str]


class ListItem(BaseModel):
    """One entry of a hot list, in upstream ranking order."""

    model_config = ConfigDict(populate_by_name=True)

    id: ItemId
    title: str
    desc: Optional[str] = None
    cover: Optional[str] = None
    author: Optional[str] = None
    hot: Optional[int] = None
    timestamp: Optional[int] = None
    url: str
    mobile_url: str = Field(alias="mobileUrl")


class RouteParam(BaseModel):
    """A query parameter a handler accepts and its closed set of values."""

    name: str
    type: Dict[str, str]


class RouterData(BaseModel):
    """Uniform envelope returned by every handler."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    title: str
    type: str
    description: Optional[str] = None
    params: Optional[Dict[str, RouteParam]] = None
    link: str
    total: int = 0
    data: List[ListItem] = Field(default_factory=list)
    update_time: datetime = Field(alias="updateTime")
    from_cache: bool = Field(alias="fromCache")

    @model_validator(mode="after")
    def _total_matches_data(self) -> "RouterData":
        self.total = len(self.data)
        return self


T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """``{code, message, data}`` wrapper used on successful responses."""

    code: int = 200
    message: str = "success"
    data: T

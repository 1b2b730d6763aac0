"""Data models for Hexagon lists"""

import re
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional, Tuple, Union

LIST_ITEM_ID_SEPARATOR = "-"

INT_MIN = -2 ** 31
INT_MAX = 2 ** 31 - 1

_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+", re.ASCII)


class ItemType(IntEnum):
    """Kinds of items a list can reference"""

    SHOW = 1
    SEASON = 2
    EPISODE = 3

    @classmethod
    def is_valid(cls, value: int) -> bool:
        try:
            cls(value)
        except ValueError:
            return False
        return True


@dataclass
class RemoteListItem:
    """List item as returned by Hexagon, only carries its composite id"""

    list_item_id: str


@dataclass
class RemoteList:
    """Snapshot of a list on Hexagon at fetch time"""

    list_id: str
    name: str
    order: Optional[int] = None
    items: List[RemoteListItem] = field(default_factory=list)


@dataclass
class ListsPage:
    """One page of the paginated lists endpoint"""

    cursor: Optional[str] = None
    lists: List[RemoteList] = field(default_factory=list)


@dataclass
class LocalListRecord:
    """Row of the local lists table"""

    list_id: str
    name: str
    order: int = 0


@dataclass
class LocalListItemRecord:
    """Row of the local list_items table"""

    list_item_id: str
    item_ref_id: int
    item_type: int
    list_id: str


@dataclass(frozen=True)
class NextPage:
    """A page with lists was downloaded, more may follow if cursor is set"""

    cursor: Optional[str]
    lists: List[RemoteList]


@dataclass(frozen=True)
class End:
    """No more data, stop paging without an error"""


@dataclass(frozen=True)
class Failure:
    """Fetching a page failed, the whole download must be aborted"""

    cause: str


PageResult = Union[NextPage, End, Failure]


def _parse_int32(text: str) -> Optional[int]:
    """Parse a plain decimal 32-bit signed integer, None if it is not one"""
    if not _INTEGER_PATTERN.fullmatch(text):
        return None
    value = int(text)
    if value < INT_MIN or value > INT_MAX:
        return None
    return value


def parse_list_item_id(list_item_id: Optional[str]) -> Optional[Tuple[int, int]]:
    """
    Break up a composite list item id into item reference id and item type

    Args:
        list_item_id: Id like "100-1"

    Returns:
        (item_ref_id, item_type) or None if the id is malformed or the
        type is not known
    """
    if not list_item_id or not isinstance(list_item_id, str):
        return None

    parts = list_item_id.split(LIST_ITEM_ID_SEPARATOR)
    if len(parts) != 2:
        return None

    item_ref_id = _parse_int32(parts[0])
    item_type = _parse_int32(parts[1])
    if item_ref_id is None or item_type is None:
        return None

    if not ItemType.is_valid(item_type):
        return None

    return item_ref_id, item_type


def build_list_item_id(item_ref_id: int, item_type: int) -> str:
    """Inverse of parse_list_item_id"""
    return f"{item_ref_id}{LIST_ITEM_ID_SEPARATOR}{int(item_type)}"

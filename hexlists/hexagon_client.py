"""Hexagon lists API client"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests

from .models import ListsPage, RemoteList, RemoteListItem

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://seriesguide-hexagon.appspot.com/_ah/api"


def format_updated_since(timestamp_ms: int) -> str:
    """Format epoch milliseconds as an RFC 3339 UTC date-time"""
    seconds, millis = divmod(int(timestamp_ms), 1000)
    dt = datetime.fromtimestamp(seconds, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{millis:03d}Z"


def _parse_list(data: Any) -> RemoteList:
    if not isinstance(data, dict):
        raise ValueError(f"Unexpected list entry: {type(data).__name__}")

    order = data.get("order")
    if order is not None:
        try:
            order = int(order)
        except (TypeError, ValueError):
            raise ValueError(f"Unexpected list order: {order!r}")

    list_items = data.get("listItems") or []
    if not isinstance(list_items, list):
        raise ValueError(f"Unexpected list items: {type(list_items).__name__}")

    items = []
    for item in list_items:
        if not isinstance(item, dict):
            raise ValueError(f"Unexpected list item entry: {type(item).__name__}")
        items.append(RemoteListItem(list_item_id=item.get("listItemId")))

    return RemoteList(
        list_id=data.get("listId"),
        name=data.get("name"),
        order=order,
        items=items
    )


class ListsService:
    """Paginated access to the lists endpoint of Hexagon"""

    def __init__(self, session: requests.Session, base_url: str, token: str, timeout: int = 30):
        self._session = session
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout

    def get(
        self,
        limit: int,
        updated_since: Optional[int] = None,
        cursor: Optional[str] = None
    ) -> Optional[ListsPage]:
        """
        Get one page of lists

        Args:
            limit: Maximum number of lists in the page
            updated_since: Only return lists changed after this time (epoch ms)
            cursor: Continuation cursor returned with the previous page

        Returns:
            ListsPage, or None if the server sent no response body

        Raises:
            requests.RequestException: On transport, HTTP or JSON decoding errors
            ValueError: If the response body is not a lists page
        """
        url = f"{self.base_url}/lists/v1/lists"
        params: Dict[str, Any] = {"limit": limit}
        if updated_since is not None:
            params["updatedSince"] = format_updated_since(updated_since)
        if cursor:
            params["cursor"] = cursor

        headers = {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/json",
        }

        logger.debug(f"GET {url} params={params}")
        response = self._session.get(url, params=params, headers=headers, timeout=self.timeout)
        response.raise_for_status()

        if response.status_code == 204 or not response.content:
            return None

        result = response.json()
        if result is None:
            return None
        if not isinstance(result, dict):
            raise ValueError(f"Unexpected lists response: {type(result).__name__}")

        entries = result.get("lists") or []
        if not isinstance(entries, list):
            raise ValueError(f"Unexpected lists: {type(entries).__name__}")

        lists: List[RemoteList] = [_parse_list(entry) for entry in entries]
        return ListsPage(cursor=result.get("cursor"), lists=lists)


class HexagonAccount:
    """Hands out Hexagon service handles for the signed in account"""

    def __init__(self, token: Optional[str], base_url: str = DEFAULT_BASE_URL, timeout: int = 30):
        """
        Args:
            token: Access token of the signed in user, empty if not signed in
            base_url: Root URL of the Hexagon API
            timeout: Request timeout in seconds
        """
        self.token = token
        self.base_url = base_url
        self.timeout = timeout
        self._session = requests.Session()

    def is_signed_in(self) -> bool:
        return bool(self.token)

    def get_lists_service(self) -> Optional[ListsService]:
        """
        Returns:
            ListsService, or None if not signed in
        """
        if not self.is_signed_in():
            logger.debug("Not signed in to Hexagon")
            return None
        return ListsService(self._session, self.base_url, self.token, self.timeout)

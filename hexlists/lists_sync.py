"""Download lists from Hexagon and merge them into the local database"""

import logging
import time
from typing import Callable, List, Optional, Set

import requests

from .hexagon_client import HexagonAccount
from .models import End, Failure, NextPage, PageResult, RemoteList, parse_list_item_id
from .settings import SyncSettings
from .state_manager import (
    LIST_ITEMS_TABLE,
    LISTS_TABLE,
    BatchApplyError,
    DEFAULT_BATCH_SIZE,
    InsertOperation,
    Operation,
    StateManager,
    UpdateOperation,
)

logger = logging.getLogger(__name__)

LISTS_MAX_BATCH_SIZE = 10


def current_time_ms() -> int:
    return int(time.time() * 1000)


class ListsSync:
    """
    Pulls lists page by page from Hexagon and upserts them locally.

    Lists known locally are updated, unknown ones inserted. List items are
    always inserted, replacing an existing item with the same id.
    """

    def __init__(
        self,
        account: HexagonAccount,
        state_manager: StateManager,
        settings: SyncSettings,
        batch_size: int = DEFAULT_BATCH_SIZE,
        clock: Callable[[], int] = current_time_ms
    ):
        """
        Args:
            account: Provides the lists service, or None if not signed in
            state_manager: Local lists database
            settings: Store of the last lists sync time
            batch_size: Max operations per database transaction
            clock: Returns the current time in epoch milliseconds
        """
        self.account = account
        self.state = state_manager
        self.settings = settings
        self.batch_size = batch_size
        self.clock = clock

    def download_from_hexagon(self, has_merged_lists: bool) -> bool:
        """
        Download lists from Hexagon and merge them into the local database

        Args:
            has_merged_lists: If True only lists changed since the last sync are
                downloaded, otherwise all lists

        Returns:
            True if all pages were downloaded and merged, False otherwise
        """
        current_time = self.clock()
        last_sync_time = self.settings.get_last_lists_sync_time()

        if has_merged_lists:
            logger.info(f"Downloading lists changed since {last_sync_time}")
        else:
            logger.info("Downloading all lists")

        local_list_ids = self.state.get_list_ids()
        if local_list_ids is None:
            logger.error("Failed to download lists: could not query local list ids")
            return False

        cursor: Optional[str] = None
        pages = 0
        while True:
            result = self._fetch_page(has_merged_lists, last_sync_time, cursor)

            if isinstance(result, Failure):
                logger.error(f"Failed to download lists: {result.cause}")
                return False
            if isinstance(result, End):
                break

            cursor = result.cursor
            if not self.do_lists_database_update(result.lists, local_list_ids):
                return False
            pages += 1

            if not cursor:
                break

        if has_merged_lists:
            self.settings.set_last_lists_sync_time(current_time)

        logger.info(f"Lists download completed ({pages} pages merged)")
        return True

    def _fetch_page(self, has_merged_lists: bool, last_sync_time: int, cursor: Optional[str]) -> PageResult:
        """Request a single page and classify the outcome"""
        lists_service = self.account.get_lists_service()
        if lists_service is None:
            return Failure("not signed in")

        try:
            response = lists_service.get(
                limit=LISTS_MAX_BATCH_SIZE,
                updated_since=last_sync_time if has_merged_lists else None,
                cursor=cursor or None
            )
        except (requests.RequestException, ValueError) as e:
            return Failure(f"request failed: {e}")

        if response is None:
            logger.warning("Lists response is null, stopping")
            return End()

        if not response.lists:
            # empty page, assume we are done even if there is a cursor
            return End()

        logger.debug(f"Downloaded page with {len(response.lists)} lists")
        return NextPage(cursor=response.cursor, lists=response.lists)

    def build_list_operations(self, lists: List[RemoteList], local_list_ids: Set[str]) -> List[Operation]:
        """
        Build insert and update operations for a page of lists

        Items whose id can not be broken up into item id and a known type
        are skipped.
        """
        batch: List[Operation] = []
        skipped = 0

        for remote_list in lists:
            list_id = remote_list.list_id
            values = {"list_name": remote_list.name}
            if remote_list.order is not None:
                values["list_order"] = remote_list.order

            if list_id in local_list_ids:
                batch.append(UpdateOperation(
                    table=LISTS_TABLE,
                    key_column="list_id",
                    key=list_id,
                    values=values
                ))
            else:
                batch.append(InsertOperation(
                    table=LISTS_TABLE,
                    values={"list_id": list_id, **values}
                ))

            for list_item in remote_list.items:
                parsed = parse_list_item_id(list_item.list_item_id)
                if parsed is None:
                    skipped += 1
                    continue
                item_ref_id, item_type = parsed

                batch.append(InsertOperation(
                    table=LIST_ITEMS_TABLE,
                    values={
                        "list_item_id": list_item.list_item_id,
                        "item_ref_id": item_ref_id,
                        "item_type": item_type,
                        "list_id": list_id,
                    },
                    replace=True
                ))

        if skipped:
            logger.debug(f"Skipped {skipped} list items with invalid ids")

        return batch

    def do_lists_database_update(self, lists: List[RemoteList], local_list_ids: Set[str]) -> bool:
        """
        Merge a page of lists into the local database

        Args:
            lists: Lists of one downloaded page
            local_list_ids: List ids known locally before the download started

        Returns:
            True if all operations were applied, False otherwise
        """
        batch = self.build_list_operations(lists, local_list_ids)

        try:
            self.state.apply_in_small_batches(batch, self.batch_size)
        except BatchApplyError as e:
            logger.error(f"Failed to update lists database: {e}")
            return False

        logger.debug(f"Applied {len(batch)} operations for {len(lists)} lists")
        return True

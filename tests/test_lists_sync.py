#!/usr/bin/env python3
"""
Test suite for ListsSync

Tests the Hexagon lists download including:
- Incremental and full downloads and the last sync time
- Insert vs update decisions
- Skipping of malformed list item ids
- Pagination stop conditions
- Error handling
"""

import sys
import tempfile
from pathlib import Path
from typing import List, Optional

import requests

from hexlists.lists_sync import ListsSync, LISTS_MAX_BATCH_SIZE
from hexlists.models import ListsPage, RemoteList, RemoteListItem
from hexlists.settings import SyncSettings
from hexlists.state_manager import (
    BatchApplyError,
    InsertOperation,
    StateManager,
    UpdateOperation,
)

RUN_START = 1_700_000_000_000
LAST_SYNC = 1_600_000_000_000


class MockListsService:
    """Mock lists service returning scripted responses"""

    def __init__(self, responses: List):
        self.responses = list(responses)
        self.calls = []

    def get(self, limit, updated_since=None, cursor=None):
        self.calls.append({"limit": limit, "updated_since": updated_since, "cursor": cursor})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class MockAccount:
    """Mock Hexagon account, service is None when not signed in"""

    def __init__(self, service: Optional[MockListsService]):
        self.service = service

    def get_lists_service(self):
        return self.service


class FailingStateManager(StateManager):
    """StateManager whose batches always fail"""

    def apply_in_small_batches(self, operations, batch_size=100):
        raise BatchApplyError("disk full")


def make_list(list_id: str, name: str, order: Optional[int] = None, item_ids: List[str] = ()) -> RemoteList:
    return RemoteList(
        list_id=list_id,
        name=name,
        order=order,
        items=[RemoteListItem(list_item_id=i) for i in item_ids]
    )


def create_test_sync(responses, state_class=StateManager, signed_in=True):
    """Create ListsSync with a mock service, temp database and temp settings"""
    temp_dir = Path(tempfile.mkdtemp())
    state = state_class(str(temp_dir / "test.db"))
    settings = SyncSettings(str(temp_dir / "settings.json"))
    settings.set_last_lists_sync_time(LAST_SYNC)

    service = MockListsService(responses)
    account = MockAccount(service if signed_in else None)
    lists_sync = ListsSync(account, state, settings, clock=lambda: RUN_START)
    return lists_sync, service, state, settings


def test_single_page_example():
    """Test one page with a valid and an invalid item on an empty database"""
    print("🧪 Testing single page download...")

    page = ListsPage(cursor=None, lists=[make_list("5", "Favorites", 1, ["100-1", "bad-id"])])
    lists_sync, service, state, settings = create_test_sync([page])

    try:
        assert lists_sync.download_from_hexagon(has_merged_lists=True), "Download should succeed"

        assert service.calls == [{"limit": LISTS_MAX_BATCH_SIZE, "updated_since": LAST_SYNC, "cursor": None}]

        lists = state.get_lists()
        assert [(l.list_id, l.name, l.order) for l in lists] == [("5", "Favorites", 1)]

        items = state.get_list_items("5")
        assert len(items) == 1, "Invalid item should be skipped"
        assert items[0].list_item_id == "100-1"
        assert items[0].item_ref_id == 100
        assert items[0].item_type == 1

        assert settings.get_last_lists_sync_time() == RUN_START, "Last sync time should be run start"

        print("   ✅ Single page download successful")

    finally:
        state.close()


def test_build_operations_insert_vs_update():
    """Test known lists are updated and unknown lists inserted"""
    print("🧪 Testing insert vs update...")

    lists_sync, _, state, _ = create_test_sync([])
    try:
        lists = [
            make_list("known", "Known", None, ["1-1"]),
            make_list("new", "New", 4, ["2-2", "3-9", "x-1"]),
        ]
        batch = lists_sync.build_list_operations(lists, {"known"})

        assert isinstance(batch[0], UpdateOperation)
        assert batch[0].key == "known"
        assert batch[0].values == {"list_name": "Known"}, "Missing order must not be written"

        assert isinstance(batch[1], InsertOperation) and batch[1].table == "list_items"
        assert batch[1].replace, "Items are inserted with replace"

        assert isinstance(batch[2], InsertOperation) and batch[2].table == "lists"
        assert batch[2].values == {"list_id": "new", "list_name": "New", "list_order": 4}

        item_ops = [op for op in batch[3:]]
        assert len(item_ops) == 1, "Unknown type and malformed ids should be skipped"
        assert item_ops[0].values == {
            "list_item_id": "2-2", "item_ref_id": 2, "item_type": 2, "list_id": "new"
        }

        print("   ✅ Insert vs update successful")

    finally:
        state.close()


def test_update_keeps_local_order():
    """Test updating a known list without order keeps the local order"""
    print("🧪 Testing update of known list...")

    page = ListsPage(cursor=None, lists=[make_list("a", "Renamed")])
    lists_sync, _, state, _ = create_test_sync([page])

    try:
        state.apply_batch([InsertOperation(table="lists", values={
            "list_id": "a", "list_name": "Old", "list_order": 7
        })])

        assert lists_sync.download_from_hexagon(has_merged_lists=True)

        lists = state.get_lists()
        assert [(l.list_id, l.name, l.order) for l in lists] == [("a", "Renamed", 7)]

        print("   ✅ Known list updated")

    finally:
        state.close()


def test_multiple_pages():
    """Test paging continues while a cursor is returned"""
    print("🧪 Testing pagination...")

    pages = [
        ListsPage(cursor="c1", lists=[make_list("1", "One", 1, ["10-1"])]),
        ListsPage(cursor="c2", lists=[make_list("2", "Two", 2, ["20-3"])]),
        ListsPage(cursor=None, lists=[make_list("3", "Three", 3)]),
    ]
    lists_sync, service, state, settings = create_test_sync(pages)

    try:
        assert lists_sync.download_from_hexagon(has_merged_lists=True)

        assert [c["cursor"] for c in service.calls] == [None, "c1", "c2"]
        assert state.get_list_ids() == {"1", "2", "3"}
        assert settings.get_last_lists_sync_time() == RUN_START

        print("   ✅ Pagination successful")

    finally:
        state.close()


def test_empty_page_stops_even_with_cursor():
    """Test an empty page ends the download although a cursor is set"""
    print("🧪 Testing empty page...")

    pages = [
        ListsPage(cursor="c1", lists=[make_list("1", "One")]),
        ListsPage(cursor="c2", lists=[]),
        ListsPage(cursor=None, lists=[make_list("2", "Never")]),
    ]
    lists_sync, service, state, settings = create_test_sync(pages)

    try:
        assert lists_sync.download_from_hexagon(has_merged_lists=True)
        assert len(service.calls) == 2, "Should stop after the empty page"
        assert state.get_list_ids() == {"1"}
        assert settings.get_last_lists_sync_time() == RUN_START

        print("   ✅ Empty page stops download")

    finally:
        state.close()


def test_null_response_is_success():
    """Test a null response mid-run stops paging and still succeeds"""
    print("🧪 Testing null response...")

    pages = [
        ListsPage(cursor="c1", lists=[make_list("1", "One")]),
        None,
    ]
    lists_sync, service, state, settings = create_test_sync(pages)

    try:
        assert lists_sync.download_from_hexagon(has_merged_lists=True), "Null response is not a failure"
        assert len(service.calls) == 2
        assert state.get_list_ids() == {"1"}
        assert settings.get_last_lists_sync_time() == RUN_START

        print("   ✅ Null response handled")

    finally:
        state.close()


def test_transport_error_fails():
    """Test a request error aborts and keeps earlier pages"""
    print("🧪 Testing transport error...")

    pages = [
        ListsPage(cursor="c1", lists=[make_list("1", "One")]),
        requests.ConnectionError("connection reset"),
    ]
    lists_sync, _, state, settings = create_test_sync(pages)

    try:
        assert not lists_sync.download_from_hexagon(has_merged_lists=True)
        assert state.get_list_ids() == {"1"}, "Earlier page should stay committed"
        assert settings.get_last_lists_sync_time() == LAST_SYNC, "Last sync time must not change"

        print("   ✅ Transport error handled")

    finally:
        state.close()


def test_not_signed_in_fails():
    """Test the download fails without a lists service"""
    print("🧪 Testing not signed in...")

    lists_sync, _, state, settings = create_test_sync([], signed_in=False)

    try:
        assert not lists_sync.download_from_hexagon(has_merged_lists=True)
        assert settings.get_last_lists_sync_time() == LAST_SYNC

        print("   ✅ Not signed in handled")

    finally:
        state.close()


def test_database_failure_aborts():
    """Test a failing merge aborts before requesting more pages"""
    print("🧪 Testing database failure...")

    pages = [
        ListsPage(cursor="c1", lists=[make_list("1", "One")]),
        ListsPage(cursor=None, lists=[make_list("2", "Two")]),
    ]
    lists_sync, service, state, settings = create_test_sync(pages, state_class=FailingStateManager)

    try:
        assert not lists_sync.download_from_hexagon(has_merged_lists=True)
        assert len(service.calls) == 1, "No further pages after a failed merge"
        assert settings.get_last_lists_sync_time() == LAST_SYNC

        print("   ✅ Database failure handled")

    finally:
        state.close()


def test_unavailable_database_fails():
    """Test the download fails when local list ids can not be queried"""
    print("🧪 Testing unavailable database...")

    lists_sync, service, state, settings = create_test_sync([ListsPage(lists=[make_list("1", "One")])])
    state.close()

    assert not lists_sync.download_from_hexagon(has_merged_lists=True)
    assert service.calls == [], "Nothing should be requested"
    assert settings.get_last_lists_sync_time() == LAST_SYNC

    print("   ✅ Unavailable database handled")


def test_full_download_keeps_last_sync_time():
    """Test a full download requests everything and never changes the last sync time"""
    print("🧪 Testing full download...")

    pages = [ListsPage(cursor=None, lists=[make_list("1", "One", 1, ["5-1"])])]
    lists_sync, service, state, settings = create_test_sync(pages)

    try:
        assert lists_sync.download_from_hexagon(has_merged_lists=False)
        assert service.calls[0]["updated_since"] is None, "Full download has no updated since"
        assert settings.get_last_lists_sync_time() == LAST_SYNC

        failing_sync, _, failing_state, failing_settings = create_test_sync(
            [requests.Timeout("timed out")]
        )
        try:
            assert not failing_sync.download_from_hexagon(has_merged_lists=False)
            assert failing_settings.get_last_lists_sync_time() == LAST_SYNC
        finally:
            failing_state.close()

        print("   ✅ Full download successful")

    finally:
        state.close()


def test_snapshot_not_refreshed_within_run():
    """Test lists inserted earlier in a run are still treated as unknown"""
    print("🧪 Testing local id snapshot...")

    pages = [
        ListsPage(cursor="c1", lists=[make_list("1", "One")]),
        ListsPage(cursor=None, lists=[make_list("1", "One again")]),
    ]
    lists_sync, _, state, _ = create_test_sync(pages)

    try:
        # second page inserts "1" again, which the database rejects
        assert not lists_sync.download_from_hexagon(has_merged_lists=True)
        assert [l.name for l in state.get_lists()] == ["One"]

        print("   ✅ Snapshot taken once per run")

    finally:
        state.close()


def test_out_of_range_item_id_skipped():
    """Test an item id too large for an integer is skipped, the list is still merged"""
    print("🧪 Testing out of range item id...")

    page = ListsPage(cursor=None, lists=[
        make_list("5", "Favorites", 1, ["99999999999999999999-1", "100-1"])
    ])
    lists_sync, _, state, settings = create_test_sync([page])

    try:
        assert lists_sync.download_from_hexagon(has_merged_lists=True)
        assert [i.list_item_id for i in state.get_list_items("5")] == ["100-1"]
        assert settings.get_last_lists_sync_time() == RUN_START

        print("   ✅ Out of range item id skipped")

    finally:
        state.close()


def test_unstorable_order_fails():
    """Test a list order too large for the database fails the download instead of raising"""
    print("🧪 Testing unstorable list order...")

    page = ListsPage(cursor=None, lists=[make_list("5", "Favorites", 99999999999999999999)])
    lists_sync, _, state, settings = create_test_sync([page])

    try:
        assert lists_sync.download_from_hexagon(has_merged_lists=True) is False
        assert state.get_list_ids() == set()
        assert settings.get_last_lists_sync_time() == LAST_SYNC

        print("   ✅ Unstorable order handled")

    finally:
        state.close()


def run_all_tests():
    """Run all lists sync tests"""
    print("🚀 Running ListsSync Tests")
    print("=" * 50)

    tests = [
        test_single_page_example,
        test_build_operations_insert_vs_update,
        test_update_keeps_local_order,
        test_multiple_pages,
        test_empty_page_stops_even_with_cursor,
        test_null_response_is_success,
        test_transport_error_fails,
        test_not_signed_in_fails,
        test_database_failure_aborts,
        test_unavailable_database_fails,
        test_full_download_keeps_last_sync_time,
        test_snapshot_not_refreshed_within_run,
        test_out_of_range_item_id_skipped,
        test_unstorable_order_fails,
    ]

    failed = 0
    for test in tests:
        try:
            test()
        except Exception as e:
            failed += 1
            print(f"   ❌ {test.__name__} failed with exception: {e}")
            import traceback
            traceback.print_exc()

    print("\n" + "=" * 50)
    print(f"📊 Test Results: {len(tests) - failed} passed, {failed} failed")
    return failed == 0


if __name__ == "__main__":
    sys.exit(0 if run_all_tests() else 1)

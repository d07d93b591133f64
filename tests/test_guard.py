"""Tests for pollsync/guard.py."""

from pollsync.guard import OverrideGuard
from pollsync.models import Conflict
from tests.conftest import make_sheet


async def test_no_matches_means_no_conflicts_and_no_read(layout):
    store = make_sheet()
    assert await OverrideGuard(store, layout).find_conflicts({}, "F") == []
    assert store.reads == []


async def test_blank_cells_are_not_conflicts(layout):
    store = make_sheet(cells={"F8": "  "})
    conflicts = await OverrideGuard(store, layout).find_conflicts({"@a": 7, "@b": 8}, "F")
    assert conflicts == []


async def test_occupied_cells_are_conflicts(layout):
    store = make_sheet(cells={"G7": 1, "G10": "paid"})
    guard = OverrideGuard(store, layout)
    conflicts = await guard.find_conflicts({"@a": 7, "@b": 9, "@c": 10}, "G")
    assert conflicts == [Conflict("@a", 1), Conflict("@c", "paid")]
    assert store.reads == ["G7:G10"]


async def test_zero_counts_as_a_value(layout):
    store = make_sheet(cells={"F7": 0})
    conflicts = await OverrideGuard(store, layout).find_conflicts({"@a": 7}, "F")
    assert conflicts == [Conflict("@a", 0)]

"""Shared pytest fixtures."""

import re
from collections.abc import AsyncIterator, Sequence
from typing import Any

import pytest

from config.config_loader import SheetLayout
from pollsync.adapters.base import ChatTransport, TabularStore
from pollsync.columns import column_to_index
from pollsync.engine import ConversationEngine
from pollsync.errors import StoreUnavailable
from pollsync.models import CellUpdate, Event
from pollsync.votes import PollRegistry

_REF_RE = re.compile(r"^([A-Z]+)(\d*)$")


def _split_ref(ref: str) -> tuple[int, int | None]:
    m = _REF_RE.match(ref)
    if not m:
        raise ValueError(f"Bad cell reference: {ref}")
    return column_to_index(m.group(1)), int(m.group(2)) if m.group(2) else None


class FakeStore(TabularStore):
    """In-memory grid that answers ranges the way the Sheets values API does."""

    def __init__(self, cells: dict[str, Any] | None = None) -> None:
        self.cells: dict[tuple[int, int], Any] = {}
        for ref, value in (cells or {}).items():
            self.set(ref, value)
        self.reads: list[str] = []
        self.writes: list[list[CellUpdate]] = []
        self.fail_reads = False
        self.fail_writes = False

    def set(self, ref: str, value: Any) -> None:
        col, row = _split_ref(ref)
        self.cells[(col, row)] = value

    def get(self, ref: str) -> Any:
        col, row = _split_ref(ref)
        return self.cells.get((col, row))

    def _max_row(self) -> int:
        return max((row for _, row in self.cells), default=0)

    async def read_range(self, sheet: str, a1_range: str) -> list[list[Any]]:
        self.reads.append(a1_range)
        if self.fail_reads:
            raise StoreUnavailable(f"reading {a1_range}", "backend down")

        start, _, end = a1_range.partition(":")
        c1, r1 = _split_ref(start)
        c2, r2 = _split_ref(end) if end else (c1, r1)
        r1 = r1 or 1
        r2 = r2 if r2 is not None else max(self._max_row(), r1)

        grid: list[list[Any]] = []
        for row in range(r1, r2 + 1):
            line = [self.cells.get((col, row), "") for col in range(c1, c2 + 1)]
            while line and line[-1] == "":
                line.pop()
            grid.append(line)
        while grid and not grid[-1]:
            grid.pop()
        return grid

    async def batch_write(self, sheet: str, updates: Sequence[CellUpdate]) -> None:
        if self.fail_writes:
            raise StoreUnavailable(f"writing {len(updates)} cell(s)", "backend down")
        self.writes.append(list(updates))
        for update in updates:
            self.set(update.cell, update.value)

    async def ping(self) -> None:
        if self.fail_reads:
            raise StoreUnavailable("connecting to spreadsheet", "backend down")


class RecordingTransport(ChatTransport):
    """Test double ChatTransport: replays queued events and records replies."""

    def __init__(self, queued: Sequence[Event] = ()) -> None:
        self.queued = list(queued)
        self.delivered: list[tuple[str, str]] = []
        self.polls: list[tuple[str, str, list[str]]] = []
        self.closed = False

    def name(self) -> str:
        return "recording"

    async def events(self) -> AsyncIterator[Event]:
        for event in self.queued:
            yield event

    async def deliver(self, conversation_id: str, text: str) -> None:
        self.delivered.append((conversation_id, text))

    async def create_poll(self, conversation_id: str, question: str, options: Sequence[str]) -> str:
        self.polls.append((conversation_id, question, list(options)))
        return f"poll-{len(self.polls)}"

    async def ping(self) -> None:
        return None

    async def close(self) -> None:
        self.closed = True


def make_sheet(
    labels: Sequence[Any] = (),
    nicknames: Sequence[str] = (),
    cells: dict[str, Any] | None = None,
) -> FakeStore:
    """Labels go into row 1 from column F, nicknames into column B from row 7."""
    store = FakeStore(cells)
    first = column_to_index("F")
    for offset, label in enumerate(labels):
        store.cells[(first + offset, 1)] = label
    for offset, nickname in enumerate(nicknames):
        store.set(f"B{7 + offset}", nickname)
    return store


@pytest.fixture
def layout() -> SheetLayout:
    return SheetLayout(exclude_column_pattern=r"^баланс\s+")


@pytest.fixture
def registry() -> PollRegistry:
    return PollRegistry(capacity=16)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def empty_store() -> FakeStore:
    return make_sheet(nicknames=["@a", "b", "@Carol"])


@pytest.fixture
def engine_factory(layout, registry, transport):
    def _build(store: FakeStore) -> ConversationEngine:
        return ConversationEngine(store, layout, registry, transport)
    return _build

"""Column-letter algebra and target-column resolution (detect, search, allocate)."""

import logging
import re
from dataclasses import dataclass
from typing import Any

from config.config_loader import SheetLayout
from pollsync.adapters.base import TabularStore
from pollsync.models import ColumnCandidate

logger = logging.getLogger(__name__)

_COLUMN_TOKEN_RE = re.compile(r"^[A-Za-z]{1,3}$")
_EXPLICIT_COLUMN_RE = re.compile(r"^col(?:umn)?\s+([A-Za-z]{1,3})$", re.IGNORECASE)


def column_to_index(letter: str) -> int:
    """Convert a column letter to a 0-based index. "A" -> 0, "Z" -> 25, "AA" -> 26."""
    if not letter or not letter.isalpha():
        raise ValueError(f"Invalid column letter: {letter!r}")
    index = 0
    for ch in letter.upper():
        index = index * 26 + (ord(ch) - ord("A") + 1)
    return index - 1


def index_to_column(index: int) -> str:
    """Convert a 0-based index to a column letter. 0 -> "A", 26 -> "AA"."""
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")
    result = ""
    index += 1
    while index > 0:
        index, rem = divmod(index - 1, 26)
        result = chr(ord("A") + rem) + result
    return result


def next_column(letter: str) -> str:
    """Successor column: "O" -> "P", "Z" -> "AA", "AZ" -> "BA"."""
    return index_to_column(column_to_index(letter) + 1)


def a1(column: str, row: int) -> str:
    return f"{column}{row}"


def is_blank(value: Any) -> bool:
    """None, empty and whitespace-only cells are all blank."""
    return value is None or str(value).strip() == ""


def is_column_token(text: str, first_column: str = "A", last_column: str | None = None) -> bool:
    """True for 1-3 letters (any case) addressing a column in [first_column, last_column]."""
    if not _COLUMN_TOKEN_RE.match(text):
        return False
    index = column_to_index(text)
    if index < column_to_index(first_column):
        return False
    return last_column is None or index <= column_to_index(last_column)


def explicit_column(text: str) -> str | None:
    """Column letter of a "col N" / "column N" reply, uppercased. None for anything else."""
    m = _EXPLICIT_COLUMN_RE.match(text.strip())
    return m.group(1).upper() if m else None


@dataclass(frozen=True)
class NotFound:
    query: str


@dataclass(frozen=True)
class Found:
    candidate: ColumnCandidate


@dataclass(frozen=True)
class Ambiguous:
    candidates: tuple[ColumnCandidate, ...]


SearchResult = NotFound | Found | Ambiguous


class ColumnResolver:
    """Locates or allocates the date column to write into."""

    def __init__(self, store: TabularStore, layout: SheetLayout) -> None:
        self._store = store
        self._layout = layout
        self._exclude = (
            re.compile(layout.exclude_column_pattern, re.IGNORECASE)
            if layout.exclude_column_pattern
            else None
        )

    def allocate_first_column(self) -> str:
        return self._layout.first_data_column

    async def _read_label_row(self) -> list[Any]:
        row = self._layout.label_row
        rng = f"{a1(self._layout.first_data_column, row)}:{a1(self._layout.scan_end_column, row)}"
        grid = await self._store.read_range(self._layout.sheet_name, rng)
        return list(grid[0]) if grid else []

    async def detect_last_column(self) -> ColumnCandidate | None:
        """Return the last occupied column before the first blank label, or None.

        The scan stops at the first gap: anything right of a blank label is ignored.

        Raises:
            StoreUnavailable: If the label row cannot be read.
        """
        values = await self._read_label_row()
        first_index = column_to_index(self._layout.first_data_column)

        last: ColumnCandidate | None = None
        for offset, value in enumerate(values):
            if is_blank(value):
                break
            last = ColumnCandidate(
                column=index_to_column(first_index + offset),
                label=str(value).strip(),
            )

        logger.debug("Detected last column: %s", last)
        return last

    async def search_by_label(self, text: str) -> SearchResult:
        """Case-insensitive label search. Exact matches win over substring matches.

        Raises:
            StoreUnavailable: If the label row cannot be read.
        """
        query = text.strip().casefold()
        if not query:
            return NotFound(query=text)

        values = await self._read_label_row()
        first_index = column_to_index(self._layout.first_data_column)

        exact: list[ColumnCandidate] = []
        partial: list[ColumnCandidate] = []
        for offset, value in enumerate(values):
            if is_blank(value):
                continue
            label = str(value).strip()
            if self._exclude and self._exclude.search(label):
                continue
            candidate = ColumnCandidate(column=index_to_column(first_index + offset), label=label)
            folded = label.casefold()
            if folded == query:
                exact.append(candidate)
            elif query in folded:
                partial.append(candidate)

        matches = exact or partial
        logger.debug("Label search %r: %d exact, %d partial", text, len(exact), len(partial))
        if not matches:
            return NotFound(query=text)
        if len(matches) == 1:
            return Found(candidate=matches[0])
        return Ambiguous(candidates=tuple(matches))

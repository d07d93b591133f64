"""Header-field access for a date column: label, cost and headcount rows."""

import logging
from typing import Any

from config.config_loader import SheetLayout
from pollsync.adapters.base import TabularStore
from pollsync.columns import a1, is_blank
from pollsync.errors import ValidationFailed
from pollsync.models import CellUpdate, ColumnMetadata

logger = logging.getLogger(__name__)


def _cell(grid: list[list[Any]], row_offset: int) -> Any:
    if row_offset < len(grid) and grid[row_offset]:
        return grid[row_offset][0]
    return None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().replace(",", "."))
    except ValueError:
        return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class MetadataCollector:
    """Reads and writes the three header rows of a column.

    Prompting order (label, then cost, then headcount) is the engine's concern.
    """

    def __init__(self, store: TabularStore, layout: SheetLayout) -> None:
        self._store = store
        self._layout = layout

    async def read_metadata(self, column: str) -> ColumnMetadata:
        """Blank cells and unparseable numbers come back as None.

        Raises:
            StoreUnavailable: If the header rows cannot be read.
        """
        rows = (self._layout.label_row, self._layout.cost_row, self._layout.headcount_row)
        top, bottom = min(rows), max(rows)
        grid = await self._store.read_range(
            self._layout.sheet_name, f"{a1(column, top)}:{a1(column, bottom)}"
        )

        metadata = ColumnMetadata()

        label = _cell(grid, self._layout.label_row - top)
        if not is_blank(label):
            metadata.label = str(label).strip()

        cost = _cell(grid, self._layout.cost_row - top)
        if not is_blank(cost):
            metadata.cost = _as_float(cost)

        headcount = _cell(grid, self._layout.headcount_row - top)
        if not is_blank(headcount):
            metadata.headcount = _as_int(headcount)

        logger.debug("Column %s metadata: %s", column, metadata)
        return metadata

    async def _write(self, column: str, row: int, value: Any) -> None:
        await self._store.batch_write(
            self._layout.sheet_name, [CellUpdate(cell=a1(column, row), value=value)]
        )

    async def write_label(self, column: str, text: str) -> None:
        label = text.strip()
        if not label:
            raise ValidationFailed("❌ Please provide a date name")
        await self._write(column, self._layout.label_row, label)
        logger.info("Column %s label set to %r", column, label)

    async def write_cost(self, column: str, cost: float) -> None:
        if cost < 0:
            raise ValidationFailed("❌ Please provide a valid positive number for the cost")
        value: int | float = int(cost) if float(cost).is_integer() else cost
        await self._write(column, self._layout.cost_row, value)
        logger.info("Column %s cost set to %s", column, value)

    async def write_headcount(self, column: str, headcount: int) -> None:
        if headcount < 0:
            raise ValidationFailed("❌ Please provide a valid positive integer for the player count")
        await self._write(column, self._layout.headcount_row, headcount)
        logger.info("Column %s headcount set to %d", column, headcount)

"""Detect target cells that already hold a value before a write."""

import logging
from collections.abc import Mapping

from config.config_loader import SheetLayout
from pollsync.adapters.base import TabularStore
from pollsync.columns import a1, is_blank
from pollsync.models import Conflict

logger = logging.getLogger(__name__)


class OverrideGuard:
    def __init__(self, store: TabularStore, layout: SheetLayout) -> None:
        self._store = store
        self._layout = layout

    async def find_conflicts(self, matched_rows: Mapping[str, int], column: str) -> list[Conflict]:
        """Return one Conflict per identity whose target cell is occupied.

        An empty result means the write is safe without confirmation.

        Raises:
            StoreUnavailable: If the target cells cannot be read.
        """
        if not matched_rows:
            return []

        top = min(matched_rows.values())
        bottom = max(matched_rows.values())
        grid = await self._store.read_range(
            self._layout.sheet_name, f"{a1(column, top)}:{a1(column, bottom)}"
        )

        conflicts: list[Conflict] = []
        for identity, row in matched_rows.items():
            offset = row - top
            value = grid[offset][0] if offset < len(grid) and grid[offset] else None
            if not is_blank(value):
                conflicts.append(Conflict(identity=identity, existing_value=value))

        logger.debug("Column %s: %d conflicting cell(s)", column, len(conflicts))
        return conflicts

"""Final batched write and the outcome report."""

import logging
from collections.abc import Mapping, Sequence

from config.config_loader import SheetLayout
from pollsync.adapters.base import TabularStore
from pollsync.columns import a1
from pollsync.guard import OverrideGuard
from pollsync.models import CellUpdate, WriteReport

logger = logging.getLogger(__name__)


class WriteCoordinator:
    def __init__(self, store: TabularStore, layout: SheetLayout, guard: OverrideGuard) -> None:
        self._store = store
        self._layout = layout
        self._guard = guard

    async def write(
        self,
        matched_rows: Mapping[str, int],
        column: str,
        requested: Sequence[str],
        *,
        override: bool,
        skip: Sequence[str] = (),
    ) -> WriteReport:
        """Write the configured value into every matched row of column.

        Args:
            matched_rows: identity -> row for rows to write.
            column: Target column letter.
            requested: Every identity the operator asked for (drives the unmatched list).
            override: When False, cells occupied at write time are skipped too.
            skip: Identities never written (declined conflicts).

        Raises:
            StoreUnavailable: If the write (or the pre-write check) fails.
        """
        skip_set = set(skip)
        skipped = [identity for identity in matched_rows if identity in skip_set]
        to_write = {i: r for i, r in matched_rows.items() if i not in skip_set}

        if not override and to_write:
            late = await self._guard.find_conflicts(to_write, column)
            for conflict in late:
                to_write.pop(conflict.identity, None)
                skipped.append(conflict.identity)

        unmatched = [identity for identity in requested if identity not in matched_rows]

        logger.info(
            "Sheet update: column %s, users %s, override %s, skipped %s",
            column,
            ", ".join(to_write) or "none",
            override,
            ", ".join(skipped) or "none",
        )

        if to_write:
            updates = [
                CellUpdate(cell=a1(column, row), value=self._layout.write_value)
                for row in to_write.values()
            ]
            await self._store.batch_write(self._layout.sheet_name, updates)

        report = WriteReport(
            column=column,
            updated=list(to_write),
            skipped=skipped,
            unmatched=unmatched,
        )
        logger.info(
            "Sheet update complete: column %s, updated %d, not found %d",
            column,
            report.updated_count,
            len(report.unmatched),
        )
        return report

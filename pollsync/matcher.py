"""Identity parsing and matching against the nickname column."""

import logging
import re
from collections.abc import Sequence

from config.config_loader import SheetLayout
from pollsync.adapters.base import TabularStore
from pollsync.columns import a1, is_blank

logger = logging.getLogger(__name__)

_SPLIT_RE = re.compile(r"[\s,;]+")
_MARKER = "@"


def normalize_identity(value: str) -> str:
    """Strip leading @ markers and surrounding space, then lowercase."""
    return str(value).strip().lstrip(_MARKER).strip().lower()


def parse_identities(text: str) -> list[str]:
    """Split free text into "@name" handles.

    Accepts "@a @b", "a, b", "a;b" or one per line. Duplicates (after
    normalization) are dropped, first spelling kept.
    """
    seen: set[str] = set()
    identities: list[str] = []
    for part in _SPLIT_RE.split(text):
        bare = part.strip().lstrip(_MARKER)
        if not bare:
            continue
        key = bare.lower()
        if key in seen:
            continue
        seen.add(key)
        identities.append(f"{_MARKER}{bare}")
    return identities


class IdentityMatcher:
    def __init__(self, store: TabularStore, layout: SheetLayout) -> None:
        self._store = store
        self._layout = layout

    async def match(self, identities: Sequence[str]) -> dict[str, int]:
        """Map each input identity to its sheet row. Unmatched identities are absent.

        Raises:
            StoreUnavailable: If the nickname column cannot be read.
        """
        wanted: dict[str, str] = {}
        for identity in identities:
            wanted[normalize_identity(identity)] = identity
        if not wanted:
            return {}

        column = self._layout.identity_column
        first_row = self._layout.first_data_row
        grid = await self._store.read_range(
            self._layout.sheet_name, f"{a1(column, first_row)}:{column}"
        )

        matched: dict[str, int] = {}
        for offset, row in enumerate(grid):
            if not row or is_blank(row[0]):
                continue
            original = wanted.get(normalize_identity(row[0]))
            if original is not None:
                # A nickname repeated in the sheet resolves to its last row
                matched[original] = first_row + offset

        logger.info("Matched %d of %d identities", len(matched), len(wanted))
        return matched

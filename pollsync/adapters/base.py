"""Abstract collaborators consumed by the conversation core."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import Any

from pollsync.models import CellUpdate, Event


class TabularStore(ABC):
    """Range-addressed spreadsheet access. Rows are 1-indexed, columns are letters."""

    @abstractmethod
    async def read_range(self, sheet: str, a1_range: str) -> list[list[Any]]:
        """Read a rectangular range.

        Args:
            sheet: Sheet/tab name.
            a1_range: Range in A1 notation without the sheet prefix (e.g. "F1:ZZ1").

        Returns:
            Row-major grid of scalar cells. Trailing blank rows and cells may be omitted.

        Raises:
            StoreUnavailable: On any backend failure.
        """
        ...

    @abstractmethod
    async def batch_write(self, sheet: str, updates: Sequence[CellUpdate]) -> None:
        """Write single-cell values in one request.

        Raises:
            StoreUnavailable: On any backend failure.
        """
        ...

    @abstractmethod
    async def ping(self) -> None:
        """Cheap call proving the store is reachable. Raises StoreUnavailable."""
        ...


class ChatTransport(ABC):
    """Message delivery and poll primitives of a chat platform."""

    @abstractmethod
    def name(self) -> str:
        """Return the short transport name (e.g. 'telegram', 'console')."""
        ...

    @abstractmethod
    def events(self) -> AsyncIterator[Event]:
        """Yield inbound events until the transport is closed."""
        ...

    @abstractmethod
    async def deliver(self, conversation_id: str, text: str) -> None:
        """Send a text reply. Raises TransportError."""
        ...

    @abstractmethod
    async def create_poll(self, conversation_id: str, question: str, options: Sequence[str]) -> str:
        """Post a non-anonymous poll and return its poll id. Raises TransportError."""
        ...

    @abstractmethod
    async def ping(self) -> None:
        """Cheap call proving the transport is reachable. Raises TransportError."""
        ...

    async def close(self) -> None:
        """Release network resources. Default is a no-op."""
        return None

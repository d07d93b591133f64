"""Poll tracking: a bounded registry of PollRecords and the vote aggregator feeding it."""

import logging
import time
from collections import OrderedDict
from collections.abc import Callable, Sequence

from pollsync.models import PollRecord, PollVoteChanged

logger = logging.getLogger(__name__)


class PollRegistry:
    """Poll id -> PollRecord cache with FIFO eviction and an optional TTL."""

    def __init__(
        self,
        capacity: int = 256,
        ttl_sec: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be > 0, got {capacity}")
        self._capacity = capacity
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._polls: OrderedDict[str, tuple[float, PollRecord]] = OrderedDict()

    def __len__(self) -> int:
        self._expire()
        return len(self._polls)

    def __contains__(self, poll_id: str) -> bool:
        return self.get(poll_id) is not None

    def _expire(self) -> None:
        if self._ttl_sec is None:
            return
        cutoff = self._clock() - self._ttl_sec
        # Insertion order is creation order, so expired entries sit at the front
        while self._polls:
            poll_id, (created, _) = next(iter(self._polls.items()))
            if created > cutoff:
                break
            self._polls.popitem(last=False)
            logger.info("Poll %s expired", poll_id)

    def register(self, poll_id: str, question: str, options: Sequence[str]) -> PollRecord:
        self._expire()
        record = PollRecord(question=question, options=tuple(options))
        self._polls.pop(poll_id, None)
        self._polls[poll_id] = (self._clock(), record)
        while len(self._polls) > self._capacity:
            evicted, _ = self._polls.popitem(last=False)
            logger.info("Poll %s evicted (capacity %d)", evicted, self._capacity)
        return record

    def get(self, poll_id: str) -> PollRecord | None:
        self._expire()
        entry = self._polls.get(poll_id)
        return entry[1] if entry else None


class VoteAggregator:
    """Keeps each poll's ballot equal to every voter's latest full selection."""

    def __init__(self, registry: PollRegistry) -> None:
        self._registry = registry

    def apply(self, event: PollVoteChanged) -> bool:
        """Replace the voter's previous selection with the one in the event.

        Returns False when the poll is not tracked (the event is ignored).
        """
        record = self._registry.get(event.poll_id)
        if record is None:
            logger.debug("Vote for untracked poll %s ignored", event.poll_id)
            return False

        for voters in record.ballot.values():
            voters.discard(event.voter)

        selected: list[str] = []
        for option_id in event.option_ids:
            if not 0 <= option_id < len(record.options):
                logger.warning("Poll %s: option %d out of range, ignored", event.poll_id, option_id)
                continue
            record.ballot.setdefault(option_id, set()).add(event.voter)
            selected.append(record.options[option_id])

        if selected:
            logger.info("Poll %s: %s voted %s", event.poll_id, event.voter, ", ".join(selected))
        else:
            logger.info("Poll %s: %s retracted vote", event.poll_id, event.voter)
        return True

    def voters_for(self, poll_id: str, option_index: int) -> set[str]:
        record = self._registry.get(poll_id)
        if record is None:
            return set()
        return set(record.ballot.get(option_index, set()))

"""In-memory timeline of memories, searchable by time window."""

import bisect
import logging
from datetime import datetime
from typing import Dict, List, Tuple

from casual_recall.models import Memory, local_naive

logger = logging.getLogger(__name__)


class InMemoryTemporalIndex:
    """
    Memories kept sorted by timestamp.

    Satisfies the TemporalSource protocol. Lookups are O(log n + m) via
    bisect; the index is rebuilt by the caller on startup.
    """

    def __init__(self):
        self._keys: List[Tuple[datetime, str]] = []
        self._memories: Dict[str, Memory] = {}

    def index(self, memory: Memory) -> None:
        """Add a memory, replacing any earlier entry with the same id."""
        self.remove(memory.id)

        key = (memory.timestamp, memory.id)
        bisect.insort(self._keys, key)
        self._memories[memory.id] = memory

    def remove(self, memory_id: str) -> bool:
        memory = self._memories.pop(memory_id, None)
        if memory is None:
            return False

        key = (memory.timestamp, memory_id)
        position = bisect.bisect_left(self._keys, key)
        if position < len(self._keys) and self._keys[position] == key:
            del self._keys[position]
        return True

    def get(self, memory_id: str) -> Memory:
        return self._memories[memory_id]

    async def memories_between(self, start: datetime, end: datetime) -> List[Memory]:
        start, end = local_naive(start), local_naive(end)
        if start > end:
            return []

        low = bisect.bisect_left(self._keys, (start, ""))
        memories = []
        for timestamp, memory_id in self._keys[low:]:
            if timestamp > end:
                break
            memories.append(self._memories[memory_id])

        logger.debug(f"{len(memories)} memories between {start.isoformat()} and {end.isoformat()}")
        return memories

    def __len__(self) -> int:
        return len(self._memories)

    def __contains__(self, memory_id: object) -> bool:
        return memory_id in self._memories

from __future__ import annotations

from collections import OrderedDict
from typing import Generic, Hashable, Optional, TypeVar

from gemcrush import constants

V = TypeVar("V")


class TranspositionTable(Generic[V]):
    """Bounded memo for search results.

    Eviction is first-in first-out: when full, the oldest inserted key is
    dropped regardless of how recently it was read. Re-storing an existing
    key keeps its original insertion slot.
    """

    def __init__(self, max_size: int = constants.MAX_TABLE_SIZE) -> None:
        self.max_size = max_size
        self._entries: "OrderedDict[Hashable, V]" = OrderedDict()
        self.hits = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def get(self, key: Hashable) -> Optional[V]:
        value = self._entries.get(key)
        if value is not None:
            self.hits += 1
        return value

    def store(self, key: Hashable, value: V) -> None:
        if self.max_size <= 0:
            return
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._entries.popitem(last=False)
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0

    def keys(self):
        return list(self._entries.keys())

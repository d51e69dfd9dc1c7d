"""
Prepared statement cache for a session handle.

Maps normalized query text to the name the statement was prepared under.
The cache is bounded and evicts the least recently used entry; the caller is
responsible for deallocating an evicted statement on the session.
"""

from collections import OrderedDict
from typing import Optional


class StatementCache:
    """LRU cache of prepared statement names keyed by normalized query text."""

    def __init__(self, capacity: int = 128):
        """Initialize the cache.

        :param capacity: Maximum number of prepared statements kept.
        :raises ValueError: If capacity is not positive.
        """
        if capacity <= 0:
            raise ValueError("Statement cache capacity must be positive")

        self.capacity = capacity
        self._entries: "OrderedDict[str, str]" = OrderedDict()

    def get(self, query: str) -> Optional[str]:
        """Return the statement name for the query and mark it as recently used."""
        name = self._entries.get(query)
        if name is not None:
            self._entries.move_to_end(query)
        return name

    def put(self, query: str, name: str) -> Optional[str]:
        """Store a prepared statement.

        :param query: Normalized query text.
        :param name: Name the statement was prepared under.
        :returns: The evicted statement name, if the cache overflowed.
        """
        self._entries[query] = name
        self._entries.move_to_end(query)

        if len(self._entries) > self.capacity:
            _, evicted = self._entries.popitem(last=False)
            return evicted
        return None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, query: object) -> bool:
        return query in self._entries

"""Cache lifetimes per upstream path family.

Observations change constantly, taxonomy almost never.
"""

from typing import Iterable


class TTLPolicy:
    """Ordered (prefix, seconds) table; the first matching prefix wins."""

    def __init__(self, rules: Iterable[tuple[str, int]], default_ttl: int):
        self.rules = tuple((prefix, int(ttl)) for prefix, ttl in rules)
        self.default_ttl = default_ttl

    def ttl_for(self, path: str) -> int:
        """Return the cache lifetime in seconds for a normalized path."""
        for prefix, ttl in self.rules:
            if path.startswith(prefix):
                return ttl
        return self.default_ttl

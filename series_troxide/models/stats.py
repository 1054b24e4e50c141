"""
Dataclass for tracking cache statistics over a session.
"""

import threading
from dataclasses import dataclass, field


@dataclass
class CacheStats:
    """Counts cache hits and misses reported by the cache store."""

    hits: int = 0
    misses: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def record(self, hit: bool) -> None:
        """
        Records a single lookup. Matches the cache store's stats callback
        signature, so a bound method can be handed to it directly.
        """
        with self._lock:
            if hit:
                self.hits += 1
            else:
                self.misses += 1

    @property
    def lookups(self) -> int:
        return self.hits + self.misses

    @property
    def hit_rate(self) -> float:
        """Fraction of lookups served from disk, 0.0 when nothing was looked up."""
        if not self.lookups:
            return 0.0
        return self.hits / self.lookups

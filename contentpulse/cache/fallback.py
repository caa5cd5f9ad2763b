"""
In-Process Fallback Store

Serves cache traffic when Redis is unreachable. Single process only,
empty after restart.

Expiry happens two ways:
- Lazily on read, once an entry's age reaches its own TTL
- A background sweep removing expired entries plus anything older than
  a fixed ceiling, so values written but never read again don't pile up
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional


logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 300
MAX_ENTRY_AGE_SECONDS = 3600
MAX_ENTRIES = 10000


@dataclass
class FallbackEntry:
    """A stored value with its insertion time."""
    value: Any
    inserted_at: float
    ttl_seconds: float

    def age(self, now: float) -> float:
        return now - self.inserted_at

    def is_expired(self, now: float) -> bool:
        return self.age(now) >= self.ttl_seconds


class FallbackStore:
    """
    Bounded in-process key/value store with TTL expiry.

    Only ever touched from the event loop thread, so no locking.
    """

    def __init__(
        self,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
        max_age: float = MAX_ENTRY_AGE_SECONDS,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sweep_interval = sweep_interval
        self.max_age = max_age
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, FallbackEntry] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> Optional[Any]:
        """Get a value, evicting it if its TTL has passed."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None

        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store a value. Re-setting a key restarts its age."""
        self._entries.pop(key, None)

        # dicts keep insertion order, so the first key is the oldest write
        while len(self._entries) >= self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

        self._entries[key] = FallbackEntry(
            value=value,
            inserted_at=self._clock(),
            ttl_seconds=ttl_seconds,
        )

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it was present."""
        return self._entries.pop(key, None) is not None

    def clear(self, fragment: Optional[str] = None) -> int:
        """
        Remove entries whose key contains `fragment`.

        No fragment clears everything. Returns the number removed.
        """
        if not fragment:
            count = len(self._entries)
            self._entries.clear()
            return count

        matching = [key for key in self._entries if fragment in key]
        for key in matching:
            del self._entries[key]
        return len(matching)

    def sweep(self) -> int:
        """Drop expired entries and anything older than the age ceiling."""
        now = self._clock()
        stale = [
            key for key, entry in self._entries.items()
            if entry.is_expired(now) or entry.age(now) > self.max_age
        ]
        for key in stale:
            del self._entries[key]

        if stale:
            logger.debug(f"Fallback sweep removed {len(stale)} entries")
        return len(stale)

    # =========================================================================
    # Background sweep
    # =========================================================================

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    def start_sweeper(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self.sweeper_running:
            return

        async def sweep_loop():
            while True:
                await asyncio.sleep(self.sweep_interval)
                try:
                    self.sweep()
                except Exception as e:
                    logger.error(f"Fallback sweep error: {e}")

        self._sweeper = asyncio.create_task(sweep_loop())
        logger.info(f"Fallback cache sweeper started (interval: {self.sweep_interval}s)")

    async def stop_sweeper(self) -> None:
        """Stop the periodic sweep."""
        if self._sweeper is None:
            return

        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

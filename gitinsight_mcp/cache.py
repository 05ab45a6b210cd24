"""
In-memory TTL cache in front of the GitHub API.

Entries expire ``ttl`` seconds after they are set. Expired entries are
dropped lazily on read and by a periodic sweep job, so a late sweep never
serves stale data.

The store has no lock: it is only touched from the asyncio event loop and
neither ``get`` nor ``set`` awaits. Running it from several threads would
need a mutex around ``_entries``.
"""
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .logger import get_logger

logger = get_logger(__name__)

SWEEP_JOB_ID = "cache_sweep_job"


@dataclass
class CacheEntry:
    key: str
    value: Any
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at >= self.ttl


class CacheStore:
    """Key/value store with per-entry expiry."""

    def __init__(
        self,
        default_ttl: float = 3600,
        check_period: float = 600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.check_period = check_period
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0
        self._scheduler: Optional[AsyncIOScheduler] = None
        logger.info(f"Cache initialized with TTL: {default_ttl} seconds")

    # ── Core operations ──────────────────────────────────────────────────

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None on a miss or an expired entry."""
        entry = self._entries.get(key)
        if entry is not None and entry.is_expired(self._clock()):
            del self._entries[key]
            entry = None

        if entry is None:
            self._misses += 1
            logger.debug("MISS: %s", key)
            return None

        self._hits += 1
        logger.debug("HIT: %s", key)
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> bool:
        ttl = ttl or self.default_ttl
        self._entries[key] = CacheEntry(key=key, value=value, created_at=self._clock(), ttl=ttl)
        logger.debug("SET: %s (TTL: %ss)", key, ttl)
        return True

    def delete(self, key: str) -> int:
        """Remove a key. Returns the number of entries removed (0 or 1)."""
        return 1 if self._entries.pop(key, None) is not None else 0

    def clear(self) -> None:
        self._entries.clear()
        logger.info("Cleared all cache entries")

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def keys(self) -> List[str]:
        now = self._clock()
        return [key for key, entry in self._entries.items() if not entry.is_expired(now)]

    def sweep(self) -> int:
        """Remove every expired entry. Returns how many were removed."""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired entries")
        return len(expired)

    def stats(self) -> Dict[str, int]:
        return {
            "hits": self._hits,
            "misses": self._misses,
            "keys": len(self._entries),
        }

    # ── Periodic sweep ───────────────────────────────────────────────────

    async def _sweep_job(self) -> None:
        self.sweep()

    def start_sweeper(self) -> AsyncIOScheduler:
        """
        Start the periodic sweep. Must be called from a running event loop;
        the job runs on that loop, never in a worker thread.
        """
        if self._scheduler is not None:
            logger.warning("Cache sweeper already running")
            return self._scheduler

        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._sweep_job,
            trigger=IntervalTrigger(seconds=self.check_period),
            id=SWEEP_JOB_ID,
            name="Cache Expiry Sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"Cache sweeper started. Check period: {self.check_period} seconds")
        return self._scheduler

    def stop_sweeper(self) -> None:
        if self._scheduler is None:
            return
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Cache sweeper stopped")

    @property
    def sweeper_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

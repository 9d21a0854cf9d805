"""Bounded-window cache for grant snapshots.

Each ``PolicyStore`` owns one ``GrantCache``; there is no module-level cache
state. An entry is *fresh* for ``stale_after`` seconds, still *served* (stale)
until ``retain_for`` seconds, then evicted on the next read of that key or
the next ``put``, whichever comes first. Grant mutations never invalidate
entries, so callers see writes after at most ``stale_after`` seconds plus one
refresh.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional

from .models import GrantSnapshot, LoadStatus

DEFAULT_STALE_AFTER = 300.0  # 5 minutes
DEFAULT_RETAIN_FOR = 600.0  # 10 minutes


@dataclass(frozen=True)
class CacheEntry:
    snapshot: GrantSnapshot
    stored_at: float


class GrantCache:
    """Per-store snapshot cache keyed by user id.

    Args:
        stale_after: Seconds an entry stays fresh.
        retain_for: Seconds an entry is kept at all (must be >= stale_after).
        clock: Monotonic clock, injectable for tests.
    """

    def __init__(
        self,
        *,
        stale_after: float = DEFAULT_STALE_AFTER,
        retain_for: float = DEFAULT_RETAIN_FOR,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if stale_after <= 0 or retain_for < stale_after:
            raise ValueError("GrantCache requires 0 < stale_after <= retain_for")
        self.stale_after = stale_after
        self.retain_for = retain_for
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def now(self) -> float:
        return self._clock()

    def get(self, user_id: str) -> Optional[CacheEntry]:
        """Return the retained entry for ``user_id``, evicting it if expired."""
        entry = self._entries.get(user_id)
        if entry is None:
            return None
        if self.now() - entry.stored_at >= self.retain_for:
            del self._entries[user_id]
            return None
        return entry

    def put(self, snapshot: GrantSnapshot) -> CacheEntry:
        """Store ``snapshot``, dropping every entry past the retention window."""
        now = self.now()
        self._sweep(now)
        entry = CacheEntry(snapshot=snapshot, stored_at=now)
        self._entries[snapshot.user_id] = entry
        return entry

    def is_fresh(self, entry: CacheEntry) -> bool:
        """Errored snapshots are never fresh, so the next load retries."""
        if entry.snapshot.status is not LoadStatus.READY:
            return False
        return self.now() - entry.stored_at < self.stale_after

    def clear(self) -> None:
        self._entries.clear()

    def _sweep(self, now: float) -> None:
        expired = [uid for uid, e in self._entries.items() if now - e.stored_at >= self.retain_for]
        for uid in expired:
            del self._entries[uid]

    def __contains__(self, user_id: object) -> bool:
        return isinstance(user_id, str) and self.get(user_id) is not None

    def __len__(self) -> int:
        return len(self._entries)


__all__ = [
    "CacheEntry",
    "DEFAULT_RETAIN_FOR",
    "DEFAULT_STALE_AFTER",
    "GrantCache",
]

"""Policy store: cached, deduplicated access to an actor's grants.

``PolicyStore`` sits between a ``GrantSource`` (the system of record) and the
evaluator. It resolves the actor's role, fetches role and user grant rows
concurrently, parses them into models and caches the resulting
``GrantSnapshot`` per user id.

Two read paths:
- ``await load_grants(user_id)`` for service code; always returns a settled
  (READY or ERRORED) snapshot.
- ``snapshot(user_id)`` for synchronous callers; returns whatever is cached,
  or PENDING while the first load is in flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Optional, TypeVar

from ..config import PolicyConfig
from ..exceptions import ErrorKind, MalformedGrantError, StorageError, UnknownActorError
from ..interfaces import GrantRow, GrantSource
from ..logging import safe_log_value
from ..permissions.grants import parse_role_grant, parse_user_grant
from .cache import GrantCache
from .models import GrantSnapshot, LoadStatus

logger = logging.getLogger(__name__)

_G = TypeVar("_G")


class PolicyStore:
    """Per-process grant cache in front of a grant source.

    Args:
        source: System of record for roles and grant rows.
        cache: Snapshot cache; built from ``config`` when omitted.
        config: Supplies the cache window when ``cache`` is omitted.
    """

    def __init__(
        self,
        source: GrantSource,
        *,
        cache: Optional[GrantCache] = None,
        config: Optional[PolicyConfig] = None,
    ) -> None:
        if cache is None:
            config = config or PolicyConfig()
            cache = GrantCache(
                stale_after=config.cache_stale_seconds,
                retain_for=config.cache_retain_seconds,
            )
        self.source = source
        self.cache = cache
        self._inflight: dict[str, asyncio.Task[GrantSnapshot]] = {}

    # ── Async path ──────────────────────────────────────

    async def load_grants(self, user_id: str, *, force: bool = False) -> GrantSnapshot:
        """Return a settled snapshot for ``user_id``.

        Serves a fresh cache entry directly; otherwise joins (or starts) the
        in-flight load. Never raises for source failures: those come back as
        an ERRORED snapshot.
        """
        if not force:
            entry = self.cache.get(user_id)
            if entry is not None and self.cache.is_fresh(entry):
                return entry.snapshot
        # shield: one cancelled waiter must not cancel the load for the others
        return await asyncio.shield(self._join(user_id))

    def is_loading(self, user_id: str) -> bool:
        return user_id in self._inflight

    # ── Sync path ───────────────────────────────────────

    def snapshot(self, user_id: str) -> GrantSnapshot:
        """Synchronous read.

        Returns the cached snapshot when there is one (scheduling a background
        refresh if it is stale), otherwise schedules a load and returns a
        PENDING snapshot.
        """
        entry = self.cache.get(user_id)
        if entry is not None:
            if not self.cache.is_fresh(entry):
                self._schedule(user_id)
            return entry.snapshot
        self._schedule(user_id)
        return GrantSnapshot.pending(user_id)

    # ── Internals ───────────────────────────────────────

    def _join(self, user_id: str) -> asyncio.Task[GrantSnapshot]:
        task = self._inflight.get(user_id)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch(user_id))
            self._inflight[user_id] = task
            task.add_done_callback(lambda t: self._settle(user_id, t))
        return task

    def _schedule(self, user_id: str) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, grant load for %s not scheduled", user_id)
            return
        self._join(user_id)

    def _settle(self, user_id: str, task: asyncio.Task[GrantSnapshot]) -> None:
        if self._inflight.get(user_id) is task:
            del self._inflight[user_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error("Grant load for %s failed unexpectedly", user_id, exc_info=task.exception())

    async def _fetch(self, user_id: str) -> GrantSnapshot:
        try:
            role = await self.source.resolve_role(user_id)
            if role is None:
                raise UnknownActorError(f"Unknown actor {user_id}", user_id=user_id)
            role_rows, user_rows = await asyncio.gather(
                self.source.fetch_role_grants(role),
                self.source.fetch_user_grants(user_id),
            )
        except UnknownActorError:
            logger.info("Unknown actor %s, no grants apply", user_id)
            snapshot = GrantSnapshot(user_id=user_id, status=LoadStatus.READY, fetched_at=self.cache.now())
        except StorageError as e:
            logger.warning("Grant store unavailable for %s: %s", user_id, e.message)
            snapshot = GrantSnapshot.errored(user_id, ErrorKind.STORE_UNAVAILABLE, fetched_at=self.cache.now())
        except Exception:
            # Sources that do not wrap driver errors still yield an ERRORED snapshot.
            logger.exception("Grant source failed for %s", user_id)
            snapshot = GrantSnapshot.errored(user_id, ErrorKind.STORE_UNAVAILABLE, fetched_at=self.cache.now())
        else:
            snapshot = GrantSnapshot(
                user_id=user_id,
                status=LoadStatus.READY,
                role=role,
                role_grants=_parse_rows(role_rows, parse_role_grant, user_id),
                user_grants=_parse_rows(user_rows, parse_user_grant, user_id),
                fetched_at=self.cache.now(),
            )
            logger.debug(
                "Loaded grants for %s (role=%s, role_grants=%d, user_grants=%d)",
                user_id,
                role,
                len(snapshot.role_grants),
                len(snapshot.user_grants),
            )
        self.cache.put(snapshot)
        return snapshot


def _parse_rows(
    rows: Iterable[GrantRow],
    parser: Callable[[GrantRow], _G],
    user_id: str,
) -> tuple[_G, ...]:
    parsed: list[Any] = []
    for row in rows:
        try:
            parsed.append(parser(row))
        except MalformedGrantError as e:
            logger.warning(
                "Skipping malformed grant row for %s: %s (%s)",
                user_id,
                e.message,
                safe_log_value(dict(row)),
            )
    return tuple(parsed)


__all__ = ["PolicyStore"]

"""Dict-backed grant source.

Used for tests and for embedding the evaluator where grants are loaded once
at startup. Rows are stored in the same shape the database returns them, so
they go through the same parsing as any other source.
"""

from __future__ import annotations

import itertools
import logging
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from ..interfaces import GrantRow, MutableGrantSource, revocable_by, same_scope
from ..permissions.catalog import Permission

logger = logging.getLogger(__name__)


class InMemoryGrantSource(MutableGrantSource):
    """In-process grant tables.

    Args:
        actors: Mapping of user id → role.
    """

    def __init__(self, actors: Optional[Mapping[str, str]] = None) -> None:
        self._actors: dict[str, str] = dict(actors or {})
        self._role_rows: dict[str, list[dict[str, Any]]] = {}
        self._user_rows: dict[str, list[dict[str, Any]]] = {}
        self._ids = itertools.count(1)

    # ── Fixtures ────────────────────────────────────────

    def add_actor(self, user_id: str, role: str) -> None:
        self._actors[user_id] = role

    def add_role_row(self, role: str, row: Mapping[str, Any]) -> None:
        """Append a raw role row as-is (no validation)."""
        self._role_rows.setdefault(role, []).append({"id": next(self._ids), "role": role, **row})

    def add_user_row(self, user_id: str, row: Mapping[str, Any]) -> None:
        """Append a raw user row as-is (no validation)."""
        self._user_rows.setdefault(user_id, []).append({"id": next(self._ids), "user_id": user_id, **row})

    # ── Read side ───────────────────────────────────────

    async def resolve_role(self, user_id: str) -> Optional[str]:
        return self._actors.get(user_id)

    async def fetch_role_grants(self, role: str) -> Sequence[GrantRow]:
        return [dict(row) for row in self._role_rows.get(role, ())]

    async def fetch_user_grants(self, user_id: str) -> Sequence[GrantRow]:
        return [dict(row) for row in self._user_rows.get(user_id, ())]

    # ── Write side ──────────────────────────────────────

    async def grant_user_permission(
        self,
        user_id: str,
        permission: Permission,
        *,
        granted_by: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        conditions: Optional[dict[str, Any]] = None,
    ) -> GrantRow:
        rows = self._user_rows.setdefault(user_id, [])
        row = next((r for r in rows if same_scope(r, permission)), None)
        if row is None:
            row = {
                "id": next(self._ids),
                "user_id": user_id,
                "category": permission.category.value,
                "action": permission.action.value,
                "resource": permission.resource,
            }
            rows.append(row)
        row.update(granted=True, granted_by=granted_by, expires_at=expires_at, conditions=conditions)
        logger.info("Granted %s to user %s (by %s)", permission, user_id, granted_by or "system")
        return dict(row)

    async def revoke_user_permission(self, user_id: str, permission: Permission) -> bool:
        for row in self._user_rows.get(user_id, ()):
            if revocable_by(row, permission):
                row["granted"] = False
                logger.info("Revoked %s from user %s", permission, user_id)
                return True
        return False

    async def set_role_grant(self, role: str, permission: Permission, granted: bool = True) -> GrantRow:
        rows = self._role_rows.setdefault(role, [])
        row = next((r for r in rows if same_scope(r, permission)), None)
        if row is None:
            row = {
                "id": next(self._ids),
                "role": role,
                "category": permission.category.value,
                "action": permission.action.value,
                "resource": permission.resource,
            }
            rows.append(row)
        row["granted"] = granted
        return dict(row)


__all__ = ["InMemoryGrantSource"]

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Mapping, Optional, Sequence

from .permissions.catalog import Permission
from .permissions.profiles import DEFAULT_ROLE_GRANTS

GrantRow = Mapping[str, Any]


def same_scope(row: GrantRow, permission: Permission) -> bool:
    """Row names exactly ``permission`` (used to upsert)."""
    return (
        str(row.get("category", "")).upper() == permission.category.value
        and str(row.get("action", "")).upper() == permission.action.value
        and (row.get("resource") or None) == permission.resource
    )


def revocable_by(row: GrantRow, permission: Permission) -> bool:
    """Row is revoked by ``permission``; no resource revokes any scope."""
    return (
        str(row.get("category", "")).upper() == permission.category.value
        and str(row.get("action", "")).upper() == permission.action.value
        and (permission.resource is None or row.get("resource") == permission.resource)
    )


class GrantSource(ABC):
    """Read side of the grant system of record.

    Implementations return raw rows; parsing, caching and precedence belong
    to ``PolicyStore`` and ``PolicyEvaluator``. Transport failures must be
    raised as ``StoreUnavailableError``.
    """

    @abstractmethod
    async def resolve_role(self, user_id: str) -> Optional[str]:
        """Role of ``user_id``, or None if the actor is unknown."""
        raise NotImplementedError

    @abstractmethod
    async def fetch_role_grants(self, role: str) -> Sequence[GrantRow]:
        raise NotImplementedError

    @abstractmethod
    async def fetch_user_grants(self, user_id: str) -> Sequence[GrantRow]:
        raise NotImplementedError


class MutableGrantSource(GrantSource):
    """Grant source with the administrative write path.

    Writes never touch a ``PolicyStore`` cache; readers observe them once
    their cached snapshot goes stale.
    """

    @abstractmethod
    async def grant_user_permission(
        self,
        user_id: str,
        permission: Permission,
        *,
        granted_by: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        conditions: Optional[dict[str, Any]] = None,
    ) -> GrantRow:
        raise NotImplementedError

    @abstractmethod
    async def revoke_user_permission(self, user_id: str, permission: Permission) -> bool:
        """Mark the matching user grant as not granted. Returns False if none matched."""
        raise NotImplementedError

    @abstractmethod
    async def set_role_grant(self, role: str, permission: Permission, granted: bool = True) -> GrantRow:
        raise NotImplementedError

    async def seed_default_role_grants(self) -> int:
        """Write every default role profile; returns the number of rows written."""
        count = 0
        for role, permissions in DEFAULT_ROLE_GRANTS.items():
            for permission in permissions:
                await self.set_role_grant(role, permission, True)
                count += 1
        return count


__all__ = ["GrantRow", "GrantSource", "MutableGrantSource", "revocable_by", "same_scope"]

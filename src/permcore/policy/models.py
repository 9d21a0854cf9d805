"""Result types exchanged between the store, the evaluator and gates."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from ..exceptions import ErrorKind
from ..permissions.grants import RoleGrant, UserGrant


class LoadStatus(str, Enum):
    """Lifecycle of one actor's grant snapshot."""

    PENDING = "pending"  # fetch in flight, nothing cached yet
    READY = "ready"
    ERRORED = "errored"


@dataclass(frozen=True)
class GrantSnapshot:
    """Immutable view of the grants applicable to one user id.

    ``role`` is the role the store resolved for the user id (``None`` for an
    unknown actor, whose grant sets are always empty).
    """

    user_id: str
    status: LoadStatus
    role: Optional[str] = None
    role_grants: tuple[RoleGrant, ...] = ()
    user_grants: tuple[UserGrant, ...] = ()
    error: Optional[ErrorKind] = None
    fetched_at: float = 0.0

    @property
    def loading(self) -> bool:
        return self.status is LoadStatus.PENDING

    @property
    def ready(self) -> bool:
        return self.status is LoadStatus.READY

    @classmethod
    def pending(cls, user_id: str) -> GrantSnapshot:
        return cls(user_id=user_id, status=LoadStatus.PENDING)

    @classmethod
    def errored(cls, user_id: str, error: ErrorKind, fetched_at: float = 0.0) -> GrantSnapshot:
        return cls(user_id=user_id, status=LoadStatus.ERRORED, error=error, fetched_at=fetched_at)


@dataclass(frozen=True)
class Verdict:
    """Evaluator output for one permission check.

    ``loading`` and ``error`` are distinct from a denial: a caller seeing
    ``loading=True`` should show a neutral state, not "access denied".
    """

    granted: bool
    loading: bool = False
    error: Optional[ErrorKind] = None
    reason: str = ""

    @property
    def denied(self) -> bool:
        """True only for a settled denial (not loading, not errored)."""
        return not self.granted and not self.loading and self.error is None

    @classmethod
    def allow(cls, reason: str = "") -> Verdict:
        return cls(granted=True, reason=reason)

    @classmethod
    def deny(cls, reason: str = "") -> Verdict:
        return cls(granted=False, reason=reason)

    @classmethod
    def pending(cls) -> Verdict:
        return cls(granted=False, loading=True, reason="grants loading")

    @classmethod
    def failed(cls, error: ErrorKind) -> Verdict:
        return cls(granted=False, error=error, reason=error.value.lower())


@dataclass(frozen=True)
class EffectiveGrant:
    """One row of the merged role + user permission view."""

    category: str
    action: str
    resource: Optional[str]
    granted: bool
    source: str  # "role" | "user"
    expires_at: Optional[datetime] = None
    conditions: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "EffectiveGrant",
    "GrantSnapshot",
    "LoadStatus",
    "Verdict",
]

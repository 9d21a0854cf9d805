"""Policy evaluator: one verdict per (actor, permission).

Decision order, first match wins:

1. Snapshot still loading → ``Verdict(loading=True)``.
2. Snapshot errored → ``Verdict(error=...)``.
3. Admin role → granted, grant tables are not consulted.
4. Expired user grants are treated as absent. First remaining matching user
   grant: not granted → denied; otherwise granted. None left → step 5.
5. First matching role grant → its ``granted`` flag; no match → denied.

A grant matches when category and action are equal and its resource covers
the requested one (see :func:`permcore.permissions.resource_matches`).
User-grant ``conditions`` are carried through but not interpreted.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from ..config import PolicyConfig
from ..exceptions import ErrorKind, StoreUnavailableError
from ..permissions.catalog import Permission
from ..permissions.constants import Role
from ..permissions.grants import Actor
from .audit import PermissionAuditor
from .models import EffectiveGrant, GrantSnapshot, LoadStatus, Verdict
from .store import PolicyStore

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PolicyEvaluator:
    """Decides permission checks against a :class:`PolicyStore`.

    Args:
        store: Source of grant snapshots.
        clock: Returns the evaluation time (timezone-aware); used for expiry.
        audit: Optional auditor receiving every settled decision.
        admin_role: Role that bypasses the grant tables.
    """

    def __init__(
        self,
        store: PolicyStore,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        audit: Optional[PermissionAuditor] = None,
        admin_role: str = Role.ADMIN,
    ) -> None:
        self.store = store
        self.clock = clock or utcnow
        self.audit = audit
        self.admin_role = admin_role

    @classmethod
    def from_config(cls, store: PolicyStore, config: PolicyConfig) -> PolicyEvaluator:
        audit = PermissionAuditor() if config.audit_enabled else None
        return cls(store, audit=audit, admin_role=config.admin_role)

    # ── Pure decision ───────────────────────────────────

    def decide(
        self,
        snapshot: GrantSnapshot,
        actor: Actor,
        permission: Permission,
        now: Optional[datetime] = None,
    ) -> Verdict:
        """Decide ``permission`` for ``actor`` from an already loaded snapshot."""
        if snapshot.status is LoadStatus.PENDING:
            return Verdict.pending()
        if snapshot.status is LoadStatus.ERRORED:
            return Verdict.failed(snapshot.error or ErrorKind.STORE_UNAVAILABLE)

        if actor.role == self.admin_role:
            return Verdict.allow("admin role")

        now = now or self.clock()
        for grant in snapshot.user_grants:
            if not grant.matches(permission) or grant.is_expired(now):
                continue
            if not grant.granted:
                return Verdict.deny("revoked by user grant")
            return Verdict.allow("user grant")

        for role_grant in snapshot.role_grants:
            if role_grant.matches(permission):
                if role_grant.granted:
                    return Verdict.allow(f"role grant ({role_grant.role})")
                return Verdict.deny(f"denied by role grant ({role_grant.role})")

        return Verdict.deny("no matching grant")

    # ── Single checks ───────────────────────────────────

    def check(self, actor: Actor, permission: Permission) -> Verdict:
        """Synchronous check against whatever the store has cached."""
        verdict = self.decide(self.store.snapshot(actor.user_id), actor, permission)
        self._record(actor, permission, verdict)
        return verdict

    async def evaluate(self, actor: Actor, permission: Permission) -> Verdict:
        """Check after waiting for the actor's grants to load."""
        snapshot = await self.store.load_grants(actor.user_id)
        verdict = self.decide(snapshot, actor, permission)
        self._record(actor, permission, verdict)
        return verdict

    def has_permission(self, actor: Actor, permission: Permission) -> bool:
        return self.check(actor, permission).granted

    def has_any(self, actor: Actor, permissions: Iterable[Permission]) -> bool:
        return any(self.check(actor, p).granted for p in permissions)

    def has_all(self, actor: Actor, permissions: Iterable[Permission]) -> bool:
        """False when any permission is denied, loading or errored."""
        return all(self.check(actor, p).granted for p in permissions)

    # ── Combined checks ─────────────────────────────────

    async def evaluate_any(self, actor: Actor, permissions: Iterable[Permission]) -> Verdict:
        verdicts = await self._evaluate_many(actor, permissions)
        if any(v.granted for v in verdicts):
            return Verdict.allow("any of")
        return _combine_failures(verdicts) or Verdict.deny("none of the permissions granted")

    async def evaluate_all(self, actor: Actor, permissions: Iterable[Permission]) -> Verdict:
        verdicts = await self._evaluate_many(actor, permissions)
        if all(v.granted for v in verdicts):
            return Verdict.allow("all of")
        return _combine_failures(verdicts) or Verdict.deny(
            next(v.reason for v in verdicts if not v.granted)
        )

    async def _evaluate_many(self, actor: Actor, permissions: Iterable[Permission]) -> list[Verdict]:
        snapshot = await self.store.load_grants(actor.user_id)
        now = self.clock()
        verdicts = []
        for permission in permissions:
            verdict = self.decide(snapshot, actor, permission, now)
            self._record(actor, permission, verdict)
            verdicts.append(verdict)
        return verdicts

    # ── Listing ─────────────────────────────────────────

    async def effective_permissions(self, actor: Actor) -> list[EffectiveGrant]:
        """Merged role + user grants for ``actor``.

        User grants replace role rows with the same category, action and
        resource; expired user grants are left out.

        Raises:
            StoreUnavailableError: The actor's grants could not be loaded.
        """
        snapshot = await self.store.load_grants(actor.user_id)
        if snapshot.status is LoadStatus.ERRORED:
            logger.warning("Effective permissions unavailable for %s", actor.user_id)
            raise StoreUnavailableError(user_id=actor.user_id)

        effective: dict[tuple[str, str, Optional[str]], EffectiveGrant] = {}
        for role_grant in snapshot.role_grants:
            key = (role_grant.category.value, role_grant.action.value, role_grant.resource)
            effective.setdefault(
                key,
                EffectiveGrant(*key, granted=role_grant.granted, source="role"),
            )

        now = self.clock()
        overridden: set[tuple[str, str, Optional[str]]] = set()
        for user_grant in snapshot.user_grants:
            key = (user_grant.category.value, user_grant.action.value, user_grant.resource)
            if user_grant.is_expired(now) or key in overridden:
                continue
            overridden.add(key)
            effective[key] = EffectiveGrant(
                *key,
                granted=user_grant.granted,
                source="user",
                expires_at=user_grant.expires_at,
                conditions=dict(user_grant.conditions or {}),
            )
        return list(effective.values())

    def _record(self, actor: Actor, permission: Permission, verdict: Verdict) -> None:
        if self.audit is not None:
            self.audit.record(actor, permission, verdict)


def _combine_failures(verdicts: list[Verdict]) -> Optional[Verdict]:
    for verdict in verdicts:
        if verdict.loading:
            return Verdict.pending()
    for verdict in verdicts:
        if verdict.error is not None:
            return Verdict.failed(verdict.error)
    return None


__all__ = ["PolicyEvaluator", "utcnow"]

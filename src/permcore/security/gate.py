"""Access gate: turns evaluator verdicts into allow / deny / pending decisions.

Provides:
- ``GateRequirement``: roles and permissions a protected unit needs.
- ``GateDecision``: outcome plus what to render in place of the unit.
- ``AccessGate``: sync ``decide``/``guard`` for render-style callers and
  async ``evaluate``/``enforce``/``requires`` for action-level code.
- Preset requirements (``ADMIN_ONLY``, ``JOB_MANAGEMENT``, ...).

Role checks come first. A permission check still loading yields PENDING,
never a denial. The gate keeps no state; every call re-evaluates.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from ..exceptions import ErrorKind, PermissionDeniedError, StoreUnavailableError
from ..logging import get_actor_logger
from ..permissions.catalog import Permission, Permissions
from ..permissions.constants import Role
from ..permissions.grants import Actor
from ..policy.evaluator import PolicyEvaluator
from ..policy.models import Verdict

logger = get_actor_logger(__name__)

_T = TypeVar("_T")

PERMISSION_DENIED_MESSAGE = "You don't have permission to access this content."
STORE_ERROR_MESSAGE = "Permissions could not be loaded. Please try again."


class GateOutcome(str, Enum):
    PENDING = "pending"
    GRANTED = "granted"
    DENIED = "denied"
    ERRORED = "errored"


class _Pending:
    """Placeholder rendered while grants are loading."""

    def __repr__(self) -> str:
        return "<pending>"

    def __bool__(self) -> bool:
        return False


PENDING = _Pending()

_KEEP: Any = object()


# ── Requirement / Decision ───────────────────────────────────────


@dataclass(frozen=True)
class GateRequirement:
    """What a protected unit requires.

    Attributes:
        permissions: Permissions checked after the role check.
        roles: Allowed roles; empty means any role.
        require_all: All permissions must be granted (default: any one).
        show_error: Render a visible denial message instead of ``fallback``.
        fallback: Rendered on denial when ``show_error`` is False.
    """

    permissions: tuple[Permission, ...] = ()
    roles: tuple[str, ...] = ()
    require_all: bool = False
    show_error: bool = False
    fallback: Any = None

    def __post_init__(self) -> None:
        if isinstance(self.roles, str):
            object.__setattr__(self, "roles", (self.roles,))
        else:
            object.__setattr__(self, "roles", tuple(self.roles))
        if isinstance(self.permissions, Permission):
            object.__setattr__(self, "permissions", (self.permissions,))
        else:
            object.__setattr__(self, "permissions", tuple(self.permissions))

    def with_options(self, *, show_error: Optional[bool] = None, fallback: Any = _KEEP) -> GateRequirement:
        """Copy of this requirement with different denial rendering.

        ``fallback`` is replaced whenever it is passed, ``None`` included.
        """
        return GateRequirement(
            permissions=self.permissions,
            roles=self.roles,
            require_all=self.require_all,
            show_error=self.show_error if show_error is None else show_error,
            fallback=self.fallback if fallback is _KEEP else fallback,
        )


@dataclass(frozen=True)
class GateDecision:
    """Result of one gate evaluation."""

    outcome: GateOutcome
    requirement: GateRequirement
    message: str = ""
    missing_roles: tuple[str, ...] = ()
    missing_permissions: tuple[Permission, ...] = ()
    error: Optional[ErrorKind] = None
    verdicts: tuple[Verdict, ...] = field(default=(), repr=False)

    @property
    def granted(self) -> bool:
        return self.outcome is GateOutcome.GRANTED

    @property
    def pending(self) -> bool:
        return self.outcome is GateOutcome.PENDING

    def render(self) -> Any:
        """What to show instead of the protected unit.

        ``PENDING`` while loading; the denial message when ``show_error`` is
        set; otherwise the requirement's fallback.
        """
        if self.outcome is GateOutcome.PENDING:
            return PENDING
        if self.outcome is GateOutcome.GRANTED:
            return None
        if self.requirement.show_error:
            return self.message
        return self.requirement.fallback


def _role_message(roles: tuple[str, ...]) -> str:
    return f"You need {' or '.join(roles)} role to access this content."


def _permission_message(missing: tuple[Permission, ...], require_all: bool) -> str:
    if not missing:
        return PERMISSION_DENIED_MESSAGE
    joiner = " and " if require_all else " or "
    return f"{PERMISSION_DENIED_MESSAGE[:-1]} (requires {joiner.join(str(p) for p in missing)})."


# ── Gate ─────────────────────────────────────────────────────────


class AccessGate:
    """Enforces :class:`GateRequirement` objects for an actor.

    Usage:
        gate = AccessGate(evaluator)
        decision = gate.decide(actor, JOB_MANAGEMENT)
        await gate.enforce(actor, ADMIN_ONLY)
    """

    def __init__(self, evaluator: PolicyEvaluator) -> None:
        self.evaluator = evaluator

    def decide(self, actor: Actor, requirement: GateRequirement) -> GateDecision:
        """Synchronous decision from whatever grants are cached."""
        denied = self._check_role(actor, requirement)
        if denied is not None:
            return denied
        verdicts = tuple(self.evaluator.check(actor, p) for p in requirement.permissions)
        return self._fold(actor, requirement, verdicts)

    async def evaluate(self, actor: Actor, requirement: GateRequirement) -> GateDecision:
        """Decision after the actor's grants have loaded; never PENDING."""
        denied = self._check_role(actor, requirement)
        if denied is not None:
            return denied
        verdicts = []
        for permission in requirement.permissions:
            verdicts.append(await self.evaluator.evaluate(actor, permission))
        return self._fold(actor, requirement, tuple(verdicts))

    def guard(
        self,
        actor: Actor,
        requirement: GateRequirement,
        render_children: Callable[[], _T],
    ) -> Any:
        """Render ``render_children()`` if granted, otherwise the decision's placeholder."""
        decision = self.decide(actor, requirement)
        if decision.granted:
            return render_children()
        return decision.render()

    async def enforce(self, actor: Actor, requirement: GateRequirement) -> GateDecision:
        """Raise unless ``actor`` satisfies ``requirement``.

        Raises:
            PermissionDeniedError: Role or permissions missing.
            StoreUnavailableError: Grants could not be loaded.
        """
        decision = await self.evaluate(actor, requirement)
        if decision.outcome is GateOutcome.ERRORED:
            raise StoreUnavailableError(user_id=actor.user_id)
        if not decision.granted:
            raise PermissionDeniedError(
                decision.message,
                user_id=actor.user_id,
                role=actor.role,
                missing_roles=list(decision.missing_roles),
                missing_permissions=[str(p) for p in decision.missing_permissions],
            )
        return decision

    def requires(
        self, requirement: GateRequirement
    ) -> Callable[[Callable[..., Awaitable[_T]]], Callable[..., Awaitable[_T]]]:
        """Decorator enforcing ``requirement`` on an async callable taking ``actor=``.

        Usage:
            @gate.requires(JOB_MANAGEMENT)
            async def publish_job(job_id: str, *, actor: Actor) -> None:
                ...
        """

        def decorator(func: Callable[..., Awaitable[_T]]) -> Callable[..., Awaitable[_T]]:
            @functools.wraps(func)
            async def wrapper(*args: Any, actor: Actor, **kwargs: Any) -> _T:
                await self.enforce(actor, requirement)
                return await func(*args, actor=actor, **kwargs)

            return wrapper

        return decorator

    # ── Internals ───────────────────────────────────────

    def _allowed_roles(self, requirement: GateRequirement) -> tuple[str, ...]:
        """Requirement roles, with ``admin`` standing for the evaluator's admin role."""
        admin_role = self.evaluator.admin_role
        if Role.ADMIN in requirement.roles and admin_role not in requirement.roles:
            return requirement.roles + (admin_role,)
        return requirement.roles

    def _check_role(self, actor: Actor, requirement: GateRequirement) -> Optional[GateDecision]:
        if not requirement.roles or actor.has_role(*self._allowed_roles(requirement)):
            return None
        logger.debug("Role %s not in %s", actor.role, requirement.roles, actor=actor)
        return GateDecision(
            outcome=GateOutcome.DENIED,
            requirement=requirement,
            message=_role_message(requirement.roles),
            missing_roles=requirement.roles,
        )

    def _fold(
        self,
        actor: Actor,
        requirement: GateRequirement,
        verdicts: tuple[Verdict, ...],
    ) -> GateDecision:
        if any(v.loading for v in verdicts):
            return GateDecision(outcome=GateOutcome.PENDING, requirement=requirement, verdicts=verdicts)

        errored = next((v for v in verdicts if v.error is not None), None)
        if errored is not None:
            logger.warning("Permission check errored: %s", errored.error.value, actor=actor)
            return GateDecision(
                outcome=GateOutcome.ERRORED,
                requirement=requirement,
                message=STORE_ERROR_MESSAGE,
                error=errored.error,
                verdicts=verdicts,
            )

        if not verdicts:
            return GateDecision(outcome=GateOutcome.GRANTED, requirement=requirement)

        fold = all if requirement.require_all else any
        if fold(v.granted for v in verdicts):
            return GateDecision(outcome=GateOutcome.GRANTED, requirement=requirement, verdicts=verdicts)

        missing = tuple(p for p, v in zip(requirement.permissions, verdicts) if not v.granted)
        logger.debug("Gate denied, missing %s", [str(p) for p in missing], actor=actor)
        return GateDecision(
            outcome=GateOutcome.DENIED,
            requirement=requirement,
            message=_permission_message(missing, requirement.require_all),
            missing_permissions=missing,
            verdicts=verdicts,
        )


# ── Presets ──────────────────────────────────────────────────────
# Role presets name ``admin``; the evaluator's configured admin role also passes them.

ADMIN_ONLY = GateRequirement(roles=(Role.ADMIN,))
PRODUCER_ONLY = GateRequirement(roles=(Role.ADMIN, Role.PRODUCER))
MANAGER_ONLY = GateRequirement(roles=(Role.ADMIN, Role.MANAGER))

USER_MANAGEMENT = GateRequirement(
    permissions=(
        Permissions.USER_CREATE,
        Permissions.USER_UPDATE,
        Permissions.USER_DELETE,
        Permissions.ADMIN_USER_MANAGEMENT,
    )
)
JOB_MANAGEMENT = GateRequirement(
    permissions=(
        Permissions.JOBS_CREATE,
        Permissions.JOBS_UPDATE,
        Permissions.JOBS_DELETE,
        Permissions.ADMIN_ALL,
    )
)
MEDIA_UPLOAD = GateRequirement(
    permissions=(
        Permissions.MEDIA_UPLOAD,
        Permissions.MEDIA_UPLOAD_OWN,
        Permissions.MEDIA_UPLOAD_JOB,
    )
)
AI_FEATURES = GateRequirement(
    permissions=(
        Permissions.AI_USE_BASIC,
        Permissions.AI_USE_ADVANCED,
        Permissions.AI_PROFILE_OPTIMIZATION,
        Permissions.AI_JOB_MATCHING,
    )
)


__all__ = [
    "ADMIN_ONLY",
    "AI_FEATURES",
    "JOB_MANAGEMENT",
    "MANAGER_ONLY",
    "MEDIA_UPLOAD",
    "PENDING",
    "PRODUCER_ONLY",
    "USER_MANAGEMENT",
    "AccessGate",
    "GateDecision",
    "GateOutcome",
    "GateRequirement",
]

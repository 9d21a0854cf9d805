"""gRPC interceptors for route-level permission enforcement.

Provides:
- ``actor_from_metadata``: actor identity set by the authentication layer.
- ``RoutePermissionInterceptor``: maps RPC names to gate requirements.
- ``_extract_rpc_name``, ``_should_skip``: helper utilities.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Union

import grpc

from ..config import EnforcementMode, PolicyConfig, load_policy_config_from_env
from ..permissions.catalog import Permission
from ..permissions.constants import Role
from ..permissions.grants import Actor
from .gate import AccessGate, GateOutcome, GateRequirement

logger = logging.getLogger(__name__)

USER_ID_HEADER = "x-user-id"
USER_ROLE_HEADER = "x-user-role"

# Method prefixes that bypass permission checks
_SKIP_PREFIXES = (
    "grpc.health.v1",
    "grpc.reflection.v1",
)

RouteRequirement = Union[GateRequirement, Permission, str]


# ── Helpers ──────────────────────────────────────────────────────


def _extract_rpc_name(full_method: str) -> str:
    """Extract RPC name from fully-qualified method string.

    ``/jobs.JobService/PublishJob`` → ``PublishJob``
    """
    return full_method.rsplit("/", 1)[-1] if "/" in full_method else full_method


def _should_skip(method: str) -> bool:
    """Check if this method should skip permission checks."""
    return any(prefix in method for prefix in _SKIP_PREFIXES)


def _as_requirement(value: RouteRequirement) -> GateRequirement:
    if isinstance(value, GateRequirement):
        return value
    if isinstance(value, str):
        value = Permission.parse(value)
    return GateRequirement(permissions=(value,))


def actor_from_metadata(metadata: Mapping[str, Any]) -> Optional[Actor]:
    """Build the caller's :class:`Actor` from invocation metadata.

    Returns None when no user id is present. A missing role resolves to
    ``guest``.
    """
    user_id = str(metadata.get(USER_ID_HEADER, "")).strip()
    if not user_id:
        return None
    role = str(metadata.get(USER_ROLE_HEADER, "")).strip().lower() or Role.GUEST
    return Actor(user_id=user_id, role=role)


# ── Interceptor ──────────────────────────────────────────────────


class RoutePermissionInterceptor(grpc.aio.ServerInterceptor):
    """gRPC server interceptor enforcing gate requirements per RPC.

    Sits before all handlers and:
    1. Logs caller identity (always, even when enforcement is off)
    2. Reads the actor from ``x-user-id`` / ``x-user-role`` metadata
    3. Maps the RPC method to its ``GateRequirement``
    4. Evaluates it through the ``AccessGate`` (waiting for grants to load)
    5. Aborts with ``UNAUTHENTICATED`` / ``PERMISSION_DENIED`` / ``UNAVAILABLE``

    Unmapped RPCs are **denied** (fail-closed).

    Args:
        gate: Gate used to evaluate requirements.
        rpc_requirements: RPC name → requirement. Values may also be a
            ``Permission`` or its ``"CATEGORY:ACTION[:resource]"`` string.
        service_name: Human-readable service name for log messages.
        enforcement: Three-state mode (off / warn / enforce). Defaults to
            ``config.enforcement``, or ``SECURITY_ENFORCEMENT`` when no config
            is given.

    Usage::

        interceptor = RoutePermissionInterceptor(
            gate,
            {"PublishJob": JOB_MANAGEMENT, "DeleteUser": "USER:DELETE"},
            service_name="Jobs",
            enforcement=EnforcementMode.WARN,
        )
    """

    def __init__(
        self,
        gate: AccessGate,
        rpc_requirements: Mapping[str, RouteRequirement],
        *,
        service_name: str = "Service",
        enforcement: Optional[EnforcementMode] = None,
        config: Optional[PolicyConfig] = None,
    ) -> None:
        self._gate = gate
        self._rpc_map = {name: _as_requirement(req) for name, req in rpc_requirements.items()}
        self._service_name = service_name
        if enforcement is None:
            enforcement = (config or load_policy_config_from_env()).enforcement
        self._mode = enforcement

        if self._mode != EnforcementMode.OFF:
            logger.info(
                "%s interceptor mode: %s",
                self._service_name,
                self._mode.value,
            )

    @property
    def mode(self) -> EnforcementMode:
        return self._mode

    async def intercept_service(
        self,
        continuation: Any,
        handler_call_details: grpc.HandlerCallDetails,
    ) -> grpc.RpcMethodHandler:
        """Intercept incoming gRPC calls for permission validation."""
        method = handler_call_details.method or ""

        if _should_skip(method):
            return await continuation(handler_call_details)

        rpc_name = _extract_rpc_name(method)
        metadata = dict(handler_call_details.invocation_metadata or [])
        actor = actor_from_metadata(metadata)

        logger.info(
            "%s RPC %s | caller=%s role=%s",
            self._service_name,
            rpc_name,
            actor.user_id if actor else "anonymous",
            actor.role if actor else Role.GUEST,
        )

        if self._mode == EnforcementMode.OFF:
            return await continuation(handler_call_details)

        requirement = self._rpc_map.get(rpc_name)
        deny_reason: str | None = None
        deny_code: grpc.StatusCode = grpc.StatusCode.PERMISSION_DENIED

        if requirement is None:
            deny_reason = "RPC not mapped to a requirement"
        elif actor is None:
            deny_reason = "no user identity"
            deny_code = grpc.StatusCode.UNAUTHENTICATED
        else:
            decision = await self._gate.evaluate(actor, requirement)
            if decision.outcome is GateOutcome.ERRORED:
                deny_reason = "permission store unavailable"
                deny_code = grpc.StatusCode.UNAVAILABLE
            elif not decision.granted:
                deny_reason = f"{decision.message} (user '{actor.user_id}')"

        if deny_reason:
            if self._mode == EnforcementMode.WARN:
                logger.warning(
                    "%s WARN_DENIED '%s': %s (would block in enforce mode)",
                    self._service_name,
                    rpc_name,
                    deny_reason,
                )
                return await continuation(handler_call_details)

            logger.warning(
                "%s DENIED '%s': %s",
                self._service_name,
                rpc_name,
                deny_reason,
            )

            _deny_msg = f"{self._service_name}: {rpc_name} denied: {deny_reason}"
            _deny_status = deny_code

            async def _denied(request, context):
                await context.abort(_deny_status, _deny_msg)

            return grpc.unary_unary_rpc_method_handler(_denied)

        logger.debug(
            "%s ALLOWED '%s' for user '%s'",
            self._service_name,
            rpc_name,
            actor.user_id if actor else "anonymous",
        )

        return await continuation(handler_call_details)


__all__ = [
    "USER_ID_HEADER",
    "USER_ROLE_HEADER",
    "RoutePermissionInterceptor",
    "_extract_rpc_name",
    "_should_skip",
    "actor_from_metadata",
]

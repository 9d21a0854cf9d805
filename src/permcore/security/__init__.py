"""Access gates and route-level enforcement.

Usage (in any service)::

    from permcore.security import build_access_gate, get_security_interceptors

    gate = build_access_gate(RedisGrantSource.from_config(config), config)
    server = grpc.aio.server(
        interceptors=get_security_interceptors(gate, RPC_REQUIREMENTS, config=config),
    )

    # Or enforce inside a handler:
    await gate.enforce(actor, JOB_MANAGEMENT)

Configuration (env vars)::

    SECURITY_ENFORCEMENT=warn          # off | warn | enforce (default: warn)
    PERMCORE_AUDIT_ENABLED=false       # Record every decision
"""

from __future__ import annotations

from typing import Mapping, Optional

import grpc

from ..config import EnforcementMode, PolicyConfig
from ..interfaces import GrantSource
from ..policy.evaluator import PolicyEvaluator
from ..policy.store import PolicyStore
from .gate import (
    ADMIN_ONLY,
    AI_FEATURES,
    JOB_MANAGEMENT,
    MANAGER_ONLY,
    MEDIA_UPLOAD,
    PENDING,
    PRODUCER_ONLY,
    USER_MANAGEMENT,
    AccessGate,
    GateDecision,
    GateOutcome,
    GateRequirement,
)
from .interceptors import (
    RoutePermissionInterceptor,
    RouteRequirement,
    _extract_rpc_name,
    _should_skip,
    actor_from_metadata,
)


def build_access_gate(source: GrantSource, config: Optional[PolicyConfig] = None) -> AccessGate:
    """Wire store → evaluator → gate for ``source``.

    Args:
        source: Grant system of record.
        config: Cache window, admin role and audit switch (defaults apply if None).
    """
    config = config or PolicyConfig()
    store = PolicyStore(source, config=config)
    return AccessGate(PolicyEvaluator.from_config(store, config))


def get_security_interceptors(
    gate: AccessGate,
    rpc_requirements: Mapping[str, RouteRequirement],
    *,
    service_name: Optional[str] = None,
    config: Optional[PolicyConfig] = None,
) -> list[grpc.aio.ServerInterceptor]:
    """Get gRPC server interceptors enforcing ``rpc_requirements``.

    Returns an empty list when enforcement is ``off`` and no caller logging
    is wanted (``config.service_name`` unset).

    Usage::

        server = grpc.aio.server(interceptors=get_security_interceptors(gate, RPC_MAP))
    """
    cfg = config or PolicyConfig()
    name = service_name or cfg.service_name
    if cfg.enforcement == EnforcementMode.OFF and not name:
        return []
    return [
        RoutePermissionInterceptor(
            gate,
            rpc_requirements,
            service_name=name or "Service",
            enforcement=cfg.enforcement,
        )
    ]


__all__ = [
    # Gate
    "AccessGate",
    "GateDecision",
    "GateOutcome",
    "GateRequirement",
    "PENDING",
    "build_access_gate",
    # Presets
    "ADMIN_ONLY",
    "AI_FEATURES",
    "JOB_MANAGEMENT",
    "MANAGER_ONLY",
    "MEDIA_UPLOAD",
    "PRODUCER_ONLY",
    "USER_MANAGEMENT",
    # Interceptors
    "RoutePermissionInterceptor",
    "_extract_rpc_name",
    "_should_skip",
    "actor_from_metadata",
    "get_security_interceptors",
]

"""Tests for AccessGate decisions, rendering and enforcement."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from permcore.exceptions import PermissionDeniedError, StoreUnavailableError
from permcore.permissions import Actor, Permissions, Role
from permcore.policy import InMemoryGrantSource, PolicyEvaluator, PolicyStore
from permcore.security import (
    ADMIN_ONLY,
    AI_FEATURES,
    JOB_MANAGEMENT,
    MANAGER_ONLY,
    MEDIA_UPLOAD,
    PENDING,
    PRODUCER_ONLY,
    USER_MANAGEMENT,
    AccessGate,
    GateOutcome,
    GateRequirement,
    build_access_gate,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

TALENT = Actor(user_id="t1", role=Role.TALENT)
MANAGER = Actor(user_id="m1", role=Role.MANAGER)
PRODUCER = Actor(user_id="p1", role=Role.PRODUCER)
ADMIN = Actor(user_id="a1", role=Role.ADMIN)


async def _gate() -> AccessGate:
    source = InMemoryGrantSource({"t1": Role.TALENT, "m1": Role.MANAGER, "p1": Role.PRODUCER, "a1": Role.ADMIN})
    await source.seed_default_role_grants()
    return AccessGate(PolicyEvaluator(PolicyStore(source), clock=lambda: NOW))


async def _loaded_gate(*actors: Actor) -> AccessGate:
    gate = await _gate()
    for actor in actors:
        await gate.evaluator.store.load_grants(actor.user_id)
    return gate


class TestRoleChecks:
    """Role requirements are checked before permissions."""

    @pytest.mark.asyncio
    async def test_role_denial_names_roles(self):
        gate = await _loaded_gate(TALENT)
        requirement = PRODUCER_ONLY.with_options(show_error=True)
        decision = gate.decide(TALENT, requirement)
        assert decision.outcome is GateOutcome.DENIED
        assert decision.missing_roles == (Role.ADMIN, Role.PRODUCER)
        assert decision.render() == "You need admin or producer role to access this content."

    @pytest.mark.asyncio
    async def test_role_denial_renders_fallback(self):
        gate = await _loaded_gate(TALENT)
        decision = gate.decide(TALENT, ADMIN_ONLY.with_options(fallback="upgrade"))
        assert decision.render() == "upgrade"

    @pytest.mark.asyncio
    async def test_role_check_needs_no_grants(self):
        """Role-only requirements decide before any grant load."""
        gate = await _gate()
        assert gate.decide(MANAGER, MANAGER_ONLY).granted
        assert gate.decide(ADMIN, MANAGER_ONLY).granted
        assert gate.decide(PRODUCER, MANAGER_ONLY).outcome is GateOutcome.DENIED

    @pytest.mark.asyncio
    async def test_role_denial_precedes_permissions(self):
        gate = await _loaded_gate(TALENT)
        requirement = GateRequirement(permissions=(Permissions.JOBS_READ,), roles=(Role.ADMIN,))
        decision = gate.decide(TALENT, requirement)
        assert decision.outcome is GateOutcome.DENIED
        assert decision.missing_permissions == ()

    def test_single_role_string(self):
        assert GateRequirement(roles="admin").roles == ("admin",)

    def test_with_options_can_clear_fallback(self):
        preset = ADMIN_ONLY.with_options(fallback="upgrade")
        assert preset.with_options(show_error=True).fallback == "upgrade"
        assert preset.with_options(fallback=None).fallback is None

    @pytest.mark.asyncio
    async def test_configured_admin_role_passes_admin_presets(self):
        source = InMemoryGrantSource({"o1": "owner"})
        gate = AccessGate(PolicyEvaluator(PolicyStore(source), admin_role="owner"))
        owner = Actor(user_id="o1", role="owner")
        for preset in (ADMIN_ONLY, PRODUCER_ONLY, MANAGER_ONLY):
            assert gate.decide(owner, preset).granted
        assert (await gate.evaluate(owner, JOB_MANAGEMENT)).granted
        assert gate.decide(ADMIN, ADMIN_ONLY).granted


class TestPermissionChecks:
    """Permission folds and rendering."""

    @pytest.mark.asyncio
    async def test_pending_while_loading(self):
        gate = await _gate()
        decision = gate.decide(TALENT, JOB_MANAGEMENT.with_options(show_error=True))
        assert decision.outcome is GateOutcome.PENDING
        assert decision.render() is PENDING
        assert decision.message == ""

    @pytest.mark.asyncio
    async def test_guard_renders_pending_then_children(self):
        gate = await _gate()
        assert gate.guard(TALENT, AI_FEATURES, lambda: "ai panel") is PENDING
        await asyncio.sleep(0.01)
        assert gate.guard(TALENT, AI_FEATURES, lambda: "ai panel") == "ai panel"

    @pytest.mark.asyncio
    async def test_any_of(self):
        gate = await _loaded_gate(MANAGER, TALENT)
        assert gate.decide(MANAGER, JOB_MANAGEMENT).granted
        assert gate.decide(TALENT, JOB_MANAGEMENT).outcome is GateOutcome.DENIED

    @pytest.mark.asyncio
    async def test_require_all(self):
        gate = await _loaded_gate(TALENT)
        requirement = GateRequirement(
            permissions=(Permissions.JOBS_READ, Permissions.JOBS_APPLY),
            require_all=True,
        )
        assert gate.decide(TALENT, requirement).granted
        strict = GateRequirement(
            permissions=(Permissions.JOBS_READ, Permissions.JOBS_CREATE),
            require_all=True,
            show_error=True,
        )
        decision = gate.decide(TALENT, strict)
        assert decision.missing_permissions == (Permissions.JOBS_CREATE,)
        assert decision.render() == (
            "You don't have permission to access this content (requires JOBS:CREATE)."
        )

    @pytest.mark.asyncio
    async def test_denial_hides_details_without_show_error(self):
        gate = await _loaded_gate(TALENT)
        assert gate.decide(TALENT, USER_MANAGEMENT).render() is None

    @pytest.mark.asyncio
    async def test_empty_requirement_grants(self):
        gate = await _gate()
        assert gate.decide(TALENT, GateRequirement()).granted

    @pytest.mark.asyncio
    async def test_admin_passes_permission_presets(self):
        gate = await _loaded_gate(ADMIN)
        for preset in (USER_MANAGEMENT, JOB_MANAGEMENT, MEDIA_UPLOAD, AI_FEATURES):
            assert gate.decide(ADMIN, preset).granted

    @pytest.mark.asyncio
    async def test_producer_media_upload_with_expired_override(self):
        source = InMemoryGrantSource({"p1": Role.PRODUCER})
        await source.seed_default_role_grants()
        await source.grant_user_permission(
            "p1", Permissions.MEDIA_UPLOAD, granted_by="a1", expires_at=NOW - timedelta(days=1)
        )
        gate = AccessGate(PolicyEvaluator(PolicyStore(source), clock=lambda: NOW))
        decision = await gate.evaluate(PRODUCER, MEDIA_UPLOAD)
        assert decision.outcome is GateOutcome.DENIED

    @pytest.mark.asyncio
    async def test_errored_outcome(self):
        source = AsyncMock()
        source.resolve_role.side_effect = StoreUnavailableError()
        gate = AccessGate(PolicyEvaluator(PolicyStore(source)))
        decision = await gate.evaluate(TALENT, JOB_MANAGEMENT.with_options(show_error=True))
        assert decision.outcome is GateOutcome.ERRORED
        assert "could not be loaded" in decision.render()


class TestEnforce:
    """Action-level enforcement."""

    @pytest.mark.asyncio
    async def test_enforce_allows(self):
        gate = await _gate()
        decision = await gate.enforce(MANAGER, JOB_MANAGEMENT)
        assert decision.granted

    @pytest.mark.asyncio
    async def test_enforce_raises_permission_denied(self):
        gate = await _gate()
        with pytest.raises(PermissionDeniedError) as exc:
            await gate.enforce(TALENT, JOB_MANAGEMENT)
        assert exc.value.code == "PERMISSION_DENIED"
        assert exc.value.details["user_id"] == "t1"
        assert "JOBS:CREATE" in exc.value.details["missing_permissions"]

    @pytest.mark.asyncio
    async def test_enforce_raises_store_unavailable(self):
        source = AsyncMock()
        source.resolve_role.side_effect = StoreUnavailableError()
        gate = AccessGate(PolicyEvaluator(PolicyStore(source)))
        with pytest.raises(StoreUnavailableError):
            await gate.enforce(TALENT, AI_FEATURES)

    @pytest.mark.asyncio
    async def test_requires_decorator(self):
        gate = await _gate()

        @gate.requires(JOB_MANAGEMENT)
        async def publish_job(job_id: str, *, actor: Actor) -> str:
            return f"published {job_id}"

        assert await publish_job("j1", actor=MANAGER) == "published j1"
        with pytest.raises(PermissionDeniedError):
            await publish_job("j1", actor=TALENT)
        assert publish_job.__name__ == "publish_job"


class TestBuildAccessGate:
    @pytest.mark.asyncio
    async def test_wires_store_and_evaluator(self):
        source = InMemoryGrantSource({"m1": Role.MANAGER})
        await source.seed_default_role_grants()
        gate = build_access_gate(source)
        assert (await gate.evaluate(MANAGER, JOB_MANAGEMENT)).granted
        assert gate.evaluator.store.source is source

"""Tests for grant rows, row parsing and resource matching."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from permcore.exceptions import MalformedGrantError
from permcore.permissions import (
    Actor,
    Category,
    Permission,
    Permissions,
    Role,
    parse_role_grant,
    parse_user_grant,
    resource_matches,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestResourceMatches:
    """Resource-scope matching rule."""

    def test_no_requested_resource_matches_anything(self) -> None:
        assert resource_matches("own", None)
        assert resource_matches(None, None)

    def test_equal_scopes_match(self) -> None:
        assert resource_matches("own", "own")

    def test_all_is_a_wildcard(self) -> None:
        assert resource_matches("all", "own_profile")

    def test_scopes_differ(self) -> None:
        assert not resource_matches("own", "all")
        assert not resource_matches(None, "own")


class TestActor:
    def test_default_role_is_guest(self) -> None:
        assert Actor(user_id="u1").role == Role.GUEST

    def test_has_role(self) -> None:
        actor = Actor(user_id="u1", role=Role.PRODUCER)
        assert actor.has_role(Role.ADMIN, Role.PRODUCER)
        assert not actor.has_role(Role.ADMIN)


class TestParseRoleGrant:
    """Role-grant row parsing."""

    def test_parses_row(self) -> None:
        grant = parse_role_grant(
            {"id": 1, "role": "talent", "category": "JOBS", "action": "UPDATE", "resource": "own", "granted": True}
        )
        assert grant.role == "talent"
        assert grant.category is Category.JOBS
        assert grant.as_permission() == Permissions.JOBS_UPDATE_OWN

    def test_lowercase_identifiers_are_normalized(self) -> None:
        grant = parse_role_grant({"role": "talent", "category": "content", "action": "update"})
        assert grant.matches(Permissions.CONTENT_UPDATE)

    def test_granted_defaults_true(self) -> None:
        assert parse_role_grant({"role": "talent", "category": "JOBS", "action": "READ"}).granted is True

    def test_bookkeeping_columns_ignored(self) -> None:
        grant = parse_role_grant(
            {"role": "talent", "category": "JOBS", "action": "READ", "created_at": "2024-01-01"}
        )
        assert grant.category is Category.JOBS

    def test_missing_action_is_malformed(self) -> None:
        with pytest.raises(MalformedGrantError) as exc:
            parse_role_grant({"role": "talent", "category": "JOBS"})
        assert "action" in exc.value.details["fields"]

    def test_unknown_category_is_malformed(self) -> None:
        with pytest.raises(MalformedGrantError):
            parse_role_grant({"role": "talent", "category": "PAYROLL", "action": "READ"})

    def test_grant_is_frozen(self) -> None:
        grant = parse_role_grant({"role": "talent", "category": "JOBS", "action": "READ"})
        with pytest.raises(Exception):
            grant.granted = False  # type: ignore[misc]


class TestParseUserGrant:
    """User-grant row parsing."""

    def test_camel_case_columns(self) -> None:
        grant = parse_user_grant(
            {
                "userId": "u1",
                "category": "MEDIA",
                "action": "UPLOAD",
                "expiresAt": "2026-03-02T00:00:00+00:00",
                "grantedBy": "admin-1",
            }
        )
        assert grant.user_id == "u1"
        assert grant.granted_by == "admin-1"
        assert grant.expires_at == datetime(2026, 3, 2, tzinfo=timezone.utc)

    def test_naive_expiry_is_utc(self) -> None:
        grant = parse_user_grant(
            {"user_id": "u1", "category": "MEDIA", "action": "UPLOAD", "expires_at": datetime(2026, 3, 2)}
        )
        assert grant.expires_at is not None
        assert grant.expires_at.tzinfo is timezone.utc

    def test_extra_columns_fold_into_conditions(self) -> None:
        grant = parse_user_grant(
            {
                "user_id": "u1",
                "category": "MEDIA",
                "action": "UPLOAD",
                "conditions": {"ipRestrictions": ["10.0.0.1"]},
                "tier": "pro",
                "updated_at": "2024-01-01",
            }
        )
        assert grant.conditions == {"ipRestrictions": ["10.0.0.1"], "tier": "pro"}

    def test_missing_user_id_is_malformed(self) -> None:
        with pytest.raises(MalformedGrantError) as exc:
            parse_user_grant({"category": "MEDIA", "action": "UPLOAD"})
        assert exc.value.code == "MALFORMED_GRANT"

    def test_blank_resource_is_none(self) -> None:
        grant = parse_user_grant({"user_id": "u1", "category": "MEDIA", "action": "UPLOAD", "resource": ""})
        assert grant.resource is None


class TestUserGrantExpiry:
    """Expiry is relative to evaluation time."""

    def _grant(self, expires_at: datetime | None):
        return parse_user_grant(
            {"user_id": "u1", "category": "MEDIA", "action": "UPLOAD", "expires_at": expires_at}
        )

    def test_no_expiry_never_expires(self) -> None:
        assert not self._grant(None).is_expired(NOW)

    def test_past_expiry(self) -> None:
        assert self._grant(NOW - timedelta(days=1)).is_expired(NOW)

    def test_future_expiry(self) -> None:
        assert not self._grant(NOW + timedelta(seconds=1)).is_expired(NOW)

    def test_expiry_equal_to_now_is_not_expired(self) -> None:
        assert not self._grant(NOW).is_expired(NOW)


class TestGrantMatching:
    def test_matches_on_category_action_and_scope(self) -> None:
        grant = parse_role_grant({"role": "talent", "category": "JOBS", "action": "UPDATE", "resource": "own"})
        assert grant.matches(Permissions.JOBS_UPDATE_OWN)
        assert grant.matches(Permissions.JOBS_UPDATE)
        assert not grant.matches(Permissions.JOBS_UPDATE.with_resource("all"))
        assert not grant.matches(Permissions.JOBS_DELETE_OWN)

    def test_all_scope_matches_specific_request(self) -> None:
        grant = parse_role_grant({"role": "admin", "category": "CONTENT", "action": "UPDATE", "resource": "all"})
        assert grant.matches(Permission.of("CONTENT", "UPDATE", "own_profile"))

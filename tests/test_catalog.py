"""Tests for permcore.permissions catalog and role profiles."""

from __future__ import annotations

import pytest
from permcore.exceptions import UnknownPermissionError
from permcore.permissions import (
    DEFAULT_ROLE_GRANTS,
    PERMISSION_SETS,
    Action,
    Category,
    Permission,
    Permissions,
    Resource,
    Role,
    catalog_name,
    catalog_permissions,
    is_catalogued,
    role_grants_for,
)


class TestPermission:
    """Permission descriptor construction and validation."""

    def test_of_accepts_enums(self) -> None:
        perm = Permission.of(Category.JOBS, Action.UPDATE, Resource.OWN)
        assert perm.category is Category.JOBS
        assert perm.action is Action.UPDATE
        assert perm.resource == "own"

    def test_of_normalizes_case(self) -> None:
        """'update' and 'UPDATE' name the same action."""
        assert Permission.of("jobs", "update", "own") == Permission.of("JOBS", "UPDATE", "own")

    def test_resource_is_case_sensitive(self) -> None:
        assert Permission.of("JOBS", "UPDATE", "own") != Permission.of("JOBS", "UPDATE", "OWN")

    def test_blank_resource_is_none(self) -> None:
        assert Permission.of("MEDIA", "UPLOAD", "  ").resource is None

    def test_unknown_category_raises(self) -> None:
        with pytest.raises(UnknownPermissionError) as exc:
            Permission.of("JOBZ", "UPDATE")
        assert exc.value.code == "UNKNOWN_PERMISSION"
        assert exc.value.details["category"] == "JOBZ"

    def test_unknown_action_raises(self) -> None:
        with pytest.raises(UnknownPermissionError):
            Permission.of("JOBS", "updaet")

    def test_unknown_permission_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            Permission.of("JOBS", 42)

    def test_permissions_are_hashable(self) -> None:
        perms = {Permissions.JOBS_READ, Permission.of("jobs", "read")}
        assert len(perms) == 1

    def test_with_resource(self) -> None:
        perm = Permissions.JOBS_UPDATE.with_resource(Resource.ALL)
        assert str(perm) == "JOBS:UPDATE:all"
        assert Permissions.JOBS_UPDATE.resource is None


class TestPermissionParse:
    """String form ``CATEGORY:ACTION[:resource]``."""

    def test_parse_without_resource(self) -> None:
        assert Permission.parse("MEDIA:UPLOAD") == Permissions.MEDIA_UPLOAD

    def test_parse_with_resource(self) -> None:
        assert Permission.parse("jobs:update:own") == Permissions.JOBS_UPDATE_OWN

    def test_resource_may_contain_colons(self) -> None:
        perm = Permission.parse("CONTENT:UPDATE:profile:42")
        assert perm.resource == "profile:42"

    def test_str_roundtrip(self) -> None:
        assert Permission.parse(str(Permissions.AI_USE_BASIC)) == Permissions.AI_USE_BASIC

    @pytest.mark.parametrize("text", ["", "JOBS", "JOBS:", ":UPDATE"])
    def test_malformed_raises(self, text: str) -> None:
        with pytest.raises(UnknownPermissionError):
            Permission.parse(text)


class TestCatalog:
    """Named constants and feature-area groupings."""

    def test_catalog_contains_constants(self) -> None:
        perms = catalog_permissions()
        assert Permissions.USER_CREATE in perms
        assert Permissions.SYSTEM_MONITOR in perms
        assert len(perms) == len(set(perms))

    def test_is_catalogued(self) -> None:
        assert is_catalogued(Permission.of("jobs", "apply"))
        assert not is_catalogued(Permission.of("JOBS", "APPLY", "all"))

    def test_catalog_name(self) -> None:
        assert catalog_name(Permissions.JOBS_UPDATE_OWN) == "JOBS_UPDATE_OWN"
        assert catalog_name(Permission.of("SYSTEM", "BACKUP", "x")) is None

    def test_feature_areas(self) -> None:
        assert set(PERMISSION_SETS) == {
            "USER_MANAGEMENT",
            "CONTENT",
            "JOBS",
            "MEDIA",
            "ADMIN",
            "AI",
            "BILLING",
            "SYSTEM",
        }
        assert Permissions.USER_DELETE in PERMISSION_SETS["USER_MANAGEMENT"]
        assert all(p.category is Category.MEDIA for p in PERMISSION_SETS["MEDIA"])


class TestRoleProfiles:
    """Default role → grant profiles."""

    def test_every_role_has_a_profile(self) -> None:
        assert set(DEFAULT_ROLE_GRANTS) == Role.ALL

    def test_guest_holds_nothing(self) -> None:
        assert DEFAULT_ROLE_GRANTS[Role.GUEST] == ()
        assert role_grants_for(Role.GUEST) == ()

    def test_talent_can_update_own_profile(self) -> None:
        assert Permissions.CONTENT_UPDATE_OWN in DEFAULT_ROLE_GRANTS[Role.TALENT]
        assert Permissions.JOBS_CREATE not in DEFAULT_ROLE_GRANTS[Role.TALENT]

    def test_producer_has_no_media_upload(self) -> None:
        assert not any(p.category is Category.MEDIA for p in DEFAULT_ROLE_GRANTS[Role.PRODUCER])

    def test_role_grants_for_builds_granted_rows(self) -> None:
        rows = role_grants_for(Role.MANAGER)
        assert len(rows) == len(DEFAULT_ROLE_GRANTS[Role.MANAGER])
        assert all(r.role == Role.MANAGER and r.granted for r in rows)
        assert Permissions.JOBS_UPDATE_OWN in [r.as_permission() for r in rows]

    def test_unknown_role_has_no_rows(self) -> None:
        assert role_grants_for("superuser") == ()

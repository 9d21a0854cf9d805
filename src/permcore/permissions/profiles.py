"""Default role profiles.

Provides:
- ``DEFAULT_ROLE_GRANTS``: role → baseline permissions.
- ``role_grants_for()``: build ``RoleGrant`` rows for seeding a grant source.
"""

from __future__ import annotations

from .catalog import Permission, Permissions
from .constants import Role
from .grants import RoleGrant

# ── Role → Permission Profiles ──────────────────────────
# Admin needs no rows (it bypasses the grant tables) but keeps ADMIN_ALL so
# effective-permission listings show something meaningful.

DEFAULT_ROLE_GRANTS: dict[str, tuple[Permission, ...]] = {
    Role.GUEST: (),
    Role.TALENT: (
        Permissions.USER_READ,
        Permissions.CONTENT_CREATE_OWN,
        Permissions.CONTENT_UPDATE_OWN,
        Permissions.JOBS_READ,
        Permissions.JOBS_APPLY,
        Permissions.MEDIA_UPLOAD_OWN,
        Permissions.AI_USE_BASIC,
        Permissions.AI_PROFILE_OPTIMIZATION,
        Permissions.BILLING_VIEW,
    ),
    Role.MANAGER: (
        Permissions.USER_READ,
        Permissions.CONTENT_CREATE_OWN,
        Permissions.CONTENT_UPDATE_OWN,
        Permissions.JOBS_CREATE,
        Permissions.JOBS_READ,
        Permissions.JOBS_UPDATE_OWN,
        Permissions.JOBS_DELETE_OWN,
        Permissions.AI_USE_BASIC,
        Permissions.AI_JOB_MATCHING,
        Permissions.ADMIN_ANALYTICS,
        Permissions.BILLING_VIEW,
    ),
    Role.PRODUCER: (
        Permissions.USER_READ,
        Permissions.CONTENT_CREATE_OWN,
        Permissions.CONTENT_UPDATE_OWN,
        Permissions.CONTENT_PUBLISH,
        Permissions.JOBS_CREATE,
        Permissions.JOBS_READ,
        Permissions.JOBS_UPDATE_OWN,
        Permissions.JOBS_DELETE_OWN,
        Permissions.AI_USE_BASIC,
        Permissions.AI_USE_ADVANCED,
        Permissions.AI_JOB_MATCHING,
        Permissions.ADMIN_ANALYTICS,
        Permissions.BILLING_VIEW,
        Permissions.BILLING_MANAGE,
    ),
    Role.ADMIN: (Permissions.ADMIN_ALL,),
}


def role_grants_for(role: str) -> tuple[RoleGrant, ...]:
    """Build granted ``RoleGrant`` rows for a role's default profile.

    Unknown roles get no rows (closed-world default).
    """
    return tuple(
        RoleGrant(
            role=role,
            category=perm.category,
            action=perm.action,
            resource=perm.resource,
            granted=True,
        )
        for perm in DEFAULT_ROLE_GRANTS.get(role, ())
    )


__all__ = [
    "DEFAULT_ROLE_GRANTS",
    "role_grants_for",
]

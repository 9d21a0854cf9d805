"""Permission catalog, grant rows and role profiles for permcore.

Defines:
- Permission: validated ``(category, action, resource?)`` descriptor
- Permissions: named constants for every catalogued permission
- Category / Action / Resource / Role: closed identifier sets
- Actor, RoleGrant, UserGrant: the rows the evaluator decides over
- DEFAULT_ROLE_GRANTS: role → baseline permission sets
"""

from .catalog import (
    PERMISSION_SETS,
    Permission,
    Permissions,
    catalog_name,
    catalog_permissions,
    is_catalogued,
)
from .constants import Action, Category, Resource, Role
from .grants import (
    Actor,
    RoleGrant,
    UserGrant,
    parse_role_grant,
    parse_user_grant,
    resource_matches,
)
from .profiles import DEFAULT_ROLE_GRANTS, role_grants_for

__all__ = [
    "DEFAULT_ROLE_GRANTS",
    "PERMISSION_SETS",
    "Action",
    "Actor",
    "Category",
    "Permission",
    "Permissions",
    "Resource",
    "Role",
    "RoleGrant",
    "UserGrant",
    "catalog_name",
    "catalog_permissions",
    "is_catalogued",
    "parse_role_grant",
    "parse_user_grant",
    "resource_matches",
    "role_grants_for",
]

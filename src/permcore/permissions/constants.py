"""Permission identifiers and marketplace roles.

Provides:
- ``Category``: feature areas a permission belongs to.
- ``Action``: operations within a category.
- ``Resource``: well-known resource scopes (free strings are also allowed).
- ``Role``: actor roles resolved by the authentication layer.
"""

from __future__ import annotations

from enum import Enum


class Category(str, Enum):
    """Permission category (feature area)."""

    USER = "USER"
    CONTENT = "CONTENT"
    JOBS = "JOBS"
    MEDIA = "MEDIA"
    ADMIN = "ADMIN"
    AI = "AI"
    BILLING = "BILLING"
    SYSTEM = "SYSTEM"


class Action(str, Enum):
    """Operation within a category.

    Admin actions (``ALL``, ``USER_MANAGEMENT``, ...) are capability names
    rather than CRUD verbs; they share the enum so every pair stays typed.
    """

    # CRUD
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"

    # Content / jobs / media
    APPLY = "APPLY"
    PUBLISH = "PUBLISH"
    MODERATE = "MODERATE"
    UPLOAD = "UPLOAD"
    USE = "USE"

    # Admin capabilities
    ALL = "ALL"
    USER_MANAGEMENT = "USER_MANAGEMENT"
    SYSTEM_SETTINGS = "SYSTEM_SETTINGS"
    ANALYTICS = "ANALYTICS"

    # Billing
    VIEW = "VIEW"
    MANAGE = "MANAGE"
    PROCESS = "PROCESS"

    # System operations
    BACKUP = "BACKUP"
    RESTORE = "RESTORE"
    CONFIGURE = "CONFIGURE"
    MONITOR = "MONITOR"


class Resource:
    """Well-known resource scopes.

    A grant whose resource is ``ALL`` matches a check for any resource,
    including a check that names none.
    """

    ALL = "all"
    OWN = "own"
    OWN_PROFILE = "own_profile"
    OWN_MEDIA = "own_media"
    JOB_MEDIA = "job_media"
    BASIC_FEATURES = "basic_features"
    ADVANCED_FEATURES = "advanced_features"
    PROFILE_OPTIMIZATION = "profile_optimization"
    JOB_MATCHING = "job_matching"


class Role:
    """Actor roles.

    Not a permission. A baseline that maps to a default set of grants via
    :data:`DEFAULT_ROLE_GRANTS`. ``GUEST`` is what unauthenticated callers
    resolve to and holds nothing.
    """

    TALENT = "talent"
    MANAGER = "manager"
    PRODUCER = "producer"
    ADMIN = "admin"
    GUEST = "guest"

    ALL = frozenset({"talent", "manager", "producer", "admin", "guest"})


__all__ = [
    "Action",
    "Category",
    "Resource",
    "Role",
]

"""Permission descriptor and the static catalog of marketplace permissions.

Provides:
- ``Permission``: immutable ``(category, action, resource?)`` descriptor.
- ``Permissions``: named constants for every catalogued permission.
- ``PERMISSION_SETS``: the same constants grouped by feature area.
- ``catalog_permissions()`` / ``is_catalogued()``: catalog lookups.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

from ..exceptions import UnknownPermissionError
from .constants import Action, Category, Resource


def _coerce(enum_cls: Any, value: Any, kind: str) -> Any:
    """Normalise a category/action identifier to its enum member.

    Identifiers are upper-cased at this boundary so that ``"update"`` and
    ``"UPDATE"`` name the same action everywhere.
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            pass
    raise UnknownPermissionError(f"Unknown permission {kind}: {value!r}", **{kind: value})


@dataclass(frozen=True)
class Permission:
    """A protectable capability.

    Format: ``{CATEGORY}:{ACTION}[:{resource}]``

    Category and action are validated against :class:`Category` and
    :class:`Action`; a typo raises :class:`UnknownPermissionError` instead of
    producing a permission no grant can ever match::

        Permission.of("jobs", "update", "own")   # JOBS:UPDATE:own
        Permission.parse("MEDIA:UPLOAD")         # MEDIA:UPLOAD
        Permission.of("jobs", "updaet")          # raises UnknownPermissionError

    ``resource`` is compared exactly; ``None`` means "no particular scope".
    """

    category: Category
    action: Action
    resource: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "category", _coerce(Category, self.category, "category"))
        object.__setattr__(self, "action", _coerce(Action, self.action, "action"))
        if self.resource is not None:
            resource = str(self.resource).strip()
            object.__setattr__(self, "resource", resource or None)

    @classmethod
    def of(cls, category: Category | str, action: Action | str, resource: str | None = None) -> Permission:
        """Build a validated permission from enum members or strings."""
        return cls(category, action, resource)  # type: ignore[arg-type]

    @classmethod
    def parse(cls, text: str) -> Permission:
        """Parse the ``CATEGORY:ACTION[:resource]`` string form.

        Raises:
            UnknownPermissionError: If the string is malformed or names an
                unknown category/action.
        """
        parts = [p.strip() for p in text.split(":", 2)]
        if len(parts) < 2 or not parts[0] or not parts[1]:
            raise UnknownPermissionError(f"Malformed permission string: {text!r}", text=text)
        resource = parts[2] if len(parts) == 3 else None
        return cls(parts[0], parts[1], resource)  # type: ignore[arg-type]

    def with_resource(self, resource: str | None) -> Permission:
        """Same category/action, different resource scope."""
        return Permission(self.category, self.action, resource)

    def __str__(self) -> str:
        base = f"{self.category.value}:{self.action.value}"
        if self.resource:
            return f"{base}:{self.resource}"
        return base


class Permissions:
    """Canonical permission constants for the marketplace.

    Exposed as named constants so call sites cannot typo a category/action
    pair::

        evaluator.has_permission(actor, Permissions.JOBS_UPDATE_OWN)
    """

    # ── User Management ─────────────────────────────────
    USER_CREATE = Permission(Category.USER, Action.CREATE)
    USER_READ = Permission(Category.USER, Action.READ)
    USER_UPDATE = Permission(Category.USER, Action.UPDATE)
    USER_DELETE = Permission(Category.USER, Action.DELETE)
    USER_READ_ALL = Permission(Category.USER, Action.READ, Resource.ALL)
    USER_UPDATE_ALL = Permission(Category.USER, Action.UPDATE, Resource.ALL)

    # ── Content ─────────────────────────────────────────
    CONTENT_CREATE = Permission(Category.CONTENT, Action.CREATE)
    CONTENT_UPDATE = Permission(Category.CONTENT, Action.UPDATE)
    CONTENT_DELETE = Permission(Category.CONTENT, Action.DELETE)
    CONTENT_PUBLISH = Permission(Category.CONTENT, Action.PUBLISH)
    CONTENT_MODERATE = Permission(Category.CONTENT, Action.MODERATE)
    CONTENT_CREATE_OWN = Permission(Category.CONTENT, Action.CREATE, Resource.OWN_PROFILE)
    CONTENT_UPDATE_OWN = Permission(Category.CONTENT, Action.UPDATE, Resource.OWN_PROFILE)

    # ── Jobs ────────────────────────────────────────────
    JOBS_CREATE = Permission(Category.JOBS, Action.CREATE)
    JOBS_READ = Permission(Category.JOBS, Action.READ)
    JOBS_UPDATE = Permission(Category.JOBS, Action.UPDATE)
    JOBS_DELETE = Permission(Category.JOBS, Action.DELETE)
    JOBS_APPLY = Permission(Category.JOBS, Action.APPLY)
    JOBS_UPDATE_OWN = Permission(Category.JOBS, Action.UPDATE, Resource.OWN)
    JOBS_DELETE_OWN = Permission(Category.JOBS, Action.DELETE, Resource.OWN)

    # ── Media ───────────────────────────────────────────
    MEDIA_UPLOAD = Permission(Category.MEDIA, Action.UPLOAD)
    MEDIA_DELETE = Permission(Category.MEDIA, Action.DELETE)
    MEDIA_MODERATE = Permission(Category.MEDIA, Action.MODERATE)
    MEDIA_UPLOAD_OWN = Permission(Category.MEDIA, Action.UPLOAD, Resource.OWN_MEDIA)
    MEDIA_UPLOAD_JOB = Permission(Category.MEDIA, Action.UPLOAD, Resource.JOB_MEDIA)

    # ── Admin ───────────────────────────────────────────
    ADMIN_ALL = Permission(Category.ADMIN, Action.ALL)
    ADMIN_USER_MANAGEMENT = Permission(Category.ADMIN, Action.USER_MANAGEMENT)
    ADMIN_SYSTEM_SETTINGS = Permission(Category.ADMIN, Action.SYSTEM_SETTINGS)
    ADMIN_ANALYTICS = Permission(Category.ADMIN, Action.ANALYTICS)

    # ── AI Features ─────────────────────────────────────
    AI_USE_BASIC = Permission(Category.AI, Action.USE, Resource.BASIC_FEATURES)
    AI_USE_ADVANCED = Permission(Category.AI, Action.USE, Resource.ADVANCED_FEATURES)
    AI_PROFILE_OPTIMIZATION = Permission(Category.AI, Action.USE, Resource.PROFILE_OPTIMIZATION)
    AI_JOB_MATCHING = Permission(Category.AI, Action.USE, Resource.JOB_MATCHING)

    # ── Billing ─────────────────────────────────────────
    BILLING_VIEW = Permission(Category.BILLING, Action.VIEW)
    BILLING_MANAGE = Permission(Category.BILLING, Action.MANAGE)
    BILLING_PROCESS = Permission(Category.BILLING, Action.PROCESS)

    # ── System Operations ───────────────────────────────
    SYSTEM_BACKUP = Permission(Category.SYSTEM, Action.BACKUP)
    SYSTEM_RESTORE = Permission(Category.SYSTEM, Action.RESTORE)
    SYSTEM_CONFIGURE = Permission(Category.SYSTEM, Action.CONFIGURE)
    SYSTEM_MONITOR = Permission(Category.SYSTEM, Action.MONITOR)


def _iter_catalog() -> Iterator[tuple[str, Permission]]:
    for name, value in vars(Permissions).items():
        if isinstance(value, Permission):
            yield name, value


# ── Feature-area groupings ──────────────────────────────

def _group_by_area() -> dict[str, tuple[Permission, ...]]:
    groups: dict[str, list[Permission]] = {}
    for _, perm in _iter_catalog():
        area = "USER_MANAGEMENT" if perm.category is Category.USER else perm.category.value
        groups.setdefault(area, []).append(perm)
    return {area: tuple(perms) for area, perms in groups.items()}


PERMISSION_SETS: dict[str, tuple[Permission, ...]] = _group_by_area()


def catalog_permissions() -> tuple[Permission, ...]:
    """Every catalogued permission, in declaration order."""
    return tuple(perm for _, perm in _iter_catalog())


def is_catalogued(permission: Permission) -> bool:
    """Check whether a permission is one of the named catalog constants."""
    return any(perm == permission for _, perm in _iter_catalog())


def catalog_name(permission: Permission) -> str | None:
    """Constant name of a catalogued permission (e.g. ``"JOBS_UPDATE_OWN"``)."""
    for name, perm in _iter_catalog():
        if perm == permission:
            return name
    return None


__all__ = [
    "PERMISSION_SETS",
    "Permission",
    "Permissions",
    "catalog_name",
    "catalog_permissions",
    "is_catalogued",
]

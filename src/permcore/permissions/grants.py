"""Grant rows and the actor they apply to.

Provides:
- ``Actor``: ``(user_id, role)`` resolved by the authentication layer.
- ``RoleGrant``: baseline grant for every actor holding a role.
- ``UserGrant``: per-user override with optional expiry and conditions.
- ``parse_role_grant()`` / ``parse_user_grant()``: raw row → model.
- ``resource_matches()``: the resource-scope matching rule.

Raw rows come from the persistence layer and may use either snake_case or
the camelCase column names of the web app (``userId``, ``expiresAt``,
``grantedBy``). Columns this module does not know about are folded into the
opaque ``conditions`` mapping of a user grant and never interpreted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..exceptions import MalformedGrantError
from .catalog import Permission
from .constants import Action, Category, Resource, Role

# Columns every table carries; neither evaluated nor passed through.
_BOOKKEEPING_COLUMNS = frozenset({"created_at", "updated_at", "createdAt", "updatedAt"})


def resource_matches(grant_resource: str | None, requested: str | None) -> bool:
    """Check whether a grant's resource scope covers a requested scope.

    Matches when the check names no resource, when the scopes are equal, or
    when the grant's scope is ``"all"``.
    """
    return requested is None or grant_resource == requested or grant_resource == Resource.ALL


@dataclass(frozen=True)
class Actor:
    """Caller identity as resolved by the authentication layer.

    Treated as trusted input; nothing here re-verifies it.
    """

    user_id: str
    role: str = Role.GUEST

    def has_role(self, *roles: str) -> bool:
        return self.role in roles


class _Grant(BaseModel):
    """Fields shared by role and user grants."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: Optional[Union[int, str]] = None
    category: Category
    action: Action
    resource: Optional[str] = None
    granted: bool = True

    @field_validator("category", "action", mode="before")
    @classmethod
    def normalize_identifier(cls, v: Any) -> Any:
        """Upper-case identifiers so ``'update'`` and ``'UPDATE'`` agree."""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("resource", mode="before")
    @classmethod
    def blank_resource_is_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    def matches(self, permission: Permission) -> bool:
        """Check whether this grant decides ``permission``."""
        return (
            self.category == permission.category
            and self.action == permission.action
            and resource_matches(self.resource, permission.resource)
        )

    def as_permission(self) -> Permission:
        return Permission(self.category, self.action, self.resource)


class RoleGrant(_Grant):
    """Baseline permission for every actor holding ``role``."""

    role: str


class UserGrant(_Grant):
    """User-specific override of the matching role grant.

    Expires lazily: an expired grant is ignored at check time, never swept.
    """

    user_id: str = Field(alias="userId")
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")
    conditions: Optional[dict[str, Any]] = None
    granted_by: Optional[str] = Field(default=None, alias="grantedBy")

    @model_validator(mode="before")
    @classmethod
    def fold_extra_columns(cls, data: Any) -> Any:
        """Move columns this model does not know into ``conditions``."""
        if not isinstance(data, Mapping):
            return data
        known = set(_BOOKKEEPING_COLUMNS)
        for name, field in cls.model_fields.items():
            known.add(name)
            if field.alias:
                known.add(field.alias)
        extras = {k: v for k, v in data.items() if k not in known}
        if not extras:
            return data
        row = {k: v for k, v in data.items() if k in known}
        conditions = row.get("conditions")
        if isinstance(conditions, Mapping):
            extras.update(conditions)
        elif conditions is not None:
            extras["conditions"] = conditions
        row["conditions"] = extras
        return row

    @field_validator("expires_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Naive timestamps from the database are UTC."""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_expired(self, now: datetime) -> bool:
        """Check expiry relative to evaluation time ``now``."""
        if self.expires_at is None:
            return False
        return self.expires_at < now


def _validate(model: type[_Grant], row: Mapping[str, Any]) -> Any:
    try:
        return model.model_validate(dict(row))
    except ValidationError as e:
        fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
        raise MalformedGrantError(
            f"Malformed {model.__name__} row: invalid {', '.join(fields) or 'row'}",
            fields=fields,
        ) from e


def parse_role_grant(row: Mapping[str, Any]) -> RoleGrant:
    """Validate a raw role-grant row.

    Raises:
        MalformedGrantError: Missing category/action/role or unknown identifiers.
    """
    return _validate(RoleGrant, row)


def parse_user_grant(row: Mapping[str, Any]) -> UserGrant:
    """Validate a raw user-grant row.

    Raises:
        MalformedGrantError: Missing category/action/user id or unknown identifiers.
    """
    return _validate(UserGrant, row)


__all__ = [
    "Actor",
    "RoleGrant",
    "UserGrant",
    "parse_role_grant",
    "parse_user_grant",
    "resource_matches",
]

"""Redis-backed grant source.

Key layout (prefix defaults to ``permcore``):

- ``{prefix}:actors:{user_id}``: hash with a ``role`` field.
- ``{prefix}:grants:role:{role}``: JSON list of role-grant rows.
- ``{prefix}:grants:user:{user_id}``: JSON list of user-grant rows.

Any redis failure is raised as ``StoreUnavailableError`` so the policy store
turns it into an ERRORED snapshot. Writes read-modify-write the JSON list
(last writer wins).
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Any, Optional, Sequence

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ..config import PolicyConfig, load_policy_config_from_env
from ..exceptions import ConfigurationError, StorageError, StoreUnavailableError
from ..interfaces import GrantRow, MutableGrantSource, revocable_by, same_scope
from ..permissions.catalog import Permission

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "permcore"


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


class RedisGrantSource(MutableGrantSource):
    """Grant tables stored in the shared Redis.

    Args:
        client: A ``redis.asyncio.Redis`` client; built from ``redis_url``
            (or ``REDIS_URL``) when omitted.
        redis_url: Connection URL used when no client is passed.
        prefix: Key prefix.
    """

    def __init__(
        self,
        client: Optional[aioredis.Redis] = None,
        *,
        redis_url: Optional[str] = None,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        if client is None:
            url = redis_url or load_policy_config_from_env().redis_url
            if not url:
                raise ConfigurationError("RedisGrantSource requires redis_url or REDIS_URL")
            client = aioredis.from_url(url, decode_responses=True)
        self._redis = client
        self._prefix = prefix

    @classmethod
    def from_config(cls, config: PolicyConfig, *, prefix: str = DEFAULT_PREFIX) -> RedisGrantSource:
        if not config.redis_url:
            raise ConfigurationError("PolicyConfig.redis_url is not set")
        return cls(redis_url=config.redis_url, prefix=prefix)

    # ── Keys ────────────────────────────────────────────

    def actor_key(self, user_id: str) -> str:
        return f"{self._prefix}:actors:{user_id}"

    def role_grants_key(self, role: str) -> str:
        return f"{self._prefix}:grants:role:{role}"

    def user_grants_key(self, user_id: str) -> str:
        return f"{self._prefix}:grants:user:{user_id}"

    # ── Read side ───────────────────────────────────────

    async def resolve_role(self, user_id: str) -> Optional[str]:
        try:
            role = await self._redis.hget(self.actor_key(user_id), "role")
        except RedisError as e:
            raise StoreUnavailableError(f"Redis read failed for actor {user_id}: {e}", user_id=user_id) from e
        return _text(role) or None

    async def fetch_role_grants(self, role: str) -> Sequence[GrantRow]:
        return await self._read_rows(self.role_grants_key(role))

    async def fetch_user_grants(self, user_id: str) -> Sequence[GrantRow]:
        return await self._read_rows(self.user_grants_key(user_id))

    # ── Write side ──────────────────────────────────────

    async def set_actor(self, user_id: str, role: str) -> None:
        try:
            await self._redis.hset(self.actor_key(user_id), mapping={"role": role})
        except RedisError as e:
            raise StoreUnavailableError(f"Redis write failed for actor {user_id}: {e}", user_id=user_id) from e

    async def grant_user_permission(
        self,
        user_id: str,
        permission: Permission,
        *,
        granted_by: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        conditions: Optional[dict[str, Any]] = None,
    ) -> GrantRow:
        key = self.user_grants_key(user_id)
        rows = await self._read_rows(key)
        row = next((r for r in rows if same_scope(r, permission)), None)
        if row is None:
            row = {
                "id": uuid.uuid4().hex,
                "user_id": user_id,
                "category": permission.category.value,
                "action": permission.action.value,
                "resource": permission.resource,
            }
            rows.append(row)
        row.update(
            granted=True,
            granted_by=granted_by,
            expires_at=expires_at.isoformat() if expires_at else None,
            conditions=conditions,
        )
        await self._write_rows(key, rows)
        logger.info("Granted %s to user %s (by %s)", permission, user_id, granted_by or "system")
        return dict(row)

    async def revoke_user_permission(self, user_id: str, permission: Permission) -> bool:
        key = self.user_grants_key(user_id)
        rows = await self._read_rows(key)
        for row in rows:
            if revocable_by(row, permission):
                row["granted"] = False
                await self._write_rows(key, rows)
                logger.info("Revoked %s from user %s", permission, user_id)
                return True
        return False

    async def set_role_grant(self, role: str, permission: Permission, granted: bool = True) -> GrantRow:
        key = self.role_grants_key(role)
        rows = await self._read_rows(key)
        row = next((r for r in rows if same_scope(r, permission)), None)
        if row is None:
            row = {
                "id": uuid.uuid4().hex,
                "role": role,
                "category": permission.category.value,
                "action": permission.action.value,
                "resource": permission.resource,
            }
            rows.append(row)
        row["granted"] = granted
        await self._write_rows(key, rows)
        return dict(row)

    async def close(self) -> None:
        await self._redis.aclose()

    # ── Internals ───────────────────────────────────────

    async def _read_rows(self, key: str) -> list[dict[str, Any]]:
        try:
            raw = await self._redis.get(key)
        except RedisError as e:
            raise StoreUnavailableError(f"Redis read failed for {key}: {e}", key=key) from e
        if not raw:
            return []
        try:
            rows = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt grant list at {key}: {e}", key=key) from e
        if not isinstance(rows, list):
            raise StorageError(f"Grant list at {key} is not a JSON array", key=key)
        result = []
        for row in rows:
            if isinstance(row, dict):
                result.append(row)
            else:
                logger.warning("Ignoring non-object grant entry at %s: %r", key, row)
        return result

    async def _write_rows(self, key: str, rows: list[dict[str, Any]]) -> None:
        try:
            await self._redis.set(key, json.dumps(rows, default=_json_default))
        except RedisError as e:
            raise StoreUnavailableError(f"Redis write failed for {key}: {e}", key=key) from e


__all__ = ["DEFAULT_PREFIX", "RedisGrantSource"]

"""Grant storage and evaluation.

- ``PolicyStore`` caches per-user grant snapshots in front of a ``GrantSource``.
- ``PolicyEvaluator`` turns a snapshot into a ``Verdict`` per permission.
- ``PermissionAuditor`` records evaluator decisions.
- ``InMemoryGrantSource`` / ``RedisGrantSource`` are the bundled sources.
"""

from .audit import AuditRecord, PermissionAuditor
from .cache import DEFAULT_RETAIN_FOR, DEFAULT_STALE_AFTER, CacheEntry, GrantCache
from .evaluator import PolicyEvaluator, utcnow
from .memory import InMemoryGrantSource
from .models import EffectiveGrant, GrantSnapshot, LoadStatus, Verdict
from .redis_source import RedisGrantSource
from .store import PolicyStore

__all__ = [
    "DEFAULT_RETAIN_FOR",
    "DEFAULT_STALE_AFTER",
    "AuditRecord",
    "CacheEntry",
    "EffectiveGrant",
    "GrantCache",
    "GrantSnapshot",
    "InMemoryGrantSource",
    "LoadStatus",
    "PermissionAuditor",
    "PolicyEvaluator",
    "PolicyStore",
    "RedisGrantSource",
    "Verdict",
    "utcnow",
]

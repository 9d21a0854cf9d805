"""Decision audit trail.

Every evaluator decision can be recorded as an ``AuditRecord``: emitted on
the ``permcore.audit`` logger and kept in a bounded in-memory buffer for
inspection (admin dashboards, tests).
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..permissions.catalog import Permission
from ..permissions.grants import Actor
from .models import Verdict

audit_logger = logging.getLogger("permcore.audit")


@dataclass(frozen=True)
class AuditRecord:
    user_id: str
    role: str
    permission: str
    granted: bool
    outcome: str  # "granted" | "denied" | "loading" | "error"
    reason: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def _outcome(verdict: Verdict) -> str:
    if verdict.loading:
        return "loading"
    if verdict.error is not None:
        return "error"
    return "granted" if verdict.granted else "denied"


class PermissionAuditor:
    """Records evaluator decisions.

    Args:
        max_records: Size of the in-memory buffer; oldest records drop first.
        include_loading: Also record verdicts for snapshots still loading.
    """

    def __init__(self, max_records: int = 1000, include_loading: bool = False) -> None:
        self._records: deque[AuditRecord] = deque(maxlen=max_records)
        self.include_loading = include_loading

    def record(
        self,
        actor: Actor,
        permission: Permission,
        verdict: Verdict,
        timestamp: Optional[datetime] = None,
    ) -> Optional[AuditRecord]:
        if verdict.loading and not self.include_loading:
            return None
        record = AuditRecord(
            user_id=actor.user_id,
            role=actor.role,
            permission=str(permission),
            granted=verdict.granted,
            outcome=_outcome(verdict),
            reason=verdict.reason,
            timestamp=timestamp or datetime.now(timezone.utc),
        )
        self._records.append(record)
        level = logging.INFO if record.outcome == "granted" else logging.WARNING
        audit_logger.log(
            level,
            "Permission %s %s for %s (%s)",
            record.permission,
            record.outcome,
            record.user_id,
            record.reason,
            extra={"user_id": record.user_id, "role": record.role},
        )
        return record

    def recent(self, limit: Optional[int] = None, *, user_id: Optional[str] = None) -> list[AuditRecord]:
        """Most recent records, newest last."""
        records = [r for r in self._records if user_id is None or r.user_id == user_id]
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)


__all__ = ["AuditRecord", "PermissionAuditor"]

"""Configuration contract for permcore.

Pydantic-validated settings for the policy store, the evaluator and the
route-level enforcement layer. Direct os.environ/os.getenv usage is limited to
``load_policy_config_from_env()``; everything else receives a ``PolicyConfig``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

_TRUTHY = ("true", "1", "yes", "on")


class LogLevel(str, Enum):
    """Standard log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnforcementMode(str, Enum):
    """Three-state enforcement toggle for route-level gates.

    - ``off``: no checks, only caller-identity logging.
    - ``warn``: evaluate, log denials as WARNING, but allow through.
    - ``enforce``: evaluate, deny on failure (production).
    """

    OFF = "off"
    WARN = "warn"
    ENFORCE = "enforce"


class PolicyConfig(BaseModel):
    """Settings shared by every permcore component.

    The cache window mirrors the query-client policy of the web app this
    library serves: grants are fresh for 5 minutes and retained for 10.
    """

    # Logging
    log_level: LogLevel = Field(
        default=LogLevel.INFO,
        description="Logging level",
    )
    log_json: bool = Field(
        default=False,
        description="Use JSON log format (default: plain text)",
    )

    # Grant persistence
    redis_url: Optional[str] = Field(
        default=None,
        description="Redis connection URL for RedisGrantSource (e.g., redis://localhost:6379/0)",
    )

    service_name: Optional[str] = Field(
        default=None,
        description="Service name used in route-level log lines",
    )

    # Policy
    admin_role: str = Field(
        default="admin",
        description="Role granted every permission unconditionally",
    )
    cache_stale_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Seconds a loaded grant snapshot is considered fresh",
    )
    cache_retain_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Seconds a stale snapshot is still served before eviction",
    )
    audit_enabled: bool = Field(
        default=False,
        description="Record every evaluator decision on the permcore.audit logger",
    )
    enforcement: EnforcementMode = Field(
        default=EnforcementMode.WARN,
        description="Route-level enforcement mode: off | warn | enforce",
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("Redis URL must start with redis://, rediss://, or unix://")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Convert string to LogLevel enum."""
        if isinstance(v, LogLevel):
            return v
        if isinstance(v, str):
            try:
                return LogLevel[v.upper()]
            except KeyError:
                raise ValueError(f"Invalid log level: {v}. Must be one of {[e.value for e in LogLevel]}")
        raise ValueError(f"Log level must be string or LogLevel enum, got {type(v)}")

    @field_validator("enforcement", mode="before")
    @classmethod
    def validate_enforcement(cls, v: str | EnforcementMode) -> EnforcementMode:
        """Accept ``OFF``/``Warn``/``enforce`` spellings."""
        if isinstance(v, EnforcementMode):
            return v
        if isinstance(v, str):
            try:
                return EnforcementMode(v.strip().lower())
            except ValueError:
                raise ValueError(f"Invalid enforcement mode: {v}. Must be one of {[e.value for e in EnforcementMode]}")
        raise ValueError(f"Enforcement mode must be string or EnforcementMode enum, got {type(v)}")

    @model_validator(mode="after")
    def validate_cache_window(self) -> "PolicyConfig":
        if self.cache_retain_seconds < self.cache_stale_seconds:
            raise ValueError("cache_retain_seconds must be >= cache_stale_seconds")
        return self

    model_config = {
        "extra": "forbid",
    }


def load_policy_config_from_env() -> PolicyConfig:
    """Load configuration from environment variables.

    This is the ONLY place where os.getenv is allowed.

    Environment variables:
    - LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - LOG_JSON: Use JSON log format (true/false, default: false)
    - REDIS_URL: Redis connection URL
    - SERVICE_NAME: Service name for route-level logs
    - PERMCORE_ADMIN_ROLE: Role with unconditional access (default: admin)
    - PERMCORE_CACHE_STALE_SECONDS: Snapshot freshness window (default: 300)
    - PERMCORE_CACHE_RETAIN_SECONDS: Snapshot retention window (default: 600)
    - PERMCORE_AUDIT_ENABLED: Record evaluator decisions (true/false)
    - SECURITY_ENFORCEMENT: off | warn | enforce (default: warn)

    Returns:
        PolicyConfig instance with values from environment or defaults.
    """
    import os

    return PolicyConfig(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=os.getenv("LOG_JSON", "false").lower() in _TRUTHY,
        redis_url=os.getenv("REDIS_URL"),
        service_name=os.getenv("SERVICE_NAME"),
        admin_role=os.getenv("PERMCORE_ADMIN_ROLE", "admin"),
        cache_stale_seconds=float(os.getenv("PERMCORE_CACHE_STALE_SECONDS", "300")),
        cache_retain_seconds=float(os.getenv("PERMCORE_CACHE_RETAIN_SECONDS", "600")),
        audit_enabled=os.getenv("PERMCORE_AUDIT_ENABLED", "false").lower() in _TRUTHY,
        enforcement=os.getenv("SECURITY_ENFORCEMENT", "warn"),
    )


__all__ = [
    "EnforcementMode",
    "LogLevel",
    "PolicyConfig",
    "load_policy_config_from_env",
]

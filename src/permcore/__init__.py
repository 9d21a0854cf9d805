from .config import EnforcementMode, LogLevel, PolicyConfig, load_policy_config_from_env
from .exceptions import (
    ErrorKind,
    PermcoreError,
    PermissionDeniedError,
    StoreUnavailableError,
    UnknownPermissionError,
)
from .interfaces import GrantSource, MutableGrantSource
from .logging import (
    safe_preview,
    redact_secrets,
    safe_log_value,
    PermcoreFormatter,
    ActorLoggerAdapter,
    setup_logging,
    get_actor_logger,
)
from .permissions import (
    DEFAULT_ROLE_GRANTS,
    PERMISSION_SETS,
    Action,
    Actor,
    Category,
    Permission,
    Permissions,
    Resource,
    Role,
    RoleGrant,
    UserGrant,
)
from .policy import (
    GrantCache,
    GrantSnapshot,
    InMemoryGrantSource,
    LoadStatus,
    PermissionAuditor,
    PolicyEvaluator,
    PolicyStore,
    RedisGrantSource,
    Verdict,
)
from .security import AccessGate, GateDecision, GateOutcome, GateRequirement, build_access_gate

__all__ = [
    'EnforcementMode',
    'LogLevel',
    'PolicyConfig',
    'load_policy_config_from_env',
    'ErrorKind',
    'PermcoreError',
    'PermissionDeniedError',
    'StoreUnavailableError',
    'UnknownPermissionError',
    'GrantSource',
    'MutableGrantSource',
    'safe_preview',
    'redact_secrets',
    'safe_log_value',
    'PermcoreFormatter',
    'ActorLoggerAdapter',
    'setup_logging',
    'get_actor_logger',
    'DEFAULT_ROLE_GRANTS',
    'PERMISSION_SETS',
    'Action',
    'Actor',
    'Category',
    'Permission',
    'Permissions',
    'Resource',
    'Role',
    'RoleGrant',
    'UserGrant',
    'GrantCache',
    'GrantSnapshot',
    'InMemoryGrantSource',
    'LoadStatus',
    'PermissionAuditor',
    'PolicyEvaluator',
    'PolicyStore',
    'RedisGrantSource',
    'Verdict',
    'AccessGate',
    'GateDecision',
    'GateOutcome',
    'GateRequirement',
    'build_access_gate',
]

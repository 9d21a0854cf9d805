"""Unified exception hierarchy for permcore.

Every error raised by permcore is a ``PermcoreError`` with a stable ``code``.
Alongside the exception classes live ``ErrorKind`` (the error states a
verdict carries instead of raising), a code registry, and the gRPC status
mapping used by ``grpc_error_handler``.

Usage in services:
    from permcore.exceptions import (
        PermcoreError,
        PermissionDeniedError,
        StoreUnavailableError,
        grpc_error_handler,
    )

The evaluator never raises for expected conditions (missing grant, expired
grant, unknown actor). ``PermissionDeniedError`` is raised only by
``AccessGate.enforce``.
"""

from __future__ import annotations

import functools
import logging
from enum import Enum
from typing import Any, Callable, TypeVar, cast

__all__ = [
    # Verdict error kinds
    "ErrorKind",
    # Base hierarchy
    "PermcoreError",
    "ConfigurationError",
    "StorageError",
    "StoreUnavailableError",
    "UnknownActorError",
    "MalformedGrantError",
    "UnknownPermissionError",
    "PermissionDeniedError",
    # Registry
    "ErrorRegistry",
    "error_registry",
    "register_error",
    # gRPC helpers
    "get_grpc_status_code",
    "grpc_error_handler",
]

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Error states a verdict can carry.

    Only ``STORE_UNAVAILABLE`` ever reaches a verdict today; the other kinds
    are resolved inside the store (unknown actor → no grants, malformed row →
    row skipped) and exist so logs and audit records can name them.
    """

    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    UNKNOWN_ACTOR = "UNKNOWN_ACTOR"
    MALFORMED_GRANT = "MALFORMED_GRANT"


# ── Errors ──────────────────────────────────────────────────────


class PermcoreError(Exception):
    """Base exception for all permcore errors.

    Attributes:
        code: Stable error code string for protocol mapping (e.g. "PERMISSION_DENIED").
        message: Human-readable error description.
        details: Additional context as keyword arguments.
    """

    code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(self, message: str | None = None, code: str | None = None, **kwargs: Any) -> None:
        self.message = message or self.message
        self.code = code or self.code
        self.details = kwargs
        super().__init__(self.message)


class ConfigurationError(PermcoreError):
    """PolicyConfig or a grant source was given unusable settings."""

    code: str = "CONFIGURATION_ERROR"


class StorageError(PermcoreError):
    """Grant persistence layer failure."""

    code: str = "STORAGE_ERROR"


class StoreUnavailableError(StorageError):
    """Grant fetch failed (network or database). Recoverable by retrying."""

    code: str = "STORE_UNAVAILABLE"
    message: str = "Permission store unavailable"


class UnknownActorError(PermcoreError):
    """User id does not resolve to a known actor."""

    code: str = "UNKNOWN_ACTOR"
    message: str = "Unknown actor"


class MalformedGrantError(PermcoreError):
    """Grant row is missing required fields or carries unknown identifiers."""

    code: str = "MALFORMED_GRANT"
    message: str = "Malformed grant row"


class UnknownPermissionError(PermcoreError, ValueError):
    """Category/action pair is not part of the permission catalog."""

    code: str = "UNKNOWN_PERMISSION"
    message: str = "Unknown permission"


class PermissionDeniedError(PermcoreError):
    """Actor lacks the role or permissions required by a gate."""

    code: str = "PERMISSION_DENIED"
    message: str = "Permission denied"


# ── Registry ────────────────────────────────────────────────────

_E = TypeVar("_E", bound=type[PermcoreError])


class ErrorRegistry:
    """Error code → exception class, for callers decoding error codes off the wire."""

    def __init__(self) -> None:
        self._errors: dict[str, type[PermcoreError]] = {}

    def register(self, code: str, error_cls: type[PermcoreError]) -> None:
        self._errors[code] = error_cls

    def get(self, code: str) -> type[PermcoreError] | None:
        return self._errors.get(code)

    def all(self) -> dict[str, type[PermcoreError]]:
        return dict(self._errors)


error_registry = ErrorRegistry()


def register_error(code: str) -> Callable[[_E], _E]:
    """Register an application-specific error class under ``code``.

    Usage:
        @register_error("BILLING_LOCKED")
        class BillingLockedError(PermcoreError):
            code = "BILLING_LOCKED"
    """

    def decorator(cls: _E) -> _E:
        error_registry.register(code, cls)
        return cls

    return cast(Callable[[_E], _E], decorator)


# Register base errors
error_registry.register("INTERNAL_ERROR", PermcoreError)
error_registry.register("CONFIGURATION_ERROR", ConfigurationError)
error_registry.register("STORAGE_ERROR", StorageError)
error_registry.register("STORE_UNAVAILABLE", StoreUnavailableError)
error_registry.register("UNKNOWN_ACTOR", UnknownActorError)
error_registry.register("MALFORMED_GRANT", MalformedGrantError)
error_registry.register("UNKNOWN_PERMISSION", UnknownPermissionError)
error_registry.register("PERMISSION_DENIED", PermissionDeniedError)


# ── gRPC mapping ────────────────────────────────────────────────


def get_grpc_status_code(error: PermcoreError) -> Any:
    """Map PermcoreError to gRPC status code.

    Codes without an entry map to ``INTERNAL``.
    """
    import grpc

    error_to_status = {
        "PERMISSION_DENIED": grpc.StatusCode.PERMISSION_DENIED,
        "UNKNOWN_ACTOR": grpc.StatusCode.UNAUTHENTICATED,
        "CONFIGURATION_ERROR": grpc.StatusCode.FAILED_PRECONDITION,
        "STORAGE_ERROR": grpc.StatusCode.UNAVAILABLE,
        "STORE_UNAVAILABLE": grpc.StatusCode.UNAVAILABLE,
        "UNKNOWN_PERMISSION": grpc.StatusCode.INVALID_ARGUMENT,
        "MALFORMED_GRANT": grpc.StatusCode.INTERNAL,
    }
    return error_to_status.get(error.code, grpc.StatusCode.INTERNAL)


def grpc_error_handler(method):
    """Wrap a unary gRPC handler so permcore errors abort with a mapped status.

    Catches PermcoreError and sets appropriate gRPC status codes, so handlers
    can call ``await gate.enforce(...)`` and let denials surface as
    ``PERMISSION_DENIED``.

    Usage:
        @grpc_error_handler
        async def PublishJob(self, request, context):
            await gate.enforce(actor, JOB_MANAGEMENT)
            ...
    """

    @functools.wraps(method)
    async def wrapper(self, request, context):
        try:
            return await method(self, request, context)
        except PermcoreError as e:
            status_code = get_grpc_status_code(e)
            error_message = f"[{e.code}] {e.message}"

            logger.error(
                "%s failed: %s",
                method.__name__,
                error_message,
                extra={
                    "error_code": e.code,
                    "error_details": e.details,
                },
            )

            context.set_trailing_metadata([("error-code", e.code)])
            await context.abort(status_code, error_message)
            return

        except Exception as e:
            import grpc

            logger.exception("%s unexpected error: %s", method.__name__, e)
            await context.abort(
                grpc.StatusCode.INTERNAL,
                f"Unexpected {type(e)}: {e}",
            )
            return

    return wrapper

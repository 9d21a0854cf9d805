"""Tests for the exception hierarchy and gRPC error mapping."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import grpc
import pytest

from permcore.exceptions import (
    ConfigurationError,
    ErrorKind,
    MalformedGrantError,
    PermcoreError,
    PermissionDeniedError,
    StorageError,
    StoreUnavailableError,
    UnknownActorError,
    UnknownPermissionError,
    error_registry,
    get_grpc_status_code,
    grpc_error_handler,
    register_error,
)


class TestHierarchy:
    """Stable codes and defaults."""

    def test_defaults(self) -> None:
        err = StoreUnavailableError()
        assert err.code == "STORE_UNAVAILABLE"
        assert err.message == "Permission store unavailable"
        assert str(err) == "Permission store unavailable"
        assert isinstance(err, StorageError)
        assert isinstance(err, PermcoreError)

    def test_details_from_kwargs(self) -> None:
        err = PermissionDeniedError("nope", user_id="u1", missing_roles=["admin"])
        assert err.details == {"user_id": "u1", "missing_roles": ["admin"]}

    def test_unknown_permission_is_value_error(self) -> None:
        assert issubclass(UnknownPermissionError, ValueError)

    def test_error_kinds(self) -> None:
        assert {k.value for k in ErrorKind} == {"STORE_UNAVAILABLE", "UNKNOWN_ACTOR", "MALFORMED_GRANT"}


class TestErrorRegistry:
    def test_base_errors_registered(self) -> None:
        assert error_registry.get("PERMISSION_DENIED") is PermissionDeniedError
        assert error_registry.get("MALFORMED_GRANT") is MalformedGrantError
        assert error_registry.get("NOPE") is None

    def test_register_custom_error(self) -> None:
        @register_error("BILLING_LOCKED")
        class BillingLockedError(PermcoreError):
            code = "BILLING_LOCKED"

        assert error_registry.get("BILLING_LOCKED") is BillingLockedError
        assert "BILLING_LOCKED" in error_registry.all()


class TestGrpcStatusMapping:
    @pytest.mark.parametrize(
        ("error", "status"),
        [
            (PermissionDeniedError(), grpc.StatusCode.PERMISSION_DENIED),
            (UnknownActorError(), grpc.StatusCode.UNAUTHENTICATED),
            (StoreUnavailableError(), grpc.StatusCode.UNAVAILABLE),
            (StorageError(), grpc.StatusCode.UNAVAILABLE),
            (UnknownPermissionError(), grpc.StatusCode.INVALID_ARGUMENT),
            (ConfigurationError(), grpc.StatusCode.FAILED_PRECONDITION),
            (PermcoreError(), grpc.StatusCode.INTERNAL),
        ],
    )
    def test_status_codes(self, error: PermcoreError, status: grpc.StatusCode) -> None:
        assert get_grpc_status_code(error) == status


class _Servicer:
    @grpc_error_handler
    async def PublishJob(self, request, context):
        raise PermissionDeniedError("You need admin role to access this content.")

    @grpc_error_handler
    async def ListJobs(self, request, context):
        return ["j1"]

    @grpc_error_handler
    async def Crash(self, request, context):
        raise RuntimeError("boom")


class TestGrpcErrorHandler:
    """grpc_error_handler maps exceptions to aborts."""

    def _context(self):
        context = MagicMock()
        context.abort = AsyncMock()
        return context

    @pytest.mark.asyncio
    async def test_passes_through_result(self) -> None:
        assert await _Servicer().ListJobs(None, self._context()) == ["j1"]

    @pytest.mark.asyncio
    async def test_permcore_error_aborts_with_status(self) -> None:
        context = self._context()
        await _Servicer().PublishJob(None, context)
        status, message = context.abort.await_args.args
        assert status == grpc.StatusCode.PERMISSION_DENIED
        assert message.startswith("[PERMISSION_DENIED]")
        context.set_trailing_metadata.assert_called_once_with([("error-code", "PERMISSION_DENIED")])

    @pytest.mark.asyncio
    async def test_unexpected_error_is_internal(self) -> None:
        context = self._context()
        await _Servicer().Crash(None, context)
        assert context.abort.await_args.args[0] == grpc.StatusCode.INTERNAL

"""
Tests for retry decorator and helper functions.

Tests cover:
- _get_http_status: status extraction from httpx and ArcGIS errors
- _should_retry: Determining if an exception should trigger retry
- convert_to_portal_error: Converting exceptions to PortalError
- with_retry decorator: async functions
"""

import httpx
import pytest

from adapters.http import ArcGISResponseError
from models import ErrorKind, PortalError, TransportError, ValidationError
from retry import (
    RETRYABLE_STATUS_CODES,
    _get_http_status,
    _should_retry,
    convert_to_portal_error,
    with_retry,
)


class TestGetHttpStatus:
    """Tests for _get_http_status function."""

    def test_arcgis_error(self) -> None:
        assert _get_http_status(ArcGISResponseError(498, "Invalid token")) == 498

    def test_httpx_status_error(self) -> None:
        request = httpx.Request("GET", "https://example.com")
        response = httpx.Response(502, request=request)
        exc = httpx.HTTPStatusError("bad gateway", request=request, response=response)
        assert _get_http_status(exc) == 502

    def test_no_status_returns_none(self) -> None:
        assert _get_http_status(Exception("Generic error")) is None

    def test_non_int_status_ignored(self) -> None:
        exc = Exception("Error")
        exc.status_code = "not_a_number"
        assert _get_http_status(exc) is None


class TestShouldRetry:
    """Tests for _should_retry function."""

    def test_connection_errors_are_retryable(self) -> None:
        assert _should_retry(ConnectionError("refused"))
        assert _should_retry(TimeoutError("slow"))
        assert _should_retry(httpx.ConnectError("refused"))
        assert _should_retry(httpx.ReadTimeout("slow"))

    def test_server_errors_are_retryable(self) -> None:
        for status in RETRYABLE_STATUS_CODES:
            assert _should_retry(ArcGISResponseError(status, "err")), f"{status} should be retryable"

    @pytest.mark.parametrize("status", [400, 403, 404, 498, 499])
    def test_client_errors_not_retryable(self, status: int) -> None:
        assert not _should_retry(ArcGISResponseError(status, "err"))

    def test_portal_error_uses_retryable_flag(self) -> None:
        assert _should_retry(TransportError(ErrorKind.NETWORK_ERROR, "x", retryable=True))
        assert not _should_retry(ValidationError("bad"))


class TestConvertToPortalError:
    """Tests for convert_to_portal_error."""

    def test_passes_portal_error_through(self) -> None:
        original = ValidationError("bad")
        assert convert_to_portal_error(original) is original

    @pytest.mark.parametrize("status,kind", [
        (401, ErrorKind.AUTH_EXPIRED),
        (498, ErrorKind.AUTH_EXPIRED),
        (499, ErrorKind.AUTH_EXPIRED),
        (403, ErrorKind.PERMISSION_DENIED),
        (404, ErrorKind.NOT_FOUND),
        (400, ErrorKind.INVALID_INPUT),
        (429, ErrorKind.RATE_LIMITED),
        (500, ErrorKind.NETWORK_ERROR),
    ])
    def test_status_mapping(self, status: int, kind: ErrorKind) -> None:
        error = convert_to_portal_error(ArcGISResponseError(status, "err"))
        assert isinstance(error, TransportError)
        assert error.kind == kind

    def test_timeout(self) -> None:
        error = convert_to_portal_error(httpx.ReadTimeout("slow"))
        assert error.kind == ErrorKind.TIMEOUT
        assert error.retryable

    def test_network(self) -> None:
        error = convert_to_portal_error(httpx.ConnectError(""))
        assert error.kind == ErrorKind.NETWORK_ERROR
        assert error.message == "Connection failed"

    def test_unknown(self) -> None:
        error = convert_to_portal_error(RuntimeError("weird"))
        assert error.kind == ErrorKind.UNKNOWN
        assert not error.retryable


class TestWithRetryAsync:
    """Tests for with_retry decorator with async functions."""

    @pytest.mark.asyncio
    async def test_successful_async_call(self) -> None:
        @with_retry(max_attempts=3, delay_ms=1)
        async def succeed() -> str:
            return "async success"

        assert await succeed() == "async success"

    @pytest.mark.asyncio
    async def test_retries_async_on_retryable_error(self) -> None:
        attempts = [0]

        @with_retry(max_attempts=3, delay_ms=1)
        async def fail_then_succeed() -> str:
            attempts[0] += 1
            if attempts[0] < 3:
                raise httpx.ReadTimeout("Temporary failure")
            return "success"

        assert await fail_then_succeed() == "success"
        assert attempts[0] == 3

    @pytest.mark.asyncio
    async def test_async_raises_on_non_retryable(self) -> None:
        attempts = [0]

        @with_retry(max_attempts=3, delay_ms=1)
        async def forbidden() -> str:
            attempts[0] += 1
            raise ArcGISResponseError(403, "Forbidden")

        with pytest.raises(PortalError) as exc_info:
            await forbidden()

        assert exc_info.value.kind == ErrorKind.PERMISSION_DENIED
        assert attempts[0] == 1

    @pytest.mark.asyncio
    async def test_max_attempts_one_converts_only(self) -> None:
        attempts = [0]

        @with_retry(max_attempts=1)
        async def always_fail() -> str:
            attempts[0] += 1
            raise ConnectionError("down")

        with pytest.raises(PortalError) as exc_info:
            await always_fail()

        assert exc_info.value.kind == ErrorKind.NETWORK_ERROR
        assert attempts[0] == 1

    @pytest.mark.asyncio
    async def test_portal_error_raised_unchanged(self) -> None:
        original = ValidationError("bad")

        @with_retry(max_attempts=2, delay_ms=1)
        async def invalid() -> str:
            raise original

        with pytest.raises(ValidationError) as exc_info:
            await invalid()

        assert exc_info.value is original

    @pytest.mark.asyncio
    async def test_convert_errors_false_keeps_original(self) -> None:
        @with_retry(max_attempts=1, convert_errors=False)
        async def fail() -> None:
            raise ArcGISResponseError(404, "Item does not exist")

        with pytest.raises(ArcGISResponseError):
            await fail()

    def test_preserves_name(self) -> None:
        @with_retry()
        async def list_things() -> None:
            return None

        assert list_things.__name__ == "list_things"

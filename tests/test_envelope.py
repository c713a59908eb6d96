"""
Tests for the result envelope and its helpers.
"""

import asyncio

import aiohttp
import pytest
from unittest.mock import MagicMock

from caesarbot_gateway.envelope import (
    ApiError,
    Envelope,
    ProviderError,
    combine,
    failure,
    invoke,
    normalize_error,
    not_implemented,
    success,
    unwrap,
)
from caesarbot_gateway.models.core import TokenPrice


class TestEnvelopeConstructors:
    """Test envelope construction and rendering."""

    def test_success_envelope(self):
        """Success envelopes carry data and no error."""
        envelope = success({"value": 1})

        assert envelope.success is True
        assert envelope.data == {"value": 1}
        assert envelope.error is None
        assert envelope.timestamp > 0

    def test_failure_envelope(self):
        """Failure envelopes carry an error and no data."""
        envelope = failure("boom", code=500, details={"raw": True})

        assert envelope.success is False
        assert envelope.data is None
        assert envelope.error == ApiError("boom", 500, {"raw": True})

    def test_failure_without_message_gets_default(self):
        envelope = failure("")
        assert envelope.error.message == "Unknown error occurred"

    def test_not_implemented(self):
        """Placeholder operations report NOT_IMPLEMENTED."""
        envelope = not_implemented("Token scanning")

        assert envelope.success is False
        assert envelope.error.code == "NOT_IMPLEMENTED"
        assert "Token scanning" in envelope.error.message

    def test_to_dict_omits_error_on_success(self):
        """Rendered success envelopes have no error key and plain data."""
        envelope = success([TokenPrice(address="So111", value=1.5)])
        rendered = envelope.to_dict()

        assert set(rendered) == {"success", "data", "timestamp"}
        assert rendered["data"][0]["value"] == 1.5

    def test_to_dict_includes_error_on_failure(self):
        rendered = failure("nope", code="X").to_dict()

        assert rendered["success"] is False
        assert rendered["error"] == {"message": "nope", "code": "X", "details": None}


class TestNormalizeError:
    """Test exception normalization."""

    def test_provider_error_keeps_code_and_details(self):
        error = normalize_error(ProviderError("bad", code=404, details={"message": "bad"}))

        assert error.code == 404
        assert error.details == {"message": "bad"}

    def test_client_response_error_uses_status(self):
        exc = aiohttp.ClientResponseError(MagicMock(), (), status=503, message="Service Unavailable")
        error = normalize_error(exc)

        assert error.code == 503

    def test_transport_error_is_unknown(self):
        """Failures without a status have code UNKNOWN."""
        error = normalize_error(aiohttp.ClientConnectionError("connection refused"))

        assert error.code == "UNKNOWN"
        assert error.message == "connection refused"

    def test_timeout_message(self):
        error = normalize_error(asyncio.TimeoutError())

        assert error.code == "UNKNOWN"
        assert error.message == "Request timed out"


class TestInvoke:
    """Test wrapping provider calls."""

    @pytest.mark.asyncio
    async def test_invoke_success(self):
        async def call():
            return 42

        envelope = await invoke(call)

        assert envelope.success is True
        assert envelope.data == 42

    @pytest.mark.asyncio
    async def test_invoke_never_raises(self):
        """Provider failures become failed envelopes."""
        async def call():
            raise ProviderError("Request failed with status code 429", code=429, details={"retry": 1})

        envelope = await invoke(call, operation="birdeye.get_price")

        assert envelope.success is False
        assert envelope.error.code == 429
        assert envelope.error.details == {"retry": 1}

    @pytest.mark.asyncio
    async def test_invoke_propagates_cancellation(self):
        async def call():
            raise asyncio.CancelledError()

        with pytest.raises(asyncio.CancelledError):
            await invoke(call)

    @pytest.mark.asyncio
    async def test_timestamp_within_call_window(self):
        """Envelope timestamp is taken when the call completes."""
        from caesarbot_gateway.envelope import now_ms

        async def call():
            return None

        before = now_ms()
        envelope = await invoke(call)
        after = now_ms()

        assert before <= envelope.timestamp <= after


class TestUnwrapAndCombine:
    """Test envelope helpers for exception-style callers."""

    def test_unwrap_success(self):
        assert unwrap(success("data")) == "data"

    def test_unwrap_failure_raises(self):
        with pytest.raises(ProviderError) as exc_info:
            unwrap(failure("bad", code=400, details="body"))

        assert exc_info.value.code == 400
        assert exc_info.value.details == "body"

    def test_combine_merges_successful_payloads(self):
        result = combine([success({"a": 1}), success({"b": 2})])

        assert result.success is True
        assert result.data == {"a": 1, "b": 2}
        assert result.errors == []

    def test_combine_collects_failures(self):
        """Failures are reported with their index and break overall success."""
        result = combine([success({"a": 1}), failure("bad", code=500)])

        assert result.success is False
        assert result.data == {"a": 1}
        assert result.errors[0][0] == 1
        assert result.errors[0][1].code == 500

    def test_envelope_is_immutable(self):
        envelope = Envelope(success=True, data=1)
        with pytest.raises(Exception):
            envelope.success = False

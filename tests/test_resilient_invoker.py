"""Tests for retry with exponential backoff."""

from unittest.mock import AsyncMock, call, patch

import pytest

from app.services.ai_client import (
    MissingCredentialError,
    PayloadTooLargeError,
    QuotaExceededError,
)
from app.services.resilient_invoker import is_payload_error, is_quota_error, with_retry


class TestFingerprints:
    """Test error classification by message text."""

    @pytest.mark.parametrize(
        "message",
        ["Error code: 429", "You exceeded your current quota", "RESOURCE_EXHAUSTED", "Too Many Requests", "upstream ratelimit hit"],
    )
    def test_quota(self, message):
        assert is_quota_error(RuntimeError(message))

    @pytest.mark.parametrize(
        "message",
        ["413 Request Entity Too Large", "context_length_exceeded", "Failed to fetch"],
    )
    def test_payload(self, message):
        assert is_payload_error(RuntimeError(message))

    def test_transient(self):
        err = RuntimeError("connection reset")
        assert not is_quota_error(err)
        assert not is_payload_error(err)


class TestWithRetry:
    """Test retry budget and fatal short-circuits."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        operation = AsyncMock(return_value="ok")
        with patch("app.services.resilient_invoker.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await with_retry(operation) == "ok"
        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transient_then_success_doubles_delay(self):
        operation = AsyncMock(side_effect=[RuntimeError("boom"), RuntimeError("boom"), "ok"])
        with patch("app.services.resilient_invoker.asyncio.sleep", new_callable=AsyncMock) as sleep:
            assert await with_retry(operation, max_retries=3, delay=1000) == "ok"
        assert operation.await_count == 3
        assert sleep.await_args_list == [call(1.0), call(2.0)]

    @pytest.mark.asyncio
    async def test_exhausted_budget_reraises_last_error(self):
        operation = AsyncMock(side_effect=RuntimeError("server error"))
        with patch("app.services.resilient_invoker.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(RuntimeError, match="server error"):
                await with_retry(operation, max_retries=3, delay=1000)
        # 1 initial attempt + 3 retries
        assert operation.await_count == 4
        assert sleep.await_args_list == [call(1.0), call(2.0), call(4.0)]

    @pytest.mark.asyncio
    async def test_quota_error_not_retried(self):
        operation = AsyncMock(side_effect=RuntimeError("429 rate limit reached"))
        with patch("app.services.resilient_invoker.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(QuotaExceededError):
                await with_retry(operation, max_retries=3)
        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_payload_error_not_retried(self):
        operation = AsyncMock(side_effect=RuntimeError("Payload Too Large"))
        with patch("app.services.resilient_invoker.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(PayloadTooLargeError):
                await with_retry(operation, max_retries=3)
        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_classified_errors_pass_through(self):
        operation = AsyncMock(side_effect=MissingCredentialError())
        with patch("app.services.resilient_invoker.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(MissingCredentialError):
                await with_retry(operation, max_retries=3)
        operation.assert_awaited_once()
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        operation = AsyncMock(side_effect=RuntimeError("flaky"))
        with patch("app.services.resilient_invoker.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(RuntimeError):
                await with_retry(operation, max_retries=0)
        operation.assert_awaited_once()

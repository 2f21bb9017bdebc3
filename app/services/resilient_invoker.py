"""Retry with exponential backoff around a single generative-AI call.

Quota exhaustion and oversized payloads are recognised by substrings in the
error text and fail immediately; everything else is treated as transient.
"""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from app.services.ai_client import (
    AIServiceError,
    PayloadTooLargeError,
    QuotaExceededError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

QUOTA_FINGERPRINTS = (
    "429",
    "quota",
    "rate limit",
    "ratelimit",
    "resource_exhausted",
    "resource exhausted",
    "insufficient_quota",
    "too many requests",
)

PAYLOAD_FINGERPRINTS = (
    "413",
    "payload too large",
    "request entity too large",
    "context_length_exceeded",
    "maximum context length",
    "failed to fetch",
    "networkerror",
)


def _error_text(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}".lower()


def is_quota_error(exc: BaseException) -> bool:
    text = _error_text(exc)
    return any(marker in text for marker in QUOTA_FINGERPRINTS)


def is_payload_error(exc: BaseException) -> bool:
    text = _error_text(exc)
    return any(marker in text for marker in PAYLOAD_FINGERPRINTS)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    delay: float = 1000,
) -> T:
    """Await ``operation`` and retry transient failures.

    Args:
        operation: Zero-argument coroutine factory performing one AI call.
        max_retries: Retries after the first attempt.
        delay: First wait in milliseconds; doubles after every retry.

    Returns:
        The operation's result.

    Raises:
        QuotaExceededError: On a quota fingerprint, without retrying.
        PayloadTooLargeError: On an oversized-payload fingerprint, without retrying.
        AIServiceError: Already-classified errors (e.g. missing credential) pass through.
        Exception: The last transient error once retries are exhausted.
    """
    retries = max_retries
    while True:
        try:
            return await operation()
        except AIServiceError:
            raise
        except Exception as e:
            if is_quota_error(e):
                logger.warning("AI call hit quota limit; not retrying")
                raise QuotaExceededError() from e
            if is_payload_error(e):
                logger.warning("AI call rejected as oversized; not retrying")
                raise PayloadTooLargeError() from e
            if retries <= 0:
                raise
            logger.warning(
                "AI call failed (%s), retrying in %dms (%d retries left)",
                type(e).__name__,
                delay,
                retries,
            )
            await asyncio.sleep(delay / 1000)
            retries -= 1
            delay *= 2

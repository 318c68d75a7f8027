"""Exponential-backoff retry around a single HTTP call.

Delay before retry *n* (0-based) is ``base_delay * 2 ** n``: 1, 2, 4 s with
the defaults, with no jitter.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

from minimax_chat.errors import ExhaustedRetriesError, MiniMaxError, TransportError

from .error_classifier import ErrorClassifier

_logger = logging.getLogger(__name__)

# Retry configuration defaults
_MAX_RETRIES = 3
_BACKOFF_BASE = 1.0  # seconds

SendFn = Callable[[], Awaitable[httpx.Response]]
SleepFn = Callable[[float], Awaitable[None]]


class RetryingTransport:
    """Issue a call, retrying classified-retryable failures with backoff.

    Parameters
    ----------
    max_retries:
        Retries after the first attempt; ``max_retries + 1`` calls at most.
    base_delay:
        Backoff base in seconds.
    classifier:
        Maps non-success responses to errors.
    sleep:
        Awaitable sleep; injectable so tests run without real delays.
    """

    def __init__(
        self,
        max_retries: int = _MAX_RETRIES,
        base_delay: float = _BACKOFF_BASE,
        *,
        classifier: ErrorClassifier | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._classifier = classifier or ErrorClassifier()
        self._sleep = sleep

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay * (2 ** attempt)

    async def call(self, send: SendFn) -> httpx.Response:
        """Return the first successful response from *send*.

        Non-retryable errors propagate on the attempt that produced them.
        Once retries run out, :class:`ExhaustedRetriesError` is raised with
        the last error as its cause.  Cancellation propagates immediately,
        including out of a backoff sleep.
        """
        total = self.max_retries + 1

        for attempt in range(total):
            try:
                response = await send()
                if response.is_success:
                    return response
                error = await self._classify_response(response)
            except MiniMaxError as e:
                error = e
            except (httpx.TransportError, OSError) as e:
                error = TransportError(f"MiniMax request failed: {e!r}")
                error.__cause__ = e

            if not error.retryable:
                raise error

            if attempt == self.max_retries:
                raise ExhaustedRetriesError(error, total) from error

            delay = self.backoff_delay(attempt)
            _logger.warning(
                "Retryable error (%d), attempt %d/%d, waiting %.0fms",
                error.code, attempt + 1, total, delay * 1000,
            )
            await self._sleep(delay)

    async def _classify_response(self, response: httpx.Response) -> MiniMaxError:
        try:
            body = await response.aread()
        finally:
            await response.aclose()
        return self._classifier.classify(response.status_code, body)

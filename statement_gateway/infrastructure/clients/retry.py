"""Exponential backoff retry policy for outbound HTTP calls"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

import httpx

from statement_gateway.domain.exceptions import UpstreamServiceError
from statement_gateway.infrastructure.observability.metrics import retry_counter

logger = logging.getLogger(__name__)


def is_retryable_status(status_code: int) -> bool:
    """Rate limiting and server errors are worth another attempt"""
    return status_code == 429 or 500 <= status_code < 600


@dataclass
class RetryPolicy:
    """
    Retry an HTTP call with exponential backoff and jitter.

    Retry strategy:
    - Delay before retry n: base_delay * multiplier^(n-1), e.g. 1s, 2s, 4s, 8s, 16s
    - Plus uniform jitter of up to jitter_ratio of that delay, so concurrent
      callers do not retry in lockstep
    - Retries statuses accepted by ``retryable`` and transport errors
    - Any other non-2xx status fails immediately
    - After max_attempts the last observed error is raised

    ``sleep`` and ``rand`` are injectable for tests.
    """

    max_attempts: int = 6
    base_delay: float = 1.0
    multiplier: float = 2.0
    jitter_ratio: float = 0.1
    retryable: Callable[[int], bool] = is_retryable_status
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    rand: Callable[[], float] = random.random

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def backoff_delay(self, attempt: int) -> float:
        """Delay in seconds after the given (1-based) failed attempt"""
        delay = self.base_delay * (self.multiplier ** (attempt - 1))
        return delay + self.rand() * self.jitter_ratio * delay

    async def execute(
        self,
        send: Callable[[], Awaitable[httpx.Response]],
        service: str = "Upstream service",
    ) -> httpx.Response:
        """
        Run ``send`` until it returns a 2xx response or retries are exhausted.

        Raises:
            UpstreamServiceError: Non-retryable status, or retries exhausted
        """
        last_error: Optional[UpstreamServiceError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await send()
            except httpx.TransportError as e:
                last_error = UpstreamServiceError(f"{service} request failed: {e}")
            else:
                if response.is_success:
                    return response
                if not self.retryable(response.status_code):
                    raise UpstreamServiceError(
                        f"{service} error: {response.status_code} {response.reason_phrase}",
                        status_code=response.status_code,
                    )
                last_error = UpstreamServiceError(
                    f"{service} error: {response.status_code} {response.reason_phrase}",
                    status_code=response.status_code,
                )

            if attempt >= self.max_attempts:
                break

            delay = self.backoff_delay(attempt)
            logger.warning(
                f"{service} attempt {attempt}/{self.max_attempts} failed, retrying",
                extra={"attempt": attempt, "delay_seconds": round(delay, 3), "error": str(last_error)},
            )
            retry_counter.labels(service=service).inc()
            await self.sleep(delay)

        raise last_error

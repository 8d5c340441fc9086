"""
OTP service client.

DESIGN PRINCIPLES:
1. The issuing service is eventually consistent: wait ``initial_delay``
   once, then poll GET {base}/{identifier}?requestedAt=<ISO-8601>.
2. 404 means "not issued yet": retry, never an error of its own.
3. Any other failure (error status, missing code, transport error) fails
   that attempt only; the loop carries on until attempts run out.
4. Backoff between attempts: retry_delay, grown by backoff_factor, capped.
5. No caching: each call is one fresh polling sequence for one login.
6. Sleep is injected so tests can fast-forward time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable
from urllib.parse import quote

import httpx

from noticeboard.errors import OTPError, OTPNotReady, OTPServiceError, OTPTimeout

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def next_retry_delay(delay: float, backoff_factor: float, cap: float) -> float:
    """Delay to use after ``delay`` has been slept."""
    return min(delay * backoff_factor, cap)


class OTPClient:
    """Async client for the one-time-code issuing service."""

    def __init__(
        self,
        base_url: str,
        *,
        max_attempts: int = 4,
        initial_delay: float = 10.0,
        retry_delay: float = 5.0,
        backoff_factor: float = 2.0,
        retry_delay_cap: float = 30.0,
        timeout: int = 30,
        sleep: Sleep | None = None,
    ):
        if not base_url:
            raise ValueError("OTP service base URL is required")
        self._base_url = base_url.rstrip("/")
        self._max_attempts = max_attempts
        self._initial_delay = initial_delay
        self._retry_delay = retry_delay
        self._backoff_factor = backoff_factor
        self._retry_delay_cap = retry_delay_cap
        self._sleep = sleep or asyncio.sleep
        self._client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    def _code_url(self, identifier: str) -> str:
        return f"{self._base_url}/{quote(identifier, safe='')}"

    async def _lookup(self, identifier: str, requested_at: str) -> str:
        """One attempt. Returns the code or raises an OTPError."""
        try:
            resp = await self._client.get(
                self._code_url(identifier), params={"requestedAt": requested_at}
            )
        except httpx.HTTPError as e:
            raise OTPServiceError(f"OTP request failed: {e}") from e

        if resp.status_code == 404:
            raise OTPNotReady("OTP not issued yet (404)")
        if not resp.is_success:
            raise OTPServiceError(
                f"OTP service responded with HTTP {resp.status_code}: {resp.text[:500]}"
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise OTPServiceError(f"Malformed JSON from OTP service: {e}") from e

        otp = data.get("otp") if isinstance(data, dict) else None
        if otp is None or not str(otp).strip():
            raise OTPServiceError("OTP service responded OK but the code was missing or empty")

        logger.info("Received OTP issued at %s", data.get("createdAt"))
        return str(otp).strip()

    async def fetch_code(self, identifier: str, requested_at: str) -> str:
        """
        Poll until a code issued for ``requested_at`` is available.

        Raises OTPTimeout (chained to the last attempt's error) once
        ``max_attempts`` lookups have failed.
        """
        logger.info(
            "Waiting %.1fs before polling OTP for %s (max %d attempts)",
            self._initial_delay, identifier, self._max_attempts,
        )
        await self._sleep(self._initial_delay)

        delay = self._retry_delay
        last_exc: OTPError | None = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                return await self._lookup(identifier, requested_at)
            except OTPNotReady as e:
                last_exc = e
                logger.warning(
                    "OTP not ready for %s (attempt %d/%d), will retry",
                    identifier, attempt, self._max_attempts,
                )
            except OTPError as e:
                last_exc = e
                logger.error(
                    "OTP attempt %d/%d failed for %s: %s",
                    attempt, self._max_attempts, identifier, e,
                )

            if attempt < self._max_attempts:
                logger.info("Waiting %.1fs before the next OTP attempt", delay)
                await self._sleep(delay)
                delay = next_retry_delay(delay, self._backoff_factor, self._retry_delay_cap)

        logger.error(
            "All %d OTP attempts failed for %s. Last error: %s",
            self._max_attempts, identifier, last_exc,
        )
        raise OTPTimeout(
            identifier, f"Failed to get OTP after {self._max_attempts} attempts"
        ) from last_exc

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

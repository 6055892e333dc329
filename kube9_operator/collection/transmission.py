"""
Transmission client for sending collections to the kube9 server (pro tier).

Delivers one payload per call with an authenticated POST, a hard per-attempt
timeout, and a fixed retry/backoff policy. transmit() never raises: every
outcome comes back as a TransmissionResult so a telemetry outage can never
take the operator down with it.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Sequence

import httpx

from kube9_operator.collection.schemas import (
    CollectionPayload,
    TransmissionResult,
    TransmissionStatus,
)

logger = logging.getLogger(__name__)

TRANSMISSION_TIMEOUT_SECONDS = 30.0
MAX_ATTEMPTS = 3
BACKOFF_SECONDS = (1.0, 2.0, 4.0)
COLLECTIONS_PATH = "/v1/collections"


class FailureClass(str, Enum):
    """Whether another attempt is worth making."""

    TERMINAL = "terminal"
    RETRYABLE = "retryable"


class TransmissionHTTPError(Exception):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class TransmissionTimeoutError(Exception):
    """An attempt did not complete within the request timeout."""


def classify_failure(error: BaseException) -> FailureClass:
    """
    Classify a failed attempt.

    4xx responses are terminal. 5xx responses, timeouts and network errors
    are retryable, and so is anything unrecognised.
    """
    if isinstance(error, TransmissionHTTPError):
        if 400 <= error.status_code < 500:
            return FailureClass.TERMINAL
        return FailureClass.RETRYABLE

    if isinstance(error, (TransmissionTimeoutError, httpx.TimeoutException, asyncio.TimeoutError)):
        return FailureClass.RETRYABLE

    if isinstance(error, httpx.TransportError):
        return FailureClass.RETRYABLE

    # Unclassified failures are retryable
    return FailureClass.RETRYABLE


def backoff_delay(attempt: int, schedule: Sequence[float] = BACKOFF_SECONDS) -> float:
    """Delay after failed attempt ``attempt`` (1-based); the last value repeats."""
    if attempt - 1 < len(schedule):
        return schedule[attempt - 1]
    return schedule[-1]


class TransmissionClient:
    """
    Sends sanitized, validated payloads to the kube9 collection endpoint.

    Errors are logged, never raised, so the operator keeps running with
    degraded telemetry when the server is unreachable.
    """

    def __init__(
        self,
        server_url: str,
        api_key: str,
        timeout_seconds: float = TRANSMISSION_TIMEOUT_SECONDS,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_seconds: Sequence[float] = BACKOFF_SECONDS,
        sleep_func: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize transmission client.

        Args:
            server_url: Base URL of the kube9 server (e.g. https://api.kube9.dev)
            api_key: API key sent as a bearer token
            timeout_seconds: Hard limit for each attempt
            max_attempts: Total attempts per transmit() call
            backoff_seconds: Delays between attempts
            sleep_func: Coroutine used to wait between attempts
        """
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        if not backoff_seconds:
            raise ValueError("backoff_seconds must not be empty")

        self.server_url = server_url.rstrip("/")
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self.backoff_seconds = tuple(backoff_seconds)
        self._sleep = sleep_func

    @property
    def url(self) -> str:
        return f"{self.server_url}{COLLECTIONS_PATH}"

    @property
    def headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def transmit(self, payload: CollectionPayload) -> TransmissionResult:
        """
        Transmit a payload, retrying retryable failures with backoff.

        Returns:
            TransmissionResult describing delivery, rejection or exhaustion
        """
        collection_id = payload.collection_id
        collection_type = payload.collection_type.value

        try:
            body = payload.to_wire()
        except Exception as e:
            logger.error(f"Failed to serialize collection {collection_id}: {e}")
            return TransmissionResult(
                status=TransmissionStatus.FAILED,
                collection_id=collection_id,
                attempts=0,
                error=str(e),
            )

        logger.info(f"Transmitting collection {collection_id} ({collection_type}) to {self.url}")

        last_error: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                await self._attempt(body)
                logger.info(
                    f"Collection {collection_id} transmitted on attempt {attempt}/{self.max_attempts}"
                )
                return TransmissionResult(
                    status=TransmissionStatus.DELIVERED,
                    collection_id=collection_id,
                    attempts=attempt,
                )
            except Exception as e:
                last_error = e

            status_code = getattr(last_error, "status_code", None)

            if classify_failure(last_error) == FailureClass.TERMINAL:
                logger.error(
                    f"Collection {collection_id} rejected by server "
                    f"(status {status_code}, attempt {attempt}): {last_error}"
                )
                return TransmissionResult(
                    status=TransmissionStatus.REJECTED,
                    collection_id=collection_id,
                    attempts=attempt,
                    status_code=status_code,
                    error=str(last_error),
                )

            if attempt == self.max_attempts:
                break

            delay = backoff_delay(attempt, self.backoff_seconds)
            logger.warning(
                f"Transmission of {collection_id} failed on attempt {attempt}/{self.max_attempts}, "
                f"retrying in {delay}s: {last_error}"
            )
            await self._sleep(delay)

        logger.error(
            f"Transmission of {collection_id} failed after {self.max_attempts} attempts: {last_error}"
        )
        return TransmissionResult(
            status=TransmissionStatus.FAILED,
            collection_id=collection_id,
            attempts=self.max_attempts,
            status_code=getattr(last_error, "status_code", None),
            error=str(last_error),
        )

    async def _attempt(self, body: dict) -> None:
        """
        Make a single POST attempt.

        Raises:
            TransmissionHTTPError: Non-2xx response
            TransmissionTimeoutError: Attempt exceeded the timeout
            httpx.TransportError: Connection-level failure
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await asyncio.wait_for(
                    client.post(self.url, json=body, headers=self.headers),
                    timeout=self.timeout_seconds,
                )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise TransmissionTimeoutError(
                f"Transmission request timed out after {self.timeout_seconds}s"
            ) from e

        if 200 <= response.status_code < 300:
            return

        message = f"Server returned status {response.status_code}"
        try:
            data = response.json()
            if isinstance(data, dict) and data.get("message"):
                message = str(data["message"])
        except ValueError:
            # Body is not JSON
            pass

        raise TransmissionHTTPError(response.status_code, message)

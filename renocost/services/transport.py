"""Transport Service for RenoCost.

Executes HTTP requests against the model API with per-request timeouts,
bounded retries and exponential backoff, and classifies every failure
into a fixed error taxonomy (config.errors.TransportErrorKind).

Architecture:
- httpx.AsyncClient for the network call (injectable for tests)
- tenacity.AsyncRetrying drives the retry loop; only TIMEOUT,
  UNREACHABLE, RATE_LIMITED and SERVER_FAULT are retried
- Backoff: min(max_delay, base ** attempt + uniform(0, jitter)), attempt
  counter per logical call
- Cancellation: an asyncio.Event aborts the in-flight attempt and any
  pending backoff sleep with TransportError(CANCELLED)
"""

import asyncio
import functools
import json
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base
import structlog

from renocost.config.settings import settings
from renocost.config.errors import TransportError, TransportErrorKind

logger = structlog.get_logger(__name__)


# =============================================================================
# Data Models
# =============================================================================


@dataclass
class TransportRequest:
    """One logical HTTP call."""
    url: str
    method: str = "POST"
    headers: Dict[str, str] = field(default_factory=dict)
    json_body: Optional[Dict[str, Any]] = None
    timeout: Optional[float] = None  # seconds, overrides the service default


@dataclass
class TransportResponse:
    """Successful (2xx) response."""
    payload: bytes
    status_code: int
    latency_ms: int
    attempts: int
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.payload.decode("utf-8", errors="replace")


# =============================================================================
# Backoff
# =============================================================================


def compute_backoff_delay(
    attempt: int,
    base: float,
    max_delay: float,
    jitter: float,
    retry_after: Optional[float] = None,
    rng: Callable[[float, float], float] = random.uniform,
) -> float:
    """Delay before retry number `attempt` (1 for the first retry).

    Args:
        attempt: Retry number within one logical call.
        base: Exponential base.
        max_delay: Upper bound on the delay.
        jitter: Ceiling of the uniform random jitter.
        retry_after: Server hint; the delay is at least this long.
        rng: Random source (injectable for tests).

    Returns:
        Delay in seconds.
    """
    delay = base ** attempt + rng(0, jitter)
    if retry_after is not None:
        delay = max(delay, retry_after)
    return min(max_delay, delay)


class BackoffWait(wait_base):
    """tenacity wait strategy implementing compute_backoff_delay."""

    def __init__(self, base: float, max_delay: float, jitter: float):
        self.base = base
        self.max_delay = max_delay
        self.jitter = jitter

    def __call__(self, retry_state: RetryCallState) -> float:
        retry_after = None
        if retry_state.outcome is not None and retry_state.outcome.failed:
            exc = retry_state.outcome.exception()
            if isinstance(exc, TransportError):
                retry_after = exc.retry_after
        return compute_backoff_delay(
            retry_state.attempt_number,
            self.base,
            self.max_delay,
            self.jitter,
            retry_after=retry_after,
        )


def _should_retry(exc: BaseException) -> bool:
    return isinstance(exc, TransportError) and exc.is_retryable


async def _cancellable_sleep(delay: float, cancel_event: Optional[asyncio.Event] = None) -> None:
    """Sleep for `delay` seconds unless cancel_event fires first."""
    if cancel_event is None:
        await asyncio.sleep(delay)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise TransportError(TransportErrorKind.CANCELLED)


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


# =============================================================================
# Transport Service Class
# =============================================================================


class TransportService:
    """HTTP transport with retry, backoff and cancellation.

    Provides:
    - execute(): raw payload + status for 2xx responses
    - execute_json(): same, decoded as JSON
    - A closed failure taxonomy via TransportError.kind
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        backoff_base: Optional[float] = None,
        max_delay: Optional[float] = None,
        jitter: Optional[float] = None,
    ):
        """Initialize TransportService.

        Args:
            client: Optional httpx client (a private one is created lazily).
            timeout: Per-attempt timeout in seconds (default from settings).
            max_retries: Retries after the first attempt (default from settings).
            backoff_base: Exponential backoff base (default from settings).
            max_delay: Maximum backoff delay in seconds (default from settings).
            jitter: Jitter ceiling in seconds (default from settings).
        """
        self.timeout = timeout if timeout is not None else settings.transport_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.transport_max_retries
        self.backoff_base = backoff_base if backoff_base is not None else settings.backoff_base
        self.max_delay = max_delay if max_delay is not None else settings.backoff_max_delay
        self.jitter = jitter if jitter is not None else settings.backoff_jitter

        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get httpx client (lazy initialization)."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        """Close the client if this service created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "TransportService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def execute(
        self,
        request: TransportRequest,
        cancel_event: Optional[asyncio.Event] = None,
        max_retries: Optional[int] = None,
    ) -> TransportResponse:
        """Execute a request with retry and backoff.

        Args:
            request: The request to send.
            cancel_event: Setting this event aborts the call.
            max_retries: Override of the configured retry count.

        Returns:
            TransportResponse for a 2xx reply with a non-empty body.

        Raises:
            TransportError: Classified failure; `attempts` holds the number
                of attempts made.
        """
        retries = self.max_retries if max_retries is None else max(0, max_retries)
        body = self._encode(request)

        started = time.monotonic()
        attempts = 0
        response: Optional[httpx.Response] = None

        retrying = AsyncRetrying(
            stop=stop_after_attempt(retries + 1),
            wait=BackoffWait(self.backoff_base, self.max_delay, self.jitter),
            retry=retry_if_exception(_should_retry),
            sleep=functools.partial(_cancellable_sleep, cancel_event=cancel_event),
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    attempts += 1
                    response = await self._attempt(request, body, cancel_event)
        except TransportError as e:
            e.attempts = attempts
            logger.warning(
                "transport_failed",
                url=_redact(request.url),
                kind=e.kind.value,
                status_code=e.status_code,
                attempts=attempts,
            )
            raise

        latency_ms = int((time.monotonic() - started) * 1000)
        logger.debug(
            "transport_succeeded",
            url=_redact(request.url),
            status_code=response.status_code,
            attempts=attempts,
            latency_ms=latency_ms,
        )
        return TransportResponse(
            payload=response.content,
            status_code=response.status_code,
            latency_ms=latency_ms,
            attempts=attempts,
            headers=dict(response.headers),
        )

    async def execute_json(
        self,
        request: TransportRequest,
        cancel_event: Optional[asyncio.Event] = None,
        max_retries: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Execute a request and decode the JSON body.

        Raises:
            TransportError: DECODE_FAILED if the body is not JSON, otherwise
                as execute().
        """
        response = await self.execute(request, cancel_event=cancel_event, max_retries=max_retries)
        try:
            return json.loads(response.payload)
        except ValueError as e:
            error = TransportError(
                TransportErrorKind.DECODE_FAILED,
                message=f"Failed to decode response: {e}",
                status_code=response.status_code,
            )
            error.attempts = response.attempts
            raise error from e

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @staticmethod
    def _encode(request: TransportRequest) -> Optional[bytes]:
        if request.json_body is None:
            return None
        try:
            return json.dumps(request.json_body).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise TransportError(
                TransportErrorKind.ENCODE_FAILED,
                message=f"Failed to encode request: {e}",
            ) from e

    async def _attempt(
        self,
        request: TransportRequest,
        body: Optional[bytes],
        cancel_event: Optional[asyncio.Event],
    ) -> httpx.Response:
        """Run one attempt, racing it against the cancel event."""
        if cancel_event is None:
            return await self._send(request, body)
        if cancel_event.is_set():
            raise TransportError(TransportErrorKind.CANCELLED)

        send_task = asyncio.ensure_future(self._send(request, body))
        cancel_task = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {send_task, cancel_task},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            cancel_task.cancel()
            if not send_task.done():
                send_task.cancel()
                await asyncio.gather(send_task, return_exceptions=True)

        if send_task in done:
            return send_task.result()
        raise TransportError(TransportErrorKind.CANCELLED)

    async def _send(self, request: TransportRequest, body: Optional[bytes]) -> httpx.Response:
        headers = {**request.headers}
        if body is not None:
            headers.setdefault("Content-Type", "application/json")

        try:
            response = await self.client.request(
                request.method,
                request.url,
                content=body,
                headers=headers,
                timeout=request.timeout if request.timeout is not None else self.timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(TransportErrorKind.TIMEOUT) from e
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise TransportError(TransportErrorKind.INVALID_TARGET, message=f"Invalid URL: {e}") from e
        except httpx.NetworkError as e:
            raise TransportError(TransportErrorKind.UNREACHABLE) from e
        except httpx.HTTPError as e:
            raise TransportError(TransportErrorKind.UNKNOWN, message=str(e) or type(e).__name__) from e

        return self._classify(response)

    @staticmethod
    def _classify(response: httpx.Response) -> httpx.Response:
        """Return 2xx responses, raise a classified TransportError otherwise."""
        status = response.status_code

        if 200 <= status < 300:
            if not response.content:
                raise TransportError(TransportErrorKind.NO_DATA, status_code=status)
            return response
        if status in (401, 403):
            raise TransportError(TransportErrorKind.UNAUTHORIZED, status_code=status, body=response.text)
        if status == 429:
            raise TransportError(
                TransportErrorKind.RATE_LIMITED,
                status_code=status,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )
        if 400 <= status < 500:
            raise TransportError(TransportErrorKind.HTTP_ERROR, status_code=status, body=response.text)
        if 500 <= status < 600:
            raise TransportError(
                TransportErrorKind.SERVER_FAULT,
                status_code=status,
                body=response.text or "Internal server error",
            )
        raise TransportError(TransportErrorKind.HTTP_ERROR, status_code=status, body=response.text)

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "transport_retry",
            attempt=retry_state.attempt_number,
            delay_seconds=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
            kind=exc.kind.value if isinstance(exc, TransportError) else None,
        )


def _redact(url: str) -> str:
    """Drop query strings (which may carry keys) from logged URLs."""
    return url.split("?", 1)[0]

"""
Request orchestrator for the same-origin JSON API.

Handles timeouts, retries with exponential backoff, HTML-vs-JSON
content sniffing and diagnostic reporting. Failures are returned as
RequestOutcome values, never raised.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from safemom.config import get_base_url, get_preview_bypass_token
from safemom.domain.request.error_patterns import (
    detect_error_pattern,
    get_url_details,
    inspect_html,
    is_html_response,
    solution_for_status,
)
from safemom.domain.request.models import (
    Diagnostics,
    FailureKind,
    RequestDescriptor,
    RequestOutcome,
)

logger = structlog.get_logger(__name__)

OFFLINE_MESSAGE = (
    "You appear to be offline. Please check your internet connection and try again."
)
TIMEOUT_MESSAGE = "Request timed out. Please try again later."
PARSE_FAILURE_MESSAGE = "Failed to parse server response. Please try again later."
AUTH_FAILURE_MESSAGE = "API authentication issue. This may be a temporary problem."

PREVIEW_BYPASS_HEADER = "x-vercel-protection-bypass"


@dataclass(frozen=True)
class _AttemptResult:
    """Outcome of a single attempt plus whether it may be retried."""

    outcome: RequestOutcome[Any]
    retryable: bool = False


class RequestOrchestrator:
    """
    Resilient JSON API caller.

    Every failure category (HTML page, unparsable body, 5xx, timeout,
    transport error) draws from one shared retry budget, so a request
    makes at most ``retries + 1`` attempts.

    Example:
        >>> async with RequestOrchestrator(base_url="http://localhost:3000") as api:
        ...     outcome = await api.request(
        ...         RequestDescriptor(
        ...             endpoint="/api/find-ingredients",
        ...             data={"productName": "CeraVe Moisturizing Cream"},
        ...         )
        ...     )
        ...     if outcome.ok:
        ...         print(outcome.data["ingredients"])
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
        origin: Optional[str] = None,
        is_online: Callable[[], bool] = lambda: True,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        default_headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            client: Pre-configured httpx client (owned by caller)
            base_url: Explicit base URL (resolved from origin/env if None)
            origin: Page origin when embedded in a browser-like context
            is_online: Connectivity probe
            sleep: Backoff sleep function (injectable for tests)
            default_headers: Headers added to every request
        """
        self._client = client
        self._owns_client = False
        self.base_url = (base_url or get_base_url(origin)).rstrip("/")
        self._is_online = is_online
        self._sleep = sleep
        self.default_headers: Dict[str, str] = dict(default_headers or {})

        bypass_token = get_preview_bypass_token()
        if bypass_token:
            self.default_headers.setdefault(PREVIEW_BYPASS_HEADER, bypass_token)

    async def __aenter__(self) -> RequestOrchestrator:
        """Async context manager entry."""
        if self._client is None:
            self._client = httpx.AsyncClient(follow_redirects=True)
            self._owns_client = True
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    def build_url(self, endpoint: str) -> str:
        """Join the base URL with a normalized endpoint path."""
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        return f"{self.base_url}{path}"

    async def request(self, descriptor: RequestDescriptor) -> RequestOutcome[Any]:
        """
        Perform one logical request/response exchange.

        Args:
            descriptor: What to call and how

        Returns:
            Success outcome with parsed JSON, or failure outcome

        Raises:
            RuntimeError: If used outside ``async with`` without a client
        """
        if self._client is None:
            raise RuntimeError("Client not initialized. Use async with.")

        url = self.build_url(descriptor.endpoint)
        logger.info(
            "api_request",
            url=url,
            method=descriptor.method.value,
            retries=descriptor.retries,
        )

        result: Optional[_AttemptResult] = None
        retrying = AsyncRetrying(
            stop=stop_after_attempt(descriptor.retries + 1),
            wait=wait_exponential(
                multiplier=descriptor.retry_delay_ms / 1000.0,
                exp_base=2,
            ),
            retry=retry_if_result(lambda attempt: attempt.retryable),
            retry_error_callback=lambda state: state.outcome.result(),
            before_sleep=self._log_retry,
            sleep=self._sleep,
        )

        async for attempt in retrying:
            with attempt:
                result = await self._attempt(
                    descriptor, url, attempt.retry_state.attempt_number - 1
                )
            if not attempt.retry_state.outcome.failed:
                attempt.retry_state.set_result(result)

        if result is None:
            raise RuntimeError("Retry loop finished without an attempt result.")
        outcome = result.outcome

        if not outcome.ok:
            logger.error(
                "api_error",
                url=url,
                kind=outcome.kind.value if outcome.kind else None,
                error=outcome.error,
                status=outcome.status_code,
            )

        return outcome

    # ───────────────────────────────────────────────────────
    # Single attempt
    # ───────────────────────────────────────────────────────

    async def _attempt(
        self, descriptor: RequestDescriptor, url: str, attempt: int
    ) -> _AttemptResult:
        budget_left = attempt < descriptor.retries

        try:
            response = await asyncio.wait_for(
                self._send(descriptor, url),
                timeout=descriptor.timeout_ms / 1000.0,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(
                "api_timeout",
                url=url,
                timeout_ms=descriptor.timeout_ms,
                attempt=attempt,
            )
            return _AttemptResult(
                RequestOutcome.failure(
                    FailureKind.TIMEOUT,
                    TIMEOUT_MESSAGE,
                    Diagnostics(url=url, retry_attempt=attempt),
                ),
                retryable=budget_left,
            )
        except httpx.InvalidURL as e:
            logger.error("api_invalid_url", url=url, error=str(e))
            return _AttemptResult(
                RequestOutcome.failure(
                    FailureKind.NETWORK_ERROR,
                    f"Network error: {e}",
                    Diagnostics(url=url, retry_attempt=attempt),
                )
            )
        except httpx.HTTPError as e:
            if not self._is_online():
                return _AttemptResult(
                    RequestOutcome.failure(
                        FailureKind.OFFLINE,
                        OFFLINE_MESSAGE,
                        Diagnostics(url=url, retry_attempt=attempt),
                    )
                )

            logger.warning("api_network_error", url=url, error=str(e), attempt=attempt)
            return _AttemptResult(
                RequestOutcome.failure(
                    FailureKind.NETWORK_ERROR,
                    f"Network error: {e}",
                    Diagnostics(url=url, retry_attempt=attempt),
                ),
                retryable=budget_left,
            )

        return self._handle_response(response, url, attempt, budget_left)

    async def _send(self, descriptor: RequestDescriptor, url: str) -> httpx.Response:
        if self._client is None:
            raise RuntimeError("Client not initialized. Use async with.")

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Cache-Control": "no-store",
            **self.default_headers,
            **descriptor.headers,
        }

        return await self._client.request(
            descriptor.method.value,
            url,
            json=descriptor.data if descriptor.has_body else None,
            headers=headers,
            timeout=descriptor.timeout_ms / 1000.0,
            follow_redirects=True,
        )

    def _handle_response(
        self,
        response: httpx.Response,
        url: str,
        attempt: int,
        budget_left: bool,
    ) -> _AttemptResult:
        status = response.status_code
        content_type = response.headers.get("content-type", "")
        response_size = _parse_content_length(response.headers.get("content-length"))

        def diagnostics(**extra: Any) -> Diagnostics:
            return Diagnostics(
                url=url,
                url_details=get_url_details(url),
                status_code=status,
                content_type=content_type,
                response_size=response_size,
                retry_attempt=attempt,
                **extra,
            )

        # 401 is never fatal: the body is used if it parses.
        if status == 401:
            logger.warning("api_unauthorized", url=url)
            try:
                return _AttemptResult(
                    RequestOutcome.success(response.json(), diagnostics())
                )
            except ValueError:
                return _AttemptResult(
                    RequestOutcome.failure(
                        FailureKind.HTTP_ERROR, AUTH_FAILURE_MESSAGE, diagnostics()
                    )
                )

        if is_html_response(content_type):
            html = response.text
            pattern = detect_error_pattern(status, html, redirected=bool(response.history))
            logger.error(
                "api_html_response",
                url=url,
                status=status,
                pattern=pattern.name if pattern else None,
            )

            retryable = (status >= 500 or status == 0) and budget_left
            error = (
                f"{pattern.name}: {pattern.description}"
                if pattern
                else f"Server returned HTML instead of JSON. Status: {status}"
            )
            return _AttemptResult(
                RequestOutcome.failure(
                    FailureKind.HTML_PAGE,
                    error,
                    diagnostics(
                        html_response=inspect_html(html, status),
                        error_pattern=pattern,
                    ),
                ),
                retryable=retryable,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error("api_json_parse_error", url=url, error=str(e))
            return _AttemptResult(
                RequestOutcome.failure(
                    FailureKind.JSON_PARSE_ERROR, PARSE_FAILURE_MESSAGE, diagnostics()
                ),
                retryable=budget_left,
            )

        if not response.is_success:
            server_error = data.get("error") if isinstance(data, dict) else None
            return _AttemptResult(
                RequestOutcome.failure(
                    FailureKind.HTTP_ERROR,
                    str(server_error) if server_error else solution_for_status(status),
                    diagnostics(),
                ),
                retryable=status >= 500 and budget_left,
            )

        return _AttemptResult(RequestOutcome.success(data, diagnostics()))

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        kind = None
        if outcome is not None and not outcome.failed:
            failed = outcome.result().outcome
            kind = failed.kind.value if failed.kind else None

        logger.info(
            "api_retry",
            attempt=retry_state.attempt_number,
            delay_s=retry_state.next_action.sleep if retry_state.next_action else None,
            kind=kind,
        )


def _parse_content_length(raw: Optional[str]) -> int:
    if not raw:
        return 0
    try:
        return int(raw)
    except ValueError:
        return 0

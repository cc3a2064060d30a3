"""
Unit tests for RequestOrchestrator.

HTTP is served by httpx.MockTransport handlers; backoff sleeps are
recorded by the ``sleeps`` fixture instead of awaited.
"""

import asyncio
import json
from typing import Callable, List

import httpx
import pytest

from safemom.domain.request.models import FailureKind, HttpMethod, RequestDescriptor
from safemom.infrastructure.http.orchestrator import (
    AUTH_FAILURE_MESSAGE,
    OFFLINE_MESSAGE,
    PARSE_FAILURE_MESSAGE,
    PREVIEW_BYPASS_HEADER,
    TIMEOUT_MESSAGE,
    RequestOrchestrator,
)

HTML_500_PAGE = (
    "<html><head><title>500: Internal Server Error</title></head>"
    "<body><h1>Application error</h1><pre>TypeError: cannot read property</pre>"
    "</body></html>"
)


def identify_descriptor(**kwargs: object) -> RequestDescriptor:
    return RequestDescriptor(
        endpoint="/api/identify-product",
        data={"imageUrl": "https://blob.example/cerave.jpg"},
        **kwargs,
    )


def sequence(*responses: Callable[[httpx.Request], httpx.Response]) -> Callable:
    """Handler answering with each response factory in turn, then the last one."""
    calls: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        index = min(len(calls), len(responses)) - 1
        return responses[index](request)

    handler.calls = calls  # type: ignore[attr-defined]
    return handler


class TestSuccess:
    """Tests for successful exchanges."""

    async def test_returns_parsed_json(self, make_orchestrator, sleeps) -> None:
        """Test JSON success with diagnostics."""
        handler = sequence(lambda r: httpx.Response(200, json={"product": "CeraVe"}))
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.ok
        assert outcome.data == {"product": "CeraVe"}
        assert outcome.diagnostics.status_code == 200
        assert outcome.diagnostics.retry_attempt == 0
        assert outcome.diagnostics.response_size > 0
        assert sleeps.delays == []

    async def test_request_headers_and_body(self, make_orchestrator) -> None:
        """Test JSON headers, no-store cache and body."""
        handler = sequence(lambda r: httpx.Response(200, json={}))
        orchestrator = make_orchestrator(handler)

        await orchestrator.request(identify_descriptor(headers={"X-Trace": "1"}))

        request = handler.calls[0]
        assert request.method == "POST"
        assert str(request.url) == "http://safemom.test/api/identify-product"
        assert request.headers["content-type"] == "application/json"
        assert request.headers["accept"] == "application/json"
        assert request.headers["cache-control"] == "no-store"
        assert request.headers["x-trace"] == "1"
        assert json.loads(request.content) == {"imageUrl": "https://blob.example/cerave.jpg"}

    async def test_get_sends_no_body(self, make_orchestrator) -> None:
        """Test GET requests carry no payload."""
        handler = sequence(lambda r: httpx.Response(200, json={"status": "ok"}))
        orchestrator = make_orchestrator(handler)

        await orchestrator.request(
            RequestDescriptor(endpoint="api/ping", method=HttpMethod.GET, data={"x": 1})
        )

        assert handler.calls[0].method == "GET"
        assert handler.calls[0].content == b""

    async def test_transport_timeout_follows_descriptor(self, make_orchestrator) -> None:
        """Test the httpx timeout is the descriptor timeout, not the 5s client default."""
        handler = sequence(lambda r: httpx.Response(200, json={"product": "CeraVe"}))
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.ok
        assert handler.calls[0].extensions["timeout"] == {
            "connect": 30.0,
            "read": 30.0,
            "write": 30.0,
            "pool": 30.0,
        }

    async def test_transport_timeout_custom(self, make_orchestrator) -> None:
        handler = sequence(lambda r: httpx.Response(200, json={}))
        orchestrator = make_orchestrator(handler)

        await orchestrator.request(identify_descriptor(timeout_ms=45000))

        assert handler.calls[0].extensions["timeout"]["read"] == 45.0

    async def test_bypass_header_when_configured(
        self, make_orchestrator, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test preview bypass token is sent only when set."""
        monkeypatch.setenv("SAFEMOM_PREVIEW_BYPASS_TOKEN", "secret-token")
        handler = sequence(lambda r: httpx.Response(200, json={}))
        orchestrator = make_orchestrator(handler)

        await orchestrator.request(identify_descriptor())

        assert handler.calls[0].headers[PREVIEW_BYPASS_HEADER] == "secret-token"

    async def test_no_bypass_header_by_default(self, make_orchestrator) -> None:
        handler = sequence(lambda r: httpx.Response(200, json={}))
        orchestrator = make_orchestrator(handler)

        await orchestrator.request(identify_descriptor())

        assert PREVIEW_BYPASS_HEADER not in handler.calls[0].headers


class TestRetries:
    """Tests for the shared retry budget and backoff."""

    async def test_html_500_twice_then_success(self, make_orchestrator, sleeps) -> None:
        """Test success on the third attempt reports retry_attempt 2."""
        handler = sequence(
            lambda r: httpx.Response(500, html=HTML_500_PAGE),
            lambda r: httpx.Response(500, html=HTML_500_PAGE),
            lambda r: httpx.Response(200, json={"product": "CeraVe Moisturizing Cream"}),
        )
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.ok
        assert outcome.data == {"product": "CeraVe Moisturizing Cream"}
        assert outcome.diagnostics.retry_attempt == 2
        assert len(handler.calls) == 3
        assert sleeps.delays == [1.0, 2.0]

    async def test_timeout_on_all_attempts(self, make_orchestrator, sleeps) -> None:
        """Test timeouts exhaust exactly retries + 1 attempts."""

        def handler(request: httpx.Request) -> httpx.Response:
            handler.calls += 1  # type: ignore[attr-defined]
            raise httpx.ReadTimeout("timed out", request=request)

        handler.calls = 0  # type: ignore[attr-defined]
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert not outcome.ok
        assert outcome.kind == FailureKind.TIMEOUT
        assert outcome.error == TIMEOUT_MESSAGE
        assert handler.calls == 3
        assert sleeps.delays == [1.0, 2.0]

    async def test_total_timeout_enforced(self, make_orchestrator) -> None:
        """Test a slow response is cut by the per-attempt timeout."""

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200, json={})

        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor(timeout_ms=10, retries=0))

        assert outcome.kind == FailureKind.TIMEOUT

    @pytest.mark.parametrize("retries", [0, 1, 3])
    async def test_attempts_capped_by_budget(
        self, make_orchestrator, sleeps, retries: int
    ) -> None:
        """Test at most retries + 1 attempts with doubling delays."""
        handler = sequence(lambda r: httpx.Response(503, json={"error": "busy"}))
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(
            identify_descriptor(retries=retries, retry_delay_ms=100)
        )

        assert outcome.error == "busy"
        assert len(handler.calls) == retries + 1
        assert sleeps.delays == [0.1 * 2**i for i in range(retries)]

    async def test_network_error_retried(self, make_orchestrator) -> None:
        """Test transport errors are retried while online."""
        responses = iter([None, httpx.Response(200, json={"ok": True})])

        def handler(request: httpx.Request) -> httpx.Response:
            response = next(responses)
            if response is None:
                raise httpx.ConnectError("connection reset", request=request)
            return response

        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.ok
        assert outcome.diagnostics.retry_attempt == 1

    async def test_network_error_exhausted(self, make_orchestrator) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor(retries=1))

        assert outcome.kind == FailureKind.NETWORK_ERROR
        assert outcome.error == "Network error: connection refused"

    async def test_invalid_url_is_network_error(self, make_orchestrator, sleeps) -> None:
        """Test a malformed base URL is returned as a failure, not raised."""
        handler = sequence(lambda r: httpx.Response(200, json={}))
        orchestrator = make_orchestrator(handler)
        orchestrator.base_url = "http://safemom.test:notaport"

        outcome = await orchestrator.request(identify_descriptor())

        assert not outcome.ok
        assert outcome.kind == FailureKind.NETWORK_ERROR
        assert outcome.error.startswith("Network error: Invalid port")
        assert handler.calls == []
        assert sleeps.delays == []

    async def test_offline_short_circuits(self, make_orchestrator, sleeps) -> None:
        """Test offline transport failure is returned without retrying."""
        attempts: List[int] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(1)
            raise httpx.ConnectError("no route", request=request)

        orchestrator = make_orchestrator(handler, is_online=lambda: False)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.kind == FailureKind.OFFLINE
        assert outcome.error == OFFLINE_MESSAGE
        assert len(attempts) == 1
        assert sleeps.delays == []

    async def test_invalid_json_retried_then_reported(self, make_orchestrator) -> None:
        handler = sequence(
            lambda r: httpx.Response(
                200, content=b"{not json", headers={"content-type": "application/json"}
            )
        )
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.kind == FailureKind.JSON_PARSE_ERROR
        assert outcome.error == PARSE_FAILURE_MESSAGE
        assert len(handler.calls) == 3

    async def test_unexpected_exception_propagates(self, make_orchestrator) -> None:
        """Test programming errors are not turned into outcomes."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise KeyError("bug")

        orchestrator = make_orchestrator(handler)

        with pytest.raises(KeyError):
            await orchestrator.request(identify_descriptor())


class TestHtmlResponses:
    """Tests for HTML-instead-of-JSON handling."""

    async def test_html_never_parsed_as_json(self, make_orchestrator) -> None:
        """Test HTML with a 200 status is classified, not parsed."""
        handler = sequence(lambda r: httpx.Response(200, html="<html>{}</html>"))
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.kind == FailureKind.HTML_PAGE
        assert outcome.error == "Server returned HTML instead of JSON. Status: 200"
        assert outcome.diagnostics.html_response is not None
        assert len(handler.calls) == 1

    async def test_server_error_page_exhausted(self, make_orchestrator) -> None:
        handler = sequence(lambda r: httpx.Response(500, html=HTML_500_PAGE))
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.kind == FailureKind.HTML_PAGE
        assert outcome.error.startswith("Server Error: ")
        assert outcome.diagnostics.error_pattern.name == "Server Error"
        assert json.loads(outcome.diagnostics.html_response)["errorType"] == (
            "500 Server Error"
        )
        assert len(handler.calls) == 3

    async def test_not_found_page_not_retried(self, make_orchestrator) -> None:
        handler = sequence(
            lambda r: httpx.Response(404, html="<h1>This page could not be found.</h1>")
        )
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.diagnostics.error_pattern.name == "Route Not Found"
        assert len(handler.calls) == 1

    async def test_redirect_detected(self, make_orchestrator) -> None:
        """Test a followed redirect landing on HTML is a redirect loop."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/api/identify-product":
                return httpx.Response(302, headers={"location": "/login"})
            return httpx.Response(200, html="<title>Sign in</title>")

        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.kind == FailureKind.HTML_PAGE
        assert outcome.error.startswith("Redirect Loop: ")


class TestStatusHandling:
    """Tests for non-2xx JSON responses."""

    async def test_bad_request_not_retried(self, make_orchestrator) -> None:
        handler = sequence(lambda r: httpx.Response(400, json={"error": "Invalid image"}))
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.kind == FailureKind.HTTP_ERROR
        assert outcome.error == "Invalid image"
        assert outcome.status_code == 400
        assert len(handler.calls) == 1

    async def test_status_without_error_field(self, make_orchestrator) -> None:
        handler = sequence(lambda r: httpx.Response(413, json={}))
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.error.startswith("Payload too large")

    async def test_unauthorized_body_is_used(self, make_orchestrator) -> None:
        """Test 401 with a JSON body is a success."""
        handler = sequence(lambda r: httpx.Response(401, json={"product": "Red Wine"}))
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.ok
        assert outcome.data == {"product": "Red Wine"}
        assert outcome.status_code == 401

    async def test_unauthorized_unparsable(self, make_orchestrator) -> None:
        handler = sequence(lambda r: httpx.Response(401, html="<title>Login</title>"))
        orchestrator = make_orchestrator(handler)

        outcome = await orchestrator.request(identify_descriptor())

        assert outcome.error == AUTH_FAILURE_MESSAGE
        assert len(handler.calls) == 1


class TestLifecycle:
    """Tests for client ownership."""

    async def test_requires_client(self) -> None:
        orchestrator = RequestOrchestrator(base_url="http://safemom.test")

        with pytest.raises(RuntimeError, match="Use async with"):
            await orchestrator.request(identify_descriptor())

    async def test_owns_client_inside_context(self) -> None:
        async with RequestOrchestrator(base_url="http://safemom.test/") as orchestrator:
            assert orchestrator._client is not None
            assert orchestrator.build_url("api/ping") == "http://safemom.test/api/ping"

        assert orchestrator._client is None

    async def test_injected_client_left_open(self) -> None:
        client = httpx.AsyncClient()
        async with RequestOrchestrator(client=client, base_url="http://x"):
            pass

        assert not client.is_closed
        await client.aclose()

    def test_base_url_from_origin(self) -> None:
        orchestrator = RequestOrchestrator(origin="https://safemom.app/")

        assert orchestrator.base_url == "https://safemom.app"

    async def test_send_requires_client(self) -> None:
        orchestrator = RequestOrchestrator(base_url="http://safemom.test")

        with pytest.raises(RuntimeError, match="Use async with"):
            await orchestrator._send(identify_descriptor(), "http://safemom.test/api/ping")

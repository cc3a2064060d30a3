"""REST troubleshooting endpoints.

Small routes used to check that the API is reachable from the client
and that URLs resolve the way the client expects:

- GET /api/ping
- GET /api/url-info
- GET /api/debug-request?target=/api/ping
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
import structlog
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from safemom.config import get_base_url
from safemom.domain.request.error_patterns import is_html_response

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["diagnostics"])

# Response text kept in debug output
MAX_DEBUG_TEXT = 500

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie", "x-vercel-protection-bypass"}


class PingResponse(BaseModel):
    """Response model for /api/ping."""

    status: str
    timestamp: str
    message: str


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def mask_value(value: str) -> str:
    """Mask a secret keeping the first and last 4 chars.

    Example:
        >>> mask_value("sk-1234567890abcdef")
        'sk-1...cdef'
    """
    if len(value) > 8:
        return value[:4] + "..." + value[-4:]
    return "***"


def mask_headers(headers: httpx.Headers) -> Dict[str, str]:
    """Copy headers with sensitive values masked."""
    return {
        key: mask_value(value) if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def get_http_client(request: Request) -> httpx.AsyncClient:
    """HTTP client created by the app lifespan.

    Raises:
        RuntimeError: If the app was started without a client.
    """
    client: Optional[httpx.AsyncClient] = getattr(request.app.state, "http_client", None)
    if client is None:
        raise RuntimeError("HTTP client not initialized. Check app lifespan.")
    return client


@router.get("/ping", response_model=PingResponse)
async def ping() -> PingResponse:
    """Reachability probe used by the connectivity check."""
    return PingResponse(status="ok", timestamp=_now(), message="API is reachable")


@router.get("/url-info")
async def url_info(request: Request) -> Dict[str, Any]:
    """Describe the incoming request URL and the resolved base URL."""
    url = request.url
    return {
        "requestInfo": {
            "fullUrl": str(url),
            "protocol": f"{url.scheme}:",
            "host": url.netloc,
            "pathname": url.path,
            "search": f"?{url.query}" if url.query else "",
            "origin": f"{url.scheme}://{url.netloc}",
        },
        "baseUrl": get_base_url(),
        "timestamp": _now(),
    }


@router.get("/debug-request")
async def debug_request(
    target: str = Query(default="/api/ping"),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> JSONResponse:
    """Call an API route from the server side and report what came back."""
    base_url = get_base_url()
    url = f"{base_url}{target}" if target.startswith("/") else f"{base_url}/{target}"

    logger.info("debug_request", target=target, url=url)

    try:
        response = await client.get(
            url,
            headers={"Accept": "application/json", "X-Debug-Request": "1"},
            follow_redirects=True,
        )
    except httpx.HTTPError as e:
        logger.error("debug_request_failed", url=url, error=str(e))
        return JSONResponse(
            status_code=500,
            content={
                "error": f"Debug request failed: {e}",
                "baseUrl": base_url,
                "target": target,
            },
        )

    content_type = response.headers.get("content-type", "")
    response_data: Any
    if "application/json" in content_type:
        try:
            response_data = response.json()
        except ValueError:
            response_data = {"error": "Failed to parse JSON response"}
    else:
        text = response.text
        if len(text) > MAX_DEBUG_TEXT:
            text = text[:MAX_DEBUG_TEXT] + "..."
        response_data = {"text": text}

    return JSONResponse(
        content={
            "debug": {
                "target": target,
                "baseUrl": base_url,
                "url": url,
                "timestamp": _now(),
                "responseStatus": response.status_code,
                "responseStatusText": response.reason_phrase,
                "responseType": content_type,
                "isHtml": is_html_response(content_type),
                "responseSize": response.headers.get("content-length", "unknown"),
                "headers": mask_headers(response.headers),
            },
            "response": response_data,
        }
    )

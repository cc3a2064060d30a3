"""
Error pattern detection for non-JSON responses.

When an API route answers with an HTML page instead of JSON, the page is
usually a framework error page, an auth redirect or a gateway error.
This module classifies those pages and maps status codes to guidance.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import urlsplit

from safemom.domain.request.models import ErrorPattern

_TITLE_RE = re.compile(r"<title>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_PRE_RE = re.compile(r"<pre.*?>(.*?)</pre>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")

ERROR_TEXT_LIMIT = 200


@dataclass(frozen=True)
class _PatternRule:
    pattern: ErrorPattern
    detect: Callable[[int, str, bool], bool]


def _contains_any(html: str, needles: tuple[str, ...]) -> bool:
    return any(needle in html for needle in needles)


# Order matters: first match wins.
COMMON_ERROR_PATTERNS: List[_PatternRule] = [
    _PatternRule(
        pattern=ErrorPattern(
            name="Redirect Loop",
            description=(
                "The request hit the API but was redirected "
                "(missing trailing slash or auth middleware)"
            ),
            solution="Follow redirects on the client or correct the URL path",
        ),
        detect=lambda status, html, redirected: status == 302 or redirected,
    ),
    _PatternRule(
        pattern=ErrorPattern(
            name="Route Not Found",
            description=(
                "The API route path is wrong or deployed under the wrong directory"
            ),
            solution="Check the route location and redeploy",
        ),
        detect=lambda status, html, redirected: status == 404
        and _contains_any(html, ("NEXT_NOT_FOUND", "This page could not be found")),
    ),
    _PatternRule(
        pattern=ErrorPattern(
            name="Server Error",
            description=(
                "An uncaught exception in the API route "
                "(JSON parse error, runtime limit, upstream model error)"
            ),
            solution="Check server logs. Wrap the handler and return JSON errors",
        ),
        detect=lambda status, html, redirected: status == 500
        and _contains_any(html, ("Server Error", "Application error")),
    ),
    _PatternRule(
        pattern=ErrorPattern(
            name="Payload Too Large",
            description="Request body (e.g. base64 image) is too big for the route",
            solution="Raise the body size limit or upload the image separately",
        ),
        detect=lambda status, html, redirected: status == 413,
    ),
    _PatternRule(
        pattern=ErrorPattern(
            name="Gateway Timeout",
            description="Upstream model service timed out or the edge proxy failed",
            solution="Retry with exponential back-off; raise the upstream timeout",
        ),
        detect=lambda status, html, redirected: status in (502, 504, 524),
    ),
]


def is_html_response(content_type: Optional[str]) -> bool:
    """Check whether a Content-Type header denotes an HTML page."""
    return bool(content_type and "text/html" in content_type.lower())


def detect_error_pattern(
    status_code: int, html: str = "", redirected: bool = False
) -> Optional[ErrorPattern]:
    """
    Classify an HTML response against the known pattern table.

    Args:
        status_code: HTTP status of the response
        html: Response body
        redirected: Whether the response followed a redirect

    Returns:
        First matching ErrorPattern, or None

    Example:
        >>> detect_error_pattern(413).name
        'Payload Too Large'
        >>> detect_error_pattern(404, "<h1>Nothing here</h1>") is None
        True
    """
    for rule in COMMON_ERROR_PATTERNS:
        if rule.detect(status_code, html or "", redirected):
            return rule.pattern
    return None


def solution_for_status(status: int) -> str:
    """Human-readable guidance for a failed HTTP status."""
    if status == 302:
        return "Redirect detected. Follow redirects on the client or fix the URL path."
    if status == 404:
        return "API route not found. Check that the route is deployed at the expected path."
    if status == 413:
        return "Payload too large. Raise the request body limit or shrink the image."
    if status == 500:
        return "Server error. Check server logs for uncaught exceptions."
    if status in (502, 504, 524):
        return "Gateway timeout. Retry with exponential back-off."
    return f"Unexpected status code: {status}. Check server logs."


def inspect_html(html: str, status_code: int) -> str:
    """
    Extract a short diagnostic snippet from an HTML page.

    Returns:
        Pretty-printed JSON with title, errorType, statusCode, errorText
    """
    title_match = _TITLE_RE.search(html)
    title = title_match.group(1).strip() if title_match else "Unknown page"

    pre_match = _PRE_RE.search(html)
    error_text = (
        _TAG_RE.sub("", pre_match.group(1)) if pre_match else "No specific error found"
    )
    if len(error_text) > ERROR_TEXT_LIMIT:
        error_text = error_text[:ERROR_TEXT_LIMIT] + "..."

    lowered = html.lower()
    if "404" in title or "page not found" in lowered:
        error_type = "404 Page"
    elif "500" in title or "server error" in lowered:
        error_type = "500 Server Error"
    elif "signin" in lowered or "auth" in lowered:
        error_type = "Auth Page"
    else:
        error_type = "Unknown HTML"

    return json.dumps(
        {
            "title": title,
            "errorType": error_type,
            "statusCode": status_code,
            "errorText": error_text,
        },
        indent=2,
    )


def get_url_details(url: str) -> str:
    """
    Break a URL into its parts for diagnostics.

    Example:
        >>> details = json.loads(get_url_details("https://x.app/api/ping?a=1"))
        >>> details["pathname"], details["search"]
        ('/api/ping', '?a=1')
    """
    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError("not an absolute URL")
    except ValueError:
        return f"Invalid URL: {url}"

    return json.dumps(
        {
            "protocol": f"{parts.scheme}:",
            "host": parts.netloc,
            "pathname": parts.path or "/",
            "search": f"?{parts.query}" if parts.query else "",
            "hash": f"#{parts.fragment}" if parts.fragment else "",
            "isAbsolute": url.startswith("http"),
        },
        indent=2,
    )

"""
Request orchestration models.

Immutable descriptors and discriminated outcomes for calls against the
same-origin JSON API.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")


class HttpMethod(str, Enum):
    """HTTP methods supported by the orchestrator."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class FailureKind(str, Enum):
    """
    Failure taxonomy exposed to callers.

    Each kind maps to a stable human-readable message.
    """

    OFFLINE = "offline"
    TIMEOUT = "timeout"
    NETWORK_ERROR = "network-error"
    HTML_PAGE = "html-page"
    JSON_PARSE_ERROR = "json-parse-error"
    HTTP_ERROR = "http-error"


class RequestDescriptor(BaseModel):
    """
    One outbound call.

    Created fresh per call and never mutated.

    Example:
        >>> descriptor = RequestDescriptor(
        ...     endpoint="api/find-ingredients",
        ...     data={"productName": "CeraVe Moisturizing Cream"},
        ... )
        >>> descriptor.endpoint
        '/api/find-ingredients'
        >>> descriptor.backoff_seconds(1)
        2.0
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    endpoint: str = Field(..., min_length=1, description="Same-origin path")
    method: HttpMethod = Field(default=HttpMethod.POST)
    data: Any = Field(default=None, description="JSON-serializable body")
    timeout_ms: int = Field(default=30000, gt=0)
    retries: int = Field(default=2, ge=0)
    retry_delay_ms: int = Field(default=1000, ge=0)
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("endpoint")
    @classmethod
    def normalize_endpoint(cls, v: str) -> str:
        """Ensure the path starts with a slash."""
        v = v.strip()
        return v if v.startswith("/") else f"/{v}"

    @property
    def has_body(self) -> bool:
        """Whether the payload is sent as a JSON body."""
        return self.method != HttpMethod.GET and self.data is not None

    def backoff_seconds(self, attempt: int) -> float:
        """
        Delay after the failed attempt number ``attempt`` (0-based).

        Returns:
            retry_delay_ms * 2^attempt, in seconds
        """
        return self.retry_delay_ms * (2**attempt) / 1000.0


class ErrorPattern(BaseModel):
    """Known misconfiguration signature with a suggested fix."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    solution: str


class Diagnostics(BaseModel):
    """
    Debugging metadata attached to an outcome.

    Not used for control flow, except status_code == 400 in the wizard.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    url_details: Optional[str] = None
    status_code: Optional[int] = None
    content_type: Optional[str] = None
    html_response: Optional[str] = None
    response_size: Optional[int] = None
    retry_attempt: Optional[int] = None
    error_pattern: Optional[ErrorPattern] = None


class RequestOutcome(BaseModel, Generic[T]):
    """
    Discriminated result of a request.

    Either ``data`` is set (success) or ``error`` is set (failure).
    Nothing is ever raised past the orchestrator boundary.

    Example:
        >>> outcome = RequestOutcome.failure(
        ...     FailureKind.TIMEOUT, "Request timed out. Please try again later."
        ... )
        >>> outcome.ok
        False
    """

    model_config = ConfigDict(frozen=True)

    data: Optional[T] = None
    error: Optional[str] = None
    kind: Optional[FailureKind] = None
    diagnostics: Optional[Diagnostics] = None

    @property
    def ok(self) -> bool:
        """True for a success outcome."""
        return self.error is None

    @property
    def status_code(self) -> Optional[int]:
        """HTTP status from diagnostics, if any."""
        return self.diagnostics.status_code if self.diagnostics else None

    @classmethod
    def success(
        cls, data: Any, diagnostics: Optional[Diagnostics] = None
    ) -> "RequestOutcome[Any]":
        """Build a success outcome."""
        return cls(data=data, diagnostics=diagnostics)

    @classmethod
    def failure(
        cls,
        kind: FailureKind,
        error: str,
        diagnostics: Optional[Diagnostics] = None,
    ) -> "RequestOutcome[Any]":
        """Build a failure outcome."""
        return cls(error=error, kind=kind, diagnostics=diagnostics)

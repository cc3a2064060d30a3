"""
SafeMom analysis API client.

Adapter implementing IAnalysisApi over the RequestOrchestrator.
Each call is one EndpointTemplate: payload in, validated model out.
"""

from typing import Any, List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError

from safemom.config import get_max_retries, get_request_timeout_ms, get_retry_delay_ms
from safemom.domain.analysis.endpoints import (
    ANALYZE_INGREDIENTS,
    FIND_INGREDIENTS,
    IDENTIFY_PRODUCT,
    EndpointTemplate,
    FindIngredientsResponse,
    IdentifyProductResponse,
    ResponseT,
    SafetyAnalysisResponse,
)
from safemom.domain.request.models import FailureKind, RequestOutcome
from safemom.infrastructure.http.orchestrator import RequestOrchestrator

logger = structlog.get_logger(__name__)


class SafeMomApiClient:
    """
    Client for the three analysis endpoints.

    Implements IAnalysisApi. Never raises for HTTP failures; a success
    body that does not match the expected schema becomes a
    ``json-parse-error`` failure.

    Example:
        >>> async with RequestOrchestrator() as orchestrator:
        ...     api = SafeMomApiClient(orchestrator)
        ...     outcome = await api.find_ingredients("CeraVe Moisturizing Cream")
        ...     if outcome.ok:
        ...         print(outcome.data.ingredients)
    """

    def __init__(
        self,
        orchestrator: RequestOrchestrator,
        timeout_ms: Optional[int] = None,
        retries: Optional[int] = None,
        retry_delay_ms: Optional[int] = None,
    ) -> None:
        """
        Initialize client.

        Args:
            orchestrator: Request orchestrator (owned by caller)
            timeout_ms: Per-attempt timeout (config default if None)
            retries: Retry budget per call (config default if None)
            retry_delay_ms: Base backoff delay (config default if None)
        """
        self._orchestrator = orchestrator
        self.timeout_ms = timeout_ms if timeout_ms is not None else get_request_timeout_ms()
        self.retries = retries if retries is not None else get_max_retries()
        self.retry_delay_ms = (
            retry_delay_ms if retry_delay_ms is not None else get_retry_delay_ms()
        )

    async def identify_product(
        self, image_url: str
    ) -> RequestOutcome[IdentifyProductResponse]:
        """Identify the product shown in an image."""
        return await self._call(IDENTIFY_PRODUCT, image_url=image_url)

    async def find_ingredients(
        self, product_name: str
    ) -> RequestOutcome[FindIngredientsResponse]:
        """Enumerate likely ingredients of a product."""
        return await self._call(FIND_INGREDIENTS, product_name=product_name)

    async def analyze_ingredients(
        self, ingredients: List[str], product_name: str, is_food: bool
    ) -> RequestOutcome[SafetyAnalysisResponse]:
        """Classify ingredients as pregnancy-safe or not."""
        return await self._call(
            ANALYZE_INGREDIENTS,
            ingredients=ingredients,
            product_name=product_name,
            is_food=is_food,
        )

    async def _call(
        self, template: EndpointTemplate[ResponseT], **params: Any
    ) -> RequestOutcome[ResponseT]:
        descriptor = template.descriptor(
            timeout_ms=self.timeout_ms,
            retries=self.retries,
            retry_delay_ms=self.retry_delay_ms,
            **params,
        )
        outcome = await self._orchestrator.request(descriptor)
        if not outcome.ok:
            return outcome

        try:
            parsed = template.parse(outcome.data)
        except PydanticValidationError as e:
            logger.error(
                "api_schema_mismatch",
                endpoint=template.name,
                errors=e.error_count(),
            )
            return RequestOutcome.failure(
                FailureKind.JSON_PARSE_ERROR,
                f"Failed to parse JSON response from {template.name}",
                outcome.diagnostics,
            )

        return RequestOutcome.success(parsed, outcome.diagnostics)

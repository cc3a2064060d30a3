"""
Ports (Interfaces) for Wizard Dependencies.

Defines the interfaces the WizardController consumes, so the
controller can be driven by the HTTP client or by test doubles.

Design Pattern: Ports & Adapters (Hexagonal Architecture)
"""

from typing import List, Optional, Protocol, runtime_checkable

from safemom.domain.analysis.endpoints import (
    FindIngredientsResponse,
    IdentifyProductResponse,
    SafetyAnalysisResponse,
)
from safemom.domain.analysis.models import AnalysisResult
from safemom.domain.request.models import RequestOutcome


@runtime_checkable
class IAnalysisApi(Protocol):
    """
    Port for the three analysis endpoints.

    Implementations never raise for HTTP failures: every failure is a
    RequestOutcome with ``error`` set.
    """

    async def identify_product(
        self, image_url: str
    ) -> RequestOutcome[IdentifyProductResponse]:
        """
        Identify the product shown in an image.

        Args:
            image_url: Public URL or data URL of the image

        Returns:
            Outcome with the identified product name
        """
        ...

    async def find_ingredients(
        self, product_name: str
    ) -> RequestOutcome[FindIngredientsResponse]:
        """
        Enumerate likely ingredients of a product.

        Args:
            product_name: Identified product name

        Returns:
            Outcome with ingredient list, alcohol and food flags
        """
        ...

    async def analyze_ingredients(
        self, ingredients: List[str], product_name: str, is_food: bool
    ) -> RequestOutcome[SafetyAnalysisResponse]:
        """
        Classify ingredients as pregnancy-safe or not.

        Args:
            ingredients: Ingredient list from the previous step
            product_name: Identified product name
            is_food: Whether the product is food

        Returns:
            Outcome with harmful ingredients and the safety verdict
        """
        ...


@runtime_checkable
class ISearchStore(Protocol):
    """
    Port for the bounded saved-searches list.

    Newest first, capped in size; the oldest entry is evicted silently.
    """

    def save(self, result: AnalysisResult) -> None:
        """Store a result at the front of the list."""
        ...

    def list(self) -> List[AnalysisResult]:
        """Return all stored results, newest first."""
        ...

    def get(self, result_id: str) -> Optional[AnalysisResult]:
        """Return one result by id, or None."""
        ...

    def delete(self, result_id: str) -> bool:
        """Remove one result by id. Returns True if something was removed."""
        ...

    def clear(self) -> None:
        """Remove all results."""
        ...

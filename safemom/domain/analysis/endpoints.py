"""
Endpoint templates for the analysis API.

One parametrized template per backend route: the path, how to build
the request payload, and the response schema to validate against.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from safemom.domain.analysis.models import HarmfulIngredient, SafetyReport
from safemom.domain.request.models import RequestDescriptor

ResponseT = TypeVar("ResponseT", bound=BaseModel)


# ═══════════════════════════════════════════════════════════
# RESPONSE SCHEMAS
# ═══════════════════════════════════════════════════════════


class IdentifyProductResponse(BaseModel):
    """Response of /api/identify-product."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    product: Optional[str] = None
    unidentifiable: bool = False

    @field_validator("product")
    @classmethod
    def strip_product(cls, v: Optional[str]) -> Optional[str]:
        """Trim whitespace around the model's answer."""
        return v.strip() if isinstance(v, str) else v


class FindIngredientsResponse(BaseModel):
    """Response of /api/find-ingredients."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ingredients: List[str] = Field(default_factory=list)
    contains_alcohol: bool = Field(default=False, alias="containsAlcohol")
    alcohol_warning: Optional[str] = Field(default=None, alias="alcoholWarning")
    is_food: bool = Field(default=False, alias="isFood")

    @field_validator("ingredients", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        """Treat a null ingredient list as empty."""
        return [] if v is None else v

    @field_validator("contains_alcohol", "is_food", mode="before")
    @classmethod
    def none_as_false(cls, v: Any) -> Any:
        """Treat null flags as false."""
        return False if v is None else v


class SafetyAnalysisResponse(BaseModel):
    """Response of /api/analyze-ingredients."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    harmful_ingredients: List[HarmfulIngredient] = Field(
        default_factory=list, alias="harmfulIngredients"
    )
    is_safe: bool = Field(..., alias="isSafe")
    parsing_error: Optional[bool] = Field(default=None, alias="parsingError")

    @field_validator("harmful_ingredients", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        """Treat a null harmful list as empty."""
        return [] if v is None else v

    def to_report(self) -> SafetyReport:
        """Convert to the domain safety report, unchanged."""
        return SafetyReport(
            harmful_ingredients=list(self.harmful_ingredients),
            is_safe=self.is_safe,
            parsing_error=self.parsing_error,
        )


# ═══════════════════════════════════════════════════════════
# TEMPLATE
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class EndpointTemplate(Generic[ResponseT]):
    """
    Request template: path + payload builder + response schema.

    Example:
        >>> descriptor = FIND_INGREDIENTS.descriptor(product_name="Red Wine")
        >>> descriptor.endpoint, descriptor.data
        ('/api/find-ingredients', {'productName': 'Red Wine'})
    """

    name: str
    path: str
    response_model: Type[ResponseT]
    build_payload: Callable[..., Dict[str, Any]]

    def descriptor(
        self,
        timeout_ms: int = 30000,
        retries: int = 2,
        retry_delay_ms: int = 1000,
        **params: Any,
    ) -> RequestDescriptor:
        """Build a fresh request descriptor for this endpoint."""
        return RequestDescriptor(
            endpoint=self.path,
            data=self.build_payload(**params),
            timeout_ms=timeout_ms,
            retries=retries,
            retry_delay_ms=retry_delay_ms,
        )

    def parse(self, data: Any) -> ResponseT:
        """
        Validate a JSON body against the response schema.

        Raises:
            pydantic.ValidationError: If the body does not match
        """
        return self.response_model.model_validate(data)


IDENTIFY_PRODUCT: EndpointTemplate[IdentifyProductResponse] = EndpointTemplate(
    name="identify-product",
    path="/api/identify-product",
    response_model=IdentifyProductResponse,
    build_payload=lambda image_url: {"imageUrl": image_url},
)

FIND_INGREDIENTS: EndpointTemplate[FindIngredientsResponse] = EndpointTemplate(
    name="find-ingredients",
    path="/api/find-ingredients",
    response_model=FindIngredientsResponse,
    build_payload=lambda product_name: {"productName": product_name},
)

ANALYZE_INGREDIENTS: EndpointTemplate[SafetyAnalysisResponse] = EndpointTemplate(
    name="analyze-ingredients",
    path="/api/analyze-ingredients",
    response_model=SafetyAnalysisResponse,
    build_payload=lambda ingredients, product_name, is_food: {
        "ingredients": list(ingredients),
        "productName": product_name,
        "isFood": is_food,
    },
)

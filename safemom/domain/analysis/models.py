"""
Analysis domain models.

Safety reports produced by the wizard and the persisted record saved
by the user at the end of a session.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

PLACEHOLDER_IMAGE = "/placeholder.svg"


class HarmfulIngredient(BaseModel):
    """Ingredient flagged as unsafe during pregnancy, with the reason."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    reason: str = Field(default="")


class SafetyReport(BaseModel):
    """
    Pregnancy safety verdict for an ingredient list.

    ``parsing_error`` is set by the backend when the model's answer could
    not be parsed; the verdict is then unreliable.
    """

    model_config = ConfigDict(frozen=True)

    harmful_ingredients: List[HarmfulIngredient] = Field(default_factory=list)
    is_safe: bool
    parsing_error: Optional[bool] = None


ALCOHOL_HARMFUL_INGREDIENT = HarmfulIngredient(
    name="Alcohol (Ethanol)",
    reason=(
        "Alcohol in skincare products can be absorbed through the skin. "
        "While the risk is lower than with consumption, it's generally "
        "recommended to avoid alcohol-containing products during pregnancy "
        "as a precaution."
    ),
)


class AnalysisResult(BaseModel):
    """
    Persisted analysis record.

    Created when the user explicitly saves a finished analysis.
    Serialized with camelCase aliases into the saved searches blob.

    Example:
        >>> result = AnalysisResult.create_new(
        ...     product="CeraVe Moisturizing Cream",
        ...     image_url="https://blob.example/cerave.jpg",
        ...     ingredients=["Water", "Glycerin", "Ceramides"],
        ...     report=SafetyReport(harmful_ingredients=[], is_safe=True),
        ... )
        >>> result.model_dump(by_alias=True)["isSafe"]
        True
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    timestamp: str
    product: str
    image_url: str = Field(default=PLACEHOLDER_IMAGE, alias="imageUrl")
    ingredients: List[str] = Field(default_factory=list)
    harmful_ingredients: List[HarmfulIngredient] = Field(
        default_factory=list, alias="harmfulIngredients"
    )
    is_safe: bool = Field(..., alias="isSafe")
    parsing_error: Optional[bool] = Field(default=None, alias="parsingError")
    is_food: Optional[bool] = Field(default=None, alias="isFood")

    @field_validator("image_url", mode="before")
    @classmethod
    def default_image(cls, v: Optional[str]) -> str:
        """Fall back to the placeholder for missing images."""
        return v or PLACEHOLDER_IMAGE

    def to_dict(self) -> dict:
        """Convert to the storage representation."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @staticmethod
    def create_new(
        product: str,
        image_url: Optional[str],
        ingredients: List[str],
        report: SafetyReport,
        is_food: Optional[bool] = None,
    ) -> "AnalysisResult":
        """
        Factory method with generated id and current UTC timestamp.

        Args:
            product: Identified product name
            image_url: Image URL or data URL shown to the user
            ingredients: Ordered ingredient list
            report: Safety verdict
            is_food: Whether the product is food

        Returns:
            New AnalysisResult instance
        """
        return AnalysisResult(
            id=uuid.uuid4().hex,
            timestamp=datetime.now(timezone.utc).isoformat(),
            product=product,
            image_url=image_url or PLACEHOLDER_IMAGE,
            ingredients=list(ingredients),
            harmful_ingredients=list(report.harmful_ingredients),
            is_safe=report.is_safe,
            parsing_error=report.parsing_error,
            is_food=is_food,
        )

    def safety_report(self) -> SafetyReport:
        """Rebuild the safety verdict stored in this record."""
        return SafetyReport(
            harmful_ingredients=list(self.harmful_ingredients),
            is_safe=self.is_safe,
            parsing_error=self.parsing_error,
        )

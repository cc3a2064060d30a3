"""
Wizard state.

Four ordinal steps plus orthogonal flags for one analysis session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional

from safemom.domain.analysis.models import AnalysisResult, SafetyReport
from safemom.domain.request.models import Diagnostics


class WizardStep(IntEnum):
    """Linear steps of the analysis wizard."""

    IDENTIFY = 1
    FIND_INGREDIENTS = 2
    ANALYZE_SAFETY = 3
    RESULTS = 4


@dataclass
class WizardState:
    """
    Mutable state of one wizard session.

    Owned by a single WizardController; never shared.
    """

    step: WizardStep = WizardStep.IDENTIFY

    # Image
    image_url: Optional[str] = None
    preview_url: Optional[str] = None

    # Step results
    product_name: str = ""
    ingredients: List[str] = field(default_factory=list)
    safety_report: Optional[SafetyReport] = None

    # Terminal outcome flags
    is_unidentifiable: bool = False
    alcohol_warning: Optional[str] = None
    is_food: bool = False

    # Display
    is_loading: bool = False
    error: Optional[str] = None
    error_diagnostics: Optional[Diagnostics] = None
    has_bad_request_error: bool = False
    has_json_parse_error: bool = False
    is_saved: bool = False
    is_from_saved_search: bool = False

    @classmethod
    def from_saved(cls, result: AnalysisResult) -> WizardState:
        """Results-step state restored from a saved record."""
        return cls(
            step=WizardStep.RESULTS,
            image_url=result.image_url,
            preview_url=result.image_url,
            product_name=result.product,
            ingredients=list(result.ingredients),
            safety_report=result.safety_report(),
            is_food=bool(result.is_food),
            is_saved=True,
            is_from_saved_search=True,
        )

    @property
    def parsing_error(self) -> bool:
        """Whether the safety verdict came from an unparsable answer."""
        return bool(self.safety_report and self.safety_report.parsing_error)

    @property
    def display_image(self) -> Optional[str]:
        """Image shown to the user: preview first, then the uploaded URL."""
        return self.preview_url or self.image_url

    def clear_error(self) -> None:
        """Drop the displayed error and its diagnostics."""
        self.error = None
        self.error_diagnostics = None
        self.has_bad_request_error = False
        self.has_json_parse_error = False

    def clear_results(self) -> None:
        """Drop everything produced after identification."""
        self.ingredients = []
        self.safety_report = None
        self.alcohol_warning = None
        self.is_food = False
        self.is_unidentifiable = False
        self.is_saved = False
        self.clear_error()

"""
Analysis Wizard Controller.

Sequences the three dependent analysis calls into a strictly ordered
pipeline:

    Identify(1) → FindIngredients(2) → AnalyzeSafety(3) → Results(4)

with two terminal branches that skip remaining steps: an image that
cannot be identified (stays on step 1) and a product containing
alcohol (jumps from step 2 straight to step 4).

Design Pattern: Service Layer + Dependency Injection
"""

from typing import Callable, List, Optional

import structlog

from safemom.domain.analysis.models import (
    ALCOHOL_HARMFUL_INGREDIENT,
    AnalysisResult,
    SafetyReport,
)
from safemom.domain.request.models import FailureKind, RequestOutcome
from safemom.domain.shared.errors import ActionUnavailableError, ValidationError, WizardError
from safemom.domain.wizard.ports import IAnalysisApi, ISearchStore
from safemom.domain.wizard.state import WizardState, WizardStep
from safemom.domain.wizard.unidentifiable import is_unidentifiable_product

logger = structlog.get_logger(__name__)

NO_IMAGE_MESSAGE = "No image available. Please upload an image first."
NO_PRODUCT_MESSAGE = "No product name available. Please identify the product first."
NO_INGREDIENTS_MESSAGE = "No ingredients available. Please find ingredients first."
UNIDENTIFIABLE_MESSAGE = "I'm unable to identify this. Please try another image."
NO_INGREDIENTS_FOUND_MESSAGE = "Failed to find ingredients. Please try again."
DEFAULT_ALCOHOL_WARNING = (
    "This product contains alcohol, which is not recommended during pregnancy."
)

# Per-step messages for unparsable responses and HTTP 400
JSON_PARSE_MESSAGES = {
    WizardStep.IDENTIFY: (
        "There was an error processing the image. "
        "Please try again or use a different image."
    ),
    WizardStep.FIND_INGREDIENTS: (
        "There was an error processing the request. Please try again."
    ),
    WizardStep.ANALYZE_SAFETY: (
        "There was an error processing the request. Please try again."
    ),
}
BAD_REQUEST_MESSAGES = {
    WizardStep.IDENTIFY: (
        "The server couldn't process this image. "
        "Please try a different image or format."
    ),
    WizardStep.FIND_INGREDIENTS: (
        "The server couldn't process this request. "
        "Please try again with a different product name."
    ),
    WizardStep.ANALYZE_SAFETY: (
        "The server couldn't process these ingredients. Please try again."
    ),
}

ACTION_STEPS = {
    "identify_product": WizardStep.IDENTIFY,
    "find_ingredients": WizardStep.FIND_INGREDIENTS,
    "analyze_ingredients": WizardStep.ANALYZE_SAFETY,
}


class WizardController:
    """
    Four-step analysis wizard.

    Responsibilities:
    - Run each step's call only from its own step
    - Park on the current step when a call fails, keeping the action
      available for a retry
    - Handle terminal outcomes (unidentifiable image, alcohol)
    - Save finished analyses on explicit request

    Dependencies (injected via Ports/Interfaces):
    - api: IAnalysisApi - The three analysis calls
    - store: ISearchStore - Saved searches (optional)
    - is_online: connectivity probe

    Example:
        >>> wizard = WizardController(api=SafeMomApiClient(orchestrator))
        >>> wizard.load_image("https://blob.example/cerave.jpg")
        >>> await wizard.identify_product()
        >>> await wizard.find_ingredients()
        >>> await wizard.analyze_ingredients()
        >>> wizard.state.step
        <WizardStep.RESULTS: 4>
    """

    def __init__(
        self,
        api: IAnalysisApi,
        store: Optional[ISearchStore] = None,
        is_online: Callable[[], bool] = lambda: True,
    ):
        """
        Initialize controller with dependencies.

        Args:
            api: Analysis API port
            store: Saved searches store (save_result needs one)
            is_online: Connectivity probe
        """
        self.api = api
        self.store = store
        self._is_online = is_online
        self.state = WizardState()

    # ───────────────────────────────────────────────────────
    # Availability
    # ───────────────────────────────────────────────────────

    def unavailable_reason(self, action: str) -> Optional[str]:
        """
        Why an advancing action is disabled right now.

        Args:
            action: One of identify_product, find_ingredients,
                analyze_ingredients

        Returns:
            Human-readable reason, or None if the action is available
        """
        step = ACTION_STEPS[action]

        if self.state.is_loading:
            return "a request is already in flight"
        if not self._is_online():
            return "client is offline"
        if self.state.step != step:
            return f"current step is {self.state.step.name}"
        if not self.state.image_url:
            return "no image loaded"
        if step == WizardStep.IDENTIFY and self.state.is_unidentifiable:
            return "image could not be identified, load another image"
        return None

    @property
    def can_identify(self) -> bool:
        return self.unavailable_reason("identify_product") is None

    @property
    def can_find_ingredients(self) -> bool:
        return self.unavailable_reason("find_ingredients") is None

    @property
    def can_analyze(self) -> bool:
        return self.unavailable_reason("analyze_ingredients") is None

    @property
    def can_save(self) -> bool:
        state = self.state
        return (
            self.store is not None
            and state.step == WizardStep.RESULTS
            and not state.is_loading
            and not state.is_saved
            and not state.is_from_saved_search
            and state.safety_report is not None
            and bool(state.ingredients)
        )

    def available_actions(self) -> List[str]:
        """Names of the actions that can be invoked now."""
        actions = [a for a in ACTION_STEPS if self.unavailable_reason(a) is None]
        if self.can_save:
            actions.append("save_result")
        actions.append("reset")
        return actions

    def _require(self, action: str) -> None:
        reason = self.unavailable_reason(action)
        if reason is not None:
            raise ActionUnavailableError(f"{action} is not available: {reason}")

    # ───────────────────────────────────────────────────────
    # Session
    # ───────────────────────────────────────────────────────

    def load_image(
        self,
        image_url: str,
        preview_url: Optional[str] = None,
        detected_product: Optional[str] = None,
    ) -> None:
        """
        Start a fresh session for a new image.

        Args:
            image_url: Uploaded image URL (or data URL)
            preview_url: Local preview shown to the user
            detected_product: Product name detected during upload, if any
        """
        if not image_url:
            raise ValidationError(NO_IMAGE_MESSAGE)

        self.state = WizardState(image_url=image_url, preview_url=preview_url)

        if detected_product is None:
            logger.info("wizard_image_loaded", step=self.state.step.name)
            return

        if is_unidentifiable_product(detected_product):
            self.state.is_unidentifiable = True
            self.state.error = UNIDENTIFIABLE_MESSAGE
        else:
            self.state.product_name = detected_product.strip()
            self.state.step = WizardStep.FIND_INGREDIENTS

        logger.info(
            "wizard_image_loaded",
            step=self.state.step.name,
            detected_product=detected_product,
            unidentifiable=self.state.is_unidentifiable,
        )

    def reset(self) -> None:
        """Go back to step 1 and drop all accumulated data."""
        self.state = WizardState()
        logger.info("wizard_reset")

    def open_saved(self, result: AnalysisResult) -> None:
        """
        Show a saved analysis on the results step.

        Args:
            result: Previously saved record
        """
        self.state = WizardState.from_saved(result)
        logger.info("wizard_saved_opened", id=result.id, product=result.product)

    # ───────────────────────────────────────────────────────
    # Step 1: Identify
    # ───────────────────────────────────────────────────────

    async def identify_product(self) -> None:
        """
        Identify the product in the loaded image.

        Success moves to FIND_INGREDIENTS. An unidentifiable answer sets
        the unidentifiable flag and stays on IDENTIFY.

        Raises:
            ActionUnavailableError: If the action is disabled
        """
        self._require("identify_product")
        state = self.state

        self._begin_call()
        try:
            outcome = await self.api.identify_product(state.image_url)
        finally:
            state.is_loading = False

        if not outcome.ok:
            self._park(outcome)
            return

        response = outcome.data
        if response.unidentifiable or is_unidentifiable_product(response.product):
            state.is_unidentifiable = True
            state.error = UNIDENTIFIABLE_MESSAGE
            logger.info("wizard_unidentifiable", product=response.product)
            return

        state.product_name = response.product
        state.step = WizardStep.FIND_INGREDIENTS
        logger.info("wizard_product_identified", product=state.product_name)

    # ───────────────────────────────────────────────────────
    # Step 2: Find ingredients
    # ───────────────────────────────────────────────────────

    async def find_ingredients(self) -> None:
        """
        Look up the identified product's ingredients.

        Success moves to ANALYZE_SAFETY. A product containing alcohol
        jumps straight to RESULTS with a synthesized verdict.

        Raises:
            ActionUnavailableError: If the action is disabled
        """
        self._require("find_ingredients")
        state = self.state

        if not state.product_name.strip():
            state.error = NO_PRODUCT_MESSAGE
            return

        self._begin_call()
        try:
            outcome = await self.api.find_ingredients(state.product_name)
        finally:
            state.is_loading = False

        if not outcome.ok:
            self._park(outcome)
            return

        response = outcome.data
        state.is_food = response.is_food

        # Alcohol short-circuit: step 3 is never visited
        if response.contains_alcohol:
            state.alcohol_warning = response.alcohol_warning or DEFAULT_ALCOHOL_WARNING
            state.ingredients = list(response.ingredients)
            state.safety_report = SafetyReport(
                harmful_ingredients=[ALCOHOL_HARMFUL_INGREDIENT],
                is_safe=False,
            )
            state.step = WizardStep.RESULTS
            logger.info("wizard_alcohol_detected", product=state.product_name)
            return

        if not response.ingredients:
            state.error = NO_INGREDIENTS_FOUND_MESSAGE
            logger.warning("wizard_no_ingredients", product=state.product_name)
            return

        state.ingredients = list(response.ingredients)
        state.step = WizardStep.ANALYZE_SAFETY
        logger.info(
            "wizard_ingredients_found",
            product=state.product_name,
            count=len(state.ingredients),
        )

    # ───────────────────────────────────────────────────────
    # Step 3: Analyze safety
    # ───────────────────────────────────────────────────────

    async def analyze_ingredients(self) -> None:
        """
        Classify the ingredient list and move to RESULTS.

        The response is stored as-is, including ``parsing_error``.

        Raises:
            ActionUnavailableError: If the action is disabled
        """
        self._require("analyze_ingredients")
        state = self.state

        if not state.ingredients:
            state.error = NO_INGREDIENTS_MESSAGE
            return

        self._begin_call()
        state.is_saved = False
        try:
            outcome = await self.api.analyze_ingredients(
                state.ingredients, state.product_name, state.is_food
            )
        finally:
            state.is_loading = False

        if not outcome.ok:
            self._park(outcome)
            return

        state.safety_report = outcome.data.to_report()
        state.step = WizardStep.RESULTS
        logger.info(
            "wizard_analysis_complete",
            product=state.product_name,
            is_safe=state.safety_report.is_safe,
            harmful=len(state.safety_report.harmful_ingredients),
        )

    # ───────────────────────────────────────────────────────
    # Step 4: Save
    # ───────────────────────────────────────────────────────

    def save_result(self) -> AnalysisResult:
        """
        Persist the finished analysis.

        Returns:
            The stored AnalysisResult

        Raises:
            WizardError: If no store is configured
            ActionUnavailableError: If not on RESULTS or already saved
            ValidationError: If the analysis has no report or ingredients
        """
        state = self.state

        if self.store is None:
            raise WizardError("No saved search store configured")
        if state.step != WizardStep.RESULTS:
            raise ActionUnavailableError(
                f"save_result is not available: current step is {state.step.name}"
            )
        if state.is_saved or state.is_from_saved_search:
            raise ActionUnavailableError("save_result is not available: already saved")
        if state.safety_report is None or not state.ingredients or not state.product_name:
            raise ValidationError("Nothing to save: analysis not finished")

        result = AnalysisResult.create_new(
            product=state.product_name,
            image_url=state.display_image,
            ingredients=state.ingredients,
            report=state.safety_report,
            is_food=state.is_food,
        )
        self.store.save(result)
        state.is_saved = True

        logger.info("wizard_result_saved", id=result.id, product=result.product)
        return result

    # ───────────────────────────────────────────────────────
    # Helpers
    # ───────────────────────────────────────────────────────

    def _begin_call(self) -> None:
        self.state.clear_error()
        self.state.is_loading = True

    def _park(self, outcome: RequestOutcome) -> None:
        """Stay on the current step and surface the failure."""
        state = self.state
        step = state.step
        state.error_diagnostics = outcome.diagnostics

        if outcome.kind == FailureKind.JSON_PARSE_ERROR:
            state.has_json_parse_error = True
            state.error = JSON_PARSE_MESSAGES[step]
        elif outcome.status_code == 400:
            state.has_bad_request_error = True
            state.error = BAD_REQUEST_MESSAGES[step]
        else:
            state.error = outcome.error

        logger.warning(
            "wizard_step_failed",
            step=step.name,
            kind=outcome.kind.value if outcome.kind else None,
            status=outcome.status_code,
            error=outcome.error,
        )

"""
Shared fixtures for SafeMom tests.

HTTP is faked with httpx.MockTransport; API ports are AsyncMocks.
"""

from typing import Callable, Dict, List, Optional
from unittest.mock import AsyncMock

import httpx
import pytest

from safemom.domain.analysis.endpoints import (
    FindIngredientsResponse,
    IdentifyProductResponse,
    SafetyAnalysisResponse,
)
from safemom.domain.analysis.models import AnalysisResult, SafetyReport
from safemom.domain.request.models import RequestOutcome
from safemom.domain.wizard.ports import IAnalysisApi
from safemom.infrastructure.http.orchestrator import RequestOrchestrator
from safemom.infrastructure.storage.saved_searches import InMemoryStorage, SavedSearchStore

BASE_URL = "http://safemom.test"


# ═══════════════════════════════════════════════════════════
# ENVIRONMENT
# ═══════════════════════════════════════════════════════════


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Isolate tests from SAFEMOM_* variables set on the host."""
    for name in (
        "SAFEMOM_DEPLOYMENT_URL",
        "SAFEMOM_PUBLIC_BASE_URL",
        "SAFEMOM_TIMEOUT_MS",
        "SAFEMOM_MAX_RETRIES",
        "SAFEMOM_RETRY_DELAY_MS",
        "SAFEMOM_SAVED_SEARCHES_PATH",
        "SAFEMOM_PREVIEW_BYPASS_TOKEN",
    ):
        monkeypatch.delenv(name, raising=False)


# ═══════════════════════════════════════════════════════════
# HTTP FIXTURES
# ═══════════════════════════════════════════════════════════


class SleepRecorder:
    """Async sleep replacement recording requested delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleeps() -> SleepRecorder:
    """Backoff sleeps recorded instead of awaited."""
    return SleepRecorder()


@pytest.fixture
def make_orchestrator(
    sleeps: SleepRecorder,
) -> Callable[..., RequestOrchestrator]:
    """
    Factory building an orchestrator over a MockTransport handler.

    Usage:
        orchestrator = make_orchestrator(handler)
        async with orchestrator: ...
    """

    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        is_online: Callable[[], bool] = lambda: True,
        default_headers: Optional[Dict[str, str]] = None,
    ) -> RequestOrchestrator:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return RequestOrchestrator(
            client=client,
            base_url=BASE_URL,
            is_online=is_online,
            sleep=sleeps,
            default_headers=default_headers,
        )

    return _make


# ═══════════════════════════════════════════════════════════
# DOMAIN FIXTURES
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def safe_report() -> SafetyReport:
    """Verdict with no harmful ingredients."""
    return SafetyReport(harmful_ingredients=[], is_safe=True)


@pytest.fixture
def make_result() -> Callable[..., AnalysisResult]:
    """Factory for saved analysis records."""

    def _make(product: str = "CeraVe Moisturizing Cream", is_safe: bool = True) -> AnalysisResult:
        return AnalysisResult.create_new(
            product=product,
            image_url="https://blob.example/cerave.jpg",
            ingredients=["Water", "Glycerin", "Ceramides"],
            report=SafetyReport(harmful_ingredients=[], is_safe=is_safe),
        )

    return _make


@pytest.fixture
def search_store() -> SavedSearchStore:
    """Saved searches over in-memory storage."""
    return SavedSearchStore(InMemoryStorage())


# ═══════════════════════════════════════════════════════════
# PORT MOCKS
# ═══════════════════════════════════════════════════════════


@pytest.fixture
def mock_api() -> AsyncMock:
    """
    Analysis API answering the CeraVe happy path.

    Override return values per test for other scenarios.
    """
    api = AsyncMock(spec=IAnalysisApi)
    api.identify_product.return_value = RequestOutcome.success(
        IdentifyProductResponse(product="CeraVe Moisturizing Cream")
    )
    api.find_ingredients.return_value = RequestOutcome.success(
        FindIngredientsResponse(
            ingredients=["Water", "Glycerin", "Ceramides"], contains_alcohol=False
        )
    )
    api.analyze_ingredients.return_value = RequestOutcome.success(
        SafetyAnalysisResponse(harmful_ingredients=[], is_safe=True)
    )
    return api

"""
Connectivity monitor.

Tracks the client's online/offline state and probes whether the API
is reachable through the /api/ping route.
"""

from typing import Optional

import structlog

from safemom.domain.request.models import HttpMethod, RequestDescriptor, RequestOutcome
from safemom.infrastructure.http.orchestrator import RequestOrchestrator

logger = structlog.get_logger(__name__)

PING_ENDPOINT = "/api/ping"
PING_TIMEOUT_MS = 5000


class ConnectivityMonitor:
    """
    Online state plus API reachability.

    ``is_online`` is a plain callable so it can be handed to the
    orchestrator and the wizard controller as their connectivity probe.
    """

    def __init__(
        self, orchestrator: Optional[RequestOrchestrator] = None, online: bool = True
    ) -> None:
        self._orchestrator = orchestrator
        self._online = online
        self.api_reachable: Optional[bool] = None
        self.last_outcome: Optional[RequestOutcome] = None

    def is_online(self) -> bool:
        """Last known online state."""
        return self._online

    def set_online(self, online: bool) -> None:
        """Record an online/offline transition."""
        if online != self._online:
            logger.info("connectivity_changed", online=online)
        self._online = online

    async def check(self) -> bool:
        """
        Probe the API once, without retries.

        Returns:
            True if /api/ping answered with JSON

        Raises:
            RuntimeError: If no orchestrator was given
        """
        if self._orchestrator is None:
            raise RuntimeError("No orchestrator configured for connectivity checks")

        outcome = await self._orchestrator.request(
            RequestDescriptor(
                endpoint=PING_ENDPOINT,
                method=HttpMethod.GET,
                timeout_ms=PING_TIMEOUT_MS,
                retries=0,
            )
        )
        self.last_outcome = outcome
        self.api_reachable = outcome.ok

        logger.info(
            "connectivity_check",
            reachable=self.api_reachable,
            error=outcome.error,
        )
        return self.api_reachable

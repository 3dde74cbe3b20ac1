"""Periodic liveness check over every connection supervisor."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable

from .errors import StaleConnection
from .models import ConnectionState
from .supervisor import ConnectionSupervisor

logger = logging.getLogger(__name__)

HEALTH_INTERVAL = 30.0
STALE_THRESHOLD = 60.0


class HealthMonitor:
    """Forces a reconnect of any selected group that is not streaming fresh data.

    A group is unhealthy when its socket is not STREAMING, when its provider
    reported an error, or when nothing arrived for ``stale_threshold`` seconds.
    Forced reconnects bypass the supervisor's cooldown.
    """

    def __init__(
        self,
        supervisors: Iterable[ConnectionSupervisor],
        interval: float = HEALTH_INTERVAL,
        stale_threshold: float = STALE_THRESHOLD,
    ) -> None:
        self._supervisors = list(supervisors)
        self.interval = interval
        self.stale_threshold = stale_threshold

    def diagnose(self, supervisor: ConnectionSupervisor) -> StaleConnection | None:
        silent_for = supervisor.silent_for()
        if supervisor.state is not ConnectionState.STREAMING:
            return StaleConnection(supervisor.group.value, silent_for)
        if supervisor.error_reported is not None:
            return StaleConnection(supervisor.group.value, silent_for)
        if silent_for is None or silent_for > self.stale_threshold:
            return StaleConnection(supervisor.group.value, silent_for)
        return None

    def check(self) -> list[StaleConnection]:
        """Run one pass. Returns the problems found (and acted on)."""
        problems = []
        for supervisor in self._supervisors:
            if not supervisor.has_selection():
                continue
            problem = self.diagnose(supervisor)
            if problem is None:
                continue
            logger.warning(
                "Health check: %s (state=%s) - forcing reconnect",
                problem,
                supervisor.state.value,
            )
            problems.append(problem)
            supervisor.reconnect(force=True)
        return problems

    async def run(self) -> None:
        logger.info(
            "Health monitor started (every %.0fs, stale after %.0fs)",
            self.interval,
            self.stale_threshold,
        )
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.check()
            except Exception:
                logger.exception("Health check failed")

"""Factory for creating the feed coordinator."""

from __future__ import annotations

import logging

from ..config import Settings
from .coordinator import FeedCoordinator
from .selection import SelectionManager, SelectionStore

logger = logging.getLogger(__name__)


def create_coordinator(settings: Settings | None = None) -> FeedCoordinator:
    """Create a coordinator wired to the real providers.

    The selection is loaded from ``settings.selection_file`` right away.
    Returns an unstarted coordinator. Caller must await coordinator.start().
    """
    settings = settings or Settings.from_env()
    selection = SelectionManager(SelectionStore(settings.selection_file))
    logger.info("Selection file: %s", settings.selection_file)
    return FeedCoordinator(
        selection,
        http_timeout=settings.http_timeout,
        cooldown=settings.reconnect_cooldown,
        reconnect_delay=settings.reconnect_delay,
        health_interval=settings.health_interval,
        stale_threshold=settings.stale_threshold,
    )

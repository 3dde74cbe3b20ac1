"""Feed coordinator: catalogs, selection, price store and one socket per group."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine, Iterable
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any

import httpx

from .cache import PriceStore
from .catalog import CatalogReadinessGate, CatalogSet
from .coinbase import CoinbaseSource
from .errors import CatalogFetchError
from .health import HEALTH_INTERVAL, STALE_THRESHOLD, HealthMonitor
from .hyperliquid import AllMidsSource, AuxiliaryDexSource
from .interface import StreamSource
from .loaders import CatalogLoader, default_loaders
from .models import CanonicalUpdate, ConnectionState, Provider, ProviderGroup, Quote
from .selection import SelectionChange, SelectionManager
from .supervisor import RECONNECT_COOLDOWN, RECONNECT_DELAY, ConnectionSupervisor, Connector
from .tradingview import TradingViewSource

logger = logging.getLogger(__name__)

HTTP_TIMEOUT = 10.0
ROLLOVER_BUFFER = 60.0  # seconds past UTC midnight before refreshing
# Daily baselines of these catalogs roll at UTC midnight
ROLLOVER_PROVIDERS: tuple[Provider, ...] = (
    Provider.PERPETUALS,
    Provider.SPOT_ON_PERP_VENUE,
    Provider.AUXILIARY_DEX,
)

Listener = Callable[[], None]


def default_sources() -> list[StreamSource]:
    return [CoinbaseSource(), AllMidsSource(), AuxiliaryDexSource(), TradingViewSource()]


def seconds_until_rollover(now: datetime, buffer: float = ROLLOVER_BUFFER) -> float:
    """Seconds from ``now`` until ``buffer`` seconds past the next UTC midnight."""
    now = now.astimezone(timezone.utc)
    next_midnight = datetime.combine(
        now.date() + timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc
    )
    return (next_midnight - now).total_seconds() + buffer


class FeedCoordinator:
    """Owns every piece of market data state and drives the stream supervisors.

    Startup fetches all five catalogs concurrently. Each group's socket opens
    as soon as the catalogs it serves have loaded; once all five are in, the
    selection is validated against them. Loaded flags are raised after every
    attempt, failed or not, so one unreachable provider never blocks the rest.

    Listeners registered with ``add_listener`` are called after every catalog
    load and every connection state change. Price updates only bump the
    store's version.
    """

    def __init__(
        self,
        selection: SelectionManager,
        *,
        loaders: dict[Provider, CatalogLoader] | None = None,
        sources: Iterable[StreamSource] | None = None,
        price_store: PriceStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        http_timeout: float = HTTP_TIMEOUT,
        cooldown: float = RECONNECT_COOLDOWN,
        reconnect_delay: float = RECONNECT_DELAY,
        health_interval: float = HEALTH_INTERVAL,
        stale_threshold: float = STALE_THRESHOLD,
        connect: Connector | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.selection = selection
        self.catalogs = CatalogSet()
        self.gate = CatalogReadinessGate()
        self.prices = price_store or PriceStore()
        self._loaders = loaders if loaders is not None else default_loaders()
        self._client = http_client
        self._owns_client = http_client is None
        self._http_timeout = http_timeout

        self.supervisors: dict[ProviderGroup, ConnectionSupervisor] = {}
        for source in sources if sources is not None else default_sources():
            self.supervisors[source.group] = ConnectionSupervisor(
                source,
                symbols=partial(self.native_symbols, source.group),
                on_updates=self._apply_updates,
                on_state_change=self._on_state_change,
                cooldown=cooldown,
                reconnect_delay=reconnect_delay,
                connect=connect,
                clock=clock,
            )
        self.health = HealthMonitor(
            self.supervisors.values(),
            interval=health_interval,
            stale_threshold=stale_threshold,
        )

        self._listeners: list[Listener] = []
        self._tasks: set[asyncio.Task] = set()
        self._validated = False

    # --- Lifecycle ---

    async def start(self) -> None:
        """Begin loading catalogs and start the health and rollover timers."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._http_timeout)
        self._spawn(self.health.run(), name="health-monitor")
        self._spawn(self._rollover_loop(), name="daily-rollover")
        self.load_catalogs()
        logger.info("Feed coordinator started with selection: %s", ", ".join(self.selection.ids))

    async def shutdown(self) -> None:
        """Cancel background work, close every socket and the HTTP client."""
        tasks, self._tasks = self._tasks, set()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for supervisor in self.supervisors.values():
            await supervisor.stop()
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Feed coordinator stopped")

    async def reconnect_all(self) -> None:
        """Drop every socket and reload all catalogs as if starting fresh."""
        logger.info("Reconnecting all feeds")
        for supervisor in self.supervisors.values():
            await supervisor.stop()
        self.gate.reset()
        self._validated = False
        self._notify()
        self.load_catalogs()

    # --- Catalogs ---

    def load_catalogs(self, providers: Iterable[Provider] | None = None) -> None:
        """Fetch the given catalogs (default all) concurrently in the background."""
        for provider in providers if providers is not None else Provider:
            if provider in self._loaders:
                self._spawn(self.load_catalog(provider), name=f"catalog-{provider.value}")
            else:
                self.gate.mark_loaded(provider)

    async def load_catalog(self, provider: Provider) -> None:
        """Fetch one catalog. Failures keep the previous catalog and prices."""
        try:
            result = await self._loaders[provider].load(self._client)
        except CatalogFetchError as e:
            logger.error("%s", e)
        else:
            self.catalogs[provider].replace(result.instruments)
            self.prices.replace_provider(provider, result.quotes)
        self.gate.mark_loaded(provider)
        self.on_catalog_loaded()

    def on_catalog_loaded(self) -> None:
        """Connect every group whose catalogs are in; validate once all are."""
        self._notify()
        if self.gate.all_loaded and not self._validated:
            self._validated = True
            logger.info("All catalogs loaded: %s", self.catalogs.sizes())
            if self.selection.validate(self.resolves):
                self._reconcile_groups()
            groups = list(ProviderGroup)
        else:
            groups = self.gate.ready_groups()

        selected = self.selection.groups()
        for group in groups:
            supervisor = self.supervisors.get(group)
            if supervisor is not None and group in selected and not supervisor.is_active:
                supervisor.start()

    def resolves(self, instrument_id: str) -> bool:
        return self.catalogs.resolve(instrument_id) is not None

    def native_symbols(self, group: ProviderGroup) -> list[str]:
        """Native symbols of the group's selected, catalog-resolved instruments."""
        symbols = []
        for instrument_id in self.selection.ids_for(group):
            instrument = self.catalogs.resolve(instrument_id)
            if instrument is not None:
                symbols.append(instrument.native_symbol)
        return symbols

    # --- Selection ---

    async def toggle(self, instrument_id: str) -> SelectionChange:
        """Add or remove one instrument and adjust the affected socket.

        Raises KeyError for ids no catalog knows and SelectionLimitExceeded
        when the selection is full.
        """
        if instrument_id not in self.selection and not self.resolves(instrument_id):
            raise KeyError(instrument_id)

        before = self.selection.groups()
        change = self.selection.toggle(instrument_id)
        if not change.accepted:
            return change

        provider = Provider.from_instrument_id(instrument_id)
        if provider is None:
            # Leftover id from an older selection file; no socket serves it
            self._notify()
            return change
        group = ProviderGroup.of(provider)
        supervisor = self.supervisors.get(group)
        after = self.selection.groups()
        if supervisor is not None:
            if group not in after:
                await supervisor.stop()
            elif group not in before:
                supervisor.start()
            elif not supervisor.source.broadcast and supervisor.is_connected:
                supervisor.resubscribe()
        self._notify()
        return change

    def _reconcile_groups(self) -> None:
        """Stop sockets of groups the validated selection no longer uses."""
        selected = self.selection.groups()
        for group, supervisor in self.supervisors.items():
            if group not in selected and supervisor.state is not ConnectionState.IDLE:
                self._spawn(supervisor.stop(), name=f"{group.value}-stop")

    # --- Reads ---

    def snapshot(self, instrument_id: str) -> Quote | None:
        return self.prices.get(instrument_id)

    def snapshots(self) -> list[Quote]:
        """Quotes of the selected instruments, in selection order."""
        quotes = self.prices.get_many(self.selection.ids)
        return [quotes[i] for i in self.selection.ids if i in quotes]

    def connection_state(self, group: ProviderGroup) -> ConnectionState:
        supervisor = self.supervisors.get(group)
        return supervisor.state if supervisor is not None else ConnectionState.IDLE

    def status(self) -> dict[str, Any]:
        connections = {}
        for group, supervisor in self.supervisors.items():
            silent_for = supervisor.silent_for()
            connections[group.value] = {
                "state": supervisor.state.value,
                "silent_for": None if silent_for is None else round(silent_for, 1),
                "reconnect_scheduled": supervisor.reconnect_scheduled,
                "error": supervisor.error_reported,
            }
        return {
            "selection": list(self.selection.ids),
            "catalogs_loaded": self.gate.snapshot(),
            "all_catalogs_loaded": self.gate.all_loaded,
            "catalog_sizes": self.catalogs.sizes(),
            "connections": connections,
        }

    # --- Listeners ---

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("Listener %r failed", listener)

    # --- Internals ---

    def _apply_updates(self, updates: list[CanonicalUpdate]) -> None:
        for update in updates:
            self.prices.merge(update)

    def _on_state_change(self, group: ProviderGroup, state: ConnectionState) -> None:
        self._notify()

    async def _rollover_loop(self) -> None:
        while True:
            delay = seconds_until_rollover(datetime.now(timezone.utc))
            logger.info("Next daily catalog refresh in %.0fs", delay)
            await asyncio.sleep(delay)
            logger.info("UTC day rolled over, refreshing daily baselines")
            self.load_catalogs(ROLLOVER_PROVIDERS)

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

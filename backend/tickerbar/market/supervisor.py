"""Connection supervisor: one websocket lifecycle per provider-group."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

import websockets

from .errors import ProtocolError, StreamDecodeError, SubscriptionSendError
from .interface import StreamSource
from .models import CanonicalUpdate, ConnectionState, ProviderGroup

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]

RECONNECT_COOLDOWN = 3.0  # min seconds between reconnect attempts
RECONNECT_DELAY = 5.0  # fixed delay before an automatic reconnect


async def websocket_connect(url: str) -> Any:
    return await websockets.connect(url, ping_interval=20, close_timeout=5)


class ConnectionSupervisor:
    """Drives one StreamSource through connect, subscribe, stream, reconnect.

    States::

        IDLE --start--> CONNECTING --open--> SUBSCRIBING --> STREAMING
        CONNECTING / SUBSCRIBING / STREAMING --failure--> RECONNECT_PENDING
        RECONNECT_PENDING --delay, still selected, not connected--> CONNECTING
        any --stop--> CLOSING --> IDLE

    Every connection attempt gets a generation number. Tearing a connection
    down bumps the generation, so a receive loop that fails after being
    replaced or stopped never schedules a reconnect of its own.

    All methods must be called from the event loop that runs the receive
    loop; that loop is the only writer of this object's state.
    """

    def __init__(
        self,
        source: StreamSource,
        *,
        symbols: Callable[[], list[str]],
        on_updates: Callable[[list[CanonicalUpdate]], None],
        on_state_change: Callable[[ProviderGroup, ConnectionState], None] | None = None,
        cooldown: float = RECONNECT_COOLDOWN,
        reconnect_delay: float = RECONNECT_DELAY,
        connect: Connector | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source
        self._symbols = symbols
        self._on_updates = on_updates
        self._on_state_change = on_state_change
        self.cooldown = cooldown
        self.reconnect_delay = reconnect_delay
        self._connect = connect or websocket_connect
        self._clock = clock

        self.state = ConnectionState.IDLE
        self.last_message_at: float | None = None
        self.last_reconnect_attempt_at: float | None = None
        self.reconnect_scheduled = False
        self.error_reported: str | None = None

        self._generation = 0
        self._task: asyncio.Task | None = None
        self._reconnect_task: asyncio.Task | None = None
        self._retired: set[asyncio.Task] = set()

    @property
    def group(self) -> ProviderGroup:
        return self.source.group

    @property
    def is_connected(self) -> bool:
        """Socket is open (subscribing or streaming)."""
        return self.state in (ConnectionState.SUBSCRIBING, ConnectionState.STREAMING)

    @property
    def is_active(self) -> bool:
        return self.is_connected or self.state is ConnectionState.CONNECTING

    def has_selection(self) -> bool:
        return bool(self._symbols())

    # --- Public API ---

    def start(self) -> bool:
        """Open the socket if anything in this group is selected.

        Returns False when there is nothing to subscribe to or a connection
        is already in progress.
        """
        if self.is_active:
            return False
        if not self.has_selection():
            logger.debug("%s: nothing selected, not connecting", self.group.value)
            return False
        self._open()
        return True

    def reconnect(self, force: bool = False) -> bool:
        """Tear down and reopen the socket, going straight to CONNECTING.

        Requests inside the cooldown window since the last attempt are
        dropped unless ``force`` is set.
        """
        if not force and self.last_reconnect_attempt_at is not None:
            elapsed = self._clock() - self.last_reconnect_attempt_at
            if elapsed < self.cooldown:
                logger.debug(
                    "%s: reconnect dropped, %.1fs into %.1fs cooldown",
                    self.group.value,
                    elapsed,
                    self.cooldown,
                )
                return False
        if not self.has_selection():
            self.disconnect()
            return False
        self._drop_connection()
        self._open()
        return True

    def resubscribe(self) -> bool:
        """Reconnect so the next subscribe lists the current selection."""
        logger.info("%s: selection changed, resubscribing", self.group.value)
        return self.reconnect(force=True)

    def disconnect(self) -> None:
        """Drop the current socket without touching pending reconnect guards."""
        self._drop_connection()
        self._set_state(ConnectionState.IDLE)

    def schedule_reconnect(self) -> None:
        """Arrange one reconnect after the fixed delay.

        While one is pending, further requests are ignored.
        """
        if not self.has_selection():
            self._set_state(ConnectionState.IDLE)
            return
        if self.reconnect_scheduled:
            return
        self.reconnect_scheduled = True
        self._reconnect_task = asyncio.create_task(
            self._reconnect_after_delay(), name=f"{self.group.value}-reconnect"
        )
        logger.info("%s: reconnecting in %.0fs", self.group.value, self.reconnect_delay)

    async def stop(self) -> None:
        """Close the socket and return to IDLE, clearing reconnect guards."""
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            self._retired.add(self._reconnect_task)
            self._reconnect_task = None
        self.reconnect_scheduled = False
        self.last_reconnect_attempt_at = None
        self.error_reported = None

        if self.state is not ConnectionState.IDLE:
            self._set_state(ConnectionState.CLOSING)
        self._drop_connection()
        retired, self._retired = list(self._retired), set()
        for task in retired:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._set_state(ConnectionState.IDLE)
        logger.info("%s stopped", self.group.value)

    def silent_for(self) -> float | None:
        """Seconds since the last received frame, or None if never."""
        if self.last_message_at is None:
            return None
        return self._clock() - self.last_message_at

    # --- Internals ---

    def _set_state(self, state: ConnectionState) -> None:
        if state is self.state:
            return
        logger.debug("%s: %s -> %s", self.group.value, self.state.value, state.value)
        self.state = state
        if self._on_state_change is not None:
            self._on_state_change(self.group, state)

    def _open(self) -> None:
        self._generation += 1
        self.last_reconnect_attempt_at = self._clock()
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.create_task(
            self._run(self._generation), name=f"{self.group.value}-stream"
        )
        logger.info("Connecting to %s (%s)", self.group.value, self.source.url)

    def _drop_connection(self) -> None:
        self._generation += 1
        self._retire_task()

    def _retire_task(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            self._retired.add(task)
            task.add_done_callback(lambda t: self._retired.discard(t))

    async def _reconnect_after_delay(self) -> None:
        await asyncio.sleep(self.reconnect_delay)
        self.reconnect_scheduled = False
        self._reconnect_task = None
        if not self.has_selection() or self.is_active:
            return
        self.reconnect()

    async def _run(self, generation: int) -> None:
        ws = None
        try:
            ws = await self._connect(self.source.url)
            if generation != self._generation:
                return
            self.error_reported = None
            self.last_message_at = self._clock()
            self._set_state(ConnectionState.SUBSCRIBING)
            await self._subscribe(ws, generation)

            self._set_state(ConnectionState.STREAMING)
            await self._receive(ws)
            logger.warning("%s: stream closed by remote", self.group.value)
        except SubscriptionSendError as e:
            logger.error("%s: subscription send failed: %s", self.group.value, e)
        except ProtocolError as e:
            logger.error("%s: %s", self.group.value, e)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("%s: connection failed: %s", self.group.value, e)
        finally:
            if ws is not None:
                with contextlib.suppress(Exception):
                    await ws.close()
        self._on_failure(generation)

    async def _subscribe(self, ws: Any, generation: int) -> None:
        for message in self.source.build_subscribe(self._symbols()):
            if message.delay:
                await asyncio.sleep(message.delay)
            if generation != self._generation:
                return
            try:
                await ws.send(message.payload)
            except Exception as e:
                raise SubscriptionSendError(str(e)) from e
        logger.info("%s: subscribed (%s)", self.group.value, ", ".join(self._symbols()))

    async def _receive(self, ws: Any) -> None:
        async for raw in ws:
            self.last_message_at = self._clock()
            try:
                decoded = self.source.decode(raw)
            except StreamDecodeError as e:
                logger.debug("%s: skipping frame: %s", self.group.value, e)
                continue

            if decoded.error is not None:
                # Left to the health check rather than torn down here
                self.error_reported = decoded.error
                logger.warning("%s reported an error: %s", self.group.value, decoded.error)
            if decoded.updates:
                self._on_updates(decoded.updates)
            for reply in decoded.replies:
                await ws.send(reply)

    def _on_failure(self, generation: int) -> None:
        if generation != self._generation:
            return
        self._task = None
        self._set_state(ConnectionState.RECONNECT_PENDING)
        self.schedule_reconnect()

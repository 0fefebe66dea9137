"""Connection lifecycle manager.

Owns the IPC client instance: builds it, registers signal handlers,
watches the service's presence when the transport supports that, and
publishes a :class:`~pyairmon.state.connection.ConnectionState`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping

from pyairmon._constants import CONNECTION_FAILED_TEXT, SERVICE_UNAVAILABLE_TEXT
from pyairmon.ipc import ClientFactory, IpcClient, PresenceAwareIpcClient, SignalHandler, Subscription
from pyairmon.state.connection import ConnectionState, ConnectionStatus

_logger = logging.getLogger(__name__)


class ConnectionManager:
    def __init__(
        self,
        factory: ClientFactory,
        *,
        signal_handlers: Mapping[str, SignalHandler] | None = None,
        on_state_change: Callable[[ConnectionState], None] | None = None,
        on_appeared: Callable[[], None] | None = None,
        on_vanished: Callable[[], None] | None = None,
    ) -> None:
        self._factory = factory
        self._signal_handlers = dict(signal_handlers or {})
        self._on_state_change = on_state_change
        self._on_appeared_cb = on_appeared
        self._on_vanished_cb = on_vanished
        self._state = ConnectionState.disconnected()
        self._client: IpcClient | None = None
        self._subscriptions: list[Subscription] = []
        self._presence: Subscription | None = None
        self._connect_task: asyncio.Task[IpcClient | None] | None = None
        self._closed = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def client(self) -> IpcClient | None:
        return self._client

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def watches_presence(self) -> bool:
        return self._presence is not None

    async def connect(self) -> IpcClient | None:
        """Build the client if there is none yet.

        Returns ``None`` when construction failed; the state is then
        ``Error("connection failed")`` and the next call retries.
        Concurrent callers share one construction attempt.  After
        :meth:`teardown` it returns ``None`` until :meth:`reopen`.
        """
        if self._closed:
            return None
        if self._client is not None:
            return self._client
        if self._connect_task is None:
            self._connect_task = asyncio.get_running_loop().create_task(self._build())
        task = self._connect_task
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # Torn down while connecting.
            if task.cancelled():
                return None
            raise
        finally:
            if task.done() and self._connect_task is task:
                self._connect_task = None

    async def _build(self) -> IpcClient | None:
        try:
            client = await self._factory()
        except Exception as exc:
            _logger.warning("Failed to connect to the air monitor service: %s", exc)
            _logger.debug("Client construction failure", exc_info=True)
            self._set_state(ConnectionState.error(CONNECTION_FAILED_TEXT))
            return None

        self._client = client
        for signal, handler in self._signal_handlers.items():
            try:
                self._subscriptions.append(client.subscribe(signal, handler))
            except Exception:
                _logger.warning("Failed to subscribe to %s", signal, exc_info=True)

        if isinstance(client, PresenceAwareIpcClient):
            # Presence callbacks decide between Connecting and Error.
            self._set_state(ConnectionState.connecting())
            try:
                self._presence = client.watch_presence(self._handle_appeared, self._handle_vanished)
            except Exception:
                _logger.warning("Presence watching unavailable", exc_info=True)
                self._presence = None
        else:
            self._set_state(ConnectionState.connected())
        return client

    async def teardown(self) -> None:
        """Release the client, signals and presence watch; safe to repeat."""
        self._closed = True
        task = self._connect_task
        self._connect_task = None
        if task is not None and not task.done():
            task.cancel()

        subscriptions, self._subscriptions = self._subscriptions, []
        presence, self._presence = self._presence, None
        client, self._client = self._client, None

        for subscription in subscriptions:
            try:
                subscription.cancel()
            except Exception:
                _logger.debug("Signal unsubscribe failed", exc_info=True)
        if presence is not None:
            try:
                presence.cancel()
            except Exception:
                _logger.debug("Presence unwatch failed", exc_info=True)
        if client is not None:
            try:
                await client.close()
            except Exception:
                _logger.warning("Closing the IPC client failed", exc_info=True)
        if self._state.status != ConnectionStatus.DISCONNECTED:
            self._set_state(ConnectionState.disconnected())

    def reopen(self) -> None:
        """Allow :meth:`connect` again after a teardown."""
        self._closed = False

    def mark_reachable(self) -> None:
        """A call succeeded: promote Connecting to Connected."""
        if self._state.status == ConnectionStatus.CONNECTING:
            self._set_state(ConnectionState.connected())

    def _handle_appeared(self) -> None:
        _logger.info("Air monitor service appeared")
        self._set_state(ConnectionState.connecting())
        if self._on_appeared_cb is not None:
            self._on_appeared_cb()

    def _handle_vanished(self) -> None:
        _logger.info("Air monitor service vanished")
        self._set_state(ConnectionState.error(SERVICE_UNAVAILABLE_TEXT))
        if self._on_vanished_cb is not None:
            self._on_vanished_cb()

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        _logger.debug("Connection state %s -> %s", self._state, state)
        self._state = state
        if self._on_state_change is not None:
            try:
                self._on_state_change(state)
            except Exception:
                _logger.warning("Connection state listener failed", exc_info=True)

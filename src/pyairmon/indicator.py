"""Indicator engine.

Composes the connection manager, poll scheduler, state reconciler,
presentation mapper and (multi-device) pin store behind an explicit
``start()``/``stop()`` lifecycle.  One instance per indicator; instances
share nothing, so several can coexist.

Usage::

    indicator = MultiDeviceIndicator(client_factory, renderer=panel)
    await indicator.start()
    ...
    await indicator.stop()
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Sequence
from typing import Any, ClassVar, Protocol

from pyairmon._constants import (
    METHOD_GET_DEVICES,
    METHOD_GET_PINNED_METRICS,
    METHOD_GET_SELECTED_DEVICE,
    METHOD_GET_VISIBILITY,
    METHOD_OPEN_APP,
    METHOD_OPEN_SETTINGS,
    METHOD_QUIT,
    METHOD_REFRESH_DEVICES,
    SIGNAL_DEVICE_UPDATED,
    SIGNAL_DEVICES_UPDATED,
    SIGNAL_PINNED_METRICS_CHANGED,
    SIGNAL_VISIBILITY_CHANGED,
)
from pyairmon.config import IndicatorConfig, IndicatorVariant
from pyairmon.connection import ConnectionManager
from pyairmon.exceptions import AirMonConfigError, AirMonPayloadError
from pyairmon.ingestion.payloads import build_event_from_reply, build_event_from_signal
from pyairmon.ipc import ClientFactory, IpcClient, invoke
from pyairmon.models.metrics import MetricId
from pyairmon.models.presentation import PresentationState
from pyairmon.pins import PinStore
from pyairmon.presentation import present
from pyairmon.scheduler import PollScheduler
from pyairmon.state.connection import ConnectionState
from pyairmon.state.events import IngestionEvent
from pyairmon.state.store import RemoteSnapshot, StateReconciler

_logger = logging.getLogger(__name__)


class Renderer(Protocol):
    """The host's widget layer; only ever reads presentation state."""

    def render(self, state: PresentationState) -> None: ...


class AirMonitorIndicator:
    """Shared engine for both service variants."""

    variant: ClassVar[IndicatorVariant]
    _FETCH_METHODS: ClassVar[tuple[str, ...]] = ()
    _SIGNALS: ClassVar[tuple[str, ...]] = ()
    _REFRESH_METHOD: ClassVar[str | None] = None
    _FORCE_INITIAL_REFRESH: ClassVar[bool] = False

    def __init__(
        self,
        client_factory: ClientFactory,
        *,
        renderer: Renderer | None = None,
        config: IndicatorConfig | None = None,
        scheduler: PollScheduler | None = None,
    ) -> None:
        self._config = config or IndicatorConfig(variant=self.variant)
        if self._config.variant != self.variant:
            raise AirMonConfigError(
                f"{type(self).__name__} needs variant={self.variant.value}, got {self._config.variant.value}"
            )
        self._renderer = renderer
        self._reconciler = StateReconciler()
        self._scheduler = scheduler or PollScheduler()
        self._connection = ConnectionManager(
            client_factory,
            signal_handlers={name: functools.partial(self._on_signal, name) for name in self._SIGNALS},
            on_state_change=self._on_connection_state,
            on_appeared=self._on_service_appeared,
            on_vanished=self._on_service_vanished,
        )
        self._reconciler.add_listener(self._on_snapshot)
        self._presentation = present(self._reconciler.snapshot, self._connection.state, self.variant)
        self._tasks: set[asyncio.Task[Any]] = set()
        self._started = False

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def config(self) -> IndicatorConfig:
        return self._config

    @property
    def connection_state(self) -> ConnectionState:
        return self._connection.state

    @property
    def snapshot(self) -> RemoteSnapshot:
        return self._reconciler.snapshot

    @property
    def presentation(self) -> PresentationState:
        return self._presentation

    @property
    def is_started(self) -> bool:
        return self._started

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Connect, arm the poll timer and kick off the first refresh."""
        if self._started:
            return
        self._started = True
        self._connection.reopen()
        self._render()
        client = await self._connection.connect()
        if not self._started:
            # stop() ran while connecting.
            return
        self._scheduler.start(self._config.effective_poll_interval, self._on_tick)
        # A presence watch triggers the first refresh when the service shows up.
        if client is not None and not self._connection.watches_presence:
            self.request_refresh(force=self._FORCE_INITIAL_REFRESH)

    async def stop(self) -> None:
        """Stop polling and release the connection; safe to call repeatedly.

        Until the next :meth:`start`, refreshes and commands do not reconnect.
        """
        self._started = False
        await self._scheduler.wait_stopped()
        tasks = list(self._tasks)
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._connection.teardown()

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def request_refresh(self, force: bool = False) -> asyncio.Task[None]:
        """Schedule :meth:`refresh` without waiting for it."""
        return self._spawn(self.refresh(force=force))

    async def refresh(self, force: bool = False) -> None:
        """Fetch current remote state; each reply is merged as it completes.

        With *force* the service is first asked to recompute upstream data
        (fire-and-forget); the fetch does not wait for that request.
        """
        client = await self._connection.connect()
        if client is None:
            return
        if force and self._REFRESH_METHOD is not None:
            self._spawn(self._fire_and_forget(self._REFRESH_METHOD))
        await asyncio.gather(*(self._fetch(client, method) for method in self._FETCH_METHODS))

    async def _fetch(self, client: IpcClient, method: str) -> None:
        result = await invoke(client, method, timeout=self._config.call_timeout)
        if not result.ok:
            _logger.warning("Failed to call %s: %s", method, result.error)
            return
        try:
            event = build_event_from_reply(method, result.value)
        except AirMonPayloadError as exc:
            _logger.warning("Ignoring malformed %s reply: %s", method, exc)
            return
        self._merge(event)

    # ------------------------------------------------------------------
    # Fire-and-forget commands
    # ------------------------------------------------------------------

    async def open_app(self) -> bool:
        return await self._fire_and_forget(METHOD_OPEN_APP)

    async def open_settings(self) -> bool:
        return await self._fire_and_forget(METHOD_OPEN_SETTINGS)

    async def quit_app(self) -> bool:
        return await self._fire_and_forget(METHOD_QUIT)

    async def _fire_and_forget(self, method: str, *args: Any) -> bool:
        client = await self._client()
        if client is None:
            _logger.warning("Cannot call %s: not connected", method)
            return False
        result = await invoke(client, method, *args, timeout=self._config.call_timeout)
        if not result.ok:
            _logger.warning("Failed to call %s: %s", method, result.error)
            return False
        return True

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    async def _client(self) -> IpcClient | None:
        return self._connection.client or await self._connection.connect()

    def _on_tick(self) -> None:
        self.request_refresh(force=False)

    def _on_signal(self, signal: str, args: Sequence[Any]) -> None:
        try:
            event = build_event_from_signal(signal, args)
        except AirMonPayloadError as exc:
            _logger.warning("Ignoring malformed %s signal: %s", signal, exc)
            return
        self._merge(event)

    def _merge(self, event: IngestionEvent) -> None:
        self._connection.mark_reachable()
        self._reconciler.apply(event)

    def _on_service_appeared(self) -> None:
        self._reconciler.mark_service_present()
        self.request_refresh(force=False)

    def _on_service_vanished(self) -> None:
        self._reconciler.mark_service_lost()

    def _on_connection_state(self, _state: ConnectionState) -> None:
        self._recompute()

    def _on_snapshot(self, _snapshot: RemoteSnapshot, _event: IngestionEvent | None) -> None:
        self._recompute()

    def _recompute(self) -> None:
        self._presentation = present(self._reconciler.snapshot, self._connection.state, self.variant)
        self._render()

    def _render(self) -> None:
        if self._renderer is None:
            return
        try:
            self._renderer.render(self._presentation)
        except Exception:
            _logger.warning("Renderer failed", exc_info=True)

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.warning("Background task failed: %s", exc, exc_info=exc)


class MultiDeviceIndicator(AirMonitorIndicator):
    """Mirrors every device, summarising the first pinned metric."""

    variant = IndicatorVariant.MULTI_DEVICE
    _FETCH_METHODS = (METHOD_GET_PINNED_METRICS, METHOD_GET_DEVICES)
    _SIGNALS = (SIGNAL_DEVICES_UPDATED, SIGNAL_PINNED_METRICS_CHANGED)
    _REFRESH_METHOD = METHOD_REFRESH_DEVICES
    _FORCE_INITIAL_REFRESH = True

    def __init__(
        self,
        client_factory: ClientFactory,
        *,
        renderer: Renderer | None = None,
        config: IndicatorConfig | None = None,
        scheduler: PollScheduler | None = None,
    ) -> None:
        super().__init__(client_factory, renderer=renderer, config=config, scheduler=scheduler)
        self._pins = PinStore(self._reconciler, self._client, call_timeout=self._config.call_timeout)

    @property
    def pins(self) -> PinStore:
        return self._pins

    async def set_pinned(self, metric: MetricId, pinned: bool) -> bool:
        return await self._pins.set_pinned(metric, pinned)


class SingleDeviceIndicator(AirMonitorIndicator):
    """Mirrors the device selected in the companion app, summarising its score."""

    variant = IndicatorVariant.SINGLE_DEVICE
    _FETCH_METHODS = (METHOD_GET_SELECTED_DEVICE, METHOD_GET_VISIBILITY)
    _SIGNALS = (SIGNAL_DEVICE_UPDATED, SIGNAL_VISIBILITY_CHANGED)


def create_indicator(
    config: IndicatorConfig,
    client_factory: ClientFactory,
    *,
    renderer: Renderer | None = None,
) -> AirMonitorIndicator:
    """Build the indicator class matching ``config.variant``."""
    if config.variant == IndicatorVariant.SINGLE_DEVICE:
        return SingleDeviceIndicator(client_factory, renderer=renderer, config=config)
    return MultiDeviceIndicator(client_factory, renderer=renderer, config=config)

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from pyairmon.ipc import CallbackSubscription, SignalHandler, Subscription
from pyairmon.models.presentation import PresentationState

DEVICE_A: dict[str, Any] = {
    "DeviceID": "70886B1234",
    "Type": "Element",
    "Temperature": 21.0,
    "Humidity": 40.5,
    "CO2": 612,
    "VOC": 180,
    "PM25": 4.2,
    "Score": 40,
}

DEVICE_B: dict[str, Any] = {
    "DeviceID": "70886B5678",
    "Type": "Omni",
    "Temperature": 22.0,
    "Humidity": 45.0,
    "CO2": 820,
    "VOC": 310,
    "PM25": 7.0,
    "Score": 80,
}

SELECTED_DEVICE: dict[str, Any] = {
    "name": "Bedroom",
    "score": 25,
    "temperature": 23.4,
    "humidity": 51.0,
    "co2": 1400,
    "voc": 900,
    "pm25": 12.5,
    "timestamp": 1767225600,
}


class FakeService:
    """In-memory IPC client.

    Methods reply from ``results`` / ``errors``; methods listed in ``hold``
    block until the test releases them, so completion order is controlled
    by the test.
    """

    def __init__(self) -> None:
        self.results: dict[str, Any] = {}
        self.errors: dict[str, BaseException] = {}
        self.hold: set[str] = set()
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.handlers: dict[str, list[SignalHandler]] = {}
        self.closed = 0
        self._held: dict[str, list[asyncio.Future[Any]]] = {}

    async def call(self, method: str, *args: Any) -> Any:
        self.calls.append((method, args))
        if method in self.hold:
            future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            self._held.setdefault(method, []).append(future)
            return await future
        if method in self.errors:
            raise self.errors[method]
        return self.results.get(method)

    def subscribe(self, signal: str, handler: SignalHandler) -> Subscription:
        handlers = self.handlers.setdefault(signal, [])
        handlers.append(handler)
        return CallbackSubscription(lambda: handlers.remove(handler))

    async def close(self) -> None:
        self.closed += 1

    def emit(self, signal: str, *args: Any) -> None:
        for handler in list(self.handlers.get(signal, ())):
            handler(list(args))

    def release(self, method: str, value: Any = None, *, error: BaseException | None = None) -> None:
        future = self._held[method].pop(0)
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(value)

    def pending(self, method: str) -> int:
        return len(self._held.get(method, ()))

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def args_of(self, method: str) -> list[tuple[Any, ...]]:
        return [args for name, args in self.calls if name == method]


class PresenceFakeService(FakeService):
    """A :class:`FakeService` that also reports service presence."""

    def __init__(self) -> None:
        super().__init__()
        self.watchers: list[tuple[Callable[[], None], Callable[[], None]]] = []

    def watch_presence(
        self,
        on_appeared: Callable[[], None],
        on_vanished: Callable[[], None],
    ) -> Subscription:
        watcher = (on_appeared, on_vanished)
        self.watchers.append(watcher)
        return CallbackSubscription(lambda: self.watchers.remove(watcher))

    def appear(self) -> None:
        for on_appeared, _ in list(self.watchers):
            on_appeared()

    def vanish(self) -> None:
        for _, on_vanished in list(self.watchers):
            on_vanished()


class RecordingRenderer:
    def __init__(self) -> None:
        self.states: list[PresentationState] = []

    def render(self, state: PresentationState) -> None:
        self.states.append(state)

    @property
    def last(self) -> PresentationState:
        return self.states[-1]


async def settle(rounds: int = 25) -> None:
    """Let spawned tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def presence_service() -> PresenceFakeService:
    return PresenceFakeService()


@pytest.fixture
def renderer() -> RecordingRenderer:
    return RecordingRenderer()


@pytest.fixture
def make_factory() -> Callable[[Any], Callable[[], Any]]:
    """Build a client factory returning *client*; an exception instance is raised instead."""

    def _make(client: Any) -> Callable[[], Any]:
        async def _factory() -> Any:
            if isinstance(client, BaseException):
                raise client
            return client

        return _factory

    return _make

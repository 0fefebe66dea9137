from __future__ import annotations

import asyncio

import pytest
from conftest import FakeService, PresenceFakeService

from pyairmon.connection import ConnectionManager
from pyairmon.exceptions import AirMonTransportError
from pyairmon.state.connection import ConnectionState, ConnectionStatus


@pytest.mark.asyncio
async def test_connect_without_presence_is_connected(service: FakeService, make_factory) -> None:
    states: list[ConnectionState] = []
    manager = ConnectionManager(
        make_factory(service),
        signal_handlers={"DevicesUpdated": lambda args: None},
        on_state_change=states.append,
    )

    client = await manager.connect()

    assert client is service
    assert manager.state.status is ConnectionStatus.CONNECTED
    assert not manager.watches_presence
    assert len(service.handlers["DevicesUpdated"]) == 1
    assert states == [ConnectionState.connected()]


@pytest.mark.asyncio
async def test_construction_failure_sets_error_and_retries(service: FakeService) -> None:
    attempts: list[int] = []

    async def factory() -> FakeService:
        attempts.append(1)
        if len(attempts) == 1:
            raise AirMonTransportError("broker down")
        return service

    manager = ConnectionManager(factory)

    assert await manager.connect() is None
    assert manager.state == ConnectionState.error("connection failed")

    assert await manager.connect() is service
    assert manager.state.status is ConnectionStatus.CONNECTED


@pytest.mark.asyncio
async def test_concurrent_connects_share_one_build(service: FakeService) -> None:
    builds: list[int] = []

    async def factory() -> FakeService:
        builds.append(1)
        await asyncio.sleep(0.01)
        return service

    manager = ConnectionManager(factory)

    first, second = await asyncio.gather(manager.connect(), manager.connect())

    assert first is second is service
    assert builds == [1]


@pytest.mark.asyncio
async def test_presence_transitions(presence_service: PresenceFakeService, make_factory) -> None:
    appeared: list[int] = []
    vanished: list[int] = []
    manager = ConnectionManager(
        make_factory(presence_service),
        on_appeared=lambda: appeared.append(1),
        on_vanished=lambda: vanished.append(1),
    )

    await manager.connect()
    assert manager.watches_presence
    assert manager.state.status is ConnectionStatus.CONNECTING

    presence_service.vanish()
    assert manager.state == ConnectionState.error("service not available")
    assert vanished == [1]

    presence_service.appear()
    assert manager.state.status is ConnectionStatus.CONNECTING
    assert appeared == [1]

    manager.mark_reachable()
    assert manager.state.status is ConnectionStatus.CONNECTED


@pytest.mark.asyncio
async def test_mark_reachable_does_not_clear_error(presence_service: PresenceFakeService, make_factory) -> None:
    manager = ConnectionManager(make_factory(presence_service))
    await manager.connect()
    presence_service.vanish()

    manager.mark_reachable()

    assert manager.state.is_error


@pytest.mark.asyncio
async def test_teardown_twice(presence_service: PresenceFakeService, make_factory) -> None:
    manager = ConnectionManager(
        make_factory(presence_service),
        signal_handlers={"DevicesUpdated": lambda args: None},
    )
    await manager.connect()

    await manager.teardown()
    await manager.teardown()

    assert presence_service.closed == 1
    assert presence_service.watchers == []
    assert presence_service.handlers["DevicesUpdated"] == []
    assert manager.client is None
    assert manager.state.status is ConnectionStatus.DISCONNECTED


@pytest.mark.asyncio
async def test_teardown_while_connecting(service: FakeService) -> None:
    gate = asyncio.Event()

    async def factory() -> FakeService:
        await gate.wait()
        return service

    manager = ConnectionManager(factory)
    pending = asyncio.create_task(manager.connect())
    await asyncio.sleep(0)

    await manager.teardown()

    assert await pending is None
    assert manager.client is None


@pytest.mark.asyncio
async def test_failing_state_listener_is_logged(service: FakeService, make_factory) -> None:
    def listener(_state: ConnectionState) -> None:
        raise RuntimeError("ui gone")

    manager = ConnectionManager(make_factory(service), on_state_change=listener)

    assert await manager.connect() is service
    assert manager.state.status is ConnectionStatus.CONNECTED


@pytest.mark.asyncio
async def test_connect_after_teardown_needs_reopen(service: FakeService) -> None:
    builds: list[int] = []

    async def factory() -> FakeService:
        builds.append(1)
        return service

    manager = ConnectionManager(factory)
    await manager.teardown()

    assert await manager.connect() is None
    assert manager.is_closed
    assert builds == []

    manager.reopen()

    assert await manager.connect() is service
    assert builds == [1]

"""IPC client capability consumed by the indicator engine.

The engine never talks to a concrete transport.  Anything that offers
async request/response calls and named push signals satisfies
:class:`IpcClient`; transports that can also tell when the service comes
and goes implement :class:`PresenceAwareIpcClient`.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

from pyairmon.exceptions import AirMonCallError

T = TypeVar("T")

SignalHandler = Callable[[Sequence[Any]], None]
"""Receives a signal's argument list, e.g. ``[devices]``."""


class Subscription(Protocol):
    def cancel(self) -> None:
        """Stop delivery; calling it again is a no-op."""


@runtime_checkable
class IpcClient(Protocol):
    async def call(self, method: str, *args: Any) -> Any:
        """Invoke *method* and return its result, raising on failure."""

    def subscribe(self, signal: str, handler: SignalHandler) -> Subscription: ...

    async def close(self) -> None: ...


@runtime_checkable
class PresenceAwareIpcClient(IpcClient, Protocol):
    def watch_presence(
        self,
        on_appeared: Callable[[], None],
        on_vanished: Callable[[], None],
    ) -> Subscription:
        """Report availability changes of the remote service.

        Implementations report the current state soon after the watch starts.
        """


ClientFactory = Callable[[], Awaitable[IpcClient]]


class CallbackSubscription:
    """A :class:`Subscription` that runs a callback once on cancel."""

    def __init__(self, on_cancel: Callable[[], None]) -> None:
        self._on_cancel: Callable[[], None] | None = on_cancel

    @property
    def active(self) -> bool:
        return self._on_cancel is not None

    def cancel(self) -> None:
        on_cancel = self._on_cancel
        self._on_cancel = None
        if on_cancel is not None:
            on_cancel()


@dataclasses.dataclass(frozen=True, slots=True)
class CallResult(Generic[T]):
    """Outcome of a remote call: a value or the error that replaced it."""

    method: str
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def invoke(
    client: IpcClient,
    method: str,
    *args: Any,
    timeout: float | None = None,
) -> CallResult[Any]:
    """Call *method* and capture the outcome instead of raising.

    Cancellation of the awaiting task still propagates.
    """
    try:
        if timeout is None:
            value = await client.call(method, *args)
        else:
            value = await asyncio.wait_for(client.call(method, *args), timeout)
    except TimeoutError:
        return CallResult(method=method, error=AirMonCallError(f"{method} timed out", method=method))
    except Exception as exc:
        return CallResult(method=method, error=exc)
    return CallResult(method=method, value=value)

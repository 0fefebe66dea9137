"""MQTT binding of the IPC client capability.

Wire layout under the configured topic root:

* ``<root>/call/<Method>``: request ``{"id", "method", "args", "reply_to"}``
* ``<root>/reply/<client_id>``: ``{"id", "result"}`` or
  ``{"id", "error": {"name", "message"}}``
* ``<root>/signal/<Name>``: ``{"args": [...]}``
* ``<root>/presence``: retained ``online`` / ``offline`` (the service's
  last will is ``offline``)

paho-mqtt runs its network loop on its own thread; every inbound message
is handed to the asyncio loop with ``call_soon_threadsafe`` so all state
here is only touched from the loop.
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pyairmon.config import IndicatorConfig, MqttSettings
from pyairmon.exceptions import AirMonCallError, AirMonClientClosedError, AirMonTransportError
from pyairmon.ipc import CallbackSubscription, ClientFactory, IpcClient, SignalHandler, Subscription

_PRESENCE_ONLINE = "online"


@dataclass(frozen=True)
class MqttTopics:
    """Topic names for one service namespace."""

    root: str

    def call(self, method: str) -> str:
        return f"{self.root}/call/{method}"

    def reply(self, client_id: str) -> str:
        return f"{self.root}/reply/{client_id}"

    def signal(self, name: str) -> str:
        return f"{self.root}/signal/{name}"

    @property
    def signal_prefix(self) -> str:
        return f"{self.root}/signal/"

    @property
    def signal_wildcard(self) -> str:
        return f"{self.root}/signal/+"

    @property
    def presence(self) -> str:
        return f"{self.root}/presence"


class _RemoteError(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str = ""
    message: str = ""


class _ReplyEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str
    result: Any = None
    error: _RemoteError | None = None


class _SignalEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    args: list[Any] = Field(default_factory=list)


def encode_request(call_id: str, method: str, args: tuple[Any, ...], reply_to: str) -> bytes:
    return json.dumps(
        {"id": call_id, "method": method, "args": list(args), "reply_to": reply_to},
        ensure_ascii=False,
    ).encode("utf-8")


def _decode_json(payload: bytes) -> Any:
    return json.loads(payload.decode("utf-8"))


class MqttIpcClient:
    """Threaded paho-mqtt client exposing calls, signals and presence on an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        settings: MqttSettings,
        topic_root: str,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._settings = settings
        self._topics = MqttTopics(topic_root.strip("/"))
        self._client_id = settings.client_id or f"pyairmon-{secrets.token_hex(6)}"
        self._reply_topic = self._topics.reply(self._client_id)
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._pending: dict[str, tuple[str, asyncio.Future[Any]]] = {}
        self._signal_handlers: dict[str, list[SignalHandler]] = {}
        self._presence_watchers: list[tuple[Callable[[], None], Callable[[], None]]] = []
        self._service_online: bool | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def topics(self) -> MqttTopics:
        return self._topics

    @property
    def service_online(self) -> bool | None:
        return self._service_online

    # ------------------------------------------------------------------
    # Runtime (blocking; run in an executor)
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Connect to the broker and start the network loop thread."""
        self.stop()
        self._logger.debug(
            "MQTT IPC start host=%s port=%s root=%s client_id=%s",
            self._settings.host,
            self._settings.port,
            self._topics.root,
            self._client_id,
        )
        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
            protocol=mqtt.MQTTv311,
        )
        client.enable_logger(self._logger)
        if self._settings.username:
            client.username_pw_set(self._settings.username, self._settings.password)
        if self._settings.tls:
            client.tls_set()

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected reason=%s", reason_code)
            c.subscribe(
                [
                    (self._reply_topic, 1),
                    (self._topics.signal_wildcard, 0),
                    (self._topics.presence, 1),
                ]
            )

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._loop.call_soon_threadsafe(self.dispatch, msg.topic, bytes(msg.payload))

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)
                # Without the broker the service is unreachable.
                self._loop.call_soon_threadsafe(self._set_service_online, False)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(self._settings.host, self._settings.port, keepalive=self._settings.keepalive)
        except (OSError, ValueError) as exc:
            raise AirMonTransportError(
                f"Cannot reach MQTT broker {self._settings.host}:{self._settings.port}: {exc}"
            ) from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current paho client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    # ------------------------------------------------------------------
    # IpcClient
    # ------------------------------------------------------------------

    async def call(self, method: str, *args: Any) -> Any:
        client = self._client
        if client is None or not self._running:
            raise AirMonClientClosedError(f"Cannot call {method}: MQTT client is closed")

        call_id = secrets.token_hex(8)
        future: asyncio.Future[Any] = self._loop.create_future()
        self._pending[call_id] = (method, future)
        try:
            info = client.publish(
                self._topics.call(method),
                encode_request(call_id, method, args, self._reply_topic),
                qos=1,
            )
            if info.rc != mqtt.MQTT_ERR_SUCCESS:
                raise AirMonTransportError(f"Publishing {method} failed: {mqtt.error_string(info.rc)}")
            return await future
        finally:
            self._pending.pop(call_id, None)

    def subscribe(self, signal: str, handler: SignalHandler) -> Subscription:
        handlers = self._signal_handlers.setdefault(signal, [])
        handlers.append(handler)

        def _remove() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return CallbackSubscription(_remove)

    def watch_presence(
        self,
        on_appeared: Callable[[], None],
        on_vanished: Callable[[], None],
    ) -> Subscription:
        watcher = (on_appeared, on_vanished)
        self._presence_watchers.append(watcher)
        if self._service_online is not None:
            callback = on_appeared if self._service_online else on_vanished
            self._loop.call_soon(self._notify_watcher, watcher, callback)

        def _remove() -> None:
            if watcher in self._presence_watchers:
                self._presence_watchers.remove(watcher)

        return CallbackSubscription(_remove)

    async def close(self) -> None:
        """Disconnect and fail every pending call."""
        if self._client is not None:
            await self._loop.run_in_executor(None, self.stop)
        pending = list(self._pending.values())
        self._pending.clear()
        for method, future in pending:
            if not future.done():
                future.set_exception(AirMonClientClosedError(f"{method} cancelled: MQTT client closed"))
        self._signal_handlers.clear()
        self._presence_watchers.clear()

    # ------------------------------------------------------------------
    # Inbound (event loop thread)
    # ------------------------------------------------------------------

    def dispatch(self, topic: str, payload: bytes) -> None:
        """Route one inbound message; must run on the event loop."""
        if topic == self._reply_topic:
            self._handle_reply(payload)
        elif topic == self._topics.presence:
            state = payload.decode("utf-8", errors="replace").strip().lower()
            self._set_service_online(state == _PRESENCE_ONLINE)
        elif topic.startswith(self._topics.signal_prefix):
            self._handle_signal(topic[len(self._topics.signal_prefix) :], payload)
        else:
            self._logger.debug("Ignoring message on unexpected topic %s", topic)

    def _handle_reply(self, payload: bytes) -> None:
        try:
            envelope = _ReplyEnvelope.model_validate(_decode_json(payload))
        except (ValueError, ValidationError):
            self._logger.debug("Malformed reply payload", exc_info=True)
            return
        entry = self._pending.pop(envelope.id, None)
        if entry is None:
            self._logger.debug("Reply for unknown call id=%s", envelope.id)
            return
        method, future = entry
        if future.done():
            return
        if envelope.error is not None:
            future.set_exception(
                AirMonCallError(
                    envelope.error.message or f"{method} failed",
                    method=method,
                    remote_name=envelope.error.name,
                )
            )
        else:
            future.set_result(envelope.result)

    def _handle_signal(self, name: str, payload: bytes) -> None:
        try:
            envelope = _SignalEnvelope.model_validate(_decode_json(payload))
        except (ValueError, ValidationError):
            self._logger.debug("Malformed %s signal payload", name, exc_info=True)
            return
        for handler in list(self._signal_handlers.get(name, ())):
            try:
                handler(envelope.args)
            except Exception:
                self._logger.warning("%s signal handler failed", name, exc_info=True)

    def _set_service_online(self, online: bool) -> None:
        if self._service_online is online:
            return
        self._service_online = online
        self._logger.debug("Service presence online=%s", online)
        for watcher in list(self._presence_watchers):
            self._notify_watcher(watcher, watcher[0] if online else watcher[1])

    def _notify_watcher(
        self,
        watcher: tuple[Callable[[], None], Callable[[], None]],
        callback: Callable[[], None],
    ) -> None:
        if watcher not in self._presence_watchers:
            return
        try:
            callback()
        except Exception:
            self._logger.warning("Presence callback failed", exc_info=True)


async def open_mqtt_client(config: IndicatorConfig) -> IpcClient:
    """Build and connect an :class:`MqttIpcClient` for *config*.

    Raises :class:`AirMonTransportError` when the broker is unreachable.
    """
    loop = asyncio.get_running_loop()
    client = MqttIpcClient(loop=loop, settings=config.mqtt, topic_root=config.topic_root)
    started = loop.run_in_executor(None, client.start)
    try:
        await asyncio.shield(started)
    except asyncio.CancelledError:
        # The executor thread keeps connecting; stop the client once it is done.
        started.add_done_callback(functools.partial(_stop_after_start, loop, client))
        raise
    return client


def _stop_after_start(loop: asyncio.AbstractEventLoop, client: MqttIpcClient, started: asyncio.Future[None]) -> None:
    if started.cancelled() or started.exception() is not None:
        return
    loop.run_in_executor(None, client.stop)


def mqtt_client_factory(config: IndicatorConfig) -> ClientFactory:
    return functools.partial(open_mqtt_client, config)

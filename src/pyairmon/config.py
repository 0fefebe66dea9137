"""Indicator configuration for pyairmon."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from pyairmon._constants import (
    DEFAULT_MQTT_PORT,
    DEFAULT_TOPIC_ROOT,
    MULTI_DEVICE_POLL_INTERVAL,
    SINGLE_DEVICE_POLL_INTERVAL,
)
from pyairmon.exceptions import AirMonConfigError


class IndicatorVariant(StrEnum):
    """Which remote interface the indicator mirrors."""

    MULTI_DEVICE = "multi"
    SINGLE_DEVICE = "single"


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_number(env: Mapping[str, str], key: str, cast: type[int] | type[float]) -> Any:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return None
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise AirMonConfigError(f"{key} must be a number, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Broker connection used by the MQTT IPC binding."""

    host: str = "localhost"
    port: int = DEFAULT_MQTT_PORT
    keepalive: int = 60
    client_id: str | None = None
    username: str | None = None
    password: str | None = None
    tls: bool = False


@dataclasses.dataclass(frozen=True)
class IndicatorConfig:
    """Indicator configuration.

    Parameters
    ----------
    variant : IndicatorVariant
        Multi-device (device list + pinned metrics) or single-device
        (selected device + visibility) remote interface.
    poll_interval : float or None
        Seconds between poll ticks.  ``None`` uses the variant default
        (60 s multi-device, 30 s single-device).
    topic_root : str
        Namespace the remote service publishes under.
    call_timeout : float or None
        Seconds to wait for a remote call reply.  ``None`` waits forever;
        a hung call then simply never updates the display.
    mqtt : MqttSettings
        Broker settings for the MQTT binding.
    """

    variant: IndicatorVariant = IndicatorVariant.MULTI_DEVICE
    poll_interval: float | None = None
    topic_root: str = DEFAULT_TOPIC_ROOT
    call_timeout: float | None = None
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        if self.poll_interval is not None and self.poll_interval <= 0:
            raise AirMonConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.call_timeout is not None and self.call_timeout <= 0:
            raise AirMonConfigError(f"call_timeout must be positive, got {self.call_timeout}")
        if not self.topic_root.strip("/"):
            raise AirMonConfigError("topic_root must be non-empty")

    @property
    def effective_poll_interval(self) -> float:
        if self.poll_interval is not None:
            return self.poll_interval
        if self.variant == IndicatorVariant.SINGLE_DEVICE:
            return SINGLE_DEVICE_POLL_INTERVAL
        return MULTI_DEVICE_POLL_INTERVAL

    @classmethod
    def from_env(cls, **overrides: Any) -> IndicatorConfig:
        """Create configuration from ``AIRMON_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP = {
            "AIRMON_MQTT_HOST": "host",
            "AIRMON_MQTT_CLIENT_ID": "client_id",
            "AIRMON_MQTT_USERNAME": "username",
            "AIRMON_MQTT_PASSWORD": "password",
        }
        for env_key, field_name in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = val

        port = _env_number(env, "AIRMON_MQTT_PORT", int)
        if port is not None:
            mqtt_kwargs["port"] = port
        keepalive = _env_number(env, "AIRMON_MQTT_KEEPALIVE", int)
        if keepalive is not None:
            mqtt_kwargs["keepalive"] = keepalive
        mqtt_kwargs["tls"] = _env_bool(env.get("AIRMON_MQTT_TLS"), False)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        config_kwargs: dict[str, Any] = {"mqtt": MqttSettings(**mqtt_kwargs)}

        variant_env = env.get("AIRMON_VARIANT")
        if variant_env is not None and "variant" not in overrides:
            try:
                config_kwargs["variant"] = IndicatorVariant(variant_env.strip().lower())
            except ValueError as exc:
                raise AirMonConfigError(f"AIRMON_VARIANT must be 'multi' or 'single', got {variant_env!r}") from exc

        topic_env = env.get("AIRMON_TOPIC_ROOT")
        if topic_env is not None:
            config_kwargs["topic_root"] = topic_env

        interval = _env_number(env, "AIRMON_POLL_INTERVAL", float)
        if interval is not None and "poll_interval" not in overrides:
            config_kwargs["poll_interval"] = interval

        timeout = _env_number(env, "AIRMON_CALL_TIMEOUT", float)
        if timeout is not None and "call_timeout" not in overrides:
            config_kwargs["call_timeout"] = timeout

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

"""Device models.

:class:`Device` is the canonical, transport-independent view the engine
works with.  :class:`DeviceRecord` and :class:`SelectedDeviceRecord` map the
two payload shapes the service variants send.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from pyairmon.ingestion.normalize import safe_float, safe_str
from pyairmon.models._base import AirMonBaseModel, EpochTimestamp
from pyairmon.models.metrics import MetricId


class Device(BaseModel):
    """A monitoring device and its latest measurements.

    Every :class:`MetricId` is present in ``metrics``; a value of ``None``
    means the device did not report that metric.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    display_name: str
    metrics: dict[MetricId, float | None] = Field(default_factory=dict)
    updated_at: datetime | None = None

    @field_validator("metrics", mode="after")
    @classmethod
    def _fill_metrics(cls, value: dict[MetricId, float | None]) -> dict[MetricId, float | None]:
        return {metric: value.get(metric) for metric in MetricId}

    def value(self, metric: MetricId) -> float | None:
        return self.metrics.get(metric)


_METRIC_FIELDS: tuple[str, ...] = ("temperature", "humidity", "co2", "voc", "pm25", "score")


class _MeasurementRecord(AirMonBaseModel):
    temperature: float | None = None
    humidity: float | None = None
    co2: float | None = None
    voc: float | None = None
    pm25: float | None = None
    score: float | None = None

    @field_validator(*_METRIC_FIELDS, mode="before")
    @classmethod
    def _coerce_float(cls, value: Any) -> float | None:
        return safe_float(value)

    def _metrics(self) -> dict[MetricId, float | None]:
        return {MetricId(name): getattr(self, name) for name in _METRIC_FIELDS}


class DeviceRecord(_MeasurementRecord):
    """One entry of the multi-device ``GetDevices`` / ``DevicesUpdated`` payload."""

    device_id: str = Field(default="", validation_alias=AliasChoices("DeviceID", "device_id", "id"))
    device_type: str = Field(default="", validation_alias=AliasChoices("Type", "device_type", "type"))
    temperature: float | None = Field(
        default=None,
        validation_alias=AliasChoices("Temperature", "Temp", "temperature", "temp"),
    )
    humidity: float | None = Field(default=None, validation_alias=AliasChoices("Humidity", "humidity"))
    co2: float | None = Field(default=None, validation_alias=AliasChoices("CO2", "co2"))
    voc: float | None = Field(default=None, validation_alias=AliasChoices("VOC", "voc"))
    pm25: float | None = Field(default=None, validation_alias=AliasChoices("PM25", "pm25"))
    score: float | None = Field(default=None, validation_alias=AliasChoices("Score", "score"))

    @field_validator("device_id", "device_type", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return safe_str(value) or ""

    @property
    def display_name(self) -> str:
        if self.device_type and self.device_id:
            return f"{self.device_type} ({self.device_id})"
        return self.device_type or self.device_id or "Unknown device"

    def to_device(self) -> Device:
        return Device(id=self.device_id, display_name=self.display_name, metrics=self._metrics())


class SelectedDeviceRecord(_MeasurementRecord):
    """The single-device ``GetSelectedDevice`` / ``DeviceUpdated`` payload."""

    name: str = ""
    timestamp: EpochTimestamp = None

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        return safe_str(value) or ""

    @property
    def is_empty(self) -> bool:
        """The service sends an empty mapping when no device is selected."""
        return not self.name and all(value is None for value in self._metrics().values())

    def to_device(self) -> Device:
        name = self.name or "Selected device"
        return Device(id=name, display_name=name, metrics=self._metrics(), updated_at=self.timestamp)

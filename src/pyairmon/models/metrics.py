"""Tracked air-quality metrics and their display table."""

from __future__ import annotations

import dataclasses
from collections.abc import Iterable
from enum import StrEnum
from typing import Any


class MetricId(StrEnum):
    """Closed set of metrics the service reports."""

    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    CO2 = "co2"
    VOC = "voc"
    PM25 = "pm25"
    SCORE = "score"


@dataclasses.dataclass(frozen=True)
class MetricSpec:
    """Fixed presentation data for one metric."""

    metric: MetricId
    label: str
    unit: str
    precision: int
    wire_id: str
    """Identifier the multi-device service uses in pin calls and signals."""

    def format_value(self, value: float) -> str:
        return f"{value:.{self.precision}f}"


METRICS: dict[MetricId, MetricSpec] = {
    MetricId.TEMPERATURE: MetricSpec(MetricId.TEMPERATURE, "Temperature", "°C", 1, "temp"),
    MetricId.HUMIDITY: MetricSpec(MetricId.HUMIDITY, "Humidity", "%", 1, "humidity"),
    MetricId.CO2: MetricSpec(MetricId.CO2, "CO₂", "ppm", 0, "co2"),
    MetricId.VOC: MetricSpec(MetricId.VOC, "VOC", "ppb", 0, "voc"),
    MetricId.PM25: MetricSpec(MetricId.PM25, "PM2.5", "μg/m³", 1, "pm25"),
    MetricId.SCORE: MetricSpec(MetricId.SCORE, "Air Score", "", 0, "score"),
}
"""Menu order is the declaration order of this table."""

DEFAULT_PRIMARY_METRIC = MetricId.SCORE

_WIRE_ALIASES: dict[str, MetricId] = {
    **{spec.wire_id: metric for metric, spec in METRICS.items()},
    **{metric.value: metric for metric in MetricId},
}


def metric_from_wire(value: Any) -> MetricId | None:
    """Resolve a wire metric identifier (``"temp"``, ``"co2"``, ...) or ``None`` if unknown."""
    if isinstance(value, MetricId):
        return value
    if not isinstance(value, str):
        return None
    return _WIRE_ALIASES.get(value.strip().lower())


def normalize_pinned(values: Iterable[Any]) -> tuple[MetricId, ...]:
    """Keep known ids in service order, dropping unknowns and repeats."""
    pinned: list[MetricId] = []
    for value in values:
        metric = metric_from_wire(value)
        if metric is not None and metric not in pinned:
            pinned.append(metric)
    return tuple(pinned)


def primary_metric(pinned: Iterable[MetricId]) -> MetricId:
    """First pinned metric, or ``score`` when nothing is pinned."""
    for metric in pinned:
        return metric
    return DEFAULT_PRIMARY_METRIC

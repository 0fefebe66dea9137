"""Data models for the remote air-monitor service and its presentation."""

from pyairmon.models._base import AirMonBaseModel, EpochTimestamp, parse_epoch_timestamp
from pyairmon.models.device import Device, DeviceRecord, SelectedDeviceRecord
from pyairmon.models.metrics import (
    DEFAULT_PRIMARY_METRIC,
    METRICS,
    MetricId,
    MetricSpec,
    metric_from_wire,
    normalize_pinned,
    primary_metric,
)
from pyairmon.models.presentation import (
    MetricLine,
    Placeholder,
    PresentationState,
    Row,
    SectionHeader,
    SeverityBucket,
)

__all__ = [
    "AirMonBaseModel",
    "DEFAULT_PRIMARY_METRIC",
    "Device",
    "DeviceRecord",
    "EpochTimestamp",
    "METRICS",
    "MetricId",
    "MetricLine",
    "MetricSpec",
    "Placeholder",
    "PresentationState",
    "Row",
    "SectionHeader",
    "SelectedDeviceRecord",
    "SeverityBucket",
    "metric_from_wire",
    "normalize_pinned",
    "parse_epoch_timestamp",
    "primary_metric",
]

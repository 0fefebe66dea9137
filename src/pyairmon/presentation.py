"""Presentation mapper.

Pure functions turning a :class:`~pyairmon.state.store.RemoteSnapshot` and
the current :class:`~pyairmon.state.connection.ConnectionState` into the
:class:`~pyairmon.models.presentation.PresentationState` the host renders.
Nothing here reads anything but its arguments.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from datetime import UTC

from pyairmon._constants import (
    LAST_UPDATED_FORMAT,
    NO_DEVICES_TEXT,
    NO_SELECTION_TEXT,
    SCORE_GOOD_FROM,
    SCORE_SEVERE_BELOW,
    SUMMARY_ERROR,
    SUMMARY_PENDING,
    VALUE_MISSING,
)
from pyairmon.config import IndicatorVariant
from pyairmon.models.device import Device
from pyairmon.models.metrics import METRICS, MetricId
from pyairmon.models.presentation import (
    MetricLine,
    Placeholder,
    PresentationState,
    Row,
    SectionHeader,
    SeverityBucket,
)
from pyairmon.state.connection import ConnectionState
from pyairmon.state.store import RemoteSnapshot


def classify_score(score: float | None) -> SeverityBucket:
    """Bucket an air score: ``< 30`` severe, ``< 75`` moderate, otherwise good."""
    if score is None or math.isnan(score):
        return SeverityBucket.UNKNOWN
    if score < SCORE_SEVERE_BELOW:
        return SeverityBucket.SEVERE
    if score < SCORE_GOOD_FROM:
        return SeverityBucket.MODERATE
    return SeverityBucket.GOOD


def mean_metric(devices: Iterable[Device], metric: MetricId) -> float | None:
    """Mean over devices that report *metric*; ``None`` when none does."""
    values = [value for value in (device.value(metric) for device in devices) if value is not None]
    if not values:
        return None
    return sum(values) / len(values)


def format_summary(value: float | None, metric: MetricId) -> str:
    """One decimal immediately followed by the unit, e.g. ``21.5°C``."""
    if value is None:
        return SUMMARY_PENDING
    return f"{value:.1f}{METRICS[metric].unit}"


def metric_lines(device: Device) -> list[MetricLine]:
    lines: list[MetricLine] = []
    for metric, spec in METRICS.items():
        value = device.value(metric)
        text = VALUE_MISSING if value is None else spec.format_value(value)
        lines.append(MetricLine(label=spec.label, value=text, unit=spec.unit))
    return lines


def present_error(connection: ConnectionState, snapshot: RemoteSnapshot) -> PresentationState:
    return PresentationState(
        summary_text=SUMMARY_ERROR,
        severity=SeverityBucket.SEVERE,
        menu_rows=(SectionHeader(text=connection.message or "error"),),
        visible=_visible(snapshot),
    )


def present_multi_device(snapshot: RemoteSnapshot, connection: ConnectionState) -> PresentationState:
    if connection.is_error:
        return present_error(connection, snapshot)

    devices = snapshot.devices or ()
    if not devices:
        return PresentationState(
            summary_text=SUMMARY_PENDING,
            menu_rows=(Placeholder(text=NO_DEVICES_TEXT),),
            visible=_visible(snapshot),
        )

    metric = snapshot.primary_metric
    noun = "device" if len(devices) == 1 else "devices"
    rows: list[Row] = [Placeholder(text=f"{len(devices)} {noun} found")]
    for device in devices:
        rows.append(SectionHeader(text=device.display_name))
        rows.extend(metric_lines(device))

    return PresentationState(
        summary_text=format_summary(mean_metric(devices, metric), metric),
        severity=classify_score(mean_metric(devices, MetricId.SCORE)),
        menu_rows=tuple(rows),
        visible=_visible(snapshot),
    )


def present_single_device(snapshot: RemoteSnapshot, connection: ConnectionState) -> PresentationState:
    if connection.is_error:
        return present_error(connection, snapshot)

    device = snapshot.selected_device
    if device is None:
        return PresentationState(
            summary_text=SUMMARY_PENDING,
            menu_rows=(Placeholder(text=NO_SELECTION_TEXT),),
            visible=_visible(snapshot),
        )

    score = device.value(MetricId.SCORE)
    # Half-up: 42.5 shows as 43.
    summary = SUMMARY_PENDING if score is None else str(math.floor(score + 0.5))
    rows: list[Row] = [SectionHeader(text=device.display_name), *metric_lines(device)]
    if device.updated_at is not None:
        rows.append(Placeholder(text=device.updated_at.astimezone(UTC).strftime(LAST_UPDATED_FORMAT)))
    return PresentationState(
        summary_text=summary,
        severity=classify_score(score),
        menu_rows=tuple(rows),
        visible=_visible(snapshot),
    )


def present(
    snapshot: RemoteSnapshot,
    connection: ConnectionState,
    variant: IndicatorVariant = IndicatorVariant.MULTI_DEVICE,
) -> PresentationState:
    if variant == IndicatorVariant.SINGLE_DEVICE:
        return present_single_device(snapshot, connection)
    return present_multi_device(snapshot, connection)


def _visible(snapshot: RemoteSnapshot) -> bool:
    return snapshot.visible and snapshot.service_present is not False

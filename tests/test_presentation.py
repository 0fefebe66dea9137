from __future__ import annotations

import pytest
from conftest import DEVICE_A, DEVICE_B, SELECTED_DEVICE

from pyairmon.config import IndicatorVariant
from pyairmon.ingestion.payloads import parse_devices, parse_selected_device
from pyairmon.models.device import Device
from pyairmon.models.metrics import MetricId
from pyairmon.models.presentation import MetricLine, Placeholder, SectionHeader, SeverityBucket
from pyairmon.presentation import classify_score, format_summary, mean_metric, present
from pyairmon.state.connection import ConnectionState
from pyairmon.state.store import RemoteSnapshot

CONNECTED = ConnectionState.connected()
SINGLE = IndicatorVariant.SINGLE_DEVICE


def _device(device_id: str, **metrics: float | None) -> Device:
    return Device(
        id=device_id,
        display_name=device_id,
        metrics={MetricId(name): value for name, value in metrics.items()},
    )


@pytest.mark.parametrize(
    ("score", "bucket"),
    [
        (29.9, SeverityBucket.SEVERE),
        (30.0, SeverityBucket.MODERATE),
        (74.9, SeverityBucket.MODERATE),
        (75.0, SeverityBucket.GOOD),
        (0.0, SeverityBucket.SEVERE),
        (None, SeverityBucket.UNKNOWN),
    ],
)
def test_classify_score_boundaries(score: float | None, bucket: SeverityBucket) -> None:
    assert classify_score(score) is bucket


def test_mean_ignores_devices_without_the_metric() -> None:
    devices = [_device("a", co2=400.0), _device("b"), _device("c", co2=800.0)]

    assert mean_metric(devices, MetricId.CO2) == 600.0


def test_mean_is_none_when_no_device_reports() -> None:
    assert mean_metric([_device("a"), _device("b")], MetricId.VOC) is None


def test_format_summary() -> None:
    assert format_summary(21.46, MetricId.TEMPERATURE) == "21.5°C"
    assert format_summary(60.0, MetricId.SCORE) == "60.0"
    assert format_summary(None, MetricId.CO2) == "..."


def test_multi_device_default_primary_metric_mean_score() -> None:
    snapshot = RemoteSnapshot(devices=parse_devices([DEVICE_A, DEVICE_B]), pinned_metrics=())

    state = present(snapshot, CONNECTED)

    assert state.summary_text == "60.0"
    assert state.severity is SeverityBucket.MODERATE
    assert state.visible is True


def test_multi_device_uses_first_pinned_metric() -> None:
    snapshot = RemoteSnapshot(
        devices=parse_devices([DEVICE_A, DEVICE_B]),
        pinned_metrics=(MetricId.TEMPERATURE, MetricId.CO2),
    )

    assert present(snapshot, CONNECTED).summary_text == "21.5°C"


def test_multi_device_summary_pending_when_no_device_reports_primary() -> None:
    snapshot = RemoteSnapshot(devices=(_device("a", co2=500.0),), pinned_metrics=(MetricId.PM25,))

    state = present(snapshot, CONNECTED)

    assert state.summary_text == "..."
    assert state.severity is SeverityBucket.UNKNOWN


@pytest.mark.parametrize("devices", [None, ()])
def test_multi_device_no_devices_placeholder(devices: tuple[Device, ...] | None) -> None:
    state = present(RemoteSnapshot(devices=devices), CONNECTED)

    assert state.summary_text == "..."
    assert state.menu_rows == (Placeholder(text="No devices found"),)


def test_multi_device_rows_list_every_device_and_metric() -> None:
    snapshot = RemoteSnapshot(devices=(parse_devices([DEVICE_A])[0], _device("b", score=70.0)))

    rows = present(snapshot, CONNECTED).menu_rows

    assert rows[0] == Placeholder(text="2 devices found")
    assert rows[1] == SectionHeader(text="Element (70886B1234)")
    lines = [row for row in rows[2:8] if isinstance(row, MetricLine)]
    assert [line.text for line in lines] == [
        "Temperature: 21.0 °C",
        "Humidity: 40.5 %",
        "CO₂: 612 ppm",
        "VOC: 180 ppb",
        "PM2.5: 4.2 μg/m³",
        "Air Score: 40",
    ]
    assert rows[8] == SectionHeader(text="b")
    assert rows[9] == MetricLine(label="Temperature", value="N/A", unit="°C")


def test_single_device_severe_score() -> None:
    snapshot = RemoteSnapshot(selected_device=parse_selected_device(SELECTED_DEVICE))

    state = present(snapshot, CONNECTED, SINGLE)

    assert state.summary_text == "25"
    assert state.severity is SeverityBucket.SEVERE
    assert state.menu_rows[0] == SectionHeader(text="Bedroom")
    assert len(state.menu_rows) == 8
    assert state.menu_rows[-1] == Placeholder(text="Last updated 2026-01-01 00:00 UTC")


def test_single_device_without_timestamp_has_no_last_updated_row() -> None:
    snapshot = RemoteSnapshot(selected_device=_device("x", score=80.0))

    rows = present(snapshot, CONNECTED, SINGLE).menu_rows

    assert rows[0] == SectionHeader(text="x")
    assert all(isinstance(row, MetricLine) for row in rows[1:])


@pytest.mark.parametrize(("score", "summary"), [(42.5, "43"), (42.4, "42"), (99.6, "100")])
def test_single_device_score_rounds_to_whole_number(score: float, summary: str) -> None:
    snapshot = RemoteSnapshot(selected_device=_device("x", score=score))

    assert present(snapshot, CONNECTED, SINGLE).summary_text == summary


def test_single_device_missing_score() -> None:
    snapshot = RemoteSnapshot(selected_device=_device("x", co2=900.0))

    state = present(snapshot, CONNECTED, SINGLE)

    assert state.summary_text == "..."
    assert state.severity is SeverityBucket.UNKNOWN


def test_single_device_nothing_selected() -> None:
    state = present(RemoteSnapshot(), CONNECTED, SINGLE)

    assert state.summary_text == "..."
    assert state.severity is SeverityBucket.UNKNOWN
    assert state.menu_rows == (Placeholder(text="No device selected"),)


@pytest.mark.parametrize("variant", list(IndicatorVariant))
def test_error_state_view(variant: IndicatorVariant) -> None:
    snapshot = RemoteSnapshot(devices=parse_devices([DEVICE_A]), selected_device=_device("x", score=90.0))

    state = present(snapshot, ConnectionState.error("service not available"), variant)

    assert state.summary_text == "!"
    assert state.severity is SeverityBucket.SEVERE
    assert state.menu_rows == (SectionHeader(text="service not available"),)


def test_hidden_when_service_hides_or_vanishes() -> None:
    assert present(RemoteSnapshot(visible=False), CONNECTED, SINGLE).visible is False
    assert present(RemoteSnapshot(service_present=False), CONNECTED).visible is False
    assert present(RemoteSnapshot(service_present=True), CONNECTED).visible is True

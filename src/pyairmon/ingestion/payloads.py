"""Reply and signal ingestion.

Translates raw values returned by remote calls and carried by push signals
into typed models and normalized state-store events.  Every parser raises
:class:`~pyairmon.exceptions.AirMonPayloadError` on a malformed payload so
the caller can treat it like any other failed call.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import TypeAdapter, ValidationError

from pyairmon._constants import (
    METHOD_GET_DEVICES,
    METHOD_GET_PINNED_METRICS,
    METHOD_GET_SELECTED_DEVICE,
    METHOD_GET_VISIBILITY,
    SIGNAL_DEVICE_UPDATED,
    SIGNAL_DEVICES_UPDATED,
    SIGNAL_PINNED_METRICS_CHANGED,
    SIGNAL_VISIBILITY_CHANGED,
)
from pyairmon.exceptions import AirMonPayloadError
from pyairmon.ingestion.normalize import safe_bool
from pyairmon.models.device import Device, DeviceRecord, SelectedDeviceRecord
from pyairmon.models.metrics import MetricId, normalize_pinned
from pyairmon.state.events import IngestionEvent, IngestionSource, StateSection

_DEVICE_LIST = TypeAdapter(list[DeviceRecord])


def parse_devices(payload: Any, *, source: str = "") -> tuple[Device, ...]:
    """Parse a device list; order is kept as the service sent it."""
    if isinstance(payload, (str, bytes)) or not isinstance(payload, Sequence):
        raise AirMonPayloadError(f"Expected a device list, got {type(payload).__name__}", source=source)
    try:
        records = _DEVICE_LIST.validate_python(list(payload))
    except ValidationError as exc:
        raise AirMonPayloadError(f"Invalid device list: {exc}", source=source) from exc
    return tuple(record.to_device() for record in records)


def parse_selected_device(payload: Any, *, source: str = "") -> Device | None:
    """Parse the selected device; an empty mapping means nothing is selected."""
    if payload is None:
        return None
    if not isinstance(payload, Mapping):
        raise AirMonPayloadError(f"Expected a device mapping, got {type(payload).__name__}", source=source)
    try:
        record = SelectedDeviceRecord.model_validate(dict(payload))
    except ValidationError as exc:
        raise AirMonPayloadError(f"Invalid selected device: {exc}", source=source) from exc
    if record.is_empty:
        return None
    return record.to_device()


def parse_pinned_metrics(payload: Any, *, source: str = "") -> tuple[MetricId, ...]:
    if isinstance(payload, (str, bytes)) or not isinstance(payload, Sequence):
        raise AirMonPayloadError(f"Expected a metric list, got {type(payload).__name__}", source=source)
    return normalize_pinned(payload)


def parse_visibility(payload: Any, *, source: str = "") -> bool:
    visible = safe_bool(payload)
    if visible is None:
        raise AirMonPayloadError(f"Expected a boolean visibility, got {payload!r}", source=source)
    return visible


_REPLY_SECTIONS: dict[str, StateSection] = {
    METHOD_GET_DEVICES: StateSection.DEVICES,
    METHOD_GET_PINNED_METRICS: StateSection.PINNED_METRICS,
    METHOD_GET_SELECTED_DEVICE: StateSection.SELECTED_DEVICE,
    METHOD_GET_VISIBILITY: StateSection.VISIBILITY,
}

_SIGNAL_SECTIONS: dict[str, StateSection] = {
    SIGNAL_DEVICES_UPDATED: StateSection.DEVICES,
    SIGNAL_PINNED_METRICS_CHANGED: StateSection.PINNED_METRICS,
    SIGNAL_DEVICE_UPDATED: StateSection.SELECTED_DEVICE,
    SIGNAL_VISIBILITY_CHANGED: StateSection.VISIBILITY,
}


def _parse_section(section: StateSection, payload: Any, origin: str) -> Any:
    if section == StateSection.DEVICES:
        return parse_devices(payload, source=origin)
    if section == StateSection.PINNED_METRICS:
        return parse_pinned_metrics(payload, source=origin)
    if section == StateSection.SELECTED_DEVICE:
        return parse_selected_device(payload, source=origin)
    return parse_visibility(payload, source=origin)


def build_event_from_reply(method: str, result: Any) -> IngestionEvent:
    """Build a poll event from the result of a ``Get*`` call."""
    section = _REPLY_SECTIONS.get(method)
    if section is None:
        raise AirMonPayloadError(f"No state section for method {method}", source=method)
    return IngestionEvent(
        section=section,
        source=IngestionSource.POLL,
        value=_parse_section(section, result, method),
        origin=method,
    )


def build_event_from_signal(signal: str, args: Sequence[Any]) -> IngestionEvent:
    """Build a push event from a signal's argument list (``[payload]``)."""
    section = _SIGNAL_SECTIONS.get(signal)
    if section is None:
        raise AirMonPayloadError(f"No state section for signal {signal}", source=signal)
    if isinstance(args, (str, bytes)) or not isinstance(args, Sequence) or len(args) < 1:
        raise AirMonPayloadError(f"Signal {signal} carried no arguments", source=signal)
    return IngestionEvent(
        section=section,
        source=IngestionSource.PUSH,
        value=_parse_section(section, args[0], signal),
        origin=signal,
    )

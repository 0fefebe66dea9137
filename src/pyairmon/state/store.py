"""Canonical remote-state snapshot and its reconciler.

This is the only component allowed to merge incoming ingestion events.
Merging is last-writer-wins by completion order: whichever reply or
signal is applied last defines the section, with no sequencing against
the time the call was issued.  A slow poll reply landing after a newer
push signal therefore shows stale data until the next exchange.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict

from pyairmon.models.device import Device
from pyairmon.models.metrics import MetricId, primary_metric
from pyairmon.state.events import IngestionEvent, IngestionSource, StateSection

_logger = logging.getLogger(__name__)

SnapshotListener = Callable[["RemoteSnapshot", IngestionEvent | None], None]


class RemoteSnapshot(BaseModel):
    """Merged remote state.

    ``devices`` and ``selected_device`` are ``None`` while unknown (before
    the first reply, or after the service vanished).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    devices: tuple[Device, ...] | None = None
    pinned_metrics: tuple[MetricId, ...] = ()
    selected_device: Device | None = None
    visible: bool = True
    service_present: bool | None = None

    @property
    def primary_metric(self) -> MetricId:
        return primary_metric(self.pinned_metrics)


class _Unset:
    def __repr__(self) -> str:
        return "<unset>"


_UNSET: Any = _Unset()


class StateReconciler:
    """Owns the :class:`RemoteSnapshot` and notifies listeners on every merge."""

    def __init__(self, snapshot: RemoteSnapshot | None = None) -> None:
        self._snapshot = snapshot or RemoteSnapshot()
        self._listeners: list[SnapshotListener] = []

    @property
    def snapshot(self) -> RemoteSnapshot:
        return self._snapshot

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that removes it."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def apply(self, event: IngestionEvent) -> bool:
        """Replace one snapshot section with the event's value.

        Returns whether the snapshot changed.  Listeners are notified for
        every applied event, changed or not.
        """
        previous = self._snapshot
        self._snapshot = previous.model_copy(update={event.field_name: event.value})
        changed = self._snapshot != previous
        _logger.debug(
            "Applied %s %s from %s (changed=%s)",
            event.source.value,
            event.section.value,
            event.origin or "-",
            changed,
        )
        self._notify(event)
        return changed

    def apply_poll(
        self,
        *,
        devices: tuple[Device, ...] | list[Device] = _UNSET,
        pinned_metrics: tuple[MetricId, ...] = _UNSET,
        selected_device: Device | None = _UNSET,
        visible: bool = _UNSET,
    ) -> bool:
        """Merge the values a poll produced; omitted sections stay untouched."""
        return self._apply_values(
            IngestionSource.POLL,
            devices=devices,
            pinned_metrics=pinned_metrics,
            selected_device=selected_device,
            visible=visible,
        )

    def apply_push_signal(
        self,
        *,
        devices: tuple[Device, ...] | list[Device] = _UNSET,
        pinned_metrics: tuple[MetricId, ...] = _UNSET,
        selected_device: Device | None = _UNSET,
        visible: bool = _UNSET,
    ) -> bool:
        """Merge the values a push signal carried; omitted sections stay untouched."""
        return self._apply_values(
            IngestionSource.PUSH,
            devices=devices,
            pinned_metrics=pinned_metrics,
            selected_device=selected_device,
            visible=visible,
        )

    def mark_service_present(self) -> None:
        self._replace(service_present=True)

    def mark_service_lost(self) -> None:
        """Forget device data but keep the pinned-metric configuration."""
        self._replace(devices=None, selected_device=None, service_present=False)

    def _apply_values(self, source: IngestionSource, **values: Any) -> bool:
        changed = False
        sections = {
            "devices": StateSection.DEVICES,
            "pinned_metrics": StateSection.PINNED_METRICS,
            "selected_device": StateSection.SELECTED_DEVICE,
            "visible": StateSection.VISIBILITY,
        }
        for name, section in sections.items():
            value = values[name]
            if value is _UNSET:
                continue
            if name in ("devices", "pinned_metrics"):
                value = tuple(value)
            changed = self.apply(IngestionEvent(section=section, source=source, value=value)) or changed
        return changed

    def _replace(self, **update: Any) -> None:
        previous = self._snapshot
        self._snapshot = previous.model_copy(update=update)
        if self._snapshot != previous:
            self._notify(None)

    def _notify(self, event: IngestionEvent | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._snapshot, event)
            except Exception:
                _logger.warning("Snapshot listener failed", exc_info=True)

from __future__ import annotations

from conftest import DEVICE_A, DEVICE_B

from pyairmon.ingestion.payloads import parse_devices
from pyairmon.models.metrics import MetricId
from pyairmon.state.events import IngestionEvent, IngestionSource, StateSection
from pyairmon.state.store import RemoteSnapshot, StateReconciler


def test_initial_snapshot_is_unknown() -> None:
    snapshot = StateReconciler().snapshot

    assert snapshot.devices is None
    assert snapshot.selected_device is None
    assert snapshot.pinned_metrics == ()
    assert snapshot.primary_metric is MetricId.SCORE


def test_last_writer_wins_by_completion_order() -> None:
    reconciler = StateReconciler()
    devices_a = parse_devices([DEVICE_A])
    devices_b = parse_devices([DEVICE_B])

    # The poll was issued after the signal's source event but completes first.
    reconciler.apply_poll(devices=devices_a)
    reconciler.apply_push_signal(devices=devices_b)

    assert reconciler.snapshot.devices == devices_b


def test_device_list_is_full_replace() -> None:
    reconciler = StateReconciler()
    reconciler.apply_poll(devices=parse_devices([DEVICE_A, DEVICE_B]))

    reconciler.apply_push_signal(devices=parse_devices([DEVICE_B]))

    assert [device.id for device in reconciler.snapshot.devices or ()] == ["70886B5678"]


def test_omitted_sections_are_untouched() -> None:
    reconciler = StateReconciler()
    reconciler.apply_poll(pinned_metrics=(MetricId.CO2,))

    reconciler.apply_poll(devices=[])

    assert reconciler.snapshot.pinned_metrics == (MetricId.CO2,)
    assert reconciler.snapshot.devices == ()


def test_listeners_notified_for_every_merge() -> None:
    reconciler = StateReconciler()
    seen: list[tuple[RemoteSnapshot, IngestionEvent | None]] = []
    reconciler.add_listener(lambda snapshot, event: seen.append((snapshot, event)))

    assert reconciler.apply_poll(visible=True) is False
    assert reconciler.apply_push_signal(visible=False) is True

    assert len(seen) == 2
    assert seen[1][1] is not None
    assert seen[1][1].source is IngestionSource.PUSH
    assert seen[1][0].visible is False


def test_removed_listener_is_not_called() -> None:
    reconciler = StateReconciler()
    calls: list[object] = []
    remove = reconciler.add_listener(lambda *_: calls.append(1))

    remove()
    remove()
    reconciler.apply_poll(visible=False)

    assert calls == []


def test_failing_listener_does_not_block_others() -> None:
    reconciler = StateReconciler()
    calls: list[object] = []

    def broken(*_: object) -> None:
        raise RuntimeError("boom")

    reconciler.add_listener(broken)
    reconciler.add_listener(lambda *_: calls.append(1))
    reconciler.apply_poll(visible=False)

    assert calls == [1]


def test_apply_event_directly() -> None:
    reconciler = StateReconciler()

    changed = reconciler.apply(
        IngestionEvent(section=StateSection.PINNED_METRICS, source=IngestionSource.PUSH, value=(MetricId.VOC,))
    )

    assert changed is True
    assert reconciler.snapshot.primary_metric is MetricId.VOC


def test_events_compare_by_content() -> None:
    fields = {"section": StateSection.VISIBILITY, "source": IngestionSource.POLL, "value": True}
    first = IngestionEvent(**fields, origin="GetVisibility")
    second = IngestionEvent(**fields, origin="GetVisibility")

    assert first == second
    assert set(IngestionEvent.model_fields) == {"section", "source", "value", "origin"}


def test_service_lost_clears_devices_but_keeps_pins() -> None:
    reconciler = StateReconciler()
    reconciler.apply_poll(devices=parse_devices([DEVICE_A]), pinned_metrics=(MetricId.PM25,))
    reconciler.mark_service_present()

    reconciler.mark_service_lost()

    snapshot = reconciler.snapshot
    assert snapshot.devices is None
    assert snapshot.selected_device is None
    assert snapshot.pinned_metrics == (MetricId.PM25,)
    assert snapshot.service_present is False


def test_service_presence_notifies_only_on_change() -> None:
    reconciler = StateReconciler()
    events: list[IngestionEvent | None] = []
    reconciler.add_listener(lambda _snapshot, event: events.append(event))

    reconciler.mark_service_present()
    reconciler.mark_service_present()

    assert events == [None]

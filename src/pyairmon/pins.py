"""Pinned-metric configuration (multi-device variant).

The service owns the pinned set.  Toggling a pin only sends the request;
the local set changes when ``PinnedMetricsChanged`` or the next poll
reports the service's answer, which may differ from what was asked.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from pyairmon._constants import METHOD_SET_PINNED_METRIC
from pyairmon.ipc import CallResult, IpcClient, invoke
from pyairmon.models.metrics import METRICS, MetricId, primary_metric
from pyairmon.state.store import StateReconciler

_logger = logging.getLogger(__name__)


class PinStore:
    def __init__(
        self,
        reconciler: StateReconciler,
        client_provider: Callable[[], Awaitable[IpcClient | None]],
        *,
        call_timeout: float | None = None,
    ) -> None:
        self._reconciler = reconciler
        self._client_provider = client_provider
        self._call_timeout = call_timeout

    def get_pinned(self) -> tuple[MetricId, ...]:
        """Last pinned set the service reported, in service order."""
        return self._reconciler.snapshot.pinned_metrics

    def is_pinned(self, metric: MetricId) -> bool:
        return metric in self.get_pinned()

    @property
    def primary_metric(self) -> MetricId:
        return primary_metric(self.get_pinned())

    async def set_pinned(self, metric: MetricId, pinned: bool) -> bool:
        """Ask the service to (un)pin *metric*; returns whether the call was accepted.

        Failures are logged and otherwise ignored.
        """
        client = await self._client_provider()
        if client is None:
            _logger.warning("Cannot pin %s: not connected", metric.value)
            return False
        result: CallResult[object] = await invoke(
            client,
            METHOD_SET_PINNED_METRIC,
            METRICS[metric].wire_id,
            pinned,
            timeout=self._call_timeout,
        )
        if not result.ok:
            _logger.warning("Failed to set pinned metric %s=%s: %s", metric.value, pinned, result.error)
            return False
        _logger.debug("Requested pinned metric %s=%s", metric.value, pinned)
        return True

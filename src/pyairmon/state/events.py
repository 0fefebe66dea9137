"""Normalized ingestion events.

All ingestion paths (poll replies, push signals) convert their inputs into
these events. Only the state/store layer is allowed to merge them.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class IngestionSource(StrEnum):
    POLL = "poll"
    PUSH = "push"


class StateSection(StrEnum):
    DEVICES = "devices"
    PINNED_METRICS = "pinned_metrics"
    SELECTED_DEVICE = "selected_device"
    VISIBILITY = "visibility"


# Snapshot field each section replaces.
SECTION_FIELDS: dict[StateSection, str] = {
    StateSection.DEVICES: "devices",
    StateSection.PINNED_METRICS: "pinned_metrics",
    StateSection.SELECTED_DEVICE: "selected_device",
    StateSection.VISIBILITY: "visible",
}


class IngestionEvent(BaseModel):
    """A full replacement of one snapshot section."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    section: StateSection
    source: IngestionSource
    value: Any = None
    origin: str = Field(default="", description="Method or signal name that produced the event")

    @property
    def field_name(self) -> str:
        return SECTION_FIELDS[self.section]

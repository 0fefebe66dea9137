"""Presentation models handed to the rendering layer."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from pyairmon._constants import VALUE_MISSING


class SeverityBucket(StrEnum):
    """Coarse air-quality classification used to pick icon/colour."""

    UNKNOWN = "unknown"
    SEVERE = "severe"
    MODERATE = "moderate"
    GOOD = "good"


class _Row(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class SectionHeader(_Row):
    kind: Literal["header"] = "header"
    text: str


class MetricLine(_Row):
    kind: Literal["metric"] = "metric"
    label: str
    value: str
    unit: str = ""

    @property
    def text(self) -> str:
        if self.unit and self.value != VALUE_MISSING:
            return f"{self.label}: {self.value} {self.unit}"
        return f"{self.label}: {self.value}"


class Placeholder(_Row):
    kind: Literal["placeholder"] = "placeholder"
    text: str


Row = Annotated[SectionHeader | MetricLine | Placeholder, Field(discriminator="kind")]


class PresentationState(BaseModel):
    """Everything the indicator shows; always recomputed, never patched."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    summary_text: str
    severity: SeverityBucket = SeverityBucket.UNKNOWN
    menu_rows: tuple[Row, ...] = ()
    visible: bool = True

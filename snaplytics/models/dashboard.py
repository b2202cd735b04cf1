"""Dashboard state and projection types."""
from __future__ import annotations

from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field

ChartType = Literal["line", "bar", "scatter", "pie"]
SingleFieldMode = Literal["frequency", "histogram", "top10", "bottom10"]


# Input: rows, axis selection, chart type, single-field mode
# Output: consumed by projection.project
class DashboardState(BaseModel):
    # Loaded rows; keys may differ between rows
    data: List[Dict[str, Any]] = Field(default_factory=list)
    # Axis selection, "" means unset
    x_field: str = ""
    y_field: str = ""
    chart_type: ChartType = "line"
    # Only used when exactly one axis is set and the field is numeric
    single_field_mode: SingleFieldMode = "frequency"
    # Comma-separated field override typed by the user
    requested_fields: str = ""


# Secondary dataset produced by an aggregation (always drawn as bar)
class DerivedDataset(BaseModel):
    dataset: List[Dict[str, Any]] = Field(default_factory=list)
    x: str
    y: str
    type: Literal["bar"] = "bar"


# What the renderer receives
class DisplayProjection(BaseModel):
    data: List[Dict[str, Any]] = Field(default_factory=list)
    x_key: str = ""
    y_key: str = ""
    chart_type: ChartType = "line"

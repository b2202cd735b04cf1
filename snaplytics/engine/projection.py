"""Decide what the renderer draws for the current dashboard state."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from snaplytics.engine.aggregations import (
    build_bottom,
    build_frequency,
    build_histogram,
    build_top,
)
from snaplytics.engine.field_roles import default_axes, field_is_numeric
from snaplytics.models.dashboard import DashboardState, DerivedDataset, DisplayProjection
from snaplytics.utils.logging import log_event

_NUMERIC_BUILDERS: Dict[str, Callable[[Sequence[Optional[Mapping[str, Any]]], str], DerivedDataset]] = {
    "histogram": build_histogram,
    "top10": build_top,
    "bottom10": build_bottom,
    "frequency": build_frequency,
}


def is_single_field(x_field: str, y_field: str) -> bool:
    return bool(x_field) != bool(y_field)


def _pass_through(state: DashboardState) -> DisplayProjection:
    return DisplayProjection(
        data=state.data,
        x_key=state.x_field,
        y_key=state.y_field,
        chart_type=state.chart_type,
    )


def _from_derived(derived: DerivedDataset) -> DisplayProjection:
    return DisplayProjection(
        data=derived.dataset,
        x_key=derived.x,
        y_key=derived.y,
        chart_type=derived.type,
    )


def derive_single_field(state: DashboardState, field: str) -> DerivedDataset:
    """Aggregate one field; categorical fields always get a frequency count."""
    if not field_is_numeric(state.data, field):
        return build_frequency(state.data, field)
    builder = _NUMERIC_BUILDERS.get(state.single_field_mode, build_frequency)
    return builder(state.data, field)


def project(state: DashboardState) -> DisplayProjection:
    if not is_single_field(state.x_field, state.y_field) or not state.data:
        return _pass_through(state)

    field = state.x_field or state.y_field
    if not field:
        return _pass_through(state)

    derived = derive_single_field(state, field)
    log_event(
        "projection.single_field",
        {
            "field": field,
            "mode": state.single_field_mode,
            "row_count": len(state.data),
            "derived_count": len(derived.dataset),
            "x": derived.x,
        },
        level="debug",
    )
    return _from_derived(derived)


def apply_dataset(state: DashboardState, rows: List[Dict[str, Any]]) -> DashboardState:
    """New state after rows are delivered; only unset axes get defaults."""
    x_field, y_field = default_axes(rows, state.x_field, state.y_field)
    return state.model_copy(update={"data": rows, "x_field": x_field, "y_field": y_field})

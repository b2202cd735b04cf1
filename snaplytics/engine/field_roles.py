"""Numeric/categorical field classification and default axis selection."""
from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from snaplytics.engine.value_classifier import is_numeric

# Rows inspected when classifying a field
SAMPLE_ROWS = 50
# A field is numeric when strictly more than this share of present values is numeric
NUMERIC_SHARE_THRESHOLD = 0.6

Record = Mapping[str, Any]


def _as_record(row: Optional[Record]) -> Record:
    return row or {}


def _sample_tally(dataset: Sequence[Optional[Record]], field: str) -> Tuple[int, int]:
    total = 0
    numeric = 0
    for row in dataset[:SAMPLE_ROWS]:
        record = _as_record(row)
        # An absent key is not tallied; an explicit None is tallied as non-numeric.
        if field not in record:
            continue
        total += 1
        if is_numeric(record[field]):
            numeric += 1
    return total, numeric


def _majority_numeric(total: int, numeric: int) -> bool:
    return total > 0 and numeric / total > NUMERIC_SHARE_THRESHOLD


def field_is_numeric(dataset: Sequence[Optional[Record]], field: str) -> bool:
    if not field:
        return False
    return _majority_numeric(*_sample_tally(dataset, field))


def dataset_fields(dataset: Sequence[Optional[Record]]) -> List[str]:
    """Field names in the key order of the first record."""
    if not dataset:
        return []
    return list(_as_record(dataset[0]).keys())


def available_fields(fields: Sequence[str], requested_fields: str = "") -> List[str]:
    """Comma-separated user request when given, otherwise the dataset fields."""
    entered = [item.strip() for item in (requested_fields or "").split(",")]
    entered = [item for item in entered if item]
    return entered if entered else list(fields)


def numeric_fields_of_first_row(dataset: Sequence[Optional[Record]]) -> List[str]:
    """Fields whose first-row value is already a number (no text coercion)."""
    if not dataset:
        return []
    first = _as_record(dataset[0])
    return [
        key
        for key, value in first.items()
        if isinstance(value, (int, float)) and not isinstance(value, bool)
    ]


def default_axes(
    dataset: Sequence[Optional[Record]],
    x_field: str = "",
    y_field: str = "",
) -> Tuple[str, str]:
    """Fill unset axes for a freshly loaded dataset.

    X falls back to the first field. Y falls back to the first field that has
    at least one numeric value anywhere in the dataset; this is a per-value
    check, looser than :func:`field_is_numeric`. Already chosen axes are kept.
    """
    fields = dataset_fields(dataset)
    if not x_field and fields:
        x_field = fields[0]
    if not y_field:
        for field in fields:
            if any(is_numeric(_as_record(row).get(field)) for row in dataset):
                y_field = field
                break
    return x_field, y_field


def describe_fields(dataset: Sequence[Optional[Record]]) -> List[Dict[str, Any]]:
    """Per-field role summary over the classification sample."""
    summary: List[Dict[str, Any]] = []
    for field in dataset_fields(dataset):
        total, numeric = _sample_tally(dataset, field)
        summary.append(
            {
                "field": field,
                "numeric": _majority_numeric(total, numeric),
                "present": total,
                "numeric_count": numeric,
            }
        )
    return summary

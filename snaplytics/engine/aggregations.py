"""Single-field aggregations: frequency, histogram and top/bottom-K.

Every builder takes the full dataset plus a field name and returns a
:class:`DerivedDataset`. Values that do not parse as numbers are dropped from
the numeric builders; nothing here raises on bad data.
"""
from __future__ import annotations

import math
from collections import Counter
from typing import Any, List, Mapping, Optional, Sequence

from snaplytics.engine.value_classifier import to_fixed, to_number, to_text
from snaplytics.models.dashboard import DerivedDataset

EMPTY_KEY = "(empty)"
FREQUENCY_LIMIT = 20
DEFAULT_BINS = 10
DEFAULT_TOP_K = 10
_ORDERS = ("desc", "asc")

Record = Mapping[str, Any]


def _values(dataset: Sequence[Optional[Record]], field: str) -> List[Any]:
    return [(row or {}).get(field) for row in dataset]


def _finite_numbers(dataset: Sequence[Optional[Record]], field: str) -> List[float]:
    numbers = (to_number(value) for value in _values(dataset, field))
    return [n for n in numbers if math.isfinite(n)]


def build_frequency(
    dataset: Sequence[Optional[Record]],
    field: str,
    limit: int = FREQUENCY_LIMIT,
) -> DerivedDataset:
    counts = Counter(
        EMPTY_KEY if value is None else to_text(value) for value in _values(dataset, field)
    )
    # most_common is a stable sort, so ties keep first-seen order
    rows = [{"value": value, "count": count} for value, count in counts.most_common(limit)]
    return DerivedDataset(dataset=rows, x="value", y="count")


def build_histogram(
    dataset: Sequence[Optional[Record]],
    field: str,
    bins: int = DEFAULT_BINS,
) -> DerivedDataset:
    if bins < 1:
        raise ValueError(f"bins must be >= 1, got {bins}")
    nums = _finite_numbers(dataset, field)
    if not nums:
        return DerivedDataset(dataset=[], x="bin", y="count")

    low = min(nums)
    high = max(nums)
    width = ((high - low) or 1) / bins
    counts = [0] * bins
    for n in nums:
        position = (n - low) / width
        # an overflowing range gives inf/inf; such values fall outside every bin
        if not math.isfinite(position):
            continue
        idx = math.floor(position)
        # clamp: the max value lands exactly on the upper edge
        idx = min(max(idx, 0), bins - 1)
        counts[idx] += 1

    rows = [
        {
            "bin": f"{to_fixed(low + i * width)} - {to_fixed(low + (i + 1) * width)}",
            "count": count,
        }
        for i, count in enumerate(counts)
    ]
    return DerivedDataset(dataset=rows, x="bin", y="count")


def build_top_bottom(
    dataset: Sequence[Optional[Record]],
    field: str,
    k: int = DEFAULT_TOP_K,
    order: str = "desc",
) -> DerivedDataset:
    if order not in _ORDERS:
        raise ValueError(f"order must be one of {_ORDERS}, got {order!r}")

    labelled = []
    for idx, row in enumerate(dataset):
        record = row or {}
        name = record.get("name")
        value = to_number(record.get(field))
        if not math.isfinite(value):
            continue
        labelled.append(
            {
                "label": f"#{idx + 1}" if name is None else to_text(name),
                "value": value,
            }
        )

    ranked = sorted(labelled, key=lambda item: item["value"], reverse=order == "desc")
    return DerivedDataset(dataset=ranked[:k], x="label", y="value")


def build_top(dataset: Sequence[Optional[Record]], field: str, k: int = DEFAULT_TOP_K) -> DerivedDataset:
    return build_top_bottom(dataset, field, k, "desc")


def build_bottom(dataset: Sequence[Optional[Record]], field: str, k: int = DEFAULT_TOP_K) -> DerivedDataset:
    return build_top_bottom(dataset, field, k, "asc")

"""Turn collaborator payloads into a plain list-of-records dataset.

Rows arrive in several shapes: a content item with ``parsed_rows``, raw
model output wrapped in code fences, a processed-CSV response, a group of
selected items, or CSV text pasted by the user.
"""
from __future__ import annotations

import io
import json
import math
import re
from typing import Any, Dict, List, Optional

import pandas as pd

from snaplytics.engine.value_classifier import to_number
from snaplytics.utils.logging import log_event

_FENCE_PATTERN = re.compile(r"```(?:json)?([\s\S]*?)```", re.IGNORECASE)
_LEADING_FENCE = re.compile(r"^```[a-zA-Z]*\n?")
_TRAILING_FENCE = re.compile(r"\n?```$")
_NUMERIC_TEXT = re.compile(r"-?\d+(?:\.\d+)?")
_DECODER = json.JSONDecoder()


class SelectionError(ValueError):
    """Raised when a selection or payload yields nothing to visualize."""


def _try_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        return None


def extract_json(text: Optional[str]) -> Any:
    """Return the first JSON document found in ``text`` or None."""
    if not text:
        return None
    trimmed = text.strip()
    parsed = _try_json(trimmed)
    if parsed is not None:
        return parsed

    match = _FENCE_PATTERN.search(trimmed)
    if match:
        parsed = _try_json(match.group(1).strip())
        if parsed is not None:
            return parsed

    starts = [idx for idx in (trimmed.find("{"), trimmed.find("[")) if idx >= 0]
    if not starts:
        return None
    # first complete document starting at the earliest bracket; trailing text is ignored
    try:
        parsed, _ = _DECODER.raw_decode(trimmed, min(starts))
    except (ValueError, RecursionError):
        return None
    return parsed


def extract_json_from_code_block(text: Optional[str]) -> Any:
    """Parse a single fenced block, falling back to the outermost ``{...}``."""
    if not text:
        return None
    code = _TRAILING_FENCE.sub("", _LEADING_FENCE.sub("", text)).strip()
    parsed = _try_json(code)
    if parsed is not None:
        return parsed
    first = code.find("{")
    last = code.rfind("}")
    if first >= 0 and last > first:
        return _try_json(code[first : last + 1])
    return None


def to_dataset(parsed: Any) -> List[Dict[str, Any]]:
    if not parsed:
        return []
    if isinstance(parsed, list):
        return [row for row in parsed if isinstance(row, dict)]
    if isinstance(parsed, dict):
        return [parsed]
    return []


def normalize_price(price: Any) -> Optional[float]:
    value = to_number(price)
    return value if math.isfinite(value) else None


def _name_price(row: Dict[str, Any]) -> Dict[str, str]:
    return {"name": str(row.get("name") or ""), "price": str(row.get("price") or "")}


def rows_from_record(record: Optional[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Rows of a stored content record: ``parsed_rows`` first, then ``model_raw``."""
    if not record:
        return []
    parsed_rows = record.get("parsed_rows")
    if isinstance(parsed_rows, list) and parsed_rows:
        return [_name_price(row) for row in parsed_rows if isinstance(row, dict)]

    maybe = extract_json_from_code_block(str(record.get("model_raw") or ""))
    if not maybe:
        return []
    if isinstance(maybe, dict) and isinstance(maybe.get("rows"), list):
        rows = maybe["rows"]
    elif isinstance(maybe, list):
        rows = maybe
    else:
        rows = []
    return [_name_price(row) for row in rows if isinstance(row, dict)]


def _coerce_value(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not _NUMERIC_TEXT.fullmatch(text):
        return value
    if "." in text:
        return float(text)
    return int(text)


def coerce_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Convert plain numeric strings (``"42"``, ``"-3.5"``) to numbers."""
    return {key: _coerce_value(value) for key, value in row.items()}


def rows_from_selection(selection: Any) -> List[Dict[str, Any]]:
    """Rows of a sidebar selection: one item, or a group of items."""
    rows: List[Dict[str, Any]] = []
    if isinstance(selection, list):
        for item in selection:
            if isinstance(item, dict) and isinstance(item.get("rows"), list):
                rows.extend(item["rows"])
    elif isinstance(selection, dict) and isinstance(selection.get("rows"), list):
        rows = list(selection["rows"])

    if not rows:
        raise SelectionError("Nothing to visualize from selection")
    return rows


def rows_from_processed(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Rows of a processed-CSV response ``{status, rows, ...}``."""
    if payload.get("status") == "error":
        raise SelectionError(payload.get("error") or "Unknown backend error")
    rows = payload.get("rows")
    if not isinstance(rows, list):
        return []
    return [coerce_row(row) for row in rows if isinstance(row, dict)]


def records_from_frame(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """DataFrame rows as plain dicts with missing cells as None."""
    if df.empty:
        return []
    cleaned = df.astype(object).where(pd.notna(df), None)
    return cleaned.to_dict(orient="records")


def rows_from_csv_text(text: str) -> List[Dict[str, Any]]:
    """Parse pasted CSV; only blank cells count as missing."""
    if not text or not text.strip():
        return []
    try:
        df = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            na_values=[""],
            skipinitialspace=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        log_event("ingest.csv.error", {"error": str(exc)}, level="warning")
        raise SelectionError(f"Could not parse CSV content: {exc}") from exc
    rows = [coerce_row(row) for row in records_from_frame(df)]
    log_event("ingest.csv", {"row_count": len(rows), "column_count": len(df.columns)})
    return rows


def rows_from_content(content: str, fmt: str = "json") -> List[Dict[str, Any]]:
    """Rows of pasted/raw content in ``json`` (possibly fenced) or ``csv`` form."""
    if fmt == "csv":
        return rows_from_csv_text(content)
    if fmt == "json":
        return to_dataset(extract_json(content))
    raise ValueError(f"unsupported content format: {fmt!r}")

from __future__ import annotations

import time
from pathlib import Path

import pandas as pd
import pytest

from snaplytics.ingest.loader import (
    SelectionError,
    coerce_row,
    extract_json,
    extract_json_from_code_block,
    normalize_price,
    records_from_frame,
    rows_from_content,
    rows_from_csv_text,
    rows_from_processed,
    rows_from_record,
    rows_from_selection,
    to_dataset,
)

FIXTURES = Path(__file__).resolve().parent / "fixtures"


def test_extract_json_direct_fenced_and_embedded() -> None:
    assert extract_json('[{"a": 1}]') == [{"a": 1}]
    assert extract_json('Result:\n```json\n{"rows": [1, 2]}\n```\nDone') == {"rows": [1, 2]}
    assert extract_json('Here you go: {"a": 1} thanks!') == {"a": 1}
    assert extract_json("no json here") is None
    assert extract_json("") is None


def test_extract_json_from_code_block() -> None:
    assert extract_json_from_code_block('```json\n{"x": 2}\n```') == {"x": 2}
    assert extract_json_from_code_block('noise {"x": 3} tail') == {"x": 3}
    assert extract_json_from_code_block("```\nnot json\n```") is None


def test_to_dataset_shapes() -> None:
    assert to_dataset([{"a": 1}, 5, {"b": 2}]) == [{"a": 1}, {"b": 2}]
    assert to_dataset({"a": 1}) == [{"a": 1}]
    assert to_dataset(None) == []
    assert to_dataset("text") == []


def test_normalize_price() -> None:
    assert normalize_price("$1,299.00") == 1299.0
    assert normalize_price("free") is None
    assert normalize_price(None) is None


def test_rows_from_record_prefers_parsed_rows() -> None:
    record = {
        "parsed_rows": [{"name": "Lamp", "price": "$12"}, {"name": None, "price": 4}],
        "model_raw": '{"rows": [{"name": "ignored"}]}',
    }
    assert rows_from_record(record) == [
        {"name": "Lamp", "price": "$12"},
        {"name": "", "price": "4"},
    ]


def test_rows_from_record_falls_back_to_model_raw() -> None:
    record = {"parsed_rows": [], "model_raw": '```json\n{"rows": [{"name": "Desk", "price": "$80"}]}\n```'}
    assert rows_from_record(record) == [{"name": "Desk", "price": "$80"}]

    record = {"model_raw": '[{"name": "Chair"}]'}
    assert rows_from_record(record) == [{"name": "Chair", "price": ""}]

    assert rows_from_record({"model_raw": "garbage"}) == []
    assert rows_from_record(None) == []


def test_coerce_row_converts_plain_numeric_strings() -> None:
    row = {"a": " 42 ", "b": "-3.5", "c": "1e3", "d": "$5", "e": None, "f": 7}
    assert coerce_row(row) == {"a": 42, "b": -3.5, "c": "1e3", "d": "$5", "e": None, "f": 7}


def test_rows_from_selection() -> None:
    group = [{"rows": [{"a": 1}]}, {"id": "no-rows"}, {"rows": [{"a": 2}, {"a": 3}]}]
    assert rows_from_selection(group) == [{"a": 1}, {"a": 2}, {"a": 3}]
    assert rows_from_selection({"rows": [{"a": 1}]}) == [{"a": 1}]

    with pytest.raises(SelectionError, match="Nothing to visualize"):
        rows_from_selection({"id": "abc"})
    with pytest.raises(SelectionError):
        rows_from_selection([])


def test_rows_from_processed() -> None:
    payload = {"status": "success", "rows": [{"name": "a", "qty": "3"}], "row_count": 1}
    assert rows_from_processed(payload) == [{"name": "a", "qty": 3}]
    assert rows_from_processed({"status": "no_data"}) == []

    with pytest.raises(SelectionError, match="disk full"):
        rows_from_processed({"status": "error", "error": "disk full"})
    with pytest.raises(SelectionError, match="Unknown backend error"):
        rows_from_processed({"status": "error"})


def test_rows_from_csv_text_fixture() -> None:
    rows = rows_from_csv_text((FIXTURES / "sample.csv").read_text(encoding="utf-8"))

    assert len(rows) == 4
    assert rows[0] == {"name": "Widget", "price": "$10.00", "category": "tools", "score": 4.5}
    assert rows[1]["score"] == "N/A"
    assert rows[2]["price"] is None
    assert rows[2]["score"] == 3


def test_rows_from_content_dispatch() -> None:
    assert rows_from_content('```json\n[{"a": "1"}]\n```') == [{"a": "1"}]
    assert rows_from_content("a,b\n1,x\n", "csv") == [{"a": 1, "b": "x"}]
    assert rows_from_content("   ", "csv") == []
    with pytest.raises(ValueError):
        rows_from_content("a", "xml")


def test_records_from_frame_replaces_missing_cells() -> None:
    df = pd.DataFrame({"a": [1.0, None], "b": ["x", None]})
    assert records_from_frame(df) == [{"a": 1.0, "b": "x"}, {"a": None, "b": None}]
    assert records_from_frame(pd.DataFrame()) == []


def test_extract_json_ignores_text_after_first_document() -> None:
    assert extract_json('rows: [{"a": 1}] and then {"b": 2}') == [{"a": 1}]
    assert extract_json('note {"a": [1, 2]}} trailing') == {"a": [1, 2]}


def test_extract_json_on_large_malformed_content_is_fast() -> None:
    content = "[" + "1," * 500_000 + "x"

    started = time.perf_counter()
    assert extract_json(content) is None
    assert time.perf_counter() - started < 5.0


def test_extract_json_on_deeply_nested_content() -> None:
    assert extract_json("[" * 100_000) is None
    assert extract_json("data: " + "[" * 100_000) is None
    assert rows_from_content("{" * 100_000) == []

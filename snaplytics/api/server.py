from __future__ import annotations

import math
from typing import Any, Dict, List, Literal

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from snaplytics.config.settings import CORS_ALLOW_ORIGINS, MAX_CONTENT_LENGTH, MAX_ROWS
from snaplytics.engine.aggregations import build_frequency, build_histogram, build_top_bottom
from snaplytics.engine.field_roles import available_fields, dataset_fields, default_axes, describe_fields
from snaplytics.engine.projection import project
from snaplytics.ingest.loader import SelectionError, rows_from_content
from snaplytics.models.dashboard import DashboardState, DerivedDataset, DisplayProjection
from snaplytics.utils.logging import log_event, new_request_id

app = FastAPI(title="Snaplytics Projection API")

if CORS_ALLOW_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


class FieldsRequest(BaseModel):
    rows: List[Dict[str, Any]]
    requested_fields: str = ""


class FieldsResponse(BaseModel):
    fields: List[str]
    available_fields: List[str]
    default_x: str
    default_y: str
    roles: List[Dict[str, Any]]


class DeriveRequest(BaseModel):
    rows: List[Dict[str, Any]]
    field: str = Field(..., min_length=1)
    kind: Literal["frequency", "histogram", "top", "bottom"] = "frequency"
    bins: int = Field(default=10, ge=1, le=200)
    k: int = Field(default=10, ge=1, le=1000)


class IngestRequest(BaseModel):
    content: str = Field(..., min_length=1)
    format: Literal["json", "csv"] = "json"


class IngestResponse(BaseModel):
    rows: List[Dict[str, Any]]
    fields: List[str]


def _sanitize_non_finite(value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {str(k): _sanitize_non_finite(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_non_finite(item) for item in value]
    return value


def _validate_rows(rows: List[Dict[str, Any]]) -> None:
    if len(rows) > MAX_ROWS:
        log_event("request.rejected", {"code": "ROWS_LIMIT_EXCEEDED", "row_count": len(rows)}, level="warning")
        raise HTTPException(
            status_code=413,
            detail={"code": "ROWS_LIMIT_EXCEEDED", "message": f"rows size must be <= {MAX_ROWS}"},
        )


def _validate_content(content: str) -> None:
    if len(content) > MAX_CONTENT_LENGTH:
        log_event("request.rejected", {"code": "CONTENT_TOO_LARGE", "length": len(content)}, level="warning")
        raise HTTPException(
            status_code=413,
            detail={"code": "CONTENT_TOO_LARGE", "message": f"content length must be <= {MAX_CONTENT_LENGTH}"},
        )


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok"}


@app.post("/fields", response_model=FieldsResponse)
def fields(req: FieldsRequest) -> FieldsResponse:
    _validate_rows(req.rows)
    names = dataset_fields(req.rows)
    default_x, default_y = default_axes(req.rows)
    return FieldsResponse(
        fields=names,
        available_fields=available_fields(names, req.requested_fields),
        default_x=default_x,
        default_y=default_y,
        roles=describe_fields(req.rows),
    )


@app.post("/project", response_model=DisplayProjection)
def project_state(state: DashboardState) -> DisplayProjection:
    _validate_rows(state.data)
    request_id = new_request_id()
    log_event(
        "request.project",
        {
            "request_id": request_id,
            "row_count": len(state.data),
            "x_field": state.x_field,
            "y_field": state.y_field,
            "chart_type": state.chart_type,
            "single_field_mode": state.single_field_mode,
        },
    )
    result = project(state)
    payload = _sanitize_non_finite(result.model_dump())
    return DisplayProjection.model_validate(payload)


@app.post("/derive", response_model=DerivedDataset)
def derive(req: DeriveRequest) -> DerivedDataset:
    _validate_rows(req.rows)
    if req.kind == "histogram":
        result = build_histogram(req.rows, req.field, req.bins)
    elif req.kind == "top":
        result = build_top_bottom(req.rows, req.field, req.k, "desc")
    elif req.kind == "bottom":
        result = build_top_bottom(req.rows, req.field, req.k, "asc")
    else:
        result = build_frequency(req.rows, req.field)
    log_event(
        "request.derive",
        {"kind": req.kind, "field": req.field, "row_count": len(req.rows), "derived_count": len(result.dataset)},
    )
    return result


@app.post("/ingest", response_model=IngestResponse)
def ingest(req: IngestRequest) -> IngestResponse:
    _validate_content(req.content)
    try:
        rows = rows_from_content(req.content, req.format)
    except SelectionError as exc:
        raise HTTPException(
            status_code=422,
            detail={"code": "INVALID_CONTENT", "message": str(exc)},
        ) from exc
    if not rows:
        log_event("ingest.empty", {"format": req.format, "length": len(req.content)}, level="warning")
        raise HTTPException(
            status_code=422,
            detail={"code": "NO_ROWS", "message": "No rows available in the submitted content"},
        )
    _validate_rows(rows)
    return IngestResponse(rows=_sanitize_non_finite(rows), fields=dataset_fields(rows))

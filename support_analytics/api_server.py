"""FastAPI server for support ticket risk analytics."""

from __future__ import annotations

import csv
import json
import logging
from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Optional

import pandas as pd
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .config import RiskConfig, load_risk_config
from .errors import InvalidParameter, InvalidRange, MissingRequiredField, UnknownStatusError, UpstreamUnavailable
from .intelligence import build_operational_intelligence
from .metrics import summarize_metrics
from .narrative import CachedNarrativeGateway, NarrativeGateway, OpenAINarrativeGateway
from .pipeline import build_trend_intelligence, fetch_from_store
from .preprocessing import to_timestamp
from .risk_scanner import EscalationLookup, scan_active_risks
from .serialization import frame_to_records, json_safe
from .store import InMemoryTicketStore, TicketStore
from .trends import build_volume_sla_trend

logger = logging.getLogger(__name__)


class RangePayload(BaseModel):
    start_date: str
    end_date: str


class IntelligencePayload(RangePayload):
    org_id: str = "default"
    force_refresh: bool = False


class NowPayload(BaseModel):
    now: Optional[str] = None


class MetricsPayload(NowPayload):
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    resolution_unit: str = "hours"


def _parse_json(text: str, default: dict[str, Any]) -> dict[str, Any]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        return default
    return parsed if isinstance(parsed, dict) else default


def _read_csv_bytes(payload: bytes) -> pd.DataFrame:
    attempts: list[str] = []
    encodings = ["utf-8", "utf-8-sig", "utf-16", "latin-1"]
    separators: list[str | None] = [None, ",", ";", "\t", "|"]

    for encoding in encodings:
        for separator in separators:
            try:
                frame = pd.read_csv(
                    BytesIO(payload),
                    sep=separator,
                    engine="python",
                    encoding=encoding,
                )
                if frame.empty and len(frame.columns) == 0:
                    continue
                return frame
            except (UnicodeError, ValueError, csv.Error) as exc:
                attempts.append(f"encoding={encoding}, sep={separator!r}: {exc}")

    sample = "; ".join(attempts[:3])
    raise ValueError(f"Unable to parse CSV payload. Attempts failed: {sample}")


def _read_upload_file(file: UploadFile) -> pd.DataFrame:
    payload = file.file.read()
    if not payload:
        return pd.DataFrame()

    name = (file.filename or "").lower()
    try:
        if name.endswith((".csv", ".txt")):
            return _read_csv_bytes(payload)
        if name.endswith((".xlsx", ".xlsm", ".xltx", ".xltm")):
            return pd.read_excel(BytesIO(payload), engine="openpyxl")
        # Generic fallback for unknown extensions.
        return pd.read_excel(BytesIO(payload))
    except Exception as exc:
        raise ValueError(f"Failed to parse '{file.filename}': {exc}") from exc


def _now_or_wall_clock(value: str | None) -> pd.Timestamp:
    if value:
        return to_timestamp(value)
    return to_timestamp(datetime.now(timezone.utc))


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc), "error": type(exc).__name__})


def create_app(
    store: TicketStore | None = None,
    narrative_gateway: NarrativeGateway | None = None,
    escalation_lookup: EscalationLookup | None = None,
    config: RiskConfig | None = None,
) -> FastAPI:
    app = FastAPI(title="Support Risk Analytics API", version="1.0.0")
    store = store if store is not None else InMemoryTicketStore()
    if narrative_gateway is None:
        narrative_gateway = CachedNarrativeGateway(OpenAINarrativeGateway())
    config = config or load_risk_config()

    app.state.store = store
    app.state.narrative_gateway = narrative_gateway
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidRange)
    @app.exception_handler(InvalidParameter)
    @app.exception_handler(UnknownStatusError)
    @app.exception_handler(MissingRequiredField)
    async def bad_request(request: Request, exc: Exception) -> JSONResponse:
        return _error_response(400, exc)

    @app.exception_handler(UpstreamUnavailable)
    async def upstream_unavailable(request: Request, exc: UpstreamUnavailable) -> JSONResponse:
        logger.error("Upstream failure on %s: %s", request.url.path, exc)
        return _error_response(502, exc)

    @app.get("/api/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/tickets/upload")
    async def upload_tickets(
        files: list[UploadFile] = File(...),
        user_mapping: str = Form("{}"),
        append: bool = Form(False),
    ) -> JSONResponse:
        if not isinstance(store, InMemoryTicketStore):
            raise HTTPException(status_code=409, detail="Configured ticket store does not accept uploads")

        frames: list[pd.DataFrame] = []
        file_errors: list[dict[str, str]] = []
        for file in files:
            try:
                frame = _read_upload_file(file)
            except ValueError as exc:
                file_errors.append({"file_name": file.filename or "unknown", "error": str(exc)})
                continue
            if frame.empty:
                file_errors.append({"file_name": file.filename or "unknown", "error": "File parsed but contains no data rows"})
                continue
            frames.append(frame)

        if not frames:
            detail = "No valid rows found in uploaded files."
            if file_errors:
                detail = f"{detail} " + "; ".join(f"{e['file_name']}: {e['error']}" for e in file_errors[:3])
            raise HTTPException(status_code=400, detail=detail)

        prepared = store.load(
            pd.concat(frames, ignore_index=True),
            user_mapping=_parse_json(user_mapping, {}),
            append=append,
        )
        return JSONResponse(
            content={
                "rows": int(len(prepared.frame)),
                "skipped_rows": prepared.skipped_count,
                "skipped_ticket_ids": prepared.skipped_ticket_ids[:100],
                "file_errors": file_errors,
                "sample_rows": frame_to_records(prepared.frame, limit=25),
            }
        )

    @app.post("/api/trends/volume-sla")
    def volume_sla_trend(payload: RangePayload) -> JSONResponse:
        tickets = fetch_from_store(store, end=payload.end_date)
        trend = build_volume_sla_trend(tickets, payload.start_date, payload.end_date, config=config)
        return JSONResponse(content=json_safe(trend.to_dict()))

    @app.post("/api/trends/intelligence")
    def trend_intelligence(payload: IntelligencePayload) -> JSONResponse:
        result = build_trend_intelligence(
            store,
            payload.start_date,
            payload.end_date,
            org_id=payload.org_id,
            gateway=narrative_gateway,
            config=config,
            force_refresh=payload.force_refresh,
        )
        return JSONResponse(content=json_safe(result.to_dict()))

    @app.post("/api/risks/active")
    def active_risks(payload: NowPayload) -> JSONResponse:
        now = _now_or_wall_clock(payload.now)
        report = scan_active_risks(fetch_from_store(store), now, config=config, escalation_lookup=escalation_lookup)
        return JSONResponse(content=json_safe(report.to_dict()))

    @app.post("/api/metrics/summary")
    def metrics_summary(payload: MetricsPayload) -> JSONResponse:
        now = _now_or_wall_clock(payload.now)
        summary = summarize_metrics(
            fetch_from_store(store),
            now,
            start=payload.start_date,
            end=payload.end_date,
            resolution_unit=payload.resolution_unit,
        )
        return JSONResponse(content=json_safe(summary))

    @app.post("/api/operational-intelligence")
    def operational_intelligence(payload: NowPayload) -> JSONResponse:
        now = _now_or_wall_clock(payload.now)
        return JSONResponse(content=json_safe(build_operational_intelligence(fetch_from_store(store), now, config=config)))

    return app

"""Ingestion and normalization of raw ticket records."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping

import numpy as np
import pandas as pd

from .constants import COLUMN_ALIASES, MISSING_TEXT_VALUES, TICKET_COLUMNS
from .errors import InvalidParameter, MissingRequiredField, UnknownStatusError
from .models import Ticket, TicketStatus, normalize_priority, normalize_status

logger = logging.getLogger(__name__)

PREPARED_MARKER_COLUMNS = {"ticket_id", "created_at", "status", "is_resolved", "is_active"}


def normalize_column_name(column: str) -> str:
    cleaned = re.sub(r"[^0-9a-zA-Z]+", "_", str(column).strip().lower())
    cleaned = re.sub(r"_+", "_", cleaned).strip("_")
    return cleaned


def normalize_and_alias_columns(df: pd.DataFrame, user_mapping: dict[str, str] | None = None) -> pd.DataFrame:
    result = df.copy()
    result.columns = [normalize_column_name(col) for col in result.columns]

    # User mapping takes priority over aliases.
    if user_mapping:
        normalized_mapping = {
            normalize_column_name(source): normalize_column_name(target) for source, target in user_mapping.items()
        }
        rename_by_user = {col: normalized_mapping[col] for col in result.columns if col in normalized_mapping}
        if rename_by_user:
            result = result.rename(columns=rename_by_user)

    # Earlier aliases win when an export carries several candidates (freshdesk_id before id).
    renamed: dict[str, str] = {}
    existing = set(result.columns)
    for canonical, aliases in COLUMN_ALIASES.items():
        if canonical in existing:
            continue
        for alias in aliases:
            alias_norm = normalize_column_name(alias)
            if alias_norm in existing and alias_norm not in renamed and alias_norm not in COLUMN_ALIASES:
                renamed[alias_norm] = canonical
                break

    if renamed:
        result = result.rename(columns=renamed)
    return result.loc[:, ~result.columns.duplicated()]


def _safe_to_datetime(series: pd.Series) -> pd.Series:
    """Parse timestamps to naive UTC; unparseable values become NaT."""
    if not pd.api.types.is_datetime64_any_dtype(series):
        series = series.astype(object)
    parsed = pd.to_datetime(series, errors="coerce", utc=True, format="mixed")
    return parsed.dt.tz_convert(None)


def to_timestamp(value: datetime | date | str | pd.Timestamp) -> pd.Timestamp:
    """Coerce a caller-supplied instant or date to a naive UTC timestamp."""
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as exc:
        raise InvalidParameter(f"Invalid date or timestamp: {value!r}") from exc
    if ts is pd.NaT:
        raise InvalidParameter(f"Invalid date or timestamp: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def _is_missing_text(value: object) -> bool:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return True
    return str(value).strip().lower() in MISSING_TEXT_VALUES


def _clean_text(series: pd.Series, default: str | None) -> pd.Series:
    cleaned = series.map(lambda v: None if _is_missing_text(v) else str(v).strip())
    if default is not None:
        cleaned = cleaned.fillna(default)
    return cleaned


def _records_frame(raw: Any) -> pd.DataFrame:
    if isinstance(raw, pd.DataFrame):
        return raw
    rows: list[dict[str, Any]] = []
    for item in raw:
        if isinstance(item, Ticket):
            rows.append(item.to_record())
        elif isinstance(item, Mapping):
            rows.append(dict(item))
        else:
            raise TypeError(f"Unsupported ticket record type: {type(item).__name__}")
    return pd.DataFrame(rows)


def _normalize_statuses(status: pd.Series) -> pd.Series:
    unknown: list[str] = []
    normalized: dict[object, str] = {}
    for value in status.drop_duplicates().tolist():
        try:
            normalized[value] = normalize_status(value).value
        except UnknownStatusError:
            unknown.append(str(value))
    if unknown:
        raise UnknownStatusError(sorted(unknown))
    return status.map(normalized)


@dataclass
class PreparedTickets:
    frame: pd.DataFrame
    skipped_ticket_ids: list[str] = field(default_factory=list)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped_ticket_ids)


def prepare_tickets(raw: Any, user_mapping: dict[str, str] | None = None) -> PreparedTickets:
    """Normalize raw records into the canonical ticket frame.

    Accepts a DataFrame, or an iterable of ``Ticket`` objects / mappings.
    Rows without a usable creation timestamp are dropped and reported in
    ``skipped_ticket_ids``; unknown statuses raise ``UnknownStatusError``.
    """
    df = normalize_and_alias_columns(_records_frame(raw), user_mapping=user_mapping)
    for column in TICKET_COLUMNS:
        if column not in df:
            df[column] = np.nan

    fallback_ids = pd.Series([f"TKT-{i + 1:06d}" for i in range(len(df))], index=df.index)
    df["ticket_id"] = df["ticket_id"].where(~df["ticket_id"].map(_is_missing_text), np.nan)
    df["ticket_id"] = df["ticket_id"].fillna(fallback_ids).map(
        lambda v: str(int(v)) if isinstance(v, float) and v.is_integer() else str(v)
    )

    for dt_col in ["created_at", "updated_at", "resolved_at", "due_by"]:
        df[dt_col] = _safe_to_datetime(df[dt_col])

    missing_created = df["created_at"].isna()
    skipped = df.loc[missing_created, "ticket_id"].tolist()
    if skipped:
        logger.warning(
            "Skipped %d ticket(s) without a creation timestamp: %s",
            len(skipped),
            ", ".join(skipped[:10]),
        )
    df = df.loc[~missing_created].copy()

    df["status"] = _normalize_statuses(df["status"])
    df["priority"] = df["priority"].map(lambda v: normalize_priority(v).value)
    df["ticket_type"] = _clean_text(df["ticket_type"], default=None)
    df["module"] = _clean_text(df["module"], default=None)
    df["subject"] = _clean_text(df["subject"], default=None)
    df["assignee"] = _clean_text(df["assignee"], default="Unassigned")
    df["company"] = _clean_text(df["company"], default="Unknown")

    df["is_resolved"] = df["status"].map(lambda s: TicketStatus(s).is_resolved).astype(bool)
    df["is_active"] = ~df["is_resolved"]

    # Resolved tickets without a resolution stamp fall back to their last update.
    inferred_resolved = df["is_resolved"] & df["resolved_at"].isna()
    df.loc[inferred_resolved, "resolved_at"] = df.loc[inferred_resolved, "updated_at"]

    extra = [col for col in df.columns if col not in TICKET_COLUMNS and col not in {"is_resolved", "is_active"}]
    ordered = df[TICKET_COLUMNS + ["is_resolved", "is_active"] + extra]
    return PreparedTickets(frame=ordered.reset_index(drop=True), skipped_ticket_ids=skipped)


def preprocess_tickets(raw: Any, user_mapping: dict[str, str] | None = None) -> pd.DataFrame:
    return prepare_tickets(raw, user_mapping=user_mapping).frame


def ensure_ticket_frame(tickets: Any) -> pd.DataFrame:
    """Return ``tickets`` as a prepared frame, preprocessing it if needed."""
    if isinstance(tickets, PreparedTickets):
        return tickets.frame
    if isinstance(tickets, pd.DataFrame) and PREPARED_MARKER_COLUMNS.issubset(tickets.columns):
        return tickets
    return preprocess_tickets(tickets)


def ticket_from_record(record: Mapping[str, Any]) -> Ticket:
    """Strictly convert one raw record; raises instead of skipping."""
    frame = normalize_and_alias_columns(pd.DataFrame([dict(record)]))
    row = frame.iloc[0].to_dict()
    ticket_id = None if _is_missing_text(row.get("ticket_id")) else str(row["ticket_id"])

    def _ts(name: str) -> datetime | None:
        value = row.get(name)
        if value is None or _is_missing_text(value):
            return None
        parsed = pd.to_datetime(value, errors="coerce", utc=True)
        return None if pd.isna(parsed) else parsed.tz_convert(None).to_pydatetime()

    created_at = _ts("created_at")
    if created_at is None:
        raise MissingRequiredField(ticket_id, "created_at")

    def _text(name: str) -> str | None:
        value = row.get(name)
        return None if _is_missing_text(value) else str(value).strip()

    return Ticket(
        ticket_id=ticket_id or "",
        created_at=created_at,
        updated_at=_ts("updated_at"),
        status=normalize_status(row.get("status")).value,
        priority=normalize_priority(row.get("priority")).value,
        ticket_type=_text("ticket_type"),
        module=_text("module"),
        assignee=_text("assignee") or "Unassigned",
        company=_text("company") or "Unknown",
        resolved_at=_ts("resolved_at"),
        due_by=_ts("due_by"),
        subject=_text("subject"),
    )


def load_ticket_file(path: str) -> pd.DataFrame:
    file_lower = path.lower()
    if file_lower.endswith(".csv"):
        return pd.read_csv(path)
    return pd.read_excel(path)

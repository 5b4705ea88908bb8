"""Volume, SLA, resolution-time and aging metrics for a ticket set."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import numpy as np
import pandas as pd

from .aggregation import DateLike, resolve_range
from .constants import (
    AGING_BAND_EDGES_HOURS,
    AGING_BAND_LABELS,
    BUG_TYPES,
    FEATURE_TYPES,
    RESOLUTION_UNIT_HOURS,
)
from .errors import InvalidParameter
from .models import Priority
from .preprocessing import ensure_ticket_frame, to_timestamp


def round_pct(value: float | None) -> float | None:
    if value is None:
        return None
    return round(float(value), 1)


def filter_created_between(df: pd.DataFrame, start: DateLike | None, end: DateLike | None) -> pd.DataFrame:
    """Keep tickets created inside the inclusive day range; either bound may be open."""
    mask = pd.Series(True, index=df.index)
    if start is not None and end is not None:
        start_day, end_day = resolve_range(start, end)
        mask &= (df["created_at"] >= start_day) & (df["created_at"] < end_day + pd.Timedelta(days=1))
    elif start is not None:
        mask &= df["created_at"] >= resolve_range(start, start)[0]
    elif end is not None:
        mask &= df["created_at"] < resolve_range(end, end)[1] + pd.Timedelta(days=1)
    return df[mask]


def classify_type(ticket_type: object) -> str:
    if ticket_type is None or (isinstance(ticket_type, float) and np.isnan(ticket_type)):
        return "other"
    lowered = str(ticket_type).strip().lower()
    if lowered in BUG_TYPES:
        return "bug"
    if lowered in FEATURE_TYPES:
        return "feature"
    return "other"


def category_of(df: pd.DataFrame) -> pd.Series:
    """Grouping key: module, then ticket type, then the literal ``Unknown``."""
    return df["module"].fillna(df["ticket_type"]).fillna("Unknown")


def volume_metrics(tickets: Any) -> dict[str, Any]:
    df = ensure_ticket_frame(tickets)
    type_counts = df["ticket_type"].map(classify_type).value_counts()
    by_category = category_of(df).value_counts()
    by_priority = df["priority"].value_counts()

    return {
        "total_tickets": int(len(df)),
        "open_tickets": int(df["is_active"].sum()),
        "resolved_tickets": int(df["is_resolved"].sum()),
        "by_type": {label: int(type_counts.get(label, 0)) for label in ["bug", "feature", "other"]},
        "by_category": {str(k): int(v) for k, v in by_category.sort_index().items()},
        "by_priority": {p.value: int(by_priority.get(p.value, 0)) for p in Priority},
    }


def sla_compliance(tickets: Any) -> float | None:
    """Percent of SLA-bearing tickets updated on or before their due time.

    Returns ``None`` when no ticket carries a due timestamp, so "nothing to
    measure" is never confused with 0 % or 100 %. The value is unrounded.
    """
    df = ensure_ticket_frame(tickets)
    bearing = df[df["due_by"].notna()]
    if bearing.empty:
        return None
    met = bearing["updated_at"].notna() & (bearing["updated_at"] <= bearing["due_by"])
    return float(met.sum()) / float(len(bearing)) * 100.0


def resolution_time(tickets: Any, unit: str = "hours") -> float | None:
    """Mean whole ``unit``s from creation to last update over resolved tickets."""
    if unit not in RESOLUTION_UNIT_HOURS:
        raise InvalidParameter(f"Unsupported resolution unit '{unit}'. Expected one of {sorted(RESOLUTION_UNIT_HOURS)}")
    df = ensure_ticket_frame(tickets)
    resolved = df[df["is_resolved"] & df["updated_at"].notna()]
    if resolved.empty:
        return None
    elapsed_hours = (resolved["updated_at"] - resolved["created_at"]).dt.total_seconds() / 3600.0
    whole_units = np.floor(elapsed_hours.clip(lower=0) / RESOLUTION_UNIT_HOURS[unit])
    return float(whole_units.mean())


def ticket_age_hours(df: pd.DataFrame, now: datetime | pd.Timestamp) -> pd.Series:
    now_ts = to_timestamp(now)
    return ((now_ts - df["created_at"]).dt.total_seconds() / 3600.0).clip(lower=0)


def aging_buckets(tickets: Any, now: datetime | pd.Timestamp) -> dict[str, int]:
    """Count open tickets per age band; band upper edges are inclusive."""
    df = ensure_ticket_frame(tickets)
    active = df[df["is_active"]]
    bands = pd.cut(
        ticket_age_hours(active, now),
        bins=[-np.inf] + AGING_BAND_EDGES_HOURS + [np.inf],
        labels=AGING_BAND_LABELS,
        right=True,
    )
    counts = bands.value_counts()
    return {label: int(counts.get(label, 0)) for label in AGING_BAND_LABELS}


def summarize_metrics(
    tickets: Any,
    now: datetime | pd.Timestamp,
    start: DateLike | None = None,
    end: DateLike | None = None,
    resolution_unit: str = "hours",
) -> dict[str, Any]:
    df = ensure_ticket_frame(tickets)
    df = filter_created_between(df, start, end)
    avg_resolution = resolution_time(df, unit=resolution_unit)

    return {
        "volume": volume_metrics(df),
        "sla_compliance_pct": round_pct(sla_compliance(df)),
        "sla_bearing_tickets": int(df["due_by"].notna().sum()),
        "avg_resolution_time": None if avg_resolution is None else round(avg_resolution, 1),
        "resolution_unit": resolution_unit,
        "aging": aging_buckets(df, now),
    }

"""Calendar bucketing of tickets over an explicit date interval."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import pandas as pd

from .constants import BUCKET_FORMATS
from .errors import InvalidParameter, InvalidRange
from .models import TimeBucket
from .preprocessing import ensure_ticket_frame, to_timestamp

DateLike = date | datetime | str | pd.Timestamp


def resolve_range(start: DateLike, end: DateLike) -> tuple[pd.Timestamp, pd.Timestamp]:
    """Return ``(start_day, end_day)`` as midnight timestamps; start after end raises."""
    start_day = to_timestamp(start).normalize()
    end_day = to_timestamp(end).normalize()
    if start_day > end_day:
        raise InvalidRange(start_day.date(), end_day.date())
    return start_day, end_day


def _check_unit(unit: str) -> str:
    if unit not in BUCKET_FORMATS:
        raise InvalidParameter(f"Unsupported bucket unit '{unit}'. Expected one of {sorted(BUCKET_FORMATS)}")
    return BUCKET_FORMATS[unit]


def bucket_keys(start: DateLike, end: DateLike, unit: str = "day") -> list[str]:
    fmt = _check_unit(unit)
    start_day, end_day = resolve_range(start, end)
    if unit == "month":
        periods = pd.period_range(start_day.to_period("M"), end_day.to_period("M"), freq="M")
        return [p.strftime(fmt) for p in periods]
    return [d.strftime(fmt) for d in pd.date_range(start_day, end_day, freq="D")]


def _count_by_key(stamps: pd.Series, start_day: pd.Timestamp, end_day: pd.Timestamp, fmt: str) -> pd.Series:
    in_range = stamps[(stamps >= start_day) & (stamps < end_day + pd.Timedelta(days=1))]
    if in_range.empty:
        return pd.Series(dtype="int64")
    return in_range.dt.strftime(fmt).value_counts()


def aggregate_buckets(tickets: Any, start: DateLike, end: DateLike, unit: str = "day") -> list[TimeBucket]:
    """Bucket tickets into every calendar day or month of ``[start, end]``.

    Every unit in the interval gets a bucket, zero tickets included, so the
    series never has gaps. Creation date drives the created and SLA counters;
    resolution date drives the resolved counter. Tickets outside the interval
    are ignored.
    """
    fmt = _check_unit(unit)
    start_day, end_day = resolve_range(start, end)
    keys = bucket_keys(start_day, end_day, unit=unit)
    df = ensure_ticket_frame(tickets)

    created = _count_by_key(df["created_at"], start_day, end_day, fmt)

    sla_bearing = df[df["due_by"].notna()]
    sla_applicable = _count_by_key(sla_bearing["created_at"], start_day, end_day, fmt)
    met_mask = sla_bearing["updated_at"].notna() & (sla_bearing["updated_at"] <= sla_bearing["due_by"])
    sla_met = _count_by_key(sla_bearing.loc[met_mask, "created_at"], start_day, end_day, fmt)

    resolved_stamps = df.loc[df["is_resolved"], "resolved_at"].dropna()
    resolved = _count_by_key(resolved_stamps, start_day, end_day, fmt)

    return [
        TimeBucket(
            key=key,
            created=int(created.get(key, 0)),
            resolved=int(resolved.get(key, 0)),
            sla_met=int(sla_met.get(key, 0)),
            sla_applicable=int(sla_applicable.get(key, 0)),
        )
        for key in keys
    ]


def buckets_to_records(buckets: list[TimeBucket]) -> list[dict[str, Any]]:
    return [bucket.to_dict() for bucket in buckets]


def buckets_to_frame(buckets: list[TimeBucket]) -> pd.DataFrame:
    frame = pd.DataFrame(
        [
            {
                "date": b.key,
                "tickets_created": b.created,
                "tickets_resolved": b.resolved,
                "sla_met": b.sla_met,
                "sla_applicable": b.sla_applicable,
                "sla_compliance": b.sla_compliance,
            }
            for b in buckets
        ],
        columns=["date", "tickets_created", "tickets_resolved", "sla_met", "sla_applicable", "sla_compliance"],
    )
    return frame

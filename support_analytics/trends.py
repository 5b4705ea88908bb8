"""Current-vs-previous period comparison and trend signals."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Sequence

import pandas as pd

from .aggregation import DateLike, aggregate_buckets, buckets_to_records, resolve_range
from .config import DEFAULT_RISK_CONFIG, RiskConfig
from .errors import InvalidParameter
from .models import TimeBucket, TrendSignals
from .preprocessing import ensure_ticket_frame
from .risk_classifier import classify_period


@dataclass(frozen=True)
class TrendDelta:
    current: float
    previous: float
    absolute_delta: float
    percent_delta: float

    def to_dict(self) -> dict[str, float]:
        return {
            "current": self.current,
            "previous": self.previous,
            "absolute_delta": round(self.absolute_delta, 1),
            "percent_delta": round(self.percent_delta, 1),
        }


def percent_change(current: float, previous: float) -> float:
    if previous == 0:
        return 0.0
    return (float(current) - float(previous)) / float(previous) * 100.0


def compare_values(current: float, previous: float) -> TrendDelta:
    return TrendDelta(
        current=float(current),
        previous=float(previous),
        absolute_delta=float(current) - float(previous),
        percent_delta=percent_change(current, previous),
    )


def compare_series(current: Sequence[float], previous: Sequence[float]) -> list[TrendDelta]:
    if len(current) != len(previous):
        raise InvalidParameter(
            f"Series must have equal length to compare (current={len(current)}, previous={len(previous)})"
        )
    return [compare_values(c, p) for c, p in zip(current, previous)]


def previous_period(start: DateLike, end: DateLike) -> tuple[date, date]:
    """The window of identical length ending the day before ``start``."""
    start_day, end_day = resolve_range(start, end)
    duration = end_day - start_day + pd.Timedelta(days=1)
    return (start_day - duration).date(), (end_day - duration).date()


def _mean(values: list[float]) -> float | None:
    if not values:
        return None
    return sum(values) / len(values)


def _period_averages(buckets: list[TimeBucket]) -> tuple[float, float | None]:
    avg_volume = _mean([float(b.created) for b in buckets]) or 0.0
    avg_sla = _mean([b.sla_compliance for b in buckets if b.sla_compliance is not None])
    return avg_volume, avg_sla


@dataclass
class VolumeSlaTrend:
    trend_data: list[dict[str, Any]]
    previous_trend_data: list[dict[str, Any]]
    signals: TrendSignals

    def to_dict(self) -> dict[str, Any]:
        return {
            "trend_data": self.trend_data,
            "previous_trend_data": self.previous_trend_data,
            "signals": self.signals.to_dict(),
        }


def build_volume_sla_trend(
    tickets: Any,
    start: DateLike,
    end: DateLike,
    config: RiskConfig | None = None,
) -> VolumeSlaTrend:
    """Daily volume/SLA series for ``[start, end]`` plus signals against the prior window.

    Average SLA is the mean of daily compliance over days that had SLA-bearing
    tickets; it is ``None`` when no day did. Rounding happens only on the
    emitted signals.
    """
    config = config or DEFAULT_RISK_CONFIG
    df = ensure_ticket_frame(tickets)
    start_day, end_day = resolve_range(start, end)
    prev_start, prev_end = previous_period(start_day, end_day)

    current = aggregate_buckets(df, start_day, end_day, unit="day")
    previous = aggregate_buckets(df, prev_start, prev_end, unit="day")

    avg_volume, avg_sla = _period_averages(current)
    prev_volume, prev_sla = _period_averages(previous)

    volume_change = compare_values(avg_volume, prev_volume).percent_delta
    sla_change = None if avg_sla is None or prev_sla is None else avg_sla - prev_sla
    risk_level = classify_period(avg_sla, volume_change, config.period)

    signals = TrendSignals(
        start_date=start_day.date(),
        end_date=end_day.date(),
        avg_volume=round(avg_volume, 1),
        volume_change_percent=round(volume_change, 1),
        avg_sla=None if avg_sla is None else round(avg_sla, 1),
        sla_change_percent=None if sla_change is None else round(sla_change, 1),
        risk_level=risk_level,
    )
    return VolumeSlaTrend(
        trend_data=buckets_to_records(current),
        previous_trend_data=buckets_to_records(previous),
        signals=signals,
    )

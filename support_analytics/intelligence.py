"""Operational intelligence views for the support dashboard."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import numpy as np
import pandas as pd

from .config import DEFAULT_RISK_CONFIG, RiskConfig
from .metrics import classify_type, sla_compliance
from .models import Priority, RiskLevel, TicketStatus
from .preprocessing import ensure_ticket_frame, to_timestamp
from .trends import compare_values

logger = logging.getLogger(__name__)


def _whole_days_since(stamps: pd.Series, now_ts: pd.Timestamp) -> pd.Series:
    return np.floor((now_ts - stamps).dt.total_seconds() / 86400.0)


def _active(df: pd.DataFrame) -> pd.DataFrame:
    return df[df["is_active"]]


def stalled_ticket_insights(df: pd.DataFrame, now_ts: pd.Timestamp, config: RiskConfig) -> list[dict[str, Any]]:
    active = _active(df)
    last_touch = active["updated_at"].fillna(active["created_at"])
    days = _whole_days_since(last_touch, now_ts)
    stalled = active.assign(days_stalled=days)[days >= config.stalled_after_days]
    stalled = stalled.sort_values(["days_stalled", "ticket_id"], ascending=[False, True])

    insights = []
    for row in stalled.itertuples(index=False):
        days_stalled = int(row.days_stalled)
        insights.append(
            {
                "id": f"stalled-{row.ticket_id}",
                "type": "stalled_ticket",
                "severity": "critical" if days_stalled >= config.stalled_critical_days else "warning",
                "message": f"Ticket {row.ticket_id} for {row.company} has been stalled '{row.status}' for {days_stalled} days.",
                "ticket_id": row.ticket_id,
                "company": row.company,
                "status": row.status,
                "days_stalled": days_stalled,
            }
        )
    return insights


def high_volume_customer_insights(df: pd.DataFrame, now_ts: pd.Timestamp, config: RiskConfig) -> list[dict[str, Any]]:
    since = now_ts - pd.Timedelta(hours=24)
    recent = df[(df["created_at"] > since) & (df["created_at"] <= now_ts)]
    counts = recent["company"].value_counts()
    counts = counts[counts >= config.high_volume_customer_tickets]

    insights = []
    for company, count in sorted(counts.items(), key=lambda item: (-item[1], str(item[0]))):
        insights.append(
            {
                "id": f"high-volume-{str(company).replace(' ', '-')}",
                "type": "high_volume_customer",
                "severity": "critical" if count >= config.high_volume_customer_critical else "warning",
                "message": f"{company} has opened {int(count)} new tickets in the last 24 hours. Consider proactive outreach.",
                "company": company,
                "ticket_count": int(count),
            }
        )
    return insights


def customer_risk_concentration(df: pd.DataFrame, config: RiskConfig, top_n: int = 5) -> list[dict[str, Any]]:
    active = _active(df)
    if active.empty:
        return []

    rows = []
    for company, group in active.groupby("company"):
        open_count = int(len(group))
        urgent_count = int((group["priority"] == Priority.URGENT.value).sum())
        busy_bonus = 20 if open_count > config.customer_busy_open_above else 0
        score = min(100.0, urgent_count / open_count * 200 + busy_bonus)
        sla_met = sla_compliance(df[df["company"] == company])
        rows.append(
            {
                "company": company,
                "risk_score": round(score, 1),
                "risk_level": (
                    RiskLevel.HIGH if urgent_count > config.customer_high_urgent_above else RiskLevel.MEDIUM
                ).value,
                "open_count": open_count,
                "urgent_count": urgent_count,
                "sla_met_percent": None if sla_met is None else round(sla_met, 1),
            }
        )
    rows.sort(key=lambda row: (-row["risk_score"], str(row["company"])))
    return rows[:top_n]


def agent_capacity(df: pd.DataFrame, config: RiskConfig) -> list[dict[str, Any]]:
    """Active load per assignee against the overload threshold."""
    loads = _active(df)["assignee"].value_counts()
    rows = []
    for name, count in loads.items():
        if count > config.agent_critical_load:
            status = "Critical"
        elif count > config.agent_overload_threshold:
            status = "Overloaded"
        else:
            status = "Balanced"
        rows.append(
            {
                "name": name,
                "active_tickets": int(count),
                "capacity_percent": int(round(count / config.agent_overload_threshold * 100)),
                "status": status,
            }
        )
    rows.sort(key=lambda row: (-row["active_tickets"], str(row["name"])))
    return rows


def _mean_age_days(frame: pd.DataFrame, now_ts: pd.Timestamp) -> float | None:
    if frame.empty:
        return None
    return round(float(((now_ts - frame["created_at"]).dt.total_seconds() / 86400.0).mean()), 1)


def bottlenecks(df: pd.DataFrame, now_ts: pd.Timestamp, config: RiskConfig) -> list[dict[str, Any]]:
    active = _active(df)
    stalled = active[_whole_days_since(active["created_at"], now_ts) > config.stalled_after_days]
    waiting = active[active["status"] == TicketStatus.WAITING_ON_CUSTOMER.value]
    return [
        {
            "category": "Stalled Conversations",
            "count": int(len(stalled)),
            "impact_level": "high" if len(stalled) > 10 else "medium",
            "avg_age_days": _mean_age_days(stalled, now_ts),
        },
        {
            "category": "Waiting on Customer",
            "count": int(len(waiting)),
            "impact_level": "medium" if len(waiting) > 10 else "low",
            "avg_age_days": _mean_age_days(waiting, now_ts),
        },
    ]


def _open_at(df: pd.DataFrame, at: pd.Timestamp) -> int:
    existed = df[df["created_at"] <= at]
    still_open = existed["resolved_at"].isna() | (existed["resolved_at"] > at)
    return int(still_open.sum())


def _kpi(title: str, current: int, previous: int, up: str, down: str) -> dict[str, Any]:
    delta = compare_values(current, previous)
    return {
        "title": title,
        "value": int(current),
        "previous": int(previous),
        "trend": round(delta.percent_delta, 1),
        "micro_insight": up if current > previous else down,
    }


def weekly_kpis(df: pd.DataFrame, now_ts: pd.Timestamp, config: RiskConfig) -> list[dict[str, Any]]:
    window = pd.Timedelta(days=config.kpi_window_days)
    current_start = now_ts - window
    previous_start = current_start - window

    current = df[(df["created_at"] >= current_start) & (df["created_at"] <= now_ts)]
    previous = df[(df["created_at"] >= previous_start) & (df["created_at"] < current_start)]

    resolved_at = df.loc[df["is_resolved"], "resolved_at"]
    resolved_now = int(((resolved_at >= current_start) & (resolved_at <= now_ts)).sum())
    resolved_before = int(((resolved_at >= previous_start) & (resolved_at < current_start)).sum())

    def _bugs(frame: pd.DataFrame) -> int:
        return int((frame["ticket_type"].map(classify_type) == "bug").sum())

    return [
        _kpi("Total Tickets", len(current), len(previous), "Volume trending up this week.", "Volume is stabilizing."),
        _kpi(
            "Open Backlog",
            int(df["is_active"].sum()),
            _open_at(df, current_start),
            "Backlog is growing.",
            "Backlog clearing at steady rate.",
        ),
        _kpi("Resolved", resolved_now, resolved_before, "Resolution pace improved vs last week.", "Resolution pace is flat or slower."),
        _kpi("Bugs", _bugs(current), _bugs(previous), "Bug reports are rising.", "Bug reports are within normal range."),
    ]


def sla_risk_score(df: pd.DataFrame, now_ts: pd.Timestamp, config: RiskConfig) -> dict[str, Any]:
    active = _active(df)
    due = active["due_by"]
    near = int((due.notna() & (due - now_ts < pd.Timedelta(hours=config.near_breach_hours))).sum())
    score = min(100.0, near / len(active) * 500) if len(active) else 0.0
    return {"near_breach_tickets": near, "active_tickets": int(len(active)), "score": round(score, 1)}


def build_operational_intelligence(
    tickets: Any,
    now: datetime | pd.Timestamp,
    config: RiskConfig | None = None,
) -> dict[str, Any]:
    config = config or DEFAULT_RISK_CONFIG
    now_ts = to_timestamp(now)
    df = ensure_ticket_frame(tickets)

    insights = stalled_ticket_insights(df, now_ts, config) + high_volume_customer_insights(df, now_ts, config)
    logger.debug("Operational intelligence at %s: %d insight(s)", now_ts.isoformat(), len(insights))
    return {
        "generated_at": now_ts.isoformat(),
        "kpis": weekly_kpis(df, now_ts, config),
        "sla_risk": sla_risk_score(df, now_ts, config),
        "insights": insights,
        "customer_risks": customer_risk_concentration(df, config),
        "agent_capacity": agent_capacity(df, config),
        "bottlenecks": bottlenecks(df, now_ts, config),
    }

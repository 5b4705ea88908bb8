"""Rule-based scan of the active ticket set for operational risk."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable, Mapping, Optional

import numpy as np
import pandas as pd

from .config import DEFAULT_RISK_CONFIG, RiskConfig
from .models import EscalationAssessment, RiskMetric, TicketStatus
from .preprocessing import ensure_ticket_frame, to_timestamp
from .risk_classifier import classify_count, classify_posture
from .serialization import frame_to_records
from .trends import compare_values, percent_change

logger = logging.getLogger(__name__)

EscalationLookup = Callable[[str], Optional[EscalationAssessment]]


def build_escalation_lookup(assessments: Iterable[EscalationAssessment | Mapping[str, Any]]) -> EscalationLookup:
    """Index enrichment rows by ticket id and return a lookup callable."""
    index: dict[str, EscalationAssessment] = {}
    for item in assessments:
        if isinstance(item, Mapping):
            item = EscalationAssessment(
                ticket_id=str(item.get("ticket_id")),
                escalation_risk=str(item.get("escalation_risk") or ""),
                reason=item.get("escalation_reason") or item.get("reason"),
                suggested_action=item.get("suggested_action"),
                confidence_score=item.get("confidence_score"),
            )
        index[str(item.ticket_id)] = item
    return index.get


def active_tickets(df: pd.DataFrame) -> pd.DataFrame:
    return df[df["is_active"]]


def _top_value(series: pd.Series, default: str) -> str:
    counts = series.dropna().value_counts()
    if counts.empty:
        return default
    best = counts.max()
    return sorted(str(name) for name, count in counts.items() if count == best)[0]


def escalation_risk_tickets(active: pd.DataFrame, lookup: EscalationLookup | None = None) -> pd.DataFrame:
    if lookup is None:
        assessments = pd.Series([None] * len(active), index=active.index, dtype=object)
    else:
        assessments = active["ticket_id"].map(lambda ticket_id: lookup(str(ticket_id)))

    status_hit = active["status"] == TicketStatus.ESCALATED.value
    enrichment_hit = assessments.map(lambda a: isinstance(a, EscalationAssessment) and a.is_high).astype(bool)
    mask = status_hit | enrichment_hit

    matched = active[mask].copy()
    matched_assessments = assessments[mask]
    matched["risk_reason"] = [
        a.reason if isinstance(a, EscalationAssessment) and a.reason else (
            "Ticket status is Escalated." if status else "Flagged as high escalation risk by ticket analysis."
        )
        for a, status in zip(matched_assessments, status_hit[mask])
    ]
    matched["suggested_action"] = [
        a.suggested_action if isinstance(a, EscalationAssessment) and a.suggested_action else "Immediate manager intervention required."
        for a in matched_assessments
    ]
    matched["confidence_score"] = [a.confidence_score if isinstance(a, EscalationAssessment) else None for a in matched_assessments]
    return matched


def sla_risk_tickets(active: pd.DataFrame, now: datetime | pd.Timestamp, remaining_fraction: float) -> pd.DataFrame:
    """Active tickets already past due, or with less than ``remaining_fraction`` of their window left."""
    now_ts = to_timestamp(now)
    bearing = active[active["due_by"].notna()]
    window = (bearing["due_by"] - bearing["created_at"]).dt.total_seconds()
    remaining = (bearing["due_by"] - now_ts).dt.total_seconds()
    fraction = (remaining / window.where(window > 0)).astype(float)

    breached = bearing["due_by"] <= now_ts
    mask = breached | (fraction < remaining_fraction)

    matched = bearing[mask].copy()
    remaining_pct = (fraction[mask].clip(lower=0).fillna(0) * 100).round().astype(int)
    matched["breached"] = breached[mask].astype(bool)
    matched["sla_remaining_percent"] = remaining_pct
    matched["risk_reason"] = np.where(
        matched["breached"],
        "SLA Breached",
        remaining_pct.map(lambda pct: f"Less than {pct}% time remaining."),
    )
    matched["suggested_action"] = "Prioritize resolution or request SLA extension."
    return matched


def agent_loads(active: pd.DataFrame) -> pd.Series:
    loads = active["assignee"].fillna("Unassigned").value_counts()
    return loads.sort_index().sort_values(ascending=False, kind="stable")


def overload_tickets(active: pd.DataFrame, threshold: int) -> tuple[pd.DataFrame, pd.Series]:
    loads = agent_loads(active)
    overloaded = loads[loads > threshold]
    matched = active[active["assignee"].fillna("Unassigned").isin(overloaded.index)].copy()
    capacity = matched["assignee"].fillna("Unassigned").map(loads) / threshold * 100
    matched["capacity_percent"] = capacity.round().astype(int)
    matched["risk_reason"] = [
        f"Assigned to {agent} who is at {pct}% capacity."
        for agent, pct in zip(matched["assignee"], matched["capacity_percent"])
    ]
    matched["suggested_action"] = "Reassign to available agent."
    return matched, overloaded


@dataclass
class VolumeSpike:
    last_window: int
    previous_window: int
    change_percent: float
    tickets: pd.DataFrame


def volume_spike(active: pd.DataFrame, now: datetime | pd.Timestamp, window_hours: int) -> VolumeSpike:
    now_ts = to_timestamp(now)
    age_hours = (now_ts - active["created_at"]).dt.total_seconds() / 3600.0
    last = active[(age_hours >= 0) & (age_hours <= window_hours)]
    previous = active[(age_hours > window_hours) & (age_hours <= 2 * window_hours)]
    return VolumeSpike(
        last_window=int(len(last)),
        previous_window=int(len(previous)),
        change_percent=percent_change(len(last), len(previous)),
        tickets=last,
    )


@dataclass
class ActiveRiskReport:
    generated_at: pd.Timestamp
    active_ticket_count: int
    summary: dict[str, str]
    metrics: dict[str, RiskMetric] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "active_ticket_count": self.active_ticket_count,
            "summary": self.summary,
            "metrics": {name: metric.to_dict() for name, metric in self.metrics.items()},
        }


def _rule_counts(
    active: pd.DataFrame,
    at: pd.Timestamp,
    config: RiskConfig,
    lookup: EscalationLookup | None,
) -> dict[str, float]:
    return {
        "escalation_risk": len(escalation_risk_tickets(active, lookup)),
        "sla_risk": len(sla_risk_tickets(active, at, config.sla_remaining_fraction)),
        "agent_overload": len(overload_tickets(active, config.agent_overload_threshold)[1]),
        "volume_spike": volume_spike(active, at, config.volume_window_hours).change_percent,
    }


def scan_active_risks(
    tickets: Any,
    now: datetime | pd.Timestamp,
    config: RiskConfig | None = None,
    escalation_lookup: EscalationLookup | None = None,
) -> ActiveRiskReport:
    """Evaluate escalation, SLA, overload and volume-spike rules at ``now``.

    Rules are independent, so one ticket can appear under several of them.
    Each rule's trend is its value now minus its value ``trend_window_hours``
    earlier, computed over the active tickets that already existed then.
    """
    config = config or DEFAULT_RISK_CONFIG
    now_ts = to_timestamp(now)
    active = active_tickets(ensure_ticket_frame(tickets))

    escalations = escalation_risk_tickets(active, escalation_lookup)
    sla_at_risk = sla_risk_tickets(active, now_ts, config.sla_remaining_fraction)
    overloaded_tickets, overloaded_agents = overload_tickets(active, config.agent_overload_threshold)
    spike = volume_spike(active, now_ts, config.volume_window_hours)

    then = now_ts - pd.Timedelta(hours=config.trend_window_hours)
    earlier = _rule_counts(active[active["created_at"] <= then], then, config, escalation_lookup)

    def _trend(name: str, current: float) -> float:
        return round(compare_values(current, earlier[name]).absolute_delta, 1)

    escalation_count = int(len(escalations))
    breached_count = int(sla_at_risk["breached"].sum()) if not sla_at_risk.empty else 0
    top_company = _top_value(escalations["company"], "N/A")

    metrics = {
        "escalation_risk": RiskMetric(
            name="escalation_risk",
            count=escalation_count,
            trend=_trend("escalation_risk", escalation_count),
            risk_level=classify_count(escalation_count, config.escalation_tier),
            micro_insight=f"Concentrated in {top_company}.",
            tickets=frame_to_records(escalations),
        ),
        "sla_risk": RiskMetric(
            name="sla_risk",
            count=int(len(sla_at_risk)),
            trend=_trend("sla_risk", len(sla_at_risk)),
            risk_level=classify_count(len(sla_at_risk), config.sla_tier),
            micro_insight=f"{breached_count} tickets already breached.",
            tickets=frame_to_records(sla_at_risk),
            details={"breached": breached_count},
        ),
        "agent_overload": RiskMetric(
            name="agent_overload",
            count=int(len(overloaded_agents)),
            trend=_trend("agent_overload", len(overloaded_agents)),
            risk_level=classify_count(len(overloaded_agents), config.overload_tier),
            micro_insight=(
                f"{overloaded_agents.index[0]} at highest load."
                if not overloaded_agents.empty
                else "No agent above capacity."
            ),
            tickets=frame_to_records(overloaded_tickets),
            details={
                "threshold": config.agent_overload_threshold,
                "overloaded_agents": {str(k): int(v) for k, v in overloaded_agents.items()},
            },
        ),
        "volume_spike": RiskMetric(
            name="volume_spike",
            count=int(round(spike.change_percent)),
            trend=_trend("volume_spike", spike.change_percent),
            risk_level=classify_count(spike.change_percent, config.volume_spike_tier),
            micro_insight=(
                f"{_top_value(spike.tickets['company'], 'N/A')} driving volume."
                if spike.last_window
                else f"No new active tickets in the last {config.volume_window_hours}h."
            ),
            tickets=frame_to_records(spike.tickets),
            details={
                "last_window": spike.last_window,
                "previous_window": spike.previous_window,
                "window_hours": config.volume_window_hours,
                "change_percent": round(spike.change_percent, 1),
            },
        ),
    }

    trend_word = "increasing" if escalation_count > config.posture_deteriorating_above else "stable"
    driver = top_company if escalation_count else "recent activity"
    summary = {
        "message": f"Escalation risk is {trend_word}, primarily driven by {driver}.",
        "posture": classify_posture(escalation_count, config),
    }

    logger.debug(
        "Scanned %d active tickets: escalation=%d sla=%d overloaded_agents=%d volume_change=%.1f",
        len(active),
        escalation_count,
        len(sla_at_risk),
        len(overloaded_agents),
        spike.change_percent,
    )
    return ActiveRiskReport(
        generated_at=now_ts,
        active_ticket_count=int(len(active)),
        summary=summary,
        metrics=metrics,
    )

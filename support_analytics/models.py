"""Typed records exchanged between the analytics core and its callers."""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from .constants import PRIORITY_MAP, RESOLVED_STATUSES, STATUS_ALIASES
from .errors import UnknownStatusError


class TicketStatus(str, Enum):
    OPEN = "Open"
    PENDING = "Pending"
    WAITING_ON_CUSTOMER = "Waiting on Customer"
    ON_TECH = "On Tech"
    ON_PRODUCT = "On Product"
    ESCALATED = "Escalated"
    RESOLVED = "Resolved"
    CLOSED = "Closed"

    @property
    def is_resolved(self) -> bool:
        return self.value in RESOLVED_STATUSES


class Priority(str, Enum):
    URGENT = "Urgent"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"
    UNKNOWN = "Unknown"


class RiskLevel(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]


_RISK_RANK = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


def _status_key(value: object) -> str:
    cleaned = re.sub(r"[^0-9a-zA-Z]+", "_", str(value).strip().lower())
    return re.sub(r"_+", "_", cleaned).strip("_")


def normalize_status(value: object) -> TicketStatus:
    """Map a raw upstream status string onto the closed status enumeration.

    Matching ignores case, punctuation and spacing, so ``"Open (Being Processed)"``
    and ``"open"`` both become ``TicketStatus.OPEN``. Anything unrecognized,
    blanks included, raises ``UnknownStatusError``.
    """
    if isinstance(value, TicketStatus):
        return value
    if value is None or (isinstance(value, float) and math.isnan(value)):
        raise UnknownStatusError([str(value)])
    canonical = STATUS_ALIASES.get(_status_key(value))
    if canonical is None:
        raise UnknownStatusError([str(value)])
    return TicketStatus(canonical)


def normalize_priority(value: object) -> Priority:
    if isinstance(value, Priority):
        return value
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return Priority.UNKNOWN
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return Priority(PRIORITY_MAP.get(str(value).strip().lower(), Priority.UNKNOWN.value))


@dataclass(frozen=True)
class Ticket:
    ticket_id: str
    created_at: datetime | None
    updated_at: datetime | None
    status: str
    priority: str = Priority.UNKNOWN.value
    ticket_type: str | None = None
    module: str | None = None
    assignee: str | None = None
    company: str | None = None
    resolved_at: datetime | None = None
    due_by: datetime | None = None
    subject: str | None = None

    def to_record(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EscalationAssessment:
    ticket_id: str
    escalation_risk: str
    reason: str | None = None
    suggested_action: str | None = None
    confidence_score: float | None = None

    @property
    def is_high(self) -> bool:
        return str(self.escalation_risk).strip().lower() == "high"


@dataclass
class TimeBucket:
    key: str
    created: int = 0
    resolved: int = 0
    sla_met: int = 0
    sla_applicable: int = 0

    @property
    def sla_compliance(self) -> float | None:
        if self.sla_applicable == 0:
            return None
        return self.sla_met / self.sla_applicable * 100.0

    def to_dict(self) -> dict[str, Any]:
        compliance = self.sla_compliance
        return {
            "date": self.key,
            "tickets_created": self.created,
            "tickets_resolved": self.resolved,
            "sla_met": self.sla_met,
            "sla_applicable": self.sla_applicable,
            "sla_compliance": None if compliance is None else round(compliance, 1),
        }


@dataclass
class RiskMetric:
    name: str
    count: int
    trend: float
    risk_level: RiskLevel
    micro_insight: str
    tickets: list[dict[str, Any]] = field(default_factory=list)
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "count": self.count,
            "trend": self.trend,
            "risk_level": self.risk_level.value,
            "micro_insight": self.micro_insight,
            "tickets": self.tickets,
            "details": self.details,
        }


@dataclass(frozen=True)
class TrendSignals:
    start_date: date
    end_date: date
    avg_volume: float
    volume_change_percent: float
    avg_sla: float | None
    sla_change_percent: float | None
    risk_level: RiskLevel

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "avg_volume": self.avg_volume,
            "volume_change_percent": self.volume_change_percent,
            "avg_sla": self.avg_sla,
            "sla_change_percent": self.sla_change_percent,
            "risk_level": self.risk_level.value,
        }


@dataclass(frozen=True)
class NarrativeInsight:
    summary: str
    root_cause: str
    recommended_action: str
    confidence_score: Any

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "NarrativeInsight":
        # Generators answer in either camelCase or snake_case.
        def _pick(*keys: str) -> Any:
            for key in keys:
                if key in payload:
                    return payload[key]
            return None

        return cls(
            summary=_pick("summary", "executive_summary", "executiveSummary"),
            root_cause=_pick("root_cause", "rootCause", "root_cause_hypothesis"),
            recommended_action=_pick("recommended_action", "recommendedAction"),
            confidence_score=_pick("confidence_score", "confidenceScore", "confidence"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

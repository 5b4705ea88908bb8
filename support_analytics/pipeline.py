"""Pipeline orchestration for support ticket risk analytics."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import pandas as pd

from .aggregation import DateLike, resolve_range
from .config import DEFAULT_RISK_CONFIG, RiskConfig
from .errors import TicketAnalyticsError, UpstreamUnavailable
from .intelligence import build_operational_intelligence
from .metrics import summarize_metrics
from .models import NarrativeInsight
from .narrative import NarrativeGateway
from .preprocessing import PreparedTickets, load_ticket_file, prepare_tickets
from .risk_scanner import ActiveRiskReport, EscalationLookup, scan_active_risks
from .store import TicketStore
from .trends import VolumeSlaTrend, build_volume_sla_trend

logger = logging.getLogger(__name__)


def fetch_from_store(store: TicketStore, start: DateLike | None = None, end: DateLike | None = None) -> pd.DataFrame:
    try:
        return store.fetch_tickets(start=start, end=end)
    except TicketAnalyticsError:
        raise
    except Exception as exc:
        raise UpstreamUnavailable("ticket store", str(exc)) from exc


@dataclass
class TrendIntelligence:
    trend: VolumeSlaTrend
    intelligence: NarrativeInsight | None = None
    narrative_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = self.trend.to_dict()
        payload["intelligence"] = None if self.intelligence is None else self.intelligence.to_dict()
        payload["narrative_error"] = self.narrative_error
        return payload


def build_trend_intelligence(
    store: TicketStore,
    start: DateLike,
    end: DateLike,
    org_id: str,
    gateway: NarrativeGateway | None = None,
    config: RiskConfig | None = None,
    force_refresh: bool = False,
) -> TrendIntelligence:
    """Trend signals for ``[start, end]`` plus a narrative when one can be produced.

    A failing narrative service never discards the computed signals; the error
    is reported alongside them instead.
    """
    resolve_range(start, end)
    tickets = fetch_from_store(store, end=end)
    trend = build_volume_sla_trend(tickets, start, end, config=config)

    if gateway is None:
        return TrendIntelligence(trend=trend, narrative_error="narrative generation not configured")

    try:
        insight = gateway.generate(trend.signals, org_id, force_refresh=force_refresh)
    except UpstreamUnavailable as exc:
        logger.warning("Narrative unavailable for org %s: %s", org_id, exc)
        return TrendIntelligence(trend=trend, narrative_error=str(exc))
    return TrendIntelligence(trend=trend, intelligence=insight)


@dataclass
class TicketAnalysisSession:
    prepared: PreparedTickets
    config: RiskConfig = field(default=DEFAULT_RISK_CONFIG)

    @property
    def tickets(self) -> pd.DataFrame:
        return self.prepared.frame

    @classmethod
    def from_dataframe(
        cls,
        raw_df: pd.DataFrame,
        user_mapping: dict[str, str] | None = None,
        config: RiskConfig | None = None,
    ) -> "TicketAnalysisSession":
        return cls(prepare_tickets(raw_df, user_mapping=user_mapping), config or DEFAULT_RISK_CONFIG)

    @classmethod
    def from_file(
        cls,
        path: str,
        user_mapping: dict[str, str] | None = None,
        config: RiskConfig | None = None,
    ) -> "TicketAnalysisSession":
        return cls.from_dataframe(load_ticket_file(path), user_mapping=user_mapping, config=config)

    def volume_sla_trend(self, start: DateLike, end: DateLike) -> VolumeSlaTrend:
        return build_volume_sla_trend(self.prepared, start, end, config=self.config)

    def active_risks(
        self,
        now: datetime | pd.Timestamp,
        escalation_lookup: EscalationLookup | None = None,
    ) -> ActiveRiskReport:
        return scan_active_risks(self.prepared, now, config=self.config, escalation_lookup=escalation_lookup)

    def metrics(
        self,
        now: datetime | pd.Timestamp,
        start: DateLike | None = None,
        end: DateLike | None = None,
        resolution_unit: str = "hours",
    ) -> dict[str, Any]:
        return summarize_metrics(self.prepared, now, start=start, end=end, resolution_unit=resolution_unit)

    def operational(self, now: datetime | pd.Timestamp) -> dict[str, Any]:
        return build_operational_intelligence(self.prepared, now, config=self.config)

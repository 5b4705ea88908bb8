from __future__ import annotations

import pytest

from support_analytics.errors import InvalidRange, UpstreamUnavailable
from support_analytics.models import NarrativeInsight, RiskLevel
from support_analytics.narrative import NarrativeGateway
from support_analytics.pipeline import TicketAnalysisSession, build_trend_intelligence
from support_analytics.store import InMemoryTicketStore, TicketStore


class _StaticGateway(NarrativeGateway):
    def generate(self, signals, org_id, force_refresh=False) -> NarrativeInsight:
        return NarrativeInsight(
            summary=f"{org_id} is {signals.risk_level.value}",
            root_cause="Release regression",
            recommended_action="Add triage capacity",
            confidence_score=77,
        )


class _DownGateway(NarrativeGateway):
    def generate(self, signals, org_id, force_refresh=False) -> NarrativeInsight:
        raise UpstreamUnavailable("narrative", "service offline")


class _BrokenStore(TicketStore):
    def fetch_tickets(self, start=None, end=None):
        raise ConnectionError("database unreachable")


def test_session_end_to_end(raw_ticket_df, reference_time) -> None:
    session = TicketAnalysisSession.from_dataframe(raw_ticket_df)

    assert len(session.tickets) == 6
    assert session.volume_sla_trend("2026-01-12", "2026-01-15").signals.risk_level is RiskLevel.HIGH
    assert session.active_risks(reference_time).metrics["sla_risk"].count == 1
    assert session.metrics(reference_time)["sla_compliance_pct"] == 80.0
    assert session.operational(reference_time)["sla_risk"]["near_breach_tickets"] == 1


def test_session_from_csv_file(raw_ticket_df, reference_time, tmp_path) -> None:
    path = tmp_path / "tickets.csv"
    raw_ticket_df.to_csv(path, index=False)

    session = TicketAnalysisSession.from_file(str(path))
    assert session.tickets["ticket_id"].tolist()[:2] == ["101", "102"]
    assert session.active_risks(reference_time).active_ticket_count == 4


def test_trend_intelligence_with_narrative(raw_ticket_df) -> None:
    store = InMemoryTicketStore(raw_ticket_df)
    result = build_trend_intelligence(store, "2026-01-12", "2026-01-15", "acme-org", gateway=_StaticGateway())

    payload = result.to_dict()
    assert payload["signals"]["risk_level"] == "HIGH"
    assert payload["intelligence"]["summary"] == "acme-org is HIGH"
    assert payload["narrative_error"] is None


def test_narrative_failure_keeps_signals(raw_ticket_df) -> None:
    store = InMemoryTicketStore(raw_ticket_df)
    result = build_trend_intelligence(store, "2026-01-12", "2026-01-15", "acme-org", gateway=_DownGateway())

    assert result.intelligence is None
    assert "service offline" in result.narrative_error
    assert result.trend.signals.avg_volume == 1.0
    assert len(result.trend.trend_data) == 4


def test_store_failure_is_upstream_unavailable() -> None:
    with pytest.raises(UpstreamUnavailable):
        build_trend_intelligence(_BrokenStore(), "2026-01-01", "2026-01-07", "org", gateway=_StaticGateway())

    with pytest.raises(InvalidRange):
        build_trend_intelligence(_BrokenStore(), "2026-01-07", "2026-01-01", "org", gateway=_StaticGateway())


def test_in_memory_store_range_and_append(raw_ticket_df) -> None:
    store = InMemoryTicketStore(raw_ticket_df)

    assert len(store.fetch_tickets()) == 6
    assert store.fetch_tickets("2026-01-12", "2026-01-13")["ticket_id"].tolist() == ["104", "105"]
    assert len(store.fetch_tickets(end="2026-01-10")) == 2

    extra = raw_ticket_df.iloc[[0]].copy()
    extra["Freshdesk ID"] = 999
    store.load(extra, append=True)
    assert len(store) == 7

from __future__ import annotations

from support_analytics.config import DEFAULT_RISK_CONFIG
from support_analytics.intelligence import (
    agent_capacity,
    build_operational_intelligence,
    high_volume_customer_insights,
)
from support_analytics.preprocessing import preprocess_tickets, to_timestamp


def test_operational_intelligence_on_export(raw_ticket_df, reference_time) -> None:
    result = build_operational_intelligence(raw_ticket_df, reference_time)

    stalled = [i for i in result["insights"] if i["type"] == "stalled_ticket"]
    assert [(i["ticket_id"], i["days_stalled"], i["severity"]) for i in stalled] == [
        ("106", 6, "critical"),
        ("103", 4, "warning"),
    ]
    assert stalled[0]["company"] == "Unknown"

    customers = result["customer_risks"]
    assert customers[0]["company"] == "Acme"
    assert customers[0]["risk_score"] == 100.0
    assert customers[0]["open_count"] == 2
    assert customers[0]["urgent_count"] == 1
    assert customers[0]["risk_level"] == "MEDIUM"
    assert customers[0]["sla_met_percent"] == 100.0
    assert [c["company"] for c in customers[1:]] == ["Globex", "Unknown"]

    bottlenecks = {b["category"]: b for b in result["bottlenecks"]}
    assert bottlenecks["Stalled Conversations"]["count"] == 2
    assert bottlenecks["Waiting on Customer"]["count"] == 1
    assert bottlenecks["Waiting on Customer"]["avg_age_days"] == 7.0

    assert result["sla_risk"] == {"near_breach_tickets": 1, "active_tickets": 4, "score": 100.0}


def test_weekly_kpis(raw_ticket_df, reference_time) -> None:
    kpis = {k["title"]: k for k in build_operational_intelligence(raw_ticket_df, reference_time)["kpis"]}

    assert kpis["Total Tickets"]["value"] == 6
    assert kpis["Total Tickets"]["trend"] == 0.0
    assert kpis["Open Backlog"]["value"] == 4
    assert kpis["Open Backlog"]["previous"] == 1
    assert kpis["Open Backlog"]["trend"] == 300.0
    assert kpis["Resolved"]["value"] == 2
    assert kpis["Bugs"]["value"] == 2


def test_agent_capacity_statuses(ticket_factory) -> None:
    tickets = [ticket_factory(assignee="Critical") for _ in range(16)]
    tickets += [ticket_factory(assignee="Over") for _ in range(13)]
    tickets += [ticket_factory(assignee="Calm") for _ in range(3)]
    rows = agent_capacity(preprocess_tickets(tickets), DEFAULT_RISK_CONFIG)

    assert [(r["name"], r["status"]) for r in rows] == [
        ("Critical", "Critical"),
        ("Over", "Overloaded"),
        ("Calm", "Balanced"),
    ]
    assert rows[2]["capacity_percent"] == 25


def test_high_volume_customers(ticket_factory, reference_time) -> None:
    tickets = [ticket_factory(age_hours=2, company="Loud") for _ in range(10)]
    tickets += [ticket_factory(age_hours=2, company="Chatty") for _ in range(5)]
    tickets += [ticket_factory(age_hours=30, company="Old") for _ in range(8)]
    insights = high_volume_customer_insights(
        preprocess_tickets(tickets), to_timestamp(reference_time), DEFAULT_RISK_CONFIG
    )

    assert [(i["company"], i["ticket_count"], i["severity"]) for i in insights] == [
        ("Loud", 10, "critical"),
        ("Chatty", 5, "warning"),
    ]

from __future__ import annotations

import pytest

from support_analytics.errors import InvalidParameter, InvalidRange
from support_analytics.metrics import (
    aging_buckets,
    resolution_time,
    sla_compliance,
    summarize_metrics,
    volume_metrics,
)


def test_volume_metrics(raw_ticket_df) -> None:
    volume = volume_metrics(raw_ticket_df)

    assert volume["total_tickets"] == 6
    assert volume["open_tickets"] == 4
    assert volume["resolved_tickets"] == 2
    assert volume["by_type"] == {"bug": 2, "feature": 1, "other": 3}
    assert volume["by_category"] == {
        "Auth": 1,
        "Billing": 1,
        "Bug": 1,
        "Incident": 1,
        "Reports": 1,
        "Unknown": 1,
    }
    assert volume["by_priority"] == {"Urgent": 1, "High": 1, "Medium": 3, "Low": 1, "Unknown": 0}


def test_sla_compliance_and_not_applicable(raw_ticket_df) -> None:
    assert sla_compliance(raw_ticket_df) == pytest.approx(80.0)

    no_due = raw_ticket_df.copy()
    no_due["Due By"] = None
    assert sla_compliance(no_due) is None


def test_resolution_time_whole_units(raw_ticket_df) -> None:
    assert resolution_time(raw_ticket_df) == pytest.approx(21.0)
    assert resolution_time(raw_ticket_df, unit="days") == pytest.approx(0.5)

    open_only = raw_ticket_df[~raw_ticket_df["Status"].isin(["Resolved", "Closed"])]
    assert resolution_time(open_only) is None

    with pytest.raises(InvalidParameter):
        resolution_time(raw_ticket_df, unit="weeks")


def test_aging_bands_have_inclusive_upper_edges(raw_ticket_df, reference_time) -> None:
    # Ticket 106 is exactly 168 hours old and stays in the 72-168h band.
    assert aging_buckets(raw_ticket_df, reference_time) == {
        "0-24h": 1,
        "24-72h": 1,
        "72-168h": 2,
        ">7d": 0,
    }


def test_aging_band_boundary_at_24_hours(ticket_factory, reference_time) -> None:
    tickets = [ticket_factory(age_hours=24), ticket_factory(age_hours=24.5), ticket_factory(age_hours=200)]
    assert aging_buckets(tickets, reference_time) == {"0-24h": 1, "24-72h": 1, "72-168h": 0, ">7d": 1}


def test_summarize_metrics(raw_ticket_df, reference_time) -> None:
    summary = summarize_metrics(raw_ticket_df, reference_time)

    assert summary["volume"]["total_tickets"] == 6
    assert summary["sla_compliance_pct"] == 80.0
    assert summary["sla_bearing_tickets"] == 5
    assert summary["avg_resolution_time"] == 21.0
    assert summary["resolution_unit"] == "hours"

    windowed = summarize_metrics(raw_ticket_df, reference_time, start="2026-01-12", end="2026-01-13")
    assert windowed["volume"]["total_tickets"] == 2
    assert windowed["sla_compliance_pct"] == 50.0

    with pytest.raises(InvalidRange):
        summarize_metrics(raw_ticket_df, reference_time, start="2026-01-13", end="2026-01-12")


def test_summarize_metrics_with_one_sided_bounds(raw_ticket_df, reference_time) -> None:
    before_history = summarize_metrics(raw_ticket_df, reference_time, end="2026-01-01")
    assert before_history["volume"]["total_tickets"] == 0
    assert before_history["sla_compliance_pct"] is None
    assert before_history["avg_resolution_time"] is None
    assert before_history["aging"] == {"0-24h": 0, "24-72h": 0, "72-168h": 0, ">7d": 0}

    after_now = summarize_metrics(raw_ticket_df, reference_time, start="2026-02-01")
    assert after_now["volume"]["total_tickets"] == 0

    up_to = summarize_metrics(raw_ticket_df, reference_time, end="2026-01-12")
    assert up_to["volume"]["total_tickets"] == 3

    since = summarize_metrics(raw_ticket_df, reference_time, start="2026-01-14")
    assert since["volume"]["total_tickets"] == 2

from __future__ import annotations

import pandas as pd
import pytest

from support_analytics.errors import MissingRequiredField, UnknownStatusError
from support_analytics.models import Priority, TicketStatus, normalize_priority, normalize_status
from support_analytics.preprocessing import (
    ensure_ticket_frame,
    prepare_tickets,
    preprocess_tickets,
    ticket_from_record,
)


def test_preprocess_tickets_aliases_and_types(raw_ticket_df) -> None:
    output = preprocess_tickets(raw_ticket_df)

    expected_columns = {
        "ticket_id",
        "subject",
        "status",
        "priority",
        "ticket_type",
        "module",
        "assignee",
        "company",
        "created_at",
        "updated_at",
        "resolved_at",
        "due_by",
        "is_resolved",
        "is_active",
    }
    assert expected_columns.issubset(set(output.columns))

    assert output["ticket_id"].tolist() == ["101", "102", "103", "104", "105", "106"]
    assert output["status"].tolist() == [
        "Open",
        "Pending",
        "Escalated",
        "Resolved",
        "Closed",
        "Waiting on Customer",
    ]
    assert output["priority"].tolist() == ["Urgent", "Medium", "High", "Low", "Medium", "Medium"]
    assert int(output["is_resolved"].sum()) == 2
    assert output.loc[5, "assignee"] == "Unassigned"
    assert output.loc[5, "company"] == "Unknown"
    assert output["created_at"].notna().all()


def test_resolved_tickets_fall_back_to_last_update(raw_ticket_df) -> None:
    output = preprocess_tickets(raw_ticket_df)

    resolved = output[output["is_resolved"]]
    assert (resolved["resolved_at"] == resolved["updated_at"]).all()
    assert output.loc[~output["is_resolved"], "resolved_at"].isna().all()


def test_rows_without_created_at_are_skipped_and_counted(raw_ticket_df, caplog) -> None:
    raw = raw_ticket_df.copy()
    raw.loc[1, "Created At"] = None
    raw.loc[2, "Created At"] = "not a date"

    with caplog.at_level("WARNING"):
        prepared = prepare_tickets(raw)

    assert len(prepared.frame) == 4
    assert prepared.skipped_count == 2
    assert prepared.skipped_ticket_ids == ["102", "103"]
    assert "without a creation timestamp" in caplog.text


def test_unknown_status_fails_loudly(raw_ticket_df) -> None:
    raw = raw_ticket_df.copy()
    raw.loc[0, "Status"] = "Snoozed"
    raw.loc[1, "Status"] = "On Hold"

    with pytest.raises(UnknownStatusError) as excinfo:
        preprocess_tickets(raw)

    assert excinfo.value.values == ["On Hold", "Snoozed"]


def test_status_and_priority_normalization() -> None:
    assert normalize_status("open (being processed)") is TicketStatus.OPEN
    assert normalize_status("WAITING ON CUSTOMER") is TicketStatus.WAITING_ON_CUSTOMER
    assert normalize_status("closed").is_resolved
    assert not normalize_status("On Tech").is_resolved
    with pytest.raises(UnknownStatusError):
        normalize_status(None)

    assert normalize_priority(4) is Priority.URGENT
    assert normalize_priority("3") is Priority.HIGH
    assert normalize_priority(1.0) is Priority.LOW
    assert normalize_priority("Normal") is Priority.MEDIUM
    assert normalize_priority("whatever") is Priority.UNKNOWN
    assert normalize_priority(None) is Priority.UNKNOWN


def test_user_mapping_and_record_input(ticket_factory) -> None:
    raw = pd.DataFrame(
        {
            "Ref": ["X-1"],
            "State": ["open"],
            "Opened": ["2026-01-14 08:00:00+02:00"],
        }
    )
    output = preprocess_tickets(raw, user_mapping={"Ref": "ticket_id", "Opened": "created_at"})

    assert output.loc[0, "ticket_id"] == "X-1"
    assert output.loc[0, "status"] == "Open"
    assert output.loc[0, "created_at"] == pd.Timestamp("2026-01-14 06:00:00")

    records = [ticket_factory(age_hours=3), ticket_factory(age_hours=5, status="Resolved")]
    frame = preprocess_tickets(records)
    assert frame["is_resolved"].tolist() == [False, True]
    assert ensure_ticket_frame(frame) is frame


def test_missing_ids_get_fallback_values() -> None:
    raw = pd.DataFrame(
        {
            "status": ["Open", "Open"],
            "created_at": ["2026-01-14 08:00:00", "2026-01-14 09:00:00"],
        }
    )
    output = preprocess_tickets(raw)
    assert output["ticket_id"].tolist() == ["TKT-000001", "TKT-000002"]


def test_ticket_from_record_is_strict() -> None:
    ticket = ticket_from_record(
        {
            "freshdesk_id": "55",
            "status": "Escalated",
            "priority": "4",
            "created_at": "2026-01-10T08:00:00Z",
            "cf_company": "Acme",
        }
    )
    assert ticket.ticket_id == "55"
    assert ticket.status == "Escalated"
    assert ticket.priority == "Urgent"
    assert ticket.company == "Acme"
    assert ticket.assignee == "Unassigned"

    with pytest.raises(MissingRequiredField) as excinfo:
        ticket_from_record({"freshdesk_id": "56", "status": "Open"})
    assert excinfo.value.field == "created_at"

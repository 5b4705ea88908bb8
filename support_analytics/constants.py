"""Constants and lookup maps for support ticket analytics."""

from __future__ import annotations

from typing import Dict, List

COLUMN_ALIASES: Dict[str, List[str]] = {
    "ticket_id": ["ticket_id", "freshdesk_id", "id", "ticket_number", "number"],
    "subject": ["subject", "title", "summary", "short_description"],
    "status": ["status", "state", "ticket_status"],
    "priority": ["priority", "severity", "urgency"],
    "ticket_type": ["ticket_type", "type", "issue_type"],
    "module": ["module", "cf_module", "category", "product_area"],
    "assignee": ["assignee", "responder", "responder_name", "assigned_to", "agent", "owner"],
    "company": ["company", "cf_company", "company_name", "customer", "organization"],
    "created_at": ["created_at", "created", "opened_at", "created_date"],
    "updated_at": ["updated_at", "last_updated", "modified_at", "updated"],
    "resolved_at": ["resolved_at", "closed_at", "resolution_date"],
    "due_by": ["due_by", "due_at", "sla_due", "sla_due_at", "resolution_due"],
}

# Keys are raw statuses passed through normalize_column_name.
STATUS_ALIASES: Dict[str, str] = {
    "open": "Open",
    "new": "Open",
    "open_being_processed": "Open",
    "pending": "Pending",
    "pending_awaiting_your_reply": "Pending",
    "waiting_on_customer": "Waiting on Customer",
    "on_tech": "On Tech",
    "on_product": "On Product",
    "escalated": "Escalated",
    "resolved": "Resolved",
    "closed": "Closed",
}

RESOLVED_STATUSES = {"Resolved", "Closed"}

PRIORITY_MAP = {
    "urgent": "Urgent",
    "critical": "Urgent",
    "4": "Urgent",
    "high": "High",
    "3": "High",
    "medium": "Medium",
    "normal": "Medium",
    "2": "Medium",
    "low": "Low",
    "1": "Low",
}

BUG_TYPES = {"bug", "defect"}
FEATURE_TYPES = {"feature request", "feature", "enhancement"}

MISSING_TEXT_VALUES = {"", "unknown", "nan", "none", "null"}

AGING_BAND_EDGES_HOURS = [24, 72, 168]
AGING_BAND_LABELS = ["0-24h", "24-72h", "72-168h", ">7d"]

BUCKET_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
}

RESOLUTION_UNIT_HOURS = {
    "hours": 1,
    "days": 24,
}

TICKET_COLUMNS = [
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
]

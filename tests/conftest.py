from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable

import pandas as pd
import pytest


@pytest.fixture
def reference_time() -> datetime:
    return datetime(2026, 1, 15, 12, 0, 0)


@pytest.fixture
def raw_ticket_df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "Freshdesk ID": [101, 102, 103, 104, 105, 106],
            "Subject": [
                "Login fails after password reset",
                "Export report to PDF",
                "Crash when saving invoice",
                "Billing question",
                "Dashboard is slow",
                "Where is my data",
            ],
            "Status": [
                "Open (Being Processed)",
                "Pending (Awaiting your Reply)",
                "Escalated",
                "Resolved",
                "Closed",
                "Waiting on Customer",
            ],
            "Priority": [4, 2, 3, 1, 2, 2],
            "Type": ["Bug", "Feature Request", "Bug", "Question", "Incident", None],
            "CF Module": ["Auth", "Reports", None, "Billing", None, None],
            "Responder Name": ["Asha", "Ben", "Asha", "Ben", "Chen", None],
            "CF Company": ["Acme", "Globex", "Acme", "Initech", "Globex", None],
            "Created At": [
                "2026-01-15 02:00:00",
                "2026-01-14 09:00:00",
                "2026-01-10 08:00:00",
                "2026-01-12 08:00:00",
                "2026-01-13 06:00:00",
                "2026-01-08 12:00:00",
            ],
            "Updated At": [
                "2026-01-15 03:00:00",
                "2026-01-14 10:00:00",
                "2026-01-11 08:00:00",
                "2026-01-12 20:00:00",
                "2026-01-14 12:00:00",
                "2026-01-09 12:00:00",
            ],
            "Due By": [
                "2026-01-15 10:00:00",
                "2026-01-18 09:00:00",
                "2026-01-20 08:00:00",
                "2026-01-13 08:00:00",
                "2026-01-13 18:00:00",
                None,
            ],
        }
    )


@pytest.fixture
def ticket_factory(reference_time) -> Callable[..., dict[str, Any]]:
    """Build one canonical ticket record relative to ``reference_time``."""
    counter = {"next": 1}

    def _make(
        age_hours: float = 1.0,
        status: str = "Open",
        due_in_hours: float | None = None,
        updated_after_hours: float = 0.5,
        **overrides: Any,
    ) -> dict[str, Any]:
        created = reference_time - timedelta(hours=age_hours)
        record = {
            "ticket_id": f"T{counter['next']:04d}",
            "status": status,
            "priority": "Medium",
            "ticket_type": "Question",
            "assignee": "Dana",
            "company": "Acme",
            "created_at": created,
            "updated_at": created + timedelta(hours=updated_after_hours),
            "due_by": None if due_in_hours is None else reference_time + timedelta(hours=due_in_hours),
        }
        counter["next"] += 1
        record.update(overrides)
        return record

    return _make

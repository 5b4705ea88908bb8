"""Ticket sources queried by the analytics pipeline."""

from __future__ import annotations

import logging
from typing import Any

import pandas as pd

from .aggregation import DateLike
from .constants import TICKET_COLUMNS
from .metrics import filter_created_between
from .preprocessing import PreparedTickets, prepare_tickets

logger = logging.getLogger(__name__)


class TicketStore:
    """Source of prepared ticket frames, optionally limited to a creation-date range."""

    def fetch_tickets(self, start: DateLike | None = None, end: DateLike | None = None) -> pd.DataFrame:
        raise NotImplementedError


class InMemoryTicketStore(TicketStore):
    def __init__(self, tickets: Any | None = None) -> None:
        self._prepared = prepare_tickets(pd.DataFrame(columns=TICKET_COLUMNS))
        if tickets is not None:
            self.load(tickets)

    @property
    def skipped_count(self) -> int:
        return self._prepared.skipped_count

    def __len__(self) -> int:
        return len(self._prepared.frame)

    def load(self, raw: Any, user_mapping: dict[str, str] | None = None, append: bool = False) -> PreparedTickets:
        """Normalize ``raw`` and replace (or extend) the stored tickets."""
        prepared = prepare_tickets(raw, user_mapping=user_mapping)
        if append and not self._prepared.frame.empty:
            combined = pd.concat([self._prepared.frame, prepared.frame], ignore_index=True)
            combined = combined.drop_duplicates(subset="ticket_id", keep="last").reset_index(drop=True)
            prepared = PreparedTickets(
                frame=combined,
                skipped_ticket_ids=self._prepared.skipped_ticket_ids + prepared.skipped_ticket_ids,
            )
        self._prepared = prepared
        logger.info("Ticket store holds %d ticket(s), %d skipped", len(prepared.frame), prepared.skipped_count)
        return prepared

    def fetch_tickets(self, start: DateLike | None = None, end: DateLike | None = None) -> pd.DataFrame:
        return filter_created_between(self._prepared.frame, start, end).copy()

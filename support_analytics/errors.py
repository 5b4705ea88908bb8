"""Error taxonomy for the ticket analytics core."""

from __future__ import annotations


class TicketAnalyticsError(Exception):
    """Base class for every error raised by this package."""


class InvalidRange(TicketAnalyticsError, ValueError):
    def __init__(self, start: object, end: object) -> None:
        super().__init__(f"Invalid range: start {start} is after end {end}")
        self.start = start
        self.end = end


class InvalidParameter(TicketAnalyticsError, ValueError):
    pass


class MissingRequiredField(TicketAnalyticsError, ValueError):
    def __init__(self, ticket_id: str | None, field: str) -> None:
        super().__init__(f"Ticket {ticket_id or '<unknown>'} is missing required field '{field}'")
        self.ticket_id = ticket_id
        self.field = field


class UnknownStatusError(TicketAnalyticsError, ValueError):
    def __init__(self, values: list[str]) -> None:
        shown = ", ".join(repr(v) for v in values[:10])
        super().__init__(f"Unrecognized ticket status value(s): {shown}")
        self.values = values


class UpstreamUnavailable(TicketAnalyticsError, RuntimeError):
    """A collaborator outside the core (ticket store, narrative generator) failed."""

    def __init__(self, service: str, reason: str) -> None:
        super().__init__(f"{service} unavailable: {reason}")
        self.service = service
        self.reason = reason

"""Support ticket risk analytics package."""

from .pipeline import TicketAnalysisSession, build_trend_intelligence
from .risk_scanner import scan_active_risks
from .trends import build_volume_sla_trend

__all__ = ["TicketAnalysisSession", "build_trend_intelligence", "scan_active_risks", "build_volume_sla_trend"]

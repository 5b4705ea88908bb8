"""Threshold mapping from scalar signals to risk tiers."""

from __future__ import annotations

from .config import DEFAULT_RISK_CONFIG, PeriodThresholds, RiskConfig, RuleTier
from .models import RiskLevel


def classify_count(value: float, tier: RuleTier) -> RiskLevel:
    if value > tier.high_above:
        return RiskLevel.HIGH
    if tier.medium_above is not None and value > tier.medium_above:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def classify_period(
    avg_sla: float | None,
    volume_change_percent: float,
    thresholds: PeriodThresholds | None = None,
) -> RiskLevel:
    """Joint SLA / volume classifier for a comparison window.

    Either condition is enough for a tier, and the more severe tier wins.
    An ``avg_sla`` of ``None`` (no SLA-bearing tickets) never triggers the SLA
    conditions.
    """
    thresholds = thresholds or DEFAULT_RISK_CONFIG.period
    sla_known = avg_sla is not None

    if (sla_known and avg_sla < thresholds.sla_high_below) or volume_change_percent > thresholds.volume_high_above:
        return RiskLevel.HIGH
    if (sla_known and avg_sla < thresholds.sla_medium_below) or volume_change_percent > thresholds.volume_medium_above:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def classify_posture(escalation_count: int, config: RiskConfig | None = None) -> str:
    config = config or DEFAULT_RISK_CONFIG
    if escalation_count > config.posture_critical_above:
        return "Critical"
    if escalation_count > config.posture_deteriorating_above:
        return "Deteriorating"
    return "Stable"


def highest_level(levels: list[RiskLevel]) -> RiskLevel:
    if not levels:
        return RiskLevel.LOW
    return max(levels, key=lambda level: level.rank)

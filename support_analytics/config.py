"""Risk thresholds and runtime settings.

Every cutoff used by the risk scanner, the classifiers and the operational
intelligence views lives on ``RiskConfig``. Callers pass one instance down
instead of re-declaring literals per call site. ``load_risk_config`` applies
``SUPPORTX_*`` environment overrides on top of the defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Mapping

from .errors import InvalidParameter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RuleTier:
    """Count cutoffs for one risk rule. ``medium_above=None`` means no MEDIUM band."""

    high_above: float
    medium_above: float | None = None


@dataclass(frozen=True)
class PeriodThresholds:
    sla_high_below: float = 80.0
    sla_medium_below: float = 90.0
    volume_high_above: float = 25.0
    volume_medium_above: float = 15.0


@dataclass(frozen=True)
class RiskConfig:
    # One agent-load scale for both the overload rule and the capacity view:
    # above 12 active tickets is overloaded, above 15 is critical.
    agent_overload_threshold: int = 12
    agent_critical_load: int = 15
    sla_remaining_fraction: float = 0.20
    volume_window_hours: int = 24
    trend_window_hours: int = 24

    escalation_tier: RuleTier = RuleTier(high_above=8, medium_above=0)
    sla_tier: RuleTier = RuleTier(high_above=5, medium_above=0)
    overload_tier: RuleTier = RuleTier(high_above=2, medium_above=0)
    volume_spike_tier: RuleTier = RuleTier(high_above=20)
    period: PeriodThresholds = PeriodThresholds()

    posture_deteriorating_above: int = 5
    posture_critical_above: int = 10

    stalled_after_days: int = 3
    stalled_critical_days: int = 5
    high_volume_customer_tickets: int = 5
    high_volume_customer_critical: int = 10
    customer_high_urgent_above: int = 3
    customer_busy_open_above: int = 10
    near_breach_hours: int = 4
    kpi_window_days: int = 7


DEFAULT_RISK_CONFIG = RiskConfig()

_ENV_PREFIX = "SUPPORTX_"


def _coerce(name: str, raw: str, current: object) -> object:
    try:
        if isinstance(current, int):
            return int(raw)
        return float(raw)
    except ValueError as exc:
        raise InvalidParameter(f"{_ENV_PREFIX}{name.upper()} must be numeric, got {raw!r}") from exc


def load_risk_config(env: Mapping[str, str] | None = None, base: RiskConfig | None = None) -> RiskConfig:
    """Build a ``RiskConfig`` from ``SUPPORTX_<FIELD>`` overrides.

    Only scalar fields can be overridden; tiers keep their defaults.
    """
    env = os.environ if env is None else env
    config = base or DEFAULT_RISK_CONFIG
    overrides: dict[str, object] = {}
    for item in fields(config):
        current = getattr(config, item.name)
        if not isinstance(current, (int, float)):
            continue
        raw = env.get(f"{_ENV_PREFIX}{item.name.upper()}")
        if raw is None or not str(raw).strip():
            continue
        overrides[item.name] = _coerce(item.name, str(raw).strip(), current)

    if overrides:
        logger.info("Risk config overrides applied: %s", overrides)
    config = replace(config, **overrides)
    if config.agent_critical_load < config.agent_overload_threshold:
        raise InvalidParameter("agent_critical_load must not be below agent_overload_threshold")
    return config


def llm_model() -> str:
    return os.getenv("SUPPORTX_LLM_MODEL", "gpt-4.1-mini")


def log_level() -> str:
    return os.getenv("SUPPORTX_LOG_LEVEL", "INFO").upper()

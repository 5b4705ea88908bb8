"""Narrative generation for trend signals.

``NarrativeGateway`` is the seam to whatever text-generation service writes the
executive summary. ``OpenAINarrativeGateway`` talks to OpenAI; the cached
wrapper avoids regenerating a narrative when the period's numbers have barely
moved.
"""

from __future__ import annotations

import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional

from .config import llm_model
from .errors import UpstreamUnavailable
from .models import NarrativeInsight, TrendSignals

logger = logging.getLogger(__name__)

CACHE_VOLUME_TOLERANCE = 0.10
CACHE_MAX_ENTRIES = 256


def _signed(value: float | None, suffix: str) -> str:
    if value is None:
        return "n/a"
    sign = "+" if value > 0 else ""
    return f"{sign}{value}{suffix}"


def build_trend_prompt(signals: TrendSignals) -> str:
    avg_sla = "n/a" if signals.avg_sla is None else f"{signals.avg_sla}%"
    return (
        "You are an enterprise support intelligence analyst.\n"
        "Analyze the operational trend for the selected period.\n\n"
        "Inputs:\n"
        f"- Period: {signals.start_date.isoformat()} to {signals.end_date.isoformat()}\n"
        f"- Average ticket volume: {signals.avg_volume}\n"
        f"- Volume change: {_signed(signals.volume_change_percent, '%')}\n"
        f"- Average SLA: {avg_sla}\n"
        f"- SLA change: {_signed(signals.sla_change_percent, ' pts')}\n"
        f"- Risk classification: {signals.risk_level.value}\n\n"
        "Provide:\n"
        "1. summary: executive summary (2-3 lines)\n"
        "2. root_cause: root cause hypothesis\n"
        "3. recommended_action: recommended action\n"
        "4. confidence_score: confidence score (0-100)\n\n"
        "Return strict JSON with exactly those keys."
    )


def _extract_json_blob(text: str) -> Optional[dict[str, Any]]:
    candidate = text.strip()
    if not candidate:
        return None

    if candidate.startswith("```"):
        candidate = re.sub(r"^```(?:json)?", "", candidate).strip()
        candidate = re.sub(r"```$", "", candidate).strip()

    start = candidate.find("{")
    end = candidate.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None

    try:
        parsed = json.loads(candidate[start : end + 1])
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _openai_client() -> tuple[Any | None, str | None]:
    # Test runs never reach the live service, even with a key in the environment.
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None, None

    api_key = os.getenv("OPENAI_API_KEY")
    if not api_key:
        return None, None
    from openai import OpenAI

    return OpenAI(api_key=api_key), llm_model()


class NarrativeGateway:
    """Turns trend signals into a narrative insight."""

    def generate(self, signals: TrendSignals, org_id: str, force_refresh: bool = False) -> NarrativeInsight:
        raise NotImplementedError


class OpenAINarrativeGateway(NarrativeGateway):
    def __init__(self, client: Any | None = None, model: str | None = None) -> None:
        if client is None:
            client, default_model = _openai_client()
            model = model or default_model
        self.client = client
        self.model = model or llm_model()

    def generate(self, signals: TrendSignals, org_id: str, force_refresh: bool = False) -> NarrativeInsight:
        if self.client is None:
            raise UpstreamUnavailable("narrative", "OPENAI_API_KEY not configured")

        try:
            response = self.client.responses.create(
                model=self.model,
                temperature=0,
                input=[
                    {
                        "role": "system",
                        "content": "You write concise support operations briefings. Return only JSON.",
                    },
                    {"role": "user", "content": build_trend_prompt(signals)},
                ],
            )
            text = response.output_text
        except Exception as exc:
            raise UpstreamUnavailable("narrative", str(exc)) from exc

        parsed = _extract_json_blob(text or "")
        if not parsed:
            raise UpstreamUnavailable("narrative", "response did not contain a JSON object")

        insight = NarrativeInsight.from_payload(parsed)
        logger.info("Generated trend narrative for org %s (%s)", org_id, signals.risk_level.value)
        return insight


@dataclass
class CachedNarrative:
    avg_volume: float
    insight: NarrativeInsight


class CachedNarrativeGateway(NarrativeGateway):
    """Reuse a stored narrative for the same org, period and risk level.

    The cached entry is reused only while average volume stays within
    ``tolerance`` of the volume it was generated for. At most ``max_entries``
    narratives are kept; the oldest-written entry is evicted first.
    """

    def __init__(
        self,
        inner: NarrativeGateway,
        tolerance: float = CACHE_VOLUME_TOLERANCE,
        max_entries: int = CACHE_MAX_ENTRIES,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.inner = inner
        self.tolerance = tolerance
        self.max_entries = max_entries
        self._entries: dict[tuple[str, date, date, str], CachedNarrative] = {}

    @staticmethod
    def _key(signals: TrendSignals, org_id: str) -> tuple[str, date, date, str]:
        return (org_id, signals.start_date, signals.end_date, signals.risk_level.value)

    def _is_fresh(self, cached: CachedNarrative, avg_volume: float) -> bool:
        if cached.avg_volume == 0:
            return avg_volume == 0
        return abs(cached.avg_volume - avg_volume) / cached.avg_volume < self.tolerance

    def generate(self, signals: TrendSignals, org_id: str, force_refresh: bool = False) -> NarrativeInsight:
        key = self._key(signals, org_id)
        cached = self._entries.get(key)
        if not force_refresh and cached is not None and self._is_fresh(cached, signals.avg_volume):
            logger.debug("Reusing cached narrative for %s", key)
            return cached.insight

        insight = self.inner.generate(signals, org_id, force_refresh=force_refresh)
        self._entries.pop(key, None)
        self._entries[key] = CachedNarrative(avg_volume=signals.avg_volume, insight=insight)
        while len(self._entries) > self.max_entries:
            evicted = next(iter(self._entries))
            del self._entries[evicted]
            logger.debug("Evicted cached narrative for %s", evicted)
        return insight

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

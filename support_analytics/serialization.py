"""JSON-safe conversion of frames, timestamps and result objects."""

from __future__ import annotations

import json
import math
from datetime import date, datetime
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd

RECORD_COLUMNS_DROPPED = ["is_resolved", "is_active"]


def frame_to_records(df: pd.DataFrame | None, limit: int | None = None) -> list[dict[str, Any]]:
    if df is None or df.empty:
        return []
    frame = df.drop(columns=[c for c in RECORD_COLUMNS_DROPPED if c in df.columns])
    if limit is not None:
        frame = frame.head(limit).copy()
    for col in frame.columns:
        if pd.api.types.is_datetime64_any_dtype(frame[col]):
            frame[col] = frame[col].map(lambda x: x.isoformat() if pd.notna(x) else None)
    return json.loads(frame.to_json(orient="records", date_format="iso"))


def json_safe(value: Any) -> Any:
    if value is None or value is pd.NaT:
        return None
    if hasattr(value, "to_dict") and not isinstance(value, (pd.DataFrame, pd.Series)):
        return json_safe(value.to_dict())
    if isinstance(value, pd.DataFrame):
        return frame_to_records(value)
    if isinstance(value, pd.Series):
        return [json_safe(v) for v in value.tolist()]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else value.isoformat()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    if isinstance(value, np.integer):
        return int(value)
    if isinstance(value, (float, np.floating)):
        if math.isnan(value) or math.isinf(value):
            return None
        return float(value)
    return value

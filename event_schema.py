"""Canonical event-frame validation/coercion at the store boundary."""

from __future__ import annotations

import logging

import pandas as pd

from shared import EVENT_COLUMN_MAP, EVENT_COLUMNS, normalize_category

logger = logging.getLogger(__name__)

_TEXT_COLUMNS = ["machine", "crew", "shift", "work_order", "comment", "linked_run_id"]


def _blank_to_none(value):
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    text = str(value).strip()
    return text or None


def _object_column(df, values):
    """Object-dtype column; keeps None as None instead of letting pandas infer NaN."""
    return pd.Series(values, index=df.index, dtype=object)


def empty_events():
    """An event frame with the canonical columns and no rows."""
    return coerce_events([])


def coerce_events(raw):
    """Rename store rows to canonical event columns and normalize values.

    - store column names (press, team, minutes/units, ...) -> canonical names
    - blank/missing category -> 'Unknown' (case-sensitive otherwise)
    - blank text fields -> None
    - impact -> float, missing -> 0
    - date -> Timestamp (day resolution)

    Rows are never dropped or repaired beyond that; a negative impact is
    logged and passed through.
    """
    df = raw.copy() if isinstance(raw, pd.DataFrame) else pd.DataFrame(list(raw or []))
    df = df.rename(columns={k: v for k, v in EVENT_COLUMN_MAP.items() if k in df.columns})

    for col in EVENT_COLUMNS:
        if col not in df.columns:
            df[col] = None

    df["date"] = pd.to_datetime(df["date"], errors="coerce").dt.normalize()
    df["category"] = _object_column(df, [normalize_category(v) for v in df["category"]])
    for col in _TEXT_COLUMNS:
        df[col] = _object_column(df, [_blank_to_none(v) for v in df[col]])
    df["impact"] = pd.to_numeric(df["impact"], errors="coerce").fillna(0.0).astype(float)

    negative = int((df["impact"] < 0).sum())
    if negative:
        logger.warning("Event frame contains %d rows with negative impact", negative)

    return df[EVENT_COLUMNS].reset_index(drop=True)

"""Configuration: logging, Supabase credentials, and detection thresholds."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_LOOKBACK_DAYS = 30

# Fixed trend-label cut-off (percent change vs previous window). Not tunable;
# the training trend uses DetectionSettings.trend_increase_threshold instead.
TREND_CHANGE_PCT = 10.0


def configure_logging(level=None):
    """Configure root logging once for entry points (CLI, scripts)."""
    level = level or os.getenv("ISSUES_LOG_LEVEL", "INFO")
    logging.basicConfig(level=level, format=LOG_FORMAT)


# ---------------------------------------------------------------------------
# Supabase credentials
# ---------------------------------------------------------------------------
def supabase_credentials():
    """Return (url, key) from the environment or Streamlit secrets.

    Either value may be an empty string when nothing is configured.
    """
    url = os.environ.get("SUPABASE_URL", "")
    key = os.environ.get("SUPABASE_KEY", "")

    if not url or not key:
        try:
            import streamlit as st
            url = url or st.secrets.get("SUPABASE_URL", "")
            key = key or st.secrets.get("SUPABASE_KEY", "")
        except Exception:
            # streamlit missing or no secrets.toml; env vars are the only source
            pass

    return url, key


# ---------------------------------------------------------------------------
# Detection thresholds
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class DetectionSettings:
    """Tunable thresholds for training-need detection.

    min_occurrences:
        A crew/category pair needs at least this many events in the window.
    min_impact:
        ...and at least this much summed impact (minutes or units).
    variance_threshold:
        Percent above the machine's crew average that marks a crew as an
        outlier (``above_team_average``).
    trend_increase_threshold:
        Percent change vs the previous window that counts as increasing
        (or, negated, decreasing) when scoring training priority.
    lookback_days:
        Window length used when the caller gives none.
    """

    min_occurrences: int = 3
    min_impact: float = 0.0
    variance_threshold: float = 20.0
    trend_increase_threshold: float = 15.0
    lookback_days: int = DEFAULT_LOOKBACK_DAYS

    @classmethod
    def from_row(cls, row):
        """Overlay a stored settings row on the defaults; unknown keys are ignored."""
        if not row:
            return cls()
        defaults = cls()
        values = {}
        for f in fields(cls):
            raw = row.get(f.name)
            if raw is None or raw == "":
                values[f.name] = getattr(defaults, f.name)
                continue
            try:
                values[f.name] = _cast(f.name, raw)
            except (TypeError, ValueError):
                logger.warning("Ignoring bad setting %s=%r; using default", f.name, raw)
                values[f.name] = getattr(defaults, f.name)
        return cls(**values)

    def to_dict(self):
        return asdict(self)


_INT_FIELDS = {"min_occurrences", "lookback_days"}


def _cast(name, raw):
    if name in _INT_FIELDS:
        return int(float(raw))
    return float(raw)

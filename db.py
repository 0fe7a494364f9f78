"""
Supabase Database Layer for the Recurring Issue Analytics Engine
=================================================================
Event store (downtime/spoilage events), ignore registry, production-run
lookup, per-machine targets, and detection settings.

A failed query or an unconfigured client raises CollaboratorUnavailable;
no method returns partial or empty data in its place.

Connection: set SUPABASE_URL and SUPABASE_KEY as environment variables
or in Streamlit secrets (.streamlit/secrets.toml or Cloud dashboard).
"""

from __future__ import annotations

import logging

import pandas as pd
from postgrest.exceptions import APIError

from config import DetectionSettings, supabase_credentials
from errors import CollaboratorUnavailable, ConflictError, InvalidInput
from event_schema import coerce_events
from models import IgnoreEntry
from shared import (
    EVENT_TABLES,
    IMPACT_FIELD,
    ISSUE_TYPES,
    UNKNOWN_CATEGORY,
    is_all_machines,
    normalize_category,
)

logger = logging.getLogger(__name__)

IGNORE_TABLE = "ignored_issue_categories"
RUNS_TABLE = "production_runs"
TARGETS_TABLE = "press_targets"
SETTINGS_TABLE = "training_settings"
DAILY_TABLE = "daily_production_summary"

UNIQUE_VIOLATION = "23505"

# ---------------------------------------------------------------------------
# Connection
# ---------------------------------------------------------------------------
_client = None


def get_client():
    """Get Supabase client. Returns None if not configured."""
    global _client
    if _client is not None:
        return _client

    url, key = supabase_credentials()
    if not url or not key:
        return None

    from supabase import create_client
    _client = create_client(url, key)
    return _client


def is_connected():
    """Check if database credentials are configured."""
    return get_client() is not None


def _iso(day):
    return day.isoformat() if hasattr(day, "isoformat") else str(day)


def _run_ids(values):
    """Distinct, non-blank run ids in first-seen order (NaN and None dropped)."""
    return [r for r in dict.fromkeys(values) if r is not None and not pd.isna(r) and str(r).strip()]


class SupabaseStore:
    """Event store, ignore registry and settings store over one Supabase client."""

    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_client()
        if self._client is None:
            raise CollaboratorUnavailable(
                "connect", RuntimeError("SUPABASE_URL / SUPABASE_KEY are not configured")
            )
        return self._client

    def _execute(self, operation, query):
        try:
            return query.execute()
        except Exception as e:
            logger.error("%s failed: %s", operation, e)
            raise CollaboratorUnavailable(operation, e) from e

    @staticmethod
    def _check_issue_type(issue_type):
        if issue_type not in ISSUE_TYPES:
            raise InvalidInput(f"Unknown issue type {issue_type!r}; expected one of {ISSUE_TYPES}")

    # -----------------------------------------------------------------------
    # Events
    # -----------------------------------------------------------------------
    def query_events(self, issue_type, start, end, machine=None, category=None):
        """Fetch events in [start, end] as a canonical frame, newest first.

        The 'Unknown' category also covers NULL/blank rows, so it is filtered
        after normalization rather than in the query.
        """
        self._check_issue_type(issue_type)
        table = EVENT_TABLES[issue_type]
        impact = IMPACT_FIELD[issue_type]
        cols = (
            f"id, date, press, category, team, shift, {impact}, "
            "production_run_id, work_order, comments"
        )

        query = (
            self.client.table(table)
            .select(cols)
            .gte("date", _iso(start))
            .lte("date", _iso(end))
        )
        if not is_all_machines(machine):
            query = query.eq("press", machine)
        if category is not None and category != UNKNOWN_CATEGORY:
            query = query.eq("category", category)
        query = query.order("date", desc=True)

        resp = self._execute(f"query {table}", query)
        events = coerce_events(resp.data or [])
        if category is not None:
            events = events[events["category"] == category].reset_index(drop=True)
        logger.debug("%s: %d events %s..%s machine=%s", table, len(events), start, end, machine)
        return events

    def query_events_by_run_ids(self, issue_type, run_ids, exclude_category):
        """Other categories of `issue_type` logged against any of `run_ids`.

        Returns a frame with columns category, run_id (one row per event).
        """
        self._check_issue_type(issue_type)
        run_ids = _run_ids(run_ids)
        if not run_ids:
            return pd.DataFrame(columns=["category", "run_id"])

        table = EVENT_TABLES[issue_type]
        query = (
            self.client.table(table)
            .select("category, production_run_id")
            .in_("production_run_id", run_ids)
        )
        if exclude_category != UNKNOWN_CATEGORY:
            query = query.neq("category", exclude_category)

        resp = self._execute(f"query {table} by run ids", query)
        df = pd.DataFrame(resp.data or [])
        if len(df) == 0:
            return pd.DataFrame(columns=["category", "run_id"])
        if "category" not in df.columns:
            df["category"] = None
        df["category"] = df["category"].map(normalize_category)
        df = df.rename(columns={"production_run_id": "run_id"})
        df = df[df["category"] != exclude_category]
        return df[["category", "run_id"]].reset_index(drop=True)

    def get_run_work_orders(self, run_ids):
        """Map production_run id -> work_order for the given runs."""
        run_ids = _run_ids(run_ids)
        if not run_ids:
            return {}
        query = self.client.table(RUNS_TABLE).select("id, work_order").in_("id", run_ids)
        resp = self._execute(f"query {RUNS_TABLE}", query)
        return {str(row["id"]): row.get("work_order") for row in (resp.data or [])}

    def query_production_runs(self, start, end, machine=None, shift=None, crew=None):
        """Production runs in [start, end] as a frame keyed by machine/shift/crew."""
        cols = [
            "date", "press", "shift", "team", "calculated_run_speed",
            "make_ready_minutes", "spoilage_percentage", "good_production",
        ]
        query = (
            self.client.table(RUNS_TABLE)
            .select(", ".join(cols))
            .gte("date", _iso(start))
            .lte("date", _iso(end))
        )
        if not is_all_machines(machine):
            query = query.eq("press", machine)
        if shift:
            query = query.eq("shift", shift)
        if crew:
            query = query.eq("team", crew)

        resp = self._execute(f"query {RUNS_TABLE}", query)
        df = pd.DataFrame(resp.data or [])
        for col in cols:
            if col not in df.columns:
                df[col] = None
        for col in cols[4:]:
            df[col] = pd.to_numeric(df[col], errors="coerce")
        return df[cols].rename(columns={"press": "machine", "team": "crew"})

    # -----------------------------------------------------------------------
    # Ignore registry
    # -----------------------------------------------------------------------
    def list_ignored(self, issue_type, category=None):
        """All ignore entries for an issue type (optionally one category)."""
        self._check_issue_type(issue_type)
        query = (
            self.client.table(IGNORE_TABLE)
            .select("id, category, issue_type, press, reason, ignored_by, created_at")
            .eq("issue_type", issue_type)
        )
        if category is not None:
            query = query.eq("category", category)
        resp = self._execute(f"query {IGNORE_TABLE}", query)
        return [IgnoreEntry.from_row(row) for row in (resp.data or [])]

    def ignore_exists(self, category, issue_type, scope_machine=None):
        """True when the exact (category, issue_type, scope) tuple is stored."""
        query = (
            self.client.table(IGNORE_TABLE)
            .select("id")
            .eq("category", category)
            .eq("issue_type", issue_type)
        )
        if scope_machine is None:
            query = query.is_("press", "null")
        else:
            query = query.eq("press", scope_machine)
        resp = self._execute(f"check {IGNORE_TABLE}", query.limit(1))
        return bool(resp.data)

    def insert_ignored(self, entry):
        """Insert an ignore entry. Duplicate tuples raise ConflictError.

        NULL scopes are not covered by a plain unique index, hence the
        existence check before the insert.
        """
        self._check_issue_type(entry.issue_type)
        if self.ignore_exists(entry.category, entry.issue_type, entry.scope_machine):
            raise ConflictError(entry.category, entry.issue_type, entry.scope_machine)

        try:
            resp = self.client.table(IGNORE_TABLE).insert(entry.to_row()).execute()
        except APIError as e:
            if getattr(e, "code", None) == UNIQUE_VIOLATION:
                raise ConflictError(entry.category, entry.issue_type, entry.scope_machine) from e
            logger.error("insert %s failed: %s", IGNORE_TABLE, e)
            raise CollaboratorUnavailable(f"insert {IGNORE_TABLE}", e) from e
        except Exception as e:
            logger.error("insert %s failed: %s", IGNORE_TABLE, e)
            raise CollaboratorUnavailable(f"insert {IGNORE_TABLE}", e) from e

        rows = resp.data or []
        return IgnoreEntry.from_row(rows[0]) if rows else entry

    def delete_ignored(self, ids):
        """Delete ignore entries by id. Returns the number of ids requested."""
        ids = [i for i in ids if i is not None]
        if not ids:
            return 0
        query = self.client.table(IGNORE_TABLE).delete().in_("id", ids)
        self._execute(f"delete {IGNORE_TABLE}", query)
        return len(ids)

    # -----------------------------------------------------------------------
    # Targets, settings, daily production
    # -----------------------------------------------------------------------
    def get_machine_targets(self):
        """Map machine code -> {target_run_speed, target_efficiency_pct, target_spoilage_pct}."""
        query = self.client.table(TARGETS_TABLE).select(
            "press, target_run_speed, target_efficiency_pct, target_spoilage_pct"
        )
        resp = self._execute(f"query {TARGETS_TABLE}", query)
        targets = {}
        for row in resp.data or []:
            targets[row["press"]] = {
                "target_run_speed": float(row.get("target_run_speed") or 0),
                "target_efficiency_pct": float(row.get("target_efficiency_pct") or 0),
                "target_spoilage_pct": float(row.get("target_spoilage_pct") or 0),
            }
        return targets

    def get_detection_settings(self):
        """Stored thresholds overlaid on DetectionSettings defaults."""
        query = self.client.table(SETTINGS_TABLE).select("*").limit(1)
        resp = self._execute(f"query {SETTINGS_TABLE}", query)
        return DetectionSettings.from_row(resp.data[0] if resp.data else None)

    def get_daily_production(self, day):
        """One day's per-machine production summary as a DataFrame."""
        query = (
            self.client.table(DAILY_TABLE)
            .select("press, date, total_production, avg_run_speed, avg_spoilage_pct, efficiency_pct")
            .eq("date", _iso(day))
            .order("press")
        )
        resp = self._execute(f"query {DAILY_TABLE}", query)
        df = pd.DataFrame(resp.data or [])
        cols = ["press", "date", "total_production", "avg_run_speed", "avg_spoilage_pct", "efficiency_pct"]
        for col in cols:
            if col not in df.columns:
                df[col] = None
        for col in cols[2:]:
            df[col] = pd.to_numeric(df[col], errors="coerce").fillna(0.0)
        return df.rename(columns={"press": "machine"})[["machine"] + cols[1:]]

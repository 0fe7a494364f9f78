"""
Recurring Issue Aggregation
===========================
Turns raw downtime/spoilage events into per-category issue summaries for a
window, labels each with a trend against the equal-length previous window,
and splits the result into active vs ignored issues.

  aggregate_issues(store, "downtime", start, end, machine="LP05")
      -> IssueReport(active=[IssueSummary...], ignored=[IssueSummary...])
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from config import DEFAULT_LOOKBACK_DAYS, TREND_CHANGE_PCT
from errors import InvalidInput
from ignore_list import partition_issues
from models import IssueReport, IssueSummary
from shared import DOWNTIME, ISSUE_TYPES, MACHINE_CODES, is_all_machines

logger = logging.getLogger(__name__)

INCREASING = "increasing"
STABLE = "stable"
DECREASING = "decreasing"
TRENDS = (INCREASING, STABLE, DECREASING)


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------
def _as_date(value, name):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value)
        except ValueError:
            pass
    raise InvalidInput(f"{name} must be a date or YYYY-MM-DD string, got {value!r}")


def validate_query(issue_type, start, end, machine=None):
    """Check a query's arguments and return (start, end) as dates."""
    if issue_type not in ISSUE_TYPES:
        raise InvalidInput(f"Unknown issue type {issue_type!r}; expected one of {ISSUE_TYPES}")
    return validate_window(start, end, machine)


def validate_window(start, end, machine=None):
    """Check a date window and machine filter; return (start, end) as dates."""
    start = _as_date(start, "start")
    end = _as_date(end, "end")
    if start > end:
        raise InvalidInput(f"Window start {start} is after end {end}")
    if not is_all_machines(machine) and machine not in MACHINE_CODES:
        raise InvalidInput(f"Unknown machine {machine!r}; expected one of {MACHINE_CODES} or 'all'")
    return start, end


# ---------------------------------------------------------------------------
# Windows
# ---------------------------------------------------------------------------
def window_for_lookback(days=DEFAULT_LOOKBACK_DAYS, today=None):
    """[today - days, today], the dashboard's 'last N days' window."""
    if days is None or int(days) <= 0:
        raise InvalidInput(f"Lookback must be a positive number of days, got {days!r}")
    today = _as_date(today, "today") if today is not None else date.today()
    return today - timedelta(days=int(days)), today


def previous_window(start, end):
    """The equal-length window ending the day before `start`.

    Both bounds are inclusive, so a [start, end] span of N calendar days maps
    to another N-day span.
    """
    start = _as_date(start, "start")
    end = _as_date(end, "end")
    n_days = (end - start).days + 1
    prev_end = start - timedelta(days=1)
    prev_start = prev_end - timedelta(days=n_days - 1)
    return prev_start, prev_end


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------
def classify_trend(current_count, previous_count, threshold_pct=TREND_CHANGE_PCT):
    """Label the change from the previous window's count to the current one.

    previous 0 -> increasing if anything happened now, else stable.
    Otherwise +/- threshold_pct percent change splits increasing/stable/decreasing.
    """
    if previous_count == 0:
        return INCREASING if current_count > 0 else STABLE

    change = (current_count - previous_count) / previous_count * 100
    if change > threshold_pct:
        return INCREASING
    if change < -threshold_pct:
        return DECREASING
    return STABLE


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------
def _most_frequent(values):
    """Most frequent non-empty value; ties go to the first one seen."""
    values = values.dropna()
    values = values[values.astype(str).str.len() > 0]
    if len(values) == 0:
        return None
    counts = values.groupby(values, sort=False).size()
    return counts.idxmax()


def summarize_events(events):
    """Group a canonical event frame by category.

    Returns IssueSummary objects in descending occurrence order (ties keep
    first-seen category order). Trend fields are left at their defaults.
    """
    if len(events) == 0:
        return []

    summaries = []
    for category, grp in events.groupby("category", sort=False):
        machines = sorted({m for m in grp["machine"].dropna() if m})
        summaries.append(IssueSummary(
            category=category,
            occurrence_count=int(len(grp)),
            total_impact=float(grp["impact"].sum()),
            affected_machines=machines,
            most_affected_crew=_most_frequent(grp["crew"]),
        ))

    return sorted(summaries, key=lambda s: s.occurrence_count, reverse=True)


def count_by_category(events):
    """Occurrence count per category as a plain dict."""
    if len(events) == 0:
        return {}
    return {k: int(v) for k, v in events.groupby("category", sort=False).size().items()}


def aggregate_issues(store, issue_type, start, end, machine=None):
    """Recurring issues for one event type and window.

    Issues whose category is suppressed for the active machine scope land in
    `ignored`; everything else in `active`. Any store failure propagates and
    no partial report is returned.
    """
    start, end = validate_query(issue_type, start, end, machine)
    prev_start, prev_end = previous_window(start, end)

    current = store.query_events(issue_type, start, end, machine)
    previous = store.query_events(issue_type, prev_start, prev_end, machine)
    entries = store.list_ignored(issue_type)

    previous_counts = count_by_category(previous)
    summaries = summarize_events(current)
    for summary in summaries:
        summary.previous_period_count = previous_counts.get(summary.category, 0)
        summary.trend = classify_trend(summary.occurrence_count, summary.previous_period_count)

    active, ignored = partition_issues(summaries, entries, issue_type, machine)
    report = IssueReport(issue_type=issue_type, active=active, ignored=ignored)

    logger.info(
        "%s issues %s..%s machine=%s: %d active, %d ignored",
        issue_type, start, end, machine or "all", len(report.active), len(report.ignored),
    )
    return report


def aggregate_all(store, start, end, machine=None):
    """Downtime and spoilage reports for the same window, keyed by issue type."""
    return {t: aggregate_issues(store, t, start, end, machine) for t in ISSUE_TYPES}


def top_downtime_issues(store, day, limit=5):
    """Top downtime categories for a single day, ranked by total minutes."""
    day, _ = validate_query(DOWNTIME, day, day)
    events = store.query_events(DOWNTIME, day, day)
    if len(events) == 0:
        return []

    issues = []
    for category, grp in events.groupby("category", sort=False):
        issues.append({
            "category": category,
            "total_minutes": float(grp["impact"].sum()),
            "machines": sorted({m for m in grp["machine"].dropna() if m}),
            "occurrence_count": int(len(grp)),
        })
    issues.sort(key=lambda x: x["total_minutes"], reverse=True)
    return issues[:limit]

"""
Root-Cause Investigation
========================
Drill-down for a single recurring category: every occurrence in the window,
which crews and shifts it clusters on, and which other categories show up on
the same production runs.

investigate() returns None (no occurrences) instead of raising when the
category has no events for the window/machine.
"""

from __future__ import annotations

import logging

import pandas as pd

from issues import validate_query
from models import InvestigationResult
from shared import other_issue_type

logger = logging.getLogger(__name__)

RELATED_LIMIT = 5


def _occurrence_rows(events, work_orders):
    """Project events for display, resolving each run's work order."""
    rows = []
    for ev in events.to_dict("records"):
        run_id = ev["linked_run_id"]
        work_order = work_orders.get(run_id) if run_id else None
        day = ev["date"]
        rows.append({
            "date": day.strftime("%Y-%m-%d") if pd.notna(day) else "",
            "machine": ev["machine"] or "",
            "shift": ev["shift"],
            "crew": ev["crew"],
            "work_order": work_order or ev["work_order"] or None,
            "impact": float(ev["impact"]),
            "comment": ev["comment"],
        })
    return rows


def crew_breakdown(events):
    """Per-crew occurrence count and total impact, busiest crew first."""
    crewed = events[events["crew"].notna()]
    if len(crewed) == 0:
        return []

    agg = (
        crewed.groupby("crew", sort=False)
        .agg(count=("impact", "size"), total_impact=("impact", "sum"))
        .reset_index()
        .sort_values("count", ascending=False, kind="stable")
    )
    return [
        {"crew": r["crew"], "count": int(r["count"]), "totalImpact": float(r["total_impact"])}
        for r in agg.to_dict("records")
    ]


def shift_pattern(events):
    """(most common shift or None, [{shift, count}...] descending)."""
    shifted = events[events["shift"].notna()]
    if len(shifted) == 0:
        return None, []

    counts = shifted.groupby("shift", sort=False).size().sort_values(ascending=False, kind="stable")
    breakdown = [{"shift": s, "count": int(c)} for s, c in counts.items()]
    return breakdown[0]["shift"], breakdown


def related_issues(store, issue_type, category, run_ids, limit=RELATED_LIMIT):
    """Other categories logged on the same runs, from both event types.

    The opposite type is tallied first, so on equal counts its categories
    rank ahead.
    """
    if not run_ids:
        return []

    frames = [
        store.query_events_by_run_ids(other_issue_type(issue_type), run_ids, category),
        store.query_events_by_run_ids(issue_type, run_ids, category),
    ]
    frames = [f for f in frames if len(f) > 0]
    if not frames:
        return []

    linked = pd.concat(frames, ignore_index=True)
    linked = linked[linked["category"] != category]
    if len(linked) == 0:
        return []

    counts = (
        linked.groupby("category", sort=False).size()
        .sort_values(ascending=False, kind="stable")
        .head(limit)
    )
    return [{"category": c, "coOccurrenceCount": int(n)} for c, n in counts.items()]


def investigate(store, category, issue_type, start, end, machine=None):
    """Full drill-down for one category, or None when it has no occurrences."""
    start, end = validate_query(issue_type, start, end, machine)

    events = store.query_events(issue_type, start, end, machine, category=category)
    if len(events) == 0:
        logger.info("No occurrences of %s %r in %s..%s machine=%s",
                    issue_type, category, start, end, machine or "all")
        return None

    events = events.sort_values("date", ascending=False, kind="stable", na_position="last")
    run_ids = list(dict.fromkeys(r for r in events["linked_run_id"] if r is not None))
    work_orders = store.get_run_work_orders(run_ids) if run_ids else {}

    most_common, shifts = shift_pattern(events)
    result = InvestigationResult(
        category=category,
        issue_type=issue_type,
        occurrences=_occurrence_rows(events, work_orders),
        crew_breakdown=crew_breakdown(events),
        most_common_shift=most_common,
        shift_breakdown=shifts,
        related_issues=related_issues(store, issue_type, category, run_ids),
    )
    logger.info("Investigated %s %r: %d occurrences, %d linked runs",
                issue_type, category, len(events), len(run_ids))
    return result

"""
Training Priority Scoring + Crew Training Needs
================================================
score_issue() turns an issue's frequency, impact, variance from the crew
average, trend, and severity tier into a 0-100 priority score and tier.

team_training_needs() finds crews with repeated issues in the lookback
window (thresholds from DetectionSettings), attaches a training
recommendation, and ranks them by that score.

Score model (each term capped before summing):
  occurrences    min(count * 3, 25)
  impact         min(total_impact / 10, 30)
  variance       min(|variance_pct|, 20)
  trend          increasing 15 / stable 5 / decreasing 0
  severity       Critical 10 / High 7 / Medium 5 / Low 2 (unknown -> 5)
"""

from __future__ import annotations

import logging
import math

import numpy as np

from errors import InvalidInput
from ignore_list import suppressed_categories
from issues import (
    DECREASING, INCREASING, STABLE,
    classify_trend, previous_window, validate_query, window_for_lookback,
)
from models import PriorityScore, TrainingNeed
from shared import ISSUE_TYPES, training_recommendation

logger = logging.getLogger(__name__)

TREND_POINTS = {INCREASING: 15, STABLE: 5, DECREASING: 0}
SEVERITY_POINTS = {"Critical": 10, "High": 7, "Medium": 5, "Low": 2}
DEFAULT_SEVERITY_POINTS = 5

TIER_CUTOFFS = [(75, "Critical"), (50, "High"), (25, "Medium")]


# ---------------------------------------------------------------------------
# Priority score
# ---------------------------------------------------------------------------
def _finite(value):
    """Float value, with None/NaN/inf/non-numeric contributing zero."""
    try:
        v = float(value)
    except (TypeError, ValueError):
        return 0.0
    return v if math.isfinite(v) else 0.0


def priority_tier(score):
    for cutoff, tier in TIER_CUTOFFS:
        if score >= cutoff:
            return tier
    return "Low"


def score_issue(occurrence_count, total_impact, variance_pct, trend, severity_tier):
    """Composite 0-100 training priority for one issue."""
    occurrences = _finite(occurrence_count)
    impact = _finite(total_impact)
    if occurrences < 0 or impact < 0:
        raise InvalidInput(
            f"Occurrence count and impact must be non-negative (got {occurrence_count}, {total_impact})"
        )

    raw = (
        min(occurrences * 3, 25)
        + min(impact / 10, 30)
        + min(abs(_finite(variance_pct)), 20)
        + TREND_POINTS.get(trend, 0)
        + SEVERITY_POINTS.get(severity_tier, DEFAULT_SEVERITY_POINTS)
    )
    clamped = max(0.0, min(100.0, raw))
    score = int(math.floor(clamped + 0.5))
    return PriorityScore(score=score, tier=priority_tier(score))


# ---------------------------------------------------------------------------
# Crew training needs
# ---------------------------------------------------------------------------
_KEYS = ["machine", "shift", "crew", "category"]


def _crew_counts(events):
    """Count + impact per (machine, shift, crew, category); blank shift -> ''."""
    crewed = events[events["crew"].notna() & events["machine"].notna()]
    if len(crewed) == 0:
        return None
    crewed = crewed.assign(shift=crewed["shift"].fillna(""))
    return (
        crewed.groupby(_KEYS, sort=False)
        .agg(count=("impact", "size"), total_impact=("impact", "sum"))
        .reset_index()
    )


def _best_crews(groups, by_machine_category):
    """(machine, category) -> (crew identifier, count) of the crew with the fewest occurrences.

    Every crew that logged the category is a candidate, not only those over
    the thresholds. Ties go to the first crew seen.
    """
    best = {}
    for key, idx in by_machine_category.idxmin().items():
        row = groups.loc[idx]
        best[key] = (f"{row['machine']}_{row['shift']}_{row['crew']}", int(row["count"]))
    return best


def detect_training_needs(current, previous, issue_type, settings, ignore_entries=()):
    """Crew/category pairs over the occurrence and impact thresholds.

    variance_pct compares a crew's count to the mean count of every crew
    that logged the same category on the same machine. The crew with the
    fewest occurrences there is the best performer, and
    opportunity_reduction_pct is how far this crew's count would drop if it
    matched them.
    """
    groups = _crew_counts(current)
    if groups is None:
        return []

    by_machine_category = groups.groupby(["machine", "category"], sort=False)["count"]
    team_avg = by_machine_category.transform("mean")
    groups["variance_pct"] = np.where(
        team_avg > 0, (groups["count"] - team_avg) / team_avg * 100, 0.0
    )
    best = _best_crews(groups, by_machine_category)

    prev_groups = _crew_counts(previous)
    prev_counts = {}
    if prev_groups is not None:
        for row in prev_groups.to_dict("records"):
            prev_counts[tuple(row[k] for k in _KEYS)] = int(row["count"])

    hidden_by_machine = {}
    needs = []
    for row in groups.to_dict("records"):
        count = int(row["count"])
        total_impact = float(row["total_impact"])
        if count < settings.min_occurrences or total_impact < settings.min_impact:
            continue

        machine = row["machine"]
        if machine not in hidden_by_machine:
            hidden_by_machine[machine] = suppressed_categories(ignore_entries, issue_type, machine)
        if row["category"] in hidden_by_machine[machine]:
            continue

        previous_count = prev_counts.get(tuple(row[k] for k in _KEYS), 0)
        trend = classify_trend(count, previous_count, settings.trend_increase_threshold)
        variance = float(row["variance_pct"])
        recommendation, tier = training_recommendation(row["category"])
        best_crew, best_count = best[(machine, row["category"])]

        needs.append(TrainingNeed(
            machine=machine,
            shift=row["shift"] or None,
            crew=row["crew"],
            issue_type=issue_type,
            category=row["category"],
            occurrence_count=count,
            total_impact=total_impact,
            variance_pct=variance,
            trend=trend,
            recommendation=recommendation,
            severity_tier=tier,
            priority=score_issue(count, total_impact, variance, trend, tier),
            above_team_average=variance >= settings.variance_threshold,
            previous_count=previous_count,
            best_performing_crew=best_crew,
            opportunity_reduction_pct=(count - best_count) / count * 100,
        ))
    return needs


def team_training_needs(store, settings=None, start=None, end=None, machine=None, today=None):
    """Ranked training needs across downtime and spoilage.

    Settings are read from the store once per call unless passed in; the
    window defaults to the settings' lookback ending today.
    """
    if settings is None:
        settings = store.get_detection_settings()
    if start is None or end is None:
        start, end = window_for_lookback(settings.lookback_days, today)

    needs = []
    for issue_type in ISSUE_TYPES:
        start, end = validate_query(issue_type, start, end, machine)
        prev_start, prev_end = previous_window(start, end)
        current = store.query_events(issue_type, start, end, machine)
        previous = store.query_events(issue_type, prev_start, prev_end, machine)
        entries = store.list_ignored(issue_type)
        needs.extend(detect_training_needs(current, previous, issue_type, settings, entries))

    needs.sort(key=lambda n: n.priority.score, reverse=True)
    logger.info("Training needs %s..%s machine=%s: %d flagged", start, end, machine or "all", len(needs))
    return needs

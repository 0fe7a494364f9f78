"""
Maintenance Alerts
==================
Week-over-week downtime growth per (machine, category), classified by how
urgently maintenance should look at it.

  urgent   pct_change > 100%  OR  > 240 min in the current week
  warning  pct_change > 50%   OR  increasing 3+ consecutive weeks
  monitor  any other increase

Weeks here are trailing 7-day bins ending on `today` (bin 0 = current week,
bin 1 = previous), except weekly_downtime() which returns Monday-anchored
calendar weeks for charting.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

import pandas as pd

from issues import validate_query
from models import MaintenanceAlert
from shared import DOWN_THRESHOLD_MINUTES, DOWNTIME, maintenance_recommendation

logger = logging.getLogger(__name__)

URGENT = "urgent"
WARNING = "warning"
MONITOR = "monitor"
_SEVERITY_ORDER = {URGENT: 0, WARNING: 1, MONITOR: 2}


def classify_maintenance_alert(pct_change, total_minutes, consecutive_weeks_increasing=0):
    if pct_change > 100 or total_minutes > DOWN_THRESHOLD_MINUTES:
        return URGENT
    if pct_change > 50 or consecutive_weeks_increasing >= 3:
        return WARNING
    return MONITOR


def pct_change(current, previous):
    """Percent change; growth from nothing counts as +100%."""
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return (current - previous) / previous * 100


def _consecutive_increases(minutes_by_bin):
    """How many weeks in a row (newest first) each beat the week before it."""
    streak = 0
    for newer, older in zip(minutes_by_bin, minutes_by_bin[1:]):
        if newer > older:
            streak += 1
        else:
            break
    return streak


def detect_maintenance_alerts(events, today, weeks_history=6):
    """Alerts from a canonical downtime frame covering the last `weeks_history` weeks."""
    if len(events) == 0:
        return []

    today = pd.Timestamp(today).normalize()
    binned = events[events["machine"].notna() & events["date"].notna()].copy()
    binned["bin"] = (today - binned["date"]).dt.days // 7
    binned = binned[(binned["bin"] >= 0) & (binned["bin"] < weeks_history)]
    if len(binned) == 0:
        return []

    table = binned.pivot_table(
        index=["machine", "category"], columns="bin", values="impact",
        aggfunc="sum", fill_value=0.0, sort=False,
    )
    table = table.reindex(columns=range(weeks_history), fill_value=0.0)

    alerts = []
    for (machine, category), row in table.iterrows():
        minutes = [float(v) for v in row.tolist()]
        current, previous = minutes[0], minutes[1]
        change = pct_change(current, previous)
        if change <= 0:
            continue
        streak = _consecutive_increases(minutes)
        alerts.append(MaintenanceAlert(
            machine=machine,
            category=category,
            current_minutes=current,
            previous_minutes=previous,
            pct_change=change,
            severity=classify_maintenance_alert(change, current, streak),
            recommendation=maintenance_recommendation(category),
            consecutive_weeks_increasing=streak,
        ))

    alerts.sort(key=lambda a: (_SEVERITY_ORDER[a.severity], -a.pct_change))
    return alerts


def maintenance_alerts(store, machine=None, today=None, weeks_history=6):
    """Query the store and return sorted maintenance alerts (urgent first)."""
    today = today or date.today()
    start = today - timedelta(days=7 * weeks_history - 1)
    start, end = validate_query(DOWNTIME, start, today, machine)
    events = store.query_events(DOWNTIME, start, end, machine)
    alerts = detect_maintenance_alerts(events, end, weeks_history)
    logger.info("Maintenance alerts machine=%s: %d", machine or "all", len(alerts))
    return alerts


def weekly_downtime(store, machine, category, weeks=12, today=None):
    """Monday-anchored weekly downtime minutes for one machine/category.

    Every week in range is present, zero-filled, oldest first.
    """
    today = today or date.today()
    this_monday = today - timedelta(days=today.weekday())
    first_monday = this_monday - timedelta(weeks=weeks - 1)
    first_monday, end = validate_query(DOWNTIME, first_monday, today, machine)

    events = store.query_events(DOWNTIME, first_monday, end, machine, category=category)
    weeks_index = pd.date_range(pd.Timestamp(first_monday), periods=weeks, freq="7D")

    if len(events) == 0:
        return pd.DataFrame({"week_start": weeks_index, "total_minutes": 0.0, "occurrences": 0})

    week_start = events["date"] - pd.to_timedelta(events["date"].dt.weekday, unit="D")
    weekly = (
        events.assign(week_start=week_start)
        .groupby("week_start")
        .agg(total_minutes=("impact", "sum"), occurrences=("impact", "size"))
        .reindex(weeks_index, fill_value=0)
    )
    weekly.index.name = "week_start"
    weekly["total_minutes"] = weekly["total_minutes"].astype(float)
    weekly["occurrences"] = weekly["occurrences"].astype(int)
    return weekly.reset_index()

"""Performance metric calculators for the machine dashboard and crew comparison."""

from __future__ import annotations

import pandas as pd

from issues import validate_window
from shared import DOWN_THRESHOLD_MINUTES, DOWNTIME, MACHINE_CODES

RUNNING = "running"
DOWN = "down"
SETUP = "setup"
NO_WORK = "no_work"


def classify_machine_status(total_production, efficiency_pct, total_downtime_minutes):
    """running / down / setup / no_work for one machine-day.

    Downtime over four hours means down regardless of output.
    """
    if total_downtime_minutes > DOWN_THRESHOLD_MINUTES:
        return DOWN
    if total_production == 0:
        return NO_WORK
    if efficiency_pct > 50:
        return RUNNING
    return SETUP


def run_speed(good_production, production_minutes, logged_downtime_minutes):
    """Sheets per hour over actual running time, rounded to 2 dp (0 if no running time)."""
    running_minutes = production_minutes - logged_downtime_minutes
    if running_minutes <= 0:
        return 0
    return round((good_production / running_minutes) * 60, 2)


def variance_vs_target(actual_run_speed, actual_efficiency_pct, actual_spoilage_pct, target):
    """Variances against a machine's targets.

    speed_variance_pct is a signed percent and only present when the speed
    target is positive; efficiency and spoilage are point differences.
    Returns {} when there is no target.
    """
    if not target:
        return {}

    out = {}
    target_speed = float(target.get("target_run_speed") or 0)
    if target_speed > 0:
        out["speed_variance_pct"] = (actual_run_speed - target_speed) / target_speed * 100
    out["efficiency_variance"] = actual_efficiency_pct - float(target.get("target_efficiency_pct") or 0)
    out["spoilage_variance"] = actual_spoilage_pct - float(target.get("target_spoilage_pct") or 0)
    return out


def machine_board(daily, downtime, targets):
    """One dashboard row per machine code.

    daily:    frame from SupabaseStore.get_daily_production (machine, total_production,
              avg_run_speed, avg_spoilage_pct, efficiency_pct)
    downtime: canonical downtime event frame for the same day
    targets:  {machine: {target_run_speed, target_efficiency_pct, target_spoilage_pct}}

    Machines without a production row show as setup with zero output.
    """
    if len(downtime) > 0:
        downtime_by_machine = downtime.groupby("machine")["impact"].sum().to_dict()
    else:
        downtime_by_machine = {}

    production = {}
    if daily is not None and len(daily) > 0:
        production = {row["machine"]: row for row in daily.to_dict("records")}

    rows = []
    for machine in MACHINE_CODES:
        total_downtime = float(downtime_by_machine.get(machine, 0.0))
        row = {
            "machine": machine,
            "status": SETUP,
            "total_production": 0.0,
            "avg_run_speed": 0.0,
            "avg_spoilage_pct": 0.0,
            "efficiency_pct": 0.0,
            "total_downtime": total_downtime,
        }
        prod = production.get(machine)
        if prod is not None:
            row.update({
                "total_production": float(prod.get("total_production") or 0),
                "avg_run_speed": float(prod.get("avg_run_speed") or 0),
                "avg_spoilage_pct": float(prod.get("avg_spoilage_pct") or 0),
                "efficiency_pct": float(prod.get("efficiency_pct") or 0),
            })
            row["status"] = classify_machine_status(
                row["total_production"], row["efficiency_pct"], total_downtime
            )
            row.update(variance_vs_target(
                row["avg_run_speed"], row["efficiency_pct"], row["avg_spoilage_pct"],
                targets.get(machine),
            ))
        rows.append(row)
    return pd.DataFrame(rows)


TEAM_COLUMNS = [
    "crew_identifier", "machine", "shift", "crew", "total_runs", "total_production",
    "avg_run_speed", "avg_make_ready_minutes", "avg_spoilage_pct",
]


def _label(value):
    return "" if value is None or pd.isna(value) else str(value)


def team_performance(runs):
    """Per-crew production run roll-up, fastest average run speed first.

    Crews are keyed machine_shift_crew, so the same crew letter on two
    machines is two crews. avg_run_speed skips runs without a positive
    speed; the make-ready and spoilage averages skip missing values. An
    average with nothing to average is 0.
    """
    if runs is None or len(runs) == 0:
        return pd.DataFrame(columns=TEAM_COLUMNS)

    df = runs.copy()
    for col in ("machine", "shift", "crew"):
        df[col] = [_label(v) for v in df[col]]
    for col in ("calculated_run_speed", "make_ready_minutes", "spoilage_percentage", "good_production"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df["crew_identifier"] = df["machine"] + "_" + df["shift"] + "_" + df["crew"]
    df["positive_speed"] = df["calculated_run_speed"].where(df["calculated_run_speed"] > 0)

    teams = (
        df.groupby("crew_identifier", sort=False)
        .agg(
            machine=("machine", "first"),
            shift=("shift", "first"),
            crew=("crew", "first"),
            total_runs=("good_production", "size"),
            total_production=("good_production", "sum"),
            avg_run_speed=("positive_speed", "mean"),
            avg_make_ready_minutes=("make_ready_minutes", "mean"),
            avg_spoilage_pct=("spoilage_percentage", "mean"),
        )
        .reset_index()
    )
    averages = ["avg_run_speed", "avg_make_ready_minutes", "avg_spoilage_pct"]
    teams[averages] = teams[averages].fillna(0.0)
    teams["total_production"] = teams["total_production"].astype(float)
    teams["total_runs"] = teams["total_runs"].astype(int)
    teams = teams.sort_values("avg_run_speed", ascending=False, kind="stable")
    return teams[TEAM_COLUMNS].reset_index(drop=True)


def build_team_performance(store, start, end, machine=None, shift=None, crew=None):
    """team_performance() over the store's production runs for a window."""
    start, end = validate_window(start, end, machine)
    return team_performance(store.query_production_runs(start, end, machine, shift, crew))


def build_machine_board(store, day):
    """machine_board() fed straight from the store for one day."""
    return machine_board(
        store.get_daily_production(day),
        store.query_events(DOWNTIME, day, day),
        store.get_machine_targets(),
    )

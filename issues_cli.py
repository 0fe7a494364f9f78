"""CLI for recurring-issue analytics over the production Supabase store."""

from __future__ import annotations

import argparse
import json
import sys
from datetime import date

from config import configure_logging
from db import SupabaseStore
from errors import IssueAnalyticsError, friendly_error
from ignore_list import ignore_category, unignore_category
from investigate import investigate
from issues import aggregate_issues, top_downtime_issues, window_for_lookback
from maintenance import maintenance_alerts, weekly_downtime
from metrics import build_machine_board, build_team_performance
from shared import DOWNTIME, ISSUE_TYPES
from training import score_issue, team_training_needs

COMMANDS = [
    "issues", "investigate", "ignore", "unignore", "score",
    "training", "teams", "maintenance", "weekly", "top-downtime", "board",
]


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Recurring issue analytics CLI")
    p.add_argument("--command", required=True, choices=COMMANDS, help="Action to execute")
    p.add_argument("--type", dest="issue_type", default=DOWNTIME, choices=list(ISSUE_TYPES))
    p.add_argument("--machine", help="Machine code, or 'all'")
    p.add_argument("--shift", help="Used with --command teams")
    p.add_argument("--crew", help="Used with --command teams")
    p.add_argument("--category", help="Used with investigate/ignore/unignore/weekly")
    p.add_argument("--start", help="Window start YYYY-MM-DD")
    p.add_argument("--end", help="Window end YYYY-MM-DD")
    p.add_argument("--days", type=int, default=30, help="Lookback when --start/--end are omitted")
    p.add_argument("--day", help="Used with top-downtime/board (default today)")
    p.add_argument("--reason", help="Used with --command ignore")
    p.add_argument("--user", default="User", help="Used with --command ignore")
    p.add_argument("--include-ignored", action="store_true", help="Used with --command issues")
    p.add_argument("--weeks", type=int, default=12, help="Used with --command weekly")
    # score inputs
    p.add_argument("--count", type=float, default=0)
    p.add_argument("--impact", type=float, default=0)
    p.add_argument("--variance", type=float, default=0)
    p.add_argument("--trend", default="stable")
    p.add_argument("--severity", default="Medium")
    return p


def _window(args):
    if args.start and args.end:
        return args.start, args.end
    return window_for_lookback(args.days)


def _require_category(args):
    if not args.category:
        raise SystemExit(f"--category is required for --command {args.command}")
    return args.category


def run(args, store=None):
    """Execute one parsed command and return a JSON-serializable result."""
    if args.command == "score":
        return score_issue(args.count, args.impact, args.variance, args.trend, args.severity).to_dict()

    store = store or SupabaseStore()
    day = args.day or date.today().isoformat()

    if args.command == "issues":
        start, end = _window(args)
        report = aggregate_issues(store, args.issue_type, start, end, args.machine)
        return report.to_dict(include_ignored=args.include_ignored)
    if args.command == "investigate":
        start, end = _window(args)
        result = investigate(store, _require_category(args), args.issue_type, start, end, args.machine)
        return result.to_dict() if result is not None else None
    if args.command == "ignore":
        entry = ignore_category(store, _require_category(args), args.issue_type,
                                args.machine, args.reason, args.user)
        return {"ignored": entry.category, "scope": entry.scope_machine or "all", "id": entry.id}
    if args.command == "unignore":
        removed = unignore_category(store, _require_category(args), args.issue_type, args.machine)
        return {"removed": removed}
    if args.command == "training":
        start, end = (args.start, args.end) if args.start and args.end else (None, None)
        return [n.to_dict() for n in team_training_needs(store, start=start, end=end, machine=args.machine)]
    if args.command == "teams":
        start, end = _window(args)
        frame = build_team_performance(store, start, end, args.machine, args.shift, args.crew)
        return frame.to_dict("records")
    if args.command == "maintenance":
        return [a.to_dict() for a in maintenance_alerts(store, args.machine)]
    if args.command == "weekly":
        if not args.machine:
            raise SystemExit("--machine is required for --command weekly")
        frame = weekly_downtime(store, args.machine, _require_category(args), args.weeks)
        return frame.to_dict("records")
    if args.command == "top-downtime":
        return top_downtime_issues(store, day)
    return build_machine_board(store, day).to_dict("records")


def main() -> None:
    args = _build_parser().parse_args()
    configure_logging()
    try:
        result = run(args)
    except IssueAnalyticsError as e:
        print(json.dumps({"error": friendly_error(e), "detail": str(e)}, indent=2), file=sys.stderr)
        raise SystemExit(1) from e
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()

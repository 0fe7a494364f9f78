"""Ignore-list overlay: which categories are suppressed for a machine scope."""

from __future__ import annotations

import logging

from errors import InvalidInput
from models import IgnoreEntry
from shared import ISSUE_TYPES, MACHINE_CODES, is_all_machines

logger = logging.getLogger(__name__)


def suppresses(entry, machine_filter=None):
    """Does `entry` hide its category for the active machine filter?

    An unscoped entry hides the category everywhere. A machine-scoped entry
    only hides it when that exact machine is selected, never in the
    all-machines view.
    """
    if entry.scope_machine is None:
        return True
    if is_all_machines(machine_filter):
        return False
    return entry.scope_machine == machine_filter


def suppressed_categories(entries, issue_type, machine_filter=None):
    """Set of categories hidden for `issue_type` under `machine_filter`."""
    return {
        e.category for e in entries
        if e.issue_type == issue_type and suppresses(e, machine_filter)
    }


def partition_issues(issues, entries, issue_type, machine_filter=None):
    """Split IssueSummary objects into (active, ignored), preserving order."""
    hidden = suppressed_categories(entries, issue_type, machine_filter)
    active, ignored = [], []
    for issue in issues:
        if issue.category in hidden:
            issue.ignored = True
            ignored.append(issue)
        else:
            issue.ignored = False
            active.append(issue)
    return active, ignored


def _check(category, issue_type, scope_machine):
    if not category or not str(category).strip():
        raise InvalidInput("Category is required")
    if issue_type not in ISSUE_TYPES:
        raise InvalidInput(f"Unknown issue type {issue_type!r}; expected one of {ISSUE_TYPES}")
    if scope_machine is not None and scope_machine not in MACHINE_CODES:
        raise InvalidInput(f"Unknown machine {scope_machine!r}; expected one of {MACHINE_CODES}")


def _scope(scope_machine):
    return None if is_all_machines(scope_machine) else scope_machine


def ignore_category(store, category, issue_type, scope_machine=None, reason=None,
                    created_by="User"):
    """Suppress a category for one machine or (scope None/'all') every machine.

    Raises ConflictError when the identical tuple is already stored.
    """
    scope_machine = _scope(scope_machine)
    _check(category, issue_type, scope_machine)

    entry = IgnoreEntry(
        category=category,
        issue_type=issue_type,
        scope_machine=scope_machine,
        reason=reason or "Marked as normal process issue",
        created_by=created_by,
    )
    saved = store.insert_ignored(entry)
    logger.info("Ignored %s category %r for %s", issue_type, category, scope_machine or "all machines")
    return saved


def unignore_category(store, category, issue_type, scope_machine=None):
    """Remove every entry that hides `category` under `scope_machine`.

    Uses the same matching as `suppresses`, so unignoring for one machine
    also lifts an unscoped entry. Returns the number of entries removed; 0 is
    not an error.
    """
    scope_machine = _scope(scope_machine)
    _check(category, issue_type, scope_machine)

    entries = store.list_ignored(issue_type, category=category)
    ids = [e.id for e in entries if e.category == category and suppresses(e, scope_machine)]
    removed = store.delete_ignored(ids) if ids else 0
    if removed:
        logger.info("Unignored %s category %r for %s (%d entries)",
                    issue_type, category, scope_machine or "all machines", removed)
    return removed

"""
Shared constants and lookups for the Recurring Issue Analytics Engine
======================================================================
Single source of truth for machine codes, shifts, issue types, table
layouts, and the category -> recommendation keyword tables used across
issues.py, training.py, and maintenance.py.
"""

import pandas as pd

# ---------------------------------------------------------------------------
# Plant reference data
# ---------------------------------------------------------------------------
MACHINE_CODES = ["LA01", "LA02", "LP03", "LP04", "LP05", "CL01"]
SHIFTS = ["Earlies", "Lates", "Nights"]

ALL_MACHINES = "all"
UNKNOWN_CATEGORY = "Unknown"

DOWNTIME = "downtime"
SPOILAGE = "spoilage"
ISSUE_TYPES = (DOWNTIME, SPOILAGE)

# Event tables and the column holding each type's impact (minutes / units)
EVENT_TABLES = {
    DOWNTIME: "downtime_events",
    SPOILAGE: "spoilage_events",
}
IMPACT_FIELD = {
    DOWNTIME: "minutes",
    SPOILAGE: "units",
}

# Store column -> canonical event column
EVENT_COLUMN_MAP = {
    "press": "machine",
    "team": "crew",
    "production_run_id": "linked_run_id",
    "comments": "comment",
    "minutes": "impact",
    "units": "impact",
}

EVENT_COLUMNS = [
    "date", "machine", "category", "crew", "shift",
    "impact", "linked_run_id", "work_order", "comment",
]

# Down status wins over everything else past this much downtime in a day
DOWN_THRESHOLD_MINUTES = 240


def other_issue_type(issue_type):
    """The opposite event type (downtime <-> spoilage)."""
    return SPOILAGE if issue_type == DOWNTIME else DOWNTIME


def normalize_category(value):
    """Blank or missing categories collapse to 'Unknown'. Case is preserved."""
    if value is None:
        return UNKNOWN_CATEGORY
    try:
        if pd.isna(value):
            return UNKNOWN_CATEGORY
    except (TypeError, ValueError):
        pass
    text = str(value)
    return text if text.strip() else UNKNOWN_CATEGORY


def is_all_machines(machine):
    return machine is None or machine == "" or machine == ALL_MACHINES


# ---------------------------------------------------------------------------
# Training recommendations: (recommendation, severity tier)
# ---------------------------------------------------------------------------
# Keys are lower-case. Tier is the issue's own severity, fed to the
# priority scorer as the severity term.
TRAINING_RECOMMENDATIONS = {
    "camera faults": ("Camera calibration and troubleshooting training", "High"),
    "camera": ("Camera calibration and troubleshooting training", "High"),
    "damaged edges": ("Material handling and quality control training", "Medium"),
    "damaged edges/bent corner": ("Material handling and quality control training", "Medium"),
    "bent corner": ("Material handling and quality control training", "Medium"),
    "pimples": ("Cylinder maintenance and cleaning procedures", "Medium"),
    "blanket change": ("Blanket replacement and maintenance training", "Medium"),
    "blanket / packing change": ("Blanket replacement and maintenance training", "Medium"),
    "changing bulks": ("Bulk change procedures and efficiency training", "Low"),
    "coating": ("Coating application and quality control training", "High"),
    "coating drips": ("Coating application and quality control training", "High"),
    "varnish": ("Varnish application and maintenance training", "High"),
    "varnish fail": ("Varnish troubleshooting and maintenance training", "Critical"),
    "mechanical breakdown": ("Mechanical troubleshooting and preventive maintenance", "Critical"),
    "repro error": ("Repro and plate preparation training", "High"),
    "repro error / plates": ("Repro and plate preparation training", "High"),
    "start up": ("Startup procedures and efficiency training", "Low"),
    "setting up": ("Setup procedures and efficiency training", "Low"),
    "crash at feeder": ("Feeder operation and troubleshooting training", "Critical"),
    "impression cylinder wash": ("Cylinder maintenance and cleaning procedures", "Medium"),
    "grippers": ("Gripper maintenance and adjustment training", "High"),
}

DEFAULT_TRAINING_TIER = "Medium"


# ---------------------------------------------------------------------------
# Maintenance recommendations
# ---------------------------------------------------------------------------
MAINTENANCE_RECOMMENDATIONS = {
    # Mechanical
    "mechanical breakdown": "Schedule immediate inspection",
    "mechanical": "Schedule mechanical inspection",
    "breakdown": "Schedule immediate inspection",
    # Feeder
    "feeder crash": "Check feeder alignment and sensors",
    "crash at feeder": "Check feeder alignment and sensors",
    "feeder": "Inspect feeder mechanism and alignment",
    # Cylinder
    "pimples": "Inspect cylinder cleaning system",
    "cylinder": "Inspect cylinder condition and cleaning system",
    "impression cylinder": "Inspect impression cylinder and cleaning system",
    "impression cylinder wash": "Review cylinder cleaning procedures",
    # Varnish
    "varnish fail": "Check varnish system and blanket tension",
    "varnish": "Inspect varnish application system",
    "varnish finish": "Check varnish finish quality and application",
    # Blanket
    "blanket": "Inspect blanket condition and tension",
    "blanket change": "Review blanket replacement schedule",
    "blanket / packing change": "Inspect blanket and packing condition",
    # Camera / quality
    "camera faults": "Calibrate camera system and check sensors",
    "camera": "Inspect camera alignment and calibration",
    # Material / coating
    "coating": "Check coating application system",
    "coating drips": "Inspect coating application and quality",
    "material-coating": "Review material handling and coating process",
    # Bulks / setup
    "changing bulks": "Review bulk change procedures and efficiency",
    "bulks": "Optimize bulk change process",
    "setting up": "Review setup procedures and training",
    "start up": "Review startup procedures and efficiency",
    # Repro / plates
    "repro error": "Review repro and plate preparation process",
    "repro error / plates": "Check plate quality and repro procedures",
    "plates": "Inspect plate condition and preparation",
    # Damage
    "damaged edges": "Review material handling procedures",
    "damaged edges/bent corner": "Improve material handling and quality control",
    "bent corner": "Review material handling procedures",
    # Grippers
    "grippers": "Inspect gripper mechanism and adjustment",
    # Operational
    "breaks": "Review break scheduling and coverage",
    "shutdown": "Review shutdown and startup procedures",
    "startup": "Review startup procedures and efficiency",
}

DEFAULT_MAINTENANCE_RECOMMENDATION = "Investigate root cause and schedule maintenance"


def _keyword_lookup(category, table):
    """Exact (case-insensitive) match first, then substring either way."""
    key = str(category or "").strip().lower()
    if not key:
        return None
    if key in table:
        return table[key]
    for kw, value in table.items():
        if kw in key or key in kw:
            return value
    return None


def training_recommendation(category):
    """Return (recommendation, severity_tier) for a category."""
    hit = _keyword_lookup(category, TRAINING_RECOMMENDATIONS)
    if hit is not None:
        return hit
    return (f"Training on {category} prevention and troubleshooting", DEFAULT_TRAINING_TIER)


def maintenance_recommendation(category):
    """Map a downtime category to a recommended maintenance action."""
    hit = _keyword_lookup(category, MAINTENANCE_RECOMMENDATIONS)
    return hit if hit is not None else DEFAULT_MAINTENANCE_RECOMMENDATION

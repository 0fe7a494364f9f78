"""
Unit tests for the single-category investigation drill-down.

Run: python -m pytest test_investigate.py -v
"""

from datetime import date

import pytest

from errors import CollaboratorUnavailable, InvalidInput
from event_schema import coerce_events
from investigate import crew_breakdown, investigate, shift_pattern

START, END = date(2026, 3, 1), date(2026, 3, 16)


def _downtime(day, category, machine="LP05", crew="A", shift="Earlies", minutes=10, run=None, wo=None):
    return {
        "date": day, "press": machine, "category": category, "team": crew, "shift": shift,
        "minutes": minutes, "production_run_id": run, "work_order": wo, "comments": None,
    }


def _spoilage(category, run, units=50, day="2026-03-10"):
    return {
        "date": day, "press": "LP05", "category": category, "team": "A", "shift": "Earlies",
        "units": units, "production_run_id": run,
    }


@pytest.fixture
def seeded(store, fake_db):
    fake_db.seed("downtime_events", [
        _downtime("2026-03-10", "Camera Faults", crew="A", shift="Earlies", run="r1"),
        _downtime("2026-03-12", "Camera Faults", crew="B", shift="Lates", run="r2", minutes=20),
        _downtime("2026-03-14", "Camera Faults", machine="LA01", crew="A", shift="Earlies", wo="WO-EV"),
        _downtime("2026-03-15", "Camera Faults", machine="LA01", crew="C", shift="Nights"),
        _downtime("2026-03-10", "Feeder", run="r1"),
        _downtime("2026-02-01", "Camera Faults", run="r9"),
    ])
    fake_db.seed("spoilage_events", [
        _spoilage("Coating", "r1"),
        _spoilage("Coating", "r1"),
        _spoilage("Pimples", "r1"),
        _spoilage("Coating", "r2"),
        _spoilage("Varnish", "r2"),
        _spoilage("Grippers", "r2"),
        _spoilage("Bent Corner", "r2"),
        _spoilage("Camera Faults", "r2"),
        _spoilage("Damaged Edges", "r9"),
    ])
    fake_db.seed("production_runs", [
        {"id": "r1", "work_order": "WO-1"},
        {"id": "r2", "work_order": "WO-2"},
    ])
    return store


# =====================================================================
# investigate against the store
# =====================================================================

class TestInvestigate:

    def test_no_occurrences_returns_none(self, seeded):
        assert investigate(seeded, "Never Happened", "downtime", START, END) is None

    def test_occurrences_newest_first(self, seeded):
        result = investigate(seeded, "Camera Faults", "downtime", START, END)
        assert [o["date"] for o in result.occurrences] == [
            "2026-03-15", "2026-03-14", "2026-03-12", "2026-03-10",
        ]

    def test_work_order_from_run_then_event(self, seeded):
        result = investigate(seeded, "Camera Faults", "downtime", START, END)
        assert [o["work_order"] for o in result.occurrences] == [None, "WO-EV", "WO-2", "WO-1"]

    def test_crew_and_shift_breakdown(self, seeded):
        result = investigate(seeded, "Camera Faults", "downtime", START, END)
        assert result.crew_breakdown[0] == {"crew": "A", "count": 2, "totalImpact": 20.0}
        assert sum(c["count"] for c in result.crew_breakdown) == 4
        assert result.most_common_shift == "Earlies"
        assert result.shift_breakdown[0] == {"shift": "Earlies", "count": 2}

    def test_related_issues_capped_and_exclude_self(self, seeded):
        result = investigate(seeded, "Camera Faults", "downtime", START, END)
        related = result.related_issues
        assert len(related) == 5
        assert related[0] == {"category": "Coating", "coOccurrenceCount": 3}
        names = [r["category"] for r in related]
        assert "Camera Faults" not in names
        # opposite type tallied first, so the one-off downtime category loses the tie
        assert "Feeder" not in names
        # runs outside the window do not contribute
        assert "Damaged Edges" not in names

    def test_events_without_runs_send_only_real_run_ids(self, store, fake_db, monkeypatch):
        fake_db.seed("downtime_events", [
            _downtime("2026-03-11", "Grippers", crew=None, shift=None),
            _downtime("2026-03-10", "Grippers", run="r1"),
        ])
        fake_db.seed("production_runs", [{"id": "r1", "work_order": "WO-1"}])
        sent = []
        original = store.get_run_work_orders
        monkeypatch.setattr(store, "get_run_work_orders", lambda ids: sent.append(ids) or original(ids))

        result = investigate(store, "Grippers", "downtime", START, END)
        assert sent == [["r1"]]
        newest = result.occurrences[0]
        assert newest["work_order"] is None
        assert newest["crew"] is None
        assert newest["shift"] is None
        assert result.occurrences[1]["work_order"] == "WO-1"

    def test_same_type_categories_rank_in(self, store, fake_db):
        fake_db.seed("downtime_events", [
            _downtime("2026-03-10", "Camera Faults", run="r1"),
            _downtime("2026-03-10", "Feeder", run="r1"),
            _downtime("2026-03-11", "Feeder", run="r1"),
        ])
        fake_db.seed("spoilage_events", [_spoilage("Coating", "r1")])
        result = investigate(store, "Camera Faults", "downtime", START, END)
        assert result.related_issues == [
            {"category": "Feeder", "coOccurrenceCount": 2},
            {"category": "Coating", "coOccurrenceCount": 1},
        ]

    def test_category_on_both_tables_counts_combined(self, store, fake_db):
        fake_db.seed("downtime_events", [
            _downtime("2026-03-10", "Camera Faults", run="r1"),
            _downtime("2026-03-10", "Coating", run="r1"),
        ])
        fake_db.seed("spoilage_events", [_spoilage("Coating", "r1")])
        result = investigate(store, "Camera Faults", "downtime", START, END)
        assert result.related_issues == [{"category": "Coating", "coOccurrenceCount": 2}]

    def test_machine_filter(self, seeded):
        result = investigate(seeded, "Camera Faults", "downtime", START, END, machine="LA01")
        assert len(result.occurrences) == 2
        assert {o["machine"] for o in result.occurrences} == {"LA01"}
        assert result.related_issues == []

    def test_to_dict_shape(self, seeded):
        out = investigate(seeded, "Camera Faults", "downtime", START, END).to_dict()
        assert out["shiftPattern"]["mostCommon"] == "Earlies"
        assert set(out) == {
            "category", "issueType", "occurrences", "crewBreakdown", "shiftPattern", "relatedIssues",
        }

    def test_invalid_window(self, seeded):
        with pytest.raises(InvalidInput):
            investigate(seeded, "Camera Faults", "downtime", END, START)

    def test_related_query_failure_aborts(self, seeded, fake_db):
        fake_db.failing.add("spoilage_events")
        with pytest.raises(CollaboratorUnavailable):
            investigate(seeded, "Camera Faults", "downtime", START, END)


# =====================================================================
# Breakdown helpers
# =====================================================================

class TestBreakdowns:

    def test_crew_breakdown_skips_missing_crew(self):
        events = coerce_events([
            _downtime("2026-03-10", "X", crew=None),
            _downtime("2026-03-11", "X", crew="B", minutes=5),
        ])
        assert crew_breakdown(events) == [{"crew": "B", "count": 1, "totalImpact": 5.0}]

    def test_shift_pattern_without_shifts(self):
        events = coerce_events([_downtime("2026-03-10", "X", shift=None)])
        assert shift_pattern(events) == (None, [])

"""
Unit tests for training priority scoring and crew training needs.

Run: python -m pytest test_training.py -v
"""

import math
from datetime import date

import pytest

from config import DetectionSettings
from errors import InvalidInput
from event_schema import coerce_events
from models import IgnoreEntry
from training import detect_training_needs, priority_tier, score_issue, team_training_needs


def _make_event(day, category, machine="LP05", crew="A", shift="Earlies", minutes=10.0):
    return {
        "date": day, "press": machine, "category": category,
        "team": crew, "shift": shift, "minutes": minutes,
    }


def _repeat(n, *args, **kwargs):
    return [_make_event(*args, **kwargs) for _ in range(n)]


# =====================================================================
# score_issue
# =====================================================================

class TestScoreIssue:

    def test_worked_example(self):
        score = score_issue(10, 500, 50, "increasing", "High")
        assert score.score == 97
        assert score.tier == "Critical"

    def test_everything_maxed_clamps_to_100(self):
        assert score_issue(100, 10_000, -300, "increasing", "Critical").score == 100

    def test_minimal_issue(self):
        score = score_issue(1, 5, 0, "decreasing", "Low")
        # 3 + 0.5 + 0 + 0 + 2 = 5.5 -> rounds half up
        assert score.score == 6
        assert score.tier == "Low"

    def test_negative_variance_counts_by_magnitude(self):
        assert score_issue(1, 0, -15, "stable", "Medium").score == score_issue(1, 0, 15, "stable", "Medium").score

    def test_unknown_severity_defaults_to_medium(self):
        assert score_issue(1, 0, 0, "stable", "Whatever").score == score_issue(1, 0, 0, "stable", "Medium").score

    @pytest.mark.parametrize("bad", [math.nan, math.inf, None])
    def test_non_finite_contributes_zero(self, bad):
        base = score_issue(2, 0, 0, "stable", "Medium").score
        assert score_issue(2, bad, bad, "stable", "Medium").score == base

    def test_negative_counts_rejected(self):
        with pytest.raises(InvalidInput):
            score_issue(-1, 10, 0, "stable", "High")
        with pytest.raises(InvalidInput):
            score_issue(1, -10, 0, "stable", "High")

    @pytest.mark.parametrize("score,tier", [
        (100, "Critical"), (75, "Critical"), (74, "High"), (50, "High"),
        (49, "Medium"), (25, "Medium"), (24, "Low"), (0, "Low"),
    ])
    def test_tier_boundaries(self, score, tier):
        assert priority_tier(score) == tier


# =====================================================================
# detect_training_needs
# =====================================================================

class TestDetectTrainingNeeds:

    def test_threshold_on_occurrences(self):
        current = coerce_events(
            _repeat(3, "2026-03-10", "Camera Faults", crew="A")
            + _repeat(2, "2026-03-10", "Camera Faults", crew="B")
        )
        needs = detect_training_needs(current, coerce_events([]), "downtime", DetectionSettings())
        assert [n.crew for n in needs] == ["A"]
        assert needs[0].crew_identifier == "LP05_Earlies_A"

    def test_threshold_on_impact(self):
        current = coerce_events(_repeat(4, "2026-03-10", "Breaks", minutes=5))
        settings = DetectionSettings(min_impact=25)
        assert detect_training_needs(current, coerce_events([]), "downtime", settings) == []

    def test_variance_against_machine_average(self):
        current = coerce_events(
            _repeat(6, "2026-03-10", "Coating", crew="A")
            + _repeat(2, "2026-03-10", "Coating", crew="B")
        )
        settings = DetectionSettings(min_occurrences=1)
        needs = {n.crew: n for n in detect_training_needs(current, coerce_events([]), "downtime", settings)}
        # average 4 -> A is +50%, B is -50%
        assert needs["A"].variance_pct == pytest.approx(50.0)
        assert needs["B"].variance_pct == pytest.approx(-50.0)
        assert needs["A"].above_team_average
        assert not needs["B"].above_team_average

    def test_recommendation_and_tier_from_category(self):
        current = coerce_events(_repeat(3, "2026-03-10", "Mechanical Breakdown"))
        need = detect_training_needs(current, coerce_events([]), "downtime", DetectionSettings())[0]
        assert need.severity_tier == "Critical"
        assert "Mechanical" in need.recommendation
        assert need.trend == "increasing"

    def test_trend_uses_settings_threshold(self):
        current = coerce_events(_repeat(6, "2026-03-10", "Breaks"))
        previous = coerce_events(_repeat(5, "2026-03-01", "Breaks"))
        # +20%: increasing with the 15% default, stable with a 25% threshold
        loose = detect_training_needs(current, previous, "downtime", DetectionSettings())[0]
        strict = detect_training_needs(current, previous, "downtime", DetectionSettings(trend_increase_threshold=25))[0]
        assert loose.trend == "increasing"
        assert strict.trend == "stable"
        assert strict.previous_count == 5

    def test_ignored_categories_skipped(self):
        current = coerce_events(
            _repeat(3, "2026-03-10", "Breaks", machine="LP05")
            + _repeat(3, "2026-03-10", "Breaks", machine="LA01")
        )
        entries = [IgnoreEntry(category="Breaks", issue_type="downtime", scope_machine="LP05")]
        needs = detect_training_needs(current, coerce_events([]), "downtime", DetectionSettings(), entries)
        assert [n.machine for n in needs] == ["LA01"]

    def test_best_performing_crew_and_opportunity(self):
        current = coerce_events(
            _repeat(5, "2026-03-10", "Coating", crew="A")
            + _repeat(2, "2026-03-10", "Coating", crew="B", shift="Lates")
            + _repeat(3, "2026-03-10", "Coating", crew="C")
            + _repeat(4, "2026-03-10", "Coating", machine="LA01", crew="D")
        )
        needs = {n.crew: n for n in detect_training_needs(current, coerce_events([]), "downtime", DetectionSettings())}
        # B is under the occurrence threshold but still the benchmark on LP05
        assert set(needs) == {"A", "C", "D"}
        assert needs["A"].best_performing_crew == "LP05_Lates_B"
        assert needs["A"].opportunity_reduction_pct == pytest.approx(60.0)
        assert needs["C"].opportunity_reduction_pct == pytest.approx(100 / 3)
        # alone on its machine: its own benchmark
        assert needs["D"].best_performing_crew == "LA01_Earlies_D"
        assert needs["D"].opportunity_reduction_pct == 0.0
        assert needs["A"].to_dict()["opportunityReductionPct"] == 60.0

    def test_best_crew_tie_goes_to_first_seen(self):
        current = coerce_events(
            _repeat(3, "2026-03-10", "Breaks", crew="A")
            + _repeat(3, "2026-03-10", "Breaks", crew="B")
        )
        needs = detect_training_needs(current, coerce_events([]), "downtime", DetectionSettings())
        assert {n.best_performing_crew for n in needs} == {"LP05_Earlies_A"}

    def test_events_without_crew_are_not_attributed(self):
        current = coerce_events(_repeat(5, "2026-03-10", "Breaks", crew=None))
        assert detect_training_needs(current, coerce_events([]), "downtime", DetectionSettings()) == []


# =====================================================================
# team_training_needs against the store
# =====================================================================

class TestTeamTrainingNeeds:

    def test_ranked_across_both_types(self, store, fake_db):
        fake_db.seed("downtime_events", _repeat(3, "2026-03-10", "Start Up", minutes=2))
        fake_db.seed("spoilage_events", [
            {"date": "2026-03-11", "press": "LA01", "category": "Varnish Fail",
             "team": "B", "shift": "Nights", "units": 400}
            for _ in range(5)
        ])
        needs = team_training_needs(store, today=date(2026, 3, 16))
        assert [n.issue_type for n in needs] == ["spoilage", "downtime"]
        assert needs[0].priority.score >= needs[1].priority.score

    def test_settings_row_applies(self, store, fake_db):
        fake_db.seed("training_settings", [{"min_occurrences": 10, "lookback_days": 7}])
        fake_db.seed("downtime_events", _repeat(5, "2026-03-14", "Breaks"))
        assert team_training_needs(store, today=date(2026, 3, 16)) == []

    def test_lookback_limits_window(self, store, fake_db):
        fake_db.seed("training_settings", [{"lookback_days": 7}])
        fake_db.seed("downtime_events", _repeat(3, "2026-03-01", "Breaks"))
        assert team_training_needs(store, today=date(2026, 3, 16)) == []

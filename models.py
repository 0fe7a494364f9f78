"""Data models for the Recurring Issue Analytics Engine"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class IssueSummary:
    """One category's recurring-issue roll-up for a window."""
    category: str
    occurrence_count: int
    total_impact: float
    affected_machines: list[str] = field(default_factory=list)
    most_affected_crew: str | None = None
    trend: str = "stable"
    previous_period_count: int = 0
    ignored: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "occurrences": self.occurrence_count,
            "totalImpact": self.total_impact,
            "affectedMachines": list(self.affected_machines),
            "mostAffectedCrew": self.most_affected_crew,
            "trend": self.trend,
            "previousPeriodCount": self.previous_period_count,
            "ignored": self.ignored,
        }


@dataclass
class IssueReport:
    """Active and ignored issues from a single aggregation."""
    issue_type: str
    active: list[IssueSummary] = field(default_factory=list)
    ignored: list[IssueSummary] = field(default_factory=list)

    def combined(self) -> list[IssueSummary]:
        """Active then ignored issues, each list keeping its own order."""
        return list(self.active) + list(self.ignored)

    def to_dict(self, include_ignored=True) -> dict[str, Any]:
        out = {
            "issueType": self.issue_type,
            "active": [i.to_dict() for i in self.active],
        }
        if include_ignored:
            out["ignored"] = [i.to_dict() for i in self.ignored]
        return out


@dataclass
class IgnoreEntry:
    category: str
    issue_type: str
    scope_machine: str | None = None
    reason: str | None = None
    created_by: str = "User"
    created_at: datetime | None = None
    id: Any = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "IgnoreEntry":
        created = row.get("created_at")
        if isinstance(created, str) and created:
            try:
                created = datetime.fromisoformat(created.replace("Z", "+00:00"))
            except ValueError:
                created = None
        return cls(
            category=row.get("category"),
            issue_type=row.get("issue_type"),
            scope_machine=row.get("press") or None,
            reason=row.get("reason"),
            created_by=row.get("ignored_by") or "User",
            created_at=created or None,
            id=row.get("id"),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "issue_type": self.issue_type,
            "press": self.scope_machine,
            "reason": self.reason,
            "ignored_by": self.created_by,
            "created_at": (self.created_at or datetime.now(timezone.utc)).isoformat(),
        }


@dataclass
class InvestigationResult:
    category: str
    issue_type: str
    occurrences: list[dict[str, Any]] = field(default_factory=list)
    crew_breakdown: list[dict[str, Any]] = field(default_factory=list)
    most_common_shift: str | None = None
    shift_breakdown: list[dict[str, Any]] = field(default_factory=list)
    related_issues: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "issueType": self.issue_type,
            "occurrences": self.occurrences,
            "crewBreakdown": self.crew_breakdown,
            "shiftPattern": {
                "mostCommon": self.most_common_shift,
                "breakdown": self.shift_breakdown,
            },
            "relatedIssues": self.related_issues,
        }


@dataclass(frozen=True)
class PriorityScore:
    score: int
    tier: str

    def to_dict(self) -> dict[str, Any]:
        return {"score": self.score, "tier": self.tier}


@dataclass
class TrainingNeed:
    machine: str
    shift: str | None
    crew: str
    issue_type: str
    category: str
    occurrence_count: int
    total_impact: float
    variance_pct: float
    trend: str
    recommendation: str
    severity_tier: str
    priority: PriorityScore
    above_team_average: bool = False
    previous_count: int = 0
    best_performing_crew: str | None = None
    opportunity_reduction_pct: float | None = None

    @property
    def crew_identifier(self) -> str:
        return f"{self.machine}_{self.shift or ''}_{self.crew}"

    @property
    def avg_impact(self) -> float:
        return self.total_impact / self.occurrence_count if self.occurrence_count else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "crewIdentifier": self.crew_identifier,
            "machine": self.machine,
            "shift": self.shift,
            "crew": self.crew,
            "issueType": self.issue_type,
            "category": self.category,
            "occurrences": self.occurrence_count,
            "totalImpact": self.total_impact,
            "avgImpact": round(self.avg_impact, 2),
            "variancePct": round(self.variance_pct, 1),
            "aboveTeamAverage": self.above_team_average,
            "trend": self.trend,
            "previousPeriodCount": self.previous_count,
            "bestPerformingCrew": self.best_performing_crew,
            "opportunityReductionPct": (
                round(self.opportunity_reduction_pct, 1)
                if self.opportunity_reduction_pct is not None else None
            ),
            "recommendation": self.recommendation,
            "severityTier": self.severity_tier,
            "priority": self.priority.to_dict(),
        }


@dataclass
class MaintenanceAlert:
    machine: str
    category: str
    current_minutes: float
    previous_minutes: float
    pct_change: float
    severity: str
    recommendation: str
    consecutive_weeks_increasing: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "machine": self.machine,
            "category": self.category,
            "currentMinutes": self.current_minutes,
            "previousMinutes": self.previous_minutes,
            "pctChange": round(self.pct_change, 1),
            "severity": self.severity,
            "recommendation": self.recommendation,
            "consecutiveWeeksIncreasing": self.consecutive_weeks_increasing,
        }

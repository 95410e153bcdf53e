"""
exptools/overlap.py

Can these experiments run at the same time?

A simple, assumption-light model: each experiment reaches
audience_size * traffic_allocation / 100 users, reaches beyond the available
audience are counted as overlap, and shared metrics / pages / targeting
rules are flagged as conflicts.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .errors import ValidationError
from .parsing import parse_string_list
from .utils import round_to

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 20.0

RISK_ORDER = {"Low": 0, "Medium": 1, "High": 2}


# -------------------------
# Input records
# -------------------------

@dataclass(frozen=True)
class ExperimentDescriptor:
    id: str
    name: str
    audience_size: float
    traffic_allocation: float  # percent, 0-100
    targeting_rules: Tuple[str, ...] = ()
    primary_metric: Optional[str] = None
    experiment_type: Optional[str] = None
    affected_pages: Tuple[str, ...] = ()

    @property
    def reach(self) -> float:
        return self.audience_size * self.traffic_allocation / 100.0

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], idx: int = 0) -> "ExperimentDescriptor":
        field_name = f"experiments[{idx}]"
        if not isinstance(raw, Mapping):
            raise ValidationError(f"{field_name} must be an object", field="experiments")
        if not raw.get("id") or not raw.get("name"):
            raise ValidationError(f"Experiment at index {idx} must have 'id' and 'name' fields", field="experiments")
        name = str(raw["name"])

        audience = raw.get("audienceSize")
        if isinstance(audience, bool) or not isinstance(audience, (int, float)) or audience <= 0:
            raise ValidationError(f"Experiment '{name}' must have a valid audienceSize > 0", field="experiments")
        traffic = raw.get("trafficAllocation")
        if isinstance(traffic, bool) or not isinstance(traffic, (int, float)) or not (0 <= traffic <= 100):
            raise ValidationError(f"Experiment '{name}' must have trafficAllocation between 0 and 100",
                                  field="experiments")

        metric = raw.get("primaryMetric")
        return cls(
            id=str(raw["id"]),
            name=name,
            audience_size=float(audience),
            traffic_allocation=float(traffic),
            targeting_rules=tuple(parse_string_list(f"{field_name}.targetingRules", raw.get("targetingRules"))),
            primary_metric=str(metric) if metric else None,
            experiment_type=raw.get("experimentType") or None,
            affected_pages=tuple(parse_string_list(f"{field_name}.affectedPages", raw.get("affectedPages"))),
        )


def parse_experiments(items: Sequence[Any]) -> List[ExperimentDescriptor]:
    if not items:
        raise ValidationError("experiments array cannot be empty", field="experiments")
    return [ExperimentDescriptor.from_dict(raw, i) for i, raw in enumerate(items)]


# -------------------------
# Results
# -------------------------

@dataclass(frozen=True)
class PairwiseOverlap:
    experiment1: str
    experiment2: str
    estimated_overlap: float
    overlap_percentage: float
    conflict_risk: str
    reasons: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "experiment1": self.experiment1,
            "experiment2": self.experiment2,
            "estimatedOverlap": int(round_to(self.estimated_overlap, 0)),
            "overlapPercentage": round_to(self.overlap_percentage, 2),
            "conflictRisk": self.conflict_risk,
            "reasons": list(self.reasons),
        }


@dataclass(frozen=True)
class Conflict:
    type: str  # audience | metric | page | targeting
    severity: str  # Warning | Error | Critical
    description: str
    affected_experiments: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "severity": self.severity,
            "description": self.description,
            "affectedExperiments": list(self.affected_experiments),
        }


@dataclass
class OverlapReport:
    experiments: List[ExperimentDescriptor]
    total_audience_used: float
    estimated_overlap: float
    overlap_percentage: float
    risk_level: str
    can_run_concurrently: bool
    pairwise: List[PairwiseOverlap] = field(default_factory=list)
    conflicts: List[Conflict] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                "totalExperiments": len(self.experiments),
                "totalAudienceUsed": int(round_to(self.total_audience_used, 0)),
                "estimatedOverlap": int(round_to(self.estimated_overlap, 0)),
                "overlapPercentage": round_to(self.overlap_percentage, 2),
                "riskLevel": self.risk_level,
                "canRunConcurrently": self.can_run_concurrently,
            },
            "pairwiseAnalysis": [p.to_dict() for p in self.pairwise],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "recommendations": list(self.recommendations),
            "visualRepresentation": [
                {
                    "experimentName": e.name,
                    "audienceSize": e.audience_size,
                    "trafficAllocation": e.traffic_allocation,
                    "estimatedReach": int(round_to(e.reach, 0)),
                }
                for e in self.experiments
            ],
        }


# -------------------------
# Overlap estimates
# -------------------------

def _audience_cap(experiments: Sequence[ExperimentDescriptor], total_audience: Optional[float]) -> float:
    return total_audience or max(e.audience_size for e in experiments)

def aggregate_overlap(experiments: Sequence[ExperimentDescriptor],
                      total_audience: Optional[float] = None) -> float:
    """Reach in excess of the available audience; zero when everything fits."""
    if len(experiments) < 2:
        return 0.0
    total_reach = sum(e.reach for e in experiments)
    return max(0.0, total_reach - _audience_cap(experiments, total_audience))

def _raise_to(current: str, level: str) -> str:
    return level if RISK_ORDER[level] > RISK_ORDER[current] else current

def pairwise_overlap(a: ExperimentDescriptor, b: ExperimentDescriptor) -> PairwiseOverlap:
    overlap = min(a.reach, b.reach)
    pct = overlap / min(a.audience_size, b.audience_size) * 100
    reasons: List[str] = []
    risk = "Low"

    shared_rules = [r for r in a.targeting_rules if r in b.targeting_rules]
    if shared_rules:
        reasons.append(f"Similar targeting rules: {', '.join(shared_rules)}")
        risk = "Medium"

    if a.primary_metric and a.primary_metric == b.primary_metric:
        reasons.append(f"Same primary metric: {a.primary_metric}")
        risk = "High"

    shared_pages = [p for p in a.affected_pages if p in b.affected_pages]
    if shared_pages:
        reasons.append(f"Overlapping pages: {', '.join(shared_pages)}")
        risk = _raise_to(risk, "Medium")

    if pct > 50:
        reasons.append(f"High audience overlap: {pct:.1f}%")
        risk = "High"
    elif pct > 20:
        reasons.append(f"Moderate audience overlap: {pct:.1f}%")
        risk = _raise_to(risk, "Medium")

    if not reasons:
        reasons.append("No significant conflicts detected")

    return PairwiseOverlap(a.name, b.name, overlap, pct, risk, reasons)

def all_pairs(experiments: Sequence[ExperimentDescriptor]) -> List[PairwiseOverlap]:
    return [
        pairwise_overlap(experiments[i], experiments[j])
        for i in range(len(experiments))
        for j in range(i + 1, len(experiments))
    ]


# -------------------------
# Conflicts
# -------------------------

def group_pairs(pairs: Iterable[Tuple[str, str]]) -> "OrderedDict[str, List[str]]":
    groups: "OrderedDict[str, List[str]]" = OrderedDict()
    for key, name in pairs:
        groups.setdefault(key, []).append(name)
    return groups

def detect_conflicts(experiments: Sequence[ExperimentDescriptor]) -> List[Conflict]:
    conflicts: List[Conflict] = []

    by_metric = group_pairs((e.primary_metric, e.name) for e in experiments if e.primary_metric)
    for metric, names in by_metric.items():
        if len(names) > 1:
            conflicts.append(Conflict(
                "metric", "Critical",
                f"Multiple experiments testing the same primary metric: {metric}. "
                "This may lead to conflicting changes and unreliable results.",
                names,
            ))

    by_page = group_pairs((page, e.name) for e in experiments for page in e.affected_pages)
    for page, names in by_page.items():
        if len(names) > 1:
            conflicts.append(Conflict(
                "page", "Error",
                f"Multiple experiments affecting the same page: {page}. "
                "May cause interaction effects or UI conflicts.",
                names,
            ))

    total_traffic = sum(e.traffic_allocation for e in experiments)
    if total_traffic > 100:
        conflicts.append(Conflict(
            "audience", "Warning",
            f"Total traffic allocation ({total_traffic:g}%) exceeds 100%. "
            "Experiments will have overlapping audiences.",
            [e.name for e in experiments],
        ))

    by_targeting = group_pairs(("|".join(sorted(e.targeting_rules)), e.name)
                          for e in experiments if e.targeting_rules)
    for _, names in by_targeting.items():
        if len(names) > 1:
            conflicts.append(Conflict(
                "targeting", "Warning",
                "Multiple experiments with identical targeting rules. This increases audience overlap.",
                names,
            ))

    return conflicts

def assess_risk(overlap_pct: float,
                conflicts: Sequence[Conflict],
                pairs: Sequence[PairwiseOverlap],
                tolerance: float) -> str:
    if any(c.severity == "Critical" for c in conflicts):
        return "Critical"
    if any(p.conflict_risk == "High" for p in pairs):
        return "High"
    if any(c.severity == "Error" for c in conflicts):
        return "High"
    if overlap_pct > tolerance * 2:
        return "High"
    if overlap_pct > tolerance:
        return "Medium"
    if any(p.conflict_risk == "Medium" for p in pairs):
        return "Medium"
    return "Low"


# -------------------------
# Recommendations
# -------------------------

_RISK_MESSAGES = {
    "Low": "✅ Low risk: These experiments can run concurrently with minimal interaction effects.",
    "Medium": "⚠️ Medium risk: Experiments can run concurrently but monitor closely for interaction effects. "
              "Consider sequential testing if possible.",
    "High": "⚠️ High risk: Significant overlap detected. Strongly recommend running experiments sequentially "
            "or reducing audience overlap.",
    "Critical": "❌ Critical risk: Do not run these experiments concurrently. "
                "Results will be unreliable due to conflicts.",
}

def overlap_recommendations(experiments: Sequence[ExperimentDescriptor],
                            overlap_pct: float,
                            conflicts: Sequence[Conflict],
                            risk: str,
                            total_audience: Optional[float],
                            tolerance: float) -> List[str]:
    recs = [_RISK_MESSAGES[risk]]

    critical = [c for c in conflicts if c.severity == "Critical"]
    if critical:
        groups = ", ".join(" & ".join(c.affected_experiments) for c in critical)
        recs.append(f"🚨 Critical conflicts detected: {groups}. These experiments MUST run sequentially.")

    if any(c.type == "metric" for c in conflicts):
        recs.append("💡 Metric conflict: Consider using guardrail metrics or run experiments on different "
                    "user segments to isolate effects.")
    if any(c.type == "page" for c in conflicts):
        recs.append("💡 Page conflict: Ensure UI changes don't interfere. Consider mutual exclusion or "
                    "layer prioritization.")

    if overlap_pct > tolerance:
        recs.append("💡 Reduce overlap: Consider using mutually exclusive audiences, reducing traffic allocation, "
                    "or implementing experiment layers/namespaces.")

    if total_audience:
        utilization = sum(e.reach for e in experiments) / total_audience * 100
        if utilization > 80:
            recs.append(f"⚠️ High audience utilization ({utilization:.1f}%): Limited room for additional "
                        "experiments. Consider prioritization.")

    recs.append("💡 Best practice: Document experiment interactions and monitor for Sample Ratio Mismatch (SRM) "
                "issues during experiment runtime.")
    if len(experiments) > 3:
        recs.append(f"💡 Best practice: With {len(experiments)} concurrent experiments, consider implementing an "
                    "experimentation calendar and formal conflict review process.")
    return recs


# -------------------------
# Entry point
# -------------------------

def check_overlap(experiments: Sequence[ExperimentDescriptor],
                  total_audience_size: Optional[float] = None,
                  overlap_tolerance: float = DEFAULT_TOLERANCE) -> OverlapReport:
    if not experiments:
        raise ValidationError("experiments array cannot be empty", field="experiments")
    if not (0 <= overlap_tolerance <= 100):
        raise ValidationError("overlapTolerance must be between 0 and 100", field="overlapTolerance")
    if total_audience_size is not None and total_audience_size <= 0:
        raise ValidationError("totalAudienceSize must be greater than 0", field="totalAudienceSize")

    overlap = aggregate_overlap(experiments, total_audience_size)
    overlap_pct = overlap / _audience_cap(experiments, total_audience_size) * 100
    pairs = all_pairs(experiments)
    conflicts = detect_conflicts(experiments)
    risk = assess_risk(overlap_pct, conflicts, pairs, overlap_tolerance)
    concurrent = risk == "Low" or (risk == "Medium" and all(c.severity != "Critical" for c in conflicts))

    logger.debug("overlap: %d experiments, overlap=%.1f%%, risk=%s", len(experiments), overlap_pct, risk)
    return OverlapReport(
        experiments=list(experiments),
        total_audience_used=sum(e.reach for e in experiments),
        estimated_overlap=overlap,
        overlap_percentage=overlap_pct,
        risk_level=risk,
        can_run_concurrently=concurrent,
        pairwise=pairs,
        conflicts=conflicts,
        recommendations=overlap_recommendations(experiments, overlap_pct, conflicts, risk,
                                                total_audience_size, overlap_tolerance),
    )

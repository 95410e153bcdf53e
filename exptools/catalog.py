"""
exptools/catalog.py

Bird's-eye view of an experimentation program.

Takes the caller's experiment list (id, name, status, audience, traffic,
metric, pages, targeting), filters it, groups experiment ids by metric / page /
targeting rule and flags conflicts among the running experiments.

    catalog_experiments(parse_catalog(items), status="live").to_dict()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import ValidationError
from .overlap import ExperimentDescriptor, group_pairs
from .utils import round_to

logger = logging.getLogger(__name__)

STATUSES = ("running", "paused", "draft", "archived")
STATUS_FILTERS = ("live", "running", "paused", "draft", "archived", "all")
_STATUS_ALIASES = {"live": "running"}


# -------------------------
# Input records
# -------------------------

def _optional_text(raw: Mapping[str, Any], key: str, field_name: str) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name}.{key} must be a string", field="experiments")
    return value


@dataclass(frozen=True)
class CatalogEntry:
    experiment: ExperimentDescriptor
    status: str  # running | paused | draft | archived
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    variations: Tuple[Dict[str, Any], ...] = ()

    @property
    def id(self) -> str:
        return self.experiment.id

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any], idx: int = 0) -> "CatalogEntry":
        experiment = ExperimentDescriptor.from_dict(raw, idx)
        field_name = f"experiments[{idx}]"

        status = raw.get("status")
        if not isinstance(status, str) or status.lower() not in STATUSES:
            raise ValidationError(
                f"Experiment '{experiment.name}' must have a status of {', '.join(STATUSES)}", field="experiments"
            )

        variations = raw.get("variations") or []
        if not isinstance(variations, list) or not all(isinstance(v, Mapping) for v in variations):
            raise ValidationError(f"{field_name}.variations must be an array of objects", field="experiments")

        return cls(
            experiment=experiment,
            status=status.lower(),
            start_date=_optional_text(raw, "startDate", field_name),
            end_date=_optional_text(raw, "endDate", field_name),
            variations=tuple(dict(v) for v in variations),
        )

    def to_dict(self) -> Dict[str, Any]:
        e = self.experiment
        out: Dict[str, Any] = {
            "id": e.id,
            "name": e.name,
            "status": self.status,
            "audienceSize": e.audience_size,
            "trafficAllocation": e.traffic_allocation,
        }
        if e.primary_metric:
            out["primaryMetric"] = e.primary_metric
        if e.affected_pages:
            out["affectedPages"] = list(e.affected_pages)
        if e.targeting_rules:
            out["targetingRules"] = list(e.targeting_rules)
        if self.start_date:
            out["startDate"] = self.start_date
        if self.end_date:
            out["endDate"] = self.end_date
        if self.variations:
            out["variations"] = [dict(v) for v in self.variations]
        return out


def parse_catalog(items: Sequence[Any]) -> List[CatalogEntry]:
    """Unlike the overlap checker, an empty catalog is allowed."""
    return [CatalogEntry.from_dict(raw, i) for i, raw in enumerate(items)]


# -------------------------
# Results
# -------------------------

@dataclass(frozen=True)
class CatalogConflict:
    description: str
    experiment_ids: List[str]
    severity: str  # warning | error | critical

    def to_dict(self) -> Dict[str, Any]:
        return {"description": self.description, "experimentIds": list(self.experiment_ids),
                "severity": self.severity}


@dataclass
class CatalogReport:
    experiments: List[CatalogEntry]
    by_status: Dict[str, int]
    total_audience_reach: float
    average_traffic_allocation: float
    grouped_by: Dict[str, Dict[str, List[str]]]
    conflicts: List[CatalogConflict] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                "totalExperiments": len(self.experiments),
                "byStatus": dict(self.by_status),
                "totalAudienceReach": int(round_to(self.total_audience_reach, 0)),
                "averageTrafficAllocation": round_to(self.average_traffic_allocation, 2),
            },
            "experiments": [e.to_dict() for e in self.experiments],
            "groupedBy": {k: {key: list(ids) for key, ids in v.items()} for k, v in self.grouped_by.items()},
            "potentialConflicts": [c.to_dict() for c in self.conflicts],
            "recommendations": list(self.recommendations),
        }


# -------------------------
# Filtering / grouping
# -------------------------

def _contains(haystack: Optional[str], needle: str) -> bool:
    return haystack is not None and needle.lower() in haystack.lower()

def filter_catalog(entries: Sequence[CatalogEntry],
                   status: str = "all",
                   metric: Optional[str] = None,
                   page: Optional[str] = None,
                   targeting_rule: Optional[str] = None) -> List[CatalogEntry]:
    """Status is an exact match (live == running); the rest are case-insensitive substring matches."""
    wanted = status.lower()
    if wanted not in STATUS_FILTERS:
        raise ValidationError(f"Invalid status filter. Must be one of: {', '.join(STATUS_FILTERS)}",
                              field="status")
    wanted = _STATUS_ALIASES.get(wanted, wanted)

    out = list(entries)
    if wanted != "all":
        out = [e for e in out if e.status == wanted]
    if metric:
        out = [e for e in out if _contains(e.experiment.primary_metric, metric)]
    if page:
        out = [e for e in out if any(_contains(p, page) for p in e.experiment.affected_pages)]
    if targeting_rule:
        out = [e for e in out if any(_contains(r, targeting_rule) for r in e.experiment.targeting_rules)]
    return out

def group_catalog(entries: Sequence[CatalogEntry]) -> Dict[str, Dict[str, List[str]]]:
    with_metric = [e for e in entries if e.experiment.primary_metric]
    return {
        "byMetric": dict(group_pairs((e.experiment.primary_metric, e.id) for e in with_metric)),
        "byPage": dict(group_pairs((p, e.id) for e in entries for p in e.experiment.affected_pages)),
        "byTargeting": dict(group_pairs((r, e.id) for e in entries for r in e.experiment.targeting_rules)),
    }


# -------------------------
# Conflicts among running experiments
# -------------------------

def running_conflicts(entries: Sequence[CatalogEntry]) -> List[CatalogConflict]:
    running = [e for e in entries if e.status == "running"]
    conflicts: List[CatalogConflict] = []

    by_metric = group_pairs((e.experiment.primary_metric, e.id) for e in running if e.experiment.primary_metric)
    for metric, ids in by_metric.items():
        if len(ids) > 1:
            conflicts.append(CatalogConflict(
                f"Multiple running experiments testing the same metric: {metric}", ids, "critical"))

    by_page = group_pairs((p, e.id) for e in running for p in e.experiment.affected_pages)
    for page, ids in by_page.items():
        if len(ids) > 1:
            conflicts.append(CatalogConflict(
                f"Multiple running experiments affecting the same page: {page}", ids, "error"))

    total_traffic = sum(e.experiment.traffic_allocation for e in running)
    if total_traffic > 100:
        conflicts.append(CatalogConflict(
            f"High traffic allocation ({total_traffic:g}%) across running experiments may cause significant overlap",
            [e.id for e in running], "warning"))

    return conflicts


# -------------------------
# Recommendations
# -------------------------

def catalog_recommendations(by_status: Mapping[str, int],
                            conflicts: Sequence[CatalogConflict],
                            average_traffic: float) -> List[str]:
    recs: List[str] = []
    running, paused = by_status["running"], by_status["paused"]
    draft, archived = by_status["draft"], by_status["archived"]

    if running == 0 and draft > 0:
        recs.append(f"💡 You have {draft} draft experiment(s) ready to launch. "
                    "Consider prioritizing and starting tests.")
    if running > 5:
        recs.append(f"⚠️ {running} experiments running concurrently. This is a high number - ensure you have "
                    "capacity to monitor all tests and results won't interfere.")
    if paused > 0:
        recs.append(f"💡 {paused} paused experiment(s). Review if these should be resumed, archived, or restarted.")

    critical = sum(1 for c in conflicts if c.severity == "critical")
    if critical:
        recs.append(f"🚨 {critical} critical conflict(s) detected among running experiments. "
                    "Review immediately and consider pausing conflicting tests.")
    errors = sum(1 for c in conflicts if c.severity == "error")
    if errors:
        recs.append(f"⚠️ {errors} page-level conflict(s) detected. Monitor for UI issues and interaction effects.")

    if average_traffic > 60:
        recs.append(f"⚠️ Average traffic allocation is {average_traffic:g}% - consider reducing to minimize "
                    "overlap and preserve audience capacity.")
    if archived > 10:
        recs.append(f"💡 {archived} archived experiments. "
                    "Consider cleaning up old experiments to keep your catalog manageable.")

    if not recs:
        recs.append("✅ Experimentation program looks healthy. "
                    "Continue monitoring for conflicts and maintaining best practices.")
    return recs


# -------------------------
# Entry point
# -------------------------

def catalog_experiments(entries: Sequence[CatalogEntry],
                        status: str = "all",
                        metric: Optional[str] = None,
                        page: Optional[str] = None,
                        targeting_rule: Optional[str] = None) -> CatalogReport:
    selected = filter_catalog(entries, status, metric, page, targeting_rule)

    by_status = {s: sum(1 for e in selected if e.status == s) for s in STATUSES}
    reach = sum(e.experiment.reach for e in selected)
    average = (sum(e.experiment.traffic_allocation for e in selected) / len(selected)) if selected else 0.0
    conflicts = running_conflicts(selected)

    logger.debug("catalog: %d of %d experiments selected, %d conflicts", len(selected), len(entries),
                 len(conflicts))
    return CatalogReport(
        experiments=selected,
        by_status=by_status,
        total_audience_reach=reach,
        average_traffic_allocation=average,
        grouped_by=group_catalog(selected),
        conflicts=conflicts,
        recommendations=catalog_recommendations(by_status, conflicts, round_to(average, 2)),
    )

"""
exptools/variance.py

Is a metric stable enough to run an A/B test on?

Scores the historical series of a metric (e.g. daily conversion rate) on a
0-100 scale from its coefficient of variation, outlier share and length,
and turns the numbers into plain-language recommendations.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .errors import ValidationError
from .stats import DescriptiveStatistics, OutlierReport, describe, detect_outliers
from .utils import round_to

logger = logging.getLogger(__name__)

STABLE_SCORE = 60.0
MIN_RELIABLE_N = 30
LARGE_N = 100
BASE_TEST_SAMPLE = 1000

RATINGS = (
    (80.0, "Excellent"),
    (60.0, "Good"),
    (40.0, "Fair"),
    (20.0, "Poor"),
)


# -------------------------
# Scoring
# -------------------------

def cv_penalty(cv: float) -> float:
    """Piecewise-linear, continuous and non-decreasing in CV (percent)."""
    if cv <= 10:
        return 0.0
    if cv <= 20:
        return (cv - 10) * 1.5
    if cv <= 30:
        return 15 + (cv - 20) * 2
    if cv <= 50:
        return 35 + (cv - 30) * 1.5
    return 65.0

def stability_score(cv: float, outlier_pct: float, n: int) -> float:
    penalty = cv_penalty(abs(cv))
    penalty += outlier_pct * 0.8
    penalty += max(0, MIN_RELIABLE_N - n) * 0.5
    return max(0.0, min(100.0, 100.0 - penalty))

def stability_rating(score: float) -> str:
    for threshold, label in RATINGS:
        if score >= threshold:
            return label
    return "Very Poor"


@dataclass(frozen=True)
class StabilityAssessment:
    score: float
    rating: str
    is_stable_for_testing: bool

def assess_stability(cv: float, outlier_pct: float, n: int) -> StabilityAssessment:
    score = stability_score(cv, outlier_pct, n)
    return StabilityAssessment(
        score=score,
        rating=stability_rating(score),
        is_stable_for_testing=score >= STABLE_SCORE,
    )

def minimum_sample_size_for_test(cv: float) -> int:
    # CV under 30% works with standard sizes; noisier metrics scale up linearly
    return int(math.ceil(BASE_TEST_SAMPLE * max(1.0, abs(cv) / 30.0)))


# -------------------------
# Recommendations
# -------------------------

def _cv_message(cv: float) -> str:
    acv = abs(cv)
    if acv <= 10:
        return (f"✅ Excellent stability (CV: {cv:.2f}%): This metric is highly stable "
                "and ideal for A/B testing.")
    if acv <= 20:
        return (f"✅ Good stability (CV: {cv:.2f}%): This metric is sufficiently stable "
                "for reliable testing.")
    if acv <= 30:
        return (f"⚠️ Fair stability (CV: {cv:.2f}%): Metric is moderately variable. "
                "Consider longer test durations or larger sample sizes.")
    if acv <= 50:
        return (f"⚠️ Poor stability (CV: {cv:.2f}%): High variability detected. You may need "
                "2-3x longer test duration or consider testing on a more stable metric.")
    return (f"❌ Very poor stability (CV: {cv:.2f}%): Extremely high variability. This metric "
            "is not recommended for A/B testing. Consider aggregating data or using a different metric.")

def recommendations(stats: DescriptiveStatistics,
                    outliers: OutlierReport,
                    stability: StabilityAssessment,
                    expected_mean: Optional[float] = None) -> List[str]:
    recs = [_cv_message(stats.cv)]

    if outliers.percentage > 10:
        recs.append(f"⚠️ High outlier rate ({outliers.percentage:.1f}%): Investigate data quality "
                    "issues, external events, or consider outlier filtering.")
    elif outliers.percentage > 5:
        recs.append(f"⚠️ Moderate outliers detected ({outliers.percentage:.1f}%): Review outliers "
                    "to ensure they represent valid data.")

    if stats.n < MIN_RELIABLE_N:
        recs.append(f"⚠️ Small sample size (n={stats.n}): Collect at least {MIN_RELIABLE_N} data points "
                    "for reliable variance estimation. Current analysis may not be conclusive.")
    elif stats.n >= LARGE_N:
        recs.append(f"✅ Large sample size (n={stats.n}): Sample is sufficient for reliable variance analysis.")

    if expected_mean is not None:
        pct_diff = (stats.mean - expected_mean) / expected_mean * 100
        if abs(pct_diff) > 10:
            recs.append(f"⚠️ Mean differs from expected by {abs(pct_diff):.1f}%: Actual mean is "
                        f"{stats.mean:.2f}, expected {expected_mean:g}. Investigate potential data issues.")

    if stability.is_stable_for_testing:
        recs.append("💡 Testing recommendation: Metric is stable enough for A/B testing. "
                    "Standard sample size calculations should be reliable.")
    else:
        factor = math.ceil((STABLE_SCORE - stability.score) / 10)
        recs.append(f"💡 Testing recommendation: Due to high variability, increase planned sample size "
                    f"by {factor}x or use sequential testing methods.")
    return recs


# -------------------------
# Full report
# -------------------------

@dataclass(frozen=True)
class VarianceReport:
    metric_name: str
    confidence_level: float
    statistics: DescriptiveStatistics
    outliers: OutlierReport
    stability: StabilityAssessment
    recommendations: List[str]
    minimum_sample_size_for_test: int

    def to_dict(self) -> Dict[str, Any]:
        s = self.statistics
        q = s.quartiles
        return {
            "metricName": self.metric_name,
            "sampleSize": s.n,
            "confidenceLevel": self.confidence_level,
            "statistics": {
                "mean": round_to(s.mean, 4),
                "median": round_to(s.median, 4),
                "standardDeviation": round_to(s.std, 4),
                "variance": round_to(s.variance, 4),
                "coefficientOfVariation": round_to(s.cv, 2),
                "min": round_to(s.min, 4),
                "max": round_to(s.max, 4),
                "range": round_to(s.range, 4),
                "quartiles": {
                    "q1": round_to(q.q1, 4),
                    "q2": round_to(q.q2, 4),
                    "q3": round_to(q.q3, 4),
                    "iqr": round_to(q.iqr, 4),
                },
            },
            "stability": {
                "score": round_to(self.stability.score, 1),
                "rating": self.stability.rating,
                "isStableForTesting": self.stability.is_stable_for_testing,
            },
            "outliers": {
                "count": self.outliers.count,
                "percentage": round_to(self.outliers.percentage, 2),
                "values": [round_to(v, 4) for v in self.outliers.values],
                "indices": list(self.outliers.indices),
            },
            "recommendations": list(self.recommendations),
            "minimumSampleSizeForTest": self.minimum_sample_size_for_test,
        }


def analyze_metric_variance(values: Iterable[float],
                            metric_name: str = "Unnamed Metric",
                            expected_mean: Optional[float] = None,
                            confidence_level: float = 0.95) -> VarianceReport:
    if not (0 < confidence_level < 1):
        raise ValidationError("confidenceLevel must be between 0 and 1 (e.g., 0.95)", field="confidenceLevel")
    if expected_mean is not None and expected_mean == 0:
        raise ValidationError("expectedMean must be non-zero to compare against", field="expectedMean")

    values = list(values)
    stats = describe(values)
    outliers = detect_outliers(values, stats.quartiles)
    stability = assess_stability(stats.cv, outliers.percentage, stats.n)

    report = VarianceReport(
        metric_name=metric_name,
        confidence_level=confidence_level,
        statistics=stats,
        outliers=outliers,
        stability=stability,
        recommendations=recommendations(stats, outliers, stability, expected_mean),
        minimum_sample_size_for_test=minimum_sample_size_for_test(stats.cv),
    )
    logger.debug("variance %s: score=%.1f rating=%s outliers=%d",
                 metric_name, stability.score, stability.rating, outliers.count)
    return report

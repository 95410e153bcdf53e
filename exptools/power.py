"""
exptools/power.py

Sample size and duration planning for a conversion-rate A/B/n test.

  n per variant = (z_a + z_b)^2 * (p1(1-p1) + p2(1-p2)) / (p2 - p1)^2

with p2 = p1 * (1 + relative MDE), two-sided alpha, equal traffic split.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List

from scipy import stats

from .errors import ComputationError, ValidationError

logger = logging.getLogger(__name__)

# Critical values planning tools are expected to reproduce exactly.
Z_TABLE: Dict[float, float] = {
    0.80: 0.842,
    0.85: 1.036,
    0.90: 1.282,
    0.95: 1.645,
    0.975: 1.96,
    0.99: 2.326,
    0.995: 2.576,
}

# (lower p, upper p, z at lower, z at upper), searched top-down
_SEGMENTS = (
    (0.975, 0.995, 1.96, 2.576),
    (0.95, 0.975, 1.645, 1.96),
    (0.90, 0.95, 1.282, 1.645),
    (0.85, 0.90, 1.036, 1.282),
    (0.80, 0.85, 0.842, 1.036),
)


# -------------------------
# Normal quantiles
# -------------------------

def _z_table(p: float) -> float:
    hit = Z_TABLE.get(round(p, 3))
    if hit is not None:
        return hit
    if p == 0.5:
        return 0.0
    if p < 0.5:
        return -_z_table(1.0 - p)
    for lo, hi, z_lo, z_hi in _SEGMENTS:
        if p >= lo:
            # above 0.995 the top segment is extrapolated
            return z_lo + (p - lo) * (z_hi - z_lo) / (hi - lo)
    return 0.842 * (p - 0.5) / 0.3

def z_score(p: float, method: str = "table") -> float:
    """
    Inverse standard-normal CDF.

    method="table": fixed critical values with linear interpolation between
    them and reflection z(p) = -z(1-p) below one half. Reasonable for
    p in [0.5, 0.999]; accuracy is not guaranteed outside that band.
    method="exact": scipy.stats.norm.ppf.
    """
    if not (0.0 < p < 1.0):
        raise ValueError("p must be in (0,1)")
    if method == "table":
        return _z_table(p)
    if method == "exact":
        return float(stats.norm.ppf(p))
    raise ValueError("method must be 'table' or 'exact'")

def z_alpha(alpha: float, method: str = "table") -> float:
    # two-sided only
    return z_score(1.0 - alpha / 2.0, method)

def z_beta(power: float, method: str = "table") -> float:
    return z_score(power, method)


# -------------------------
# Sample size
# -------------------------

@dataclass
class SampleSizeResult:
    n_per_variant: int
    n_total: int
    p_control: float
    p_variant: float
    z_alpha: float
    z_beta: float

def sample_size_proportions(
    p0: float,
    mde_rel: float,
    alpha: float = 0.05,
    power: float = 0.8,
    variants: int = 2,
    method: str = "table",
) -> SampleSizeResult:
    p1 = p0 * (1 + mde_rel)
    if not (0 < p1 < 1):
        raise ComputationError(
            f"Variant conversion rate {p1:.4f} (baseline x (1 + MDE)) must be below 1; "
            "lower the minimum detectable effect",
            field="minimumDetectableEffect",
        )
    delta = p1 - p0
    if delta == 0:
        raise ComputationError("Baseline and variant rates are equal; sample size is undefined",
                               field="minimumDetectableEffect")

    za = z_alpha(alpha, method)
    zb = z_beta(power, method)

    # unpooled variance under H1
    v = p0 * (1 - p0) + p1 * (1 - p1)
    n = (za + zb) ** 2 * v / delta ** 2
    if not math.isfinite(n):
        raise ComputationError("Required sample size is not finite", field="requiredSampleSizePerVariant")

    n_per = int(math.ceil(n))
    return SampleSizeResult(n_per, n_per * variants, p0, p1, za, zb)

def duration_days(n_total: int, daily_units: float, allocation: float = 1.0) -> float:
    if daily_units <= 0 or n_total <= 0:
        raise ValueError("n_total and daily_units must be > 0")
    if not (0 < allocation <= 1):
        raise ValueError("allocation must be in (0,1]")
    return n_total / (daily_units * allocation)


# -------------------------
# Duration estimate
# -------------------------

@dataclass(frozen=True)
class DurationEstimate:
    estimated_days: int
    estimated_weeks: int
    n_per_variant: int
    n_total: int
    daily_traffic_per_variant: float
    statistical_power: float
    significance_level: float
    number_of_variants: int
    baseline_conversion_rate: float
    minimum_detectable_effect: float
    variant_conversion_rate: float
    z_alpha: float
    z_beta: float
    recommendations: List[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "estimatedDays": self.estimated_days,
            "estimatedWeeks": self.estimated_weeks,
            "requiredSampleSizePerVariant": self.n_per_variant,
            "totalRequiredSampleSize": self.n_total,
            "dailyTrafficPerVariant": self.daily_traffic_per_variant,
            "assumptions": {
                "statisticalPower": self.statistical_power,
                "significanceLevel": self.significance_level,
                "numberOfVariants": self.number_of_variants,
                "baselineConversionRate": self.baseline_conversion_rate,
                "minimumDetectableEffect": self.minimum_detectable_effect,
                "variantConversionRate": self.variant_conversion_rate,
                "zAlpha": self.z_alpha,
                "zBeta": self.z_beta,
            },
            "recommendations": list(self.recommendations),
        }


def _validate(daily_traffic: float, baseline: float, mde: float,
              power: float, alpha: float, variants: int) -> None:
    if daily_traffic <= 0:
        raise ValidationError("Daily traffic must be greater than 0", field="dailyTraffic")
    if not (0 < baseline < 1):
        raise ValidationError("Baseline conversion rate must be between 0 and 1 (e.g., 0.05 for 5%)",
                              field="baselineConversionRate")
    if mde <= 0:
        raise ValidationError("Minimum detectable effect must be greater than 0 (e.g., 0.1 for 10% relative lift)",
                              field="minimumDetectableEffect")
    if not (0 < power < 1):
        raise ValidationError("Statistical power must be between 0 and 1 (typically 0.8)",
                              field="statisticalPower")
    if not (0 < alpha < 1):
        raise ValidationError("Significance level must be between 0 and 1 (typically 0.05)",
                              field="significanceLevel")
    if int(variants) != variants or variants < 2:
        raise ValidationError("Number of variants must be a whole number of at least 2 (control + 1 variant)",
                              field="numberOfVariants")

def duration_recommendations(days: int, daily_traffic: float, mde: float,
                             variants: int, baseline: float) -> List[str]:
    recs: List[str] = []
    if days > 30:
        recs.append(f"⚠️ Long duration ({days} days): Consider increasing traffic allocation, reducing MDE, "
                    "or using a larger significance level (less stringent).")
    elif days < 7:
        recs.append(f"⚠️ Short duration ({days} days): Consider running for at least one full week "
                    "to account for weekly patterns.")
    else:
        recs.append(f"✅ Reasonable duration ({days} days): This should provide reliable results.")

    if mde < 0.05:
        recs.append(f"⚠️ Very small MDE ({mde * 100:.1f}%): Detecting small effects requires large sample "
                    "sizes. Consider if this lift is practically significant.")

    if variants > 3:
        recs.append(f"⚠️ Multiple variants ({variants}): Each additional variant increases required sample "
                    "size and duration. Consider sequential testing or multivariate approaches.")

    per_variant = daily_traffic / variants
    if per_variant < 100:
        recs.append(f"⚠️ Low daily traffic per variant ({per_variant:.0f}): Low traffic may lead to extended "
                    "experiment durations and delayed learnings.")

    if baseline < 0.01:
        recs.append(f"⚠️ Low conversion rate ({baseline * 100:.2f}%): Low conversion rates require larger "
                    "sample sizes. Consider testing on higher-funnel metrics.")

    recs.append("💡 Best practice: Run experiments for at least one full business cycle (typically 1-2 weeks) "
                "to account for day-of-week and time-of-day variations.")
    return recs

def estimate_duration(
    daily_traffic: float,
    baseline_conversion_rate: float,
    minimum_detectable_effect: float,
    statistical_power: float = 0.8,
    significance_level: float = 0.05,
    number_of_variants: int = 2,
    method: str = "table",
) -> DurationEstimate:
    """
    How many days must a test run, splitting daily_traffic evenly across
    number_of_variants, to detect a relative lift of minimum_detectable_effect?
    """
    _validate(daily_traffic, baseline_conversion_rate, minimum_detectable_effect,
              statistical_power, significance_level, number_of_variants)
    variants = int(number_of_variants)

    ss = sample_size_proportions(
        baseline_conversion_rate,
        minimum_detectable_effect,
        alpha=significance_level,
        power=statistical_power,
        variants=variants,
        method=method,
    )
    per_variant_traffic = daily_traffic / variants
    days = int(math.ceil(duration_days(ss.n_per_variant, per_variant_traffic)))
    weeks = int(math.ceil(days / 7))

    logger.debug("duration: n/variant=%d days=%d (z_a=%.4f z_b=%.4f, %s)",
                 ss.n_per_variant, days, ss.z_alpha, ss.z_beta, method)
    return DurationEstimate(
        estimated_days=days,
        estimated_weeks=weeks,
        n_per_variant=ss.n_per_variant,
        n_total=ss.n_total,
        daily_traffic_per_variant=per_variant_traffic,
        statistical_power=statistical_power,
        significance_level=significance_level,
        number_of_variants=variants,
        baseline_conversion_rate=baseline_conversion_rate,
        minimum_detectable_effect=minimum_detectable_effect,
        variant_conversion_rate=ss.p_variant,
        z_alpha=ss.z_alpha,
        z_beta=ss.z_beta,
        recommendations=duration_recommendations(days, daily_traffic, minimum_detectable_effect,
                                                 variants, baseline_conversion_rate),
    )

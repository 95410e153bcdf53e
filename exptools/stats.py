"""
exptools/stats.py

Descriptive statistics for a single series of metric observations.

Dependencies:
  - numpy

What's included:
  - Population mean / variance / std and coefficient of variation
  - Median and quartiles (Tukey "hinges" excluding the median when n is odd)
  - IQR-fence outlier detection, reported in input order
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Tuple

import numpy as np

from .errors import ComputationError, ValidationError

logger = logging.getLogger(__name__)

OUTLIER_FENCE = 1.5


# -------------------------
# Small helpers
# -------------------------

def _as_1d_float(x: Iterable[float], field: str = "metricValues") -> np.ndarray:
    try:
        arr = np.asarray(list(x), dtype=float)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must contain only numbers", field=field)
    if arr.ndim != 1:
        raise ValidationError(f"{field} must be 1D.", field=field)
    if arr.size == 0:
        raise ValidationError(f"{field} array cannot be empty", field=field)
    if not np.all(np.isfinite(arr)):
        raise ValidationError(f"{field} must contain only finite numbers", field=field)
    return arr

def _median_sorted(sorted_arr: np.ndarray) -> float:
    n = sorted_arr.size
    mid = n // 2
    if n % 2 == 0:
        return float((sorted_arr[mid - 1] + sorted_arr[mid]) / 2.0)
    return float(sorted_arr[mid])


# -------------------------
# Quartiles
# -------------------------

@dataclass(frozen=True)
class Quartiles:
    q1: float
    q2: float
    q3: float
    iqr: float

def quartiles(x: Iterable[float]) -> Quartiles:
    """
    Split the sorted sample into halves; when n is odd the median element
    belongs to neither half. q1/q3 are the medians of the halves.

    [10, 10, 11, 12, 13] -> lower [10, 10], upper [12, 13] -> q1=10, q3=12.5
    """
    s = np.sort(_as_1d_float(x))
    n = s.size
    q2 = _median_sorted(s)
    if n == 1:
        return Quartiles(q1=q2, q2=q2, q3=q2, iqr=0.0)

    half = n // 2
    lower = s[:half]
    upper = s[half:] if n % 2 == 0 else s[half + 1:]
    q1 = _median_sorted(lower)
    q3 = _median_sorted(upper)
    return Quartiles(q1=q1, q2=q2, q3=q3, iqr=q3 - q1)


# -------------------------
# Descriptive statistics
# -------------------------

@dataclass(frozen=True)
class DescriptiveStatistics:
    n: int
    mean: float
    median: float
    variance: float
    std: float
    cv: float  # percent
    min: float
    max: float
    range: float
    quartiles: Quartiles

def coefficient_of_variation(std: float, mean: float) -> float:
    """100 * std / mean. Undefined (ComputationError) when the mean is zero."""
    if mean == 0:
        raise ComputationError(
            "Coefficient of variation is undefined because the mean is zero",
            field="coefficientOfVariation",
        )
    return 100.0 * std / mean

def _require_finite(value: float, field: str, what: str) -> float:
    if not np.isfinite(value):
        raise ComputationError(f"{what} overflows a 64-bit float; rescale the metric values", field=field)
    return value

def describe(x: Iterable[float]) -> DescriptiveStatistics:
    arr = _as_1d_float(x)
    lo, hi = float(np.min(arr)), float(np.max(arr))
    with np.errstate(over="ignore"):
        # summation rounding can land a hair outside [min, max], e.g. [0.1, 0.1, 0.1]
        mean = min(max(float(np.mean(arr)), lo), hi)
        variance = _require_finite(float(np.var(arr)), "variance", "Variance")  # population (ddof=0)
        q = quartiles(arr)
    std = float(np.sqrt(variance))
    spread = _require_finite(hi - lo, "range", "Range")
    for v in (q.q1, q.q2, q.q3, q.iqr):
        _require_finite(v, "quartiles", "Interquartile range")

    stats = DescriptiveStatistics(
        n=int(arr.size),
        mean=mean,
        median=q.q2,
        variance=variance,
        std=std,
        cv=_require_finite(coefficient_of_variation(std, mean), "coefficientOfVariation",
                           "Coefficient of variation"),
        min=lo,
        max=hi,
        range=spread,
        quartiles=q,
    )
    logger.debug("describe n=%d mean=%.6g std=%.6g cv=%.4g", stats.n, mean, std, stats.cv)
    return stats


# -------------------------
# Outliers
# -------------------------

@dataclass(frozen=True)
class OutlierReport:
    count: int
    percentage: float
    values: Tuple[float, ...]
    indices: Tuple[int, ...]
    lower_bound: float
    upper_bound: float

def outlier_bounds(q: Quartiles, k: float = OUTLIER_FENCE) -> Tuple[float, float]:
    return q.q1 - k * q.iqr, q.q3 + k * q.iqr

def _outlier_mask(arr: np.ndarray, q: Quartiles) -> np.ndarray:
    lo, hi = outlier_bounds(q)
    return (arr < lo) | (arr > hi)

def detect_outliers(x: Iterable[float], q: Quartiles | None = None) -> OutlierReport:
    """
    Values strictly outside [q1 - 1.5*IQR, q3 + 1.5*IQR].
    Indices are zero-based positions in the input, in input order.
    """
    arr = _as_1d_float(x)
    if q is None:
        q = quartiles(arr)
    lo, hi = outlier_bounds(q)
    mask = _outlier_mask(arr, q)
    idx = np.flatnonzero(mask)

    return OutlierReport(
        count=int(idx.size),
        percentage=float(100.0 * idx.size / arr.size),
        values=tuple(float(v) for v in arr[idx]),
        indices=tuple(int(i) for i in idx),
        lower_bound=float(lo),
        upper_bound=float(hi),
    )

def remove_outliers(x: Iterable[float]) -> List[float]:
    """Single pass: drop IQR outliers, keep the rest in input order."""
    arr = _as_1d_float(x)
    mask = _outlier_mask(arr, quartiles(arr))
    return [float(v) for v in arr[~mask]]

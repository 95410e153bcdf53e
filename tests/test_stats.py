import numpy as np
import pytest

from exptools.errors import ComputationError, ValidationError
from exptools.stats import (
    coefficient_of_variation,
    describe,
    detect_outliers,
    outlier_bounds,
    quartiles,
    remove_outliers,
)


def test_describe_small_series():
    s = describe([10, 12, 11, 13, 10])
    assert s.n == 5
    assert s.mean == pytest.approx(11.2)
    assert s.median == pytest.approx(11.0)
    assert s.variance == pytest.approx(1.36)  # population variance
    assert s.std == pytest.approx(np.sqrt(1.36))
    assert s.cv == pytest.approx(100 * np.sqrt(1.36) / 11.2)
    assert (s.min, s.max, s.range) == (10.0, 13.0, 3.0)


def test_quartiles_exclude_median_for_odd_n():
    # sorted [10, 10, 11, 12, 13] -> lower [10, 10], upper [12, 13]
    q = quartiles([10, 12, 11, 13, 10])
    assert q.q1 == pytest.approx(10.0)
    assert q.q2 == pytest.approx(11.0)
    assert q.q3 == pytest.approx(12.5)
    assert q.iqr == pytest.approx(2.5)


def test_quartiles_even_n():
    q = quartiles([4, 1, 3, 2])
    assert (q.q1, q.q2, q.q3) == (1.5, 2.5, 3.5)


def test_quartiles_single_value():
    q = quartiles([7.0])
    assert (q.q1, q.q2, q.q3, q.iqr) == (7.0, 7.0, 7.0, 0.0)


def test_mean_within_min_max_and_quartiles_ordered():
    rng = np.random.default_rng(3)
    for _ in range(50):
        x = rng.lognormal(size=rng.integers(1, 40)) * rng.choice([0.1, 1.0, 1e6])
        s = describe(x)
        assert s.min <= s.mean <= s.max
        q = s.quartiles
        assert q.q1 <= q.q2 <= q.q3
        assert q.iqr >= 0


def test_mean_within_bounds_for_repeated_decimal():
    s = describe([0.1, 0.1, 0.1])
    assert s.min <= s.mean <= s.max


def test_describe_rejects_empty_and_non_finite():
    with pytest.raises(ValidationError):
        describe([])
    with pytest.raises(ValidationError) as exc:
        describe([1.0, float("nan")])
    assert exc.value.field == "metricValues"
    with pytest.raises(ValidationError):
        describe([1.0, float("inf")])


def test_zero_mean_is_computation_error():
    with pytest.raises(ComputationError) as exc:
        describe([-1.0, 1.0])
    assert exc.value.field == "coefficientOfVariation"
    with pytest.raises(ComputationError):
        coefficient_of_variation(0.5, 0.0)


def test_overflowing_variance_is_computation_error():
    # each value is finite but the squared deviations are not
    with pytest.raises(ComputationError) as exc:
        describe([1e200, -1e199, 3e200])
    assert exc.value.field == "variance"


def test_overflowing_range_is_computation_error():
    with pytest.raises(ComputationError) as exc:
        describe([-1.5e308, 1.5e308, 1.0e-300])
    assert exc.value.field in ("variance", "range")


def test_no_outliers_in_tight_series():
    out = detect_outliers([10, 12, 11, 13, 10])
    assert out.count == 0
    assert out.percentage == 0.0
    assert out.values == ()
    assert (out.lower_bound, out.upper_bound) == (6.25, 16.25)


def test_outliers_reported_in_input_order():
    # q1=10, q3=12 -> fences [7, 15]
    x = [100, 10, 11, 12, 10, 11, 12, 11, -50]
    out = detect_outliers(x)
    assert out.indices == (0, 8)
    assert out.values == (100.0, -50.0)
    assert out.count == 2
    assert out.percentage == pytest.approx(200 / 9)


def test_outlier_fences_are_strict():
    q = quartiles([1, 2, 3, 4])
    lo, hi = outlier_bounds(q)
    out = detect_outliers([1, 2, 3, 4, hi], q)
    assert out.count == 0


def test_single_pass_removal_is_stable():
    x = [100, 10, 11, 12, 10, 11, 12, 11, -50]
    q = quartiles(x)
    kept = remove_outliers(x)
    assert kept == [10.0, 11.0, 12.0, 10.0, 11.0, 12.0, 11.0]
    # the first pass's fences find nothing left to remove
    assert detect_outliers(kept, q).count == 0
    assert remove_outliers(kept) == kept

import pytest

from exptools.errors import ValidationError
from exptools.variance import (
    analyze_metric_variance,
    cv_penalty,
    minimum_sample_size_for_test,
    stability_rating,
    stability_score,
)


def test_cv_penalty_schedule():
    assert cv_penalty(0) == 0
    assert cv_penalty(10) == 0
    assert cv_penalty(20) == pytest.approx(15)
    assert cv_penalty(30) == pytest.approx(35)
    assert cv_penalty(50) == pytest.approx(65)
    assert cv_penalty(500) == 65


def test_score_non_increasing_in_cv():
    cvs = [i * 0.5 for i in range(0, 160)]
    scores = [stability_score(cv, 2.0, 50) for cv in cvs]
    assert all(a >= b for a, b in zip(scores, scores[1:]))
    assert stability_score(10, 0, 50) >= stability_score(40, 0, 50)


def test_score_non_increasing_in_outliers():
    scores = [stability_score(15, pct, 50) for pct in range(0, 101, 5)]
    assert all(a >= b for a, b in zip(scores, scores[1:]))


def test_score_clamped_and_small_sample_penalty():
    assert stability_score(0, 0, 100) == 100.0
    assert stability_score(200, 100, 1) == 0.0
    # 10 missing points below 30 -> 5 points
    assert stability_score(5, 0, 20) == pytest.approx(95.0)


def test_ratings():
    assert stability_rating(80) == "Excellent"
    assert stability_rating(79.9) == "Good"
    assert stability_rating(60) == "Good"
    assert stability_rating(45) == "Fair"
    assert stability_rating(20) == "Poor"
    assert stability_rating(19.9) == "Very Poor"


def test_minimum_sample_size_scales_with_cv():
    assert minimum_sample_size_for_test(12) == 1000
    assert minimum_sample_size_for_test(30) == 1000
    assert minimum_sample_size_for_test(45) == 1500


def test_analyze_small_series():
    report = analyze_metric_variance([10, 12, 11, 13, 10], metric_name="daily_signups")
    d = report.to_dict()

    assert d["metricName"] == "daily_signups"
    assert d["sampleSize"] == 5
    assert d["confidenceLevel"] == 0.95
    assert d["statistics"]["mean"] == 11.2
    assert d["statistics"]["variance"] == 1.36
    assert d["statistics"]["standardDeviation"] == 1.1662
    assert d["statistics"]["coefficientOfVariation"] == 10.41
    assert d["statistics"]["quartiles"] == {"q1": 10.0, "q2": 11.0, "q3": 12.5, "iqr": 2.5}
    assert d["outliers"] == {"count": 0, "percentage": 0.0, "values": [], "indices": []}
    assert d["stability"] == {"score": 86.9, "rating": "Excellent", "isStableForTesting": True}
    assert d["minimumSampleSizeForTest"] == 1000

    recs = d["recommendations"]
    assert recs[0].startswith("✅ Good stability")
    assert any("Small sample size (n=5)" in r for r in recs)
    assert recs[-1].startswith("💡 Testing recommendation: Metric is stable")


def test_analyze_accepts_generator():
    report = analyze_metric_variance(float(v) for v in [10, 12, 11, 13, 10])
    assert report.statistics.n == 5
    assert report.metric_name == "Unnamed Metric"


def test_expected_mean_deviation_flagged():
    report = analyze_metric_variance([10, 12, 11, 13, 10], expected_mean=15)
    assert any("Mean differs from expected by 25.3%" in r for r in report.recommendations)

    close = analyze_metric_variance([10, 12, 11, 13, 10], expected_mean=11)
    assert not any("Mean differs" in r for r in close.recommendations)


def test_unstable_metric_recommends_larger_sample():
    x = [1, 9, 2, 14, 3, 20, 1, 8] * 5
    report = analyze_metric_variance(x)
    assert not report.stability.is_stable_for_testing
    assert report.recommendations[0].startswith("❌ Very poor stability")
    assert "increase planned sample size" in report.recommendations[-1]
    assert report.minimum_sample_size_for_test > 1000


def test_large_sample_message():
    report = analyze_metric_variance([10.0, 10.5] * 60)
    assert any("Large sample size (n=120)" in r for r in report.recommendations)


def test_input_validation():
    with pytest.raises(ValidationError) as exc:
        analyze_metric_variance([1, 2, 3], confidence_level=1.5)
    assert exc.value.field == "confidenceLevel"
    with pytest.raises(ValidationError) as exc:
        analyze_metric_variance([1, 2, 3], expected_mean=0)
    assert exc.value.field == "expectedMean"
    with pytest.raises(ValidationError):
        analyze_metric_variance([])

"""
Check whether a metric's history is stable enough to A/B test, and how long
a test on it would take.

Expected input format (minimum):
- metric column: e.g. "conversion_rate", one observation per row
Optional:
- order column: e.g. "date" (rows are sorted by it first)
- traffic column: e.g. "visitors" (its mean is used as daily traffic)

Examples:
  python scripts/run_analysis.py --input data/daily_metrics.csv --metric conversion_rate --order-col date
  python scripts/run_analysis.py --input data/daily_metrics.csv --metric conversion_rate \\
      --traffic-col visitors --mde 0.1 --out-json reports/conversion_rate.json
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from exptools.config import load_settings
from exptools.power import estimate_duration
from exptools.utils import fmt_pct, metric_series, to_jsonable
from exptools.variance import analyze_metric_variance

logger = logging.getLogger("run_analysis")


# ---- Main analysis -----------------------------------------------------------

def run(
    df: pd.DataFrame,
    metric_col: str,
    order_col: Optional[str] = None,
    traffic_col: Optional[str] = None,
    mde: Optional[float] = None,
    expected_mean: Optional[float] = None,
    out_json: Optional[Path] = None,
) -> Dict[str, Any]:
    """
    Variance analysis of one metric column, plus a duration estimate when a
    traffic column and an MDE are given (the metric is then treated as the
    baseline conversion rate). Returns a dict report.
    """
    settings = load_settings()
    values, cleaning = metric_series(df, metric_col, order_col)
    if cleaning["dropped_rows"]:
        logger.warning("dropped %d non-numeric rows from %s", cleaning["dropped_rows"], metric_col)

    variance = analyze_metric_variance(values, metric_name=metric_col, expected_mean=expected_mean)
    report: Dict[str, Any] = {
        "inputs": {
            "metric_col": metric_col,
            "order_col": order_col,
            "traffic_col": traffic_col,
            "mde": mde,
        },
        "cleaning": cleaning,
        "variance": variance.to_dict(),
    }

    if traffic_col and mde is not None:
        traffic, _ = metric_series(df, traffic_col)
        estimate = estimate_duration(
            daily_traffic=float(pd.Series(traffic).mean()),
            baseline_conversion_rate=variance.statistics.mean,
            minimum_detectable_effect=mde,
            statistical_power=settings.default_power,
            significance_level=settings.default_significance,
            number_of_variants=settings.default_variants,
            method=settings.z_method,
        )
        report["duration"] = estimate.to_dict()

    if out_json:
        out_json.parent.mkdir(parents=True, exist_ok=True)
        out_json.write_text(json.dumps(to_jsonable(report), indent=2, ensure_ascii=False), encoding="utf-8")

    return report


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--input", type=str, required=True, help="Path to CSV input")
    parser.add_argument("--metric", type=str, required=True, help="Metric column name")
    parser.add_argument("--order-col", type=str, default=None, help="Sort rows by this column first")
    parser.add_argument("--traffic-col", type=str, default=None, help="Daily traffic column (for duration)")
    parser.add_argument("--mde", type=float, default=None, help="Relative minimum detectable effect (for duration)")
    parser.add_argument("--expected-mean", type=float, default=None)
    parser.add_argument("--out-json", type=str, default=None, help="Write a JSON report to this path")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    df = pd.read_csv(Path(args.input))
    report = run(
        df=df,
        metric_col=args.metric,
        order_col=args.order_col,
        traffic_col=args.traffic_col,
        mde=args.mde,
        expected_mean=args.expected_mean,
        out_json=Path(args.out_json) if args.out_json else None,
    )

    # Pretty console summary
    v = report["variance"]
    st = v["statistics"]
    print(f"\nMetric: {v['metricName']} (n={v['sampleSize']})")
    print(f"Mean: {st['mean']}  Std: {st['standardDeviation']}  CV: {st['coefficientOfVariation']}%")
    print(f"Stability: {v['stability']['score']} ({v['stability']['rating']})")
    print(f"Outliers: {v['outliers']['count']} ({v['outliers']['percentage']}%)")
    for rec in v["recommendations"]:
        print(f"  - {rec}")
    if "duration" in report:
        d = report["duration"]
        print(f"\nBaseline: {fmt_pct(d['assumptions']['baselineConversionRate'])}  "
              f"MDE: {fmt_pct(d['assumptions']['minimumDetectableEffect'], 1)}")
        print(f"Sample size per variant: {d['requiredSampleSizePerVariant']:,}")
        print(f"Estimated duration: {d['estimatedDays']} days ({d['estimatedWeeks']} weeks)")
    if args.out_json:
        print(f"\nWrote report: {args.out_json}")


if __name__ == "__main__":
    main()

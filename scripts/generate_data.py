#!/usr/bin/env python3
"""
Generate a synthetic daily metric history.

Creates a CSV with one row per day:
- date (YYYY-MM-DD)
- visitors (int, weekly seasonality)
- conversions (int)
- conversion_rate (float, conversions / visitors)
- revenue_per_visitor (float)

A few "incident" days can be injected so the variance analyzer has outliers
to find.

Usage:
  python scripts/generate_data.py --days 60 --out data/daily_metrics.csv
"""

from __future__ import annotations

import argparse
from datetime import date, timedelta
from pathlib import Path

import numpy as np
import pandas as pd


def parse_args() -> argparse.Namespace:
    ap = argparse.ArgumentParser(description="Generate a synthetic daily metric history.")
    ap.add_argument("--days", type=int, default=60, help="Number of days.")
    ap.add_argument("--seed", type=int, default=7, help="Random seed.")
    ap.add_argument("--out", type=str, default="data/daily_metrics.csv", help="Output CSV path.")
    ap.add_argument("--visitors", type=float, default=10_000, help="Mean daily visitors.")
    ap.add_argument("--conversion-rate", type=float, default=0.05, help="Mean conversion rate.")
    ap.add_argument("--weekend-dip", type=float, default=0.25,
                    help="Relative drop in weekend traffic (0.25 = 25%% fewer visitors).")
    ap.add_argument("--incidents", type=int, default=2, help="Number of anomalous days to inject.")
    ap.add_argument("--start-date", type=str, default="2026-01-01", help="First day (YYYY-MM-DD).")
    return ap.parse_args()


def main() -> None:
    args = parse_args()
    rng = np.random.default_rng(args.seed)
    n = args.days

    start = date.fromisoformat(args.start_date)
    days = [start + timedelta(days=i) for i in range(n)]
    weekday = np.array([d.weekday() for d in days])

    # --- Traffic ---
    seasonality = np.where(weekday >= 5, 1.0 - args.weekend_dip, 1.0)
    visitors = rng.poisson(args.visitors * seasonality).astype(int)

    # --- Conversion ---
    # day-level noise on the rate, then binomial draws
    daily_rate = np.clip(rng.normal(args.conversion_rate, args.conversion_rate * 0.05, size=n), 1e-4, 0.999)
    if args.incidents > 0:
        hit = rng.choice(n, size=min(args.incidents, n), replace=False)
        daily_rate[hit] *= rng.choice([0.4, 1.8], size=hit.size)
        daily_rate = np.clip(daily_rate, 1e-4, 0.999)
    conversions = rng.binomial(visitors, daily_rate)

    # --- Revenue ---
    aov = rng.lognormal(mean=3.4, sigma=0.15, size=n)
    revenue = conversions * aov

    df = pd.DataFrame(
        {
            "date": [d.isoformat() for d in days],
            "visitors": visitors,
            "conversions": conversions,
            "conversion_rate": np.round(conversions / np.maximum(visitors, 1), 6),
            "revenue_per_visitor": np.round(revenue / np.maximum(visitors, 1), 4),
        }
    )

    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(out_path, index=False)

    print(f"Wrote {len(df):,} rows -> {out_path}")
    print(df.describe().T.to_string(float_format=lambda x: f"{x:0.4f}"))


if __name__ == "__main__":
    main()

"""
exptools/utils.py

Utility functions used across the repo:
  - Pulling a clean numeric metric series out of a DataFrame
  - Converting result objects to JSON-serializable values
  - Rounding / formatting for reports
"""

from __future__ import annotations
import math
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
import pandas as pd

from .errors import ValidationError


# -------------------------
# Validation
# -------------------------

def check_columns(df: pd.DataFrame, required: Sequence[str]) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValidationError(f"Missing required columns: {missing}", field=missing[0])

def metric_series(df: pd.DataFrame,
                  metric_col: str,
                  order_col: str | None = None) -> Tuple[List[float], Dict[str, int]]:
    """
    Numeric observations of one metric, optionally ordered by another column
    (typically a date). Unparseable / missing / infinite cells are dropped and
    counted.
    """
    cols = [metric_col] + ([order_col] if order_col else [])
    check_columns(df, cols)
    out = df.sort_values(order_col, kind="mergesort") if order_col else df
    values = pd.to_numeric(out[metric_col], errors="coerce").replace([np.inf, -np.inf], np.nan)
    before = len(values)
    values = values.dropna()
    return values.astype(float).tolist(), {"dropped_rows": before - len(values), "before": before,
                                           "after": len(values)}


# -------------------------
# Reporting / formatting
# -------------------------

def to_jsonable(obj: Any) -> Any:
    """Convert dataclasses / numpy scalars / tuples to JSON-serializable objects."""
    if hasattr(obj, "to_dict") and callable(obj.to_dict):
        return to_jsonable(obj.to_dict())
    if is_dataclass(obj):
        return to_jsonable(asdict(obj))
    if isinstance(obj, (np.integer, np.floating)):
        return obj.item()
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, dict):
        return {k: to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(v) for v in obj]
    return obj

def round_to(x: float, digits: int) -> float:
    """Round half up (not half to even), matching how reports were rounded historically."""
    if abs(x) >= 2 ** 52:
        return x  # already integral; x * m could overflow
    m = 10 ** digits
    return math.floor(x * m + 0.5) / m

def fmt_pct(x: float, digits: int = 2) -> str:
    return f"{100.0 * x:.{digits}f}%"

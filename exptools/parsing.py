"""
exptools/parsing.py

Boundary helpers that turn a loosely-typed request payload (a dict of JSON
primitives, some of them JSON-encoded strings) into validated Python values.
Every failure raises ValidationError carrying the payload field name.
"""

from __future__ import annotations

import json
import math
from typing import Any, List, Mapping, Optional

from .errors import ValidationError


def _coerce_number(field: str, value: Any) -> float:
    # bool is an int subclass; a flag is never a valid numeric input
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number, got a boolean", field=field)
    if isinstance(value, (int, float)):
        try:
            out = float(value)
        except OverflowError:
            raise ValidationError(f"{field} is out of range", field=field)
    elif isinstance(value, str):
        try:
            out = float(value.strip())
        except ValueError:
            raise ValidationError(f"{field} must be a number, got {value!r}", field=field)
    else:
        raise ValidationError(f"{field} must be a number, got {type(value).__name__}", field=field)
    if not math.isfinite(out):
        raise ValidationError(f"{field} must be a finite number", field=field)
    return out


def require_number(payload: Mapping[str, Any], field: str) -> float:
    if payload.get(field) is None:
        raise ValidationError(f"{field} is required", field=field)
    return _coerce_number(field, payload[field])


def optional_number(payload: Mapping[str, Any], field: str,
                    default: Optional[float] = None) -> Optional[float]:
    if payload.get(field) is None:
        return default
    return _coerce_number(field, payload[field])


def optional_int(payload: Mapping[str, Any], field: str,
                 default: Optional[int] = None) -> Optional[int]:
    value = optional_number(payload, field)
    if value is None:
        return default
    if not value.is_integer():
        raise ValidationError(f"{field} must be a whole number, got {value}", field=field)
    return int(value)


def require_string(payload: Mapping[str, Any], field: str) -> str:
    value = payload.get(field)
    if value is None or (isinstance(value, str) and value.strip() == ""):
        raise ValidationError(f"{field} is required and cannot be empty", field=field)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    return value


def optional_string(payload: Mapping[str, Any], field: str,
                    default: Optional[str] = None) -> Optional[str]:
    value = payload.get(field)
    if value is None or (isinstance(value, str) and value == ""):
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    return value


def parse_json_array(field: str, value: Any, allow_empty: bool = False) -> List[Any]:
    """
    Decode a JSON-encoded array. An already-decoded list is accepted as-is so
    in-process callers need not round-trip through a string.
    """
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"{field} is not valid JSON: {exc.msg} (position {exc.pos})", field=field)
    else:
        decoded = value
    if not isinstance(decoded, list):
        raise ValidationError(f"{field} must be a JSON array", field=field)
    if not decoded and not allow_empty:
        raise ValidationError(f"{field} array cannot be empty", field=field)
    return decoded


def parse_number_array(field: str, value: Any) -> List[float]:
    """JSON array of finite numbers, e.g. "[10, 12, 11, 13, 10]"."""
    items = parse_json_array(field, value)
    out: List[float] = []
    for i, item in enumerate(items):
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise ValidationError(
                f"{field}[{i}] must be a number, got {item!r}. "
                f'Expected JSON array of numbers, e.g., "[10, 12, 11, 13, 10]"',
                field=field,
            )
        try:
            number = float(item)
        except OverflowError:
            raise ValidationError(f"{field}[{i}] is out of range", field=field)
        if not math.isfinite(number):
            raise ValidationError(f"{field}[{i}] must be finite", field=field)
        out.append(number)
    return out


def parse_string_list(field: str, value: Any) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"{field} must be an array of strings", field=field)
    return list(value)


def parse_csv_list(value: Optional[str]) -> List[str]:
    """"feature, experiment,rollout" -> ["feature", "experiment", "rollout"]"""
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]

"""
Runtime defaults, overridable through EXPTOOLS_* environment variables
(a local .env file is honoured).
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from .errors import ValidationError

ENV_PREFIX = "EXPTOOLS_"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_Z_METHODS = {"table", "exact"}


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    default_power: float = 0.8
    default_significance: float = 0.05
    default_variants: int = 2
    overlap_tolerance: float = 20.0
    z_method: str = "table"


def _env(name: str) -> str | None:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def _env_float(name: str, default: float, lo: float, hi: float, inclusive: bool = False) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValidationError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}", field=ENV_PREFIX + name)
    ok = (lo <= value <= hi) if inclusive else (lo < value < hi)
    if not ok:
        bounds = f"[{lo}, {hi}]" if inclusive else f"({lo}, {hi})"
        raise ValidationError(f"{ENV_PREFIX}{name} must be in {bounds}, got {value}", field=ENV_PREFIX + name)
    return value


def load_settings(dotenv: bool = True) -> Settings:
    """Build Settings from the environment; unset variables keep their defaults."""
    if dotenv:
        load_dotenv(find_dotenv(usecwd=True))

    log_level = (_env("LOG_LEVEL") or Settings.log_level).upper()
    if log_level not in _LOG_LEVELS:
        raise ValidationError(f"{ENV_PREFIX}LOG_LEVEL must be one of {sorted(_LOG_LEVELS)}", field=ENV_PREFIX + "LOG_LEVEL")

    z_method = (_env("Z_METHOD") or Settings.z_method).lower()
    if z_method not in _Z_METHODS:
        raise ValidationError(f"{ENV_PREFIX}Z_METHOD must be 'table' or 'exact'", field=ENV_PREFIX + "Z_METHOD")

    raw_variants = _env("DEFAULT_VARIANTS")
    variants = Settings.default_variants
    if raw_variants is not None:
        try:
            variants = int(raw_variants)
        except ValueError:
            raise ValidationError(f"{ENV_PREFIX}DEFAULT_VARIANTS must be an integer, got {raw_variants!r}",
                                  field=ENV_PREFIX + "DEFAULT_VARIANTS")
        if variants < 2:
            raise ValidationError(f"{ENV_PREFIX}DEFAULT_VARIANTS must be >= 2", field=ENV_PREFIX + "DEFAULT_VARIANTS")

    return Settings(
        log_level=log_level,
        default_power=_env_float("DEFAULT_POWER", Settings.default_power, 0.0, 1.0),
        default_significance=_env_float("DEFAULT_SIGNIFICANCE", Settings.default_significance, 0.0, 1.0),
        default_variants=variants,
        overlap_tolerance=_env_float("OVERLAP_TOLERANCE", Settings.overlap_tolerance, 0.0, 100.0, inclusive=True),
        z_method=z_method,
    )

"""
exptools: experimentation helper tools (metric variance, test duration,
flag naming, experiment overlap, experiment catalog, flag configuration).

Public API is re-exported here for convenience.
"""

from importlib.metadata import PackageNotFoundError, version as _version

# ---- Version ----
try:
    __version__ = _version("exptools")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

# Errors / config
from .errors import ComputationError, ToolError, ToolNotFoundError, ValidationError  # noqa: F401
from .config import Settings, load_settings  # noqa: F401

# Tools
from .variance import analyze_metric_variance  # noqa: F401
from .power import estimate_duration, sample_size_proportions, z_score  # noqa: F401
from .naming import validate_flag_name  # noqa: F401
from .overlap import check_overlap  # noqa: F401
from .flags import build_flag_config  # noqa: F401
from .catalog import catalog_experiments  # noqa: F401

# Registry
from .tools import discovery, run_tool  # noqa: F401

__all__ = [
    "__version__",
    # errors / config
    "ToolError",
    "ValidationError",
    "ComputationError",
    "ToolNotFoundError",
    "Settings",
    "load_settings",
    # tools
    "analyze_metric_variance",
    "estimate_duration",
    "sample_size_proportions",
    "z_score",
    "validate_flag_name",
    "check_overlap",
    "build_flag_config",
    "catalog_experiments",
    # registry
    "discovery",
    "run_tool",
]

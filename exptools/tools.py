"""
exptools/tools.py

Registry of the tools exposed to an orchestration platform.

Each tool has a manifest entry (name, description, typed parameters) and a
handler that takes the raw request payload (camelCase keys, JSON primitives)
and returns a JSON-serializable dict. Payloads are validated here, so the
computation modules only ever see typed arguments.

    discovery()                       -> {"functions": [...]}
    run_tool("greeting", {"name": "Ada"}) -> {"greeting": ..., "language": ...}
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

import numpy as np

from .config import Settings, load_settings
from .errors import ToolNotFoundError, ValidationError
from .flags import build_flag_config
from .catalog import STATUS_FILTERS, catalog_experiments, parse_catalog
from .naming import CONVENTIONS, validate_flag_name
from .overlap import check_overlap, parse_experiments
from .parsing import (
    optional_int,
    optional_number,
    optional_string,
    parse_csv_list,
    parse_json_array,
    parse_number_array,
    require_number,
    require_string,
)
from .power import estimate_duration
from .variance import analyze_metric_variance

logger = logging.getLogger(__name__)

Payload = Mapping[str, Any]
Handler = Callable[[Payload, Settings], Dict[str, Any]]


@dataclass(frozen=True)
class Parameter:
    name: str
    type: str  # string | number | boolean
    description: str
    required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "description": self.description, "required": self.required}


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    parameters: List[Parameter]
    handler: Handler

    def manifest(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": [p.to_dict() for p in self.parameters],
            "endpoint": f"/tools/{self.name}",
            "http_method": "POST",
        }


# -------------------------
# Leaf tools
# -------------------------

GREETINGS = {
    "english": "Hello, {name}! How are you?",
    "spanish": "¡Hola, {name}! ¿Cómo estás?",
    "french": "Bonjour, {name}! Comment ça va?",
}

def greeting(name: str, language: Optional[str] = None,
             rng: Optional[np.random.Generator] = None) -> Dict[str, str]:
    if language is None:
        rng = rng or np.random.default_rng()
        language = str(rng.choice(list(GREETINGS)))
    template = GREETINGS.get(language.lower(), GREETINGS["english"])
    return {"greeting": template.format(name=name), "language": language}

def todays_date(format: str = "%Y-%m-%d", now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    try:
        formatted = now.strftime(format)
    except ValueError as exc:
        raise ValidationError(f"format is not a valid strftime format: {exc}", field="format")
    return {"date": formatted, "format": format, "timestamp": now.timestamp()}


# -------------------------
# Handlers (payload -> response)
# -------------------------

def _greeting(payload: Payload, settings: Settings) -> Dict[str, Any]:
    return greeting(require_string(payload, "name"), optional_string(payload, "language"))

def _todays_date(payload: Payload, settings: Settings) -> Dict[str, Any]:
    return todays_date(optional_string(payload, "format", "%Y-%m-%d"))

def _metric_variance(payload: Payload, settings: Settings) -> Dict[str, Any]:
    values = parse_number_array("metricValues", payload.get("metricValues"))
    report = analyze_metric_variance(
        values,
        metric_name=optional_string(payload, "metricName", "Unnamed Metric"),
        expected_mean=optional_number(payload, "expectedMean"),
        confidence_level=optional_number(payload, "confidenceLevel", 0.95),
    )
    return report.to_dict()

def _duration(payload: Payload, settings: Settings) -> Dict[str, Any]:
    estimate = estimate_duration(
        daily_traffic=require_number(payload, "dailyTraffic"),
        baseline_conversion_rate=require_number(payload, "baselineConversionRate"),
        minimum_detectable_effect=require_number(payload, "minimumDetectableEffect"),
        statistical_power=optional_number(payload, "statisticalPower", settings.default_power),
        significance_level=optional_number(payload, "significanceLevel", settings.default_significance),
        number_of_variants=optional_int(payload, "numberOfVariants", settings.default_variants),
        method=settings.z_method,
    )
    return estimate.to_dict()

def _flag_naming(payload: Payload, settings: Settings) -> Dict[str, Any]:
    report = validate_flag_name(
        require_string(payload, "flagName"),
        convention=optional_string(payload, "namingConvention", "snake_case"),
        custom_pattern=optional_string(payload, "customPattern"),
        prefix=optional_string(payload, "prefix"),
        suffix=optional_string(payload, "suffix"),
        max_length=optional_int(payload, "maxLength", 50),
        min_length=optional_int(payload, "minLength", 5),
        allowed_categories=parse_csv_list(optional_string(payload, "allowedCategories")),
        team_prefix=optional_string(payload, "teamPrefix"),
    )
    return report.to_dict()

def _overlap(payload: Payload, settings: Settings) -> Dict[str, Any]:
    experiments = parse_experiments(parse_json_array("experiments", payload.get("experiments")))
    report = check_overlap(
        experiments,
        total_audience_size=optional_number(payload, "totalAudienceSize"),
        overlap_tolerance=optional_number(payload, "overlapTolerance", settings.overlap_tolerance),
    )
    return report.to_dict()

def _catalog(payload: Payload, settings: Settings) -> Dict[str, Any]:
    entries = parse_catalog(parse_json_array("experiments", payload.get("experiments"), allow_empty=True))
    report = catalog_experiments(
        entries,
        status=optional_string(payload, "status", "all"),
        metric=optional_string(payload, "metric"),
        page=optional_string(payload, "page"),
        targeting_rule=optional_string(payload, "targetingRule"),
    )
    return report.to_dict()

def _flag_config(payload: Payload, settings: Settings) -> Dict[str, Any]:
    config = build_flag_config(
        require_string(payload, "flagName"),
        flag_key=optional_string(payload, "flagKey"),
        description=optional_string(payload, "description"),
        variables=payload.get("variables"),
        variations=payload.get("variations"),
        default_variation=optional_string(payload, "defaultVariation"),
        environment=optional_string(payload, "environment", "development"),
    )
    return config.to_dict()


# -------------------------
# Registry
# -------------------------

_TOOLS = [
    Tool(
        "greeting",
        "Greets a person in a random language (English, Spanish, or French)",
        [
            Parameter("name", "string", "Name of the person to greet", required=True),
            Parameter("language", "string", "Language for greeting (defaults to random)"),
        ],
        _greeting,
    ),
    Tool(
        "todays-date",
        "Returns today's date in the specified format",
        [Parameter("format", "string", "strftime date format (defaults to %Y-%m-%d)")],
        _todays_date,
    ),
    Tool(
        "metric-variance-analyzer",
        "Analyzes metric variance and stability over time to determine if a metric is suitable for A/B "
        "testing. Calculates statistical measures, detects outliers, and provides actionable recommendations "
        "for experiment design.",
        [
            Parameter("metricValues", "string",
                      'JSON array of metric values collected over time, e.g. "[10.2, 11.5, 10.8, 12.1, 10.5]"',
                      required=True),
            Parameter("metricName", "string", 'Name of the metric being analyzed. Defaults to "Unnamed Metric".'),
            Parameter("expectedMean", "number", "Optional expected mean; flags a deviation of more than 10%."),
            Parameter("confidenceLevel", "number", "Confidence level (0-1). Defaults to 0.95."),
        ],
        _metric_variance,
    ),
    Tool(
        "experiment-duration-estimator",
        "Estimates how long an A/B test needs to run based on traffic, conversion rates, and desired "
        "statistical parameters.",
        [
            Parameter("dailyTraffic", "number", "Average daily traffic (total visitors/users per day)", required=True),
            Parameter("baselineConversionRate", "number", "Baseline conversion rate as decimal (e.g., 0.05 for 5%)",
                      required=True),
            Parameter("minimumDetectableEffect", "number",
                      "Minimum detectable effect as relative lift (e.g., 0.1 for 10%)", required=True),
            Parameter("statisticalPower", "number", "Statistical power (1 - beta). Defaults to 0.8."),
            Parameter("significanceLevel", "number", "Significance level (alpha), two-sided. Defaults to 0.05."),
            Parameter("numberOfVariants", "number", "Total variants including control. Defaults to 2."),
        ],
        _duration,
    ),
    Tool(
        "flag-naming-validator",
        "Validates feature flag names against naming conventions and best practices, with suggestions "
        "and an auto-corrected name.",
        [
            Parameter("flagName", "string", 'The feature flag name to validate (e.g., "feature_new_checkout")',
                      required=True),
            Parameter("namingConvention", "string",
                      f"One of {', '.join(CONVENTIONS)}. Defaults to snake_case."),
            Parameter("customPattern", "string", 'Regex used when namingConvention is "custom"'),
            Parameter("prefix", "string", 'Required prefix (e.g., "ff_")'),
            Parameter("suffix", "string", 'Required suffix (e.g., "_test")'),
            Parameter("maxLength", "number", "Maximum allowed length. Defaults to 50."),
            Parameter("minLength", "number", "Minimum required length. Defaults to 5."),
            Parameter("allowedCategories", "string", 'Comma-separated categories (e.g., "feature,experiment")'),
            Parameter("teamPrefix", "string", 'Team identifier expected after the prefix (e.g., "checkout_")'),
        ],
        _flag_naming,
    ),
    Tool(
        "experiment-overlap-checker",
        "Analyzes audience overlap and conflicts (metric, page, targeting) between experiments that may run "
        "simultaneously, with a risk assessment and recommendations.",
        [
            Parameter("experiments", "string",
                      "JSON array of experiments: id, name, audienceSize, trafficAllocation (0-100); optional "
                      "targetingRules, primaryMetric, experimentType, affectedPages", required=True),
            Parameter("totalAudienceSize", "number", "Total available audience size"),
            Parameter("overlapTolerance", "number", "Acceptable overlap percentage (0-100). Defaults to 20."),
        ],
        _overlap,
    ),
    Tool(
        "experiment-catalog",
        "Overview of an experimentation program: lists experiments by status, groups them by metric, page "
        "and targeting rule, flags conflicts among running experiments and recommends next steps.",
        [
            Parameter("experiments", "string",
                      "JSON array of experiments: id, name, status (running, paused, draft, archived), "
                      "audienceSize, trafficAllocation (0-100); optional primaryMetric, affectedPages, "
                      "targetingRules, startDate, endDate, variations", required=True),
            Parameter("status", "string", f"Status filter, one of {', '.join(STATUS_FILTERS)}. Defaults to all."),
            Parameter("metric", "string", "Case-insensitive substring of the primary metric"),
            Parameter("page", "string", "Case-insensitive substring of an affected page"),
            Parameter("targetingRule", "string", "Case-insensitive substring of a targeting rule"),
        ],
        _catalog,
    ),
    Tool(
        "flag-config-builder",
        "Builds and validates a feature flag configuration (key, variables, variations, default variation) "
        "ready to be created in a flag-management tool.",
        [
            Parameter("flagName", "string", "Display name of the flag", required=True),
            Parameter("flagKey", "string", "Unique key; derived from flagName in snake_case when omitted"),
            Parameter("description", "string", "What the flag controls"),
            Parameter("variables", "string", "JSON array of {key, type, defaultValue}"),
            Parameter("variations", "string", "JSON array of {key, name, variables}"),
            Parameter("defaultVariation", "string", "Key of the default variation"),
            Parameter("environment", "string", 'Target environment. Defaults to "development".'),
        ],
        _flag_config,
    ),
]

TOOLS: Mapping[str, Tool] = MappingProxyType({t.name: t for t in _TOOLS})


def get_tool(name: str) -> Tool:
    try:
        return TOOLS[name]
    except KeyError:
        raise ToolNotFoundError(name) from None

def discovery() -> Dict[str, Any]:
    return {"functions": [t.manifest() for t in TOOLS.values()]}

def run_tool(name: str, payload: Optional[Payload] = None, settings: Optional[Settings] = None) -> Dict[str, Any]:
    tool = get_tool(name)
    if payload is None:
        payload = {}
    if not isinstance(payload, Mapping):
        raise ValidationError("payload must be a JSON object", field="payload")
    settings = settings or load_settings()
    logger.info("running tool %s", name)
    return tool.handler(payload, settings)

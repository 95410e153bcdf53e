"""
Feature-flag configuration builder.

Derives a flag key, fills in default variables / variations and checks the
structure a flag-management API expects. Nothing is sent anywhere; the
returned config is meant to be created by the caller (or by hand).
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ValidationError
from .parsing import parse_json_array

logger = logging.getLogger(__name__)

VARIABLE_TYPES = ("boolean", "string", "integer", "double", "json")

DEFAULT_VARIABLES: List[Dict[str, Any]] = [
    {"key": "enabled", "type": "boolean", "defaultValue": False},
]
DEFAULT_VARIATIONS: List[Dict[str, Any]] = [
    {"key": "off", "name": "Off", "variables": {"enabled": False}},
    {"key": "on", "name": "On", "variables": {"enabled": True}},
]


def flag_key_from_name(name: str) -> str:
    """ "New Checkout Flow!" -> "new_checkout_flow" """
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


@dataclass
class FlagConfig:
    flag_key: str
    flag_name: str
    description: str
    environment: str
    default_variation: str
    variables: List[Any] = field(default_factory=list)
    variations: List[Any] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def next_steps(self) -> List[str]:
        if self.errors:
            return [
                "Fix the validation errors listed above",
                "Ensure variables and variations are valid JSON arrays",
                "Verify all required fields are provided",
            ]
        names = ", ".join(str(v.get("name")) for v in self.variations if isinstance(v, dict))
        return [
            "Create this flag in your flag-management tool using the configuration above",
            "Configure targeting rules and rollout percentage",
            "Add flag to your application code",
            f"Flag Key: {self.flag_key}",
            f"Variations: {names}",
        ]

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "success": self.success,
            "flagKey": self.flag_key,
            "flagName": self.flag_name,
            "description": self.description,
            "message": ("✅ Flag configuration validated successfully!" if self.success
                        else "Flag configuration failed due to validation errors"),
            "details": {
                "variations": self.variations,
                "variables": self.variables,
                "environment": self.environment,
                "defaultVariation": self.default_variation,
            },
            "nextSteps": self.next_steps(),
        }
        if self.errors:
            out["errors"] = list(self.errors)
        return out


def _check_variables(variables: List[Any]) -> List[str]:
    errors = []
    for idx, v in enumerate(variables):
        if not isinstance(v, dict) or not v.get("key") or not v.get("type") or "defaultValue" not in v:
            errors.append(f"Variable at index {idx} must have: key, type, and defaultValue")
            continue
        if v["type"] not in VARIABLE_TYPES:
            errors.append(f"Variable '{v['key']}' has invalid type. Must be one of: {', '.join(VARIABLE_TYPES)}")
    return errors

def _check_variations(variations: List[Any]) -> List[str]:
    return [
        f"Variation at index {idx} must have: key and name properties"
        for idx, v in enumerate(variations)
        if not isinstance(v, dict) or not v.get("key") or not v.get("name")
    ]


def build_flag_config(
    flag_name: str,
    flag_key: Optional[str] = None,
    description: Optional[str] = None,
    variables: Any = None,
    variations: Any = None,
    default_variation: Optional[str] = None,
    environment: str = "development",
) -> FlagConfig:
    """
    variables / variations may be JSON strings or already-decoded lists.
    Malformed JSON is a ValidationError; structural problems inside the
    arrays are collected on FlagConfig.errors.
    """
    if not flag_name or not flag_name.strip():
        raise ValidationError("flagName is required and cannot be empty", field="flagName")

    key = flag_key or flag_key_from_name(flag_name)
    if not key:
        raise ValidationError("flagKey could not be derived from flagName; provide flagKey", field="flagKey")

    parsed_vars = (parse_json_array("variables", variables, allow_empty=True)
                   if variables is not None else copy.deepcopy(DEFAULT_VARIABLES))
    parsed_variations = (parse_json_array("variations", variations, allow_empty=True)
                         if variations is not None else copy.deepcopy(DEFAULT_VARIATIONS))

    errors = _check_variables(parsed_vars) + _check_variations(parsed_variations)

    first = parsed_variations[0] if parsed_variations and isinstance(parsed_variations[0], dict) else {}
    default_var = default_variation or first.get("key") or "off"
    keys = {v.get("key") for v in parsed_variations if isinstance(v, dict)}
    if default_var not in keys:
        errors.append(f"Default variation '{default_var}' not found in variations list")

    config = FlagConfig(
        flag_key=key,
        flag_name=flag_name,
        description=description or f"Feature flag: {flag_name}",
        environment=environment,
        default_variation=default_var,
        variables=parsed_vars,
        variations=parsed_variations,
        errors=errors,
    )
    if errors:
        logger.info("flag %r failed validation: %d error(s)", key, len(errors))
    return config

"""
exptools/naming.py

Feature-flag naming checks. Each rule is independent and yields a
pass / fail / warning verdict; the name is valid when nothing fails.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import ValidationError

logger = logging.getLogger(__name__)

PASS, FAIL, WARNING = "pass", "fail", "warning"

CONVENTION_PATTERNS = {
    "snake_case": re.compile(r"^[a-z0-9]+(_[a-z0-9]+)*$"),
    "kebab-case": re.compile(r"^[a-z0-9]+(-[a-z0-9]+)*$"),
    "camelCase": re.compile(r"^[a-z][a-zA-Z0-9]*$"),
    "PascalCase": re.compile(r"^[A-Z][a-zA-Z0-9]*$"),
}
CONVENTIONS = tuple(CONVENTION_PATTERNS) + ("custom",)

_SPECIAL_CHARS = re.compile(r"[^a-zA-Z0-9_-]")
_GENERIC_NAME = re.compile(r"^(test|temp|flag|feature|experiment|new|old)$", re.IGNORECASE)


@dataclass(frozen=True)
class Check:
    rule: str
    status: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"rule": self.rule, "status": self.status, "message": self.message}


@dataclass(frozen=True)
class ConventionResult:
    valid: bool
    message: str
    suggestion: Optional[str] = None
    corrected: Optional[str] = None


@dataclass
class NamingReport:
    flag_name: str
    checks: List[Check]
    suggestions: List[str]
    examples: List[str]
    corrected_name: Optional[str] = None
    summary: Dict[str, int] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not any(c.status == FAIL for c in self.checks)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "isValid": self.is_valid,
            "flagName": self.flag_name,
            "validationSummary": dict(self.summary),
            "checks": [c.to_dict() for c in self.checks],
            "suggestions": list(self.suggestions),
            "examples": list(self.examples),
        }
        if self.corrected_name is not None:
            out["correctedName"] = self.corrected_name
        return out


# -------------------------
# Convention
# -------------------------

def _words(name: str) -> List[str]:
    return [w for w in re.split(r"[^a-zA-Z0-9]", name) if w]

def _correct(name: str, convention: str) -> str:
    if convention == "snake_case":
        return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")
    if convention == "kebab-case":
        return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    words = _words(name)
    if convention == "camelCase":
        return "".join(w.lower() if i == 0 else w.capitalize() for i, w in enumerate(words))
    if convention == "PascalCase":
        return "".join(w.capitalize() for w in words)
    return name

_CONVENTION_HINTS = {
    "snake_case": ("Follows snake_case convention",
                   "Does not follow snake_case convention (lowercase with underscores)",
                   "Use lowercase letters and numbers separated by underscores (e.g., feature_new_checkout)"),
    "kebab-case": ("Follows kebab-case convention",
                   "Does not follow kebab-case convention (lowercase with hyphens)",
                   "Use lowercase letters and numbers separated by hyphens (e.g., feature-new-checkout)"),
    "camelCase": ("Follows camelCase convention",
                  "Does not follow camelCase convention",
                  "Start with lowercase, use camelCase for word boundaries (e.g., featureNewCheckout)"),
    "PascalCase": ("Follows PascalCase convention",
                   "Does not follow PascalCase convention",
                   "Start with uppercase, use PascalCase for word boundaries (e.g., FeatureNewCheckout)"),
}

def check_convention(name: str, convention: str, custom_pattern: Optional[str] = None) -> ConventionResult:
    if convention == "custom":
        if not custom_pattern:
            return ConventionResult(False, "Custom pattern not provided", "Provide a customPattern parameter")
        try:
            pattern = re.compile(custom_pattern)
        except re.error as exc:
            raise ValidationError(f"customPattern is not a valid regular expression: {exc}", field="customPattern")
        if pattern.search(name):
            return ConventionResult(True, "Follows custom naming pattern")
        return ConventionResult(False, "Does not follow custom naming pattern",
                                f"Name must match pattern: {custom_pattern}")

    if convention not in CONVENTION_PATTERNS:
        return ConventionResult(False, f"Unknown naming convention: {convention}",
                                "Use snake_case, kebab-case, camelCase, PascalCase, or custom")

    ok_msg, bad_msg, hint = _CONVENTION_HINTS[convention]
    if CONVENTION_PATTERNS[convention].fullmatch(name):
        return ConventionResult(True, ok_msg)
    return ConventionResult(False, bad_msg, hint, _correct(name, convention))


# -------------------------
# Readability
# -------------------------

def readability_checks(name: str) -> Tuple[List[Check], List[str]]:
    checks: List[Check] = []
    suggestions: List[str] = []

    if re.search(r"_{2,}|-{2,}", name):
        checks.append(Check("Readability - Separators", WARNING, "Multiple consecutive separators detected"))
        suggestions.append("Avoid multiple consecutive underscores or hyphens.")

    if re.match(r"^[0-9]", name):
        checks.append(Check("Readability - Start Character", WARNING, "Flag name starts with a number"))
        suggestions.append("Consider starting with a letter for better readability.")

    if _GENERIC_NAME.fullmatch(name):
        checks.append(Check("Descriptiveness", FAIL, "Flag name is too generic"))
        suggestions.append("Use a more descriptive name that indicates what the flag controls.")
    else:
        checks.append(Check("Descriptiveness", PASS, "Flag name appears descriptive"))

    if len(re.split(r"[_-]", name)) == 1 and len(name) > 15:
        checks.append(Check("Readability - Word Separation", WARNING,
                            "Long name without word separators may be hard to read"))
        suggestions.append("Consider using separators to break up long names.")

    return checks, suggestions


def example_names(convention: str,
                  prefix: str = "",
                  suffix: str = "",
                  team_prefix: str = "",
                  categories: Sequence[str] = ()) -> List[str]:
    category = categories[0] if categories else "feature"
    head = f"{prefix}{team_prefix}{category}"
    if convention == "snake_case":
        bodies = ["_new_checkout", "_payment_gateway_v2", "_mobile_navigation"]
    elif convention == "kebab-case":
        bodies = ["-new-checkout", "-payment-gateway-v2", "-mobile-navigation"]
    elif convention in ("camelCase", "PascalCase"):
        bodies = ["NewCheckout", "PaymentGatewayV2", "MobileNavigation"]
    else:
        head = f"{prefix}{team_prefix}"
        bodies = ["new_checkout", "payment_v2", "mobile_nav"]
    return [f"{head}{body}{suffix}" for body in bodies]


# -------------------------
# Validator
# -------------------------

def validate_flag_name(
    flag_name: str,
    convention: str = "snake_case",
    custom_pattern: Optional[str] = None,
    prefix: Optional[str] = None,
    suffix: Optional[str] = None,
    max_length: int = 50,
    min_length: int = 5,
    allowed_categories: Sequence[str] = (),
    team_prefix: Optional[str] = None,
) -> NamingReport:
    if not flag_name or not flag_name.strip():
        raise ValidationError("flagName is required and cannot be empty", field="flagName")
    if min_length < 0 or max_length < 0:
        raise ValidationError("minLength and maxLength must be non-negative", field="minLength")

    name = flag_name
    checks: List[Check] = []
    suggestions: List[str] = []
    corrected = name

    if len(name) > max_length:
        checks.append(Check("Maximum Length", FAIL,
                            f"Flag name is {len(name)} characters, exceeds maximum of {max_length}"))
        suggestions.append(f"Shorten the name to {max_length} characters or less. Consider abbreviations.")
    else:
        checks.append(Check("Maximum Length", PASS,
                            f"Flag name length ({len(name)}) is within limit ({max_length})"))

    if len(name) < min_length:
        checks.append(Check("Minimum Length", FAIL,
                            f"Flag name is {len(name)} characters, below minimum of {min_length}"))
        suggestions.append(f"Extend the name to at least {min_length} characters for clarity.")
    else:
        checks.append(Check("Minimum Length", PASS,
                            f"Flag name length ({len(name)}) meets minimum ({min_length})"))

    conv = check_convention(name, convention, custom_pattern)
    checks.append(Check("Naming Convention", PASS if conv.valid else FAIL, conv.message))
    if not conv.valid:
        if conv.suggestion:
            suggestions.append(conv.suggestion)
        corrected = conv.corrected or corrected

    if prefix:
        if name.startswith(prefix):
            checks.append(Check("Required Prefix", PASS, f'Flag name starts with required prefix "{prefix}"'))
        else:
            checks.append(Check("Required Prefix", FAIL, f'Flag name must start with prefix "{prefix}"'))
            suggestions.append(f'Add prefix "{prefix}" to the flag name.')
            if not corrected.startswith(prefix):
                corrected = prefix + corrected

    if suffix:
        if name.endswith(suffix):
            checks.append(Check("Required Suffix", PASS, f'Flag name ends with required suffix "{suffix}"'))
        else:
            checks.append(Check("Required Suffix", FAIL, f'Flag name must end with suffix "{suffix}"'))
            suggestions.append(f'Add suffix "{suffix}" to the flag name.')
            if not corrected.endswith(suffix):
                corrected = corrected + suffix

    if team_prefix:
        rest = name[len(prefix):] if prefix and name.startswith(prefix) else name
        if rest.startswith(team_prefix):
            checks.append(Check("Team Prefix", PASS, f'Flag includes team identifier "{team_prefix}"'))
        else:
            checks.append(Check("Team Prefix", WARNING,
                                f'Consider adding team identifier "{team_prefix}" for better organization'))
            suggestions.append(f'Add team prefix "{team_prefix}" after the global prefix for better organization.')

    categories = list(allowed_categories)
    if categories:
        listed = ", ".join(categories)
        if any(cat.lower() in name.lower() for cat in categories):
            checks.append(Check("Category Identifier", PASS, f"Flag name includes a valid category ({listed})"))
        else:
            checks.append(Check("Category Identifier", WARNING, f"Flag name should include a category: {listed}"))
            suggestions.append(f"Include a category identifier like: {listed}")

    if _SPECIAL_CHARS.search(name):
        checks.append(Check("Special Characters", FAIL, "Flag name contains invalid special characters"))
        suggestions.append("Remove special characters. Only alphanumeric, underscore, and hyphen are allowed.")
        corrected = _SPECIAL_CHARS.sub("_", corrected)
    else:
        checks.append(Check("Special Characters", PASS, "No invalid special characters detected"))

    extra_checks, extra_suggestions = readability_checks(name)
    checks.extend(extra_checks)
    suggestions.extend(extra_suggestions)

    summary = {
        "passed": sum(c.status == PASS for c in checks),
        "failed": sum(c.status == FAIL for c in checks),
        "warnings": sum(c.status == WARNING for c in checks),
    }
    if summary["failed"] == 0:
        if summary["warnings"] == 0:
            suggestions.append("✅ Flag name follows all conventions - good to go!")
        else:
            suggestions.append("✅ Flag name is valid but consider addressing warnings for better consistency.")

    report = NamingReport(
        flag_name=name,
        checks=checks,
        suggestions=[s for s in suggestions if s],
        examples=example_names(convention, prefix or "", suffix or "", team_prefix or "", categories),
        corrected_name=corrected if corrected != name else None,
        summary=summary,
    )
    logger.debug("flag name %r: %s", name, summary)
    return report

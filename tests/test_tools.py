import json
from datetime import datetime, timezone

import numpy as np
import pytest

from exptools.config import Settings
from exptools.errors import ComputationError, ToolNotFoundError, ValidationError
from exptools.tools import GREETINGS, TOOLS, discovery, greeting, run_tool, todays_date

SETTINGS = Settings()


def test_discovery_manifest():
    manifest = discovery()
    names = [f["name"] for f in manifest["functions"]]
    assert names == [
        "greeting",
        "todays-date",
        "metric-variance-analyzer",
        "experiment-duration-estimator",
        "flag-naming-validator",
        "experiment-overlap-checker",
        "experiment-catalog",
        "flag-config-builder",
    ]
    for fn in manifest["functions"]:
        assert fn["endpoint"] == f"/tools/{fn['name']}"
        assert fn["description"]
        for p in fn["parameters"]:
            assert set(p) == {"name", "type", "description", "required"}
            assert p["type"] in ("string", "number", "boolean")
    json.dumps(manifest)


def test_required_parameters_marked():
    duration = {p["name"]: p["required"] for p in TOOLS["experiment-duration-estimator"].manifest()["parameters"]}
    assert duration == {
        "dailyTraffic": True,
        "baselineConversionRate": True,
        "minimumDetectableEffect": True,
        "statisticalPower": False,
        "significanceLevel": False,
        "numberOfVariants": False,
    }


def test_unknown_tool():
    with pytest.raises(ToolNotFoundError, match="Unknown tool: 'nope'"):
        run_tool("nope", {}, settings=SETTINGS)


def test_payload_must_be_object():
    with pytest.raises(ValidationError):
        run_tool("greeting", ["Ada"], settings=SETTINGS)


def test_greeting():
    assert greeting("Ada", "spanish") == {"greeting": "¡Hola, Ada! ¿Cómo estás?", "language": "spanish"}
    assert greeting("Ada", "French")["greeting"] == "Bonjour, Ada! Comment ça va?"
    assert greeting("Ada", "klingon")["greeting"] == "Hello, Ada! How are you?"

    out = greeting("Ada", rng=np.random.default_rng(0))
    assert out["language"] in GREETINGS
    assert "Ada" in out["greeting"]

    with pytest.raises(ValidationError) as exc:
        run_tool("greeting", {}, settings=SETTINGS)
    assert exc.value.field == "name"


def test_todays_date():
    now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    assert todays_date(now=now) == {"date": "2026-10-18", "format": "%Y-%m-%d", "timestamp": now.timestamp()}
    assert todays_date("%d/%m/%Y", now=now)["date"] == "18/10/2026"

    out = run_tool("todays-date", {}, settings=SETTINGS)
    assert len(out["date"]) == 10


def test_variance_tool():
    out = run_tool("metric-variance-analyzer",
                   {"metricValues": "[10, 12, 11, 13, 10]", "metricName": "signups"}, settings=SETTINGS)
    assert out["metricName"] == "signups"
    assert out["sampleSize"] == 5
    assert out["statistics"]["mean"] == 11.2
    assert out["stability"]["rating"] == "Excellent"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"metricValues": "[]"},
        {"metricValues": "not json"},
        {"metricValues": '["a", 1]'},
        {"metricValues": "[1, 2]", "confidenceLevel": True},
    ],
)
def test_variance_tool_rejects(payload):
    with pytest.raises(ValidationError):
        run_tool("metric-variance-analyzer", payload, settings=SETTINGS)


def test_variance_tool_zero_mean():
    with pytest.raises(ComputationError):
        run_tool("metric-variance-analyzer", {"metricValues": "[-1, 1]"}, settings=SETTINGS)


def test_variance_tool_overflow():
    with pytest.raises(ComputationError) as exc:
        run_tool("metric-variance-analyzer", {"metricValues": "[1e200, -1e199, 3e200]"}, settings=SETTINGS)
    assert exc.value.to_dict()["field"] == "variance"


def test_duration_tool_uses_settings_defaults():
    payload = {"dailyTraffic": 10000, "baselineConversionRate": 0.05, "minimumDetectableEffect": 0.1}
    out = run_tool("experiment-duration-estimator", payload, settings=SETTINGS)
    assert out["requiredSampleSizePerVariant"] == 31240
    assert out["estimatedDays"] == 7

    three = run_tool("experiment-duration-estimator", payload, settings=Settings(default_variants=3))
    assert three["assumptions"]["numberOfVariants"] == 3

    exact = run_tool("experiment-duration-estimator", payload, settings=Settings(z_method="exact"))
    assert exact["assumptions"]["zAlpha"] == pytest.approx(1.959964, abs=1e-6)


def test_duration_tool_rejects_bad_baseline():
    payload = {"dailyTraffic": 10000, "baselineConversionRate": 1.5, "minimumDetectableEffect": 0.1}
    with pytest.raises(ValidationError) as exc:
        run_tool("experiment-duration-estimator", payload, settings=SETTINGS)
    assert exc.value.field == "baselineConversionRate"


def test_naming_tool():
    out = run_tool("flag-naming-validator", {"flagName": "feature_new_checkout"}, settings=SETTINGS)
    assert out["isValid"]
    assert out["validationSummary"]["failed"] == 0

    cats = run_tool("flag-naming-validator",
                    {"flagName": "ff_rollout_dark_mode", "allowedCategories": "experiment, rollout",
                     "maxLength": "30"}, settings=SETTINGS)
    checks = {c["rule"]: c["status"] for c in cats["checks"]}
    assert checks["Category Identifier"] == "pass"
    assert cats["checks"][0]["message"] == "Flag name length (20) is within limit (30)"


def test_overlap_tool():
    experiments = [
        {"id": "1", "name": "Checkout A", "audienceSize": 10000, "trafficAllocation": 50,
         "primaryMetric": "conversion"},
        {"id": "2", "name": "Checkout B", "audienceSize": 10000, "trafficAllocation": 50,
         "primaryMetric": "conversion"},
    ]
    out = run_tool("experiment-overlap-checker", {"experiments": json.dumps(experiments)}, settings=SETTINGS)
    assert out["summary"]["riskLevel"] == "Critical"
    assert out["conflicts"][0]["affectedExperiments"] == ["Checkout A", "Checkout B"]

    with pytest.raises(ValidationError) as exc:
        run_tool("experiment-overlap-checker", {"experiments": "[]"}, settings=SETTINGS)
    assert exc.value.field == "experiments"


def test_flag_config_tool():
    out = run_tool("flag-config-builder", {"flagName": "Dark Mode", "environment": "staging"}, settings=SETTINGS)
    assert out["success"]
    assert out["flagKey"] == "dark_mode"
    assert out["details"]["environment"] == "staging"


def test_catalog_tool():
    experiments = [
        {"id": "1", "name": "Checkout A", "status": "running", "audienceSize": 10000, "trafficAllocation": 50,
         "primaryMetric": "conversion"},
        {"id": "2", "name": "Checkout B", "status": "running", "audienceSize": 10000, "trafficAllocation": 50,
         "primaryMetric": "conversion"},
        {"id": "3", "name": "Banner", "status": "draft", "audienceSize": 5000, "trafficAllocation": 20},
    ]
    out = run_tool("experiment-catalog", {"experiments": json.dumps(experiments), "status": "live"},
                   settings=SETTINGS)
    assert out["summary"]["totalExperiments"] == 2
    assert out["groupedBy"]["byMetric"] == {"conversion": ["1", "2"]}
    assert out["potentialConflicts"][0]["severity"] == "critical"

    empty = run_tool("experiment-catalog", {"experiments": "[]"}, settings=SETTINGS)
    assert empty["summary"]["totalExperiments"] == 0

    with pytest.raises(ValidationError) as exc:
        run_tool("experiment-catalog", {"experiments": "[]", "status": "stopped"}, settings=SETTINGS)
    assert exc.value.field == "status"

import json

import pytest

from exptools.errors import ValidationError
from exptools.flags import build_flag_config, flag_key_from_name


def test_flag_key_from_name():
    assert flag_key_from_name("New Checkout Flow!") == "new_checkout_flow"
    assert flag_key_from_name("  --Dark  mode v2--") == "dark_mode_v2"


def test_defaults():
    config = build_flag_config("New Checkout Flow")
    d = config.to_dict()

    assert config.success
    assert d["flagKey"] == "new_checkout_flow"
    assert d["description"] == "Feature flag: New Checkout Flow"
    assert d["details"]["defaultVariation"] == "off"
    assert d["details"]["environment"] == "development"
    assert [v["key"] for v in d["details"]["variations"]] == ["off", "on"]
    assert d["details"]["variables"] == [{"key": "enabled", "type": "boolean", "defaultValue": False}]
    assert "Flag Key: new_checkout_flow" in d["nextSteps"]
    assert "Variations: Off, On" in d["nextSteps"]
    assert "errors" not in d


def test_default_variations_are_not_shared_between_configs():
    a = build_flag_config("Dark Mode")
    a.variations[1]["variables"]["enabled"] = "tampered"
    a.variables[0]["defaultValue"] = True

    b = build_flag_config("Light Mode")
    assert b.variations[1]["variables"] == {"enabled": True}
    assert b.variables == [{"key": "enabled", "type": "boolean", "defaultValue": False}]


def test_explicit_key_and_json_inputs():
    variables = json.dumps([{"key": "color", "type": "string", "defaultValue": "blue"}])
    variations = json.dumps([
        {"key": "blue", "name": "Blue", "variables": {"color": "blue"}},
        {"key": "green", "name": "Green", "variables": {"color": "green"}},
    ])
    config = build_flag_config("Button color", flag_key="btn_color", variables=variables,
                               variations=variations, default_variation="green", environment="production")
    assert config.success
    assert config.flag_key == "btn_color"
    assert config.default_variation == "green"
    assert config.environment == "production"


def test_structural_errors_are_collected():
    variables = [{"key": "color", "type": "colour", "defaultValue": "red"}, {"key": "size"}]
    variations = [{"key": "a"}, {"key": "b", "name": "B"}]
    config = build_flag_config("Button color", variables=variables, variations=variations,
                               default_variation="c")
    d = config.to_dict()

    assert not config.success
    assert d["success"] is False
    assert d["errors"] == [
        "Variable 'color' has invalid type. Must be one of: boolean, string, integer, double, json",
        "Variable at index 1 must have: key, type, and defaultValue",
        "Variation at index 0 must have: key and name properties",
        "Default variation 'c' not found in variations list",
    ]
    assert d["nextSteps"][0] == "Fix the validation errors listed above"


def test_empty_variations_flag_missing_default():
    config = build_flag_config("Kill switch", variations="[]")
    assert config.errors == ["Default variation 'off' not found in variations list"]


def test_input_errors_raise():
    with pytest.raises(ValidationError) as exc:
        build_flag_config("")
    assert exc.value.field == "flagName"

    with pytest.raises(ValidationError) as exc:
        build_flag_config("Dark mode", variables="[{not json")
    assert exc.value.field == "variables"

    with pytest.raises(ValidationError) as exc:
        build_flag_config("Dark mode", variations='{"key": "on"}')
    assert exc.value.field == "variations"

    with pytest.raises(ValidationError) as exc:
        build_flag_config("!!!")
    assert exc.value.field == "flagKey"

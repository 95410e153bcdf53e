import pytest

from exptools.catalog import (
    catalog_experiments,
    filter_catalog,
    group_catalog,
    parse_catalog,
    running_conflicts,
)
from exptools.errors import ValidationError


def _exp(id_, status, traffic=50, **extra):
    raw = {"id": id_, "name": f"Exp {id_}", "status": status, "audienceSize": 10000,
           "trafficAllocation": traffic}
    raw.update(extra)
    return raw


CATALOG = parse_catalog([
    _exp("1", "running", 50, primaryMetric="checkout_conversion", affectedPages=["/checkout"],
         targetingRules=["US", "mobile"], startDate="2025-10-01"),
    _exp("2", "running", 40, primaryMetric="checkout_conversion", affectedPages=["/checkout", "/cart"],
         targetingRules=["US"]),
    _exp("3", "running", 30, primaryMetric="ctr", affectedPages=["/home"]),
    _exp("4", "paused", 20, primaryMetric="ctr", affectedPages=["/home"]),
    _exp("5", "draft", 10, primaryMetric="signups"),
    _exp("6", "archived", 100, startDate="2025-08-01", endDate="2025-09-01",
         variations=[{"id": "a", "name": "Control", "allocation": 50}]),
])


def test_parse_catalog():
    entry = CATALOG[0]
    assert entry.id == "1"
    assert entry.status == "running"
    assert entry.start_date == "2025-10-01"
    assert entry.experiment.reach == 5000
    assert parse_catalog([]) == []
    assert parse_catalog([_exp("x", "RUNNING")])[0].status == "running"


@pytest.mark.parametrize(
    "raw",
    [
        _exp("a", "live"),
        _exp("a", None),
        _exp("a", "running", 150),
        _exp("a", "running", startDate=20251001),
        _exp("a", "running", variations="control"),
        {"name": "no id", "status": "running", "audienceSize": 10, "trafficAllocation": 10},
    ],
)
def test_parse_catalog_rejects(raw):
    with pytest.raises(ValidationError) as exc:
        parse_catalog([raw])
    assert exc.value.field == "experiments"


def test_status_filter():
    assert [e.id for e in filter_catalog(CATALOG, "live")] == ["1", "2", "3"]
    assert [e.id for e in filter_catalog(CATALOG, "Running")] == ["1", "2", "3"]
    assert [e.id for e in filter_catalog(CATALOG, "paused")] == ["4"]
    assert len(filter_catalog(CATALOG, "ALL")) == 6


def test_invalid_status_filter():
    with pytest.raises(ValidationError, match="Invalid status filter") as exc:
        filter_catalog(CATALOG, "stopped")
    assert exc.value.field == "status"


def test_substring_filters_ignore_case():
    assert [e.id for e in filter_catalog(CATALOG, metric="CHECKOUT")] == ["1", "2"]
    assert [e.id for e in filter_catalog(CATALOG, page="cart")] == ["2"]
    assert [e.id for e in filter_catalog(CATALOG, targeting_rule="mob")] == ["1"]
    assert [e.id for e in filter_catalog(CATALOG, "paused", metric="ctr")] == ["4"]


def test_grouping_keeps_ids_in_order():
    groups = group_catalog(CATALOG)
    assert groups["byMetric"] == {"checkout_conversion": ["1", "2"], "ctr": ["3", "4"], "signups": ["5"]}
    assert groups["byPage"]["/home"] == ["3", "4"]
    assert groups["byTargeting"] == {"US": ["1", "2"], "mobile": ["1"]}


def test_conflicts_only_among_running():
    conflicts = running_conflicts(CATALOG)
    assert [(c.severity, c.experiment_ids) for c in conflicts] == [
        ("critical", ["1", "2"]),
        ("error", ["1", "2"]),
        ("warning", ["1", "2", "3"]),
    ]
    assert conflicts[0].description == "Multiple running experiments testing the same metric: checkout_conversion"
    assert conflicts[1].description == "Multiple running experiments affecting the same page: /checkout"
    assert "(120%)" in conflicts[2].description


def test_catalog_report():
    d = catalog_experiments(CATALOG).to_dict()
    assert d["summary"] == {
        "totalExperiments": 6,
        "byStatus": {"running": 3, "paused": 1, "draft": 1, "archived": 1},
        "totalAudienceReach": 25000,
        "averageTrafficAllocation": 41.67,
    }
    assert d["experiments"][5]["endDate"] == "2025-09-01"
    assert d["experiments"][5]["variations"][0]["name"] == "Control"
    assert "primaryMetric" not in d["experiments"][5]
    assert d["potentialConflicts"][0]["experimentIds"] == ["1", "2"]
    assert d["recommendations"] == [
        "💡 1 paused experiment(s). Review if these should be resumed, archived, or restarted.",
        "🚨 1 critical conflict(s) detected among running experiments. "
        "Review immediately and consider pausing conflicting tests.",
        "⚠️ 1 page-level conflict(s) detected. Monitor for UI issues and interaction effects.",
    ]


def test_drafts_only_and_high_traffic():
    d = catalog_experiments(CATALOG, "draft").to_dict()
    assert d["recommendations"] == [
        "💡 You have 1 draft experiment(s) ready to launch. Consider prioritizing and starting tests."
    ]
    archived = catalog_experiments(CATALOG, "archived").to_dict()
    assert archived["recommendations"] == [
        "⚠️ Average traffic allocation is 100% - consider reducing to minimize overlap "
        "and preserve audience capacity."
    ]


def test_busy_program_recommendations():
    entries = parse_catalog([_exp(str(i), "running", 10) for i in range(6)]
                            + [_exp(f"old{i}", "archived", 10) for i in range(11)])
    recs = catalog_experiments(entries).recommendations
    assert recs[0].startswith("⚠️ 6 experiments running concurrently.")
    assert recs[1].startswith("💡 11 archived experiments.")
    assert len(recs) == 2


def test_empty_selection_is_healthy():
    d = catalog_experiments(CATALOG, metric="nothing-matches").to_dict()
    assert d["summary"]["totalExperiments"] == 0
    assert d["summary"]["averageTrafficAllocation"] == 0.0
    assert d["groupedBy"] == {"byMetric": {}, "byPage": {}, "byTargeting": {}}
    assert d["potentialConflicts"] == []
    assert d["recommendations"][0].startswith("✅ Experimentation program looks healthy.")

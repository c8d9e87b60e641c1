import re

import pytest
from pydantic import ValidationError

from app.core.errors import ScenarioNotFound
from app.core.scenarios import ScenarioCatalog, default_catalog
from app.core.schemas import DatabaseTarget, ScenarioDefinition


def test_list_keeps_declaration_order():
    """Scenario list follows the order the catalog was built in"""
    keys = [s.key for s in default_catalog().list()]
    assert keys == [
        "regionPowerTop10",
        "faultyMeters",
        "meterSummary",
        "alertDetection",
        "regionPowerStats",
        "meterTrend24h",
        "meterSummaryStats",
        "userPowerRanking",
    ]


def test_list_hides_sql():
    """Public metadata carries no SQL template"""
    info = default_catalog().list()[0].model_dump()
    assert set(info) == {"key", "name", "description", "database", "parameters"}


def test_get_returns_full_definition():
    scenario = default_catalog().get("meterTrend24h")
    assert scenario.database == DatabaseTarget.TIME_SERIES
    assert scenario.parameters == ("meter_id",)
    assert "$1" in scenario.sql


def test_get_unknown_key():
    with pytest.raises(ScenarioNotFound) as exc_info:
        default_catalog().get("noSuchScenario")
    assert exc_info.value.key == "noSuchScenario"
    assert exc_info.value.status_code == 404


def test_every_scenario_has_one_placeholder_per_parameter():
    for scenario in default_catalog().list():
        definition = default_catalog().get(scenario.key)
        placeholders = set(re.findall(r"\$(\d+)", definition.sql))
        assert len(placeholders) == len(definition.parameters)


def test_placeholder_count_mismatch_is_rejected():
    """A template whose placeholders don't match its parameter list never loads"""
    with pytest.raises(ValidationError):
        ScenarioDefinition(
            key="broken",
            name="Broken",
            database=DatabaseTarget.RELATIONAL,
            sql="SELECT * FROM meter_info WHERE meter_id = $1 AND status = $2",
            parameters=("meter_id",),
        )


def test_definitions_are_immutable():
    scenario = default_catalog().get("faultyMeters")
    with pytest.raises(ValidationError):
        scenario.sql = "DELETE FROM meter_info"


def test_duplicate_keys_are_rejected():
    scenario = default_catalog().get("faultyMeters")
    with pytest.raises(ValueError):
        ScenarioCatalog([scenario, scenario])


def test_membership_and_size():
    catalog = default_catalog()
    assert "regionPowerTop10" in catalog
    assert "nope" not in catalog
    assert len(catalog) == 8

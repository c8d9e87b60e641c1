from typing import Dict, Iterable, List

from app.core.errors import ScenarioNotFound
from app.core.schemas import DatabaseTarget, ScenarioDefinition, ScenarioInfo


# -----------------------------------------------------------------------------
# SCENARIO CATALOG
# Purpose: the fixed set of one-click queries shown in the query center.
# Loaded once at startup and read-only afterwards.
# -----------------------------------------------------------------------------


class ScenarioCatalog:
    def __init__(self, definitions: Iterable[ScenarioDefinition]):
        self._definitions: Dict[str, ScenarioDefinition] = {}
        for definition in definitions:
            if definition.key in self._definitions:
                raise ValueError(f"Duplicate scenario key: {definition.key}")
            self._definitions[definition.key] = definition

    def list(self) -> List[ScenarioInfo]:
        """Public metadata of every scenario, in declaration order."""
        return [definition.info() for definition in self._definitions.values()]

    def get(self, key: str) -> ScenarioDefinition:
        try:
            return self._definitions[key]
        except KeyError:
            raise ScenarioNotFound(key)

    def __contains__(self, key: str) -> bool:
        return key in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)


DEFAULT_SCENARIOS = [
    ScenarioDefinition(
        key="regionPowerTop10",
        name="Top 10 regions by consumption",
        description="Total energy per area, highest first, top 10 only",
        database=DatabaseTarget.MIXED,
        sql="""
            SELECT
              a.area_name,
              SUM(md.energy) AS total_energy
            FROM tsdb.meter_data md
            JOIN rdb.meter_info mi ON md.meter_id = mi.meter_id
            JOIN rdb.area_info a ON mi.area_id = a.area_id
            GROUP BY a.area_name
            ORDER BY total_energy DESC
            LIMIT 10
        """,
    ),
    ScenarioDefinition(
        key="faultyMeters",
        name="Faulty meters",
        description="Meters in Fault status together with their owner and area",
        database=DatabaseTarget.RELATIONAL,
        sql="""
            SELECT
              mi.meter_id,
              u.user_name,
              u.contact,
              a.area_name
            FROM meter_info mi
            JOIN user_info u ON mi.user_id = u.user_id
            JOIN area_info a ON mi.area_id = a.area_id
            WHERE mi.status = 'Fault'
        """,
    ),
    ScenarioDefinition(
        key="meterSummary",
        name="Meter summary",
        description="Details of one meter and the number of readings it has sent",
        database=DatabaseTarget.MIXED,
        sql="""
            SELECT
              mi.meter_id,
              mi.voltage_level,
              mi.status,
              u.user_name,
              a.area_name,
              (SELECT COUNT(*)
               FROM tsdb.meter_data md
               WHERE md.meter_id = mi.meter_id) AS data_points
            FROM rdb.meter_info mi
            JOIN rdb.user_info u ON mi.user_id = u.user_id
            JOIN rdb.area_info a ON mi.area_id = a.area_id
            WHERE mi.meter_id = $1
        """,
        parameters=("meter_id",),
    ),
    ScenarioDefinition(
        key="alertDetection",
        name="Alert detection",
        description="Readings that break one of the configured alarm rules",
        database=DatabaseTarget.MIXED,
        sql="""
            SELECT
              md.meter_id,
              md.ts,
              ar.rule_name,
              md.voltage,
              md.current,
              md.power
            FROM tsdb.meter_data md
            JOIN rdb.alarm_rules ar ON 1=1
            WHERE (ar.metric = 'voltage'
                   AND ((ar.operator = '>' AND md.voltage < ar.threshold)
                        OR (ar.operator = '<' AND md.voltage > ar.threshold)))
               OR (ar.metric = 'current' AND md.current > ar.threshold)
               OR (ar.metric = 'power' AND md.power > ar.threshold)
            ORDER BY md.ts DESC
            LIMIT 100
        """,
    ),
    ScenarioDefinition(
        key="regionPowerStats",
        name="Consumption by region",
        description="Total energy and average power per region and area",
        database=DatabaseTarget.MIXED,
        sql="""
            SELECT
              a.region,
              a.area_name,
              SUM(md.energy) AS total_energy,
              AVG(md.power) AS avg_power
            FROM tsdb.meter_data md
            JOIN rdb.meter_info mi ON md.meter_id = mi.meter_id
            JOIN rdb.area_info a ON mi.area_id = a.area_id
            GROUP BY a.region, a.area_name
        """,
    ),
    ScenarioDefinition(
        key="meterTrend24h",
        name="Meter 24h trend",
        description="Power and energy readings of one meter over the last 24 hours",
        database=DatabaseTarget.TIME_SERIES,
        sql="""
            SELECT
              md.ts,
              md.power,
              md.energy
            FROM tsdb.meter_data md
            WHERE md.meter_id = $1
              AND md.ts > NOW() - INTERVAL '24 hours'
            ORDER BY md.ts
        """,
        parameters=("meter_id",),
    ),
    ScenarioDefinition(
        key="meterSummaryStats",
        name="Meter status distribution",
        description="Meter counts per area and status with their share of the total",
        database=DatabaseTarget.RELATIONAL,
        sql="""
            SELECT
              a.area_name,
              mi.status,
              COUNT(*) AS meter_count,
              ROUND(COUNT(*) * 100.0 / SUM(COUNT(*)) OVER(), 2) AS percentage
            FROM meter_info mi
            JOIN area_info a ON mi.area_id = a.area_id
            GROUP BY a.area_id, a.area_name, mi.status
            ORDER BY a.area_name, mi.status
        """,
    ),
    ScenarioDefinition(
        key="userPowerRanking",
        name="User consumption ranking",
        description="Top 20 users by power drawn in the last 24 hours",
        database=DatabaseTarget.MIXED,
        sql="""
            SELECT
              ui.user_name,
              ui.contact,
              ai.area_name,
              mi.meter_id,
              ROUND(SUM(md.power), 2) AS total_power,
              ROUND(AVG(md.power), 2) AS avg_power,
              COUNT(*) AS data_points
            FROM tsdb.meter_data md
            JOIN rdb.meter_info mi ON md.meter_id = mi.meter_id
            JOIN rdb.user_info ui ON mi.user_id = ui.user_id
            JOIN rdb.area_info ai ON mi.area_id = ai.area_id
            WHERE md.ts >= NOW() - INTERVAL '24 hours'
            GROUP BY ui.user_id, ui.user_name, ui.contact, ai.area_name, mi.meter_id
            ORDER BY total_power DESC
            LIMIT 20
        """,
    ),
]


def default_catalog() -> ScenarioCatalog:
    return ScenarioCatalog(DEFAULT_SCENARIOS)

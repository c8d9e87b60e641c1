import logging
from typing import Any, Dict, List, Optional, Sequence

from app.core.database import DatabasePools, QueryResult
from app.core.errors import EmptyStatement, MissingParameter, StatementNotAllowed
from app.core.history import ExecutionHistory
from app.core.scenarios import ScenarioCatalog
from app.core.schemas import DatabaseTarget, ExecutionType


# -----------------------------------------------------------------------------
# QUERY GATEWAY
# Purpose: single entry point for running SQL against the meter databases.
# Scenario calls bind caller values into a catalog template; custom calls run
# caller SQL after a read-only prefix check.
# -----------------------------------------------------------------------------

logger = logging.getLogger(__name__)

READ_ONLY_PREFIXES = ("select", "with", "show", "describe", "desc", "explain")


def is_read_only_statement(sql: str) -> bool:
    """
    Prefix check on the trimmed, lower-cased statement.

    This is not a SQL parser: a second statement after a semicolon or a
    data-modifying CTE still passes. Treat it as a guard rail for the UI.
    """
    return sql.strip().lower().startswith(READ_ONLY_PREFIXES)


def bind_scenario_parameters(
    required: Sequence[str], supplied: Dict[str, Any]
) -> List[Any]:
    """Values for `required` in declaration order, failing on the first gap."""
    values = []
    for name in required:
        if supplied.get(name) is None:
            raise MissingParameter(name)
        values.append(supplied[name])
    return values


def build_envelope(result: QueryResult) -> Dict[str, Any]:
    return {
        "rows": result.rows,
        "row_count": result.row_count,
        "execution_time_ms": result.execution_time_ms,
        "sql": result.sql,
        "params": result.params,
    }


class QueryGateway:
    def __init__(
        self,
        catalog: ScenarioCatalog,
        pools: DatabasePools,
        history: ExecutionHistory,
    ):
        self.catalog = catalog
        self.pools = pools
        self.history = history

    async def execute_scenario(
        self, key: str, parameters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        scenario = self.catalog.get(key)
        values = bind_scenario_parameters(scenario.parameters, parameters or {})

        result = await self.pools.execute(scenario.database.value, scenario.sql, values)

        self.history.record(
            type=ExecutionType.SCENARIO,
            sql=result.sql,
            database=scenario.database.value,
            row_count=result.row_count,
            execution_time_ms=result.execution_time_ms,
            scenario_key=scenario.key,
            scenario_name=scenario.name,
        )
        logger.info(
            f"Scenario {key} on {scenario.database.value}: "
            f"{result.row_count} rows in {result.execution_time_ms}ms"
        )

        envelope = build_envelope(result)
        envelope["scenario"] = {
            "key": scenario.key,
            "name": scenario.name,
            "description": scenario.description,
            "database": scenario.database.value,
        }
        return envelope

    async def execute_custom(
        self,
        sql: Optional[str],
        database: str = DatabaseTarget.RELATIONAL.value,
        parameters: Optional[Sequence[Any]] = None,
    ) -> Dict[str, Any]:
        if sql is None or not sql.strip():
            raise EmptyStatement()
        if not is_read_only_statement(sql):
            raise StatementNotAllowed()

        result = await self.pools.execute(database, sql, list(parameters or []))

        self.history.record(
            type=ExecutionType.CUSTOM,
            sql=result.sql,
            database=database,
            row_count=result.row_count,
            execution_time_ms=result.execution_time_ms,
        )
        logger.info(
            f"Custom query on {database}: "
            f"{result.row_count} rows in {result.execution_time_ms}ms"
        )

        envelope = build_envelope(result)
        envelope["database"] = database
        return envelope

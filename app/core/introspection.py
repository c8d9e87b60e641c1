import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List

from app.core.config import Settings
from app.core.database import DatabasePools
from app.core.errors import InvalidArgument, InvalidIdentifier, QueryError, UnknownDatabase


# -----------------------------------------------------------------------------
# INTROSPECTION MODULE
# Purpose: read-only views over the meter databases for the management page:
# connection status, schema browser, table viewer, import checks.
# Also hosts the synthetic data generator used to seed tsdb.meter_data.
# -----------------------------------------------------------------------------

logger = logging.getLogger(__name__)

BROWSABLE_DATABASES = ("rdb", "tsdb")
IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
MAX_GENERATED_ROWS = 100000

RDB_COUNTS_SQL = """
    SELECT 'meter_info' AS table_name, COUNT(*) AS row_count FROM rdb.meter_info
    UNION ALL
    SELECT 'user_info' AS table_name, COUNT(*) AS row_count FROM rdb.user_info
    UNION ALL
    SELECT 'area_info' AS table_name, COUNT(*) AS row_count FROM rdb.area_info
    UNION ALL
    SELECT 'alarm_rules' AS table_name, COUNT(*) AS row_count FROM rdb.alarm_rules
"""

TSDB_COUNTS_SQL = """
    SELECT
      'meter_data' AS table_name,
      COUNT(*) AS row_count,
      MIN(ts) AS earliest_data,
      MAX(ts) AS latest_data
    FROM tsdb.meter_data
"""

TABLES_SQL = """
    SELECT table_name, table_type
    FROM information_schema.tables
    WHERE table_schema = 'public'
    ORDER BY table_name
"""

COLUMNS_SQL = """
    SELECT column_name, data_type, is_nullable, column_default
    FROM information_schema.columns
    WHERE table_schema = 'public' AND table_name = $1
    ORDER BY ordinal_position
"""

INTEGRITY_SQL = """
    SELECT 'orphaned_meters' AS check_type, COUNT(*) AS count
    FROM tsdb.meter_data md
    LEFT JOIN rdb.meter_info mi ON md.meter_id = mi.meter_id
    WHERE mi.meter_id IS NULL

    UNION ALL

    SELECT 'meters_without_data' AS check_type, COUNT(*) AS count
    FROM rdb.meter_info mi
    LEFT JOIN tsdb.meter_data md ON mi.meter_id = md.meter_id
    WHERE md.meter_id IS NULL
"""

GENERATE_DATA_SQL = """
    INSERT INTO tsdb.meter_data(ts, voltage, current, power, energy, meter_id)
    SELECT
      NOW() - (s * 10)::int * INTERVAL '1 minute',
      220.0 + (s % 10)::float,
      5.0 + (s % 15)::float * 0.1,
      1000.0 + (s % 20)::float * 50,
      5000.0 + s::float * 10,
      'M' || ((s % 100) + 1)::text
    FROM generate_series(1, $1) AS s
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_identifier(name: str) -> str:
    if not IDENTIFIER_RE.match(name or ""):
        raise InvalidIdentifier(name)
    return name


async def check_connection(pools: DatabasePools) -> Dict[str, Any]:
    """
    Ping rdb and tsdb and report each one separately.

    A failing database is reported with status "error" instead of raising, so
    the caller always gets a full picture.
    """
    results = {}
    for database in BROWSABLE_DATABASES:
        try:
            latency = await pools.ping(database)
            results[database] = {"status": "connected", "latency": latency}
        except QueryError as error:
            logger.warning(f"{database} connection check failed: {error.detail}")
            results[database] = {"status": "error", "error": error.detail}

    connected = all(r["status"] == "connected" for r in results.values())
    return {
        "success": connected,
        "connected": connected,
        "rdbStatus": results["rdb"]["status"],
        "tsdbStatus": results["tsdb"]["status"],
        "latency": {name: r.get("latency") for name, r in results.items()},
        "errors": {name: r["error"] for name, r in results.items() if "error" in r},
        "message": (
            "KWDB connection succeeded"
            if connected
            else "Some databases could not be reached"
        ),
    }


def get_database_config(settings: Settings) -> Dict[str, Any]:
    """Connection settings without the password."""
    return {
        "host": settings.KWDB_HOST,
        "port": settings.KWDB_PORT,
        "user": settings.KWDB_USER,
        "ssl": settings.KWDB_SSL,
        "databases": settings.databases,
    }


async def get_database_stats(pools: DatabasePools) -> Dict[str, Any]:
    rdb_counts = await pools.execute("rdb", RDB_COUNTS_SQL)
    tsdb_counts = await pools.execute("tsdb", TSDB_COUNTS_SQL)
    rdb_tables = await pools.execute("rdb", TABLES_SQL)
    tsdb_tables = await pools.execute("tsdb", TABLES_SQL)

    return {
        "rdb": {"tables": rdb_tables.rows, "counts": rdb_counts.rows},
        "tsdb": {"tables": tsdb_tables.rows, "counts": tsdb_counts.rows},
        "timestamp": _now(),
    }


async def get_schema_for_database(
    pools: DatabasePools, database: str
) -> List[Dict[str, Any]]:
    """
    Tables of one database with their columns.

    Args:
        pools: Database pools.
        database: "rdb" or "tsdb".

    Returns:
        One entry per table. A table whose columns cannot be read is still
        listed, with an empty column list.
    """
    tables_result = await pools.execute(database, TABLES_SQL)
    logger.info(f"{database}: found {tables_result.row_count} tables")

    tables = []
    for table in tables_result.rows:
        table_name = table["table_name"]
        try:
            columns_result = await pools.execute(database, COLUMNS_SQL, [table_name])
            columns = [
                {
                    "name": col["column_name"],
                    "type": col["data_type"],
                    "nullable": col["is_nullable"] == "YES",
                    "default": col["column_default"],
                }
                for col in columns_result.rows
            ]
        except QueryError as error:
            logger.warning(f"Could not read columns of {database}.{table_name}: {error.detail}")
            columns = []

        tables.append(
            {
                "table_name": table_name,
                "table_type": table.get("table_type") or "BASE TABLE",
                "database": database,
                "columns": columns,
                "column_count": len(columns),
            }
        )
    return tables


async def get_schema(pools: DatabasePools, database: str) -> List[Dict[str, Any]]:
    """Schema of rdb, tsdb, or both merged when `database` is "mixed"."""
    if database == "mixed":
        rdb_schema = await get_schema_for_database(pools, "rdb")
        tsdb_schema = await get_schema_for_database(pools, "tsdb")
        return rdb_schema + tsdb_schema
    if database not in BROWSABLE_DATABASES:
        raise UnknownDatabase(database)
    return await get_schema_for_database(pools, database)


async def get_database_info(pools: DatabasePools) -> Dict[str, Any]:
    version_result = await pools.execute("rdb", "SELECT version()")
    databases = []
    for database in BROWSABLE_DATABASES:
        info = await pools.execute(
            database,
            """
            SELECT CAST($1 AS text) AS database_name, COUNT(*) AS table_count
            FROM information_schema.tables
            WHERE table_schema = $1
            """,
            [database],
        )
        databases.extend(info.rows)

    status = await check_connection(pools)
    version = version_result.rows[0].get("version") if version_result.rows else None
    return {
        "version": version or "Unknown",
        "databases": databases,
        "connections": {
            "rdb": status["rdbStatus"],
            "tsdb": status["tsdbStatus"],
            "latency": status["latency"],
        },
        "timestamp": _now(),
    }


async def get_import_status(pools: DatabasePools) -> Dict[str, Any]:
    rdb_counts = await pools.execute("rdb", RDB_COUNTS_SQL)
    tsdb_counts = await pools.execute("tsdb", TSDB_COUNTS_SQL)
    integrity = await pools.execute("rdb", INTEGRITY_SQL)

    has_rdb_data = all(int(table["row_count"]) > 0 for table in rdb_counts.rows)
    has_tsdb_data = bool(tsdb_counts.rows) and int(tsdb_counts.rows[0]["row_count"]) > 0

    return {
        "rdb": rdb_counts.rows,
        "tsdb": tsdb_counts.rows,
        "integrity": integrity.rows,
        "timestamp": _now(),
        "importComplete": has_rdb_data and has_tsdb_data,
        "hasRdbData": has_rdb_data,
        "hasTsdbData": has_tsdb_data,
    }


async def get_table_data(
    pools: DatabasePools,
    database: str,
    table: str,
    page: int = 1,
    page_size: int = 50,
) -> Dict[str, Any]:
    """
    One page of rows from `database`.`table`.

    Identifiers cannot be bound, so both are checked before they go into the
    statement; paging values are bound.
    """
    if database not in BROWSABLE_DATABASES:
        raise UnknownDatabase(database)
    check_identifier(table)
    if page < 1 or page_size < 1:
        raise InvalidArgument("page and pageSize must be positive")

    offset = (page - 1) * page_size
    records = await pools.execute(
        database,
        f"SELECT * FROM {database}.{table} LIMIT $1 OFFSET $2",
        [page_size, offset],
    )
    count = await pools.execute(database, f"SELECT COUNT(*) AS total FROM {database}.{table}")
    total = int(count.rows[0]["total"]) if count.rows else 0

    return {
        "records": records.rows,
        "pagination": {"current": page, "pageSize": page_size, "total": total},
    }


async def generate_meter_data(pools: DatabasePools, count: int) -> Dict[str, Any]:
    """Insert `count` synthetic readings spread over meters M1..M100."""
    if count < 1 or count > MAX_GENERATED_ROWS:
        raise InvalidArgument(f"count must be between 1 and {MAX_GENERATED_ROWS}")

    result = await pools.execute("tsdb", GENERATE_DATA_SQL, [count], write=True)
    logger.info(f"Generated {count} meter readings")
    return {"count": count, "affected_rows": result.row_count or count}


async def list_meters(pools: DatabasePools) -> List[Dict[str, Any]]:
    result = await pools.execute(
        "rdb",
        """
        SELECT
          mi.meter_id,
          mi.manufacturer,
          mi.status,
          ui.user_name,
          ai.area_name
        FROM rdb.meter_info mi
        JOIN rdb.user_info ui ON mi.user_id = ui.user_id
        JOIN rdb.area_info ai ON mi.area_id = ai.area_id
        ORDER BY mi.meter_id
        LIMIT 100
        """,
    )
    return result.rows


async def list_areas(pools: DatabasePools) -> List[Dict[str, Any]]:
    result = await pools.execute(
        "rdb",
        """
        SELECT area_id, area_name, manager, region
        FROM rdb.area_info
        ORDER BY area_name
        """,
    )
    return result.rows

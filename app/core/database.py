import asyncio
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import exc, text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.sql.elements import TextClause

from app.core.config import Settings
from app.core.errors import ConnectionTimeout, ExecutionFailure, UnknownDatabase

logger = logging.getLogger(__name__)

# Logical database name -> physical database holding its connection pool
DATABASE_ALIASES = {
    "rdb": "rdb",
    "tsdb": "tsdb",
    "mixed": "defaultdb",
    "defaultdb": "defaultdb",
}

# Scanned left to right: literals, identifiers and comments are consumed
# whole so a `$1` inside them is never taken for a placeholder.
SQL_TOKEN_RE = re.compile(
    r"""
    (?P<literal>
        '(?:[^']|'')*'
      | "(?:[^"]|"")*"
      | --[^\n]*
      | /\*.*?\*/
      | \$(?P<tag>[A-Za-z_]\w*|)\$.*?\$(?P=tag)\$
    )
    | (?P<cast>\$(?P<cast_n>\d+)(?=::))
    | (?P<placeholder>\$(?P<n>\d+))
    | (?P<named>(?<![:\w\\]):\w+(?!:))
    """,
    re.VERBOSE | re.DOTALL,
)
# Same pattern text() uses to spot named binds
NAMED_BIND_RE = re.compile(r"(?<![:\w\\]):(\w+)(?!:)")


@dataclass
class QueryResult:
    rows: List[Dict[str, Any]]
    row_count: int
    execution_time_ms: float
    sql: str
    params: List[Any] = field(default_factory=list)


def _rewrite_token(match: re.Match) -> str:
    if match.group("literal") is not None:
        return NAMED_BIND_RE.sub(r"\\:\1", match.group("literal"))
    if match.group("cast") is not None:
        # `$1::int` must not read as `:p` followed by garbage
        return f"(:p{match.group('cast_n')})"
    if match.group("placeholder") is not None:
        return f":p{match.group('n')}"
    return "\\" + match.group("named")


def bind_positional(sql: str, params: Sequence[Any]) -> Tuple[TextClause, Dict[str, Any]]:
    """
    Turn a `$n` statement plus an ordered value list into a bound text() clause.

    Values never get interpolated into the SQL string: `$1` becomes the bind
    `:p1` and receives params[0], `$2` receives params[1] and so on. Text
    inside quotes, dollar quotes and comments is left as written, and any
    literal `:word` is escaped so text() does not bind it.
    """
    bound = SQL_TOKEN_RE.sub(_rewrite_token, sql)
    values = {f"p{index}": value for index, value in enumerate(params, start=1)}
    return text(bound), values


def jsonable_value(value: Any) -> Any:
    # bytea arrives as bytes; render it the way psql does
    if isinstance(value, memoryview):
        value = value.tobytes()
    if isinstance(value, (bytes, bytearray)):
        return "\\x" + bytes(value).hex()
    return value


class DatabasePools:
    """One async engine (and so one connection pool) per physical database."""

    def __init__(self, engines: Dict[str, AsyncEngine]):
        self.engines = engines

    @classmethod
    def from_settings(cls, settings: Settings) -> "DatabasePools":
        connect_args: Dict[str, Any] = {"timeout": settings.DB_CONNECT_TIMEOUT}
        if settings.KWDB_SSL:
            connect_args["ssl"] = "require"

        engines = {}
        for name in settings.databases:
            engines[name] = create_async_engine(
                settings.database_url(name),
                echo=settings.DB_ECHO,
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
                pool_recycle=settings.DB_POOL_RECYCLE,
                pool_pre_ping=True,
                connect_args=connect_args,
            )
        return cls(engines)

    def resolve(self, database: str) -> AsyncEngine:
        physical = DATABASE_ALIASES.get(database)
        if physical is None or physical not in self.engines:
            raise UnknownDatabase(database)
        return self.engines[physical]

    async def execute(
        self,
        database: str,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        write: bool = False,
    ) -> QueryResult:
        """
        Run one statement on the pool behind `database`.

        A connection is checked out for this call only and released when it
        returns. Timing covers the execute call itself, not the wait for a
        pooled connection. Writes run inside a transaction that commits on
        success.
        """
        engine = self.resolve(database)
        params = list(params or [])
        statement, values = bind_positional(sql, params)

        try:
            connection_ctx = engine.begin() if write else engine.connect()
            async with connection_ctx as conn:
                start = time.perf_counter()
                result = await conn.execute(statement, values)
                if result.returns_rows:
                    rows = [
                        {key: jsonable_value(value) for key, value in row.items()}
                        for row in result.mappings().all()
                    ]
                    row_count = len(rows)
                else:
                    rows = []
                    row_count = result.rowcount
                elapsed_ms = (time.perf_counter() - start) * 1000.0
        except (exc.TimeoutError, asyncio.TimeoutError, TimeoutError) as error:
            logger.error(f"Connection timeout on {database}: {error}")
            raise ConnectionTimeout(f"Connection to {database} timed out") from error
        except exc.DBAPIError as error:
            message = str(error.orig) if error.orig is not None else str(error)
            logger.error(f"Query failed on {database}: {message}")
            raise ExecutionFailure(message) from error
        except (exc.SQLAlchemyError, OSError) as error:
            logger.error(f"Query failed on {database}: {error}")
            raise ExecutionFailure(str(error)) from error

        return QueryResult(
            rows=rows,
            row_count=row_count,
            execution_time_ms=round(elapsed_ms, 3),
            sql=sql.strip(),
            params=params,
        )

    async def ping(self, database: str) -> float:
        """Round trip of `SELECT 1` in milliseconds."""
        result = await self.execute(database, "SELECT 1")
        return result.execution_time_ms

    async def dispose(self):
        await asyncio.gather(*(engine.dispose() for engine in self.engines.values()))
        logger.info("All database pools closed")

from typing import Any, Dict, List, Optional, Sequence

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from app.main import app
from app.api.deps import get_gateway, get_pools
from app.core.database import DatabasePools, QueryResult
from app.core.gateway import QueryGateway
from app.core.history import ExecutionHistory
from app.core.scenarios import default_catalog


class FakePools(DatabasePools):
    """
    Stands in for the real engines: same database resolution, canned rows.

    Every execute() call is recorded so tests can check what reached the
    database, and how often.
    """

    def __init__(self):
        super().__init__({"rdb": None, "tsdb": None, "defaultdb": None})
        self.calls: List[Dict[str, Any]] = []
        self.responses: List[tuple] = []
        self.default_rows: List[Dict[str, Any]] = [{"value": 1}]
        self.error: Optional[Exception] = None

    def respond(self, fragment: str, rows: List[Dict[str, Any]]):
        """Return `rows` for any statement containing `fragment`."""
        self.responses.append((fragment, rows))

    async def execute(
        self,
        database: str,
        sql: str,
        params: Optional[Sequence[Any]] = None,
        write: bool = False,
    ) -> QueryResult:
        self.resolve(database)
        params = list(params or [])
        self.calls.append(
            {"database": database, "sql": sql, "params": params, "write": write}
        )
        if self.error is not None:
            raise self.error

        rows = self.default_rows
        for fragment, canned in self.responses:
            if fragment in sql:
                rows = canned
                break
        return QueryResult(
            rows=[dict(r) for r in rows],
            row_count=len(rows),
            execution_time_ms=1.5,
            sql=sql.strip(),
            params=params,
        )


@pytest.fixture
def fake_pools():
    return FakePools()


@pytest.fixture
def history():
    return ExecutionHistory(capacity=50)


@pytest.fixture
def gateway(fake_pools, history):
    return QueryGateway(catalog=default_catalog(), pools=fake_pools, history=history)


# Client wired to the fake pools instead of the lifespan-built ones
@pytest_asyncio.fixture(scope="function")
async def client(gateway: QueryGateway, fake_pools: FakePools):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_pools] = lambda: fake_pools

    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()

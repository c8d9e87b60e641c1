import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Query

from app.api.deps import gateway_dep, pools_dep
from app.core import introspection, schemas

router = APIRouter(prefix="/query", tags=["Query"])


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000.0, 3)


# Scenario list
@router.get("/scenarios")
async def list_scenarios(gateway: gateway_dep):
    scenarios = [s.model_dump(mode="json") for s in gateway.catalog.list()]
    return {"success": True, "data": scenarios}


# Run a catalog scenario
@router.post("/execute/{scenario_key}")
async def execute_scenario(
    scenario_key: str,
    gateway: gateway_dep,
    payload: Optional[schemas.ExecuteScenarioRequest] = None,
):
    parameters = payload.parameters if payload else {}

    start = time.perf_counter()
    result = await gateway.execute_scenario(scenario_key, parameters)
    total_time = _elapsed_ms(start)

    return {
        "success": True,
        "data": result["rows"],
        "meta": {
            "scenario": result["scenario"],
            "rowCount": result["row_count"],
            "executionTime": result["execution_time_ms"],
            "totalTime": total_time,
            "sql": result["sql"],
            "params": result["params"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


# Run caller supplied read-only SQL
@router.post("/custom")
async def execute_custom(payload: schemas.CustomQueryRequest, gateway: gateway_dep):
    start = time.perf_counter()
    result = await gateway.execute_custom(
        payload.sql, payload.database, payload.parameters
    )
    total_time = _elapsed_ms(start)

    return {
        "success": True,
        "data": result["rows"],
        "meta": {
            "rowCount": result["row_count"],
            "executionTime": result["execution_time_ms"],
            "totalTime": total_time,
            "sql": result["sql"],
            "database": result["database"],
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


@router.get("/history")
async def get_history(
    gateway: gateway_dep, limit: Optional[int] = Query(default=None, ge=0)
):
    """Recent executions, newest first."""
    records = gateway.history.recent(limit=limit, newest_first=True)
    return {
        "success": True,
        "data": [r.model_dump(mode="json", by_alias=True) for r in records],
    }


# Pickers for scenario parameters
@router.get("/meters")
async def get_meters(pools: pools_dep):
    return {"success": True, "data": await introspection.list_meters(pools)}


@router.get("/areas")
async def get_areas(pools: pools_dep):
    return {"success": True, "data": await introspection.list_areas(pools)}

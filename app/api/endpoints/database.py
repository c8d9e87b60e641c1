from fastapi import APIRouter, Query

from app.api.deps import pools_dep
from app.core import introspection, schemas
from app.core.config import settings

router = APIRouter(prefix="/database", tags=["Database"])


@router.get("/status")
async def get_status(pools: pools_dep):
    """Connection status and latency of rdb and tsdb."""
    return {"success": True, "data": await introspection.check_connection(pools)}


@router.post("/test")
async def test_database(pools: pools_dep):
    result = await introspection.check_connection(pools)
    return {
        "success": True,
        "data": result,
        "message": (
            "Database connection test succeeded"
            if result["connected"]
            else "Database connection test failed"
        ),
    }


@router.get("/config")
async def get_config():
    """Connection settings, never including the password."""
    return {"success": True, "data": introspection.get_database_config(settings)}


@router.get("/stats")
async def get_stats(pools: pools_dep):
    return {"success": True, "data": await introspection.get_database_stats(pools)}


@router.get("/schema/{database}")
async def get_schema(database: str, pools: pools_dep):
    """Tables and columns of rdb, tsdb, or both with "mixed"."""
    return {"success": True, "data": await introspection.get_schema(pools, database)}


@router.get("/info")
async def get_info(pools: pools_dep):
    return {"success": True, "data": await introspection.get_database_info(pools)}


@router.get("/import-status")
async def get_import_status(pools: pools_dep):
    return {"success": True, "data": await introspection.get_import_status(pools)}


# Table viewer
@router.get("/table-data/{database}/{table_name}")
async def get_table_data(
    database: str,
    table_name: str,
    pools: pools_dep,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=50, ge=1, le=1000, alias="pageSize"),
):
    data = await introspection.get_table_data(
        pools, database, table_name, page=page, page_size=page_size
    )
    return {"success": True, "data": data}


@router.post("/generate-data")
async def generate_data(payload: schemas.GenerateDataRequest, pools: pools_dep):
    """Seed tsdb.meter_data with synthetic readings."""
    data = await introspection.generate_meter_data(pools, payload.count)
    return {
        "success": True,
        "message": f"Generated {payload.count} meter readings",
        "data": data,
    }

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.deps import pools_dep
from app.api.router import api_router
from app.core import introspection
from app.core.config import settings
from app.core.database import DatabasePools
from app.core.errors import QueryError
from app.core.gateway import QueryGateway
from app.core.history import ExecutionHistory
from app.core.scenarios import default_catalog

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


# Build the pools and gateway on startup, close every pool on shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    pools = DatabasePools.from_settings(settings)
    app.state.pools = pools
    app.state.gateway = QueryGateway(
        catalog=default_catalog(),
        pools=pools,
        history=ExecutionHistory(settings.HISTORY_CAPACITY),
    )
    logger.info(f"Smart meter API ready, KWDB at {settings.KWDB_HOST}:{settings.KWDB_PORT}")

    yield
    await pools.dispose()


app = FastAPI(title="Smart Meter Query API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"{request.method} {request.url.path}")
    return await call_next(request)


@app.exception_handler(QueryError)
async def query_error_handler(request: Request, error: QueryError):
    if error.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {error.detail}")
    return JSONResponse(
        status_code=error.status_code,
        content={"success": False, "message": error.message, "error": error.detail},
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, error: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "message": "Invalid request",
            "error": str(error.errors()),
        },
    )


# Anything else still leaves as an envelope
@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, error: Exception):
    logger.exception(f"{request.method} {request.url.path} crashed: {error}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "message": "Internal server error", "error": str(error)},
    )


# Include the master router containing all our endpoints
app.include_router(api_router)


@app.get("/api/health")
async def health(pools: pools_dep):
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": await introspection.check_connection(pools),
    }

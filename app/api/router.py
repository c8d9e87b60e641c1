from fastapi import APIRouter
from app.api.endpoints import query, database

api_router = APIRouter(prefix="/api")

# Combine all sub-routers into one
api_router.include_router(query.router)
api_router.include_router(database.router)

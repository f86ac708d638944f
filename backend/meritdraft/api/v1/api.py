"""
Main API router aggregator
"""
from fastapi import APIRouter

from meritdraft.api.v1.endpoints import drafts, files, health, petitions

api_router = APIRouter()

api_router.include_router(petitions.router, prefix="/petitions", tags=["Petitions"])
api_router.include_router(drafts.router, tags=["Draft Generation"])
api_router.include_router(files.router, prefix="/files", tags=["Files"])
api_router.include_router(health.router, prefix="/health", tags=["Health"])

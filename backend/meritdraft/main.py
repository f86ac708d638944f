"""
FastAPI application entry point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from meritdraft.api.v1.api import api_router
from meritdraft.core.config import settings
from meritdraft.core.logger import logger
from meritdraft.services.background_jobs import recover_interrupted_jobs, shutdown_scheduler, start_scheduler
from meritdraft.services.draft_service import close_shared_gemini_clients


@asynccontextmanager
async def lifespan(app: FastAPI):
    start_scheduler()
    recover_interrupted_jobs()
    logger.info("%s started", settings.APP_NAME)
    yield
    shutdown_scheduler()
    close_shared_gemini_clients()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan,
)

# ── Routers ───────────────────────────────────────────────────────────────────
app.include_router(api_router, prefix="/api/v1")

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    return {"message": "MeritDraft API is running", "version": "1.0.0", "docs": "/docs"}


@app.get("/health")
def health_check():
    return {"status": "healthy"}

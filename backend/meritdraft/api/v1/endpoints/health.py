"""
Readiness check: database reachable, pgvector installed, Gemini configured.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from meritdraft.core.config import settings
from meritdraft.core.logger import logger
from meritdraft.db.database import get_db

router = APIRouter()


def _check_database(db: Session) -> tuple[str, str]:
    """Returns (status, detail). Status is 'ok' or 'error'."""
    try:
        db.execute(text("SELECT 1"))
        has_vector = db.execute(
            text("SELECT 1 FROM pg_extension WHERE extname = 'vector'")
        ).first()
        if has_vector is None:
            return "error", "pgvector extension not installed"
        return "ok", "Database reachable"
    except Exception as e:
        logger.exception("Database check failed")
        return "error", f"Database: {str(e)}"


def _check_gemini() -> tuple[str, str]:
    if not settings.GEMINI_API_KEY:
        return "error", "GEMINI_API_KEY not set"
    return "ok", f"Models: {settings.GEMINI_EMBEDDING_MODEL}, {settings.GEMINI_GENERATION_MODEL}"


@router.get("/ready")
def readiness(db: Session = Depends(get_db)):
    """
    Check the services draft generation depends on.
    - database: SELECT 1 plus the pgvector extension
    - gemini: API key present (no network call)
    """
    db_status, db_detail = _check_database(db)
    gemini_status, gemini_detail = _check_gemini()

    healthy = db_status == "ok" and gemini_status == "ok"
    return {
        "status": "healthy" if healthy else "degraded",
        "database": {"status": db_status, "detail": db_detail},
        "gemini": {"status": gemini_status, "detail": gemini_detail},
    }

"""
services/background_jobs.py

Background execution of draft generation jobs.

Each submitted job runs once, immediately, on a thread pool owned by an
APScheduler BackgroundScheduler. Runs open their own database session, so
a cancelled or finished request never aborts them. The caller learns the
outcome only by polling the job record.

Setup (FastAPI lifespan):

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        start_scheduler()
        recover_interrupted_jobs()
        yield
        shutdown_scheduler()
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import UUID

from apscheduler.executors.pool import ThreadPoolExecutor
from apscheduler.jobstores.base import ConflictingIdError
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.exc import SQLAlchemyError

from meritdraft.core.config import settings
from meritdraft.db.database import SessionLocal
from meritdraft.db.repositories import GenerationJobRepository
from meritdraft.services.draft_service import build_draft_service
from meritdraft.utils.exceptions import JobStateError

logger = logging.getLogger(__name__)

# ── Scheduler singleton ───────────────────────────────────────────────────────
_scheduler: BackgroundScheduler | None = None


def start_scheduler() -> None:
    """
    Starts the background scheduler.
    Call this from FastAPI lifespan startup.
    """
    global _scheduler
    if _scheduler and _scheduler.running:
        return

    _scheduler = BackgroundScheduler(
        executors={"default": ThreadPoolExecutor(max_workers=settings.DRAFT_WORKER_THREADS)},
        job_defaults={"coalesce": False, "max_instances": 1},
    )
    _scheduler.start()
    logger.info("Background scheduler started with %d draft workers", settings.DRAFT_WORKER_THREADS)


def shutdown_scheduler() -> None:
    """Shuts down the scheduler. Call from FastAPI lifespan shutdown."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Background scheduler shut down")
    _scheduler = None


def submit_draft_job(job_id: UUID | str) -> bool:
    """
    Queue one immediate run of ``run_draft_job`` for ``job_id``.

    Returns False when a run for the same job is already queued.
    """
    if _scheduler is None or not _scheduler.running:
        raise RuntimeError("Background scheduler is not running")

    try:
        _scheduler.add_job(
            run_draft_job,
            args=[str(job_id)],
            id=f"draft-{job_id}",
            name=f"Generate draft for job {job_id}",
            replace_existing=False,
            max_instances=1,
            misfire_grace_time=None,
        )
    except ConflictingIdError:
        logger.warning("Draft job %s is already queued; ignoring duplicate submission", job_id)
        return False

    logger.info("Queued draft job %s", job_id)
    return True


# ============================================================================
# Job body
# ============================================================================

def run_draft_job(job_id: str) -> None:
    """Process one generation job with a dedicated session."""
    logger.info("Job: run_draft_job %s starting", job_id)
    db = SessionLocal()
    try:
        try:
            service = build_draft_service(db)
        except ValueError as exc:
            # Misconfiguration (e.g. no API key): nothing can run, record why.
            logger.error("Draft job %s cannot start: %s", job_id, exc)
            GenerationJobRepository(db).mark_failed(job_id, f"draft service unavailable: {exc}")
            return

        status = service.process_job(job_id)
        logger.info("Job: run_draft_job %s finished with status=%s", job_id, status.value)

    except JobStateError as exc:
        logger.warning("Draft job %s skipped: %s", job_id, exc)
    except Exception:
        logger.exception("Draft job %s crashed", job_id)
    finally:
        db.close()


# ============================================================================
# Startup recovery
# ============================================================================

INTERRUPTED_JOB_MESSAGE = "interrupted before completion; start a new generation"


def recover_interrupted_jobs() -> int:
    """
    Fail jobs left pending or in progress by a previous process.

    Shutdown does not wait for running drafts, so their records would
    otherwise stay unfinished forever. Only jobs idle for
    ``STALE_JOB_MINUTES`` are touched.
    """
    cutoff = datetime.utcnow() - timedelta(minutes=settings.STALE_JOB_MINUTES)
    db = SessionLocal()
    try:
        count = GenerationJobRepository(db).fail_stale_unfinished(cutoff, INTERRUPTED_JOB_MESSAGE)
    except SQLAlchemyError:
        logger.exception("Could not recover interrupted draft jobs")
        db.rollback()
        return 0
    finally:
        db.close()

    if count:
        logger.warning("Marked %d interrupted draft job(s) failed", count)
    return count

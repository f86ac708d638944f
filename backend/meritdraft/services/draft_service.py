"""
Orchestrates draft generation for a petition:
  pending → in_progress → completed | failed

``create_job`` runs in the request path and makes no network calls.
``process_job`` is the long phase; it runs on the background scheduler
with its own database session.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from meritdraft.core.config import settings
from meritdraft.core.logger import logger
from meritdraft.db.models import GenerationJob, GenerationJobStatus, Petition, StepStatus
from meritdraft.db.repositories import GenerationJobRepository, LegalChunkRepository, PetitionRepository
from meritdraft.db.schemas import parse_criterion_detail
from meritdraft.services.completion_client import GeminiCompletionClient
from meritdraft.services.criteria import (
    ASSEMBLY_STEP_NAME,
    DEFAULT_CATALOG,
    MERITS_SECTION_TITLE,
    CriterionCatalog,
)
from meritdraft.services.document_assembler import assemble_document
from meritdraft.services.embedding_client import GeminiEmbeddingClient
from meritdraft.services.fact_formatter import extract_fact_summary
from meritdraft.services.legal_context_retriever import LegalContextRetriever, RetrievedContext
from meritdraft.services.section_generator import DraftSection, SectionGenerator
from meritdraft.utils.exceptions import (
    DraftPipelineError,
    EmbeddingFailedError,
    ExternalServiceError,
    JobNotFoundError,
    JobStateError,
    MissingPetitionDataError,
    PetitionNotFoundError,
)

_ALLOWED_TRANSITIONS = {
    GenerationJobStatus.pending: {GenerationJobStatus.in_progress, GenerationJobStatus.failed},
    GenerationJobStatus.in_progress: {GenerationJobStatus.completed, GenerationJobStatus.failed},
    GenerationJobStatus.completed: set(),
    GenerationJobStatus.failed: set(),
}


def missing_generation_fields(petition: Petition) -> list[str]:
    """Names of the petition fields that block generation, in a fixed order."""
    missing = []
    if not (petition.client_name or "").strip():
        missing.append("client_name")
    if not (petition.field_of_expertise or "").strip():
        missing.append("field_of_expertise")
    if not petition.selected_criteria:
        missing.append("selected_criteria")
    if not petition.criteria_details:
        missing.append("criteria_details")
    return missing


@dataclass(frozen=True)
class DraftServiceConfig:
    """
    Collaborators for ``DraftService``. Every store and engine is required;
    construction fails immediately when one is missing.
    """

    petitions: Any
    jobs: Any
    retriever: LegalContextRetriever
    generator: SectionGenerator
    catalog: CriterionCatalog = DEFAULT_CATALOG

    def __post_init__(self) -> None:
        for name in ("petitions", "jobs", "retriever", "generator", "catalog"):
            if getattr(self, name) is None:
                raise ValueError(f"DraftServiceConfig.{name} is required")


class DraftService:
    """
    Manages the lifecycle of a draft generation job.

    Fail-fast: the first unrecoverable error marks the job failed and
    nothing is written to the petition. Completed step markers stay as a
    trail. A failed job is never resumed; callers create a new one.
    """

    def __init__(self, config: DraftServiceConfig) -> None:
        self.petitions = config.petitions
        self.jobs = config.jobs
        self.retriever = config.retriever
        self.generator = config.generator
        self.catalog = config.catalog

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def initial_steps(self, selected_criteria: list[str]) -> list[dict]:
        names = [self.catalog.step_name(c) for c in selected_criteria]
        names += [MERITS_SECTION_TITLE, ASSEMBLY_STEP_NAME]
        return [{"name": name, "status": StepStatus.pending.value} for name in names]

    def _load_job(self, job_id: UUID | str) -> GenerationJob:
        job = self.jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(str(job_id))
        return job

    def _set_status(self, job_id: UUID | str, status: GenerationJobStatus) -> None:
        """Move the job to ``status`` after checking the transition is legal."""
        job = self._load_job(job_id)
        current = GenerationJobStatus(job.status)
        if status not in _ALLOWED_TRANSITIONS[current]:
            raise JobStateError(f"Job {job_id} cannot move from {current.value} to {status.value}")

        if status == GenerationJobStatus.completed:
            self.jobs.mark_completed(job_id)
        else:
            self.jobs.update_status(job_id, status)
        logger.info("Job %s → status=%s step=%s", job_id, status.value, job.current_step)

    def _set_step(self, job_id: UUID | str, step_name: str, status: StepStatus) -> None:
        job = self._load_job(job_id)
        steps = [dict(step) for step in (job.steps or [])]
        current_step = job.current_step
        for step in steps:
            if step.get("name") == step_name:
                step["status"] = status.value
                if status == StepStatus.in_progress:
                    current_step = step_name
                break
        else:
            raise DraftPipelineError(f"unknown step: {step_name}")
        self.jobs.update_progress(job_id, current_step, steps)
        logger.info("Job %s step %r → %s", job_id, step_name, status.value)

    def _fail(self, job_id: UUID | str, message: str, active_step: Optional[str]) -> None:
        if active_step:
            try:
                self._set_step(job_id, active_step, StepStatus.failed)
            except Exception:
                logger.exception("Job %s: could not mark step %r failed", job_id, active_step)
        self.jobs.mark_failed(job_id, message)
        logger.info("Job %s → status=failed error=%s", job_id, message)

    def _retrieve(self, criterion: str, field_of_expertise: str, fact_summary: str) -> RetrievedContext:
        try:
            return self.retriever.retrieve(criterion, field_of_expertise, fact_summary)
        except EmbeddingFailedError as exc:
            logger.warning(
                "Failed to retrieve context for %s: %s. Continuing with empty context.",
                criterion,
                exc,
            )
            return RetrievedContext()

    def _retrieve_merits(self, field_of_expertise: str) -> RetrievedContext:
        try:
            return self.retriever.retrieve_merits_context(field_of_expertise)
        except EmbeddingFailedError as exc:
            logger.warning("Failed to retrieve merits context: %s. Continuing with empty context.", exc)
            return RetrievedContext()

    # ------------------------------------------------------------------
    # Job creation
    # ------------------------------------------------------------------

    def create_job(self, petition_id: UUID | str, refine_instructions: Optional[str] = None) -> GenerationJob:
        """
        Validate the petition and persist a pending job with its step list.

        Raises PetitionNotFoundError (404) or MissingPetitionDataError (422);
        no job record exists in either case.
        """
        petition = self.petitions.get(petition_id)
        if petition is None:
            raise PetitionNotFoundError(str(petition_id))

        missing = missing_generation_fields(petition)
        if missing:
            raise MissingPetitionDataError(missing)

        job = GenerationJob(
            petition_id=petition.id,
            status=GenerationJobStatus.pending,
            steps=self.initial_steps(list(petition.selected_criteria)),
            refine_instructions=refine_instructions,
        )
        job = self.jobs.create(job)
        logger.info(
            "Created GenerationJob %s for petition %s (%d steps)",
            job.id,
            petition.id,
            len(job.steps),
        )
        return job

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_job(self, job_id: UUID | str) -> GenerationJobStatus:
        """
        Run the pipeline for a pending job and return its terminal status.

        Pipeline failures are recorded on the job, not raised. JobStateError
        is raised when the job is not pending, before anything is touched.

        The document is written to the petition before the job is marked
        completed. If that last write fails the petition keeps the new
        document while the job reports failed with phase
        "marking job completed".
        """
        job = self._load_job(job_id)
        if GenerationJobStatus(job.status) != GenerationJobStatus.pending:
            raise JobStateError(f"Job {job_id} is {GenerationJobStatus(job.status).value}, expected pending")

        petition = self.petitions.get(job.petition_id)
        if petition is None:
            self._fail(job_id, "failed to load petition", None)
            return GenerationJobStatus.failed

        self._set_status(job_id, GenerationJobStatus.in_progress)

        active_step: Optional[str] = None
        phase = "starting generation"
        try:
            selected = list(petition.selected_criteria or [])
            details = petition.criteria_details or {}
            field_of_expertise = petition.field_of_expertise

            sections: list[DraftSection] = []
            for criterion in selected:
                active_step = self.catalog.step_name(criterion)
                phase = f"generating section for {criterion}"
                self._set_step(job_id, active_step, StepStatus.in_progress)

                if criterion not in details:
                    raise DraftPipelineError(f"missing details for criterion: {criterion}")
                try:
                    detail = parse_criterion_detail(criterion, details[criterion])
                except ValidationError as exc:
                    raise DraftPipelineError(
                        f"invalid details for criterion {criterion}: {exc.error_count()} validation error(s)"
                    ) from exc

                context = self._retrieve(criterion, field_of_expertise, extract_fact_summary(criterion, detail))
                try:
                    section = self.generator.generate_criterion_section(
                        criterion, detail, context, field_of_expertise
                    )
                except ExternalServiceError as exc:
                    raise DraftPipelineError(f"failed to generate section for {criterion}: {exc}") from exc
                sections.append(section)
                logger.info(
                    "Job %s: drafted %s with citations: %s",
                    job_id,
                    criterion,
                    "; ".join(section.citations) or "none",
                )
                self._set_step(job_id, active_step, StepStatus.completed)

            active_step = MERITS_SECTION_TITLE
            phase = "generating final merits"
            self._set_step(job_id, active_step, StepStatus.in_progress)
            merits_context = self._retrieve_merits(field_of_expertise)
            try:
                merits = self.generator.generate_merits_section(selected, merits_context)
            except ExternalServiceError as exc:
                raise DraftPipelineError(f"failed to generate final merits: {exc}") from exc
            self._set_step(job_id, active_step, StepStatus.completed)

            active_step = ASSEMBLY_STEP_NAME
            phase = "assembling document"
            self._set_step(job_id, active_step, StepStatus.in_progress)
            content = assemble_document(
                petition.client_name,
                field_of_expertise,
                selected,
                sections,
                merits,
            )
            self._set_step(job_id, active_step, StepStatus.completed)
            active_step = None

            phase = "storing generated content"
            self.petitions.set_generated_content(petition.id, content)
            phase = "marking job completed"
            self._set_status(job_id, GenerationJobStatus.completed)
            return GenerationJobStatus.completed

        except DraftPipelineError as exc:
            logger.exception("Job %s failed while %s", job_id, phase)
            self._fail(job_id, str(exc), active_step)
        except Exception as exc:
            logger.exception("Job %s failed unexpectedly while %s", job_id, phase)
            self._fail(job_id, f"{phase} failed: {type(exc).__name__}", active_step)
        return GenerationJobStatus.failed

    def abandon_job(self, job_id: UUID | str, reason: str) -> None:
        """Fail a job that never started, e.g. when it could not be scheduled."""
        self._set_status(job_id, GenerationJobStatus.failed)
        self._fail(job_id, reason, None)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_job_status(self, job_id: UUID | str) -> GenerationJob:
        return self._load_job(job_id)

    def get_latest_job(self, petition_id: UUID | str) -> GenerationJob:
        job = self.jobs.get_latest_for_petition(petition_id)
        if job is None:
            raise JobNotFoundError(f"for petition {petition_id}")
        return job


@lru_cache(maxsize=1)
def shared_gemini_clients() -> tuple[GeminiEmbeddingClient, GeminiCompletionClient]:
    """One embedding and one completion client per process, shared by all jobs."""
    return GeminiEmbeddingClient(), GeminiCompletionClient()


def build_draft_service(db: Session) -> DraftService:
    """
    Wire a DraftService against ``db`` and the configured Gemini models.

    Raises ValueError when the Gemini API key is not configured.
    """
    embedding_client, completion_client = shared_gemini_clients()
    config = DraftServiceConfig(
        petitions=PetitionRepository(db),
        jobs=GenerationJobRepository(db),
        retriever=LegalContextRetriever(
            LegalChunkRepository(db, visa_type=settings.LEGAL_CHUNK_VISA_TYPE),
            embedding_client,
        ),
        generator=SectionGenerator(completion_client, DEFAULT_CATALOG),
        catalog=DEFAULT_CATALOG,
    )
    return DraftService(config)


def close_shared_gemini_clients() -> None:
    """Release the shared HTTP clients, if they were ever created."""
    if shared_gemini_clients.cache_info().currsize == 0:
        return
    for client in shared_gemini_clients():
        client.close()
    shared_gemini_clients.cache_clear()

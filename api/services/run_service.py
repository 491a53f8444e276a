"""Run service for visibility run operations."""

import structlog

from api.exceptions import NotFoundError, PipelineError
from api.schemas.run import RunCreate
from worker.context.models import CompanyRecord, KnowledgeEntry
from worker.context.store import InMemoryCompanyStore
from worker.pipeline.repository import InMemoryRunRepository
from worker.pipeline.run import ProgressEvent, RunRecord
from worker.pipeline.runner import VisibilityPipeline

logger = structlog.get_logger(__name__)


class RunService:
    """Service for company registration and visibility runs."""

    def __init__(
        self,
        pipeline: VisibilityPipeline,
        company_store: InMemoryCompanyStore,
        repository: InMemoryRunRepository,
    ):
        self.pipeline = pipeline
        self.company_store = company_store
        self.repository = repository

    async def register_company(
        self,
        record: CompanyRecord,
        knowledge: list[KnowledgeEntry],
    ) -> CompanyRecord:
        """Add or replace a company and its knowledge base."""
        await self.company_store.add_company(record, knowledge)
        logger.info("company_registered", company_id=record.id, knowledge=len(knowledge))
        return record

    async def get_company(self, company_id: str) -> tuple[CompanyRecord, int]:
        """Get a company and the size of its knowledge base."""
        record = await self.company_store.get_company(company_id)
        if record is None:
            raise NotFoundError("Company", company_id)
        knowledge = await self.company_store.list_knowledge(company_id)
        return record, len(knowledge)

    async def create_run(self, run_in: RunCreate) -> RunRecord:
        """Create a pending run for an existing company."""
        if await self.company_store.get_company(run_in.company_id) is None:
            raise NotFoundError("Company", run_in.company_id)
        return await self.repository.create(
            run_in.company_id,
            self.pipeline.config.clamp_question_count(run_in.question_count),
            run_in.options(),
        )

    async def execute_run(self, run_id: str) -> None:
        """Background entry point: execute a pending run.

        Fatal pipeline errors have already been written to the run record by
        the time they reach here, so they are logged rather than re-raised
        into the server.
        """
        run = await self.get_run(run_id)

        # Progress lives on the in-memory record so GET /runs/{id} can poll it
        def on_progress(event: ProgressEvent) -> None:
            run.progress = event.to_dict()

        try:
            await self.pipeline.execute(run, progress_callback=on_progress)
        except PipelineError as e:
            logger.warning("run_execution_failed", run_id=run_id, code=e.code, message=e.message)

    async def get_run(self, run_id: str) -> RunRecord:
        """Get a run by ID."""
        run = await self.repository.get(run_id)
        if run is None:
            raise NotFoundError("Run", run_id)
        return run

    async def list_runs(self, company_id: str | None = None) -> list[RunRecord]:
        """List runs, optionally for one company."""
        return await self.repository.list_runs(company_id)

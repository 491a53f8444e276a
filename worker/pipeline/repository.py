"""Run persistence contract and an in-memory implementation."""

import asyncio
from abc import ABC, abstractmethod
from datetime import UTC, datetime

import structlog

from api.exceptions import NotFoundError
from worker.pipeline.run import RunRecord, RunStatus

logger = structlog.get_logger(__name__)


class RunRepository(ABC):
    """Abstract store for run records."""

    @abstractmethod
    async def create(
        self,
        company_id: str,
        question_count: int,
        options: dict | None = None,
    ) -> RunRecord:
        """Create a pending run."""
        ...

    @abstractmethod
    async def get(self, run_id: str) -> RunRecord | None:
        """Get a run by id."""
        ...

    @abstractmethod
    async def update_status(
        self,
        run_id: str,
        status: RunStatus,
        progress: dict | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> RunRecord:
        """Move a run to a new status."""
        ...

    @abstractmethod
    async def save_result(
        self,
        run_id: str,
        overall_score: float,
        result: dict,
        warnings: list[dict] | None = None,
    ) -> RunRecord:
        """Store the score and mark the run completed."""
        ...

    @abstractmethod
    async def latest_completed(
        self,
        company_id: str,
        exclude_run_id: str | None = None,
    ) -> RunRecord | None:
        """Most recent completed run of a company."""
        ...


class InMemoryRunRepository(RunRepository):
    """Run store kept in process memory."""

    def __init__(self) -> None:
        self._runs: dict[str, RunRecord] = {}
        self._lock = asyncio.Lock()

    async def create(
        self,
        company_id: str,
        question_count: int,
        options: dict | None = None,
    ) -> RunRecord:
        run = RunRecord(
            company_id=company_id,
            question_count=question_count,
            options=dict(options or {}),
        )
        async with self._lock:
            self._runs[run.id] = run
        logger.info("run_created", run_id=run.id, company_id=company_id)
        return run

    async def get(self, run_id: str) -> RunRecord | None:
        return self._runs.get(run_id)

    async def list_runs(self, company_id: str | None = None) -> list[RunRecord]:
        """Runs in creation order, optionally for one company."""
        runs = sorted(self._runs.values(), key=lambda r: r.created_at)
        if company_id is None:
            return runs
        return [r for r in runs if r.company_id == company_id]

    async def update_status(
        self,
        run_id: str,
        status: RunStatus,
        progress: dict | None = None,
        error_code: str | None = None,
        error_message: str | None = None,
    ) -> RunRecord:
        async with self._lock:
            run = self._require(run_id)
            if run.status.is_terminal and status != run.status:
                raise ValueError(f"Run {run_id} is already {run.status.value}")

            run.status = status
            if progress:
                run.progress.update(progress)
            if status == RunStatus.RUNNING and run.started_at is None:
                run.started_at = datetime.now(UTC)
            if status.is_terminal:
                run.completed_at = datetime.now(UTC)
            if error_code:
                run.error_code = error_code
            if error_message:
                run.error_message = error_message

        logger.info("run_status_updated", run_id=run_id, status=status.value)
        return run

    async def save_result(
        self,
        run_id: str,
        overall_score: float,
        result: dict,
        warnings: list[dict] | None = None,
    ) -> RunRecord:
        async with self._lock:
            run = self._require(run_id)
            if run.status.is_terminal:
                raise ValueError(f"Run {run_id} is already {run.status.value}")
            run.overall_score = overall_score
            run.result = result
            run.warnings = list(warnings or [])
            run.status = RunStatus.COMPLETED
            run.completed_at = datetime.now(UTC)

        logger.info("run_result_saved", run_id=run_id, overall_score=round(overall_score, 4))
        return run

    async def latest_completed(
        self,
        company_id: str,
        exclude_run_id: str | None = None,
    ) -> RunRecord | None:
        completed = [
            r
            for r in self._runs.values()
            if r.company_id == company_id
            and r.status == RunStatus.COMPLETED
            and r.id != exclude_run_id
        ]
        if not completed:
            return None
        return max(completed, key=lambda r: r.completed_at or r.created_at)

    def _require(self, run_id: str) -> RunRecord:
        run = self._runs.get(run_id)
        if run is None:
            raise NotFoundError("Run", run_id)
        return run

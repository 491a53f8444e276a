"""Run records and the run-scoped context threaded through every stage."""

import asyncio
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

import structlog

from api.exceptions import PipelineError

logger = structlog.get_logger(__name__)


class RunStatus(StrEnum):
    """Lifecycle of a run: pending -> running -> completed | failed."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


class Stage(StrEnum):
    """Pipeline stages reported through progress events."""

    CONTEXT = "context"
    QUESTIONS = "questions"
    COLLECTION = "collection"
    ANALYSIS = "analysis"
    COMPETITIVE = "competitive"
    SCORING = "scoring"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    """One progress update for the orchestrating caller."""

    stage: Stage
    percent: int  # 0-100
    message: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"stage": self.stage.value, "percent": self.percent, "message": self.message}


ProgressCallback = Callable[[ProgressEvent], None]


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class RunRecord:
    """Persisted state of one visibility run."""

    company_id: str
    question_count: int
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    options: dict = field(default_factory=dict)
    status: RunStatus = RunStatus.PENDING
    progress: dict = field(default_factory=dict)

    # Timestamps
    created_at: datetime = field(default_factory=_now)
    started_at: datetime | None = None
    completed_at: datetime | None = None

    # Failure details (fatal errors only)
    error_code: str | None = None
    error_message: str | None = None

    # Recoverable errors logged against single questions
    warnings: list[dict] = field(default_factory=list)

    # Result (set once, on completion)
    overall_score: float | None = None
    result: dict | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "company_id": self.company_id,
            "question_count": self.question_count,
            "options": self.options,
            "status": self.status.value,
            "progress": self.progress,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "warnings": self.warnings,
            "overall_score": self.overall_score,
            "result": self.result,
        }


@dataclass
class RunContext:
    """Mutable state scoped to a single run.

    Replaces process-wide progress counters: every stage receives the same
    context and reports through it.
    """

    run_id: str
    company_id: str
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    progress_callback: ProgressCallback | None = None
    errors: list[PipelineError] = field(default_factory=list)
    events: list[ProgressEvent] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def cancel(self) -> None:
        """Stop dispatching new work for this run."""
        self.cancel_event.set()

    def report(self, stage: Stage, percent: int, message: str = "") -> None:
        """Record a progress event and forward it to the caller."""
        event = ProgressEvent(stage=stage, percent=max(0, min(100, percent)), message=message)
        self.events.append(event)
        if self.progress_callback:
            self.progress_callback(event)

    def stage_reporter(
        self, stage: Stage, start: int, end: int, label: str
    ) -> Callable[[int, int], None]:
        """Map (settled, total) counts of a stage onto a percent range."""

        def on_settled(settled: int, total: int) -> None:
            share = settled / total if total else 1.0
            self.report(stage, start + int((end - start) * share), f"{label} {settled}/{total}")

        return on_settled

    def record_error(self, error: PipelineError) -> None:
        """Keep a recoverable error against the run without changing its status."""
        self.errors.append(error)
        logger.warning(
            "run_error_recorded",
            code=error.code,
            stage=error.stage,
            message=error.message,
            **error.details,
        )

"""Run schemas."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from api.config import MAX_QUESTION_COUNT, MIN_QUESTION_COUNT
from worker.pipeline.run import RunRecord
from worker.questions.templates import QuestionType


class RunCreate(BaseModel):
    """Schema for starting a visibility run."""

    company_id: str = Field(..., min_length=1, description="Company to score")
    question_count: int | None = Field(
        default=None,
        ge=MIN_QUESTION_COUNT,
        le=MAX_QUESTION_COUNT,
        description="Number of probe questions (defaults to the configured count)",
    )
    question_types: list[QuestionType] | None = Field(
        default=None,
        description="Restrict the question mix to these types",
    )

    def options(self) -> dict[str, Any]:
        """Run options stored on the run record."""
        if not self.question_types:
            return {}
        return {"question_types": [t.value for t in self.question_types]}


class RunProgress(BaseModel):
    """Latest progress event of a run."""

    stage: str = "pending"
    percent: int = 0
    message: str = ""


class RunRead(BaseModel):
    """Schema for reading a run."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    company_id: str
    status: str
    question_count: int
    options: dict[str, Any]
    progress: RunProgress
    error_code: str | None
    error_message: str | None
    warnings: list[dict[str, Any]]
    overall_score: float | None
    score_100: float | None
    grade: str | None
    result: dict[str, Any] | None
    created_at: datetime
    started_at: datetime | None
    completed_at: datetime | None

    @classmethod
    def from_record(cls, run: RunRecord, include_result: bool = True) -> "RunRead":
        """Build the API view of a run record."""
        result = run.result or {}
        return cls(
            id=run.id,
            company_id=run.company_id,
            status=run.status.value,
            question_count=run.question_count,
            options=run.options,
            progress=RunProgress(**run.progress) if run.progress else RunProgress(),
            error_code=run.error_code,
            error_message=run.error_message,
            warnings=run.warnings,
            overall_score=run.overall_score,
            score_100=result.get("score_100"),
            grade=result.get("grade"),
            result=run.result if include_result else None,
            created_at=run.created_at,
            started_at=run.started_at,
            completed_at=run.completed_at,
        )

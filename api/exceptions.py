"""Custom exceptions and error handling."""

from typing import Any

from fastapi import status


class VisibilityError(Exception):
    """Base exception for the visibility application."""

    def __init__(
        self,
        message: str,
        code: str = "error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to the error envelope used by the API."""
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFoundError(VisibilityError):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str | None = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(
            message=message,
            code="not_found",
            status_code=status.HTTP_404_NOT_FOUND,
        )


class ValidationError(VisibilityError):
    """Validation error."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            code="validation_error",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class ExternalServiceError(VisibilityError):
    """External service error."""

    def __init__(self, service: str, message: str):
        super().__init__(
            message=f"{service}: {message}",
            code="external_service_error",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"service": service},
        )


class PipelineError(VisibilityError):
    """Error raised by a scoring pipeline stage.

    Fatal errors end the run with status ``failed``; recoverable ones are
    recorded against a single question and the run continues.
    """

    fatal: bool = True
    stage: str = "pipeline"

    def __init__(
        self,
        message: str,
        code: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )


class ContextBuildFailure(PipelineError):
    """No company record exists to ground the run."""

    stage = "context"

    def __init__(self, company_id: str, reason: str = "company record not found"):
        super().__init__(
            message=f"Could not build context for company '{company_id}': {reason}",
            code="context_build_failure",
            details={"company_id": company_id},
        )


class QuestionGenerationFailure(PipelineError):
    """Question generation produced nothing usable."""

    stage = "questions"

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(
            message=message,
            code="question_generation_failure",
            details={"attempts": attempts},
        )


class ResponseCollectionFailure(PipelineError):
    """Answer collection failed for one question, or for all of them."""

    stage = "collection"

    def __init__(
        self,
        message: str,
        question_id: str | None = None,
        error_type: str | None = None,
    ):
        details: dict[str, Any] = {}
        if question_id:
            details["question_id"] = question_id
        if error_type:
            details["error_type"] = error_type
        super().__init__(
            message=message,
            code="response_collection_failure",
            details=details,
        )
        # A single question failing never ends the run
        self.fatal = question_id is None


class AnalysisFailure(PipelineError):
    """The judgment for one response could not be used."""

    fatal = False
    stage = "analysis"

    def __init__(self, question_id: str, reason: str):
        super().__init__(
            message=f"Analysis failed for question '{question_id}': {reason}",
            code="analysis_failure",
            details={"question_id": question_id},
        )


class ScoringInputInsufficient(PipelineError):
    """Nothing was analyzed, so no score can be produced."""

    stage = "scoring"

    def __init__(self, message: str = "No analyzed responses available for scoring"):
        super().__init__(
            message=message,
            code="scoring_input_insufficient",
        )

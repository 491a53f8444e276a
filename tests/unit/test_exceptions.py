"""Tests for custom exceptions and error handling."""

from fastapi import status

from api.exceptions import (
    AnalysisFailure,
    ContextBuildFailure,
    ExternalServiceError,
    NotFoundError,
    PipelineError,
    QuestionGenerationFailure,
    ResponseCollectionFailure,
    ScoringInputInsufficient,
    ValidationError,
    VisibilityError,
)


def test_visibility_error_base() -> None:
    """Test base VisibilityError."""
    error = VisibilityError(message="Test error", code="test_error")
    assert error.message == "Test error"
    assert error.code == "test_error"
    assert error.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert error.details == {}
    assert error.to_dict() == {"code": "test_error", "message": "Test error", "details": {}}


def test_not_found_error() -> None:
    """Test NotFoundError."""
    error = NotFoundError("Run")
    assert error.message == "Run not found"
    assert error.code == "not_found"
    assert error.status_code == status.HTTP_404_NOT_FOUND

    error_with_id = NotFoundError("Run", "123")
    assert error_with_id.message == "Run with id '123' not found"


def test_validation_error() -> None:
    """Test ValidationError."""
    error = ValidationError("Invalid domain", field="domain")
    assert error.code == "validation_error"
    assert error.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert error.details == {"field": "domain"}


def test_external_service_error() -> None:
    """Test ExternalServiceError."""
    error = ExternalServiceError("perplexity", "rate limited")
    assert error.message == "perplexity: rate limited"
    assert error.code == "external_service_error"
    assert error.status_code == status.HTTP_502_BAD_GATEWAY
    assert error.details == {"service": "perplexity"}


def test_context_build_failure() -> None:
    """Test ContextBuildFailure."""
    error = ContextBuildFailure("acme")
    assert isinstance(error, PipelineError)
    assert error.fatal is True
    assert error.stage == "context"
    assert error.code == "context_build_failure"
    assert "acme" in error.message
    assert error.details == {"company_id": "acme"}


def test_question_generation_failure() -> None:
    """Test QuestionGenerationFailure."""
    error = QuestionGenerationFailure("No questions", attempts=2)
    assert error.fatal is True
    assert error.stage == "questions"
    assert error.details == {"attempts": 2}


def test_response_collection_failure_single_question() -> None:
    """A failure tied to one question is recoverable."""
    error = ResponseCollectionFailure("timeout", question_id="q1", error_type="timeout")
    assert error.fatal is False
    assert error.details == {"question_id": "q1", "error_type": "timeout"}


def test_response_collection_failure_run_wide() -> None:
    """A failure with no question is fatal."""
    error = ResponseCollectionFailure("All questions failed")
    assert error.fatal is True
    assert error.details == {}


def test_analysis_failure_is_recoverable() -> None:
    """Test AnalysisFailure."""
    error = AnalysisFailure("q1", "bad json")
    assert error.fatal is False
    assert error.stage == "analysis"
    assert error.message == "Analysis failed for question 'q1': bad json"
    assert error.details == {"question_id": "q1"}


def test_scoring_input_insufficient() -> None:
    """Test ScoringInputInsufficient."""
    error = ScoringInputInsufficient()
    assert error.fatal is True
    assert error.stage == "scoring"
    assert error.code == "scoring_input_insufficient"
    assert error.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_fatal_flag_is_per_instance() -> None:
    """Recoverable instances do not change the class default."""
    ResponseCollectionFailure("x", question_id="q1")
    assert ResponseCollectionFailure.fatal is True

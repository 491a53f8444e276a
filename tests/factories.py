"""Builders for analysis and scoring test data."""

from worker.analysis.models import (
    AnalyzedResponse,
    CitationBucket,
    CitationClassification,
    MentionAnalysis,
    MentionPosition,
    Sentiment,
)
from worker.observation.models import Citation, Response
from worker.questions.templates import QuestionType


def make_analyzed(
    question_id: str,
    question_type: QuestionType = QuestionType.DIRECT_CONVERSATIONAL,
    mentioned: bool = False,
    position: MentionPosition | None = None,
    sentiment: Sentiment = Sentiment.NEUTRAL,
    confidence: float = 0.9,
    citations: list[CitationClassification] | None = None,
    competitors: list[str] | None = None,
    fallback: bool = False,
) -> AnalyzedResponse:
    """Build an analyzed response without running a judge."""
    if position is None:
        position = MentionPosition.PRIMARY if mentioned else MentionPosition.NONE
    return AnalyzedResponse(
        question_id=question_id,
        question_type=question_type,
        question_text=f"Question {question_id}?",
        response=Response(question_id=question_id, text=f"Answer {question_id}."),
        mention=MentionAnalysis(
            mention_detected=mentioned,
            position=position if mentioned else MentionPosition.NONE,
            sentiment=sentiment,
            confidence=confidence,
            fallback=fallback,
        ),
        citations=list(citations or []),
        competitors_mentioned=list(competitors or []),
    )


def make_citation(
    domain: str,
    bucket: CitationBucket = CitationBucket.EARNED,
    influence: float = 0.5,
) -> CitationClassification:
    """Build a classified citation for one domain."""
    return CitationClassification(
        url=f"https://{domain}/page",
        domain=domain,
        bucket=bucket,
        influence_score=influence,
    )


def make_response(question_id: str, text: str, urls: list[str] | None = None) -> Response:
    """Build a collected response."""
    return Response(
        question_id=question_id,
        text=text,
        citations=[Citation(url=u) for u in urls or []],
    )

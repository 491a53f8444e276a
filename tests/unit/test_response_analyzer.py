"""Tests for the response analyzer."""

import json
import math

import pytest

from api.exceptions import AnalysisFailure
from tests.factories import make_response
from worker.analysis.analyzer import (
    DEFAULT_JUDGE_CONFIDENCE,
    AnalyzerConfig,
    ResponseAnalyzer,
    normalize_confidence,
    normalize_enum,
    parse_judgment,
)
from worker.analysis.judgment import MockJudgmentService
from worker.analysis.models import (
    CitationBucket,
    MentionAnalysis,
    MentionPosition,
    Sentiment,
)
from worker.context.models import CompanyContext
from worker.observation.models import CollectionResult
from worker.questions.generator import Question
from worker.questions.templates import QuestionType

VALID = {
    "mention_detected": True,
    "position": "primary",
    "sentiment": "positive",
    "confidence": 0.8,
    "context_excerpt": "Acme is great.",
    "competitors": ["Globex"],
}


class TestNormalizers:
    """Tests for enum and confidence normalization."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("primary", MentionPosition.PRIMARY),
            ("  Secondary ", MentionPosition.SECONDARY),
            ("PASSING", MentionPosition.PASSING),
            ("leading", None),
            (3, None),
        ],
    )
    def test_normalize_position(self, raw: object, expected: MentionPosition | None) -> None:
        """Positions match case-insensitively."""
        assert normalize_enum(raw, MentionPosition) == expected

    def test_normalize_sentiment_separators(self) -> None:
        """Spaces and hyphens are treated as underscores."""
        assert normalize_enum("very positive", Sentiment) == Sentiment.VERY_POSITIVE
        assert normalize_enum("Very-Negative", Sentiment) == Sentiment.VERY_NEGATIVE

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (0.75, 0.75),
            ("0.4", 0.4),
            (85, 0.85),
            (-1, 0.0),
            (250, 1.0),
            (True, None),
            ("high", None),
            (None, None),
            (math.nan, None),
        ],
    )
    def test_normalize_confidence(self, raw: object, expected: float | None) -> None:
        """Confidence accepts 0-1 or 0-100 numbers."""
        result = normalize_confidence(raw)
        if expected is None:
            assert result is None
        else:
            assert result == pytest.approx(expected)


class TestParseJudgment:
    """Tests for defensive judgment parsing."""

    def test_valid_dict(self) -> None:
        """A well-formed judgment passes through."""
        judgment = parse_judgment(VALID)

        assert judgment.mention.mention_detected is True
        assert judgment.mention.position == MentionPosition.PRIMARY
        assert judgment.mention.sentiment == Sentiment.POSITIVE
        assert judgment.mention.confidence == 0.8
        assert judgment.mention.context_excerpt == "Acme is great."
        assert judgment.competitors == ["Globex"]
        assert judgment.mention.fallback is False

    def test_json_string(self) -> None:
        """JSON text is decoded."""
        assert parse_judgment(json.dumps(VALID)).mention.position == MentionPosition.PRIMARY

    def test_fenced_json(self) -> None:
        """Markdown code fences are stripped."""
        raw = f"```json\n{json.dumps(VALID)}\n```"
        assert parse_judgment(raw).mention.mention_detected is True

    def test_json_inside_prose(self) -> None:
        """The first object in surrounding prose is used."""
        raw = f"Here is my verdict: {json.dumps(VALID)} Hope that helps!"
        assert parse_judgment(raw).mention.sentiment == Sentiment.POSITIVE

    @pytest.mark.parametrize("raw", ["not json at all", "[1, 2]", "", None, 42])
    def test_unusable_payloads_raise(self, raw: object) -> None:
        """Anything that is not a JSON object is rejected."""
        with pytest.raises(ValueError):
            parse_judgment(raw)

    def test_missing_mention_signal_raises(self) -> None:
        """A judgment without detection or position is unusable."""
        with pytest.raises(ValueError):
            parse_judgment({"sentiment": "positive"})

    def test_not_detected_forces_position_none(self) -> None:
        """An undetected mention never keeps a position."""
        judgment = parse_judgment({"mention_detected": False, "position": "primary"})
        assert judgment.mention.position == MentionPosition.NONE

    def test_detected_without_position_is_passing(self) -> None:
        """A detected mention with no usable position counts as passing."""
        assert parse_judgment({"mention_detected": "yes"}).mention.position == (
            MentionPosition.PASSING
        )
        assert parse_judgment({"mention_detected": True, "position": "none"}).mention.position == (
            MentionPosition.PASSING
        )

    def test_position_alone_implies_detection(self) -> None:
        """Position without mention_detected is enough."""
        assert parse_judgment({"position": "secondary"}).mention.mention_detected is True
        assert parse_judgment({"position": "none"}).mention.mention_detected is False

    def test_defaults_for_missing_fields(self) -> None:
        """Invalid sentiment is neutral; missing confidence uses the default."""
        judgment = parse_judgment({"mention_detected": True, "sentiment": "ecstatic"})

        assert judgment.mention.sentiment == Sentiment.NEUTRAL
        assert judgment.mention.confidence == DEFAULT_JUDGE_CONFIDENCE

    def test_competitors_filtered(self) -> None:
        """Non-string and blank competitor names are dropped."""
        judgment = parse_judgment(
            {"mention_detected": False, "competitors": ["Globex", 3, " ", " Initech "]}
        )
        assert judgment.competitors == ["Globex", "Initech"]

    def test_citation_hints(self) -> None:
        """Citation hints are keyed by URL and validated."""
        judgment = parse_judgment(
            {
                "mention_detected": False,
                "citations": [
                    {"url": "https://g2.com/x", "bucket": "Competitor", "influence_score": 70},
                    {"bucket": "owned"},
                    "junk",
                    {"url": "https://y.com", "bucket": "partner"},
                ],
            }
        )

        assert set(judgment.citation_hints) == {"https://g2.com/x", "https://y.com"}
        hint = judgment.citation_hints["https://g2.com/x"]
        assert hint.bucket == CitationBucket.COMPETITOR
        assert hint.influence_score == pytest.approx(0.7)
        assert judgment.citation_hints["https://y.com"].bucket is None


class TestConservativeDefault:
    """Tests for the fallback analysis."""

    def test_default_values(self) -> None:
        """The fallback is a non-mention with zero confidence."""
        default = MentionAnalysis.conservative_default()

        assert default.mention_detected is False
        assert default.position == MentionPosition.NONE
        assert default.sentiment == Sentiment.NEUTRAL
        assert default.confidence == 0.0
        assert default.fallback is True


def build_run(texts: list[str], urls: list[list[str]] | None = None):
    """Questions plus a collection with one response per text."""
    questions = [
        Question(text=f"Question {i}?", type=QuestionType.INDIRECT_CONVERSATIONAL, position=i)
        for i in range(1, len(texts) + 1)
    ]
    collection = CollectionResult(total_questions=len(questions))
    for i, (question, text) in enumerate(zip(questions, texts, strict=True)):
        collection.responses[question.id] = make_response(
            question.id, text, urls[i] if urls else None
        )
    return questions, collection


class TestResponseAnalyzer:
    """Tests for ResponseAnalyzer."""

    @pytest.mark.asyncio
    async def test_analyzes_in_question_order(self, company_context: CompanyContext) -> None:
        """Results follow question order with preset judgments applied."""
        judge = MockJudgmentService()
        judge.set_response("first answer", VALID)
        judge.set_response("second answer", {"mention_detected": False})
        questions, collection = build_run(["first answer", "second answer"])

        result = await ResponseAnalyzer(judge).analyze(questions, collection, company_context)

        assert [a.question_id for a in result.analyzed] == [q.id for q in questions]
        assert result.analyzed[0].mention.position == MentionPosition.PRIMARY
        assert result.analyzed[1].mention.mention_detected is False
        assert result.failures == []
        assert result.fallback_count == 0

    @pytest.mark.asyncio
    async def test_judge_failure_degrades_one_response(
        self, company_context: CompanyContext
    ) -> None:
        """A failing judgment falls back to the default; the others are kept."""
        judge = MockJudgmentService()
        judge.set_response("good", VALID)
        judge.fail_text("bad")
        questions, collection = build_run(["good", "bad"])

        result = await ResponseAnalyzer(judge).analyze(questions, collection, company_context)

        assert len(result.analyzed) == 2
        bad = result.analyzed[1]
        assert bad.mention.fallback is True
        assert bad.mention.mention_detected is False
        assert bad.analysis_error is not None
        assert len(result.failures) == 1
        assert isinstance(result.failures[0], AnalysisFailure)
        assert result.failures[0].fatal is False
        assert result.fallback_count == 1

    @pytest.mark.asyncio
    async def test_unparseable_judgment(self, company_context: CompanyContext) -> None:
        """Garbage from the judge is an analysis failure, not an exception."""
        judge = MockJudgmentService()
        judge.set_response("answer", "I cannot grade this.")
        questions, collection = build_run(["answer"])

        result = await ResponseAnalyzer(judge).analyze(questions, collection, company_context)

        assert result.analyzed[0].mention.fallback is True
        assert "unparseable" in result.failures[0].message

    @pytest.mark.asyncio
    async def test_judge_timeout(self, company_context: CompanyContext) -> None:
        """A slow judge times out and degrades."""
        judge = MockJudgmentService()
        judge.delay_seconds = 0.5
        questions, collection = build_run(["answer"])
        analyzer = ResponseAnalyzer(judge, config=AnalyzerConfig(judge_timeout_seconds=0.05))

        result = await analyzer.analyze(questions, collection, company_context)

        assert result.analyzed[0].mention.fallback is True
        assert "timed out" in result.failures[0].message

    @pytest.mark.asyncio
    async def test_citations_classified_even_on_failure(
        self, company_context: CompanyContext
    ) -> None:
        """Citation buckets do not depend on the judgment succeeding."""
        judge = MockJudgmentService()
        judge.fail_text("answer")
        questions, collection = build_run(
            ["answer"],
            [["https://acme.io/pricing", "https://docs.acme.io/start", "https://globex.com"]],
        )

        result = await ResponseAnalyzer(judge).analyze(questions, collection, company_context)

        buckets = [c.bucket for c in result.analyzed[0].citations]
        assert buckets == [
            CitationBucket.OWNED,
            CitationBucket.OPERATED,
            CitationBucket.COMPETITOR,
        ]

    @pytest.mark.asyncio
    async def test_judge_hints_applied(self, company_context: CompanyContext) -> None:
        """Judge citation hints feed classification."""
        judge = MockJudgmentService()
        judge.set_response(
            "answer",
            {
                "mention_detected": True,
                "citations": [{"url": "https://reviews.example.com", "influence_score": 0.2}],
            },
        )
        questions, collection = build_run(["answer"], [["https://reviews.example.com"]])

        result = await ResponseAnalyzer(judge).analyze(questions, collection, company_context)

        citation = result.analyzed[0].citations[0]
        assert citation.bucket == CitationBucket.EARNED
        assert citation.influence_score == 0.2

    @pytest.mark.asyncio
    async def test_target_names_not_counted_as_competitors(
        self, company_context: CompanyContext
    ) -> None:
        """The target's own names and repeats are filtered out."""
        judge = MockJudgmentService()
        judge.set_response(
            "answer",
            {"mention_detected": True, "competitors": ["Acme", "Globex", "globex", "Hooli"]},
        )
        questions, collection = build_run(["answer"])

        result = await ResponseAnalyzer(judge).analyze(questions, collection, company_context)

        assert result.analyzed[0].competitors_mentioned == ["Globex", "Hooli"]

    @pytest.mark.asyncio
    async def test_unanswered_questions_skipped(self, company_context: CompanyContext) -> None:
        """Questions without a response are not analyzed."""
        questions, collection = build_run(["one", "two"])
        del collection.responses[questions[0].id]

        result = await ResponseAnalyzer(MockJudgmentService()).analyze(
            questions, collection, company_context
        )

        assert [a.question_id for a in result.analyzed] == [questions[1].id]

    @pytest.mark.asyncio
    async def test_analyze_single_response(self, company_context: CompanyContext) -> None:
        """A single response can be analyzed directly."""
        questions, collection = build_run(["Acme is the best product analytics tool."])
        analyzer = ResponseAnalyzer(MockJudgmentService())

        analyzed = await analyzer.analyze_response(
            questions[0], collection.responses[questions[0].id], company_context
        )

        assert analyzed.mention.mention_detected is True
        assert analyzed.question_type == QuestionType.INDIRECT_CONVERSATIONAL
        assert analyzed.difficulty_weight == 1.0
        assert analyzed.to_dict()["mention"]["position"] == "primary"

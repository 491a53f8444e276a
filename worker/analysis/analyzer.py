"""Response analyzer - mention analysis and citation classification.

Every judgment is untrusted input. It is parsed defensively, and anything
that cannot be used degrades to the conservative default analysis for that
response without stopping the run.

Usage:
    analyzer = ResponseAnalyzer(judge=MockJudgmentService())
    result = await analyzer.analyze(questions, collection, context)
    for item in result.analyzed:
        print(item.question_id, item.mention.position)
"""

import asyncio
import json
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeVar

import structlog

from api.exceptions import AnalysisFailure
from worker.analysis.citations import classify_citations
from worker.analysis.judgment import JudgmentService
from worker.analysis.models import (
    AnalyzedResponse,
    CitationBucket,
    CitationHint,
    Judgment,
    MentionAnalysis,
    MentionPosition,
    Sentiment,
    TargetDescriptor,
)
from worker.concurrency import BoundedTaskGroup
from worker.context.models import CompanyContext
from worker.observation.models import CollectionResult, Response
from worker.questions.generator import Question

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=StrEnum)

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_OBJECT = re.compile(r"\{.*\}", re.DOTALL)

_TRUE_STRINGS = {"true", "yes", "y", "1"}
_FALSE_STRINGS = {"false", "no", "n", "0", "none"}

# Confidence used when a judge omits it
DEFAULT_JUDGE_CONFIDENCE = 0.5


def _load_payload(raw: Any) -> dict:
    """Turn a dict, JSON string or fenced JSON block into a dict."""
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        raise ValueError(f"Unusable judgment of type {type(raw).__name__}")

    text = raw.strip()
    fenced = _FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = _OBJECT.search(text)
        if not match:
            raise ValueError("Judgment is not JSON") from None
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ValueError(f"Judgment is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise ValueError("Judgment JSON is not an object")
    return data


def normalize_enum(value: Any, enum_type: type[E]) -> E | None:
    """Case and separator-insensitive enum lookup; None when invalid."""
    if not isinstance(value, str):
        return None
    key = re.sub(r"[\s\-]+", "_", value.strip().lower())
    try:
        return enum_type(key)
    except ValueError:
        return None


def normalize_confidence(value: Any) -> float | None:
    """Accept 0-1 or 0-100 numbers; None when not numeric."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    if number > 1.0:
        number = number / 100.0
    return min(1.0, max(0.0, number))


def _as_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def _parse_hints(items: Any) -> dict[str, CitationHint]:
    hints: dict[str, CitationHint] = {}
    if not isinstance(items, list):
        return hints
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get("url"), str):
            continue
        url = item["url"].strip()
        influence = normalize_confidence(item.get("influence_score"))
        hints[url] = CitationHint(
            url=url,
            bucket=normalize_enum(item.get("bucket"), CitationBucket),
            influence_score=influence,
        )
    return hints


def parse_judgment(raw: Any) -> Judgment:
    """
    Parse an untrusted judgment.

    Raises:
        ValueError: If the judgment carries no usable mention signal
    """
    data = _load_payload(raw)

    detected = _as_bool(data.get("mention_detected"))
    position = normalize_enum(data.get("position"), MentionPosition)
    if detected is None and position is None:
        raise ValueError("Judgment has neither mention_detected nor position")
    if detected is None:
        detected = position is not MentionPosition.NONE

    if not detected:
        position = MentionPosition.NONE
    elif position is None or position is MentionPosition.NONE:
        position = MentionPosition.PASSING

    sentiment = normalize_enum(data.get("sentiment"), Sentiment) or Sentiment.NEUTRAL
    confidence = normalize_confidence(data.get("confidence"))
    excerpt = data.get("context_excerpt")

    competitors = data.get("competitors")
    names: list[str] = []
    if isinstance(competitors, list):
        names = [c.strip() for c in competitors if isinstance(c, str) and c.strip()]

    return Judgment(
        mention=MentionAnalysis(
            mention_detected=detected,
            position=position,
            sentiment=sentiment,
            confidence=DEFAULT_JUDGE_CONFIDENCE if confidence is None else confidence,
            context_excerpt=excerpt.strip() if isinstance(excerpt, str) else "",
        ),
        citation_hints=_parse_hints(data.get("citations")),
        competitors=names,
    )


@dataclass
class AnalyzerConfig:
    """Configuration for the analysis stage."""

    concurrency: int = 5
    judge_timeout_seconds: float = 45.0
    stage_timeout_seconds: float = 600.0
    cancel_grace_seconds: float = 10.0


@dataclass
class AnalysisResult:
    """Analyzed responses in question order, plus recoverable failures."""

    analyzed: list[AnalyzedResponse] = field(default_factory=list)
    failures: list[AnalysisFailure] = field(default_factory=list)
    cancelled: bool = False
    timed_out: bool = False

    @property
    def fallback_count(self) -> int:
        """Responses that received the conservative default analysis."""
        return sum(1 for a in self.analyzed if a.mention.fallback)


class ResponseAnalyzer:
    """Grades every collected response against the target company."""

    def __init__(
        self,
        judge: JudgmentService,
        config: AnalyzerConfig | None = None,
        progress_callback: Callable[[int, int], None] | None = None,
    ):
        self.judge = judge
        self.config = config or AnalyzerConfig()
        self.progress_callback = progress_callback

    async def analyze(
        self,
        questions: list[Question],
        collection: CollectionResult,
        context: CompanyContext,
        cancel_event: asyncio.Event | None = None,
    ) -> AnalysisResult:
        """
        Analyze every successful response.

        Questions without a response are skipped. Responses the run was
        cancelled before reaching are left out of the result.
        """
        target = TargetDescriptor.from_context(context)
        answered = [q for q in questions if q.id in collection.responses]

        group: BoundedTaskGroup[tuple[AnalyzedResponse, AnalysisFailure | None]] = (
            BoundedTaskGroup(
                limit=self.config.concurrency,
                cancel_event=cancel_event,
                deadline_seconds=self.config.stage_timeout_seconds,
                grace_seconds=self.config.cancel_grace_seconds,
                on_settled=self.progress_callback,
            )
        )
        for question in answered:
            response = collection.responses[question.id]
            group.spawn(
                question.id,
                lambda q=question, r=response: self._analyze_one(q, r, target),
            )

        joined = await group.join()
        result = AnalysisResult(cancelled=joined.cancelled, timed_out=joined.timed_out)
        for question in answered:
            outcome = joined.outcomes[question.id]
            if outcome.result is None:
                continue
            analyzed, failure = outcome.result
            result.analyzed.append(analyzed)
            if failure is not None:
                result.failures.append(failure)

        logger.info(
            "responses_analyzed",
            total=len(answered),
            analyzed=len(result.analyzed),
            mentions=sum(1 for a in result.analyzed if a.mention.mention_detected),
            fallbacks=result.fallback_count,
            judge=self.judge.name,
        )
        return result

    async def analyze_response(
        self,
        question: Question,
        response: Response,
        context: CompanyContext,
    ) -> AnalyzedResponse:
        """Analyze a single response (failures degrade to the default)."""
        analyzed, _ = await self._analyze_one(
            question, response, TargetDescriptor.from_context(context)
        )
        return analyzed

    async def _analyze_one(
        self,
        question: Question,
        response: Response,
        target: TargetDescriptor,
    ) -> tuple[AnalyzedResponse, AnalysisFailure | None]:
        failure: AnalysisFailure | None = None
        try:
            raw = await asyncio.wait_for(
                self.judge.analyze(response.text, target, response.citations),
                timeout=self.config.judge_timeout_seconds,
            )
            judgment = parse_judgment(raw)
        except TimeoutError:
            failure = AnalysisFailure(
                question.id, f"judge timed out after {self.config.judge_timeout_seconds}s"
            )
        except ValueError as e:
            failure = AnalysisFailure(question.id, f"unparseable judgment: {e}")
        except Exception as e:
            failure = AnalysisFailure(question.id, f"{type(e).__name__}: {e}")

        if failure is not None:
            logger.warning(
                "response_analysis_failed",
                question_id=question.id,
                reason=failure.message,
            )
            judgment = Judgment(mention=MentionAnalysis.conservative_default())

        analyzed = AnalyzedResponse(
            question_id=question.id,
            question_type=question.type,
            question_text=question.text,
            response=response,
            mention=judgment.mention,
            citations=classify_citations(response.citations, target, judgment.citation_hints),
            competitors_mentioned=self._filter_competitors(judgment.competitors, target),
            analysis_error=failure.message if failure else None,
        )
        return analyzed, failure

    @staticmethod
    def _filter_competitors(names: list[str], target: TargetDescriptor) -> list[str]:
        """Drop the target's own names and repeats (case-insensitive)."""
        own = {n.lower() for n in (target.name, *target.aliases)}
        seen: set[str] = set()
        kept = []
        for name in names:
            key = name.lower()
            if key in own or key in seen:
                continue
            seen.add(key)
            kept.append(name)
        return kept

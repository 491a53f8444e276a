"""Data models for response analysis."""

from dataclasses import dataclass, field
from enum import StrEnum

from worker.context.models import CompanyContext
from worker.observation.models import Response
from worker.questions.templates import DIFFICULTY_WEIGHTS, QuestionType


class MentionPosition(StrEnum):
    """How prominently the target appears in an answer."""

    PRIMARY = "primary"
    SECONDARY = "secondary"
    PASSING = "passing"
    NONE = "none"


class Sentiment(StrEnum):
    """Five-level sentiment toward the target."""

    VERY_POSITIVE = "very_positive"
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"
    VERY_NEGATIVE = "very_negative"


class CitationBucket(StrEnum):
    """Ownership of a cited source relative to the target."""

    OWNED = "owned"
    OPERATED = "operated"
    EARNED = "earned"
    COMPETITOR = "competitor"


@dataclass(frozen=True)
class TargetDescriptor:
    """What the judge needs to know about the target company."""

    name: str
    domain: str
    aliases: tuple[str, ...] = ()
    competitors: tuple[str, ...] = ()
    owned_domains: tuple[str, ...] = ()
    operated_domains: tuple[str, ...] = ()

    @classmethod
    def from_context(cls, context: CompanyContext) -> "TargetDescriptor":
        """Build a descriptor from a company context."""
        return cls(
            name=context.name,
            domain=context.domain,
            aliases=context.aliases,
            competitors=context.competitors,
            owned_domains=context.owned_domains,
            operated_domains=context.operated_domains,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "domain": self.domain,
            "aliases": list(self.aliases),
            "competitors": list(self.competitors),
            "owned_domains": list(self.owned_domains),
            "operated_domains": list(self.operated_domains),
        }


@dataclass
class MentionAnalysis:
    """Whether and how the target is mentioned in one answer."""

    mention_detected: bool = False
    position: MentionPosition = MentionPosition.NONE
    sentiment: Sentiment = Sentiment.NEUTRAL
    confidence: float = 0.0  # 0-1
    context_excerpt: str = ""
    fallback: bool = False  # True when this is the conservative default

    @classmethod
    def conservative_default(cls) -> "MentionAnalysis":
        """The analysis used when the judgment cannot be trusted."""
        return cls(fallback=True)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "mention_detected": self.mention_detected,
            "position": self.position.value,
            "sentiment": self.sentiment.value,
            "confidence": round(self.confidence, 3),
            "context_excerpt": self.context_excerpt,
            "fallback": self.fallback,
        }


@dataclass
class CitationClassification:
    """Ownership bucket and influence of one cited source."""

    url: str
    domain: str
    bucket: CitationBucket
    influence_score: float  # 0-1
    title: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "url": self.url,
            "domain": self.domain,
            "bucket": self.bucket.value,
            "influence_score": round(self.influence_score, 3),
            "title": self.title,
        }


@dataclass
class CitationHint:
    """Judge-supplied opinion about one citation (fields optional)."""

    url: str
    bucket: CitationBucket | None = None
    influence_score: float | None = None


@dataclass
class Judgment:
    """A judgment after defensive parsing."""

    mention: MentionAnalysis
    citation_hints: dict[str, CitationHint] = field(default_factory=dict)
    competitors: list[str] = field(default_factory=list)


@dataclass
class AnalyzedResponse:
    """A response with its mention analysis and citation classifications."""

    question_id: str
    question_type: QuestionType
    question_text: str
    response: Response
    mention: MentionAnalysis
    citations: list[CitationClassification] = field(default_factory=list)
    competitors_mentioned: list[str] = field(default_factory=list)
    analysis_error: str | None = None

    @property
    def difficulty_weight(self) -> float:
        """Difficulty weight of the question behind this response."""
        return DIFFICULTY_WEIGHTS[self.question_type]

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "question_id": self.question_id,
            "question_type": self.question_type.value,
            "question_text": self.question_text,
            "difficulty_weight": self.difficulty_weight,
            "mention": self.mention.to_dict(),
            "citations": [c.to_dict() for c in self.citations],
            "competitors_mentioned": self.competitors_mentioned,
            "analysis_error": self.analysis_error,
            "response": self.response.to_dict(),
        }

"""Data models for the answer collection layer."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

from worker.context.domains import normalize_domain


def _now() -> datetime:
    return datetime.now(UTC)


class ProviderType(StrEnum):
    """Supported answer-generation providers."""

    PERPLEXITY = "perplexity"
    OPENROUTER = "openrouter"
    OPENAI = "openai"
    MOCK = "mock"


@dataclass
class UsageStats:
    """Token usage tracking."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def add(self, other: "UsageStats") -> "UsageStats":
        """Add another UsageStats to this one."""
        return UsageStats(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class ProviderError:
    """Error from a provider."""

    provider: ProviderType
    error_type: str  # "api_error" | "rate_limited" | "timeout" | "exception" | ...
    message: str
    retryable: bool = True
    status_code: int | None = None
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "provider": self.provider.value,
            "error_type": self.error_type,
            "message": self.message,
            "retryable": self.retryable,
            "status_code": self.status_code,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class Citation:
    """A source cited by an AI answer."""

    url: str
    title: str = ""

    @property
    def domain(self) -> str:
        """Bare host of the cited URL."""
        return normalize_domain(self.url)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {"url": self.url, "title": self.title, "domain": self.domain}


@dataclass
class ProviderAnswer:
    """Outcome of a single call to an answer provider."""

    provider: ProviderType
    model: str
    content: str = ""
    citations: list[Citation] = field(default_factory=list)
    raw_response: dict = field(default_factory=dict)
    usage: UsageStats = field(default_factory=UsageStats)
    latency_ms: float = 0.0
    success: bool = True
    error: ProviderError | None = None

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "provider": self.provider.value,
            "model": self.model,
            "content": self.content[:500] + "..." if len(self.content) > 500 else self.content,
            "citations": [c.to_dict() for c in self.citations],
            "usage": self.usage.to_dict(),
            "latency_ms": round(self.latency_ms, 2),
            "success": self.success,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class Response:
    """A successfully collected answer to one question."""

    question_id: str
    text: str
    citations: list[Citation] = field(default_factory=list)
    success: bool = True
    retrieved_at: datetime = field(default_factory=_now)

    # Provenance
    provider: ProviderType = ProviderType.MOCK
    model: str = ""
    latency_ms: float = 0.0
    attempts: int = 1
    usage: UsageStats = field(default_factory=UsageStats)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "question_id": self.question_id,
            "text": self.text,
            "citations": [c.to_dict() for c in self.citations],
            "success": self.success,
            "retrieved_at": self.retrieved_at.isoformat(),
            "provider": self.provider.value,
            "model": self.model,
            "latency_ms": round(self.latency_ms, 2),
            "attempts": self.attempts,
            "usage": self.usage.to_dict(),
        }


@dataclass
class CollectionResult:
    """All responses gathered for a run, keyed by question id."""

    total_questions: int = 0
    responses: dict[str, Response] = field(default_factory=dict)
    failures: dict[str, ProviderError] = field(default_factory=dict)
    cancelled: bool = False
    timed_out: bool = False

    @property
    def success_count(self) -> int:
        """Number of questions with a usable response."""
        return len(self.responses)

    @property
    def success_ratio(self) -> float:
        """Share of dispatched questions that produced a response."""
        if self.total_questions == 0:
            return 0.0
        return self.success_count / self.total_questions

    @property
    def total_usage(self) -> UsageStats:
        """Token usage summed over successful responses."""
        usage = UsageStats()
        for response in self.responses.values():
            usage = usage.add(response.usage)
        return usage

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "total_questions": self.total_questions,
            "success_count": self.success_count,
            "success_ratio": round(self.success_ratio, 3),
            "cancelled": self.cancelled,
            "timed_out": self.timed_out,
            "failures": {qid: err.to_dict() for qid, err in self.failures.items()},
            "total_usage": self.total_usage.to_dict(),
        }

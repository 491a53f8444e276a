"""Data models for company context."""

from dataclasses import dataclass, field
from enum import StrEnum


class KnowledgeTag(StrEnum):
    """Tags attached to knowledge base entries."""

    COMPANY_OVERVIEW = "company-overview"
    TARGET_AUDIENCE = "target-audience"
    PAIN_POINTS = "pain-points"
    POSITIONING = "positioning"
    PRODUCT_FEATURES = "product-features"
    USE_CASES = "use-cases"
    COMPETITOR_NOTES = "competitor-notes"
    SALES_OBJECTIONS = "sales-objections"
    BRAND_VOICE = "brand-voice"
    KEYWORDS = "keywords"
    OTHER = "other"


@dataclass
class KnowledgeEntry:
    """A single knowledge base item stored for a company."""

    tag: str
    content: str


@dataclass
class CompanyRecord:
    """Company record as stored upstream."""

    id: str
    name: str
    domain: str
    industry: str | None = None
    size: str | None = None  # "startup" | "small" | "medium" | "enterprise"
    aliases: list[str] = field(default_factory=list)
    competitors: list[str] = field(default_factory=list)
    owned_domains: list[str] = field(default_factory=list)
    operated_domains: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CompanyContext:
    """Grounded, read-only profile of the target company for one run."""

    id: str
    name: str
    domain: str
    industry: str
    overview: tuple[str, ...] = ()
    knowledge_snippets: tuple[str, ...] = ()

    # Matching aids
    aliases: tuple[str, ...] = ()
    competitors: tuple[str, ...] = ()
    owned_domains: tuple[str, ...] = ()
    operated_domains: tuple[str, ...] = ()

    # Question seeding
    target_audience: tuple[str, ...] = ()
    use_cases: tuple[str, ...] = ()
    pain_points: tuple[str, ...] = ()
    keywords: tuple[str, ...] = ()
    size: str = "unknown"

    @property
    def is_minimal(self) -> bool:
        """True when no knowledge base entries backed this context."""
        return not self.knowledge_snippets

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "domain": self.domain,
            "industry": self.industry,
            "overview": list(self.overview),
            "knowledge_snippets": list(self.knowledge_snippets),
            "aliases": list(self.aliases),
            "competitors": list(self.competitors),
            "owned_domains": list(self.owned_domains),
            "operated_domains": list(self.operated_domains),
            "target_audience": list(self.target_audience),
            "use_cases": list(self.use_cases),
            "pain_points": list(self.pain_points),
            "keywords": list(self.keywords),
            "size": self.size,
        }

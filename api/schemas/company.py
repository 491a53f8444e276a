"""Company schemas."""

from pydantic import BaseModel, Field

from worker.context.models import CompanyRecord, KnowledgeEntry


class KnowledgeItem(BaseModel):
    """A knowledge base entry."""

    tag: str = Field(default="other", description="Knowledge tag, e.g. company-overview")
    content: str = Field(..., min_length=1)


class CompanyCreate(BaseModel):
    """Schema for registering a company."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    domain: str = Field(..., min_length=3)
    industry: str | None = None
    size: str | None = Field(default=None, description="startup, small, medium or enterprise")
    aliases: list[str] = Field(default_factory=list)
    competitors: list[str] = Field(default_factory=list)
    owned_domains: list[str] = Field(default_factory=list)
    operated_domains: list[str] = Field(default_factory=list)
    knowledge: list[KnowledgeItem] = Field(default_factory=list)

    def to_record(self) -> CompanyRecord:
        """Convert to a store record."""
        return CompanyRecord(
            id=self.id,
            name=self.name,
            domain=self.domain,
            industry=self.industry,
            size=self.size,
            aliases=self.aliases,
            competitors=self.competitors,
            owned_domains=self.owned_domains,
            operated_domains=self.operated_domains,
        )

    def to_entries(self) -> list[KnowledgeEntry]:
        """Convert knowledge items to store entries."""
        return [KnowledgeEntry(tag=k.tag, content=k.content) for k in self.knowledge]


class CompanyRead(BaseModel):
    """Schema for reading a company."""

    id: str
    name: str
    domain: str
    industry: str | None
    size: str | None
    aliases: list[str]
    competitors: list[str]
    owned_domains: list[str]
    operated_domains: list[str]
    knowledge_count: int

    @classmethod
    def from_record(cls, record: CompanyRecord, knowledge_count: int) -> "CompanyRead":
        return cls(
            id=record.id,
            name=record.name,
            domain=record.domain,
            industry=record.industry,
            size=record.size,
            aliases=record.aliases,
            competitors=record.competitors,
            owned_domains=record.owned_domains,
            operated_domains=record.operated_domains,
            knowledge_count=knowledge_count,
        )

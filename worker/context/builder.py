"""Company context builder.

Assembles the grounded profile of the target company that seeds question
generation and mention matching. The context is built once per run from
the company record and its tagged knowledge base entries, and is read-only
afterwards.

Usage:
    from worker.context.builder import CompanyContextBuilder

    builder = CompanyContextBuilder(store)
    context = await builder.build("company-123")
"""

from __future__ import annotations

import re

import structlog

from api.exceptions import ContextBuildFailure
from worker.context.domains import normalize_domain
from worker.context.models import (
    CompanyContext,
    CompanyRecord,
    KnowledgeEntry,
    KnowledgeTag,
)
from worker.context.store import CompanyStore

logger = structlog.get_logger(__name__)


# Suffixes stripped when generating name variations
COMPANY_SUFFIXES = [
    " Inc",
    " Inc.",
    " LLC",
    " Ltd",
    " Ltd.",
    " Co",
    " Co.",
    " Corp",
    " Corp.",
    " Corporation",
    " Company",
    " Technologies",
    " Software",
    " Solutions",
    " Group",
    " Holdings",
]

# Industry keywords matched against the domain, first hit wins
INDUSTRY_HINTS: list[tuple[tuple[str, ...], str]] = [
    (("health", "medical", "clinic", "care"), "Healthcare"),
    (("finance", "bank", "pay", "capital"), "Finance"),
    (("edu", "learn", "school", "academy"), "Education"),
    (("retail", "shop", "store"), "Retail"),
    (("tech", "software", "cloud", "data"), "Technology"),
]
DEFAULT_INDUSTRY = "Technology"

# Subdomains a company usually runs alongside its main site
OPERATED_SUBDOMAINS = ("app", "api", "docs", "blog", "help", "support")

# Capitalised words in competitor notes that are not company names
_NOTE_STOPWORDS = {
    "also",
    "another",
    "their",
    "there",
    "these",
    "they",
    "this",
    "those",
    "when",
    "where",
    "while",
    "with",
    "main",
    "most",
    "some",
    "unlike",
    "compared",
    "competitor",
    "competitors",
}

_NOTE_WORD = re.compile(r"[A-Z][A-Za-z0-9&\-]{3,}")


def generate_name_variations(company_name: str) -> list[str]:
    """Generate variations of a company name for fuzzy matching."""
    variations = [company_name]
    name_lower = company_name.lower()

    for suffix in COMPANY_SUFFIXES:
        if name_lower.endswith(suffix.lower()):
            base = company_name[: -len(suffix)].strip().rstrip(",")
            if base and base not in variations:
                variations.append(base)

    if name_lower.startswith("the "):
        without_the = company_name[4:]
        if without_the not in variations:
            variations.append(without_the)

    return variations


def extract_competitors_from_notes(notes: list[str]) -> list[str]:
    """Pull capitalised names out of free-text competitor notes."""
    found: list[str] = []
    seen: set[str] = set()
    for note in notes:
        for match in _NOTE_WORD.finditer(note):
            word = match.group(0).rstrip("-")
            key = word.lower()
            if key in _NOTE_STOPWORDS or key in seen:
                continue
            seen.add(key)
            found.append(word)
    return found


def infer_industry(domain: str) -> str:
    """Infer an industry category from the domain name."""
    lower = domain.lower()
    for hints, industry in INDUSTRY_HINTS:
        if any(hint in lower for hint in hints):
            return industry
    return DEFAULT_INDUSTRY


def infer_operated_domains(domain: str) -> list[str]:
    """Subdomains assumed to be operated by the company."""
    base = normalize_domain(domain)
    if not base:
        return []
    return [f"{sub}.{base}" for sub in OPERATED_SUBDOMAINS]


def _dedupe(values: list[str]) -> tuple[str, ...]:
    """Case-insensitive de-duplication preserving first spelling and order."""
    seen: set[str] = set()
    result = []
    for value in values:
        value = value.strip()
        key = value.lower()
        if value and key not in seen:
            seen.add(key)
            result.append(value)
    return tuple(result)


class CompanyContextBuilder:
    """Builds a CompanyContext from a company store."""

    def __init__(self, store: CompanyStore):
        self.store = store

    async def build(self, company_id: str) -> CompanyContext:
        """
        Build the context for a company.

        Args:
            company_id: Identifier of the company record

        Returns:
            Read-only CompanyContext

        Raises:
            ContextBuildFailure: If no company record exists
        """
        record = await self.store.get_company(company_id)
        if record is None:
            logger.warning("company_context_missing", company_id=company_id)
            raise ContextBuildFailure(company_id)

        if not record.name.strip() or not normalize_domain(record.domain):
            raise ContextBuildFailure(company_id, "company record has no name or domain")

        entries = await self.store.list_knowledge(company_id)
        if not entries:
            logger.info("company_context_minimal", company_id=company_id)

        context = self._assemble(record, entries)

        logger.info(
            "company_context_built",
            company_id=company_id,
            knowledge_entries=len(entries),
            competitors=len(context.competitors),
            aliases=len(context.aliases),
            industry=context.industry,
        )
        return context

    def _assemble(self, record: CompanyRecord, entries: list[KnowledgeEntry]) -> CompanyContext:
        """Combine the record and grouped knowledge into a context."""
        grouped = self._group_by_tag(entries)
        domain = normalize_domain(record.domain)

        competitors = list(record.competitors)
        competitors.extend(extract_competitors_from_notes(grouped[KnowledgeTag.COMPETITOR_NOTES]))

        aliases: list[str] = []
        for name in [record.name, *record.aliases]:
            aliases.extend(generate_name_variations(name))

        owned = [domain, *(normalize_domain(d) for d in record.owned_domains)]
        operated = [normalize_domain(d) for d in record.operated_domains]
        operated.extend(infer_operated_domains(domain))

        return CompanyContext(
            id=record.id,
            name=record.name.strip(),
            domain=domain,
            industry=record.industry or infer_industry(domain),
            overview=tuple(grouped[KnowledgeTag.COMPANY_OVERVIEW]),
            knowledge_snippets=tuple(e.content for e in entries if e.content.strip()),
            aliases=_dedupe(aliases),
            competitors=_dedupe(competitors),
            owned_domains=_dedupe(owned),
            operated_domains=_dedupe([d for d in operated if d not in owned]),
            target_audience=tuple(grouped[KnowledgeTag.TARGET_AUDIENCE]),
            use_cases=tuple(grouped[KnowledgeTag.USE_CASES]),
            pain_points=tuple(grouped[KnowledgeTag.PAIN_POINTS]),
            keywords=_dedupe(grouped[KnowledgeTag.KEYWORDS]),
            size=record.size or "unknown",
        )

    def _group_by_tag(self, entries: list[KnowledgeEntry]) -> dict[KnowledgeTag, list[str]]:
        """Group knowledge entries by tag; unknown tags land in OTHER."""
        grouped: dict[KnowledgeTag, list[str]] = {tag: [] for tag in KnowledgeTag}
        for entry in entries:
            content = entry.content.strip()
            if not content:
                continue
            try:
                tag = KnowledgeTag(entry.tag.strip().lower())
            except ValueError:
                tag = KnowledgeTag.OTHER
            grouped[tag].append(content)
        return grouped


async def build_company_context(store: CompanyStore, company_id: str) -> CompanyContext:
    """Convenience function to build a company context."""
    return await CompanyContextBuilder(store).build(company_id)

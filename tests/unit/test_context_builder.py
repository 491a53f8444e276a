"""Tests for the company context builder."""

import pytest

from api.exceptions import ContextBuildFailure
from worker.context.builder import (
    CompanyContextBuilder,
    extract_competitors_from_notes,
    generate_name_variations,
    infer_industry,
    infer_operated_domains,
)
from worker.context.domains import domain_matches, name_from_domain, normalize_domain, root_domain
from worker.context.models import CompanyContext, CompanyRecord, KnowledgeEntry
from worker.context.store import InMemoryCompanyStore


class TestDomainHelpers:
    """Tests for domain normalization helpers."""

    def test_normalize_strips_scheme_www_and_path(self) -> None:
        """URLs reduce to a bare lowercase host."""
        assert normalize_domain("https://www.Acme.io/pricing?x=1") == "acme.io"
        assert normalize_domain("acme.io") == "acme.io"
        assert normalize_domain("  ") == ""

    def test_root_domain_handles_country_slds(self) -> None:
        """Compound second-level domains keep three labels."""
        assert root_domain("app.acme.io") == "acme.io"
        assert root_domain("shop.acme.co.uk") == "acme.co.uk"

    def test_domain_matches_subdomains_only(self) -> None:
        """A host matches its parent domain but not a lookalike."""
        assert domain_matches("docs.acme.io", "acme.io")
        assert domain_matches("acme.io", "www.acme.io")
        assert not domain_matches("notacme.io", "acme.io")

    def test_name_from_domain(self) -> None:
        """Display names come from the main label."""
        assert name_from_domain("www.globex.com") == "Globex"
        assert name_from_domain("notion.so") == "Notion"


class TestNameVariations:
    """Tests for name variation generation."""

    def test_strips_legal_suffix(self) -> None:
        """Legal suffixes produce a shorter variation."""
        assert generate_name_variations("Acme Inc") == ["Acme Inc", "Acme"]

    def test_strips_leading_the(self) -> None:
        """A leading article is dropped."""
        assert "Widget Company" in generate_name_variations("The Widget Company")

    def test_plain_name_unchanged(self) -> None:
        """Names without suffixes have one variation."""
        assert generate_name_variations("Globex") == ["Globex"]


class TestInference:
    """Tests for industry and operated-domain inference."""

    def test_infer_industry_from_domain(self) -> None:
        """Domain keywords select an industry."""
        assert infer_industry("mediclinic.com") == "Healthcare"
        assert infer_industry("paystream.io") == "Finance"
        assert infer_industry("zzz.io") == "Technology"

    def test_infer_operated_domains(self) -> None:
        """Common service subdomains are assumed operated."""
        operated = infer_operated_domains("https://acme.io")
        assert "docs.acme.io" in operated
        assert "app.acme.io" in operated

    def test_extract_competitors_skips_stopwords(self) -> None:
        """Capitalised filler words are not competitors."""
        notes = ["Unlike Globex, they focus on small teams.", "Compared with Initech and Globex."]
        assert extract_competitors_from_notes(notes) == ["Globex", "Initech"]


class TestCompanyContextBuilder:
    """Tests for CompanyContextBuilder."""

    @pytest.mark.asyncio
    async def test_build_full_context(self, company_context: CompanyContext) -> None:
        """Record fields and tagged knowledge land on the context."""
        assert company_context.name == "Acme Analytics Inc"
        assert company_context.domain == "acme.io"
        assert company_context.industry == "Analytics"
        assert company_context.size == "small"
        assert company_context.overview == ("Acme builds product analytics.",)
        assert company_context.target_audience == ("Product managers at SaaS companies",)
        assert company_context.keywords == ("product analytics",)
        assert not company_context.is_minimal

    @pytest.mark.asyncio
    async def test_aliases_include_variations(self, company_context: CompanyContext) -> None:
        """Aliases combine the name, its variations and declared aliases."""
        assert company_context.aliases == ("Acme Analytics Inc", "Acme Analytics", "Acme")

    @pytest.mark.asyncio
    async def test_competitors_merge_record_and_notes(
        self, company_context: CompanyContext
    ) -> None:
        """Declared competitors come first, then names from notes."""
        assert company_context.competitors == ("Globex", "Initech", "Umbrella", "Hooli")

    @pytest.mark.asyncio
    async def test_owned_and_operated_domains(self, company_context: CompanyContext) -> None:
        """The primary domain is owned and service subdomains are operated."""
        assert company_context.owned_domains == ("acme.io", "acme-blog.com")
        assert "docs.acme.io" in company_context.operated_domains
        assert "acme.io" not in company_context.operated_domains

    @pytest.mark.asyncio
    async def test_minimal_context_without_knowledge(self) -> None:
        """A record without knowledge still builds a context."""
        store = InMemoryCompanyStore()
        await store.add_company(CompanyRecord(id="c1", name="Globex", domain="globex.com"))

        context = await CompanyContextBuilder(store).build("c1")

        assert context.is_minimal
        assert context.industry == "Technology"
        assert context.competitors == ()
        assert context.size == "unknown"

    @pytest.mark.asyncio
    async def test_missing_company_raises(self) -> None:
        """An unknown company id is a fatal context failure."""
        builder = CompanyContextBuilder(InMemoryCompanyStore())

        with pytest.raises(ContextBuildFailure) as exc_info:
            await builder.build("missing")

        assert exc_info.value.fatal is True
        assert exc_info.value.details["company_id"] == "missing"

    @pytest.mark.asyncio
    async def test_record_without_domain_raises(self) -> None:
        """A record with an empty domain cannot ground a run."""
        store = InMemoryCompanyStore()
        await store.add_company(CompanyRecord(id="c2", name="Nameless", domain=" "))

        with pytest.raises(ContextBuildFailure):
            await CompanyContextBuilder(store).build("c2")

    @pytest.mark.asyncio
    async def test_unknown_tags_go_to_other(self) -> None:
        """Unknown tags are kept as knowledge but not as seeds."""
        store = InMemoryCompanyStore()
        await store.add_company(
            CompanyRecord(id="c3", name="Initech", domain="initech.com"),
            [
                KnowledgeEntry(tag="Mystery", content="Something"),
                KnowledgeEntry(tag="x", content=" "),
            ],
        )

        context = await CompanyContextBuilder(store).build("c3")

        assert context.knowledge_snippets == ("Something",)
        assert context.use_cases == ()

    def test_context_to_dict(self) -> None:
        """Context serializes tuples as lists."""
        context = CompanyContext(id="x", name="X", domain="x.com", industry="Tech", aliases=("X",))
        d = context.to_dict()
        assert d["aliases"] == ["X"]
        assert d["size"] == "unknown"

"""Pytest configuration and fixtures."""

import os
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment before any app code runs
os.environ["ENV"] = "test"
os.environ["ANSWER_PROVIDER"] = "mock"
os.environ["JUDGE_PROVIDER"] = "mock"
os.environ["VISIBILITY_RETRY_DELAY_SECONDS"] = "0"

from worker.context.builder import CompanyContextBuilder  # noqa: E402
from worker.context.models import CompanyContext, CompanyRecord, KnowledgeEntry  # noqa: E402
from worker.context.store import InMemoryCompanyStore  # noqa: E402


@pytest.fixture
def company_record() -> CompanyRecord:
    """A company with aliases, competitors and an extra owned domain."""
    return CompanyRecord(
        id="acme",
        name="Acme Analytics Inc",
        domain="https://www.acme.io/",
        industry="Analytics",
        size="small",
        aliases=["Acme"],
        competitors=["Globex", "Initech"],
        owned_domains=["acme-blog.com"],
    )


@pytest.fixture
def knowledge_entries() -> list[KnowledgeEntry]:
    """Tagged knowledge base entries for the test company."""
    return [
        KnowledgeEntry(tag="company-overview", content="Acme builds product analytics."),
        KnowledgeEntry(tag="target-audience", content="Product managers at SaaS companies"),
        KnowledgeEntry(tag="use-cases", content="Tracking feature adoption"),
        KnowledgeEntry(tag="pain-points", content="Understanding why users churn"),
        KnowledgeEntry(tag="keywords", content="product analytics"),
        KnowledgeEntry(tag="competitor-notes", content="Compared with Umbrella and Hooli."),
    ]


@pytest.fixture
async def company_store(
    company_record: CompanyRecord,
    knowledge_entries: list[KnowledgeEntry],
) -> InMemoryCompanyStore:
    """Store holding the test company."""
    store = InMemoryCompanyStore()
    await store.add_company(company_record, knowledge_entries)
    return store


@pytest.fixture
async def company_context(company_store: InMemoryCompanyStore) -> CompanyContext:
    """Built context of the test company."""
    return await CompanyContextBuilder(company_store).build("acme")


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    from api.config import get_settings

    get_settings.cache_clear()  # Use test env, not stale or .env values
    from api.main import app

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

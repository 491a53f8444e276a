"""Company record sources used by the context builder."""

import asyncio
from abc import ABC, abstractmethod

from worker.context.models import CompanyRecord, KnowledgeEntry


class CompanyStore(ABC):
    """Abstract read access to company records and their knowledge base."""

    @abstractmethod
    async def get_company(self, company_id: str) -> CompanyRecord | None:
        """Return the company record, or None if it does not exist."""
        ...

    @abstractmethod
    async def list_knowledge(self, company_id: str) -> list[KnowledgeEntry]:
        """Return knowledge base entries, newest first."""
        ...


class InMemoryCompanyStore(CompanyStore):
    """Dictionary-backed company store for local runs and tests."""

    def __init__(self) -> None:
        self._companies: dict[str, CompanyRecord] = {}
        self._knowledge: dict[str, list[KnowledgeEntry]] = {}
        self._lock = asyncio.Lock()

    async def add_company(
        self,
        record: CompanyRecord,
        knowledge: list[KnowledgeEntry] | None = None,
    ) -> None:
        """Register a company and optional knowledge entries."""
        async with self._lock:
            self._companies[record.id] = record
            self._knowledge[record.id] = list(knowledge or [])

    async def get_company(self, company_id: str) -> CompanyRecord | None:
        """Return the company record, or None if it does not exist."""
        return self._companies.get(company_id)

    async def list_knowledge(self, company_id: str) -> list[KnowledgeEntry]:
        """Return knowledge base entries in insertion order."""
        return list(self._knowledge.get(company_id, []))

"""Company context for grounding questions and mention matching.

Use explicit imports:
    from worker.context.builder import CompanyContextBuilder, build_company_context
    from worker.context.models import CompanyContext, CompanyRecord, KnowledgeEntry
    from worker.context.store import CompanyStore, InMemoryCompanyStore
"""

__all__ = [
    "CompanyContextBuilder",
    "build_company_context",
    "CompanyContext",
    "CompanyRecord",
    "KnowledgeEntry",
    "KnowledgeTag",
    "CompanyStore",
    "InMemoryCompanyStore",
]

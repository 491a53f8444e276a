"""FastAPI dependencies for dependency injection."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from api.config import Settings, get_settings
from api.services.run_service import RunService
from worker.context.store import InMemoryCompanyStore
from worker.pipeline.repository import InMemoryRunRepository
from worker.pipeline.runner import PipelineConfig, VisibilityPipeline

__all__ = ["SettingsDep", "RunServiceDep", "get_run_service"]


# Settings dependency
SettingsDep = Annotated[Settings, Depends(get_settings)]


@lru_cache
def get_run_service() -> RunService:
    """Process-wide run service backed by in-memory stores."""
    company_store = InMemoryCompanyStore()
    repository = InMemoryRunRepository()
    pipeline = VisibilityPipeline(
        company_store,
        repository,
        config=PipelineConfig.from_settings(get_settings()),
    )
    return RunService(pipeline, company_store, repository)


RunServiceDep = Annotated[RunService, Depends(get_run_service)]

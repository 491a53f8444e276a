"""Health check endpoints."""

import time
from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel, Field

from api.config import get_settings

router = APIRouter(tags=["Health"])

API_VERSION = "0.1.0"

# Track server start time for uptime calculation
_server_start_time = time.time()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Health status: healthy, degraded")
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str = Field(..., description="API version")
    uptime_seconds: int = Field(..., description="Server uptime in seconds")
    answer_provider: str = Field(..., description="Configured answer provider")
    judge_provider: str = Field(..., description="Configured judgment provider")


class ApiInfoResponse(BaseModel):
    """API information response."""

    name: str
    version: str
    env: str
    docs: str | None


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Reports degraded when the configured answer provider has no credentials.
    """
    settings = get_settings()
    return HealthResponse(
        status="healthy" if settings.answer_provider_enabled else "degraded",
        timestamp=datetime.now(UTC).isoformat(),
        version=API_VERSION,
        uptime_seconds=int(time.time() - _server_start_time),
        answer_provider=settings.answer_provider,
        judge_provider=settings.judge_provider,
    )


@router.get("/", response_model=ApiInfoResponse)
async def root() -> ApiInfoResponse:
    """Root endpoint with API information."""
    settings = get_settings()
    return ApiInfoResponse(
        name="AI Visibility Scoring API",
        version=API_VERSION,
        env=settings.env,
        docs="/docs" if settings.debug else None,
    )

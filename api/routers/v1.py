"""V1 API router - aggregates all versioned endpoints."""

from fastapi import APIRouter

from api.routers import companies, runs

router = APIRouter()

# Company endpoints
router.include_router(companies.router)

# Run endpoints
router.include_router(runs.router)

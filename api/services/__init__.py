"""Service layer for business logic."""

from api.services.run_service import RunService

__all__ = ["RunService"]

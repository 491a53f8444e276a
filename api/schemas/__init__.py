"""Pydantic schemas for API requests and responses."""

from api.schemas.company import CompanyCreate, CompanyRead, KnowledgeItem
from api.schemas.responses import ErrorDetail, ErrorResponse, SuccessResponse
from api.schemas.run import RunCreate, RunProgress, RunRead

__all__ = [
    "CompanyCreate",
    "CompanyRead",
    "KnowledgeItem",
    "ErrorDetail",
    "ErrorResponse",
    "SuccessResponse",
    "RunCreate",
    "RunProgress",
    "RunRead",
]

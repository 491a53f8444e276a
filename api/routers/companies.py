"""Company registration endpoints."""

from fastapi import APIRouter, status

from api.deps import RunServiceDep
from api.schemas.company import CompanyCreate, CompanyRead
from api.schemas.responses import ErrorResponse, SuccessResponse

router = APIRouter(
    prefix="/companies",
    tags=["companies"],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)


@router.post(
    "",
    response_model=SuccessResponse[CompanyRead],
    status_code=status.HTTP_201_CREATED,
    summary="Register a company",
)
async def create_company(
    company_in: CompanyCreate,
    service: RunServiceDep,
) -> SuccessResponse[CompanyRead]:
    """Register (or replace) a company and its knowledge base."""
    entries = company_in.to_entries()
    record = await service.register_company(company_in.to_record(), entries)
    return SuccessResponse(data=CompanyRead.from_record(record, len(entries)))


@router.get(
    "/{company_id}",
    response_model=SuccessResponse[CompanyRead],
    summary="Get a company",
)
async def get_company(company_id: str, service: RunServiceDep) -> SuccessResponse[CompanyRead]:
    """Get a registered company."""
    record, knowledge_count = await service.get_company(company_id)
    return SuccessResponse(data=CompanyRead.from_record(record, knowledge_count))

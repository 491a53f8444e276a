"""Visibility run endpoints."""

from fastapi import APIRouter, BackgroundTasks, Query, status

from api.deps import RunServiceDep
from api.schemas.responses import ErrorResponse, SuccessResponse
from api.schemas.run import RunCreate, RunRead

router = APIRouter(
    prefix="/runs",
    tags=["runs"],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)


@router.post(
    "",
    response_model=SuccessResponse[RunRead],
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start a visibility run",
)
async def create_run(
    run_in: RunCreate,
    background_tasks: BackgroundTasks,
    service: RunServiceDep,
) -> SuccessResponse[RunRead]:
    """
    Start a visibility run for a registered company.

    The run executes in the background. Poll the returned run ID for
    progress and the final score.
    """
    run = await service.create_run(run_in)
    background_tasks.add_task(service.execute_run, run.id)
    return SuccessResponse(data=RunRead.from_record(run))


@router.get(
    "",
    response_model=SuccessResponse[list[RunRead]],
    summary="List visibility runs",
)
async def list_runs(
    service: RunServiceDep,
    company_id: str | None = Query(None, description="Only runs for this company"),
) -> SuccessResponse[list[RunRead]]:
    """List runs without their full results."""
    runs = await service.list_runs(company_id)
    return SuccessResponse(
        data=[RunRead.from_record(r, include_result=False) for r in runs],
        meta={"total": len(runs)},
    )


@router.get(
    "/{run_id}",
    response_model=SuccessResponse[RunRead],
    summary="Get a visibility run",
)
async def get_run(run_id: str, service: RunServiceDep) -> SuccessResponse[RunRead]:
    """Get run status, progress and, once completed, the score."""
    run = await service.get_run(run_id)
    return SuccessResponse(data=RunRead.from_record(run))

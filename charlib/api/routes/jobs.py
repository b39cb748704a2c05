"""Background job and audit trail endpoints."""

from fastapi import APIRouter, HTTPException, status

from ...core.errors import AssetStoreError
from ..dependencies import GenerationService
from ..models.responses import AttemptAuditResponse, AttemptResponse, GenerationResultResponse, JobResponse

router = APIRouter()


@router.get(
    "/jobs/{job_id}",
    response_model=JobResponse,
    summary="Get a background job",
    description="Get the status of a smart generation job, with its result once completed.",
)
async def get_job(job_id: str, service: GenerationService):
    """Get a smart generation job by ID."""
    try:
        job = await service.get_job(job_id)
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job {job_id} not found",
        )

    job_status, result, error = job
    return JobResponse(
        job_id=job_id,
        status=job_status,
        result=GenerationResultResponse.model_validate(result) if result else None,
        error=error,
    )


@router.get(
    "/generations/{request_id}/attempts",
    response_model=AttemptAuditResponse,
    summary="Get the attempt audit trail",
    description="Every attempt recorded for a generation request, in order.",
)
async def get_attempts(request_id: str, service: GenerationService):
    """Get the audit trail of a generation request."""
    try:
        attempts = await service.get_attempts(request_id)
    except AssetStoreError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Asset store unavailable: {e}",
        )

    if not attempts:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No attempts recorded for request {request_id}",
        )

    return AttemptAuditResponse(
        request_id=request_id,
        attempts=[AttemptResponse.from_attempt(a) for a in attempts],
    )

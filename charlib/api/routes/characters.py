"""Smart generation endpoints for a character's image library."""

from fastapi import APIRouter, HTTPException, status

from ...core.errors import AssetStoreError
from ..dependencies import GenerationService
from ..models.enums import JobStatus
from ..models.requests import FindReferenceImageRequest, SmartGenerateImageRequest
from ..models.responses import (
    CreateJobResponse,
    FindReferenceImageResponse,
    GenerationResultResponse,
    PromptProfileResponse,
    RankedReferenceResponse,
)

router = APIRouter()


def _store_unavailable(error: AssetStoreError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=f"Asset store unavailable: {error}",
    )


@router.post(
    "/{character_id}/generate-smart-image",
    response_model=GenerationResultResponse,
    summary="Generate a consistency-validated image",
    description=(
        "Generate an image of the character, validating each candidate for quality and "
        "consistency and retrying with other references until one is accepted or the "
        "attempt budget runs out. Returns 200 for every outcome; check `success`."
    ),
)
async def generate_smart_image(
    character_id: str, request: SmartGenerateImageRequest, service: GenerationService
):
    """Run smart generation synchronously and return the full attempt trail."""
    try:
        result = await service.generate(character_id, **request.to_generation_kwargs())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except AssetStoreError as e:
        raise _store_unavailable(e)

    return GenerationResultResponse.from_result(result)


@router.post(
    "/{character_id}/generate-smart-image/jobs",
    response_model=CreateJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Enqueue smart generation",
    description="Start smart generation in the background. Poll GET /jobs/{job_id} for the result.",
)
async def enqueue_smart_image(
    character_id: str, request: SmartGenerateImageRequest, service: GenerationService
):
    """Validate and enqueue a smart generation job."""
    try:
        job_id = await service.enqueue(character_id, **request.to_generation_kwargs())
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))

    return CreateJobResponse(job_id=job_id, status=JobStatus.PENDING)


@router.post(
    "/{character_id}/find-reference-image",
    response_model=FindReferenceImageResponse,
    summary="Find the best reference images",
    description="Rank the character's reference images for a prompt without generating anything.",
)
async def find_reference_image(
    character_id: str, request: FindReferenceImageRequest, service: GenerationService
):
    """Rank references for a prompt."""
    try:
        profile, ranked, total = await service.find_references(
            character_id, request.prompt, limit=request.limit
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except AssetStoreError as e:
        raise _store_unavailable(e)

    return FindReferenceImageResponse(
        character_id=character_id,
        profile=PromptProfileResponse.from_profile(profile),
        references=[RankedReferenceResponse.from_ranked(r) for r in ranked],
        total_references=total,
    )

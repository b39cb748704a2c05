"""FastAPI dependency injection for services."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .services.smart_generation import SmartGenerationService


def get_generation_service(request: Request) -> SmartGenerationService:
    """Get the SmartGenerationService built during startup.

    Raises:
        HTTPException: 503 if the external services are not configured
    """
    service = getattr(request.app.state, "generation_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Smart generation is not configured. Set GENERATION_SERVICE_URL and ANALYSIS_SERVICE_URL.",
        )
    return service


# Type alias for cleaner route signatures
GenerationService = Annotated[SmartGenerationService, Depends(get_generation_service)]

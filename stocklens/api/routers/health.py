"""Health check endpoints."""

from fastapi import APIRouter, Depends

from stocklens.api.dependencies import get_generator
from stocklens.config import settings
from stocklens.narrative.generator import NarrativeGenerator
from stocklens.utils.logging import get_logger

router = APIRouter(tags=["Health"])
log = get_logger(__name__)


@router.get("/health")
async def health_check(generator: NarrativeGenerator = Depends(get_generator)) -> dict:
    """
    Health check endpoint; reports whether narrative generation is configured.
    """
    llm_configured = generator.is_configured()
    log.debug("health_check", llm_configured=llm_configured)

    return {
        "status": "ok",
        "environment": settings.environment,
        "llm_configured": llm_configured,
        "llm_provider": generator.provider,
    }

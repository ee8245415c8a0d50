"""Blog settings endpoints (`site`, `seo`, `media`, `appearance` sections)."""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from pydantic import ValidationError as PydanticValidationError

from agency_cms.exceptions import ValidationError
from agency_cms.managers.logging_manager import get_logger
from agency_cms.routes.dependencies import get_gateways
from agency_cms.services.content_service import ContentGateways

logger = get_logger(prefix="[SettingsRoutes]")

router = APIRouter(prefix="/api/admin/settings", tags=["Admin Settings"])


@router.get("")
async def get_blog_settings(gateways: ContentGateways = Depends(get_gateways)):
    return (await gateways.settings.load()).model_dump()


@router.put("")
async def update_blog_settings(changes: Dict[str, Any] = Body(...), gateways: ContentGateways = Depends(get_gateways)):
    """Merge the supplied sections into the stored settings and return the result."""
    try:
        updated = await gateways.settings.save(changes)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error.get("loc", ()))
        logger.warning("Rejected settings update: %s", e)
        raise ValidationError(f"Invalid setting {field}: {error.get('msg')}") from e
    return updated.model_dump()

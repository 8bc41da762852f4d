from __future__ import annotations

from fastapi import APIRouter

from deepbrief.api.deps import get_available_templates
from deepbrief.models.schemas import TemplateInfo, TemplatesResponse

router = APIRouter(prefix="/api/research/templates", tags=["templates"])


@router.get("", response_model=TemplatesResponse)
async def list_templates():
    """List research templates and the session artifacts each one needs."""
    templates = get_available_templates()
    return TemplatesResponse(templates=[TemplateInfo(**t) for t in templates])

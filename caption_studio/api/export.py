"""
Purpose:
- /api/v1/export: copy a working directory (or zip it) to a user-chosen destination.
"""

from fastapi import APIRouter
from pydantic import BaseModel, Field
from ..core.errors import CaptionStudioError
from ..core.settings import settings
from ..files.export import export_directory

router = APIRouter(prefix="/api/v1/export", tags=["export"])

class ExportIn(BaseModel):
    source_dir: str = Field(..., min_length=1, description="Working directory to export")
    destination_dir: str = Field(..., min_length=1)
    as_zip: bool = False

@router.post("")
def export(payload: ExportIn):
    try:
        out = export_directory(
            payload.source_dir,
            payload.destination_dir,
            as_zip=payload.as_zip,
            prefix=settings.export_prefix,
        )
        return {"ok": True, "path": str(out), "as_zip": payload.as_zip}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"export-failed: {e}"}

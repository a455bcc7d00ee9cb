"""
Purpose:
- /api/v1/captions: read and write the caption sidecar of one media file.
"""

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field
from ..core.errors import CaptionStudioError
from ..files.captions import read_caption, write_caption, has_caption
from .files import in_workspace

router = APIRouter(prefix="/api/v1/captions", tags=["captions"])

class CaptionIn(BaseModel):
    path: str = Field(..., min_length=1, description="Media file the caption belongs to")
    content: str = ""

@router.get("")
def get_caption(path: str = Query(..., min_length=1)):
    try:
        return {"ok": True, "path": path, "has_caption": has_caption(path), "caption": read_caption(path)}
    except CaptionStudioError as e:
        return {"ok": False, "path": path, "error": f"read-caption-failed: {e}"}

@router.put("")
def put_caption(payload: CaptionIn):
    try:
        cap = write_caption(in_workspace(payload.path), payload.content)
        return {"ok": True, "path": payload.path, "caption_path": str(cap)}
    except CaptionStudioError as e:
        return {"ok": False, "path": payload.path, "error": f"write-caption-failed: {e}"}

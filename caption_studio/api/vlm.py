"""
Purpose:
- /caption: one file through the configured vision API (optional UI-provided video frame).
- /captions: a batch; always one result per requested file, failures reported per file.
"""

from typing import List, Optional
from fastapi import APIRouter
from pydantic import BaseModel, Field
from ..core.errors import CaptionStudioError
from ..core.preferences import load_preferences
from ..core.settings import settings
from ..files.captions import write_caption
from ..vlm.captioner import get_caption_client
from .files import in_workspace

router = APIRouter(prefix="/api/v1/vlm", tags=["vlm"])

class CaptionOneIn(BaseModel):
    path: str = Field(..., min_length=1)
    video_frame_url: Optional[str] = Field(default=None, description="data: URL of the frame to caption")
    save: bool = False

class CaptionManyIn(BaseModel):
    paths: List[str] = Field(default_factory=list)
    save: bool = False

@router.post("/caption")
def caption(payload: CaptionOneIn):
    try:
        prefs = load_preferences(settings.preferences_path)
        with get_caption_client(prefs) as client:
            cap = client.caption(payload.path, video_frame_url=payload.video_frame_url)
        if payload.save:
            write_caption(in_workspace(payload.path), cap)
        return {"ok": True, "path": payload.path, "caption": cap}
    except CaptionStudioError as e:
        return {"ok": False, "path": payload.path, "error": f"caption-failed: {e}"}

@router.post("/captions")
def captions(payload: CaptionManyIn):
    try:
        if payload.save:
            for p in payload.paths:
                in_workspace(p)
        prefs = load_preferences(settings.preferences_path)
        with get_caption_client(prefs) as client:
            results = client.caption_many(payload.paths, workers=settings.caption_batch_workers, save=payload.save)
    except CaptionStudioError as e:
        return {"ok": False, "error": f"caption-batch-failed: {e}"}
    return {
        "ok": True,
        "count": len(results),
        "failed": sum(1 for r in results if not r.ok),
        "results": [r.model_dump() for r in results],
    }

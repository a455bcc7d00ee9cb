"""
Purpose:
- /api/v1/media: crop (image in memory, video via ffmpeg), save a UI-cropped image,
  trim video, and poll/reset trim progress.
"""

from fastapi import APIRouter
from pydantic import BaseModel, Field
from ..core.errors import CaptionStudioError, UserInputError
from ..core.settings import settings
from ..files.media import classify
from ..media.editing import CropParams, crop_image, crop_video, save_cropped_image, trim_video
from ..media.progress import trim_progress
from .files import in_workspace

router = APIRouter(prefix="/api/v1/media", tags=["media"])

class CropIn(BaseModel):
    path: str = Field(..., min_length=1)
    crop: CropParams

class CropDataIn(BaseModel):
    path: str = Field(..., min_length=1)
    data_url: str = Field(..., min_length=1)

class TrimIn(BaseModel):
    path: str = Field(..., min_length=1)
    start_time: float
    end_time: float

@router.post("/crop")
def crop(payload: CropIn):
    try:
        p = in_workspace(payload.path)
        kind = classify(p)
        if kind == "image":
            out = crop_image(p, payload.crop)
        elif kind == "video":
            out = crop_video(p, payload.crop, ffmpeg_bin=settings.ffmpeg_bin)
        else:
            raise UserInputError(f"Not a media file: {p.name}")
        return {"ok": True, "path": str(out), "file_type": kind}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"crop-failed: {e}"}

@router.post("/crop-image-data")
def crop_image_data(payload: CropDataIn):
    try:
        out = save_cropped_image(in_workspace(payload.path), payload.data_url)
        return {"ok": True, "path": str(out)}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"crop-failed: {e}"}

@router.post("/trim")
def trim(payload: TrimIn):
    """
    Blocks until ffmpeg finishes; poll /trim/progress from another request meanwhile.
    """
    try:
        out = trim_video(
            in_workspace(payload.path),
            payload.start_time,
            payload.end_time,
            progress=trim_progress,
            ffmpeg_bin=settings.ffmpeg_bin,
            ffprobe_bin=settings.ffprobe_bin,
        )
        return {"ok": True, "path": str(out)}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"trim-failed: {e}"}

@router.get("/trim/progress")
def get_trim_progress():
    return {"ok": True, "progress": trim_progress.get()}

@router.post("/trim/progress/reset")
def reset_trim_progress():
    trim_progress.reset()
    return {"ok": True, "progress": 0}

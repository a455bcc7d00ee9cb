"""
Purpose:
- /api/v1/files: list media in a directory, serve raw files and thumbnails to the UI,
  and per-file delete / duplicate / rename (sidecars follow their media file).
"""

from dataclasses import asdict
from typing import List
from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import FileResponse
from pydantic import BaseModel, Field
from ..core.errors import CaptionStudioError, FileOperationError
from ..core.settings import settings
from ..files.media import list_media_files, delete_media_file, duplicate_media_file, rename_media_file
from ..files.projects import ensure_within
from ..media.thumbnails import get_media_thumbnail, generate_thumbnails

router = APIRouter(prefix="/api/v1/files", tags=["files"])

class PathIn(BaseModel):
    path: str = Field(..., min_length=1)

class RenameIn(PathIn):
    new_name: str = Field(..., min_length=1, description="New base name, extension is kept")

class ThumbnailsIn(BaseModel):
    paths: List[str] = Field(default_factory=list)
    max_size: int | None = Field(default=None, ge=16, le=1024)

def in_workspace(path: str):
    return ensure_within(settings.working_root, path)

@router.get("/list")
def list_files(directory: str = Query(..., min_length=1)):
    try:
        files = list_media_files(directory)
        return {"ok": True, "count": len(files), "files": [asdict(f) for f in files]}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"list-failed: {e}"}

@router.get("/raw")
def raw_file(path: str = Query(..., min_length=1)):
    """
    Stream a file from a working copy (the UI's <img>/<video> source).
    """
    try:
        p = in_workspace(path)
    except FileOperationError as e:
        raise HTTPException(status_code=403, detail=str(e))
    if not p.is_file():
        raise HTTPException(status_code=404, detail=f"File not found: {path}")
    return FileResponse(p)

@router.get("/thumbnail")
def thumbnail(path: str = Query(..., min_length=1), max_size: int | None = Query(default=None, ge=16, le=1024)):
    try:
        url = get_media_thumbnail(path, max_size or settings.thumbnail_max_size, ffmpeg_bin=settings.ffmpeg_bin)
        return {"ok": True, "path": path, "thumbnail": url}
    except CaptionStudioError as e:
        return {"ok": False, "path": path, "error": f"thumbnail-failed: {e}"}

@router.post("/thumbnails")
def thumbnails(payload: ThumbnailsIn):
    res = generate_thumbnails(
        payload.paths,
        max_size=payload.max_size or settings.thumbnail_max_size,
        batch_size=settings.thumbnail_batch_size,
        ffmpeg_bin=settings.ffmpeg_bin,
    )
    return {"ok": True, **res}

@router.delete("")
def delete_file(payload: PathIn):
    try:
        delete_media_file(in_workspace(payload.path))
        return {"ok": True, "path": payload.path}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"delete-failed: {e}"}

@router.post("/duplicate")
def duplicate_file(payload: PathIn):
    try:
        new_path = duplicate_media_file(in_workspace(payload.path))
        return {"ok": True, "path": str(new_path)}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"duplicate-failed: {e}"}

@router.post("/rename")
def rename_file(payload: RenameIn):
    try:
        new_path = rename_media_file(in_workspace(payload.path), payload.new_name)
        return {"ok": True, "path": str(new_path)}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"rename-failed: {e}"}

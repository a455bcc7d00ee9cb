# Common language: Environment/ops probe that surfaces version pins, paths, and media tool status.
# Use this before/after upgrades to confirm no silent drift.

from fastapi import APIRouter
from ..core.settings import settings
from ..media.ffmpeg import ffmpeg_available
from ..media.thumbnails import get_thumbnail_cache
from pathlib import Path
import sys, importlib

router = APIRouter(tags=["health"])

def _ver(modname: str) -> str:
    try:
        m = importlib.import_module(modname)
        return getattr(m, "__version__", "unknown")
    except ImportError:
        return "not-installed"

def _dir_info(p: Path):
    try:
        exists = p.is_dir()
        count = sum(1 for c in p.iterdir() if c.is_dir()) if exists else 0
        return {"path": str(p), "exists": exists, "projects": count}
    except OSError:
        return {"path": str(p), "exists": False, "projects": 0}

@router.get("/healthz")
def healthz():
    return {
        "status": "ok",
        "python": sys.version.split()[0],
        "versions": {
            "fastapi": _ver("fastapi"),
            "uvicorn": _ver("uvicorn"),
            "pydantic": _ver("pydantic"),
            "pydantic_settings": _ver("pydantic_settings"),
            "httpx": _ver("httpx"),
            "PIL": _ver("PIL"),
        },
        "config": {
            "data_dir": str(settings.data_dir),
            "working_root": _dir_info(settings.working_root),
            "preferences_file": str(settings.preferences_path),
        },
        "media_tools": {
            "ffmpeg": ffmpeg_available(settings.ffmpeg_bin),
            "ffprobe": ffmpeg_available(settings.ffprobe_bin),
        },
        "thumbnail_cache": {"entries": len(get_thumbnail_cache())},
    }

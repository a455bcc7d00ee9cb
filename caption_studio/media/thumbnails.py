"""
Purpose:
- Small preview bitmaps for the file list, returned as JPEG data URLs.
- Images: reduced decode (draft) + resize. Videos: first frame via ffmpeg.
- Bounded in-memory cache keyed by (path, size), invalidated when the file changes.
- Batch generation runs fixed-size concurrent batches; one bad file never aborts the scan.
"""

from __future__ import annotations
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import base64
import logging
import os
import tempfile
import threading

from PIL import Image, ImageOps

from ..core.errors import CaptionStudioError, ThumbnailError
from ..core.settings import settings
from ..files.media import IMAGE_EXTS, VIDEO_EXTS
from . import ffmpeg

logger = logging.getLogger(__name__)

JPEG_QUALITY = 80
PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
LARGE_FILE_BYTES = 10 * 1024 * 1024

_CACHE = None  # cached instance

class ThumbnailCache:
    def __init__(self, max_entries: int = 500):
        self.max_entries = max(1, int(max_entries))
        self._entries: "OrderedDict[Tuple[str, int], Tuple[str, Optional[float]]]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, path: str, size: int) -> Optional[str]:
        key = (path, size)
        with self._lock:
            hit = self._entries.get(key)
        if hit is None:
            return None
        thumb, source_mtime = hit
        # Stale as soon as the file's mtime differs from the one it was rendered from
        try:
            if os.stat(path).st_mtime != source_mtime:
                return None
        except OSError:
            return None
        return thumb

    def set(self, path: str, size: int, thumb: str, source_mtime: Optional[float] = None) -> None:
        """source_mtime: st_mtime read before decoding; defaults to the current one."""
        if source_mtime is None:
            try:
                source_mtime = os.stat(path).st_mtime
            except OSError:
                source_mtime = None
        key = (path, size)
        with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                self._entries.popitem(last=False)  # oldest
            self._entries[key] = (thumb, source_mtime)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

def get_thumbnail_cache() -> ThumbnailCache:
    global _CACHE
    if _CACHE is None:
        _CACHE = ThumbnailCache(settings.thumbnail_cache_entries)
    return _CACHE

def _to_data_url(jpeg: bytes) -> str:
    return "data:image/jpeg;base64," + base64.b64encode(jpeg).decode("ascii")

def image_thumbnail(path: Path, max_size: int) -> str:
    try:
        with Image.open(path) as img:
            # JPEG: decode at a reduced scale straight away (no-op for other formats)
            img.draft("RGB", (max_size, max_size))
            thumb = ImageOps.exif_transpose(img).convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        try:
            size = path.stat().st_size
        except OSError:
            size = 0
        if size > LARGE_FILE_BYTES:
            raise ThumbnailError(f"Image too large to process: {path} ({size // (1024 * 1024)}MB)") from e
        raise ThumbnailError(f"Failed to open image: {e}") from e

    thumb.thumbnail((max_size, max_size), Image.Resampling.LANCZOS)
    buf = BytesIO()
    # Always JPEG, regardless of transparency
    thumb.save(buf, format="JPEG", quality=JPEG_QUALITY)
    return _to_data_url(buf.getvalue())

def video_thumbnail(path: Path, max_size: int, ffmpeg_bin: str = "ffmpeg") -> str:
    with tempfile.TemporaryDirectory(prefix="caption_studio_frame_") as tmp:
        frame = ffmpeg.extract_first_frame(path, Path(tmp) / "frame.jpg", ffmpeg_bin=ffmpeg_bin)
        return image_thumbnail(frame, max_size)

def _sniff_image(path: Path) -> bool:
    try:
        with path.open("rb") as f:
            head = f.read(8)
    except OSError:
        return False
    return head == PNG_MAGIC or head[:2] == b"\xff\xd8"

def get_media_thumbnail(
    path: str,
    max_size: int = 100,
    ffmpeg_bin: str = "ffmpeg",
    cache: Optional[ThumbnailCache] = None,
) -> str:
    """
    Return a JPEG data URL whose longest side is <= max_size.
    Any "?v=..." cache-busting suffix on the path is ignored.
    """
    if max_size <= 0:
        raise ThumbnailError(f"Invalid thumbnail size: {max_size}")
    clean = path.split("?", 1)[0]
    cache = cache if cache is not None else get_thumbnail_cache()

    cached = cache.get(clean, max_size)
    if cached is not None:
        return cached

    p = Path(clean)
    try:
        source_mtime = p.stat().st_mtime
    except OSError:
        raise ThumbnailError(f"File not found: {p}")

    ext = p.suffix.lower()
    try:
        if ext in IMAGE_EXTS:
            thumb = image_thumbnail(p, max_size)
        elif ext in VIDEO_EXTS:
            thumb = video_thumbnail(p, max_size, ffmpeg_bin=ffmpeg_bin)
        elif _sniff_image(p):
            thumb = image_thumbnail(p, max_size)
        else:
            raise ThumbnailError(f"Unsupported file type: {ext.lstrip('.')}")
    except ThumbnailError:
        raise
    except CaptionStudioError as e:
        raise ThumbnailError(str(e)) from e

    cache.set(clean, max_size, thumb, source_mtime)
    return thumb

def generate_thumbnails(
    paths: List[str],
    max_size: int = 100,
    batch_size: int = 5,
    ffmpeg_bin: str = "ffmpeg",
    cache: Optional[ThumbnailCache] = None,
) -> Dict[str, Any]:
    """
    Thumbnails for many files, batch_size at a time.
    Returns {"thumbnails": {path: data_url}, "errors": {path: message}}.
    """
    thumbs: Dict[str, str] = {}
    errors: Dict[str, str] = {}
    batch_size = max(1, int(batch_size))

    def _one(p: str) -> Tuple[str, Optional[str], Optional[str]]:
        try:
            return p, get_media_thumbnail(p, max_size, ffmpeg_bin=ffmpeg_bin, cache=cache), None
        except ThumbnailError as e:
            return p, None, str(e)

    with ThreadPoolExecutor(max_workers=batch_size) as pool:
        for i in range(0, len(paths), batch_size):
            batch = paths[i:i + batch_size]
            for p, thumb, err in pool.map(_one, batch):
                if thumb is not None:
                    thumbs[p] = thumb
                else:
                    logger.warning("Failed to load thumbnail for %s: %s", p, err)
                    errors[p] = err or "unknown error"

    return {"thumbnails": thumbs, "errors": errors}

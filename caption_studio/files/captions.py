"""
Purpose:
- Read/write caption sidecars: <basename>.txt next to each media file.
- Read of a missing sidecar is "no caption" (empty string), not an error.
- Write overwrites the whole file; no merge, no locking (last writer wins).
"""

from __future__ import annotations
from pathlib import Path

from ..core.errors import FileOperationError

CAPTION_EXT = ".txt"

def caption_path_for(media_path: Path | str) -> Path:
    return Path(media_path).with_suffix(CAPTION_EXT)

def has_caption(media_path: Path | str) -> bool:
    return caption_path_for(media_path).is_file()

def read_caption(media_path: Path | str) -> str:
    cap = caption_path_for(media_path)
    if not cap.exists():
        return ""
    try:
        # newline="" keeps \r\n exactly as written
        with cap.open("r", encoding="utf-8", newline="") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise FileOperationError(f"Failed to read caption {cap}: {e}") from e

def write_caption(media_path: Path | str, content: str) -> Path:
    cap = caption_path_for(media_path)
    try:
        cap.parent.mkdir(parents=True, exist_ok=True)
        with cap.open("w", encoding="utf-8", newline="") as f:
            f.write(content)
    except OSError as e:
        raise FileOperationError(f"Failed to write caption {cap}: {e}") from e
    return cap

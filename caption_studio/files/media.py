"""
Purpose:
- Scan a working directory for media, classify by extension (image | video).
- Detect caption sidecars by basename.
- Per-file operations the editor needs: delete, duplicate, rename
  (each keeps the sidecar in step with its media file).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, List, Optional
from pathlib import Path
import logging
import os
import shutil

from ..core.errors import FileOperationError, UserInputError
from .captions import caption_path_for

logger = logging.getLogger(__name__)

IMAGE_EXTS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
VIDEO_EXTS = {".mp4", ".webm", ".mov", ".avi"}

EXT_TO_KIND = {}
for ext in IMAGE_EXTS: EXT_TO_KIND[ext] = "image"
for ext in VIDEO_EXTS: EXT_TO_KIND[ext] = "video"

@dataclass
class MediaFile:
    id: str
    name: str
    path: str              # absolute
    relative_path: str     # to the listed directory, POSIX separators
    file_type: str         # "image" | "video"
    has_caption: bool

def classify(path: Path | str) -> Optional[str]:
    """Return "image", "video" or None for non-media."""
    p = Path(path)
    if p.name.startswith("._"):
        return None
    return EXT_TO_KIND.get(p.suffix.lower())

def _iter_files(root: Path) -> Iterator[Path]:
    """Depth-first walker using os.scandir; hidden entries are skipped."""
    stack = [root]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            logger.warning("Skipping unreadable directory %s: %s", current, e)
            continue

        entries.sort(key=lambda e: e.name.lower())
        dirs = []
        for e in entries:
            if e.name.startswith("."):
                continue
            try:
                if e.is_dir(follow_symlinks=False):
                    dirs.append(Path(e.path))
                elif e.is_file():
                    yield Path(e.path)
            except OSError as err:
                logger.warning("Skipping %s: %s", e.path, err)
        # reversed so the stack pops in name order
        stack.extend(reversed(dirs))

def list_media_files(directory: Path | str) -> List[MediaFile]:
    root = Path(directory)
    if not root.exists():
        raise FileOperationError(f"Directory does not exist: {root}")
    if not root.is_dir():
        raise FileOperationError(f"Path is not a directory: {root}")

    out: List[MediaFile] = []
    for path in _iter_files(root):
        kind = classify(path)
        if kind is None:
            continue
        rel = path.relative_to(root).as_posix()
        out.append(MediaFile(
            id=f"{kind}-{rel}",
            name=path.name,
            path=str(path.resolve()),
            relative_path=rel,
            file_type=kind,
            has_caption=caption_path_for(path).is_file(),
        ))

    out.sort(key=lambda m: (m.name, m.relative_path))
    return out

def _require_file(path: Path) -> None:
    if not path.exists():
        raise FileOperationError(f"File does not exist: {path}")
    if not path.is_file():
        raise FileOperationError(f"Path is not a file: {path}")

def delete_media_file(path: Path | str) -> None:
    """Remove a media file and its caption sidecar (sidecar failure only logged)."""
    p = Path(path)
    _require_file(p)
    cap = caption_path_for(p)

    try:
        p.unlink()
    except OSError as e:
        raise FileOperationError(f"Failed to delete media file: {e}") from e
    logger.info("Deleted media file %s", p)

    if cap.exists():
        try:
            cap.unlink()
        except OSError as e:
            logger.warning("Failed to delete caption file %s: %s", cap, e)

def _free_copy_name(p: Path) -> Path:
    candidate = p.with_name(f"{p.stem}_copy{p.suffix}")
    n = 2
    # a taken sidecar name would collide with the copy's caption too
    while candidate.exists() or caption_path_for(candidate).exists():
        candidate = p.with_name(f"{p.stem}_copy{n}{p.suffix}")
        n += 1
    return candidate

def duplicate_media_file(path: Path | str) -> Path:
    """Copy media (and sidecar) to <stem>_copy<ext>; returns the new media path."""
    p = Path(path)
    _require_file(p)
    target = _free_copy_name(p)
    try:
        shutil.copy2(p, target)
        cap = caption_path_for(p)
        if cap.exists():
            shutil.copy2(cap, caption_path_for(target))
    except OSError as e:
        raise FileOperationError(f"Failed to duplicate {p.name}: {e}") from e
    return target

def rename_media_file(path: Path | str, new_stem: str) -> Path:
    """Rename media and sidecar together; never overwrites an existing file."""
    p = Path(path)
    _require_file(p)
    new_stem = (new_stem or "").strip()
    if not new_stem or "/" in new_stem or "\\" in new_stem or new_stem in (".", ".."):
        raise UserInputError(f"Invalid file name: {new_stem!r}")

    target = p.with_name(f"{new_stem}{p.suffix}")
    if target == p:
        return p
    cap, new_cap = caption_path_for(p), caption_path_for(target)
    if target.exists() or (cap.exists() and new_cap.exists()):
        raise FileOperationError(f"A file named {target.name} already exists")

    try:
        p.rename(target)
        if cap.exists():
            cap.rename(new_cap)
    except OSError as e:
        raise FileOperationError(f"Failed to rename {p.name}: {e}") from e
    return target

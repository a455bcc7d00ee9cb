"""
Purpose:
- Duplicate a user-selected folder into an application-owned working copy.
- List and delete working copies ("projects") under the working root.

Guarantees:
- Duplicate is a full recursive copy; a stale copy of the same name is cleared first.
- No rollback of a partial copy (best effort; errors are reported as-is).
- Delete only ever touches directories inside the working root.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List
from pathlib import Path
import logging
import os
import shutil

from ..core.errors import FileOperationError

logger = logging.getLogger(__name__)

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

@dataclass
class ProjectDirectory:
    id: str
    name: str
    path: str
    size_bytes: int
    modified: str
    created: str

def working_root(data_dir: Path, working_dir_name: str) -> Path:
    root = Path(data_dir) / working_dir_name
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileOperationError(f"Failed to create working directory {root}: {e}") from e
    return root

def duplicate_directory(source: Path | str, root: Path | str) -> Path:
    """
    Copy source into <root>/<source name> and return that path.
    """
    src = Path(source).expanduser()
    if not src.exists():
        raise FileOperationError(f"Source directory does not exist: {src}")
    if not src.is_dir():
        raise FileOperationError(f"Source is not a directory: {src}")
    src = src.resolve()
    if not src.name:
        raise FileOperationError(f"Invalid source directory: {src}")

    root = Path(root)
    dest = root / src.name
    if root.resolve() in (src, *src.parents) or src in dest.resolve().parents:
        raise FileOperationError("Source directory overlaps the working directory")

    logger.info("Duplicating directory from %s to %s", src, dest)
    try:
        root.mkdir(parents=True, exist_ok=True)
        # Clear leftovers from a previous run of the same project
        if dest.exists():
            shutil.rmtree(dest)
        shutil.copytree(src, dest)
    except OSError as e:
        # shutil.Error is an OSError subclass; covers permission denied / disk full
        logger.error("Error copying directory %s: %s", src, e)
        raise FileOperationError(f"Failed to copy directory: {e}") from e

    logger.info("Using working directory: %s", dest)
    return dest

def _dir_size(path: Path) -> int:
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for fn in filenames:
            try:
                total += os.lstat(os.path.join(dirpath, fn)).st_size
            except OSError:
                continue
    return total

def _fmt_ts(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime(TIME_FORMAT)

def list_projects(root: Path | str) -> List[ProjectDirectory]:
    root = Path(root)
    if not root.exists():
        working_root(root.parent, root.name)
        return []

    out: List[ProjectDirectory] = []
    try:
        entries = sorted(root.iterdir())
    except OSError as e:
        raise FileOperationError(f"Failed to read working directory: {e}") from e

    for path in entries:
        if not path.is_dir():
            continue
        try:
            st = path.stat()
        except OSError:
            continue  # skip if we can't get metadata
        # st_birthtime where the platform has it; ctime otherwise
        created = getattr(st, "st_birthtime", st.st_ctime)
        out.append(ProjectDirectory(
            id=path.name,
            name=path.name,
            path=str(path.resolve()),
            size_bytes=_dir_size(path),
            modified=_fmt_ts(st.st_mtime),
            created=_fmt_ts(created),
        ))

    # newest first
    out.sort(key=lambda p: p.modified, reverse=True)
    return out

def ensure_within(root: Path | str, path: Path | str) -> Path:
    """Resolve path and refuse anything outside root."""
    root_r = Path(root).resolve()
    p = Path(path).resolve()
    if p != root_r and root_r not in p.parents:
        raise FileOperationError(f"Security error: path is outside the working directory: {path}")
    return p

def delete_project(root: Path | str, path: Path | str) -> None:
    p = Path(path)
    if not p.exists():
        raise FileOperationError(f"Directory does not exist: {path}")
    if not p.is_dir():
        raise FileOperationError(f"Path is not a directory: {path}")
    p = ensure_within(root, p)
    if p == Path(root).resolve():
        raise FileOperationError("Refusing to delete the working root itself")

    try:
        shutil.rmtree(p)
    except OSError as e:
        raise FileOperationError(f"Failed to delete directory: {e}") from e
    logger.info("Deleted project %s", p)

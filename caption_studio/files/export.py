"""
Purpose:
- Export the working directory to a user-chosen destination, either as a
  plain folder copy or as a single zip archive.
- Full copy every time: no dedup, no incremental export, no rollback.
"""

from __future__ import annotations
from datetime import datetime
from pathlib import Path
import logging
import os
import shutil
import zipfile

from ..core.errors import FileOperationError

logger = logging.getLogger(__name__)

def export_name(source: Path, prefix: str, now: datetime | None = None) -> str:
    ts = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_export_{source.name}_{ts}"

def zip_directory(src_dir: Path, zip_path: Path) -> int:
    """
    Deflate every file under src_dir into zip_path (entries relative to src_dir).
    Returns the number of files written.
    """
    if not src_dir.is_dir():
        raise FileOperationError(f"Source directory does not exist: {src_dir}")

    count = 0
    with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as z:
        for dirpath, dirnames, filenames in os.walk(src_dir):
            dirnames.sort()
            base = Path(dirpath)
            rel_dir = base.relative_to(src_dir)
            if rel_dir.parts:
                z.write(base, rel_dir.as_posix() + "/")
            for fn in sorted(filenames):
                full = base / fn
                if full.resolve() == zip_path.resolve():
                    continue  # archive written inside the source
                z.write(full, (rel_dir / fn).as_posix())
                count += 1
    return count

def export_directory(
    source_dir: Path | str,
    destination_dir: Path | str,
    as_zip: bool,
    prefix: str = "caption_studio",
) -> Path:
    src = Path(source_dir)
    if not src.is_dir():
        raise FileOperationError(f"Source directory does not exist: {src}")
    dest = Path(destination_dir)
    name = export_name(src, prefix)

    try:
        dest.mkdir(parents=True, exist_ok=True)
        if as_zip:
            zip_path = dest / f"{name}.zip"
            logger.info("Exporting to ZIP file: %s", zip_path)
            n = zip_directory(src, zip_path)
            logger.info("Wrote %d files to %s", n, zip_path)
            return zip_path

        export_dir = dest / name
        if src.resolve() in export_dir.resolve().parents:
            raise FileOperationError("Export destination is inside the working directory")
        logger.info("Exporting to directory: %s", export_dir)
        shutil.copytree(src, export_dir)
        return export_dir
    except FileOperationError:
        raise
    except (OSError, zipfile.BadZipFile) as e:
        kind = "ZIP file" if as_zip else "export directory"
        raise FileOperationError(f"Failed to create {kind}: {e}") from e

"""
Purpose:
- Crop / rotate / flip / trim media in the working directory, overwriting the original.
- Images are transformed in memory with Pillow.
- Videos are handed to ffmpeg; we only compute the filter chain and time range.

Overwrite protocol (every edit):
  1) copy original -> <stem>_backup<ext>
  2) write result   -> <stem>_temp<ext>
  3) replace original with temp; on failure restore from backup
  4) temp + backup are always removed
"""

from __future__ import annotations
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple
import base64
import binascii
import logging
import os
import re
import shutil
import tempfile
import threading
import time

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.errors import FileOperationError, MediaToolError, UserInputError
from . import ffmpeg
from .progress import ProgressCounter, trim_progress

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:image/[\w.+-]+;base64,(?P<data>.+)$", re.DOTALL)

# rotation (clockwise degrees) -> ffmpeg angle expression
_FFMPEG_ANGLES = {90: "PI/2", 180: "PI", 270: "3*PI/2"}

# Pillow transposes are counter-clockwise
_PIL_ROTATIONS = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}

class CropParams(BaseModel):
    """Crop rectangle in pixels of the rotated/flipped frame."""
    model_config = ConfigDict(populate_by_name=True)

    x: float = Field(..., ge=0)
    y: float = Field(..., ge=0)
    width: float = Field(..., gt=0)
    height: float = Field(..., gt=0)
    rotation: int = 0
    flip_h: bool = Field(default=False, alias="flipH")
    flip_v: bool = Field(default=False, alias="flipV")

    @field_validator("rotation")
    @classmethod
    def _quarter_turns(cls, v: int) -> int:
        v = v % 360
        if v not in (0, 90, 180, 270):
            raise ValueError("rotation must be a multiple of 90 degrees")
        return v

def modified_filename(path: Path, suffix: str) -> Path:
    """<stem><suffix><ext> next to path."""
    stem = path.stem or "file"
    return path.with_name(f"{stem}{suffix}{path.suffix}")

def _require_file(p: Path) -> None:
    if not p.is_file():
        raise FileOperationError(f"File does not exist: {p}")

def _remove_quietly(p: Path) -> None:
    try:
        p.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove %s: %s", p, e)

def _make_backup(p: Path) -> Path:
    backup = modified_filename(p, "_backup")
    try:
        shutil.copy2(p, backup)
    except OSError as e:
        raise FileOperationError(f"Failed to create backup of original file: {e}") from e
    return backup

def _replace_original(temp: Path, original: Path, backup: Path) -> None:
    try:
        if not temp.exists():
            raise MediaToolError(f"Failed to create edited file for {original.name}")
        os.replace(temp, original)
    except OSError as e:
        # best effort restore
        try:
            shutil.copy2(backup, original)
        except OSError as restore_err:
            logger.error("Restore from backup %s failed: %s", backup, restore_err)
        raise FileOperationError(f"Failed to replace original file: {e}") from e
    finally:
        _remove_quietly(temp)
        _remove_quietly(backup)

# ---------------------------
# Crop
# ---------------------------

def _even(v: float) -> int:
    n = int(v)
    return n - (n % 2)

def build_crop_filters(params: CropParams) -> str:
    """
    ffmpeg -vf chain: rotate, then flips, then crop.
    Output width/height are forced even (yuv420p).
    """
    filters = []
    if params.rotation:
        angle = _FFMPEG_ANGLES[params.rotation]
        filters.append(f"rotate={angle}:ow=rotw({angle}):oh=roth({angle})")
    if params.flip_h:
        filters.append("hflip")
    if params.flip_v:
        filters.append("vflip")

    w, h = _even(params.width), _even(params.height)
    if w <= 0 or h <= 0:
        raise UserInputError("Crop rectangle is too small")
    filters.append(f"crop={w}:{h}:{int(params.x)}:{int(params.y)}")
    return ",".join(filters)

def crop_video(path: Path | str, params: CropParams, ffmpeg_bin: str = "ffmpeg") -> Path:
    p = Path(path)
    _require_file(p)
    ffmpeg.require_ffmpeg(ffmpeg_bin, "video cropping")
    chain = build_crop_filters(params)

    temp = modified_filename(p, "_temp")
    backup = _make_backup(p)
    cmd = [
        ffmpeg_bin, "-y", "-i", str(p),
        "-vf", chain,
        "-c:a", "copy",          # audio untouched
        "-c:v", "libx264",
        "-preset", "medium",
        "-crf", "23",
        str(temp),
    ]
    try:
        proc = ffmpeg.run_tool(cmd)
    except MediaToolError:
        _remove_quietly(temp)
        _remove_quietly(backup)
        raise
    if proc.returncode != 0:
        logger.error("FFmpeg error (crop) for %s: %s", p, proc.stderr.decode("utf-8", "ignore"))
        _remove_quietly(temp)
        _remove_quietly(backup)
        raise MediaToolError("Failed to crop video. Check logs for details.")

    _replace_original(temp, p, backup)
    logger.info("Cropped video %s (%s)", p, chain)
    return p

def transform_image(img: Image.Image, params: CropParams) -> Image.Image:
    """Rotate (clockwise), flip, then crop; the rectangle is clamped to the image."""
    out = img
    if params.rotation:
        out = out.transpose(_PIL_ROTATIONS[params.rotation])
    if params.flip_h:
        out = out.transpose(Image.Transpose.FLIP_LEFT_RIGHT)
    if params.flip_v:
        out = out.transpose(Image.Transpose.FLIP_TOP_BOTTOM)

    w, h = out.size
    x0, y0 = int(round(params.x)), int(round(params.y))
    x1 = min(w, x0 + int(round(params.width)))
    y1 = min(h, y0 + int(round(params.height)))
    if x0 >= w or y0 >= h or x1 <= x0 or y1 <= y0:
        raise UserInputError(f"Crop rectangle is outside the image ({w}x{h})")
    return out.crop((x0, y0, x1, y1))

def crop_image(path: Path | str, params: CropParams) -> Path:
    p = Path(path)
    _require_file(p)
    try:
        with Image.open(p) as img:
            fmt = img.format
            img.load()
            out = transform_image(img, params)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise FileOperationError(f"Failed to open image: {e}") from e

    if fmt == "JPEG" and out.mode not in ("RGB", "L", "CMYK"):
        out = out.convert("RGB")
    save_kwargs = {"quality": 95} if fmt == "JPEG" else {}

    temp = modified_filename(p, "_temp")
    backup = _make_backup(p)
    try:
        out.save(temp, format=fmt, **save_kwargs)
    except (OSError, ValueError, KeyError) as e:
        _remove_quietly(temp)
        _remove_quietly(backup)
        raise FileOperationError(f"Failed to write cropped image: {e}") from e

    _replace_original(temp, p, backup)
    return p

def decode_data_url(data_url: str) -> bytes:
    m = _DATA_URL_RE.match(data_url or "")
    if not m:
        raise UserInputError("Invalid data URL format")
    try:
        return base64.b64decode(m.group("data"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise UserInputError(f"Failed to decode base64 data: {e}") from e

def save_cropped_image(path: Path | str, data_url: str) -> Path:
    """Overwrite an image with an already-cropped data URL from the UI."""
    p = Path(path)
    _require_file(p)
    data = decode_data_url(data_url)
    try:
        with Image.open(BytesIO(data)) as probe:
            probe.verify()
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise UserInputError(f"Data URL is not a readable image: {e}") from e

    backup = _make_backup(p)
    try:
        p.write_bytes(data)
    except OSError as e:
        try:
            shutil.copy2(backup, p)
        except OSError as restore_err:
            logger.error("Restore from backup %s failed: %s", backup, restore_err)
        raise FileOperationError(f"Failed to write cropped image: {e}") from e
    finally:
        _remove_quietly(backup)
    return p

# ---------------------------
# Trim
# ---------------------------

def select_encoder(codec: Optional[str]) -> Tuple[str, str, str]:
    """(encoder, crf, preset) close to the source codec."""
    if codec in ("hevc", "hvc1"):
        return "libx265", "22", "medium"  # HEVC uses a different CRF scale
    if codec == "vp9":
        return "libvpx-vp9", "18", "good"
    if codec == "av1":
        return "libaom-av1", "20", "medium"
    return "libx264", "18", "medium"

_FFMPEG_ERRORS = [
    ("Invalid data found when processing input", "The video file might be corrupted or in an unsupported format."),
    ("No such file or directory", "Input file could not be accessed."),
    ("Permission denied", "Permission denied when accessing files."),
    ("error while decoding", "The video decoder encountered an error, possibly corrupt frames."),
    ("does not contain any stream", "The file doesn't appear to contain valid video streams."),
]

def ffmpeg_error_message(stderr: str, action: str = "trim video") -> str:
    for needle, msg in _FFMPEG_ERRORS:
        if needle in stderr:
            return f"Failed to {action}: {msg}"
    return f"Failed to {action}: Check console logs for details."

def _read_out_time(progress_file: Path) -> Optional[float]:
    """Latest out_time_ms (microseconds, despite the name) in seconds."""
    try:
        text = progress_file.read_text(encoding="utf-8", errors="ignore")
    except OSError:
        return None
    for line in reversed(text.splitlines()):
        if line.startswith("out_time_ms="):
            try:
                return float(line.split("=", 1)[1]) / 1_000_000.0
            except ValueError:
                return None
    return None

def _watch_progress(proc, progress_file: Path, duration: float,
                    progress: ProgressCounter, poll_interval: float) -> None:
    last = 0.0
    while proc.poll() is None:
        time.sleep(poll_interval)
        t = _read_out_time(progress_file)
        if t is None:
            continue
        pct = min(99.0, t / duration * 100.0)
        # only publish meaningful changes
        if pct - last >= 1.0:
            progress.set(int(pct))
            last = pct

def trim_video(
    path: Path | str,
    start_time: float,
    end_time: float,
    progress: Optional[ProgressCounter] = None,
    ffmpeg_bin: str = "ffmpeg",
    ffprobe_bin: str = "ffprobe",
    poll_interval: float = 0.2,
) -> Path:
    """
    Frame-accurate trim (re-encode) of [start_time, end_time) seconds, overwriting the file.
    Progress is published to `progress` (0..100, -1 on failure).
    """
    progress = progress if progress is not None else trim_progress
    progress.reset()

    if start_time < 0:
        raise UserInputError("Start time cannot be negative")
    if end_time <= start_time:
        raise UserInputError("End time must be greater than start time")

    p = Path(path)
    _require_file(p)
    ffmpeg.require_ffmpeg(ffmpeg_bin, "video trimming")

    duration = end_time - start_time
    source_codec = ffmpeg.probe_video_codec(p, ffprobe_bin=ffprobe_bin)
    encoder, crf, preset = select_encoder(source_codec)
    logger.info("Original codec: %s, using encoder: %s with CRF: %s", source_codec, encoder, crf)
    logger.info("Trimming video %s from %s to %s (duration: %s)", p, start_time, end_time, duration)

    temp = modified_filename(p, "_temp")
    backup = _make_backup(p)

    with tempfile.TemporaryDirectory(prefix="caption_studio_trim_") as tmp, \
            tempfile.TemporaryFile() as errf:
        progress_file = Path(tmp) / "progress.txt"
        cmd = [
            ffmpeg_bin, "-y", "-v", "verbose",
            "-ss", str(start_time),
            "-i", str(p),
            "-t", str(duration),
            "-c:v", encoder,
            "-crf", crf,
            "-preset", preset,
            "-c:a", "aac",
            "-b:a", "192k",
            "-pix_fmt", "yuv420p",
            "-movflags", "+faststart",
            "-progress", str(progress_file),
            str(temp),
        ]
        try:
            proc = ffmpeg.spawn(cmd, stderr=errf)
        except MediaToolError:
            _remove_quietly(temp)
            _remove_quietly(backup)
            progress.set(-1)
            raise

        watcher = threading.Thread(
            target=_watch_progress,
            args=(proc, progress_file, duration, progress, poll_interval),
            daemon=True,
        )
        watcher.start()
        returncode = proc.wait()
        watcher.join()

        if returncode != 0:
            errf.seek(0)
            stderr = errf.read().decode("utf-8", "ignore")
            logger.error("FFmpeg trim failed (exit code %s) for %s:\n%s", returncode, p, stderr)
            _remove_quietly(temp)
            _remove_quietly(backup)
            progress.set(-1)
            raise MediaToolError(ffmpeg_error_message(stderr, "trim video"))

    try:
        _replace_original(temp, p, backup)
    except (FileOperationError, MediaToolError):
        progress.set(-1)
        raise
    progress.set(100)
    return p

"""
Purpose:
- Thin wrappers around the ffmpeg / ffprobe binaries.
- Everything that shells out goes through run_tool() so callers (and tests)
  have a single seam.

System requirements:
- ffmpeg + ffprobe on PATH (or configured via settings.ffmpeg_bin / ffprobe_bin)
"""

from __future__ import annotations
from pathlib import Path
from typing import List, Optional
import logging
import shutil
import subprocess

from ..core.errors import MediaToolError

logger = logging.getLogger(__name__)

def ffmpeg_available(ffmpeg_bin: str = "ffmpeg") -> bool:
    return shutil.which(ffmpeg_bin) is not None

def require_ffmpeg(ffmpeg_bin: str, feature: str) -> None:
    if not ffmpeg_available(ffmpeg_bin):
        raise MediaToolError(
            f"FFmpeg is not installed or not in PATH. Please install FFmpeg to enable {feature}."
        )

def run_tool(cmd: List[str]) -> subprocess.CompletedProcess:
    """Run a media tool to completion, capturing stdout/stderr as bytes."""
    logger.debug("Running: %s", " ".join(cmd))
    try:
        return subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=False)
    except OSError as e:
        raise MediaToolError(f"Failed to run {cmd[0]}: {e}") from e

def spawn(cmd: List[str], stderr) -> subprocess.Popen:
    """Start a long-running media tool; stderr goes to the given file object."""
    logger.debug("Spawning: %s", " ".join(cmd))
    try:
        return subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=stderr)
    except OSError as e:
        raise MediaToolError(f"Failed to run {cmd[0]}: {e}") from e

def extract_first_frame(video: Path, out_path: Path, ffmpeg_bin: str = "ffmpeg") -> Path:
    """Write the first video frame to out_path (JPEG)."""
    require_ffmpeg(ffmpeg_bin, "video thumbnails")
    proc = run_tool([
        ffmpeg_bin, "-y", "-i", str(video),
        "-vframes", "1", "-q:v", "2",
        str(out_path),
    ])
    if proc.returncode != 0:
        err = proc.stderr.decode("utf-8", "ignore").strip()
        logger.error("ffmpeg frame extraction failed for %s: %s", video, err)
        last = err.splitlines()[-1] if err else "unknown error"
        raise MediaToolError(f"Failed to extract video frame: {last}")
    if not out_path.exists():
        raise MediaToolError("Failed to extract video frame")
    return out_path

def probe_video_codec(path: Path, ffprobe_bin: str = "ffprobe") -> Optional[str]:
    """
    Return the codec name of the first video stream, or None if it can't be probed.
    """
    try:
        proc = run_tool([
            ffprobe_bin, "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=codec_name,width,height,r_frame_rate,bit_rate",
            "-of", "csv=p=0",
            str(path),
        ])
    except MediaToolError as e:
        logger.warning("Failed to probe video details: %s", e)
        return None
    if proc.returncode != 0:
        return None
    info = proc.stdout.decode("utf-8", "ignore").strip()
    if not info:
        return None
    return info.splitlines()[0].split(",")[0].strip() or None

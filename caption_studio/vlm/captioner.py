"""
Purpose:
- Caption media through an external vision chat API (OpenAI-compatible or Gemini).
- The image (or a video frame) travels inline as base64; the reply text is the caption.
- Batches issue one request per file on a small worker pool; a failing file is
  reported on its own result and never stops the batch.

Notes:
- Provider: preferred_provider from the user's settings, except videos go to
  Gemini when use_gemini_for_videos is on.
- Videos: a frame data URL from the UI wins; otherwise ffmpeg extracts the first frame.
"""

from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import base64
import logging
import tempfile

import httpx
from PIL import Image, ImageOps
from pydantic import BaseModel

from ..core.errors import CaptionApiError, CaptionStudioError, FileOperationError, UserInputError
from ..core.logging import redact_context
from ..core.preferences import CaptionSettings
from ..core.settings import settings
from ..files.captions import write_caption
from ..files.media import classify
from ..media import ffmpeg

logger = logging.getLogger(__name__)

class CaptionResult(BaseModel):
    path: str
    caption: str = ""
    ok: bool = True
    error: Optional[str] = None

# ---------------------------
# Image encoding
# ---------------------------

def encode_image_data_url(path: Path | str, quality: int = 90) -> str:
    """Re-encode any readable image as an RGB JPEG data URL."""
    p = Path(path)
    if not p.exists():
        raise FileOperationError(f"File not found: {p}")
    try:
        with Image.open(p) as img:
            rgb = ImageOps.exif_transpose(img).convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise FileOperationError(f"Failed to create data URL: {e}") from e
    buf = BytesIO()
    rgb.save(buf, format="JPEG", quality=quality)
    return "data:image/jpeg;base64," + base64.b64encode(buf.getvalue()).decode("ascii")

def split_data_url(data_url: str) -> Tuple[str, str]:
    """data:<mime>;base64,<data> -> (mime, data)."""
    head, sep, data = (data_url or "").partition(",")
    if not sep or not head.startswith("data:") or ";base64" not in head:
        raise UserInputError("Invalid data URL format")
    return head[len("data:"):].split(";", 1)[0], data

def media_data_url(path: Path | str, video_frame_url: Optional[str] = None,
                   ffmpeg_bin: str = "ffmpeg") -> str:
    p = Path(path)
    if classify(p) != "video":
        return encode_image_data_url(p)
    if video_frame_url:
        split_data_url(video_frame_url)  # validate
        return video_frame_url
    if not p.exists():
        raise FileOperationError(f"File not found: {p}")
    with tempfile.TemporaryDirectory(prefix="caption_studio_frame_") as tmp:
        frame = ffmpeg.extract_first_frame(p, Path(tmp) / "frame.jpg", ffmpeg_bin=ffmpeg_bin)
        return encode_image_data_url(frame)

# ---------------------------
# Wire formats
# ---------------------------

def build_openai_payload(prompt: str, data_url: str, model: str, image_detail: str,
                         use_detail_parameter: bool, max_tokens: int = 300,
                         temperature: float = 0.7) -> Dict[str, Any]:
    image_url: Dict[str, Any] = {"url": data_url}
    if use_detail_parameter:
        image_url["detail"] = image_detail
    return {
        "model": model,
        "messages": [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {"type": "image_url", "image_url": image_url},
                ],
            }
        ],
        "max_tokens": max_tokens,
        "temperature": temperature,
    }

def build_gemini_payload(prompt: str, data_url: str, system_instruction: str = "",
                         max_tokens: int = 300, temperature: float = 0.7) -> Dict[str, Any]:
    mime, data = split_data_url(data_url)
    payload: Dict[str, Any] = {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"text": prompt},
                    {"inline_data": {"mime_type": mime, "data": data}},
                ],
            }
        ],
        "generationConfig": {"maxOutputTokens": max_tokens, "temperature": temperature},
    }
    if system_instruction.strip():
        payload["system_instruction"] = {"parts": [{"text": system_instruction}]}
    return payload

def parse_openai_response(body: Any) -> str:
    try:
        choices = body["choices"]
    except (KeyError, TypeError) as e:
        raise CaptionApiError(f"Failed to parse API response: missing {e}") from e
    if not choices:
        raise CaptionApiError("No caption generated")
    try:
        content = choices[0]["message"]["content"]
    except (KeyError, TypeError, IndexError) as e:
        raise CaptionApiError(f"Failed to parse API response: missing {e}") from e
    if not isinstance(content, str):
        raise CaptionApiError("Failed to parse API response: content is not text")
    return content

def parse_gemini_response(body: Any) -> str:
    try:
        candidates = body["candidates"]
    except (KeyError, TypeError) as e:
        raise CaptionApiError(f"Failed to parse API response: missing {e}") from e
    if not candidates:
        raise CaptionApiError("No caption generated")
    try:
        parts = candidates[0]["content"]["parts"]
    except (KeyError, TypeError, IndexError) as e:
        raise CaptionApiError(f"Failed to parse API response: missing {e}") from e
    texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
    if not texts:
        raise CaptionApiError("No caption generated")
    return "".join(texts)

# ---------------------------
# Client
# ---------------------------

class CaptionClient:
    def __init__(
        self,
        prefs: CaptionSettings,
        http: Optional[httpx.Client] = None,
        timeout: float = 30.0,
        max_tokens: int = 300,
        temperature: float = 0.7,
        gemini_endpoint: str = "https://generativelanguage.googleapis.com/v1beta",
        ffmpeg_bin: str = "ffmpeg",
    ):
        self.prefs = prefs
        self.http = http or httpx.Client(timeout=timeout)
        self._owns_http = http is None
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.gemini_endpoint = gemini_endpoint.rstrip("/")
        self.ffmpeg_bin = ffmpeg_bin

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "CaptionClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def provider_for(self, path: Path | str) -> str:
        if self.prefs.use_gemini_for_videos and classify(path) == "video":
            return "gemini"
        return self.prefs.preferred_provider

    def _post(self, url: str, payload: Dict[str, Any], headers: Dict[str, str],
              params: Optional[Dict[str, str]] = None) -> Any:
        try:
            resp = self.http.post(url, json=payload, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise CaptionApiError(f"API request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise CaptionApiError(f"API request failed: {e}") from e

        if not resp.is_success:
            text = resp.text or "Unknown error"
            raise CaptionApiError(f"API request failed with status {resp.status_code}: {text}")
        try:
            return resp.json()
        except ValueError as e:
            raise CaptionApiError(f"Failed to parse API response: {e}") from e

    def _caption_openai(self, data_url: str) -> str:
        p = self.prefs
        if not p.api_key:
            raise UserInputError("No API key configured for the OpenAI-compatible endpoint")
        payload = build_openai_payload(
            p.caption_prompt, data_url, p.model, p.image_detail, p.use_detail_parameter,
            max_tokens=self.max_tokens, temperature=self.temperature,
        )
        headers = {"Authorization": f"Bearer {p.api_key}", "Content-Type": "application/json"}
        return parse_openai_response(self._post(p.api_url, payload, headers))

    def _caption_gemini(self, data_url: str) -> str:
        p = self.prefs
        if not p.gemini_api_key:
            raise UserInputError("No Gemini API key configured")
        payload = build_gemini_payload(
            p.caption_prompt, data_url, p.gemini_system_instruction,
            max_tokens=self.max_tokens, temperature=self.temperature,
        )
        url = f"{self.gemini_endpoint}/models/{p.gemini_model}:generateContent"
        return parse_gemini_response(
            self._post(url, payload, {"Content-Type": "application/json"}, params={"key": p.gemini_api_key})
        )

    def caption(self, path: Path | str, video_frame_url: Optional[str] = None) -> str:
        provider = self.provider_for(path)
        data_url = media_data_url(path, video_frame_url, ffmpeg_bin=self.ffmpeg_bin)
        logger.info("Caption request %s", redact_context({
            "path": str(path),
            "provider": provider,
            "model": self.prefs.gemini_model if provider == "gemini" else self.prefs.model,
            "api_key": self.prefs.gemini_api_key if provider == "gemini" else self.prefs.api_key,
            "image": data_url,
        }))
        if provider == "gemini":
            return self._caption_gemini(data_url)
        return self._caption_openai(data_url)

    def caption_many(self, paths: List[str], workers: int = 4, save: bool = False) -> List[CaptionResult]:
        """
        One request per file, `workers` in flight. Always len(paths) results, input order.
        """
        if not paths:
            raise UserInputError("No files selected")

        def _one(path: str) -> CaptionResult:
            try:
                text = self.caption(path)
            except CaptionStudioError as e:
                logger.warning("Caption failed for %s: %s", path, e)
                return CaptionResult(path=path, caption=f"Error: {e}", ok=False, error=str(e))
            if save:
                try:
                    write_caption(path, text)
                except FileOperationError as e:
                    return CaptionResult(path=path, caption=text, ok=False,
                                         error=f"Caption generated but not saved: {e}")
            return CaptionResult(path=path, caption=text)

        with ThreadPoolExecutor(max_workers=max(1, int(workers))) as pool:
            return list(pool.map(_one, paths))

def get_caption_client(prefs: CaptionSettings, http: Optional[httpx.Client] = None) -> CaptionClient:
    """Client wired to the service settings (timeouts, token budget, endpoints)."""
    return CaptionClient(
        prefs,
        http=http,
        timeout=settings.http_timeout_seconds,
        max_tokens=settings.caption_max_tokens,
        temperature=settings.caption_temperature,
        gemini_endpoint=settings.gemini_endpoint,
        ffmpeg_bin=settings.ffmpeg_bin,
    )

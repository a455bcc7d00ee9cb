"""
Purpose:
- User caption settings (endpoint, key, model, prompt, detail level, provider).
- Persisted as a flat JSON document under the data dir; last saved wins.

Behavior:
- Missing file -> defaults are written and returned.
- Older documents without newer fields are migrated (defaults filled, rewritten).
- Unreadable/invalid documents never raise; defaults are returned and logged.
"""

from __future__ import annotations
import json
import logging
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError

from .errors import FileOperationError, UserInputError

logger = logging.getLogger(__name__)

ImageDetailLevel = Literal["auto", "low", "high"]
Provider = Literal["openai", "gemini"]


class CaptionSettings(BaseModel):
    api_url: str = Field(default="https://api.openai.com/v1/chat/completions")
    api_key: str = ""
    caption_prompt: str = Field(default="Describe this image in detail:")
    model: str = Field(default="gpt-4o-2024-05-13")
    image_detail: ImageDetailLevel = "auto"
    use_detail_parameter: bool = True
    preferred_provider: Provider = "openai"
    gemini_api_key: str = ""
    gemini_model: str = Field(default="gemini-2.0-flash")
    gemini_system_instruction: str = ""
    use_gemini_for_videos: bool = False


def save_preferences(path: Path, prefs: CaptionSettings) -> CaptionSettings:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(prefs.model_dump(), indent=2), encoding="utf-8")
    except OSError as e:
        raise FileOperationError(f"Failed to save settings: {e}") from e
    return prefs


def load_preferences(path: Path) -> CaptionSettings:
    if not path.exists():
        return save_preferences(path, CaptionSettings())

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("settings document is not an object")
        prefs = CaptionSettings.model_validate(raw)
    except (OSError, ValueError, ValidationError) as e:
        logger.error("Failed to load settings from %s: %s", path, e)
        return CaptionSettings()

    # Migration: rewrite when the stored document lacks newer fields
    missing = set(CaptionSettings.model_fields) - set(raw)
    if missing:
        logger.info("Migrating settings, adding defaults for: %s", ", ".join(sorted(missing)))
        save_preferences(path, prefs)
    return prefs


def update_preference(path: Path, key: str, value: Any) -> CaptionSettings:
    if key not in CaptionSettings.model_fields:
        raise UserInputError(f"Unknown setting: {key}")
    current = load_preferences(path).model_dump()
    current[key] = value
    try:
        prefs = CaptionSettings.model_validate(current)
    except ValidationError as e:
        raise UserInputError(f"Invalid value for {key}: {e.errors()[0].get('msg', e)}") from e
    return save_preferences(path, prefs)

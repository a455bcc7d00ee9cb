"""
Purpose:
- /api/v1/settings: the user's caption settings (endpoint, key, model, prompt, provider).
"""

from typing import Any
from fastapi import APIRouter
from pydantic import BaseModel
from ..core.errors import CaptionStudioError
from ..core.preferences import CaptionSettings, load_preferences, save_preferences, update_preference
from ..core.settings import settings

router = APIRouter(prefix="/api/v1/settings", tags=["settings"])

class SettingIn(BaseModel):
    key: str
    value: Any = None

@router.get("")
def get_settings():
    try:
        return {"ok": True, "settings": load_preferences(settings.preferences_path).model_dump()}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"load-settings-failed: {e}"}

@router.put("")
def put_settings(payload: CaptionSettings):
    try:
        saved = save_preferences(settings.preferences_path, payload)
        return {"ok": True, "settings": saved.model_dump()}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"save-settings-failed: {e}"}

@router.patch("")
def patch_setting(payload: SettingIn):
    try:
        saved = update_preference(settings.preferences_path, payload.key, payload.value)
        return {"ok": True, "settings": saved.model_dump()}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"update-setting-failed: {e}"}

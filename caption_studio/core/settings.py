"""
Purpose:
- Centralized service configuration using pydantic-settings.
- Reads from environment variables and optional .env file.
- Keeps paths, batch sizes and tool locations tunable without code changes.

Notes:
- User-facing caption settings (API key, prompt, model...) are NOT here;
  they are persisted as JSON by core/preferences.py.
"""

# --- Purpose: robust settings with env-file support and safe handling of extra keys.
from typing import List
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Pydantic v2 config (env file + ignore unexpected env vars)
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CAPTION_STUDIO_",
        extra="ignore",          # <-- prevents crashes if extra env vars exist
    )

    # API host/port
    host: str = Field(default="127.0.0.1", description="Bind address for FastAPI/Uvicorn")
    port: int = Field(default=8000, description="Port for FastAPI/Uvicorn")

    # CORS
    cors_allow_origins: List[str] = Field(
        default=["http://localhost:1420", "http://localhost:3000", "http://127.0.0.1:5173"],
        description="Allowed origins for the UI layer"
    )

    # Application data root; working copies live under data_dir/working_dir_name
    data_dir: Path = Field(
        default=Path("./data"),
        description="Application data directory (working copies, preferences)"
    )
    working_dir_name: str = Field(default="working")
    preferences_file: str = Field(default="settings.json", description="Caption settings JSON under data_dir")
    export_prefix: str = Field(default="caption_studio")

    # ---- Thumbnails ----
    thumbnail_max_size: int = Field(default=100)
    thumbnail_batch_size: int = Field(default=5)       # files decoded concurrently per batch
    thumbnail_cache_entries: int = Field(default=500)

    # ---- Caption generation ----
    caption_batch_workers: int = Field(default=4)      # concurrent requests per batch
    caption_max_tokens: int = Field(default=300)
    caption_temperature: float = Field(default=0.7)
    http_timeout_seconds: float = Field(default=30.0)
    gemini_endpoint: str = Field(default="https://generativelanguage.googleapis.com/v1beta")

    # ---- External media tool ----
    ffmpeg_bin: str = Field(default="ffmpeg")
    ffprobe_bin: str = Field(default="ffprobe")

    log_level: str = Field(default="INFO")

    @property
    def working_root(self) -> Path:
        return Path(self.data_dir) / self.working_dir_name

    @property
    def preferences_path(self) -> Path:
        return Path(self.data_dir) / self.preferences_file

settings = Settings()

"""
Purpose:
- Sanity-check critical library versions and media tools after upgrades.
- Import the exact modules we use and print versions so we can spot drift immediately.
"""

import shutil
import sys
import fastapi
import uvicorn
import pydantic
import httpx
import PIL
from PIL import Image, features
from pydantic_settings import BaseSettings

print("python", sys.version)
print("fastapi", fastapi.__version__)
print("uvicorn", uvicorn.__version__)
print("pydantic", pydantic.VERSION)
print("pydantic-settings", BaseSettings.__module__.split(".")[0])  # presence check
print("httpx", httpx.__version__)
print("pillow", PIL.__version__, "webp" if features.check("webp") else "no-webp")
# thumbnails rely on draft() + LANCZOS being present
Image.new("RGB", (8, 8)).thumbnail((4, 4), Image.Resampling.LANCZOS)
for tool in ("ffmpeg", "ffprobe"):
    print(tool, shutil.which(tool) or "missing (video crop/trim/thumbnails disabled)")
print("OK")

"""
Purpose:
- FastAPI application factory and router mounts.
- Adds CORS for the local UI dev server.
- `caption-studio` (run) serves this with uvicorn on settings.host:settings.port.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .core.logging import configure_logging
from .core.settings import settings
from .api.health import router as health_router
from .api.projects import router as projects_router
from .api.files import router as files_router
from .api.captions import router as captions_router
from .api.vlm import router as vlm_router
from .api.media import router as media_router
from .api.export import router as export_router
from .api.preferences import router as preferences_router

def create_app() -> FastAPI:
    configure_logging(settings.log_level)
    app = FastAPI(title="Caption Studio API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(health_router)
    app.include_router(projects_router)
    app.include_router(files_router)
    app.include_router(captions_router)
    app.include_router(vlm_router)
    app.include_router(media_router)
    app.include_router(export_router)
    app.include_router(preferences_router)
    return app

app = create_app()

def run():
    import uvicorn
    uvicorn.run("caption_studio.main:app", host=settings.host, port=settings.port)

"""
Purpose:
- /api/v1/projects: duplicate a source folder into a working copy, list and delete working copies.
"""

from dataclasses import asdict
from fastapi import APIRouter
from pydantic import BaseModel, Field
from ..core.errors import CaptionStudioError
from ..core.settings import settings
from ..files.projects import working_root, duplicate_directory, list_projects, delete_project
from ..files.media import list_media_files

router = APIRouter(prefix="/api/v1/projects", tags=["projects"])

class DuplicateIn(BaseModel):
    source: str = Field(..., min_length=1, description="Folder the user picked")

class ProjectPathIn(BaseModel):
    path: str = Field(..., min_length=1)

def _root():
    return working_root(settings.data_dir, settings.working_dir_name)

@router.post("")
def create_project(payload: DuplicateIn):
    """
    Duplicate the source folder and return the working copy with its media listing.
    """
    try:
        working = duplicate_directory(payload.source, _root())
        files = list_media_files(working)
        return {
            "ok": True,
            "source_directory": payload.source,
            "working_directory": str(working.resolve()),
            "count": len(files),
            "files": [asdict(f) for f in files],
        }
    except CaptionStudioError as e:
        return {"ok": False, "error": f"duplicate-failed: {e}"}

@router.get("")
def get_projects():
    try:
        projects = list_projects(_root())
        return {"ok": True, "count": len(projects), "projects": [asdict(p) for p in projects]}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"list-projects-failed: {e}"}

@router.delete("")
def remove_project(payload: ProjectPathIn):
    try:
        delete_project(_root(), payload.path)
        return {"ok": True, "path": payload.path}
    except CaptionStudioError as e:
        return {"ok": False, "error": f"delete-project-failed: {e}"}

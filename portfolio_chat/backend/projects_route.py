"""Project showcase CRUD."""

from typing import Optional

from fastapi import APIRouter, Query

from portfolio_chat.backend.schemas import ProjectCreateRequest, ProjectUpdateRequest
from portfolio_chat.memory import crud
from portfolio_chat.utils.error_handler import ApiError
from portfolio_chat.utils.feature_flags import is_feature_enabled

router = APIRouter(tags=["projects"])


def _record(event_type: str, project_id: str) -> None:
    if is_feature_enabled("record_telemetry"):
        crud.record_event(event_type, {"projectId": project_id})


@router.get("/api/projects")
def get_projects(project_id: Optional[str] = Query(default=None, alias="id")):
    if project_id:
        project = crud.find_project(project_id)
        if not project:
            raise ApiError(404, "Project not found")
        return {"project": project, "success": True}

    return {"projects": crud.find_all_projects(), "success": True}


@router.post("/api/projects")
def create_project(req: ProjectCreateRequest):
    if not req.title:
        raise ApiError(400, "Title is required")

    project = crud.create_project(req.title, req.description or None, req.content or None)
    _record("project_created", project["id"])
    return {"project": project, "success": True}


@router.put("/api/projects")
def update_project(req: ProjectUpdateRequest):
    if not req.id:
        raise ApiError(400, "Project ID is required")

    project = crud.update_project(
        req.id,
        title=req.title,
        description=req.description,
        content=req.content,
    )
    if not project:
        raise ApiError(404, "Project not found")

    _record("project_updated", req.id)
    return {"project": project, "success": True}


@router.delete("/api/projects")
def delete_project(project_id: Optional[str] = Query(default=None, alias="id")):
    if not project_id:
        raise ApiError(400, "Project ID is required")

    if not crud.delete_project(project_id):
        raise ApiError(404, "Project not found")

    _record("project_deleted", project_id)
    return {"success": True, "message": "Project deleted"}

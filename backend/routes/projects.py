"""Project CRUD routes: list, create, get, update, delete, export."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Query, Response, status

from backend.models.project import CreateProjectRequest, ProjectResponse, UpdateProjectRequest
from backend.routes.export import download_response, style_map_or_422
from backend.services.sessions import session_manager
from engine.core.exporters import EXPORT_FORMATS, FORMAT_HTML, export_document
from engine.core.store import StoreError
from engine.core.types import DEFAULT_REFERENCE_WIDTH, MIN_REFERENCE_WIDTH, Project

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


def _store_unavailable(e: StoreError) -> HTTPException:
    logger.error("projects: store failure: %s", e)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Project store unavailable.")


async def _get_or_404(project_id: int) -> Project:
    try:
        project = await session_manager.store.get(project_id)
    except StoreError as e:
        raise _store_unavailable(e) from e
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
    return project


@router.get("", status_code=200)
async def list_projects() -> list[ProjectResponse]:
    """List all projects, most recently updated first."""
    try:
        projects = await session_manager.store.list()
    except StoreError as e:
        raise _store_unavailable(e) from e
    return [ProjectResponse.from_model(p) for p in projects]


@router.post("", status_code=201)
async def create_project(req: CreateProjectRequest) -> ProjectResponse:
    """Create a project. Styles default to the starter theme."""
    styles = style_map_or_422(req.styles)
    try:
        project = await session_manager.store.save(
            Project(name=req.name, markdown=req.markdown, styles=styles.to_dict())
        )
    except StoreError as e:
        raise _store_unavailable(e) from e
    return ProjectResponse.from_model(project)


@router.get("/{project_id}", status_code=200)
async def get_project(project_id: int) -> ProjectResponse:
    """Get a single project by ID."""
    return ProjectResponse.from_model(await _get_or_404(project_id))


@router.put("/{project_id}", status_code=200)
async def update_project(project_id: int, req: UpdateProjectRequest) -> ProjectResponse:
    """Update a project's name, markdown or styles."""
    project = await _get_or_404(project_id)
    if req.name is not None:
        project.name = req.name
    if req.markdown is not None:
        project.markdown = req.markdown
    if req.styles is not None:
        project.styles = style_map_or_422(req.styles).to_dict()
    try:
        project = await session_manager.store.save(project)
    except StoreError as e:
        raise _store_unavailable(e) from e
    return ProjectResponse.from_model(project)


@router.delete("/{project_id}", status_code=204)
async def delete_project(project_id: int) -> None:
    """Delete a project permanently."""
    try:
        deleted = await session_manager.store.delete(project_id)
    except StoreError as e:
        raise _store_unavailable(e) from e
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")


@router.get("/{project_id}/export/{fmt}", status_code=200)
async def export_project(
    project_id: int,
    fmt: str,
    relative: bool = False,
    reference_width: int = Query(default=DEFAULT_REFERENCE_WIDTH, ge=MIN_REFERENCE_WIDTH),
) -> Response:
    """Download a saved project as a project file, Markdown with frontmatter, or HTML."""
    if fmt not in EXPORT_FORMATS:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown export format.")
    project = await _get_or_404(project_id)
    styles = style_map_or_422(project.styles)

    options = {}
    if fmt == FORMAT_HTML:
        options = {"relative": relative, "reference_width": reference_width, "title": project.name}
    body = export_document(fmt, project.markdown, styles, **options)
    return download_response(fmt, body)

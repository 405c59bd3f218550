"""
Pydantic models for Markstyle.

All HTTP data shapes defined here. No imports from db, repos, or routes.
"""

from backend.models.project import (
    CreateProjectRequest,
    CssRequest,
    ExportRequest,
    ImportResponse,
    ProjectResponse,
    StylesPayload,
    UpdateProjectRequest,
)

__all__ = [
    "CreateProjectRequest",
    "UpdateProjectRequest",
    "ProjectResponse",
    "ExportRequest",
    "CssRequest",
    "ImportResponse",
    "StylesPayload",
]

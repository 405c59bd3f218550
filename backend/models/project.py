"""Project and export models for the HTTP API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, FiniteFloat

from engine.core.types import DEFAULT_REFERENCE_WIDTH, MIN_REFERENCE_WIDTH, Project

# ElementKey -> CSS property -> value. Keys are checked against the style model
# by the routes, which answer 422 for unknown element keys.
StylesPayload = dict[str, dict[str, str | int | FiniteFloat]]


class CreateProjectRequest(BaseModel):
    """What the client sends to create a project. Styles default to the starter theme."""

    model_config = {"extra": "forbid"}

    name: str = Field(min_length=1, max_length=200)
    markdown: str = ""
    styles: StylesPayload | None = None


class UpdateProjectRequest(BaseModel):
    """What the client sends to update a project. All fields optional."""

    model_config = {"extra": "forbid"}

    name: str | None = Field(default=None, min_length=1, max_length=200)
    markdown: str | None = None
    styles: StylesPayload | None = None


class ProjectResponse(BaseModel):
    """What the API returns."""

    id: int
    name: str
    markdown: str
    styles: StylesPayload
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, project: Project) -> ProjectResponse:
        """Convert the engine Project to the public API response."""
        return cls(
            id=project.id,
            name=project.name,
            markdown=project.markdown,
            styles=project.styles,
            created_at=project.created_at,
            updated_at=project.updated_at,
        )


class ExportRequest(BaseModel):
    """An unsaved document to export."""

    model_config = {"extra": "forbid"}

    markdown: str = ""
    styles: StylesPayload | None = None
    relative_unit_mode: bool = False
    reference_width: int = Field(default=DEFAULT_REFERENCE_WIDTH, ge=MIN_REFERENCE_WIDTH)
    title: str = Field(default="Export", max_length=200)


class CssRequest(BaseModel):
    """Style map to turn into a stylesheet."""

    model_config = {"extra": "forbid"}

    styles: StylesPayload
    relative_unit_mode: bool = False
    reference_width: int = Field(default=DEFAULT_REFERENCE_WIDTH, ge=MIN_REFERENCE_WIDTH)


class ImportResponse(BaseModel):
    """Result of importing a project file or a Markdown file."""

    markdown: str
    styles: StylesPayload | None
    format: str

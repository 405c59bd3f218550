"""
Markstyle Core: Project Store

Abstract persistence interface for saved projects. Implement with Postgres
for production (backend.repos.project_repo), or in memory for tests and
single-process development.
"""

from __future__ import annotations

import copy
from datetime import UTC, datetime

from engine.core.types import Project


class StoreError(Exception):
    """The store could not complete a save, load or delete."""
    pass


class ProjectStore:
    """
    Keyed project records, listed newest first by updated_at.
    """

    async def save(self, project: Project) -> Project:
        """
        Insert when project.id is None, otherwise update that record.
        Sets created_at on insert and refreshes updated_at on every save.
        Raises StoreError when updating an id that does not exist.
        """
        raise NotImplementedError

    async def get(self, project_id: int) -> Project | None:
        raise NotImplementedError

    async def list(self) -> list[Project]:
        """All projects, most recently updated first."""
        raise NotImplementedError

    async def delete(self, project_id: int) -> bool:
        """Returns False when there was nothing to delete."""
        raise NotImplementedError


class MemoryProjectStore(ProjectStore):
    """In-memory store. Ids auto-increment from 1."""

    def __init__(self) -> None:
        self.projects: dict[int, Project] = {}
        self._next_id = 1

    async def save(self, project: Project) -> Project:
        now = datetime.now(UTC)
        if project.id is None:
            stored = Project(
                id=self._next_id,
                name=project.name,
                markdown=project.markdown,
                styles=copy.deepcopy(project.styles),
                created_at=now,
                updated_at=now,
            )
            self._next_id += 1
        else:
            existing = self.projects.get(project.id)
            if existing is None:
                raise StoreError(f"Project {project.id} not found")
            stored = Project(
                id=project.id,
                name=project.name,
                markdown=project.markdown,
                styles=copy.deepcopy(project.styles),
                created_at=existing.created_at,
                updated_at=max(now, existing.updated_at),
            )
        self.projects[stored.id] = stored
        return copy.deepcopy(stored)

    async def get(self, project_id: int) -> Project | None:
        project = self.projects.get(project_id)
        return copy.deepcopy(project) if project else None

    async def list(self) -> list[Project]:
        ordered = sorted(self.projects.values(), key=lambda p: (p.updated_at, p.id), reverse=True)
        return [copy.deepcopy(p) for p in ordered]

    async def delete(self, project_id: int) -> bool:
        return self.projects.pop(project_id, None) is not None

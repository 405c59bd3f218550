"""Repository for project persistence in Postgres."""

from __future__ import annotations

import asyncpg

from backend.db import db_conn
from engine.core.store import ProjectStore, StoreError
from engine.core.types import Project


def _row_to_project(row: asyncpg.Record) -> Project:
    """Convert a database row to a Project."""
    return Project(
        id=row["id"],
        name=row["name"],
        markdown=row["markdown"],
        styles=row["styles"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class ProjectRepo(ProjectStore):
    """
    All project database operations.

    Driver and connection failures surface as StoreError so callers handle
    one exception type whichever store is configured.
    """

    async def save(self, project: Project) -> Project:
        """
        Insert a new project or update an existing one.

        Returns:
            The stored Project with id and timestamps filled in
        """
        try:
            async with db_conn() as conn:
                if project.id is None:
                    row = await conn.fetchrow(
                        """
                        INSERT INTO projects (name, markdown, styles, created_at, updated_at)
                        VALUES ($1, $2, $3, now(), now())
                        RETURNING *
                        """,
                        project.name,
                        project.markdown,
                        project.styles,
                    )
                else:
                    row = await conn.fetchrow(
                        """
                        UPDATE projects
                        SET name = $2, markdown = $3, styles = $4, updated_at = now()
                        WHERE id = $1
                        RETURNING *
                        """,
                        project.id,
                        project.name,
                        project.markdown,
                        project.styles,
                    )
        except (asyncpg.PostgresError, OSError) as e:
            raise StoreError(f"Failed to save project: {e}") from e

        if row is None:
            raise StoreError(f"Project {project.id} not found")
        return _row_to_project(row)

    async def get(self, project_id: int) -> Project | None:
        try:
            async with db_conn() as conn:
                row = await conn.fetchrow("SELECT * FROM projects WHERE id = $1", project_id)
        except (asyncpg.PostgresError, OSError) as e:
            raise StoreError(f"Failed to load project {project_id}: {e}") from e
        return _row_to_project(row) if row else None

    async def list(self) -> list[Project]:
        """
        List all projects.

        Returns:
            List of Project objects ordered by updated_at DESC
        """
        try:
            async with db_conn() as conn:
                rows = await conn.fetch("SELECT * FROM projects ORDER BY updated_at DESC, id DESC")
        except (asyncpg.PostgresError, OSError) as e:
            raise StoreError(f"Failed to list projects: {e}") from e
        return [_row_to_project(row) for row in rows]

    async def delete(self, project_id: int) -> bool:
        """
        Delete a project.

        Returns:
            True if deleted, False if not found
        """
        try:
            async with db_conn() as conn:
                result = await conn.execute("DELETE FROM projects WHERE id = $1", project_id)
        except (asyncpg.PostgresError, OSError) as e:
            raise StoreError(f"Failed to delete project {project_id}: {e}") from e
        # asyncpg returns "DELETE N" where N is the number of rows deleted
        return result == "DELETE 1"

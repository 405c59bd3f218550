"""
Tests for ProjectRepo against Postgres.

NOTE: These tests require a running PostgreSQL database with the DATABASE_URL environment variable set.
Run `alembic upgrade head` before running these tests.
"""

from __future__ import annotations

import os

import pytest
import pytest_asyncio

from backend import db
from backend.repos.project_repo import ProjectRepo
from engine.core.store import StoreError
from engine.core.styles import StyleMap
from engine.core.types import Project

DATABASE_URL = os.environ.get("DATABASE_URL", "")


@pytest_asyncio.fixture
async def repo():
    """ProjectRepo on a fresh pool. Projects created through it are removed afterwards."""
    if not DATABASE_URL:
        pytest.skip("DATABASE_URL not set")
    await db.init_pool(DATABASE_URL)
    repo = ProjectRepo()
    created: list[int] = []
    original_save = repo.save

    async def tracking_save(project: Project) -> Project:
        saved = await original_save(project)
        created.append(saved.id)
        return saved

    repo.save = tracking_save
    yield repo

    async with db.db_conn() as conn:
        await conn.execute("DELETE FROM projects WHERE id = ANY($1::bigint[])", created)
    await db.close_pool()


class TestProjectRepo:
    async def test_insert_assigns_id_and_timestamps(self, repo):
        project = await repo.save(Project(name="Repo test", markdown="# A", styles=StyleMap.default().to_dict()))
        assert project.id is not None
        assert project.created_at is not None
        assert project.updated_at == project.created_at

    async def test_styles_round_trip_in_order(self, repo):
        styles = StyleMap({"h1": {"fontSize": "20px", "lineHeight": 1.2}}).to_dict()
        saved = await repo.save(Project(name="Styles", styles=styles))
        loaded = await repo.get(saved.id)
        assert loaded.styles == styles
        assert list(loaded.styles) == list(styles)
        assert list(loaded.styles["h1"]) == ["fontSize", "lineHeight"]

    async def test_update_keeps_created_at(self, repo):
        saved = await repo.save(Project(name="Before"))
        saved.name = "After"
        saved.markdown = "changed"
        updated = await repo.save(saved)
        assert updated.id == saved.id
        assert updated.name == "After"
        assert updated.markdown == "changed"
        assert updated.created_at == saved.created_at
        assert updated.updated_at >= saved.updated_at

    async def test_update_missing_raises(self, repo):
        with pytest.raises(StoreError):
            await ProjectRepo().save(Project(id=2**62, name="ghost"))

    async def test_get_missing(self, repo):
        assert await repo.get(2**62) is None

    async def test_list_newest_first(self, repo):
        first = await repo.save(Project(name="first"))
        second = await repo.save(Project(name="second"))
        first = await repo.save(first)

        ids = [p.id for p in await repo.list()]
        assert ids.index(first.id) < ids.index(second.id)

    async def test_delete(self, repo):
        saved = await repo.save(Project(name="doomed"))
        assert await repo.delete(saved.id) is True
        assert await repo.get(saved.id) is None
        assert await repo.delete(saved.id) is False

"""Projects table.

Revision ID: 001
Revises:
Create Date: 2026-10-17
"""

from alembic import op


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # styles is JSON, not JSONB: element and property order is significant
    op.execute("""
        CREATE TABLE projects (
            id BIGSERIAL PRIMARY KEY,
            name TEXT NOT NULL,
            markdown TEXT NOT NULL DEFAULT '',
            styles JSON NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)

    op.execute("""
        CREATE INDEX idx_projects_updated_at ON projects(updated_at DESC, id DESC);
    """)


def downgrade():
    op.execute("DROP INDEX IF EXISTS idx_projects_updated_at;")
    op.execute("DROP TABLE IF EXISTS projects;")

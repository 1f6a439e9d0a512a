"""create_thumbnails_table

Revision ID: 3f2a9c41d7e0
Revises:
Create Date: 2026-10-19 09:12:40.118203

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c41d7e0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create thumbnails table with status, job_id and created_at indexes."""
    op.create_table(
        "thumbnails",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("original_path", sa.String(length=512), nullable=True),
        sa.Column("thumbnail_path", sa.String(length=512), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column(
            "format",
            sa.Enum("png", "jpg", "webp", name="thumbnail_format", native_enum=False, length=10),
            nullable=True,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "processing",
                "completed",
                "failed",
                name="thumbnail_status",
                native_enum=False,
                length=20,
            ),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("job_id", sa.String(length=255), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_thumbnails_status", "thumbnails", ["status"])
    op.create_index("ix_thumbnails_job_id", "thumbnails", ["job_id"])
    op.create_index("ix_thumbnails_created_at", "thumbnails", ["created_at"])


def downgrade() -> None:
    """Drop thumbnails table."""
    op.drop_index("ix_thumbnails_created_at", table_name="thumbnails")
    op.drop_index("ix_thumbnails_job_id", table_name="thumbnails")
    op.drop_index("ix_thumbnails_status", table_name="thumbnails")
    op.drop_table("thumbnails")

"""Create subjects table holding the attachment pointer.

Revision ID: create_subjects
Revises:
Create Date: 2026-10-17

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "create_subjects"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create subjects table."""
    op.create_table(
        "subjects",
        sa.Column("subject_id", sa.String(length=255), nullable=False),
        sa.Column("photo_stored_name", sa.String(length=255), nullable=True),
        sa.Column("photo_location", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("photo_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("subject_id"),
        sa.UniqueConstraint("photo_stored_name"),
    )


def downgrade() -> None:
    """Drop subjects table."""
    op.drop_table("subjects")

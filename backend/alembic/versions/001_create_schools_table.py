"""Create schools table

Revision ID: 001
Revises: None
Create Date: 2024-06-10 00:00:00.000000+00:00

What:  Creates the `schools` table holding the school directory.
How:   UUID primary key generated by the application, unique email_id,
       TIMESTAMP WITH TIME ZONE audit columns.

Rollback: downgrade() drops the table entirely (destructive, all data lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the schools table, its unique email constraint and listing index."""
    op.create_table(
        "schools",
        sa.Column("id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("address", sa.Text(), nullable=False),
        sa.Column("city", sa.Text(), nullable=False),
        sa.Column("state", sa.Text(), nullable=False),
        sa.Column("contact", sa.String(20), nullable=False),
        sa.Column(
            "email_id",
            sa.Text(),
            nullable=False,
            comment="Contact email; unique across schools",
        ),
        sa.Column(
            "image",
            sa.String(1024),
            nullable=False,
            comment="Stored image reference: local filename or remote URL",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email_id", name="uq_schools_email_id"),
    )

    # Listing and search both sort newest first
    op.create_index(
        "idx_schools_created_at",
        "schools",
        [sa.text("created_at DESC")],
    )


def downgrade() -> None:
    """Drop the schools table. WARNING: all school data is lost."""
    op.drop_index("idx_schools_created_at", table_name="schools")
    op.drop_table("schools")

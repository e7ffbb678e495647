"""Add insertion_time to drive_entries with a constant default.

Revision ID: 003_add_drive_insertion_time
Revises: 002_create_catalog_indexes
Create Date: 2025-09-16
"""

from alembic import op

from drive_catalog.migration.columns import add_insertion_time_column

revision = "003_add_drive_insertion_time"
down_revision = "002_create_catalog_indexes"
branch_labels = None
depends_on = None


def upgrade() -> None:
    add_insertion_time_column(op.get_bind())


def downgrade() -> None:
    with op.batch_alter_table("drive_entries") as batch_op:
        batch_op.drop_column("insertion_time")

"""Backfill drive insertion times left at the placeholder default.

Revision ID: 004_backfill_drive_insertion_time
Revises: 003_add_drive_insertion_time
Create Date: 2025-09-16
"""

from alembic import op

from drive_catalog.migration.columns import backfill_insertion_time

revision = "004_backfill_drive_insertion_time"
down_revision = "003_add_drive_insertion_time"
branch_labels = None
depends_on = None


def upgrade() -> None:
    backfill_insertion_time(op.get_bind())


def downgrade() -> None:
    # Original placeholder values are not kept.
    pass

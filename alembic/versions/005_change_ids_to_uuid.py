"""Deduplicate the catalog and re-key every table with random identifiers.

Revision ID: 005_change_ids_to_uuid
Revises: 004_backfill_drive_insertion_time
Create Date: 2025-10-26
"""

from alembic import op

from drive_catalog.migration.engine import run_identity_migration

revision = "005_change_ids_to_uuid"
down_revision = "004_backfill_drive_insertion_time"
branch_labels = None
depends_on = None


def upgrade():
    run_identity_migration(op.get_bind())


def downgrade():
    raise RuntimeError(
        "Integer catalog ids cannot be restored: duplicates were collapsed and the id maps were discarded. "
        "Restore the pre-migration database backup instead."
    )

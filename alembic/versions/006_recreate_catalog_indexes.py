"""Recreate catalog indexes on the string-keyed tables.

Revision ID: 006_recreate_catalog_indexes
Revises: 005_change_ids_to_uuid
Create Date: 2025-10-26
"""

from alembic import op

from drive_catalog.migration.indexes import drop_secondary_indexes, ensure_secondary_indexes

revision = "006_recreate_catalog_indexes"
down_revision = "005_change_ids_to_uuid"
branch_labels = None
depends_on = None


def upgrade():
    ensure_secondary_indexes(op.get_bind())


def downgrade():
    drop_secondary_indexes(op.get_bind())

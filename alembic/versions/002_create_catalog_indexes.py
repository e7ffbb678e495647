"""Add join and search indexes to the catalog.

Revision ID: 002_create_catalog_indexes
Revises: 001_create_catalog_tables
Create Date: 2025-08-21
"""

from alembic import op

from drive_catalog.migration.indexes import drop_secondary_indexes, ensure_secondary_indexes

revision = "002_create_catalog_indexes"
down_revision = "001_create_catalog_tables"
branch_labels = None
depends_on = None


def upgrade():
    ensure_secondary_indexes(op.get_bind())


def downgrade():
    drop_secondary_indexes(op.get_bind())

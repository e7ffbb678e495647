"""Create the drive catalog tables with integer keys.

Revision ID: 001_create_catalog_tables
Revises:
Create Date: 2025-08-20
"""

from alembic import op
import sqlalchemy as sa

from drive_catalog.schema import define_catalog_tables

revision = "001_create_catalog_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    metadata = sa.MetaData()
    # insertion_time arrives in 003.
    define_catalog_tables(
        metadata,
        id_type=sa.Integer(),
        dialect_name=bind.dialect.name,
        natural_keys=False,
        insertion_time=False,
    )
    metadata.create_all(bind, checkfirst=False)


def downgrade():
    op.drop_table("file_entries")
    op.drop_table("drive_entries")
    op.drop_table("file_categories")

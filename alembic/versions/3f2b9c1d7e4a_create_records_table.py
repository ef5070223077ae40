"""create_records_table

Revision ID: 3f2b9c1d7e4a
Revises:
Create Date: 2026-10-19 09:12:41.208113

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2b9c1d7e4a'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Create the resource store table.

    One row per document; (tenant_id, collection) is the partition every
    query filters on.
    """
    op.create_table(
        'records',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('collection', sa.String(length=64), nullable=False),
        sa.Column('tenant_id', sa.String(length=64), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_records_tenant_id', 'records', ['tenant_id'])
    op.create_index('ix_records_tenant_collection', 'records', ['tenant_id', 'collection'])


def downgrade() -> None:
    op.drop_index('ix_records_tenant_collection', table_name='records')
    op.drop_index('ix_records_tenant_id', table_name='records')
    op.drop_table('records')

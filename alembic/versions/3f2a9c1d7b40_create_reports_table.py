"""create reports table

Revision ID: 3f2a9c1d7b40
Revises: 
Create Date: 2026-09-02 10:14:08.402117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'reports',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('class', sa.Integer(), nullable=False),
        sa.Column('isadd', sa.Boolean(), nullable=False),
        sa.Column('changescore', sa.Integer(), nullable=False),
        sa.Column('note', sa.Text(), nullable=False),
        sa.Column('submitter', sa.Text(), nullable=False),
        sa.Column('reducetype', sa.String(length=20), nullable=True),
        sa.Column('submittime', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('date_partition', sa.Date(), nullable=False),
        sa.CheckConstraint('changescore BETWEEN 1 AND 20', name='ck_reports_changescore_range'),
        sa.CheckConstraint("reducetype IS NULL OR reducetype IN ('discipline', 'hygiene')", name='ck_reports_reducetype'),
    )
    op.create_index('ix_reports_id', 'reports', ['id'])
    op.create_index('reports_date_class_idx', 'reports', ['date_partition', 'class'])
    op.create_index('reports_submittime_idx', 'reports', ['submittime'])
    op.create_index('reports_class_idx', 'reports', ['class'])
    op.create_index('reports_date_partition_idx', 'reports', ['date_partition'])


def downgrade() -> None:
    op.drop_index('reports_date_partition_idx', table_name='reports')
    op.drop_index('reports_class_idx', table_name='reports')
    op.drop_index('reports_submittime_idx', table_name='reports')
    op.drop_index('reports_date_class_idx', table_name='reports')
    op.drop_index('ix_reports_id', table_name='reports')
    op.drop_table('reports')

"""Initial schema - posts, insights, company insights, run history

Revision ID: 001_initial
Revises:
Create Date: 2025-01-01 00:00:00.000000

Based on the SQLAlchemy models defined in database/models/.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ==================================================
    # SOURCE ITEMS (written by the ingester)
    # ==================================================

    op.create_table(
        'latest_posts',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('title', sa.Text, nullable=False),
        sa.Column('summary', sa.Text, nullable=True),
        sa.Column('url', sa.Text, nullable=True),
        sa.Column('published_date', sa.DateTime, nullable=True),
        sa.Column('source', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
    )

    with op.batch_alter_table('latest_posts') as batch_op:
        batch_op.create_index('idx_latest_posts_source_published', ['source', 'published_date'])

    # ==================================================
    # INSIGHTS
    # ==================================================

    op.create_table(
        'insights',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('post_id', sa.Integer, nullable=False),
        sa.Column('summary', sa.Text, nullable=False),
        sa.Column('implications_investor', sa.Text, nullable=False),
        sa.Column('implications_company', sa.Text, nullable=False),
        sa.Column('narratives', sa.JSON, nullable=False),
        sa.Column('event_type', sa.String(32), nullable=False),
        sa.Column('company_ticker', sa.String(16), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
    )

    with op.batch_alter_table('insights') as batch_op:
        batch_op.create_index('ix_insights_post_id', ['post_id'])
        batch_op.create_index('ix_insights_company_ticker', ['company_ticker'])

    op.create_table(
        'company_insights',
        sa.Column('company_ticker', sa.String(16), primary_key=True),
        sa.Column('display_name', sa.String(200), nullable=False),
        sa.Column('summary', sa.Text, nullable=False),
        sa.Column('implications_investor', sa.Text, nullable=False),
        sa.Column('implications_company', sa.Text, nullable=False),
        sa.Column('narratives', sa.JSON, nullable=False),
        sa.Column('event_types', sa.JSON, nullable=False),
        sa.Column('related_post_count', sa.Integer, nullable=False),
        sa.Column('latest_post_date', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=True),
    )

    with op.batch_alter_table('company_insights') as batch_op:
        batch_op.create_index('idx_company_insights_latest', ['latest_post_date'])

    # ==================================================
    # SYSTEM
    # ==================================================

    op.create_table(
        'run_history',
        sa.Column('id', sa.String(50), primary_key=True),
        sa.Column('started_at', sa.DateTime, nullable=True),
        sa.Column('finished_at', sa.DateTime, nullable=True),
        sa.Column('trigger', sa.String(20), nullable=True),
        sa.Column('items_found', sa.Integer, nullable=True),
        sa.Column('items_ignored', sa.Integer, nullable=True),
        sa.Column('items_unprocessed', sa.Integer, nullable=True),
        sa.Column('items_inserted', sa.Integer, nullable=True),
        sa.Column('items_failed', sa.Integer, nullable=True),
        sa.Column('entities_updated', sa.Integer, nullable=True),
        sa.Column('entities_failed', sa.Integer, nullable=True),
        sa.Column('errors', sa.JSON, nullable=True),
        sa.Column('summary', sa.Text, nullable=True),
        sa.Column('status', sa.String(20), nullable=True),
    )

    with op.batch_alter_table('run_history') as batch_op:
        batch_op.create_index('ix_run_history_started_at', ['started_at'])


def downgrade() -> None:
    # Drop tables in reverse order
    op.drop_table('run_history')
    op.drop_table('company_insights')
    op.drop_table('insights')
    op.drop_table('latest_posts')

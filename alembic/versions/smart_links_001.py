"""smart links and clicks

Revision ID: smart_links_001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'smart_links_001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- Smart links ---
    op.create_table('smart_links',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('web_fallback', sa.Text(), nullable=False),
        sa.Column('ios_url', sa.Text(), nullable=True),
        sa.Column('android_url', sa.Text(), nullable=True),
        sa.Column('ios_appstore_url', sa.Text(), nullable=True),
        sa.Column('android_playstore_url', sa.Text(), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('platform', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_smart_links_slug'), 'smart_links', ['slug'], unique=True)

    # --- Clicks (no FK: history survives link deletion) ---
    op.create_table('clicks',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('link_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('referrer', sa.Text(), nullable=True),
        sa.Column('device', sa.String(length=20), nullable=True),
        sa.Column('browser', sa.String(length=20), nullable=True),
        sa.Column('platform_class', sa.String(length=20), nullable=True),
        sa.Column('is_social_app', sa.Boolean(), nullable=True),
        sa.Column('os_version', sa.String(length=20), nullable=True),
        sa.Column('browser_version', sa.String(length=20), nullable=True),
        sa.Column('is_bot', sa.Boolean(), nullable=True),
        sa.Column('utm_source', sa.String(length=255), nullable=True),
        sa.Column('utm_medium', sa.String(length=255), nullable=True),
        sa.Column('utm_campaign', sa.String(length=255), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_clicks_link_id'), 'clicks', ['link_id'], unique=False)
    op.create_index('ix_clicks_link_timestamp', 'clicks', ['link_id', 'timestamp'], unique=False)


def downgrade() -> None:
    op.drop_index('ix_clicks_link_timestamp', table_name='clicks')
    op.drop_index(op.f('ix_clicks_link_id'), table_name='clicks')
    op.drop_table('clicks')
    op.drop_index(op.f('ix_smart_links_slug'), table_name='smart_links')
    op.drop_table('smart_links')

"""Hot-content schema: celebrities, social profiles, hot media, metadata cache, insights.

Revision ID: 001_hot_content
Revises:
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_hot_content'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create hot-content tables."""
    op.create_table(
        'celebrities',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('merge_key', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('name_te', sa.String(length=255), nullable=True),
        sa.Column('wikidata_id', sa.String(length=32), nullable=True),
        sa.Column('tmdb_id', sa.Integer(), nullable=True),
        sa.Column('imdb_id', sa.String(length=32), nullable=True),
        sa.Column('entity_type', sa.String(length=32), nullable=False, server_default='actress'),
        sa.Column('occupations', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('birth_date', sa.String(length=32), nullable=True),
        sa.Column('wikipedia_url', sa.Text(), nullable=True),
        sa.Column('popularity_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('tmdb_popularity', sa.Float(), nullable=False, server_default='0'),
        sa.Column('trend_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('previous_trend_score', sa.Float(), nullable=True),
        sa.Column('trend_direction', sa.String(length=16), nullable=True),
        sa.Column('discovery_source', sa.String(length=32), nullable=False),
        sa.Column('sources', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('deactivated_at', sa.DateTime(), nullable=True),
        sa.Column('deactivation_reason', sa.Text(), nullable=True),
        sa.Column('discovered_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('last_seen_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('merge_key'),
    )
    op.create_index('ix_celebrities_wikidata_id', 'celebrities', ['wikidata_id'], unique=False)
    op.create_index('ix_celebrities_tmdb_id', 'celebrities', ['tmdb_id'], unique=False)
    op.create_index('ix_celebrities_active_popularity', 'celebrities', ['is_active', 'popularity_score'], unique=False)

    op.create_table(
        'celebrity_social_profiles',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('celebrity_id', sa.UUID(), nullable=False),
        sa.Column('platform', sa.String(length=32), nullable=False),
        sa.Column('handle', sa.String(length=255), nullable=False),
        sa.Column('profile_url', sa.Text(), nullable=True),
        sa.Column('confidence_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('verified', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('source', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['celebrity_id'], ['celebrities.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('celebrity_id', 'platform', name='uq_social_profile_platform'),
    )

    op.create_table(
        'hot_media',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('celebrity_id', sa.UUID(), nullable=False),
        sa.Column('entity_name', sa.String(length=255), nullable=False),
        sa.Column('platform', sa.String(length=32), nullable=False),
        sa.Column('source_url', sa.Text(), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('thumbnail_url', sa.Text(), nullable=True),
        sa.Column('media_type', sa.String(length=32), nullable=False, server_default='profile'),
        sa.Column('license_type', sa.String(length=32), nullable=False, server_default='unknown'),
        sa.Column('confidence_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_embed', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('category', sa.String(length=32), nullable=True),
        sa.Column('caption', sa.Text(), nullable=True),
        sa.Column('safety_risk', sa.String(length=16), nullable=False, server_default='safe'),
        sa.Column('safety_flags', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('requires_review', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('is_blocked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('blocked_reason', sa.Text(), nullable=True),
        sa.Column('moderation_state', sa.String(length=32), nullable=False),
        sa.Column('moderation_note', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('views', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('likes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('shares', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('clicks', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('engagement_rate', sa.Float(), nullable=False, server_default='0'),
        sa.Column('trending_score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('last_engaged_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['celebrity_id'], ['celebrities.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('celebrity_id', 'platform', 'source_url', name='uq_hot_media_entity_platform_url'),
    )
    op.create_index('ix_hot_media_status_trending', 'hot_media', ['status', 'trending_score'], unique=False)
    op.create_index('ix_hot_media_moderation_state', 'hot_media', ['moderation_state'], unique=False)

    op.create_table(
        'media_entities',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('name_key', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('entity_type', sa.String(length=32), nullable=True),
        sa.Column('tmdb_id', sa.Integer(), nullable=True),
        sa.Column('wikipedia_url', sa.Text(), nullable=True),
        sa.Column('image_sources', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('trending_keywords', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('strategy_errors', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('last_fetched_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name_key'),
    )
    op.create_index('ix_media_entities_last_fetched_at', 'media_entities', ['last_fetched_at'], unique=False)

    op.create_table(
        'learning_insights',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('dimension_type', sa.String(length=16), nullable=False),
        sa.Column('dimension_value', sa.String(length=255), nullable=False),
        sa.Column('trend', sa.String(length=16), nullable=False),
        sa.Column('engagement', sa.Float(), nullable=False, server_default='0'),
        sa.Column('cohort_average', sa.Float(), nullable=False, server_default='0'),
        sa.Column('recommendation', sa.Text(), nullable=False),
        sa.Column('generated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('dimension_type', 'dimension_value', name='uq_learning_insight_dimension'),
    )

    print("  Created hot-content tables with indexes")


def downgrade() -> None:
    """Drop hot-content tables."""
    op.drop_table('learning_insights')
    op.drop_index('ix_media_entities_last_fetched_at', table_name='media_entities')
    op.drop_table('media_entities')
    op.drop_index('ix_hot_media_moderation_state', table_name='hot_media')
    op.drop_index('ix_hot_media_status_trending', table_name='hot_media')
    op.drop_table('hot_media')
    op.drop_table('celebrity_social_profiles')
    op.drop_index('ix_celebrities_active_popularity', table_name='celebrities')
    op.drop_index('ix_celebrities_tmdb_id', table_name='celebrities')
    op.drop_index('ix_celebrities_wikidata_id', table_name='celebrities')
    op.drop_table('celebrities')

    print("  Dropped hot-content tables")

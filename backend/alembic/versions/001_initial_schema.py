"""Initial schema: identities, releases, magnets and debrid resolution state

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-18 10:00:00.000000

Tables:
    - tmdb_metadata: canonical media identities (IMDb id lookup)
    - streams: indexed releases per identity and episode range
    - magnet_cache: magnet URI per infohash
    - rd_torrents: last known debrid provider state per infohash
    - rd_cache_locks: single-flight resolution markers
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'tmdb_metadata',
        sa.Column('tmdb_id', sa.String(length=50), nullable=False),
        sa.Column('imdb_id', sa.String(length=20), nullable=True),
        sa.Column('media_type', sa.String(length=10), nullable=False),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('year', sa.Integer(), nullable=True),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('tmdb_id')
    )
    op.create_index('ix_tmdb_metadata_imdb_id', 'tmdb_metadata', ['imdb_id'], unique=True)
    op.create_index('ix_tmdb_metadata_year', 'tmdb_metadata', ['year'])

    op.create_table(
        'streams',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('tmdb_id', sa.String(length=50), nullable=False),
        sa.Column('season', sa.Integer(), nullable=True),
        sa.Column('episode', sa.Integer(), nullable=True),
        sa.Column('episode_end', sa.Integer(), nullable=True),
        sa.Column('infohash', sa.String(length=40), nullable=False),
        sa.Column('quality', sa.String(length=20), nullable=True),
        sa.Column('language', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('infohash')
    )
    op.create_index('ix_streams_tmdb_id', 'streams', ['tmdb_id'])
    op.create_index('ix_streams_season', 'streams', ['season'])
    op.create_index('ix_streams_episode', 'streams', ['episode'])
    op.create_index('ix_streams_quality', 'streams', ['quality'])
    op.create_index('idx_streams_identity_episode', 'streams', ['tmdb_id', 'season', 'episode'])

    op.create_table(
        'magnet_cache',
        sa.Column('infohash', sa.String(length=40), nullable=False),
        sa.Column('magnet', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('infohash')
    )

    op.create_table(
        'rd_torrents',
        sa.Column('infohash', sa.String(length=40), nullable=False),
        sa.Column('rd_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=40), nullable=False),
        sa.Column('files', sa.JSON(), nullable=True),
        sa.Column('links', sa.JSON(), nullable=True),
        sa.Column('last_checked', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('infohash')
    )
    op.create_index('ix_rd_torrents_rd_id', 'rd_torrents', ['rd_id'])

    op.create_table(
        'rd_cache_locks',
        sa.Column('infohash', sa.String(length=40), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('infohash')
    )


def downgrade() -> None:
    """
    Drop all tables.

    WARNING: This deletes every indexed release and all cached provider state.
    """
    op.drop_table('rd_cache_locks')
    op.drop_index('ix_rd_torrents_rd_id', table_name='rd_torrents')
    op.drop_table('rd_torrents')
    op.drop_table('magnet_cache')
    op.drop_index('idx_streams_identity_episode', table_name='streams')
    op.drop_index('ix_streams_quality', table_name='streams')
    op.drop_index('ix_streams_episode', table_name='streams')
    op.drop_index('ix_streams_season', table_name='streams')
    op.drop_index('ix_streams_tmdb_id', table_name='streams')
    op.drop_table('streams')
    op.drop_index('ix_tmdb_metadata_year', table_name='tmdb_metadata')
    op.drop_index('ix_tmdb_metadata_imdb_id', table_name='tmdb_metadata')
    op.drop_table('tmdb_metadata')

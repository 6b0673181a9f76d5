"""create catalog tables

Revision ID: 3b1f9c2a7d40
Revises:
Create Date: 2026-10-17 09:12:31.482015

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3b1f9c2a7d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, catalog, membership and refresh token tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('password_hash', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='user'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_username', 'users', ['username'])

    op.create_table(
        'artists',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
    )
    op.create_table(
        'genres',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(), nullable=False, unique=True),
    )
    op.create_table(
        'tracks',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('artist_id', sa.String(36), sa.ForeignKey('artists.id'), nullable=False),
        sa.Column('genre_id', sa.String(36), sa.ForeignKey('genres.id'), nullable=True),
        sa.Column('uploaded_by_id', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('uploaded_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_tracks_artist_id', 'tracks', ['artist_id'])
    op.create_index('ix_tracks_uploaded_by_id', 'tracks', ['uploaded_by_id'])

    op.create_table(
        'playlists',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('created_by_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_playlists_created_by_id', 'playlists', ['created_by_id'])

    op.create_table(
        'playlist_tracks',
        sa.Column('playlist_id', sa.String(36), sa.ForeignKey('playlists.id'), primary_key=True),
        sa.Column('track_id', sa.String(36), sa.ForeignKey('tracks.id'), primary_key=True),
        sa.Column('position', sa.Integer(), nullable=False),
    )
    op.create_table(
        'user_tracks',
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('track_id', sa.String(36), sa.ForeignKey('tracks.id'), primary_key=True),
        sa.Column('added_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'user_playlists',
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('playlist_id', sa.String(36), sa.ForeignKey('playlists.id'), primary_key=True),
        sa.Column('added_at', sa.DateTime(), nullable=False),
    )
    op.create_table(
        'refresh_tokens',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('token', sa.String(), nullable=False, unique=True),
        sa.Column('issued_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_refresh_tokens_id', 'refresh_tokens', ['id'])
    op.create_index('ix_refresh_tokens_user_id', 'refresh_tokens', ['user_id'])


def downgrade() -> None:
    """Drop every table created by :func:`upgrade`."""
    for table in (
        'refresh_tokens',
        'user_playlists',
        'user_tracks',
        'playlist_tracks',
        'playlists',
        'tracks',
        'genres',
        'artists',
        'users',
    ):
        op.drop_table(table)

"""Database setup for the music catalog."""

import uuid
from datetime import datetime
from sqlalchemy import create_engine, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import settings

DATABASE_URL = settings.database_url

connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, future=True, connect_args=connect_args)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


class Artist(Base):
    """SQLAlchemy model for a performing artist."""

    __tablename__ = "artists"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)


class Genre(Base):
    """SQLAlchemy model for a music genre."""

    __tablename__ = "genres"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, unique=True, nullable=False)


class Track(Base):
    """An uploaded track; the audio payload lives in file storage."""

    __tablename__ = "tracks"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String, nullable=False)
    artist_id = Column(String(36), ForeignKey("artists.id"), index=True, nullable=False)
    genre_id = Column(String(36), ForeignKey("genres.id"), nullable=True)
    uploaded_by_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Playlist(Base):
    """A user-curated playlist."""

    __tablename__ = "playlists"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String, nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class PlaylistTrack(Base):
    """Membership of a track in a playlist."""

    __tablename__ = "playlist_tracks"

    playlist_id = Column(String(36), ForeignKey("playlists.id"), primary_key=True)
    track_id = Column(String(36), ForeignKey("tracks.id"), primary_key=True)
    position = Column(Integer, nullable=False, default=0)


class UserTrack(Base):
    """Membership of a track in a user's personal track list."""

    __tablename__ = "user_tracks"

    user_id = Column(String(36), ForeignKey("users.id"), primary_key=True)
    track_id = Column(String(36), ForeignKey("tracks.id"), primary_key=True)
    added_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class UserPlaylist(Base):
    """Membership of a playlist in a user's playlist list."""

    __tablename__ = "user_playlists"

    user_id = Column(String(36), ForeignKey("users.id"), primary_key=True)
    playlist_id = Column(String(36), ForeignKey("playlists.id"), primary_key=True)
    added_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class RefreshToken(Base):
    """A refresh token currently issued to a user."""

    __tablename__ = "refresh_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    token = Column(String, unique=True, nullable=False)
    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)


def init_db(bind=None) -> None:
    """Create database tables if they do not exist."""
    from .models import user  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)

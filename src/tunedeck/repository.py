"""Storage contract consumed by the core and its SQLAlchemy implementation."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .database import (
    Artist,
    Genre,
    Playlist,
    PlaylistTrack,
    RefreshToken,
    Track,
    UserPlaylist,
    UserTrack,
)
from .errors import ConflictError, NotFoundError, StoreError
from .models.user import User

logger = logging.getLogger(__name__)

# Called with the id of the track whose audio payload is being written/removed.
UploadTrackCallback = Callable[[str], None]
DeleteTrackCallback = Callable[[str], None]


class Repository(Protocol):
    """Operations the core needs from a credential and catalog store.

    Lookups raise :class:`~tunedeck.errors.NotFoundError` for unknown ids;
    any other failure surfaces as a :class:`~tunedeck.errors.StoreError`.
    """

    # users
    def add_new_user(self, email: str, username: str, password_hash: str, role: str) -> User: ...

    def get_user(self, user_id: str) -> User: ...

    def get_user_by_email(self, email: str) -> User: ...

    # tracks
    def add_new_track(
        self,
        title: str,
        artist_id: str,
        genre_id: Optional[str],
        uploaded_by_id: Optional[str],
        upload_track: UploadTrackCallback,
        discard_upload: Optional[DeleteTrackCallback] = None,
    ) -> Track: ...

    def get_track(self, track_id: str) -> Track: ...

    def get_all_tracks(self) -> List[Track]: ...

    def update_track(
        self,
        track_id: str,
        title: Optional[str] = None,
        artist_id: Optional[str] = None,
        genre_id: Optional[str] = None,
    ) -> Track: ...

    def delete_track(self, track_id: str, delete_track: DeleteTrackCallback) -> None: ...

    # artists and genres
    def add_artist(self, name: str) -> Artist: ...

    def get_artist(self, artist_id: str) -> Artist: ...

    def add_genre(self, name: str) -> Genre: ...

    def get_genre(self, genre_id: str) -> Genre: ...

    # personal track list
    def get_user_track_list(self, user_id: str) -> List[str]: ...

    def add_tracks_to_user_list(self, user_id: str, *track_ids: str) -> None: ...

    def delete_tracks_from_user_list(self, user_id: str, *track_ids: str) -> None: ...

    # playlists
    def add_new_playlist(self, title: str, created_by_id: str) -> Playlist: ...

    def get_playlist(self, playlist_id: str) -> Playlist: ...

    def get_all_playlists(self) -> List[Playlist]: ...

    def delete_playlist(self, playlist_id: str) -> None: ...

    def get_playlist_tracks(self, playlist_id: str) -> List[str]: ...

    def add_tracks_to_playlist(self, playlist_id: str, *track_ids: str) -> None: ...

    def delete_tracks_from_playlist(self, playlist_id: str, *track_ids: str) -> None: ...

    # personal playlist list
    def get_user_playlists(self, user_id: str) -> List[str]: ...

    def add_playlists_to_user_list(self, user_id: str, *playlist_ids: str) -> None: ...

    def delete_playlists_from_user_list(self, user_id: str, *playlist_ids: str) -> None: ...

    # refresh tokens
    def add_refresh_token(self, user_id: str, token: str) -> None: ...

    def update_refresh_token(self, user_id: str, old_token: str, new_token: str) -> None: ...

    def delete_refresh_token(self, user_id: str, token: str) -> None: ...


class SqlAlchemyRepository:
    """:class:`Repository` backed by a SQLAlchemy session.

    One instance is bound to one session, which in the API means one
    request. Every write commits before returning.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _fail(self, exc: SQLAlchemyError) -> None:
        """Rollback the transaction and raise the matching store error."""
        self.session.rollback()
        logger.exception("store operation failed", exc_info=exc)
        if isinstance(exc, IntegrityError):
            raise ConflictError() from exc
        raise StoreError("Database error") from exc

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)

    def _get(self, model, record_id: str, label: str):
        try:
            record = self.session.get(model, record_id)
        except SQLAlchemyError as exc:
            self._fail(exc)
        if record is None:
            raise NotFoundError(f"{label} {record_id} not found")
        return record

    def _scalars(self, statement) -> list:
        try:
            return list(self.session.scalars(statement).all())
        except SQLAlchemyError as exc:
            self._fail(exc)

    # users

    def add_new_user(self, email: str, username: str, password_hash: str, role: str) -> User:
        user = User(email=email, username=username, password_hash=password_hash, role=role)
        self.session.add(user)
        self._commit()
        return user

    def get_user(self, user_id: str) -> User:
        return self._get(User, user_id, "user")

    def get_user_by_email(self, email: str) -> User:
        users = self._scalars(select(User).where(User.email == email))
        if not users:
            raise NotFoundError(f"user with email {email} not found")
        return users[0]

    # tracks

    def add_new_track(
        self,
        title: str,
        artist_id: str,
        genre_id: Optional[str],
        uploaded_by_id: Optional[str],
        upload_track: UploadTrackCallback,
        discard_upload: Optional[DeleteTrackCallback] = None,
    ) -> Track:
        """Insert a track and write its payload before committing.

        If the commit fails after the payload was written, ``discard_upload``
        removes it again.
        """
        track = Track(
            title=title,
            artist_id=artist_id,
            genre_id=genre_id,
            uploaded_by_id=uploaded_by_id,
        )
        self.session.add(track)
        uploaded = False
        try:
            self.session.flush()
            track_id = track.id
            upload_track(track_id)
            uploaded = True
            self.session.commit()
        except SQLAlchemyError as exc:
            if uploaded and discard_upload is not None:
                discard_upload(track_id)
            self._fail(exc)
        except Exception:
            self.session.rollback()
            raise
        return track

    def get_track(self, track_id: str) -> Track:
        return self._get(Track, track_id, "track")

    def get_all_tracks(self) -> List[Track]:
        return self._scalars(select(Track).order_by(Track.uploaded_at, Track.id))

    def update_track(
        self,
        track_id: str,
        title: Optional[str] = None,
        artist_id: Optional[str] = None,
        genre_id: Optional[str] = None,
    ) -> Track:
        track = self.get_track(track_id)
        # resolve references first so an unknown id writes nothing
        if artist_id is not None:
            self.get_artist(artist_id)
        if genre_id is not None:
            self.get_genre(genre_id)
        if title is not None:
            track.title = title
        if artist_id is not None:
            track.artist_id = artist_id
        if genre_id is not None:
            track.genre_id = genre_id
        self._commit()
        return track

    def delete_track(self, track_id: str, delete_track: DeleteTrackCallback) -> None:
        """Delete the row and its memberships, then remove the payload.

        The payload is only removed once the delete is committed.
        """
        track = self.get_track(track_id)
        try:
            self.session.execute(delete(PlaylistTrack).where(PlaylistTrack.track_id == track_id))
            self.session.execute(delete(UserTrack).where(UserTrack.track_id == track_id))
            self.session.delete(track)
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)
        delete_track(track_id)

    # artists and genres

    def add_artist(self, name: str) -> Artist:
        artist = Artist(name=name)
        self.session.add(artist)
        self._commit()
        return artist

    def get_artist(self, artist_id: str) -> Artist:
        return self._get(Artist, artist_id, "artist")

    def add_genre(self, name: str) -> Genre:
        genre = Genre(name=name)
        self.session.add(genre)
        self._commit()
        return genre

    def get_genre(self, genre_id: str) -> Genre:
        return self._get(Genre, genre_id, "genre")

    # personal track list

    def get_user_track_list(self, user_id: str) -> List[str]:
        return self._scalars(
            select(UserTrack.track_id)
            .where(UserTrack.user_id == user_id)
            .order_by(UserTrack.added_at, UserTrack.track_id)
        )

    def add_tracks_to_user_list(self, user_id: str, *track_ids: str) -> None:
        existing = set(self.get_user_track_list(user_id))
        track_ids = _unique(track_ids)
        for track_id in track_ids:
            self.get_track(track_id)
        for track_id in track_ids:
            if track_id not in existing:
                self.session.add(UserTrack(user_id=user_id, track_id=track_id))
        self._commit()

    def delete_tracks_from_user_list(self, user_id: str, *track_ids: str) -> None:
        self._execute(
            delete(UserTrack).where(
                UserTrack.user_id == user_id, UserTrack.track_id.in_(track_ids)
            )
        )

    # playlists

    def add_new_playlist(self, title: str, created_by_id: str) -> Playlist:
        playlist = Playlist(title=title, created_by_id=created_by_id)
        self.session.add(playlist)
        try:
            self.session.flush()
            self.session.add(UserPlaylist(user_id=created_by_id, playlist_id=playlist.id))
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)
        return playlist

    def get_playlist(self, playlist_id: str) -> Playlist:
        return self._get(Playlist, playlist_id, "playlist")

    def get_all_playlists(self) -> List[Playlist]:
        return self._scalars(select(Playlist).order_by(Playlist.created_at, Playlist.id))

    def delete_playlist(self, playlist_id: str) -> None:
        playlist = self.get_playlist(playlist_id)
        try:
            self.session.execute(
                delete(PlaylistTrack).where(PlaylistTrack.playlist_id == playlist_id)
            )
            self.session.execute(
                delete(UserPlaylist).where(UserPlaylist.playlist_id == playlist_id)
            )
            self.session.delete(playlist)
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)

    def get_playlist_tracks(self, playlist_id: str) -> List[str]:
        return self._scalars(
            select(PlaylistTrack.track_id)
            .where(PlaylistTrack.playlist_id == playlist_id)
            .order_by(PlaylistTrack.position)
        )

    def add_tracks_to_playlist(self, playlist_id: str, *track_ids: str) -> None:
        existing = set(self.get_playlist_tracks(playlist_id))
        try:
            position = self.session.scalar(
                select(func.coalesce(func.max(PlaylistTrack.position), -1)).where(
                    PlaylistTrack.playlist_id == playlist_id
                )
            )
        except SQLAlchemyError as exc:
            self._fail(exc)
        track_ids = _unique(track_ids)
        for track_id in track_ids:
            self.get_track(track_id)
        for track_id in track_ids:
            if track_id in existing:
                continue
            position += 1
            self.session.add(
                PlaylistTrack(playlist_id=playlist_id, track_id=track_id, position=position)
            )
        self._commit()

    def delete_tracks_from_playlist(self, playlist_id: str, *track_ids: str) -> None:
        self._execute(
            delete(PlaylistTrack).where(
                PlaylistTrack.playlist_id == playlist_id,
                PlaylistTrack.track_id.in_(track_ids),
            )
        )

    # personal playlist list

    def get_user_playlists(self, user_id: str) -> List[str]:
        return self._scalars(
            select(UserPlaylist.playlist_id)
            .where(UserPlaylist.user_id == user_id)
            .order_by(UserPlaylist.added_at, UserPlaylist.playlist_id)
        )

    def add_playlists_to_user_list(self, user_id: str, *playlist_ids: str) -> None:
        existing = set(self.get_user_playlists(user_id))
        playlist_ids = _unique(playlist_ids)
        for playlist_id in playlist_ids:
            self.get_playlist(playlist_id)
        for playlist_id in playlist_ids:
            if playlist_id not in existing:
                self.session.add(UserPlaylist(user_id=user_id, playlist_id=playlist_id))
        self._commit()

    def delete_playlists_from_user_list(self, user_id: str, *playlist_ids: str) -> None:
        self._execute(
            delete(UserPlaylist).where(
                UserPlaylist.user_id == user_id, UserPlaylist.playlist_id.in_(playlist_ids)
            )
        )

    # refresh tokens

    def add_refresh_token(self, user_id: str, token: str) -> None:
        self.session.add(RefreshToken(user_id=user_id, token=token))
        self._commit()

    def update_refresh_token(self, user_id: str, old_token: str, new_token: str) -> None:
        # A single conditional UPDATE: concurrent rotations of one token
        # cannot both match the old value.
        rowcount = self._execute(
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.token == old_token)
            .values(token=new_token, issued_at=datetime.utcnow())
        )
        if rowcount == 0:
            raise NotFoundError("refresh token not found")

    def delete_refresh_token(self, user_id: str, token: str) -> None:
        rowcount = self._execute(
            delete(RefreshToken).where(
                RefreshToken.user_id == user_id, RefreshToken.token == token
            )
        )
        if rowcount == 0:
            raise NotFoundError("refresh token not found")

    def _execute(self, statement) -> int:
        """Run a bulk write and commit it, returning the affected row count."""
        try:
            result = self.session.execute(statement)
            if result.rowcount == 0:
                self.session.rollback()
                return 0
            self.session.commit()
        except SQLAlchemyError as exc:
            self._fail(exc)
        return result.rowcount


def _unique(ids) -> list:
    seen = set()
    ordered = []
    for item in ids:
        if item not in seen:
            seen.add(item)
            ordered.append(item)
    return ordered

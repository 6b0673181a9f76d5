"""Service layer for the music catalog.

Every operation is a sequence of store calls executed in order; the first
failure aborts the rest. Nothing is cached between calls.
"""

import logging
from typing import Dict, List, Optional

from prometheus_client import Counter

from .errors import PartialCommitError, StoreError
from .guard import authorize_owner
from .models.user import Role
from .repository import DeleteTrackCallback, Repository, UploadTrackCallback
from .schemas import PlaylistResponse, TrackResponse
from .security import check_password_hash, hash_password
from .tokens import TokenPair, TokenService


logger = logging.getLogger(__name__)

SIGN_IN_COUNTER = Counter("sign_ins_total", "Sign-in attempts by outcome", ["outcome"])
TRACK_UPLOAD_COUNTER = Counter("tracks_uploaded_total", "Total tracks uploaded")
PLAYLIST_COUNTER = Counter("playlists_created_total", "Total playlists created")


class _Composer:
    """Fold track and playlist records into views for a single call.

    Artist names are memoised for the lifetime of the instance only, so a
    playlist repeating an artist costs one lookup.
    """

    def __init__(self, repo: Repository) -> None:
        self.repo = repo
        self._artists: Dict[str, str] = {}

    def artist_name(self, artist_id: str) -> str:
        if artist_id not in self._artists:
            self._artists[artist_id] = self.repo.get_artist(artist_id).name
        return self._artists[artist_id]

    def track(self, track) -> TrackResponse:
        return TrackResponse(id=track.id, title=track.title, artist=self.artist_name(track.artist_id))

    def track_by_id(self, track_id: str) -> TrackResponse:
        return self.track(self.repo.get_track(track_id))

    def tracks(self, track_ids: List[str]) -> List[TrackResponse]:
        return [self.track_by_id(track_id) for track_id in track_ids]

    def playlist(self, playlist) -> PlaylistResponse:
        track_ids = self.repo.get_playlist_tracks(playlist.id)
        return PlaylistResponse(id=playlist.id, title=playlist.title, track_list=self.tracks(track_ids))


class MusicService:
    """Catalog, playlist and session workflows over a :class:`Repository`."""

    def __init__(self, repo: Repository, tokens: TokenService, default_role: Role = Role.USER) -> None:
        self.repo = repo
        self.tokens = tokens
        self.default_role = default_role

    # tracks

    def add_new_track(
        self,
        title: str,
        artist_id: str,
        genre_id: Optional[str],
        uploaded_by_id: Optional[str],
        upload_track: UploadTrackCallback,
        discard_upload: Optional[DeleteTrackCallback] = None,
    ) -> TrackResponse:
        """Store a track with its audio payload and return its view.

        If the upload or insert fails nothing is stored and a written
        payload is handed to ``discard_upload``. If the artist
        cannot be resolved afterwards the track stays stored and
        :class:`PartialCommitError` names it.
        """
        track = self.repo.add_new_track(
            title, artist_id, genre_id, uploaded_by_id, upload_track, discard_upload
        )
        track_id = track.id
        TRACK_UPLOAD_COUNTER.inc()
        logger.info("track uploaded id=%s by=%s", track_id, uploaded_by_id)
        try:
            return _Composer(self.repo).track(track)
        except StoreError as exc:
            logger.exception("track %s stored but could not be resolved", track_id)
            raise PartialCommitError("track", track_id, exc) from exc

    def get_all_tracks(self) -> List[TrackResponse]:
        composer = _Composer(self.repo)
        return [composer.track(track) for track in self.repo.get_all_tracks()]

    def get_track_by_id(self, track_id: str) -> TrackResponse:
        return _Composer(self.repo).track_by_id(track_id)

    def update_track_by_id(
        self,
        track_id: str,
        title: Optional[str] = None,
        artist_id: Optional[str] = None,
        genre_id: Optional[str] = None,
    ) -> TrackResponse:
        track = self.repo.update_track(track_id, title=title, artist_id=artist_id, genre_id=genre_id)
        return _Composer(self.repo).track(track)

    def delete_track_by_id(self, track_id: str, delete_track: DeleteTrackCallback) -> None:
        self.repo.delete_track(track_id, delete_track)
        logger.info("track deleted id=%s", track_id)

    # sessions

    def sign_up(self, email: str, username: str, password: str) -> str:
        """Create a user with the configured default role and return its id."""
        user = self.repo.add_new_user(email, username, hash_password(password), self.default_role.value)
        logger.info("user signed up id=%s", user.id)
        return user.id

    def sign_in(self, email: str, password: str) -> TokenPair:
        """Return a fresh token pair, or an empty pair when the password is wrong.

        The empty pair is not an error; callers decide how to report it.
        """
        user = self.repo.get_user_by_email(email)
        if not check_password_hash(password, user.password_hash):
            SIGN_IN_COUNTER.labels(outcome="rejected").inc()
            logger.info("sign in rejected user=%s", user.id)
            return TokenPair()
        pair = self.tokens.sign_in(user.id)
        SIGN_IN_COUNTER.labels(outcome="accepted").inc()
        return pair

    def refresh_token(self, token: str) -> TokenPair:
        return self.tokens.rotate(token)

    def sign_out(self, token: str) -> None:
        self.tokens.revoke(token)

    # personal track list

    def get_user_track_list(self, user_id: str) -> List[TrackResponse]:
        return _Composer(self.repo).tracks(self.repo.get_user_track_list(user_id))

    def add_tracks_to_user_track_list(self, user_id: str, *track_ids: str) -> None:
        self.repo.add_tracks_to_user_list(user_id, *track_ids)

    def delete_tracks_from_user_track_list(self, user_id: str, *track_ids: str) -> None:
        self.repo.delete_tracks_from_user_list(user_id, *track_ids)

    # playlists

    def get_all_playlists(self) -> List[PlaylistResponse]:
        composer = _Composer(self.repo)
        return [composer.playlist(playlist) for playlist in self.repo.get_all_playlists()]

    def get_user_playlists(self, user_id: str) -> List[PlaylistResponse]:
        playlists = [self.repo.get_playlist(pid) for pid in self.repo.get_user_playlists(user_id)]
        composer = _Composer(self.repo)
        return [composer.playlist(playlist) for playlist in playlists]

    def get_playlist_by_id(self, playlist_id: str) -> PlaylistResponse:
        return _Composer(self.repo).playlist(self.repo.get_playlist(playlist_id))

    def create_new_playlist(
        self, title: str, created_by_id: str, track_list: List[str]
    ) -> PlaylistResponse:
        """Create a playlist, attach ``track_list`` and return the view.

        A failure after the playlist row exists leaves it in place and
        raises :class:`PartialCommitError` carrying its id.
        """
        playlist = self.repo.add_new_playlist(title, created_by_id)
        playlist_id = playlist.id
        PLAYLIST_COUNTER.inc()
        logger.info("playlist created id=%s by=%s", playlist_id, created_by_id)
        try:
            self.repo.add_tracks_to_playlist(playlist_id, *track_list)
            return _Composer(self.repo).playlist(playlist)
        except StoreError as exc:
            logger.exception("playlist %s created but tracks were not attached", playlist_id)
            raise PartialCommitError("playlist", playlist_id, exc) from exc

    def delete_playlist_by_id(self, playlist_id: str, user_id: str) -> None:
        playlist = self.repo.get_playlist(playlist_id)
        authorize_owner(user_id, playlist.created_by_id)
        self.repo.delete_playlist(playlist_id)
        logger.info("playlist deleted id=%s", playlist_id)

    def add_tracks_to_playlist(self, user_id: str, playlist_id: str, track_list: List[str]) -> None:
        playlist = self.repo.get_playlist(playlist_id)
        authorize_owner(user_id, playlist.created_by_id)
        self.repo.add_tracks_to_playlist(playlist_id, *track_list)

    def delete_tracks_from_playlist(self, user_id: str, playlist_id: str, track_list: List[str]) -> None:
        playlist = self.repo.get_playlist(playlist_id)
        authorize_owner(user_id, playlist.created_by_id)
        self.repo.delete_tracks_from_playlist(playlist_id, *track_list)

    # personal playlist list

    def add_playlists_to_user_list(self, user_id: str, *playlist_ids: str) -> None:
        self.repo.add_playlists_to_user_list(user_id, *playlist_ids)

    def delete_playlists_from_user_list(self, user_id: str, *playlist_ids: str) -> None:
        self.repo.delete_playlists_from_user_list(user_id, *playlist_ids)

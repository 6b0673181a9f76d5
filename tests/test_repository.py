import pytest
from sqlalchemy.exc import SQLAlchemyError

from tunedeck.database import PlaylistTrack, Track, UserPlaylist
from tunedeck.errors import NotFoundError, StoreError


def _track(repo, artist, title="Song A"):
    return repo.add_new_track(title, artist.id, None, None, lambda track_id: None)


def test_playlist_tracks_keep_insertion_order(repo, artist, alice):
    tracks = [_track(repo, artist, f"Song {n}") for n in range(3)]
    playlist = repo.add_new_playlist("Mix", alice.id)

    repo.add_tracks_to_playlist(playlist.id, tracks[2].id, tracks[0].id)
    repo.add_tracks_to_playlist(playlist.id, tracks[1].id, tracks[0].id)

    assert repo.get_playlist_tracks(playlist.id) == [tracks[2].id, tracks[0].id, tracks[1].id]


def test_adding_unknown_track_stages_nothing(repo, artist, alice):
    track = _track(repo, artist)
    playlist = repo.add_new_playlist("Mix", alice.id)

    with pytest.raises(NotFoundError):
        repo.add_tracks_to_playlist(playlist.id, track.id, "missing")
    repo.add_artist("Artist Y")

    assert repo.get_playlist_tracks(playlist.id) == []


def test_delete_playlist_removes_memberships(repo, artist, alice, bob):
    track = _track(repo, artist)
    playlist = repo.add_new_playlist("Mix", alice.id)
    playlist_id = playlist.id
    repo.add_tracks_to_playlist(playlist_id, track.id)
    repo.add_playlists_to_user_list(bob.id, playlist_id)

    repo.delete_playlist(playlist_id)

    assert repo.session.query(PlaylistTrack).count() == 0
    assert repo.session.query(UserPlaylist).count() == 0
    assert repo.get_user_playlists(bob.id) == []


def test_update_refresh_token_requires_current_value(repo, alice):
    repo.add_refresh_token(alice.id, "first")

    repo.update_refresh_token(alice.id, "first", "second")

    with pytest.raises(NotFoundError):
        repo.update_refresh_token(alice.id, "first", "third")
    with pytest.raises(NotFoundError):
        repo.delete_refresh_token(alice.id, "first")
    repo.delete_refresh_token(alice.id, "second")


def test_refresh_token_is_scoped_to_its_user(repo, alice, bob):
    repo.add_refresh_token(alice.id, "token")

    with pytest.raises(NotFoundError):
        repo.update_refresh_token(bob.id, "token", "stolen")
    with pytest.raises(NotFoundError):
        repo.delete_refresh_token(bob.id, "token")


def test_update_track_keeps_omitted_fields(repo, artist, genre):
    track = repo.add_new_track("Song A", artist.id, genre.id, None, lambda track_id: None)

    updated = repo.update_track(track.id, title="Song B")

    assert updated.title == "Song B"
    assert updated.artist_id == artist.id
    assert updated.genre_id == genre.id


def test_lookups_raise_not_found(repo):
    for lookup in (repo.get_user, repo.get_track, repo.get_artist, repo.get_genre, repo.get_playlist):
        with pytest.raises(NotFoundError):
            lookup("missing")
    with pytest.raises(NotFoundError):
        repo.get_user_by_email("nobody@example.com")


def _failing_commit():
    raise SQLAlchemyError("commit failed")


def test_failed_commit_discards_uploaded_payload(repo, artist, monkeypatch):
    uploaded, discarded = [], []
    monkeypatch.setattr(repo.session, "commit", _failing_commit)

    with pytest.raises(StoreError):
        repo.add_new_track("Song A", artist.id, None, None, uploaded.append, discarded.append)
    monkeypatch.undo()

    assert len(uploaded) == 1
    assert discarded == uploaded
    assert repo.get_all_tracks() == []


def test_failed_delete_keeps_row_and_payload(repo, artist, monkeypatch):
    track_id = _track(repo, artist).id
    deleted = []
    monkeypatch.setattr(repo.session, "commit", _failing_commit)

    with pytest.raises(StoreError):
        repo.delete_track(track_id, deleted.append)
    monkeypatch.undo()

    assert deleted == []
    assert repo.get_track(track_id).title == "Song A"


def test_payload_removed_after_delete_commits(repo, artist):
    track_id = _track(repo, artist).id
    row_present = []

    def delete_payload(deleted_id):
        row_present.append(repo.session.get(Track, deleted_id) is not None)

    repo.delete_track(track_id, delete_payload)

    assert row_present == [False]

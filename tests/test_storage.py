import io

from tunedeck.storage import AudioStorage


def test_upload_and_delete_callbacks(tmp_path):
    storage = AudioStorage(tmp_path / "audio")

    storage.upload_callback(io.BytesIO(b"RIFF....WAVE"))("track-1")

    assert storage.path_for("track-1").read_bytes() == b"RIFF....WAVE"

    storage.delete_callback()("track-1")

    assert not storage.path_for("track-1").exists()


def test_deleting_missing_audio_is_not_an_error(tmp_path):
    AudioStorage(tmp_path).delete_callback()("never-uploaded")

"""Filesystem storage for uploaded audio payloads."""

import logging
import shutil
from pathlib import Path
from typing import BinaryIO

from .repository import DeleteTrackCallback, UploadTrackCallback

logger = logging.getLogger(__name__)


class AudioStorage:
    """Stores one audio file per track under ``root``."""

    suffix = ".audio"

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def path_for(self, track_id: str) -> Path:
        return self.root / f"{track_id}{self.suffix}"

    def upload_callback(self, stream: BinaryIO) -> UploadTrackCallback:
        """Return a callback writing ``stream`` to the new track's file."""

        def upload(track_id: str) -> None:
            self.root.mkdir(parents=True, exist_ok=True)
            path = self.path_for(track_id)
            with path.open("wb") as fh:
                shutil.copyfileobj(stream, fh)
            logger.info("stored audio track=%s path=%s", track_id, path)

        return upload

    def delete_callback(self) -> DeleteTrackCallback:
        def delete(track_id: str) -> None:
            self.path_for(track_id).unlink(missing_ok=True)
            logger.info("removed audio track=%s", track_id)

        return delete

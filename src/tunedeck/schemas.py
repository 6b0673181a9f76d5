"""Response views composed from catalog records."""

from typing import List

from pydantic import BaseModel, Field


class TrackResponse(BaseModel):
    """A track with its artist reference resolved to a display name."""

    id: str
    title: str
    artist: str = Field(..., description="Display name of the track's artist")


class PlaylistResponse(BaseModel):
    """A playlist with every member track resolved."""

    id: str
    title: str
    track_list: List[TrackResponse] = Field(default_factory=list)

"""FastAPI application exposing the music catalog, playlists and sessions."""

from typing import List, Optional

import logging
from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

from pydantic import BaseModel, Field

from .auth import (
    get_audio_storage,
    get_current_user_id,
    get_music_service,
    verify_user,
)
from .config import settings
from .database import init_db
from .errors import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    NotOwnerError,
    PartialCommitError,
    StoreError,
)
from .schemas import PlaylistResponse, TrackResponse
from .services import MusicService
from .storage import AudioStorage


logging.basicConfig(level=settings.log_level)

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
app = FastAPI(title=settings.api_title)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
init_db()

logger = logging.getLogger(__name__)

SENSITIVE_RATE_LIMIT = "5/minute"
SENSITIVE_HOURLY_RATE_LIMIT = "100/hour"

# Prometheus counter to track API requests by method, endpoint and status code
REQUEST_COUNTER = Counter(
    "api_requests_total",
    "Total API requests",
    ["method", "endpoint", "status"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests and their outcomes while updating metrics."""
    logger.info("request %s %s", request.method, request.url.path)
    try:
        response = await call_next(request)
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=request.url.path,
            status=str(response.status_code),
        ).inc()
        logger.info(
            "response %s %s status %s",
            request.method,
            request.url.path,
            response.status_code,
        )
        return response
    except Exception:
        REQUEST_COUNTER.labels(
            method=request.method,
            endpoint=request.url.path,
            status="500",
        ).inc()
        logger.exception(
            "error handling %s %s", request.method, request.url.path
        )
        raise


def _error(status_code: int, exc: Exception, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": str(exc), **extra},
    )


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):
    response = _error(401, exc)
    response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(ForbiddenError)
async def forbidden_error_handler(request: Request, exc: ForbiddenError):
    return _error(403, exc)


@app.exception_handler(NotOwnerError)
async def not_owner_error_handler(request: Request, exc: NotOwnerError):
    return _error(403, exc)


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return _error(404, exc)


@app.exception_handler(ConflictError)
async def conflict_error_handler(request: Request, exc: ConflictError):
    return _error(409, exc)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    return _error(500, exc)


@app.exception_handler(PartialCommitError)
async def partial_commit_error_handler(request: Request, exc: PartialCommitError):
    return _error(500, exc, resource=exc.resource, resource_id=exc.resource_id)


class SignUpRequest(BaseModel):
    """Request body for registering a new user."""

    email: str = Field(..., min_length=3)
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SignUpResponse(BaseModel):
    """Identifier of the newly created user."""

    user_id: str


class SignInRequest(BaseModel):
    """Request body for user sign in."""

    email: str
    password: str


class RefreshTokenRequest(BaseModel):
    """Request body carrying a refresh token."""

    refresh_token: str


class TokenResponse(BaseModel):
    """JWT access and refresh tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class StatusResponse(BaseModel):
    ok: bool = True


class TrackUpdateRequest(BaseModel):
    """Request body for updating track metadata; omitted fields are kept."""

    title: Optional[str] = None
    artist_id: Optional[str] = None
    genre_id: Optional[str] = None


class PlaylistCreateRequest(BaseModel):
    """Request body for creating a playlist."""

    title: str = Field(..., min_length=1)
    track_list: List[str] = Field(default_factory=list)


class TrackIdsRequest(BaseModel):
    track_ids: List[str] = Field(..., min_length=1)


class PlaylistIdsRequest(BaseModel):
    playlist_ids: List[str] = Field(..., min_length=1)


@app.get("/metrics")
def metrics() -> Response:
    """Expose Prometheus metrics."""

    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


# sessions


@app.post("/auth/signup", response_model=SignUpResponse)
@limiter.limit(SENSITIVE_RATE_LIMIT)
def sign_up(
    request: Request,
    payload: SignUpRequest,
    service: MusicService = Depends(get_music_service),
):
    """Register a new user with the default role."""

    user_id = service.sign_up(payload.email, payload.username, payload.password)
    return SignUpResponse(user_id=user_id)


@app.post("/auth/signin", response_model=TokenResponse)
@limiter.limit(SENSITIVE_RATE_LIMIT)
@limiter.limit(SENSITIVE_HOURLY_RATE_LIMIT)
def sign_in(
    request: Request,
    payload: SignInRequest,
    service: MusicService = Depends(get_music_service),
):
    """Exchange credentials for an access and refresh token pair."""

    pair = service.sign_in(payload.email, payload.password)
    if not pair:
        raise InvalidCredentialsError()
    return TokenResponse(access_token=pair.access_token, refresh_token=pair.refresh_token)


@app.post("/auth/refresh", response_model=TokenResponse)
def refresh(payload: RefreshTokenRequest, service: MusicService = Depends(get_music_service)):
    """Rotate a refresh token into a new token pair."""

    pair = service.refresh_token(payload.refresh_token)
    return TokenResponse(access_token=pair.access_token, refresh_token=pair.refresh_token)


@app.post("/auth/signout", response_model=StatusResponse)
def sign_out(payload: RefreshTokenRequest, service: MusicService = Depends(get_music_service)):
    """Revoke a refresh token."""

    service.sign_out(payload.refresh_token)
    return StatusResponse()


# tracks


@app.get("/tracks", response_model=List[TrackResponse], dependencies=[Depends(get_current_user_id)])
def list_tracks(service: MusicService = Depends(get_music_service)):
    return service.get_all_tracks()


@app.get(
    "/tracks/{track_id}",
    response_model=TrackResponse,
    dependencies=[Depends(get_current_user_id)],
)
def get_track(track_id: str, service: MusicService = Depends(get_music_service)):
    return service.get_track_by_id(track_id)


@app.post("/tracks", response_model=TrackResponse)
def upload_track(
    title: str = Form(...),
    artist_id: str = Form(...),
    genre_id: Optional[str] = Form(None),
    file: UploadFile = File(...),
    current_user_id: str = Depends(get_current_user_id),
    service: MusicService = Depends(get_music_service),
    storage: AudioStorage = Depends(get_audio_storage),
):
    """Upload an audio file together with its metadata."""

    return service.add_new_track(
        title,
        artist_id,
        genre_id,
        current_user_id,
        storage.upload_callback(file.file),
        storage.delete_callback(),
    )


@app.put(
    "/tracks/{track_id}",
    response_model=TrackResponse,
    dependencies=[Depends(get_current_user_id)],
)
def update_track(
    track_id: str,
    payload: TrackUpdateRequest,
    service: MusicService = Depends(get_music_service),
):
    return service.update_track_by_id(
        track_id,
        title=payload.title,
        artist_id=payload.artist_id,
        genre_id=payload.genre_id,
    )


@app.delete(
    "/tracks/{track_id}",
    response_model=StatusResponse,
    dependencies=[Depends(get_current_user_id)],
)
def delete_track(
    track_id: str,
    service: MusicService = Depends(get_music_service),
    storage: AudioStorage = Depends(get_audio_storage),
):
    service.delete_track_by_id(track_id, storage.delete_callback())
    return StatusResponse()


# personal lists


@app.get(
    "/users/{user_id}/tracks",
    response_model=List[TrackResponse],
    dependencies=[Depends(verify_user)],
)
def get_user_tracks(user_id: str, service: MusicService = Depends(get_music_service)):
    """Return the user's personal track list."""

    return service.get_user_track_list(user_id)


@app.post(
    "/users/{user_id}/tracks",
    response_model=StatusResponse,
    dependencies=[Depends(verify_user)],
)
def add_user_tracks(
    user_id: str, payload: TrackIdsRequest, service: MusicService = Depends(get_music_service)
):
    service.add_tracks_to_user_track_list(user_id, *payload.track_ids)
    return StatusResponse()


@app.delete(
    "/users/{user_id}/tracks",
    response_model=StatusResponse,
    dependencies=[Depends(verify_user)],
)
def delete_user_tracks(
    user_id: str, payload: TrackIdsRequest, service: MusicService = Depends(get_music_service)
):
    service.delete_tracks_from_user_track_list(user_id, *payload.track_ids)
    return StatusResponse()


@app.get(
    "/users/{user_id}/playlists",
    response_model=List[PlaylistResponse],
    dependencies=[Depends(verify_user)],
)
def get_user_playlists(user_id: str, service: MusicService = Depends(get_music_service)):
    """Return the playlists in the user's personal list."""

    return service.get_user_playlists(user_id)


@app.post(
    "/users/{user_id}/playlists",
    response_model=StatusResponse,
    dependencies=[Depends(verify_user)],
)
def add_user_playlists(
    user_id: str, payload: PlaylistIdsRequest, service: MusicService = Depends(get_music_service)
):
    service.add_playlists_to_user_list(user_id, *payload.playlist_ids)
    return StatusResponse()


@app.delete(
    "/users/{user_id}/playlists",
    response_model=StatusResponse,
    dependencies=[Depends(verify_user)],
)
def delete_user_playlists(
    user_id: str, payload: PlaylistIdsRequest, service: MusicService = Depends(get_music_service)
):
    service.delete_playlists_from_user_list(user_id, *payload.playlist_ids)
    return StatusResponse()


# playlists


@app.get(
    "/playlists",
    response_model=List[PlaylistResponse],
    dependencies=[Depends(get_current_user_id)],
)
def list_playlists(service: MusicService = Depends(get_music_service)):
    return service.get_all_playlists()


@app.get(
    "/playlists/{playlist_id}",
    response_model=PlaylistResponse,
    dependencies=[Depends(get_current_user_id)],
)
def get_playlist(playlist_id: str, service: MusicService = Depends(get_music_service)):
    return service.get_playlist_by_id(playlist_id)


@app.post("/playlists", response_model=PlaylistResponse)
def create_playlist(
    payload: PlaylistCreateRequest,
    current_user_id: str = Depends(get_current_user_id),
    service: MusicService = Depends(get_music_service),
):
    """Create a playlist owned by the caller."""

    return service.create_new_playlist(payload.title, current_user_id, payload.track_list)


@app.delete("/playlists/{playlist_id}", response_model=StatusResponse)
def delete_playlist(
    playlist_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: MusicService = Depends(get_music_service),
):
    service.delete_playlist_by_id(playlist_id, current_user_id)
    return StatusResponse()


@app.post("/playlists/{playlist_id}/tracks", response_model=StatusResponse)
def add_playlist_tracks(
    playlist_id: str,
    payload: TrackIdsRequest,
    current_user_id: str = Depends(get_current_user_id),
    service: MusicService = Depends(get_music_service),
):
    service.add_tracks_to_playlist(current_user_id, playlist_id, payload.track_ids)
    return StatusResponse()


@app.delete("/playlists/{playlist_id}/tracks", response_model=StatusResponse)
def delete_playlist_tracks(
    playlist_id: str,
    payload: TrackIdsRequest,
    current_user_id: str = Depends(get_current_user_id),
    service: MusicService = Depends(get_music_service),
):
    service.delete_tracks_from_playlist(current_user_id, playlist_id, payload.track_ids)
    return StatusResponse()

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from .config import settings
from .database import SessionLocal
from .errors import InvalidTokenError, NoTokenError
from .guard import authorize_path_identity
from .models.user import Role
from .repository import SqlAlchemyRepository
from .services import MusicService
from .storage import AudioStorage
from .tokens import TokenService, TokenType


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> SqlAlchemyRepository:
    return SqlAlchemyRepository(db)


def get_token_service(repo: SqlAlchemyRepository = Depends(get_repository)) -> TokenService:
    return TokenService.from_settings(repo)


def get_music_service(
    repo: SqlAlchemyRepository = Depends(get_repository),
    tokens: TokenService = Depends(get_token_service),
) -> MusicService:
    return MusicService(repo, tokens, default_role=Role(settings.default_user_role))


def get_audio_storage() -> AudioStorage:
    return AudioStorage(settings.audio_dir)


def parse_authorization_header(header: Optional[str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` value."""
    if not header:
        raise NoTokenError()
    parts = header.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise InvalidTokenError()
    return parts[1]


def get_current_user_id(
    authorization: Optional[str] = Header(None),
    tokens: TokenService = Depends(get_token_service),
) -> str:
    token = parse_authorization_header(authorization)
    return tokens.parse_and_validate(token, TokenType.ACCESS).user_id


def verify_user(user_id: str, current_user_id: str = Depends(get_current_user_id)) -> None:
    authorize_path_identity(current_user_id, user_id)

"""Signed session tokens: issuing, validation, rotation and revocation.

Access tokens are validated statelessly (signature and expiry only).
Refresh tokens are additionally tracked in the store: a refresh token is
usable only while its record exists, so rotation and sign-out invalidate
it even though its signature stays valid until expiry.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from prometheus_client import Counter
from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError

from .config import Settings, settings as default_settings
from .errors import InvalidTokenError, NotFoundError
from .repository import Repository

logger = logging.getLogger(__name__)

TOKEN_ROTATION_COUNTER = Counter(
    "token_rotations_total", "Refresh token rotations by outcome", ["outcome"]
)


class TokenType(str, enum.Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenClaims(BaseModel):
    """Claims carried by every token this service signs."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: StrictStr = Field(..., alias="userId", min_length=1)
    exp: float
    type: Optional[TokenType] = None
    jti: Optional[str] = None


@dataclass(frozen=True)
class TokenPair:
    """An access token and the refresh token minted alongside it.

    An empty pair is falsy.
    """

    access_token: str = ""
    refresh_token: str = ""

    def __bool__(self) -> bool:
        return bool(self.access_token and self.refresh_token)


class TokenService:
    def __init__(
        self,
        repo: Repository,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self.repo = repo
        self.secret = secret
        self.algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl

    @classmethod
    def from_settings(cls, repo: Repository, settings: Settings = default_settings) -> "TokenService":
        return cls(
            repo,
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(minutes=settings.refresh_token_expire_minutes),
        )

    def _encode(self, user_id: str, token_type: TokenType, expires: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "userId": user_id,
            "iat": now,
            "exp": now + expires,
            "type": token_type.value,
            # Keeps two pairs minted in the same second distinct.
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def issue_token_pair(self, user_id: str) -> TokenPair:
        """Sign a new access/refresh pair for ``user_id`` without storing it."""
        return TokenPair(
            access_token=self._encode(user_id, TokenType.ACCESS, self.access_ttl),
            refresh_token=self._encode(user_id, TokenType.REFRESH, self.refresh_ttl),
        )

    def sign_in(self, user_id: str) -> TokenPair:
        """Issue a pair and record its refresh token before handing it out."""
        pair = self.issue_token_pair(user_id)
        self.repo.add_refresh_token(user_id, pair.refresh_token)
        logger.info("issued token pair user=%s", user_id)
        return pair

    def parse_and_validate(
        self, token: str, token_type: Optional[TokenType] = None
    ) -> TokenClaims:
        """Verify signature and expiry and return the typed claims.

        Does not consult the store. Raises :class:`InvalidTokenError` for
        malformed, tampered or expired tokens, for claims of the wrong
        shape, and for a token of the wrong ``token_type`` when one is
        requested.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp"]},
            )
            claims = TokenClaims.model_validate(payload)
        except (jwt.PyJWTError, ValidationError) as exc:
            raise InvalidTokenError() from exc
        if token_type is not None and claims.type is not token_type:
            raise InvalidTokenError()
        return claims

    def rotate(self, old_refresh_token: str) -> TokenPair:
        """Exchange a stored refresh token for a new pair.

        The stored record is swapped in one store call; if that fails the
        new pair is discarded and the old record is left as it was.
        """
        claims = self.parse_and_validate(old_refresh_token, TokenType.REFRESH)
        pair = self.issue_token_pair(claims.user_id)
        try:
            self.repo.update_refresh_token(claims.user_id, old_refresh_token, pair.refresh_token)
        except NotFoundError as exc:
            TOKEN_ROTATION_COUNTER.labels(outcome="rejected").inc()
            logger.info("refresh token already rotated or revoked user=%s", claims.user_id)
            raise InvalidTokenError() from exc
        except Exception:
            TOKEN_ROTATION_COUNTER.labels(outcome="failed").inc()
            raise
        TOKEN_ROTATION_COUNTER.labels(outcome="rotated").inc()
        logger.info("rotated refresh token user=%s", claims.user_id)
        return pair

    def revoke(self, refresh_token: str) -> None:
        """Delete the stored record so the token can no longer be rotated."""
        claims = self.parse_and_validate(refresh_token, TokenType.REFRESH)
        try:
            self.repo.delete_refresh_token(claims.user_id, refresh_token)
        except NotFoundError as exc:
            raise InvalidTokenError() from exc
        logger.info("revoked refresh token user=%s", claims.user_id)

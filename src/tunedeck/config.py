from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field("sqlite:///tunedeck.db", env="DATABASE_URL")
    api_title: str = Field("Tunedeck API", env="API_TITLE")
    access_token_expire_minutes: int = Field(15, env="ACCESS_TOKEN_EXPIRE_MINUTES")
    refresh_token_expire_minutes: int = Field(60 * 24 * 7, env="REFRESH_TOKEN_EXPIRE_MINUTES")
    jwt_secret: str = Field("change-me-tunedeck-development-secret", env="JWT_SECRET")
    jwt_algorithm: str = Field("HS256", env="JWT_ALGORITHM")
    default_user_role: str = Field("user", env="DEFAULT_USER_ROLE")
    audio_dir: str = Field("audio", env="AUDIO_DIR")
    log_level: str = Field("INFO", env="LOG_LEVEL")
    rate_limit_enabled: bool = Field(True, env="RATE_LIMIT_ENABLED")
    password_hash_iterations: int = Field(260_000, env="PASSWORD_HASH_ITERATIONS")


settings = Settings()

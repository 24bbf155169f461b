"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    openai_api_key: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    openai_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.openai.com/v1"),
        validation_alias=AliasChoices("OPENAI_BASE_URL", "openai_base_url"),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("REQUEST_TIMEOUT", "request_timeout"),
        ge=1,
    )

    chat_model: str = Field(
        default="gpt-4o-2024-08-06",
        validation_alias=AliasChoices("CHAT_MODEL", "chat_model"),
    )
    title_temperature: float = Field(
        default=0.7,
        validation_alias=AliasChoices("TITLE_TEMPERATURE", "title_temperature"),
        ge=0,
        le=2,
    )
    title_max_tokens: int = Field(
        default=50,
        validation_alias=AliasChoices("TITLE_MAX_TOKENS", "title_max_tokens"),
        ge=1,
    )

    # Speech synthesis
    tts_model: str = Field(
        default="tts-1",
        validation_alias=AliasChoices("TTS_MODEL", "tts_model"),
    )
    tts_speed: float = Field(
        default=0.88,
        validation_alias=AliasChoices("TTS_SPEED", "tts_speed"),
        ge=0.25,
        le=4.0,
    )
    tts_response_format: str = Field(
        default="mp3",
        validation_alias=AliasChoices("TTS_RESPONSE_FORMAT", "tts_response_format"),
    )
    default_voice: str = Field(
        default="nova",
        validation_alias=AliasChoices("DEFAULT_VOICE", "default_voice"),
    )

    # Transcription
    transcription_model: str = Field(
        default="whisper-1",
        validation_alias=AliasChoices("TRANSCRIPTION_MODEL", "transcription_model"),
    )
    transcription_max_bytes: int = Field(
        default=25 * 1024 * 1024,
        ge=1,
        validation_alias=AliasChoices(
            "TRANSCRIPTION_MAX_BYTES",
            "transcription_max_bytes",
        ),
    )

    # Authentication
    jwt_secret: SecretStr = Field(
        ...,
        validation_alias=AliasChoices("JWT_SECRET", "jwt_secret"),
    )
    jwt_algorithm: str = Field(
        default="HS256",
        validation_alias=AliasChoices("JWT_ALGORITHM", "jwt_algorithm"),
    )

    user_database_path: Path = Field(
        default_factory=lambda: Path("data/users.db"),
        validation_alias=AliasChoices(
            "USER_DATABASE_PATH", "user_database_path", "user_db"
        ),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]

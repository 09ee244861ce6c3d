"""Application settings and configuration management."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or defaults."""

    DB_PATH: str = Field(default="data/interview.db")
    APP_CONFIG_PATH: str = Field(default="app_config.json")

    # Listening has one hard ceiling; question time limits are advisory only.
    LISTEN_TIMEOUT_S: float = Field(default=90.0, gt=0)
    DEFAULT_TIME_LIMIT_S: int = Field(default=120, ge=1)

    SPEECH_TIMEOUT_S: float = Field(default=60.0, gt=0)
    SPEECH_RATE: float = 0.8
    GREETING_SPEECH_RATE: float = 0.75

    TRANSCRIPTION_POLL_INTERVAL_S: float = Field(default=3.0, ge=0)
    TRANSCRIPTION_MAX_POLLS: int = Field(default=60, ge=1)

    EVALUATION_TIMEOUT_S: float = Field(default=60.0, gt=0)
    EVALUATION_MAX_ATTEMPTS: int = Field(default=2, ge=1)
    EVALUATION_RETRY_BACKOFF_S: float = Field(default=2.0, ge=0)

    QUESTION_GENERATION_TIMEOUT_S: float = Field(default=60.0, gt=0)
    QUESTION_CACHE_MAX_AGE_DAYS: int = Field(default=30, ge=0)

    SCORE_DEFAULT: float = Field(default=0.0, ge=0.0, le=10.0)

    ASSEMBLYAI_API_KEY_ENV: str = "ASSEMBLYAI_API_KEY"
    ASSEMBLYAI_BASE_URL: str = "https://api.assemblyai.com/v2"

    TTS_VOICE: str = "en-US-AriaNeural"
    AUDIO_PLAYER: str = "ffplay -nodisp -autoexit -loglevel quiet"
    AUDIO_RATE: int = 16000
    AUDIO_CHANNELS: int = 1
    AUDIO_INPUT_DEVICE: int | None = None

    model_config = SettingsConfigDict(env_file=".env", validate_assignment=True)


settings = Settings()

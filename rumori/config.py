"""
Configuration management for the Rumori client.
Centralizes all environment variables and provides validation.
"""
from typing import Optional
from dotenv import load_dotenv
from pydantic_settings import BaseSettings
from pydantic import field_validator, Field

# Load environment variables
load_dotenv()


class Settings(BaseSettings):
    """Client settings with validation."""

    # Backend
    supabase_url: str = Field(..., description="Backend project URL")
    supabase_key: str = Field(..., description="Public (anon) API key")

    # Storage buckets
    project_bucket: str = "project_files"
    avatar_bucket: str = "avatars"

    # Application
    app_name: str = "Rumori"
    debug: bool = False
    cors_origins: list[str] = ["http://localhost:3000"]

    # Business rules
    min_feedback_length: int = Field(100, ge=0)
    feedback_reward_coins: int = Field(1, ge=0)
    helpful_rating_actor: str = "author"

    # File upload limits
    max_file_size: int = 50 * 1024 * 1024  # 50MB
    max_image_size_mb: float = 1.0
    allowed_audio_formats: list[str] = [".mp3", ".wav", ".m4a", ".aac", ".flac"]
    allowed_image_formats: list[str] = [".jpg", ".jpeg", ".png", ".heic", ".webp"]

    # Audio cropping
    audio_segment_seconds: float = 20.0

    # Retry policy for idempotent reads
    retry_max_attempts: int = Field(3, ge=1)
    retry_base_delay: float = Field(0.5, ge=0)

    @field_validator('supabase_url')
    @classmethod
    def validate_supabase_url(cls, v):
        if not v:
            raise ValueError('SUPABASE_URL is required')
        if not v.startswith('https://'):
            raise ValueError('SUPABASE_URL must be a valid HTTPS URL')
        return v.rstrip('/')

    @field_validator('helpful_rating_actor')
    @classmethod
    def validate_helpful_rating_actor(cls, v):
        v = v.lower()
        if v not in ("author", "owner", "any"):
            raise ValueError('HELPFUL_RATING_ACTOR must be one of: author, owner, any')
        return v

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore"
    }


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get client settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None

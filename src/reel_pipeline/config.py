"""
Configuration management for the celebrity reel pipeline.
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with environment variable support (``REEL_`` prefix)."""

    # Project paths
    data_dir: Path = Field(default_factory=lambda: Path("data"))
    cache_dir: Path = Field(default_factory=lambda: Path("cache"))
    storage_dir: Path = Field(default_factory=lambda: Path("output") / "storage")
    logs_dir: Path = Field(default_factory=lambda: Path("logs"))

    # Queue settings
    max_attempts: int = Field(default=3, ge=1, le=10, description="Attempts per job before it is failed")
    retry_base_delay: float = Field(default=5.0, ge=0, description="Base delay for job-level backoff in seconds")
    retry_max_delay: float = Field(default=300.0, ge=0, description="Cap for job-level backoff in seconds")

    # Script generation provider (OpenAI-compatible chat completions)
    script_api_url: str = Field(default="https://api.openai.com", description="Script provider base URL")
    script_api_key: Optional[str] = Field(default=None, description="Bearer token for the script provider")
    script_model: str = Field(default="gpt-4-turbo-preview")
    script_temperature: float = Field(default=0.7, ge=0, le=2)
    script_timeout: float = Field(default=60.0, gt=0, description="Script provider request timeout in seconds")
    words_per_second: float = Field(default=2.5, gt=0, description="Speaking rate used to budget narration")
    script_length_tolerance: float = Field(default=0.2, ge=0, lt=1, description="Accepted deviation from the word budget")

    # Speech synthesis provider
    tts_api_url: str = Field(default="http://127.0.0.1:6903", description="Speech provider base URL")
    tts_api_key: Optional[str] = Field(default=None)
    tts_output_format: str = Field(default="mp3", description="Audio format requested from the speech provider")
    tts_sample_rate: int = Field(default=24000)
    speech_timeout: float = Field(default=120.0, gt=0, description="Speech provider request timeout in seconds")
    speech_duration_tolerance: float = Field(default=0.15, ge=0, lt=1)
    speech_duration_policy: str = Field(default="warn", pattern="^(warn|resynthesize)$")

    # Transient provider retries (inside the stage adapters)
    provider_max_retries: int = Field(default=3, ge=0, le=10, description="Retries after the first call")
    provider_backoff_base: float = Field(default=1.0, ge=0)
    provider_backoff_max: float = Field(default=8.0, ge=0)

    # Media composition
    ffmpeg_binary: str = Field(default="ffmpeg")
    ffprobe_binary: str = Field(default="ffprobe")
    video_codec: str = Field(default="libx264", description="Video codec (libx264 for CPU)")
    video_preset: str = Field(default="veryfast")
    audio_codec: str = Field(default="aac")
    audio_bitrate: str = Field(default="128k")
    frame_rate: int = Field(default=30, ge=1, le=60)
    encoder_timeout: float = Field(default=300.0, gt=0, description="ffmpeg wall-clock limit in seconds")
    subtitle_chunk_seconds: float = Field(default=3.0, gt=0, description="Seconds of narration per subtitle cue")
    subtitle_font_size: int = Field(default=24, ge=8, le=96)

    # Publishing
    public_base_url: str = Field(default="http://localhost:8080/media", description="CDN base URL for published reels")
    storage_timeout: float = Field(default=60.0, gt=0)

    # Logging settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format: json or text")

    class Config:
        env_prefix = "REEL_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get the global settings instance."""
    return settings


def create_directories(config: Optional[Settings] = None) -> None:
    """Create necessary directories if they don't exist."""
    config = config or settings
    directories = [
        config.data_dir,
        config.data_dir / "jobs",
        config.data_dir / "reels",
        config.cache_dir,
        config.cache_dir / "composition",
        config.storage_dir,
        config.logs_dir,
    ]

    for directory in directories:
        Path(directory).mkdir(parents=True, exist_ok=True)

"""Configuration settings for the Opus transcoding service."""

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EncoderConfig(BaseSettings):
    """Opus encoder settings."""

    executable: str = Field(default="opusenc")
    bitrate: int = Field(default=64, gt=0, description="Target bitrate in kbit/s")
    frame_size: float = Field(default=60, description="Frame size in milliseconds")

    @field_validator("frame_size")
    @classmethod
    def validate_frame_size(cls, v):
        # opusenc only accepts these frame durations
        allowed = (2.5, 5, 10, 20, 40, 60)
        if v not in allowed:
            raise ValueError(f"frame_size must be one of {allowed}, got {v}")
        return v

    model_config = SettingsConfigDict(env_prefix="OPUS_TRANSCODE_ENCODER_")


class DecoderConfig(BaseSettings):
    """Settings for decoders that run external programs."""

    mp3_executable: str = Field(default="lame")

    model_config = SettingsConfigDict(env_prefix="OPUS_TRANSCODE_DECODER_")


class ProcessConfig(BaseSettings):
    """Subprocess orchestration settings."""

    timeout: Optional[float] = Field(default=300.0, description="Seconds, unbounded when unset")
    kill_grace_period: float = Field(default=5.0, ge=0)
    verbose: bool = Field(default=False, description="Forward subprocess stderr to the log")
    diagnostic_tail_lines: int = Field(default=200, gt=0)

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v):
        if v is not None and v <= 0:
            return None
        return v

    model_config = SettingsConfigDict(env_prefix="OPUS_TRANSCODE_PROCESS_")


class APIConfig(BaseSettings):
    """API configuration settings."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    max_upload_bytes: int = Field(default=200 * 1024 * 1024)

    model_config = SettingsConfigDict(env_prefix="OPUS_TRANSCODE_API_")


class Settings(BaseSettings):
    """Main application settings."""

    app_name: str = Field(default="Opus Transcode Service")
    environment: str = Field(default="production")
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    max_concurrency: int = Field(default=4, gt=0)

    encoder: EncoderConfig = Field(default_factory=EncoderConfig)
    decoder: DecoderConfig = Field(default_factory=DecoderConfig)
    process: ProcessConfig = Field(default_factory=ProcessConfig)
    api: APIConfig = Field(default_factory=APIConfig)

    model_config = SettingsConfigDict(
        env_prefix="OPUS_TRANSCODE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def get_settings() -> Settings:
    """Get application settings instance."""
    return Settings()

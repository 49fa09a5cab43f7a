"""Configuration management."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings pulled from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TOWNGEN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="json", description="Logging format (json or console)")

    # Generation
    default_viewport_width: int = Field(default=1200, description="Default raster width")
    default_viewport_height: int = Field(default=800, description="Default raster height")
    max_viewport_size: int = Field(default=4096, description="Max raster width or height")
    max_stored_scenes: int = Field(default=64, description="Scenes kept in the in-memory store")


settings = Settings()

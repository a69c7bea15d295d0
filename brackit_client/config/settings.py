"""Configuration settings for the Brackit client."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server Configuration
    brackit_host: str = Field(default="localhost")
    brackit_port: int = Field(default=11011, gt=0, le=65535)

    # Transport Settings
    brackit_timeout: Optional[float] = Field(
        default=None, description="Connect and I/O timeout in seconds; unset blocks"
    )
    brackit_encoding: str = Field(default="utf-8")
    brackit_chunk_size: int = Field(default=8192, gt=0)

    # Statement used by `test-connection`
    brackit_ping_statement: str = Field(default="1")

    # Application Configuration
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # CLI Configuration
    query_history_size: int = Field(default=100, gt=0)

    @property
    def server_address(self) -> str:
        """Return the server endpoint as ``host:port``."""
        return f"{self.brackit_host}:{self.brackit_port}"


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings

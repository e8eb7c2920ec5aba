"""Application configuration using Pydantic settings."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

PACKAGE_MOCK_DATA_DIR = Path(__file__).parent / "mock_data"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Evaluation backend
    backend_url: str = Field(
        default="http://localhost:8000",
        description="Origin of the evaluation backend the proxy forwards to",
    )
    backend_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Outbound request timeout; unset means no timeout",
    )

    # Mock mode for local development
    use_mock_data: bool = False
    mock_data_dir: Path = PACKAGE_MOCK_DATA_DIR

    # Proxy server
    host: str = "127.0.0.1"
    port: int = 8080

    # Console (CLI) side
    console_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the proxy service the console talks to",
    )
    data_dir: Path = Field(
        default=Path.home() / ".konsole",
        description="Directory for the client-local dataset and API key stores",
    )
    poll_interval_seconds: float = Field(default=10.0, gt=0)

    # Logging
    log_level: str = "INFO"
    cli_log_level: str = Field(
        default="WARNING",
        description="Log level for console commands; logs go to stderr",
    )

    model_config = {
        "env_prefix": "KONSOLE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    @property
    def backend_api_url(self) -> str:
        """Versioned API root on the backend."""
        return f"{self.backend_url.rstrip('/')}/api/v1"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

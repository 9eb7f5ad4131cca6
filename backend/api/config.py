"""
Application Configuration
Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import Optional
from pathlib import Path


BACKEND_DIR = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False

    # Cookie jars - one file per site: <cookie_file_name><site suffix>
    cookie_dir: Path = BACKEND_DIR / "data"
    cookie_file_name: str = "cookies_file.txt"

    # External cookie minter (headless browser scripts)
    minter_interpreter: str = "node"
    minter_script_dir: Path = BACKEND_DIR / "minter"
    minter_timeout: float = 90.0

    # HTTP transport
    http_timeout: float = 30.0
    proxy_url: Optional[str] = None

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Paths
    @property
    def log_dir(self) -> Path:
        """Get the log directory path."""
        return BACKEND_DIR.parent / "logs"

    @property
    def log_file(self) -> Path:
        """Get the log file path."""
        return self.log_dir / "backend.log"

    @property
    def outcome_log_dir(self) -> Path:
        """Get the directory for per-outcome record logs."""
        return self.log_dir / "outcomes"

    class Config:
        # Only load .env if it exists to avoid permission errors
        env_file = ".env" if __import__("pathlib").Path(".env").exists() else None
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables


# Global settings instance
settings = Settings()

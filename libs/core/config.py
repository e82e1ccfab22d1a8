"""Configuration management for the artifact gateway."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Seeded at startup; folders created at runtime are added on top of these.
DEFAULT_CATEGORIES: dict[str, str] = {
    "logs": "logs",
    "reports": "reports",
    "tests": "tests",
    "scraped": "scraped",
    "formatted": "formatted",
    "screenshots": "screenshots",
    "uploads": "uploads",
    "temp": "temp",
    "playwright": "playwright",
    "docs": "docs",
}


class StorageSettings(BaseSettings):
    """Virtual file storage settings."""

    base_dir: Path = Field(default=Path("file_storage"), alias="STORAGE_BASE_DIR")
    max_file_size: int = Field(default=10 * 1024 * 1024, alias="MAX_FILE_SIZE")
    default_encoding: str = Field(default="utf-8", alias="DEFAULT_ENCODING")
    categories_file: Optional[Path] = Field(default=None, alias="CATEGORIES_FILE")


class LogSettings(BaseSettings):
    """Log store settings."""

    level: str = Field(default="INFO", alias="LOG_LEVEL")
    in_memory_limit: int = Field(default=1000, alias="IN_MEMORY_LOG_LIMIT")
    file_max_size: int = Field(default=5 * 1024 * 1024, alias="LOG_FILE_MAX_SIZE")
    rotation_count: int = Field(default=5, alias="LOG_ROTATION_COUNT")
    category: str = Field(default="logs", alias="LOG_CATEGORY")
    file_name: str = Field(default="server.log", alias="LOG_FILE_NAME")
    stream_queue_size: int = Field(default=500, alias="LOG_STREAM_QUEUE")
    console: bool = Field(default=True, alias="LOG_TO_CONSOLE")


class ServerSettings(BaseSettings):
    """HTTP server settings."""

    host: str = Field(default="localhost", alias="GATEWAY_HOST")
    port: int = Field(default=3000, alias="GATEWAY_PORT")
    workers: int = Field(default=1, alias="GATEWAY_WORKERS")

    @property
    def base_url(self) -> str:
        """Get gateway base URL."""
        return f"http://{self.host}:{self.port}"


class BrowserSettings(BaseModel):
    """Browser automation settings (uses nested delimiter BROWSER__)."""

    headless: bool = True
    timeout_ms: int = 30000
    wait_until: str = "domcontentloaded"
    viewport_width: int = 1280
    viewport_height: int = 720
    max_concurrent_scrapes: int = 3


class FormatSettings(BaseSettings):
    """External formatter/linter settings."""

    timeout: float = Field(default=60.0, alias="FORMAT_TIMEOUT")
    npx_command: str = Field(default="npx", alias="NPX_COMMAND")
    ruff_command: str = Field(default="ruff", alias="RUFF_COMMAND")


class RunnerSettings(BaseSettings):
    """Test runner settings (Playwright via npx, Python tests via pytest)."""

    timeout: float = Field(default=300.0, alias="TEST_TIMEOUT")
    npx_command: str = Field(default="npx", alias="NPX_COMMAND")
    pytest_command: str = Field(default="pytest", alias="PYTEST_COMMAND")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",  # Use BROWSER__HEADLESS=false for nested settings
    )

    environment: str = Field(default="development", alias="ENVIRONMENT")

    # Sub-settings
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logs: LogSettings = Field(default_factory=LogSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)
    formatting: FormatSettings = Field(default_factory=FormatSettings)
    testing: RunnerSettings = Field(default_factory=RunnerSettings)

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def base_dir(self) -> Path:
        """Absolute storage root."""
        return self.storage.base_dir.expanduser().resolve()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def load_category_seed(settings: Optional[Settings] = None) -> dict[str, str]:
    """
    Build the startup category table.

    Starts from DEFAULT_CATEGORIES and overlays the optional YAML mapping
    pointed to by CATEGORIES_FILE, e.g.::

        categories:
          exports: reports/exports
          fixtures: tests/fixtures
    """
    settings = settings or get_settings()
    seed = dict(DEFAULT_CATEGORIES)

    path = settings.storage.categories_file
    if not path:
        return seed

    if not path.exists():
        logger.warning(f"[Config] Categories file not found: {path}")
        return seed

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    extra = data.get("categories", data) if isinstance(data, dict) else {}
    for name, relative_path in extra.items():
        seed[str(name)] = str(relative_path)

    logger.info(f"[Config] Loaded {len(extra)} extra categories from {path}")
    return seed

"""Configuration management for snapcheck."""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from snapcheck.core.interfaces import ConfigProvider


MATCH_LEVELS = ["Layout", "Content", "Strict", "Exact"]

VIEWPORT_SIZES = [
    "320x480", "320x533", "320x568", "360x640", "481x600",
    "600x1024", "720x600", "768x1024", "800x600", "900x650",
    "1024x600", "1180x700", "1260x660", "1420x800", "1800x950",
]


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server Configuration
    server_url: str = Field(
        default="https://eyes.applitools.com",
        description="Results server the user logs into",
    )
    api_server_url: str = Field(
        default="https://eyessdk.applitools.com",
        description="API server checks and account lookups go to",
    )
    legacy_login_url: str = Field(
        default="https://www.applitools.com/login/",
        description="Login page for the legacy (API key) scheme",
    )
    legacy_cookie_url: str = Field(
        default="https://applitools.com",
        description="URL the legacy run-key/account-id cookies are set for",
    )
    http_timeout_seconds: float = Field(
        default=30.0, gt=0, description="Timeout for server requests"
    )
    agent_id: str = Field(
        default="snapcheck/0.1.0", description="Agent id reported with each check"
    )

    # Test Defaults
    default_match_level: str = Field(
        default="Strict", description="Match level used when none is stored"
    )
    default_viewport_size: str = Field(
        default="800x600", description="Viewport size used when none is stored"
    )
    new_tab_for_results: bool = Field(
        default=True, description="Open a background tab with the results"
    )
    take_full_page_screenshot: bool = Field(
        default=True, description="Capture the whole page instead of the viewport"
    )
    remove_scroll_bars: bool = Field(
        default=True, description="Hide scroll bars while capturing"
    )
    include_query_params_in_test_name: bool = Field(
        default=False, description="Keep the query string in derived test names"
    )
    page_part_wait_time_ms: int = Field(
        default=300, gt=0, description="Wait between full page parts (ms)"
    )

    # Timing Configuration
    resize_settle_ms: int = Field(
        default=200, ge=0, description="Wait after each window resize (ms)"
    )
    resize_max_attempts: int = Field(
        default=4, ge=1, description="Resize attempts before giving up"
    )
    pre_capture_delay_ms: int = Field(
        default=1000, ge=0, description="Redraw wait before capturing (ms)"
    )
    zoom_settle_ms: int = Field(
        default=300, ge=0, description="Wait after resetting zoom (ms)"
    )
    overflow_settle_ms: int = Field(
        default=150, ge=0, description="Wait after hiding scroll bars (ms)"
    )

    # Crawl Configuration
    crawl_max_tabs: int = Field(
        default=5, ge=1, description="Tabs crawled in parallel"
    )
    crawl_page_settle_ms: int = Field(
        default=10000, ge=0, description="Wait after loading a crawled page (ms)"
    )
    sitemap_timeout_seconds: float = Field(
        default=5.0, gt=0, description="Timeout for fetching the sitemap"
    )
    crawl_max_urls: int = Field(
        default=100, ge=1, description="Maximum URLs taken from a sitemap"
    )

    # Run State
    run_log_limit: int = Field(
        default=100, ge=1, description="Run log entries kept in memory"
    )

    # Browser Configuration
    browser_headless: bool = Field(
        default=True, description="Run browser in headless mode"
    )
    browser_timeout: int = Field(
        default=30000, ge=1000, description="Default browser timeout (ms)"
    )
    browser_frame_width: int = Field(
        default=16, ge=0, description="Window width taken by browser chrome"
    )
    browser_frame_height: int = Field(
        default=88, ge=0, description="Window height taken by browser chrome"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="text",
        description="Log format (json or text)",
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path"
    )

    # Storage Configuration
    data_dir: Path = Field(
        default=Path("data"), description="Data storage directory"
    )
    screenshots_dir: Path = Field(
        default=Path("data/screenshots"), description="Screenshots directory"
    )
    config_store_path: Path = Field(
        default=Path("data/config_store.json"),
        description="File backing the user configuration store",
    )

    @field_validator("log_level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator("log_format")
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ["json", "text"]:
            raise ValueError(f"Invalid log format: {v}")
        return v

    @field_validator("default_match_level")
    def validate_match_level(cls, v: str) -> str:
        if v not in MATCH_LEVELS:
            raise ValueError(
                f"Invalid match level: {v}. Allowed values: {MATCH_LEVELS}"
            )
        return v

    @field_validator("default_viewport_size")
    def validate_viewport_size(cls, v: str) -> str:
        if v not in VIEWPORT_SIZES:
            raise ValueError(f"Unsupported viewport size: {v}")
        return v

    @field_validator("server_url", "api_server_url")
    def strip_trailing_slash(cls, v: str) -> str:
        return v.strip().rstrip("/")

    def create_directories(self) -> None:
        """Create required directories if they don't exist."""
        for dir_path in [
            self.data_dir,
            self.screenshots_dir,
            self.config_store_path.parent,
        ]:
            dir_path.mkdir(parents=True, exist_ok=True)


class ConfigManager(ConfigProvider):
    """Configuration manager implementation."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        """
        Initialize config manager.

        Args:
            settings: Optional settings instance
        """
        self.settings = settings or get_settings()

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        try:
            return getattr(self.settings, key)
        except AttributeError:
            return default

    def get_required(self, key: str) -> Any:
        """Get required configuration value."""
        try:
            return getattr(self.settings, key)
        except AttributeError:
            raise KeyError(f"Required configuration key not found: {key}")

    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values."""
        return self.settings.model_dump()


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    env_file = Path(".env")
    if env_file.exists():
        load_dotenv(env_file)

    settings = Settings()
    settings.create_directories()
    return settings


def get_config() -> ConfigManager:
    """Get configuration manager instance."""
    return ConfigManager(get_settings())

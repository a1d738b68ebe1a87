"""
Application Configuration
Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import List, Literal, Optional
from pathlib import Path


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False

    # CORS Configuration
    cors_origins: List[str] = ["*"]  # Allow all origins for development

    # Language model collaborators
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_temperature: float = 0.3
    openai_timeout: float = 30.0
    perplexity_api_key: Optional[str] = None
    perplexity_model: str = "sonar-pro"
    perplexity_url: str = "https://api.perplexity.ai/chat/completions"
    perplexity_timeout: float = 30.0
    collaborator_timeout: float = 45.0

    # Pipeline Configuration
    pipeline_mode: Literal["ranked", "simple"] = "ranked"
    ranker_backend: Literal["llm", "local"] = "llm"
    max_ranked_results: int = 20
    simple_results_per_source: int = 4
    enabled_sources: List[str] = ["vestiaire", "vinted", "farfetch", "ssense"]

    # Scraper Configuration (timeouts in seconds)
    scraper_headless: bool = True
    scraper_user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    )
    scraper_locale: str = "de-DE"
    scraper_timezone: str = "Europe/Berlin"
    scraper_accept_language: str = "de-DE,de;q=0.9,en-US;q=0.8,en;q=0.7"
    scraper_viewport_width: int = 1280
    scraper_viewport_height: int = 800
    scraper_navigation_timeout: float = 60.0
    scraper_selector_timeout: float = 30.0
    scraper_fallback_selector_timeout: float = 10.0
    scraper_consent_wait: float = 2.0
    scraper_max_scroll_rounds: int = 15
    scraper_scroll_pause: float = 2.0
    scraper_max_products: int = 40
    turn_scrape_timeout: float = 240.0
    debug_artifacts: bool = False

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Paths
    @property
    def log_dir(self) -> Path:
        """Get the log directory path."""
        return Path(__file__).parent.parent.parent / "logs"

    @property
    def log_file(self) -> Path:
        """Get the log file path."""
        return self.log_dir / "backend.log"

    @property
    def artifacts_dir(self) -> Path:
        """Get the directory for scrape debug artifacts."""
        return Path(__file__).parent.parent / "data" / "artifacts"

    class Config:
        # Only load .env if it exists to avoid permission errors
        env_file = ".env" if Path(".env").exists() else None
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables


# Global settings instance
settings = Settings()

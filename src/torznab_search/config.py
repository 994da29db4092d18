"""Configuration management using pydantic-settings.

All environment variables are loaded and validated here.
The Jackett API key is stored as a SecretStr to prevent logging.
"""

from enum import Enum

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TorznabCategory(str, Enum):
    """Torznab category codes used to narrow a search by media type."""

    MOVIES = "movies"
    MOVIES_HD = "moviesHD"
    MOVIES_4K = "movies4K"
    TV = "tv"
    TV_HD = "tvHD"
    TV_4K = "tv4K"

    @property
    def code(self) -> str:
        """Numeric Torznab category id sent as the ``cat`` parameter."""
        return TORZNAB_CATEGORY_CODES[self]


TORZNAB_CATEGORY_CODES: dict[TorznabCategory, str] = {
    TorznabCategory.MOVIES: "2000",
    TorznabCategory.MOVIES_HD: "2040",
    TorznabCategory.MOVIES_4K: "2045",
    TorznabCategory.TV: "5000",
    TorznabCategory.TV_HD: "5040",
    TorznabCategory.TV_4K: "5045",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Every field has a default so the package imports without an ``.env``;
    the API key is checked when a search is actually made.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Jackett / Torznab indexer
    jackett_url: str = Field(
        default="http://localhost:9117",
        description="Base URL of the Jackett instance",
    )

    jackett_search_path: str = Field(
        default="/api/v2.0/indexers/all/results/torznab/",
        description="Torznab search endpoint path",
    )

    jackett_api_key: SecretStr | None = Field(
        default=None,
        description="Jackett API key (required for searching)",
    )

    jackett_max_results: int = Field(
        default=50,
        description="Maximum results requested from the indexer",
        ge=1,
    )

    jackett_timeout: float = Field(
        default=30.0,
        description="Feed request timeout in seconds",
        gt=0,
    )

    # .torrent -> magnet conversion
    torrent_fetch_timeout: float = Field(
        default=5.0,
        description="Timeout for fetching a single .torrent file in seconds",
        gt=0,
    )

    torrent_max_concurrency: int = Field(
        default=5,
        description="Maximum concurrent .torrent file fetches",
        ge=1,
    )

    torrent_batch_timeout: float = Field(
        default=10.0,
        description="Total time budget for one batch of conversions in seconds",
        gt=0,
    )

    torrent_max_redirects: int = Field(
        default=5,
        description="Maximum redirects followed when fetching a .torrent file",
        ge=0,
    )

    # Application Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    environment: str = Field(
        default="production",
        description="Environment name (development, production)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"log_level must be one of {allowed}")
        return v_upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment is development or production."""
        allowed = {"development", "production"}
        v_lower = v.lower()
        if v_lower not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v_lower

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == "production"

    def get_safe_dict(self) -> dict[str, str | int | float | None]:
        """Get configuration as dict with sensitive values masked.

        Returns:
            Dictionary with SecretStr values shown as '***'
        """
        result: dict[str, str | int | float | None] = {}
        for field_name in type(self).model_fields:
            value = getattr(self, field_name)

            if isinstance(value, SecretStr):
                result[field_name] = "***"
            elif value is None:
                result[field_name] = None
            else:
                result[field_name] = value

        return result


# Global settings instance
settings = Settings()

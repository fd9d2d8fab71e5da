"""Configuration management using pydantic-settings.

Loads from ``PANORAMAX_``-prefixed environment variables and a .env file.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    Attributes:
        api_url: Base URL of the Panoramax API.
        max_wait_seconds: Upper bound of the liveness backoff window in seconds.
        live_ttl_seconds: How long a successful liveness probe is trusted.
        request_timeout: HTTP timeout in seconds for probes, pages and images.
        mvt_path: Vector tile path template, relative to the API URL.
        image_size: Marker size used by map consumers.
        map_max_zoom: Highest zoom level that returns vector tile data.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_json: Output logs in JSON format.

    """

    model_config = SettingsConfigDict(
        env_prefix="PANORAMAX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API
    api_url: str = "https://api.panoramax.xyz/api"
    max_wait_seconds: int = 600  # 10 minutes
    live_ttl_seconds: int = 30
    request_timeout: float = 30.0

    # Map display (consumed by renderers, not by the client core)
    mvt_path: str = "/map/{z}/{x}/{y}.mvt"
    image_size: int = 10
    map_max_zoom: int = 15  # Higher zoom levels return no data

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def mvt_url(self) -> str:
        """Return the full vector tile URL template.

        Returns:
            str: ``api_url`` followed by ``mvt_path``.

        """
        return self.api_url + self.mvt_path


# Global settings instance
settings = Settings()

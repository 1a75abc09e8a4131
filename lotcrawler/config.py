"""Application configuration using Pydantic settings."""

from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ACCEPT_LANGUAGE_EN = "en-US,en;q=0.9"
ACCEPT_LANGUAGE_RU = "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7"


class ConfigurationError(RuntimeError):
    """Raised when a required credential or setting for a feature is missing."""

    pass


class Settings(BaseSettings):
    """Crawl settings.

    Built once by the entry point (environment / .env values overridden by
    command-line flags) and passed to each component. Instances are frozen.
    """

    # Target site
    base_url: str = "https://funpay.com/"
    target_urls: list[str] = Field(default_factory=list)

    # Output
    output: str = "lots.txt"

    # Throttling (seconds between listing pages)
    delay_min: float = 1.0
    delay_max: float = 2.5

    # Fetching
    page_max_retries: int = 5
    detail_max_retries: int = 3
    request_timeout: float = 30.0

    # Price normalization: 1 RUB ~ 0.011 EUR
    rub_eur_rate: float = 0.011

    # Language filter ("", "en", "ru"); env CRAWL_LANG (LANG is the locale)
    lang: Literal["", "en", "ru"] = Field("", validation_alias="crawl_lang")

    # Image upload
    upload_images: bool = False
    imgur_client_id: str = ""
    imgur_client_secret: str = ""
    imgur_access_token: str = ""
    image_dir: str = "imgs"
    image_timeout: float = 25.0
    max_images_per_lot: int = 5
    upload_delay: float = 1.5
    proxies_file: str = "proxies.txt"

    # Logging / metrics
    verbose: bool = False
    log_level: str = "INFO"
    log_dir: Optional[str] = "logs"
    metrics_port: Optional[int] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @field_validator("lang", mode="before")
    @classmethod
    def _normalize_lang(cls, value):
        if value is None:
            return ""
        return str(value).strip().lower()

    @field_validator("rub_eur_rate")
    @classmethod
    def _positive_rate(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("rub_eur_rate must be positive")
        return value

    @model_validator(mode="after")
    def _check_delays(self) -> "Settings":
        if self.delay_min < 0:
            raise ValueError("delay_min must not be negative")
        if self.delay_max < self.delay_min:
            raise ValueError("delay_max must be greater than or equal to delay_min")
        return self

    @property
    def accept_language(self) -> str:
        """Accept-Language header matching the language filter."""
        if self.lang == "en":
            return ACCEPT_LANGUAGE_EN
        return ACCEPT_LANGUAGE_RU

    @property
    def upload_enabled(self) -> bool:
        """Upload is requested explicitly or implied by any image-host credential."""
        return bool(
            self.upload_images
            or self.imgur_client_id
            or self.imgur_access_token
            or self.imgur_client_secret
        )

    def upload_credentials(self) -> tuple[str, str]:
        """
        Get the client id and access token used for image uploads.

        Returns:
            (client_id, access_token); access_token may be empty

        Raises:
            ConfigurationError: If no client id is configured
        """
        if not self.imgur_client_id:
            raise ConfigurationError("IMGUR client_id missing")
        return self.imgur_client_id, self.imgur_access_token

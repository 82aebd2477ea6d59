import json
from functools import lru_cache

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_list_value(value) -> list[str]:
    """Accept a JSON array, a comma-separated string or an actual list."""
    if isinstance(value, str):
        raw = value.strip()
        if raw.startswith("["):
            try:
                value = json.loads(raw)
            except ValueError:
                value = raw
        if isinstance(value, str):
            value = raw.split(",")
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="ignore",
        validate_by_name=True,
        populate_by_name=True,
    )
    environment: str = "development"
    log_level: str = "INFO"

    supabase_url: str = ""
    supabase_key: str = ""
    supabase_service_role_key: str = ""
    supabase_jwt_secret: str = ""
    supabase_jwt_audience: str = "authenticated"
    database_url: str = ""

    storage_bucket: str = Field(
        default="cnb",
        validation_alias=AliasChoices("STORAGE_BUCKET", "SUPABASE_STORAGE_BUCKET"),
    )
    storage_cache_control: str = "3600"
    storage_key_prefix: str = "images"

    classifier_url: str = ""
    classifier_timeout_seconds: float = 30.0
    classifier_mock_delay_seconds: float = 1.0

    ipinfo_token: str = ""
    ipinfo_url: str = "https://ipinfo.io"
    geolocation_timeout_seconds: float = 10.0
    resolve_location: bool = True

    max_image_bytes: int = 10 * 1024 * 1024

    rate_limit_scan_enabled: bool = True
    rate_limit_scan_per_min: int = 30
    trusted_proxies_raw: str = Field(
        default="",
        validation_alias=AliasChoices("TRUSTED_PROXIES"),
    )

    docs_enabled: bool = Field(default=True)
    openapi_enabled: bool = Field(default=True)
    expose_error_details: bool = False

    cors_allow_origins: list[str] = Field(default_factory=list)
    cors_allow_methods: list[str] = Field(default_factory=lambda: [
        "GET",
        "POST",
        "PATCH",
        "OPTIONS",
    ])
    cors_allow_headers: list[str] = Field(default_factory=lambda: [
        "Authorization",
        "Content-Type",
        "Accept",
    ])

    @field_validator(
        "cors_allow_origins",
        "cors_allow_methods",
        "cors_allow_headers",
        mode="before",
    )
    @classmethod
    def _split_csv(cls, value):
        return _parse_list_value(value)

    @property
    def trusted_proxies(self) -> list[str]:
        return _parse_list_value(self.trusted_proxies_raw)

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    def validate_required_config(self) -> list[str]:
        """Return human-readable problems with the current configuration."""
        errors: list[str] = []
        if not self.database_url:
            errors.append("DATABASE_URL is not set")
        if not self.supabase_url:
            errors.append("SUPABASE_URL is not set")
        if not (self.supabase_service_role_key or self.supabase_key):
            errors.append("SUPABASE_KEY or SUPABASE_SERVICE_ROLE_KEY is not set")
        if not self.supabase_jwt_secret and not self.supabase_url:
            errors.append("SUPABASE_JWT_SECRET is not set")
        return errors


@lru_cache
def get_settings() -> Settings:
    return Settings()

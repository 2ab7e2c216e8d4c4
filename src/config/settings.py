"""Application settings using Pydantic Settings.

Every field maps to an upper-case environment variable of the same name
(``CASSANDRA_HOSTS``, ``BUNNY_TOKEN_KEY``...); a local ``.env`` file is
read when present.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


Environment = Literal["development", "staging", "production", "testing"]
LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """E-learning API configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "elearning"
    app_version: str = "0.1.0"
    environment: Environment = "development"

    # Accounts and sessions
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        min_length=32,
        description="HS256 signing key shared by access and refresh tokens",
    )
    auth_algorithm: str = "HS256"
    auth_access_token_expire_minutes: int = Field(default=15, ge=1)
    auth_refresh_token_expire_days: int = Field(default=7, ge=1)
    auth_cookie_name: str = "elearning_refresh_token"
    auth_cookie_path: str = Field(
        default="/v1/auth",
        description="Refresh cookie is only sent to the session endpoints",
    )
    auth_cookie_secure: bool = False
    auth_cookie_httponly: bool = True
    auth_cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    auth_login_rate_limit_per_minute: int = Field(
        default=10,
        ge=1,
        description="Failed logins allowed per email per minute; needs Redis",
    )

    # Redis (optional, login rate limiting only)
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 10
    redis_socket_timeout: float = 5.0
    redis_socket_connect_timeout: float = 5.0

    # Cassandra
    cassandra_hosts: list[str] = ["localhost"]
    cassandra_port: int = 9042
    cassandra_keyspace: str = "elearning"
    cassandra_username: str | None = None
    cassandra_password: str | None = None
    cassandra_protocol_version: int = 4
    cassandra_connect_timeout: float = 10.0
    cassandra_request_timeout: float = 10.0
    cassandra_replication_factor: int = Field(
        default=3,
        ge=1,
        description="NetworkTopologyStrategy factor used in production",
    )

    # Logging
    log_level: LogLevel = "DEBUG"
    log_format: Literal["json", "console"] = "console"
    log_include_caller_info: bool = True
    log_requests: bool = True
    log_exclude_paths: list[str] = ["/health"]
    log_to_file: bool = True
    log_dir: str = "logs"
    log_file_max_bytes: int = 10 * 1024 * 1024
    log_file_backup_count: int = 5

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]
    cors_max_age: int = 600

    # Catalog
    catalog_default_page_size: int = Field(default=12, ge=1)
    catalog_max_page_size: int = Field(
        default=100,
        ge=1,
        description="Listings asking for a larger page are rejected",
    )

    # Enrollment ledger
    enrollment_update_max_retries: int = Field(
        default=5,
        ge=1,
        description="Conditional progress writes attempted before giving up",
    )

    # Bunny.net Stream
    bunny_library_id: str | None = None
    bunny_cdn_hostname: str | None = Field(
        default=None, description="Pull zone host, e.g. vz-xxx.b-cdn.net"
    )
    bunny_token_key: str | None = Field(
        default=None, description="CDN token authentication key (secret)"
    )
    bunny_api_key: str | None = Field(
        default=None, description="Stream library API key (secret)"
    )
    bunny_api_timeout_seconds: float = 30.0
    bunny_token_expiry_seconds: int = Field(
        default=3600, ge=1, description="Lifetime of signed playback URLs"
    )
    bunny_upload_expiry_seconds: int = Field(
        default=3600, ge=1, description="Lifetime of TUS upload signatures"
    )

    # Bunny.net Storage (course thumbnails, avatars)
    bunny_storage_zone: str | None = None
    bunny_storage_hostname: str = Field(
        default="storage.bunnycdn.com",
        description="Storage API endpoint of the zone region",
    )
    bunny_storage_api_key: str | None = Field(
        default=None, description="Storage zone password (secret)"
    )
    bunny_images_cdn_hostname: str | None = Field(
        default=None,
        description="Pull zone in front of the storage zone, Optimizer on",
    )
    upload_image_max_bytes: int = Field(default=5 * 1024 * 1024, ge=1)
    upload_allowed_image_types: list[str] = [
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
    ]

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def bunny_configured(self) -> bool:
        """Playback URLs can be signed."""
        return bool(
            self.bunny_library_id and self.bunny_cdn_hostname and self.bunny_token_key
        )

    @property
    def bunny_api_configured(self) -> bool:
        """Library videos can be created for uploads."""
        return bool(self.bunny_library_id and self.bunny_api_key)

    @property
    def bunny_storage_configured(self) -> bool:
        """Images can be uploaded and served."""
        return bool(
            self.bunny_storage_zone
            and self.bunny_storage_api_key
            and self.bunny_images_cdn_hostname
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

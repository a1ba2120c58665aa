"""Application settings and configuration.

This module defines all configuration options for the Dropline service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

MIB = 1024 * 1024


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Dropline", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    auth_cookie_name: str = Field(default="token", alias="AUTH_COOKIE_NAME")
    password_hash_rounds: int = Field(default=12, alias="PASSWORD_HASH_ROUNDS")

    # Database configuration
    database_url: str = Field(default="sqlite:///./dropline.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Transfer limits and lifetimes
    max_transfer_bytes: int = Field(default=100 * MIB, alias="MAX_TRANSFER_BYTES")
    transfer_token_bytes: int = Field(default=32, alias="TRANSFER_TOKEN_BYTES")
    anonymous_transfer_ttl_minutes: int = Field(
        default=60,
        alias="ANONYMOUS_TRANSFER_TTL_MINUTES",
    )
    recipient_transfer_ttl_minutes: int = Field(
        default=60 * 24,
        alias="RECIPIENT_TRANSFER_TTL_MINUTES",
    )
    allow_anonymous_transfers: bool = Field(default=True, alias="ALLOW_ANONYMOUS_TRANSFERS")

    # Object storage (S3-compatible, e.g. Cloudflare R2 or MinIO)
    presign_ttl_seconds: int = Field(default=15 * 60, alias="PRESIGN_TTL_SECONDS")
    storage_timeout_seconds: float = Field(default=30.0, alias="STORAGE_TIMEOUT_SECONDS")
    s3_endpoint_url: str | None = Field(default=None, alias="S3_ENDPOINT_URL")
    r2_account_id: str | None = Field(default=None, alias="R2_ACCOUNT_ID")
    s3_access_key_id: str | None = Field(default=None, alias="S3_ACCESS_KEY_ID")
    s3_secret_access_key: str | None = Field(default=None, alias="S3_SECRET_ACCESS_KEY")
    s3_bucket: str = Field(default="dropline", alias="S3_BUCKET")
    s3_region: str = Field(default="auto", alias="S3_REGION")

    # Legacy single-phase uploads land on local disk
    local_storage_dir: str = Field(default="uploads", alias="LOCAL_STORAGE_DIR")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("transfer_token_bytes")
    @classmethod
    def _token_entropy_floor(cls, value: int) -> int:
        if value < 32:
            raise ValueError("TRANSFER_TOKEN_BYTES must be at least 32")
        return value

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for Alembic and scripts."""
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_s3_endpoint_url(self) -> str | None:
        """Return the object storage endpoint, deriving the R2 URL from the account id."""
        if self.s3_endpoint_url:
            return self.s3_endpoint_url
        if self.r2_account_id:
            return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"
        return None

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()  # type: ignore[call-arg]

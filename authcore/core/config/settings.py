# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for authcore.
Settings are loaded from environment variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from authcore.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.environment)
    'development'
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "change-this-in-production"
MIN_JWT_SECRET_LENGTH = 32


class DatabaseSettings(BaseSettings):
    """Credential store database configuration.

    Attributes:
        url: SQLAlchemy async database URL. Empty means the in-memory store.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        echo: Log every SQL statement.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore",
    )

    url: SecretStr = SecretStr("")
    pool_size: int = 10
    max_overflow: int = 20
    echo: bool = False

    @property
    def is_configured(self) -> bool:
        """Check whether a database URL has been provided."""
        return bool(self.url.get_secret_value())


class JWTSettings(BaseSettings):
    """JWT signing configuration.

    Attributes:
        secret_key: Shared secret for signing tokens.
        algorithm: JWT signing algorithm.
        issuer: Value of the ``iss`` claim, checked on decode.
        audience: Value of the ``aud`` claim, checked on decode.
        access_token_expire_minutes: Access token lifetime.
        refresh_token_expire_days: Refresh token lifetime.
    """

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        extra="ignore",
        populate_by_name=True,
    )

    secret_key: SecretStr = SecretStr(DEFAULT_JWT_SECRET)
    algorithm: str = "HS256"
    issuer: str = "authcore"
    audience: str = "authcore-clients"
    access_token_expire_minutes: int = Field(
        default=60,
        validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )
    refresh_token_expire_days: int = Field(
        default=30,
        validation_alias="REFRESH_TOKEN_EXPIRE_DAYS",
    )


class PasswordSettings(BaseSettings):
    """Password hashing and policy configuration.

    Attributes:
        bcrypt_rounds: bcrypt cost factor. 12 takes roughly 250ms.
        min_length: Minimum accepted password length.
        max_length: Maximum accepted password length.
    """

    model_config = SettingsConfigDict(
        env_prefix="PASSWORD_",
        extra="ignore",
    )

    bcrypt_rounds: int = Field(default=12, ge=4, le=31)
    min_length: int = 8
    max_length: int = 128


class SingleUseTokenSettings(BaseSettings):
    """Lifetimes of out-of-band single-use tokens.

    Attributes:
        verification_expire_hours: Email verification token lifetime.
        reset_expire_minutes: Password reset token lifetime.
        token_bytes: Random bytes per token before URL-safe encoding.
    """

    model_config = SettingsConfigDict(
        env_prefix="SINGLE_USE_",
        extra="ignore",
    )

    verification_expire_hours: int = 24
    reset_expire_minutes: int = 60
    token_bytes: int = 32


class RateLimitSettings(BaseSettings):
    """Rate limiting configuration for the named policies.

    Windows are expressed in milliseconds and must be whole seconds.

    Attributes:
        enabled: Whether rate limiting is enforced.
        login_window_ms: Login attempt window.
        login_max: Login attempts allowed per window.
        password_reset_window_ms: Password reset request window.
        password_reset_max: Password reset requests allowed per window.
        email_verification_window_ms: Verification email request window.
        email_verification_max: Verification emails allowed per window.
        api_window_ms: General API traffic window.
        api_max: General API requests allowed per window.
        sweep_interval_seconds: How often elapsed windows are discarded.
    """

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        extra="ignore",
    )

    enabled: bool = True
    login_window_ms: int = 15 * 60 * 1000
    login_max: int = 5
    password_reset_window_ms: int = 60 * 60 * 1000
    password_reset_max: int = 3
    email_verification_window_ms: int = 5 * 60 * 1000
    email_verification_max: int = 3
    api_window_ms: int = 15 * 60 * 1000
    api_max: int = 100
    sweep_interval_seconds: int = 60

    @field_validator(
        "login_window_ms",
        "password_reset_window_ms",
        "email_verification_window_ms",
        "api_window_ms",
    )
    @classmethod
    def validate_window(cls, v: int) -> int:
        """Windows are counted in whole seconds."""
        if v <= 0 or v % 1000:
            raise ValueError("Rate limit windows must be a positive whole number of seconds")
        return v


class SMTPSettings(BaseSettings):
    """Outbound email configuration.

    Attributes:
        host: SMTP server hostname. Empty disables email delivery.
        port: SMTP server port.
        username: SMTP authentication username.
        password: SMTP authentication password.
        use_tls: Use STARTTLS.
        from_email: Sender address.
        from_name: Sender display name.
        frontend_url: Base URL used to build links in messages.
    """

    model_config = SettingsConfigDict(
        env_prefix="SMTP_",
        extra="ignore",
    )

    host: str = ""
    port: int = 587
    username: str = ""
    password: SecretStr = SecretStr("")
    use_tls: bool = True
    from_email: str = ""
    from_name: str = "authcore"
    frontend_url: str = "http://localhost:3000"

    @property
    def is_configured(self) -> bool:
        """Check whether enough SMTP settings exist to send mail."""
        return bool(self.host and self.from_email)


class SchedulerSettings(BaseSettings):
    """Background maintenance job configuration.

    Attributes:
        enabled: Whether the scheduler is started with the app.
        token_purge_interval_minutes: How often expired tokens are deleted.
    """

    model_config = SettingsConfigDict(
        env_prefix="SCHEDULER_",
        extra="ignore",
    )

    enabled: bool = True
    token_purge_interval_minutes: int = 60


class SocialLoginSettings(BaseSettings):
    """Social login endpoint configuration.

    The endpoint accepts provider assertions already verified by a trusted
    caller, which authenticates with this key in the X-API-Key header.
    An empty key disables the endpoint.

    Attributes:
        api_key: Shared key of the trusted caller.
    """

    model_config = SettingsConfigDict(
        env_prefix="SOCIAL_LOGIN_",
        extra="ignore",
    )

    api_key: SecretStr = SecretStr("")

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key.get_secret_value())


class CORSSettings(BaseSettings):
    """CORS configuration for API.

    Attributes:
        origins: Comma-separated list of allowed origins.
        allow_credentials: Whether to allow credentials.
        allow_methods: Allowed HTTP methods.
        allow_headers: Allowed HTTP headers.
    """

    model_config = SettingsConfigDict(
        env_prefix="CORS_",
        extra="ignore",
    )

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True
    allow_methods: list[str] = ["*"]
    allow_headers: list[str] = ["*"]

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into a list."""
        return [origin.strip() for origin in self.origins.split(",") if origin.strip()]


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Credential store settings.
        jwt: JWT signing settings.
        password: Password hashing settings.
        single_use: Single-use token settings.
        rate_limit: Rate limiting settings.
        smtp: Outbound email settings.
        scheduler: Background job settings.
        cors: CORS settings.
        social: Social login settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    jwt: JWTSettings = Field(default_factory=JWTSettings)
    password: PasswordSettings = Field(default_factory=PasswordSettings)
    single_use: SingleUseTokenSettings = Field(default_factory=SingleUseTokenSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    smtp: SMTPSettings = Field(default_factory=SMTPSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    cors: CORSSettings = Field(default_factory=CORSSettings)
    social: SocialLoginSettings = Field(default_factory=SocialLoginSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            secret = self.jwt.secret_key.get_secret_value()
            if secret == DEFAULT_JWT_SECRET:
                raise ValueError(
                    "JWT secret key must be changed from default in production. "
                    "Set JWT_SECRET_KEY environment variable."
                )
            if len(secret) < MIN_JWT_SECRET_LENGTH:
                raise ValueError(
                    f"JWT secret key must be at least {MIN_JWT_SECRET_LENGTH} "
                    "characters long in production."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()

"""
Configuration management for the session store.

This module provides centralized configuration loading and validation using
Pydantic settings. Connection parameters and secrets are loaded from
environment variables or .env files; the resulting settings object is
immutable.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the list of .env files to load for the given environment.

    The base .env file is loaded first, then the environment-specific file,
    which overrides it.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    env_specific_file = env_file_map.get(environment, ".env.development")

    return (".env", env_specific_file)


class Settings(BaseSettings):
    """
    Session store settings loaded from environment variables.

    Environment-specific configuration is supported through:
    - .env.development - Development environment settings
    - .env.staging - Staging environment settings
    - .env.production - Production environment settings

    The ENVIRONMENT variable determines which file to load.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Redis connection
    redis_network: str = Field(
        default="tcp",
        description="Network used to dial Redis: 'tcp' or 'unix'"
    )
    redis_address: str = Field(
        default="localhost:6379",
        description="host:port for tcp, socket path for unix"
    )
    redis_password: Optional[str] = Field(
        default=None,
        description="Password sent with AUTH after dialing"
    )
    redis_db: Optional[int] = Field(
        default=None,
        ge=0,
        description="Database index selected after dialing"
    )

    # Connection pool
    redis_pool_size: int = Field(
        default=10,
        ge=1,
        description="Maximum number of pooled connections"
    )
    redis_idle_timeout_seconds: float = Field(
        default=240.0,
        ge=0,
        description="Idle connections older than this are redialed (0 disables)"
    )
    redis_connect_timeout_seconds: Optional[float] = Field(
        default=5.0,
        gt=0,
        description="Timeout for dialing a connection"
    )
    redis_socket_timeout_seconds: Optional[float] = Field(
        default=5.0,
        gt=0,
        description="Timeout for a single command round trip, liveness probes included"
    )
    redis_pool_timeout_seconds: Optional[float] = Field(
        default=5.0,
        gt=0,
        description="How long a caller waits for a free pooled connection"
    )

    # Sessions
    session_default_max_age: int = Field(
        default=60 * 20,
        gt=0,
        description="TTL in seconds applied when a session is saved with max_age 0"
    )
    session_max_age: int = Field(
        default=60 * 20,
        description="max_age given to new sessions (negative deletes on save)"
    )
    session_key_prefix: str = Field(
        default="sess_",
        description="Prefix for session keys in Redis"
    )
    session_serializer: Optional[str] = Field(
        default=None,
        description="'JSON' for the text encoding, anything else for binary"
    )
    session_header: str = Field(
        default="X-Core-Session",
        description="Header carrying the session identifier in both directions"
    )
    session_max_length: int = Field(
        default=4096,
        ge=0,
        description="Payload length limit handed through to an encoding layer; not enforced on save"
    )
    session_key_pairs: List[str] = Field(
        default_factory=list,
        description="Key material handed through to a signing or encryption layer"
    )

    # Observability
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True
    )

    @field_validator("redis_network")
    @classmethod
    def validate_redis_network(cls, v: str) -> str:
        """Validate that redis_network is either 'tcp' or 'unix'."""
        v = v.strip().lower()
        if v not in {"tcp", "unix"}:
            raise ValueError("redis_network must be 'tcp' or 'unix'")
        return v

    @field_validator("redis_address")
    @classmethod
    def validate_redis_address(cls, v: str) -> str:
        """Validate that redis_address is not empty."""
        if not v or not v.strip():
            raise ValueError("redis_address cannot be empty")
        return v.strip()

    @field_validator("session_header")
    @classmethod
    def validate_session_header(cls, v: str) -> str:
        """Validate that session_header is a usable header name."""
        v = v.strip()
        if not v or any(c.isspace() or c == ":" for c in v):
            raise ValueError("session_header must be a non-empty header name")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v

    @model_validator(mode="after")
    def validate_tcp_address(self) -> "Settings":
        """Validate that a tcp address carries a port."""
        if self.redis_network == "tcp" and ":" not in self.redis_address:
            raise ValueError("redis_address must be host:port when redis_network is 'tcp'")
        return self

    @property
    def key_pairs(self) -> Tuple[bytes, ...]:
        """Configured key material as bytes."""
        return tuple(k.encode("utf-8") for k in self.session_key_pairs)


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Factory function to create Settings for a specific environment.

    Args:
        environment: Optional environment override. If not provided, detected from
                    ENVIRONMENT variable.

    Returns:
        Settings: Validated settings for the specified environment.

    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [f for f in env_files if Path(f).exists()]

    # If no env files exist, use the default tuple (pydantic will handle missing files)
    if not existing_env_files:
        existing_env_files = list(env_files)

    try:
        class EnvironmentSettings(Settings):
            model_config = SettingsConfigDict(
                env_file=tuple(existing_env_files),
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore",
                frozen=True
            )

        return EnvironmentSettings()
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        if hasattr(e, 'errors'):
            for error in e.errors():
                field_name = '.'.join(str(loc) for loc in error.get('loc', []))
                error_type = error.get('type', '')
                error_msg = error.get('msg', str(error))

                if error_type == 'missing':
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error_msg

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


# Global settings cache
_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the settings singleton.

    Settings are loaded once and cached for subsequent calls.

    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    This is primarily useful for testing to allow reloading settings
    with different environment variables.
    """
    global _settings_cache
    _settings_cache = None


def validate_startup() -> None:
    """
    Validate settings before the store is constructed.

    Raises:
        ConfigurationError: If the configuration is unsafe for the environment.
    """
    settings = get_settings()

    validation_errors = {}

    if settings.environment == Environment.PRODUCTION and not settings.redis_password:
        validation_errors["redis_password"] = (
            "Production environment requires an authenticated Redis connection"
        )

    if settings.redis_network == "unix" and not Path(settings.redis_address).exists():
        validation_errors["redis_address"] = (
            f"Unix socket not found: {settings.redis_address}"
        )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )

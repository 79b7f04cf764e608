"""
Configuration management for EventSquare Server.

All configuration is done via environment variables - no config files inside containers.
This module provides typed configuration classes with validation. HTTP bind
and CORS settings live with the API in api/config.py.

Invariants:
    - All settings have sensible defaults for local development
    - Production deployments MUST set DATABASE_PATH explicitly
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Deprecate settings by logging warnings but continuing to support them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

LOG_FORMATS = ("json", "text")


@dataclass(frozen=True)
class StorageConfig:
    """SQLite storage configuration.

    Attributes:
        database_path: Path of the SQLite database file
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        page_size: Rows fetched per page when streaming list endpoints
    """

    database_path: str = "./eventsquare.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    page_size: int = 100

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            database_path=os.getenv("DATABASE_PATH", "./eventsquare.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            page_size=int(os.getenv("LIST_PAGE_SIZE", "100")),
        )


@dataclass(frozen=True)
class IdentityConfig:
    """Caller identity resolution.

    Attributes:
        user_header: Request header carrying the authenticated user id,
            set by the authenticating proxy in front of the service
    """

    user_header: str = "X-User-ID"

    @classmethod
    def from_env(cls) -> IdentityConfig:
        """Load configuration from environment variables."""
        return cls(user_header=os.getenv("IDENTITY_HEADER", "X-User-ID"))


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json").lower(),
        )


@dataclass
class ServerConfig:
    """Complete server configuration.

    Attributes:
        storage: SQLite storage configuration
        identity: Caller identity configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            identity=IdentityConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.storage.database_path:
            raise ValueError("DATABASE_PATH must not be empty")
        if self.storage.page_size <= 0:
            raise ValueError(f"LIST_PAGE_SIZE must be positive, got {self.storage.page_size}")
        if self.storage.busy_timeout_ms <= 0:
            raise ValueError(
                f"SQLITE_BUSY_TIMEOUT_MS must be positive, got {self.storage.busy_timeout_ms}"
            )
        if not self.identity.user_header:
            raise ValueError("IDENTITY_HEADER must not be empty")
        if self.observability.log_format not in LOG_FORMATS:
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. "
                f"Must be one of: {', '.join(LOG_FORMATS)}"
            )

        if not os.path.exists(os.path.dirname(os.path.abspath(self.storage.database_path))):
            logger.warning(
                f"Database directory does not exist: {self.storage.database_path}. "
                "It will be created on first write."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "database_path": self.storage.database_path,
                "wal_mode": self.storage.wal_mode,
                "page_size": self.storage.page_size,
                "identity_header": self.identity.user_header,
                "log_level": self.observability.log_level,
            },
        )

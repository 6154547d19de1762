"""
Configuration management for the policy store.

Handles loading, validation, and access to store configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from policystore.storage.models import DEFAULT_TABLE_NAME


# Default configuration paths
DEFAULT_CONFIG_PATH = Path("/etc/policy-store/policy-store.yaml")
DEFAULT_DATABASE_URL = "sqlite:///policy.db"

DATABASE_URL_ENV = "POLICY_STORE_DATABASE_URL"


@dataclass
class DatabaseConfig:
    """Database settings."""

    url: str | None = None
    table_name: str = DEFAULT_TABLE_NAME
    skip_table_create: bool = False
    echo: bool = False

    def __post_init__(self) -> None:
        # Load URL from environment if not set
        if self.url is None:
            self.url = os.environ.get(DATABASE_URL_ENV, DEFAULT_DATABASE_URL)


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "warning"
    file: str | None = None


@dataclass
class PolicyStoreConfig:
    """Main configuration container."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PolicyStoreConfig:
        """Create configuration from dictionary."""
        return cls(
            database=DatabaseConfig(**data.get("database", {})),
            logging=LoggingConfig(**data.get("logging", {})),
        )


def load_config(path: str | Path | None = None) -> PolicyStoreConfig:
    """
    Load configuration from YAML file.

    Args:
        path: Path to configuration file. If None, uses default paths.

    Returns:
        PolicyStoreConfig instance with loaded settings.

    Raises:
        FileNotFoundError: If config file not found.
        yaml.YAMLError: If config file is invalid YAML.
    """
    if path is None:
        # Try default locations
        candidates = [
            DEFAULT_CONFIG_PATH,
            Path("config/policy-store.yaml"),
            Path("policy-store.yaml"),
        ]
        for candidate in candidates:
            if candidate.exists():
                path = candidate
                break

    if path is None:
        return PolicyStoreConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return PolicyStoreConfig.from_dict(data)


def validate_config(config: PolicyStoreConfig) -> list[str]:
    """
    Validate configuration and return list of errors.

    Args:
        config: Configuration to validate.

    Returns:
        List of error messages. Empty list if valid.
    """
    errors: list[str] = []

    if not config.database.url:
        errors.append("Database URL is required")

    if not config.database.table_name:
        errors.append("Table name is required")

    valid_log_levels = {"debug", "info", "warning", "error"}
    if config.logging.level not in valid_log_levels:
        errors.append(f"Invalid log level: {config.logging.level}")

    return errors

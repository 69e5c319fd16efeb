"""Application configuration helpers."""

from __future__ import annotations

from .auth import AuthConfig, TokenGrant, get_auth_config, parse_token_grants
from .env import optional_env_float, optional_env_int, require_env_vars
from .errors import ConfigurationError, InvalidConfigurationError, MissingConfigurationError
from .http_resilience import NO_RETRY, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .opencti import OpenCtiConfig, get_opencti_config
from .scan import ScanConfig, get_scan_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "NO_RETRY",
    "AuthConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "InvalidConfigurationError",
    "MissingConfigurationError",
    "OpenCtiConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "ScanConfig",
    "StorageConfig",
    "TokenGrant",
    "configure_logging",
    "get_auth_config",
    "get_database_config",
    "get_opencti_config",
    "get_scan_config",
    "get_storage_config",
    "optional_env_float",
    "optional_env_int",
    "parse_token_grants",
    "require_env_vars",
]

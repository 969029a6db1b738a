"""Configuration package for SHARE CRM."""

from sharecrm.config.app_config import (
    AppConfig,
    AuthConfig,
    DatabaseConfig,
    EmailConfig,
    PaymentsConfig,
    StorageConfig,
    clear_config_cache,
    load_app_config,
    set_app_config,
)

__all__ = [
    "AppConfig",
    "AuthConfig",
    "DatabaseConfig",
    "EmailConfig",
    "PaymentsConfig",
    "StorageConfig",
    "clear_config_cache",
    "load_app_config",
    "set_app_config",
]

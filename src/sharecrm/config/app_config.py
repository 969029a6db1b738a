"""Application configuration loader.

Loads centralized configuration from config/sharecrm.yaml (or the file
named by the SHARECRM_CONFIG environment variable) with built-in defaults
for every section.

Usage:
    from sharecrm.config.app_config import load_app_config

    config = load_app_config()
    secret = config.auth.get_secret_key()
"""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
CONFIG_FILE = Path("config/sharecrm.yaml")
CONFIG_ENV_VAR = "SHARECRM_CONFIG"

# Generated on first use when no signing key is configured
_ephemeral_secret_key: str | None = None


@dataclass
class DatabaseConfig:
    """SQLite database settings."""

    path: str = "db/sharecrm.db"


@dataclass
class StorageConfig:
    """Local object storage settings."""

    root_dir: str = "data/storage"
    max_upload_bytes: int = 5 * 1024 * 1024
    signed_url_ttl_seconds: int = 600


@dataclass
class AuthConfig:
    """Token issuing settings."""

    secret_key: str = ""
    secret_key_env: str | None = "SHARECRM_SECRET_KEY"
    algorithm: str = "HS256"
    token_ttl_minutes: int = 12 * 60

    def get_secret_key(self) -> str:
        """Get signing key, preferring the environment variable.

        Without either, a random key is generated once per process: tokens
        and signed file links then stop working after a restart.
        """
        global _ephemeral_secret_key

        if self.secret_key_env:
            value = os.environ.get(self.secret_key_env)
            if value:
                return value
        if self.secret_key:
            return self.secret_key
        if _ephemeral_secret_key is None:
            _ephemeral_secret_key = secrets.token_hex(32)
            logger.warning(
                "auth.ephemeral_secret_key",
                hint=f"set {self.secret_key_env or 'auth.secret_key'} to keep sessions across restarts",
            )
        return _ephemeral_secret_key


@dataclass
class PaymentsConfig:
    """Payment processor settings."""

    currency: str = "aud"
    webhook_secret: str = ""
    webhook_secret_env: str | None = "SHARECRM_WEBHOOK_SECRET"
    signature_tolerance_seconds: int = 300

    def get_webhook_secret(self) -> str:
        """Get webhook signing secret, preferring the environment variable."""
        if self.webhook_secret_env:
            value = os.environ.get(self.webhook_secret_env)
            if value:
                return value
        return self.webhook_secret


@dataclass
class EmailConfig:
    """Outgoing SMTP settings."""

    enabled: bool = False
    host: str = "localhost"
    port: int = 587
    username: str | None = None
    password_env: str | None = "SHARECRM_SMTP_PASSWORD"
    sender: str = "SHARE CRM <noreply@sharecrm.local>"
    use_tls: bool = True

    def get_password(self) -> str | None:
        """Get SMTP password from environment variable."""
        if self.password_env:
            return os.environ.get(self.password_env)
        return None


@dataclass
class AppConfig:
    """Application-wide configuration."""

    organization_name: str = "SHARE"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    payments: PaymentsConfig = field(default_factory=PaymentsConfig)
    email: EmailConfig = field(default_factory=EmailConfig)


# Module-level cache
_cached_config: AppConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "app": {"organization_name": "SHARE"},
        "database": {"path": "db/sharecrm.db"},
        "storage": {
            "root_dir": "data/storage",
            "max_upload_bytes": 5 * 1024 * 1024,
            "signed_url_ttl_seconds": 600,
        },
        "auth": {
            "secret_key": "",
            "secret_key_env": "SHARECRM_SECRET_KEY",
            "algorithm": "HS256",
            "token_ttl_minutes": 720,
        },
        "payments": {
            "currency": "aud",
            "webhook_secret": "",
            "webhook_secret_env": "SHARECRM_WEBHOOK_SECRET",
            "signature_tolerance_seconds": 300,
        },
        "email": {
            "enabled": False,
            "host": "localhost",
            "port": 587,
            "username": None,
            "password_env": "SHARECRM_SMTP_PASSWORD",
            "sender": "SHARE CRM <noreply@sharecrm.local>",
            "use_tls": True,
        },
    }


def _merge(defaults: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Shallow-merge each config section over its defaults."""
    result = {key: dict(value) for key, value in defaults.items()}
    for section, values in (overrides or {}).items():
        if isinstance(values, dict) and section in result:
            result[section].update(values)
        else:
            result[section] = values
    return result


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    app_data = data.get("app", {})
    db_data = data.get("database", {})
    storage_data = data.get("storage", {})
    auth_data = data.get("auth", {})
    payments_data = data.get("payments", {})
    email_data = data.get("email", {})

    return AppConfig(
        organization_name=app_data.get("organization_name", "SHARE"),
        database=DatabaseConfig(path=str(db_data.get("path", "db/sharecrm.db"))),
        storage=StorageConfig(
            root_dir=str(storage_data.get("root_dir", "data/storage")),
            max_upload_bytes=int(storage_data.get("max_upload_bytes", 5 * 1024 * 1024)),
            signed_url_ttl_seconds=int(storage_data.get("signed_url_ttl_seconds", 600)),
        ),
        auth=AuthConfig(
            secret_key=auth_data.get("secret_key") or "",
            secret_key_env=auth_data.get("secret_key_env"),
            algorithm=auth_data.get("algorithm", "HS256"),
            token_ttl_minutes=int(auth_data.get("token_ttl_minutes", 720)),
        ),
        payments=PaymentsConfig(
            currency=payments_data.get("currency", "aud"),
            webhook_secret=payments_data.get("webhook_secret", "") or "",
            webhook_secret_env=payments_data.get("webhook_secret_env"),
            signature_tolerance_seconds=int(
                payments_data.get("signature_tolerance_seconds", 300)
            ),
        ),
        email=EmailConfig(
            enabled=bool(email_data.get("enabled", False)),
            host=email_data.get("host", "localhost"),
            port=int(email_data.get("port", 587)),
            username=email_data.get("username"),
            password_env=email_data.get("password_env"),
            sender=email_data.get("sender", "SHARE CRM <noreply@sharecrm.local>"),
            use_tls=bool(email_data.get("use_tls", True)),
        ),
    )


def _config_path() -> Path:
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override) if override else CONFIG_FILE


def load_app_config(force_reload: bool = False) -> AppConfig:
    """Load application config, falling back to defaults.

    Args:
        force_reload: If True, ignore cached config and reload from file.

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if _cached_config is not None and not force_reload:
        return _cached_config

    path = _config_path()
    if path.exists():
        logger.debug("loading_app_config", source=str(path))
        loaded = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        data = _merge(_get_defaults(), loaded)
    else:
        logger.info("using_default_config", expected=str(path))
        data = _get_defaults()

    _cached_config = _parse_config(data)
    return _cached_config


def set_app_config(config: AppConfig) -> None:
    """Install an explicit config (used by the CLI and tests)."""
    global _cached_config
    _cached_config = config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None

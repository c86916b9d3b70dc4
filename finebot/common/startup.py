"""Startup-time helpers for safe config logging."""

from typing import Any

from finebot.common.config import Settings
from finebot.common.logging import logger

SECRET_MARKERS = ("KEY", "SECRET", "PASSWORD", "TOKEN")


def _safe_value(env_name: str, value: Any) -> Any:
    """Redact secret-like settings; report empty ones as unset."""

    if value in ("", None):
        return "<unset>"
    if any(marker in env_name for marker in SECRET_MARKERS):
        return "<redacted>"
    return value


def startup_config(app_settings: Settings) -> dict[str, Any]:
    """Effective settings keyed by their environment variable names."""

    config: dict[str, Any] = {"service": app_settings.service_name}
    for field_name in type(app_settings).model_fields:
        env_name = field_name.upper()
        config[env_name] = _safe_value(env_name, getattr(app_settings, field_name))
    return config


def log_startup_config(app_settings: Settings) -> None:
    """Log the effective configuration once for quick troubleshooting."""

    logger.info("startup_config=%s", startup_config(app_settings))

"""Startup-time helpers for safe config logging."""

from hookrelay.common.config import RelaySettings
from hookrelay.common.logging import logger

SECRET_MARKERS = ("token", "secret", "password", "key")


def redacted_config(config: RelaySettings, fields: list[str]) -> dict[str, object]:
    """Selected settings with secret-like fields masked; empty secrets show as unset."""

    snapshot: dict[str, object] = {"service": config.service_name}
    for name in fields:
        value = getattr(config, name, None)
        if any(marker in name for marker in SECRET_MARKERS):
            value = "<redacted>" if value else "<unset>"
        snapshot[name] = value
    return snapshot


def log_startup_config(config: RelaySettings, fields: list[str]) -> None:
    """Log selected startup settings for quick troubleshooting."""

    logger.info("startup_config=%s", redacted_config(config, fields))

"""Process settings read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .errors import SettingsError

# Can be overridden via ORDERSUB_DATA_DIR environment variable
_default_data_dir = Path(__file__).parent.parent.parent / "data"
DATA_DIR = Path(os.environ.get("ORDERSUB_DATA_DIR", _default_data_dir))

STORE_BACKENDS = ("json", "pocketbase")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Settings:
    """Deployment settings. Business toggles live in the ``config`` collection instead."""

    data_dir: Path = DATA_DIR
    store: str = "json"
    pocketbase_url: str = ""
    pb_admin_email: str = ""
    pb_admin_password: str = ""
    telegram_token: str = ""
    http_timeout: float = 10.0
    cache_ttl: float = 300.0
    session_ttl: float = 24 * 3600.0
    webhook_secret: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from environment variables.

        Raises:
            SettingsError: If a value is malformed or a required one is missing.
        """
        env = os.environ if environ is None else environ

        store = env.get("ORDERSUB_STORE", "json").strip().lower()
        if store not in STORE_BACKENDS:
            raise SettingsError("ORDERSUB_STORE", f"expected one of {', '.join(STORE_BACKENDS)}")

        pocketbase_url = env.get("POCKETBASE_URL", "").strip()
        if store == "pocketbase" and not pocketbase_url:
            raise SettingsError("POCKETBASE_URL", "required when ORDERSUB_STORE=pocketbase")

        log_level = env.get("ORDERSUB_LOG_LEVEL", "INFO").strip().upper()
        if log_level not in LOG_LEVELS:
            raise SettingsError("ORDERSUB_LOG_LEVEL", f"unknown level {log_level!r}")

        data_dir = env.get("ORDERSUB_DATA_DIR")
        return cls(
            data_dir=Path(data_dir) if data_dir else DATA_DIR,
            store=store,
            pocketbase_url=pocketbase_url,
            pb_admin_email=env.get("PB_ADMIN_EMAIL", ""),
            pb_admin_password=env.get("PB_ADMIN_PASSWORD", ""),
            telegram_token=env.get("TELEGRAM_TOKEN", ""),
            http_timeout=_positive_float(env, "ORDERSUB_HTTP_TIMEOUT", 10.0),
            cache_ttl=_positive_float(env, "ORDERSUB_CACHE_TTL", 300.0),
            session_ttl=_positive_float(env, "ORDERSUB_SESSION_TTL", 24 * 3600.0),
            webhook_secret=env.get("ORDERSUB_WEBHOOK_SECRET", ""),
            log_level=log_level,
        )


def _positive_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise SettingsError(name, f"not a number: {raw!r}")
    if value <= 0:
        raise SettingsError(name, "must be positive")
    return value

"""Runtime settings read from TICKERBAR_* environment variables."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_SELECTION_FILE = "~/.tickerbar/selection.json"


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number, using %s", name, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring %s=%r: must not be negative, using %s", name, raw, default)
        return default
    return value


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer, using %s", name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    selection_file: Path = Path(DEFAULT_SELECTION_FILE).expanduser()
    reconnect_cooldown: float = 3.0
    reconnect_delay: float = 5.0
    health_interval: float = 30.0
    stale_threshold: float = 60.0
    http_timeout: float = 10.0
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from the environment. Bad values fall back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()
        selection_file = env.get("TICKERBAR_SELECTION_FILE", "").strip()
        return cls(
            selection_file=(
                Path(selection_file).expanduser() if selection_file else defaults.selection_file
            ),
            reconnect_cooldown=_float(
                env, "TICKERBAR_RECONNECT_COOLDOWN", defaults.reconnect_cooldown
            ),
            reconnect_delay=_float(env, "TICKERBAR_RECONNECT_DELAY", defaults.reconnect_delay),
            health_interval=_float(env, "TICKERBAR_HEALTH_INTERVAL", defaults.health_interval),
            stale_threshold=_float(env, "TICKERBAR_STALE_THRESHOLD", defaults.stale_threshold),
            http_timeout=_float(env, "TICKERBAR_HTTP_TIMEOUT", defaults.http_timeout),
            log_level=env.get("TICKERBAR_LOG_LEVEL", "").strip().upper() or defaults.log_level,
            host=env.get("TICKERBAR_HOST", "").strip() or defaults.host,
            port=_int(env, "TICKERBAR_PORT", defaults.port),
        )

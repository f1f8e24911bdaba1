"""Configuration settings for focusnudge."""

import logging
import math
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields

logger = logging.getLogger(__name__)

ENV_PREFIX = "FOCUSNUDGE_"


def _parse_level(raw: str) -> str | None:
    level = raw.strip().upper()
    return level if isinstance(logging.getLevelName(level), int) else None


@dataclass(slots=True, frozen=True)
class Settings:
    """Runtime settings; every field can be overridden from the environment."""

    threshold_ms: int = 10_000
    cooldown_ms: int = 300_000
    poll_interval: float = 2.0
    cooldown_retention: int = 12
    process_refresh: float = 2.0
    alert_timeout: float = 10.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """
        Build settings from ``FOCUSNUDGE_<FIELD>`` variables.

        Unparseable, non-finite or negative values and unknown log levels are
        logged and the default is kept.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for item in fields(cls):
            name = ENV_PREFIX + item.name.upper()
            raw = environ.get(name)
            if raw is None or not raw.strip():
                continue
            if item.type is str:
                level = _parse_level(raw)
                if level is None:
                    logger.warning("Ignoring %s=%r: unknown log level", name, raw)
                    continue
                values[item.name] = level
                continue
            convert = int if item.type is int else float
            try:
                value = convert(raw)
            except ValueError:
                logger.warning("Ignoring %s=%r: not a number", name, raw)
                continue
            if not math.isfinite(value):
                logger.warning("Ignoring %s=%r: not finite", name, raw)
                continue
            if value < 0:
                logger.warning("Ignoring %s=%r: negative", name, raw)
                continue
            values[item.name] = value
        return cls(**values)

"""
Config system - typed settings layered from defaults, .env files,
environment variables and explicit overrides.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, fields, replace
from pathlib import Path
import logging
import os

from dotenv import dotenv_values


_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class ConfigError(Exception):
    """Raised when configuration validation fails."""
    pass


@dataclass(frozen=True)
class Settings:
    """
    Container settings.

    Attributes:
        strict: Start containers in strict dependency-access mode
        trace: Attach a logging listener to container diagnostics
        log_level: Level applied to the ``stagedi`` logger by ``configure_logging``
    """
    strict: bool = False
    trace: bool = False
    log_level: str = "WARNING"

    @classmethod
    def load(
        cls,
        env_prefix: str = "STAGEDI_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ) -> "Settings":
        """
        Load settings with merge precedence (later overrides earlier):

        1. Dataclass defaults
        2. ``env_file`` (read with python-dotenv)
        3. Environment variables (``STAGEDI_*`` prefix)
        4. Manual overrides

        Unknown ``STAGEDI_*`` variables are ignored; unknown override keys
        are not.

        Raises:
            ConfigError: On unknown override keys or unparseable values
        """
        data: Dict[str, Any] = {}

        if env_file and Path(env_file).exists():
            data.update(_strip_prefix(dotenv_values(env_file), env_prefix))

        data.update(_strip_prefix(os.environ, env_prefix))

        if overrides:
            lowered = {key.lower(): value for key, value in overrides.items()}
            _check_known(cls, lowered)
            data.update(lowered)

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], strict: bool = False) -> "Settings":
        """
        Build settings from a flat mapping.

        Unknown keys are skipped unless ``strict`` is set.
        """
        known = {f.name: f for f in fields(cls)}
        values: Dict[str, Any] = {}

        if strict:
            _check_known(cls, data)

        for key, value in data.items():
            if key not in known:
                continue
            if known[key].type in (bool, "bool"):
                values[key] = _parse_bool(key, value)
            else:
                values[key] = value

        settings = cls(**values)
        settings.validate()
        return settings

    def validate(self) -> None:
        if str(self.log_level).upper() not in _LOG_LEVELS:
            raise ConfigError(
                f"Invalid log_level '{self.log_level}'; expected one of {', '.join(_LOG_LEVELS)}"
            )

    def with_overrides(self, **changes: Any) -> "Settings":
        settings = replace(self, **changes)
        settings.validate()
        return settings

    def configure_logging(self) -> None:
        """Apply ``log_level`` to the package logger."""
        logging.getLogger("stagedi").setLevel(str(self.log_level).upper())


def _check_known(cls, data: Dict[str, Any]) -> None:
    unknown = sorted(set(data) - {f.name for f in fields(cls)})
    if unknown:
        raise ConfigError(f"Unknown setting(s): {', '.join(unknown)}")


def _strip_prefix(source, prefix: str) -> Dict[str, Any]:
    return {
        key[len(prefix):].lower(): value
        for key, value in source.items()
        if key.startswith(prefix) and value is not None
    }


def _parse_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "yes", "1", "on"):
        return True
    if text in ("false", "no", "0", "off", ""):
        return False
    raise ConfigError(f"Invalid boolean for '{key}': {value!r}")

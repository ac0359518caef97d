"""
Birdie configuration — loads and merges config from multiple sources.

Precedence (highest to lowest):
1. Explicit overrides (passed in code)
2. Environment variables (BIRDIE_*)
3. Project config (./birdie.toml)
4. User config (~/.birdie/config.toml)
5. Defaults (hardcoded)

Environment variable mapping:
    BIRDIE_LANG → playback.lang
    BIRDIE_CDP_PORT → cdp.port
    BIRDIE_MONITOR_INTERVAL_MS → monitor.interval_ms
    BIRDIE_STT_API_KEY → speech.stt_api_key
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from birdie.core.errors import ConfigError

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Config Sub-Models
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class PlaybackConfig(BaseModel):
    """Narration text and the completion-estimate heuristic."""

    lang: str = "es"
    template: str = "Nueva notificación de {app_name}, de {sender}: {message}"
    # Product guesses, not measured constants
    ms_per_word: int = 250
    response_allowance_ms: int = 5000
    min_duration_ms: int = 7000


class SpeechConfig(BaseModel):
    """Speech engine selection."""

    engine: str = "auto"  # auto | say | espeak | mock
    voice: str | None = None
    stt_api_key: str = ""


class CDPConfig(BaseModel):
    """Chrome DevTools Protocol connection settings."""

    host: str = "localhost"
    port: int = 9222
    connect_timeout: float = 5.0
    script_timeout: float = 10.0
    help_url: str = "https://github.com/SergioPachon/Birdie/wiki/Chrome-DevTools-Setup"
    case_sensitive_find: bool = True


class MonitorConfig(BaseModel):
    """Tab monitoring loop settings."""

    interval_ms: int = 2000
    min_interval_ms: int = 500
    max_interval_ms: int = 10000
    history_size: int = 10


class LoggingConfig(BaseModel):
    """Log file location and event journal toggle."""

    dir: str = "~/.birdie/logs"
    log_events: bool = True


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Main Config
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class BirdieConfig(BaseModel):
    """Root configuration for Birdie."""

    playback: PlaybackConfig = Field(default_factory=PlaybackConfig)
    speech: SpeechConfig = Field(default_factory=SpeechConfig)
    cdp: CDPConfig = Field(default_factory=CDPConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @staticmethod
    def load(
        overrides: dict[str, Any] | None = None,
        project_path: Path | None = None,
        user_path: Path | None = None,
    ) -> BirdieConfig:
        """
        Load configuration from all sources and merge.

        Precedence: overrides > env vars > project toml > user toml > defaults
        """
        merged: dict[str, Any] = {}

        user_config_path = user_path or Path.home() / ".birdie" / "config.toml"
        if user_config_path.exists():
            _deep_merge(merged, _load_toml(user_config_path))

        project_config_path = project_path or Path.cwd() / "birdie.toml"
        if project_config_path.exists():
            _deep_merge(merged, _load_toml(project_config_path))

        _deep_merge(merged, _load_from_env())

        if overrides:
            _deep_merge(merged, overrides)

        _substitute_env_vars(merged)

        try:
            return BirdieConfig(**merged)
        except Exception as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def get_log_dir(self) -> Path:
        """Resolved log directory."""
        return Path(self.logging.dir).expanduser()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Internal Helpers
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def _load_toml(path: Path) -> dict[str, Any]:
    """Load a TOML file."""
    import tomllib

    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e


def _load_from_env() -> dict[str, Any]:
    """Load configuration from BIRDIE_* environment variables."""
    result: dict[str, Any] = {}

    env_mapping = {
        "BIRDIE_LANG": ("playback", "lang"),
        "BIRDIE_MS_PER_WORD": ("playback", "ms_per_word"),
        "BIRDIE_RESPONSE_ALLOWANCE_MS": ("playback", "response_allowance_ms"),
        "BIRDIE_MIN_DURATION_MS": ("playback", "min_duration_ms"),
        "BIRDIE_SPEECH_ENGINE": ("speech", "engine"),
        "BIRDIE_STT_API_KEY": ("speech", "stt_api_key"),
        "BIRDIE_CDP_HOST": ("cdp", "host"),
        "BIRDIE_CDP_PORT": ("cdp", "port"),
        "BIRDIE_MONITOR_INTERVAL_MS": ("monitor", "interval_ms"),
        "BIRDIE_LOG_DIR": ("logging", "dir"),
    }

    for env_var, (section, key) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            result.setdefault(section, {})[key] = _convert_value(value)

    return result


def _convert_value(value: str) -> Any:
    """Convert string value to appropriate type."""
    if value.lower() in ("true", "yes"):
        return True
    if value.lower() in ("false", "no"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value


def _deep_merge(base: dict, override: dict) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _substitute(value: str) -> str:
    for var_name in _ENV_PATTERN.findall(value):
        value = value.replace(f"${{{var_name}}}", os.environ.get(var_name, ""))
    return value


def _substitute_env_vars(data: dict) -> None:
    """Recursively substitute ${ENV_VAR} patterns in string values."""
    for key, value in data.items():
        if isinstance(value, dict):
            _substitute_env_vars(value)
        elif isinstance(value, str):
            data[key] = _substitute(value)
        elif isinstance(value, list):
            data[key] = [_substitute(v) if isinstance(v, str) else v for v in value]

"""
Exporter configuration.

Purpose:
    Provide a validated, immutable settings object for the exporter so the
    runtime components depend on typed values instead of raw environment
    strings.
External Dependencies:
    ``PyYAML`` for the optional configuration file.
Fallback Semantics:
    Settings are layered, lowest precedence first: built-in defaults, the YAML
    file named by ``BOINC_EXPORTER_CONFIG`` (or passed explicitly), environment
    variables, then explicit overrides from the command line. Unset or blank
    environment variables fall through to the lower layers.
Timeout Strategy:
    Not applicable; loading reads one small local file at most.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from boinc_exporter.client_state import reader as client_state_reader
from boinc_exporter.core.exceptions import ConfigurationError

DEFAULT_STATE_FILE = str(client_state_reader.DEFAULT_STATE_FILE)
DEFAULT_METRICS_PATH = "/metrics"
DEFAULT_PORT = 9100
DEFAULT_HOST = "0.0.0.0"

CONFIG_FILE_ENV_VAR = "BOINC_EXPORTER_CONFIG"

# Setting name -> environment variable.
ENV_VARS: dict[str, str] = {
    "state_file": "BOINC_CLIENT_STATE_XML",
    "log_file": "BOINC_LOGFILE_PATH",
    "metrics_path": "METRICS_HTTP_PATH",
    "port": "METRICS_HTTP_PORT",
    "host": "METRICS_HTTP_HOST",
    "prune_stale": "BOINC_EXPORTER_PRUNE_STALE",
    "cache_seconds": "BOINC_EXPORTER_CACHE_SECONDS",
    "read_timeout_seconds": "BOINC_EXPORTER_READ_TIMEOUT",
    "log_poll_interval": "BOINC_EXPORTER_LOG_POLL_INTERVAL",
    "log_from_start": "BOINC_LOGFILE_FROM_START",
    "log_level": "BOINC_EXPORTER_LOG_LEVEL",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ExporterConfig:
    """Immutable exporter settings.

    Parameters:
        state_file: Path of ``client_state.xml``.
        log_file: Path of the client log; ``None`` disables log watching.
        metrics_path: HTTP path serving the metrics.
        port: HTTP port; ``0`` picks a free port.
        host: Address the HTTP server binds to.
        prune_stale: Remove label sets absent from the latest snapshot.
        cache_seconds: Reuse a successful snapshot for this long (0 disables).
        read_timeout_seconds: Upper bound on a single state file read.
        log_poll_interval: Longest wait between log reads.
        log_from_start: Count the existing log backlog instead of only new lines.
        log_level: Logging level name.
    """

    state_file: str = DEFAULT_STATE_FILE
    log_file: Optional[str] = None
    metrics_path: str = DEFAULT_METRICS_PATH
    port: int = DEFAULT_PORT
    host: str = DEFAULT_HOST
    prune_stale: bool = True
    cache_seconds: float = 0.0
    read_timeout_seconds: float = 5.0
    log_poll_interval: float = 1.0
    log_from_start: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        """Validate invariants so runtime consumers can skip defensive checks.

        Raises:
            ConfigurationError: If a numeric setting is out of range or a path
                is empty.
        """
        if not self.state_file:
            raise ConfigurationError("state_file must not be empty", setting="state_file")
        if not 0 <= self.port <= 65535:
            raise ConfigurationError(f"port out of range: {self.port}", setting="port")
        if self.cache_seconds < 0:
            raise ConfigurationError("cache_seconds must not be negative", setting="cache_seconds")
        if self.read_timeout_seconds <= 0:
            raise ConfigurationError(
                "read_timeout_seconds must be positive", setting="read_timeout_seconds"
            )
        if self.log_poll_interval <= 0:
            raise ConfigurationError(
                "log_poll_interval must be positive", setting="log_poll_interval"
            )

    @property
    def log_watching_enabled(self) -> bool:
        return bool(self.log_file)


def _coerce(name: str, value: Any) -> Any:
    """Convert a raw file or environment value to the type of setting ``name``."""
    if name in ("port",):
        kind = int
    elif name in ("cache_seconds", "read_timeout_seconds", "log_poll_interval"):
        kind = float
    elif name in ("prune_stale", "log_from_start"):
        kind = bool
    else:
        kind = str

    if value is None:
        return None
    if kind is bool:
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ConfigurationError(f"Invalid boolean for {name}: {value!r}", setting=name)
    try:
        return kind(str(value).strip()) if kind is not str else str(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid value for {name}: {value!r}", setting=name) from exc


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load settings from a YAML file.

    Raises:
        ConfigurationError: If the file is missing, unparsable or not a mapping,
            or names an unknown setting.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse configuration file: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")

    known = {f.name for f in fields(ExporterConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigurationError(f"Unknown settings in {config_path}: {', '.join(unknown)}")
    return {key: _coerce(key, value) for key, value in data.items()}


def settings_from_env(env: Mapping[str, str]) -> dict[str, Any]:
    """Return the settings present (and non-blank) in ``env``."""
    values: dict[str, Any] = {}
    for name, var in ENV_VARS.items():
        raw = env.get(var)
        if raw is None or not raw.strip():
            continue
        values[name] = _coerce(name, raw)
    return values


def load_config(
    config_path: str | Path | None = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> ExporterConfig:
    """Build the effective :class:`ExporterConfig`.

    ``overrides`` with a ``None`` value are ignored so CLI options that were
    not given fall through to lower layers.
    """
    env = os.environ if env is None else env
    config = ExporterConfig()

    file_path = config_path or env.get(CONFIG_FILE_ENV_VAR)
    if file_path:
        config = replace(config, **load_config_file(file_path))

    config = replace(config, **settings_from_env(env))

    explicit = {key: value for key, value in overrides.items() if value is not None}
    if explicit:
        config = replace(config, **explicit)
    return config


__all__ = [
    "CONFIG_FILE_ENV_VAR",
    "DEFAULT_HOST",
    "DEFAULT_METRICS_PATH",
    "DEFAULT_PORT",
    "DEFAULT_STATE_FILE",
    "ENV_VARS",
    "ExporterConfig",
    "load_config",
    "load_config_file",
    "settings_from_env",
]

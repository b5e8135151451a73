"""
Application settings.

Settings come from three layers, lowest precedence first: built-in
defaults, a YAML settings file, and ``LANSHARE_*`` environment variables
(a ``.env`` file in the working directory is loaded first).
"""

import os
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml
from dotenv import find_dotenv, load_dotenv

from ..networking.errors import LanShareError

logger = logging.getLogger(__name__)

ENV_PREFIX = "LANSHARE_"


class SettingsError(LanShareError):
    """A settings file or environment variable holds an invalid value."""


def get_app_data_dir() -> Path:
    """Get the application data directory, creating it if it doesn't exist."""
    app_dir = Path.home() / ".lanshare"
    app_dir.mkdir(exist_ok=True, parents=True)
    return app_dir


@dataclass(frozen=True)
class Settings:
    port: int = 7892
    host: str = "0.0.0.0"
    share_dir: str = "shared_files"
    download_dir: str = "downloads"
    buffer_size: int = 4096
    probe_timeout: float = 0.5
    probe_host: str = "8.8.8.8"
    probe_port: int = 53
    subnet: Optional[str] = None
    connect_timeout: Optional[float] = None
    log_level: str = "INFO"

    @property
    def share_root(self) -> Path:
        return Path(self.share_dir).expanduser()

    @property
    def download_root(self) -> Path:
        return Path(self.download_dir).expanduser()


_FIELD_TYPES = {
    "port": int,
    "host": str,
    "share_dir": str,
    "download_dir": str,
    "buffer_size": int,
    "probe_timeout": float,
    "probe_host": str,
    "probe_port": int,
    "subnet": str,
    "connect_timeout": float,
    "log_level": str,
}
_OPTIONAL_FIELDS = {"subnet", "connect_timeout"}


def _coerce(key: str, value: Any) -> Any:
    """Convert a raw value to the type of the named field.

    Args:
        key: The settings field name
        value: The raw value from YAML or the environment

    Returns:
        The converted value

    Raises:
        SettingsError: If the key is unknown or the value cannot be converted
    """
    if key not in _FIELD_TYPES:
        raise SettingsError(f"Unknown setting '{key}'")

    if key in _OPTIONAL_FIELDS and (value is None or value == ""):
        return None

    target = _FIELD_TYPES[key]
    if target is int and isinstance(value, bool):
        raise SettingsError(f"Invalid value for '{key}': {value!r}")

    try:
        converted = target(value)
    except (TypeError, ValueError) as e:
        raise SettingsError(f"Invalid value for '{key}': {value!r} ({e})") from e

    if key in ("port", "probe_port") and not 0 <= converted <= 65535:
        raise SettingsError(f"Invalid value for '{key}': {converted} is not a port number")
    if key == "buffer_size" and converted <= 0:
        raise SettingsError(f"Invalid value for '{key}': must be positive")
    if key in ("probe_timeout", "connect_timeout") and converted <= 0:
        raise SettingsError(f"Invalid value for '{key}': must be positive")
    return converted


def read_settings_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML mapping of settings.

    Raises:
        SettingsError: If the file cannot be read or is not a mapping
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise SettingsError(f"Could not read settings file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise SettingsError(f"Invalid YAML in settings file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {path} must contain a mapping")
    return {str(key): _coerce(str(key), value) for key, value in data.items()}


def read_environment(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Collect ``LANSHARE_<FIELD>`` overrides from the environment."""
    environ = os.environ if environ is None else environ
    overrides = {}
    for field in fields(Settings):
        name = ENV_PREFIX + field.name.upper()
        if name in environ:
            overrides[field.name] = _coerce(field.name, environ[name])
    return overrides


def load_settings(path: Optional[Union[str, Path]] = None,
                  environ: Optional[Mapping[str, str]] = None,
                  use_dotenv: bool = True) -> Settings:
    """Load settings from defaults, a YAML file and the environment.

    Args:
        path: Settings file to read. If None, ``~/.lanshare/settings.yaml``
              is used when it exists.
        environ: Environment mapping to read overrides from (defaults to
                 ``os.environ``)
        use_dotenv: Whether to load a ``.env`` file before reading the
                    environment

    Returns:
        The merged settings
    """
    settings = Settings()

    if path is None:
        default_path = Path.home() / ".lanshare" / "settings.yaml"
        if default_path.exists():
            path = default_path

    if path is not None:
        settings = replace(settings, **read_settings_file(path))
        logger.debug(f"Loaded settings from {path}")

    if use_dotenv and environ is None:
        load_dotenv(find_dotenv(usecwd=True))

    overrides = read_environment(environ)
    if overrides:
        logger.debug(f"Environment overrides: {', '.join(sorted(overrides))}")
        settings = replace(settings, **overrides)

    return settings


def ensure_directories(settings: Settings) -> None:
    """Create the share and download directories if they are missing."""
    for directory in (settings.share_root, settings.download_root):
        directory.mkdir(parents=True, exist_ok=True)
        logger.debug(f"Using directory {directory.resolve()}")

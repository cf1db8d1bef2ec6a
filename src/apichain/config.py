"""Configuration management with XDG paths, atomic writes and env overrides.

This module handles all persistent configuration for apichain:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.apichain/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~apichain.models.GlobalConfig`
  JSON file storing the mock flag and output defaults.
* **Mock mode resolution** -- :func:`resolve_mock_enabled` applies the
  ``APICHAIN_MOCK`` environment variable over the persisted flag.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from apichain.exceptions import ConfigurationError
from apichain.models import GlobalConfig

_APP_NAME = "apichain"
_CONFIG_FILENAME = "config.json"

MOCK_ENV_VAR = "APICHAIN_MOCK"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/apichain/`` (default ``~/.config/apichain/``).
    On macOS/Windows: ``~/.apichain/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/apichain/`` (default ``~/.local/share/apichain/``).
    On macOS/Windows: ``~/.apichain/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Global config ---


def global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the config directory.

    Returns:
        The deserialised :class:`~apichain.models.GlobalConfig`, or a default
        instance if the file does not exist.

    Raises:
        ConfigurationError: If the file exists but contains invalid JSON or
            fails Pydantic validation.
    """
    path = global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Mock mode resolution ---


def parse_bool_env(name: str) -> Optional[bool]:
    """Read a boolean environment variable.

    Returns:
        ``None`` when the variable is unset, otherwise its boolean value.

    Raises:
        ConfigurationError: If the value is not a recognised boolean word.
    """
    raw = os.environ.get(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean value for {name}: {raw!r}")


def resolve_mock_enabled(config: Optional[GlobalConfig] = None) -> bool:
    """Return the effective mock flag.

    Precedence (high to low):
        1. ``APICHAIN_MOCK`` environment variable
        2. ``mock.enabled`` in the global config file
        3. Default (off)
    """
    override = parse_bool_env(MOCK_ENV_VAR)
    if override is not None:
        return override
    if config is None:
        config = load_global_config()
    return config.mock.enabled

"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for specreg:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.specreg/`` on macOS and Windows. See :func:`get_config_dir`.
* **Global config** -- A single :class:`~specreg.models.GlobalConfig`
  JSON file storing the default document, output format and connection.
* **Project config** -- ``./specreg.json`` with the same shape, letting a
  repository pin its API document and server.
* **Precedence resolution** -- :func:`resolve_client_config` and
  :func:`resolve_spec_source` merge CLI flags, environment variables,
  project-local config, and global config into the effective settings.
* **Token sources** -- :func:`resolve_token` expands ``env:`` and ``file:``
  descriptors so secrets need not be stored in config files.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from specreg.exceptions import ConfigError
from specreg.models import ClientConfig, GlobalConfig

_APP_NAME = "specreg"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "specreg.json"

ENV_SPEC = "SPECREG_SPEC"
ENV_SERVER = "SPECREG_SERVER"
ENV_TOKEN = "SPECREG_TOKEN"
ENV_INSECURE = "SPECREG_INSECURE"

_TRUTHY = {"1", "true", "yes", "on"}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/specreg/`` (default ``~/.config/specreg/``).
    On macOS/Windows: ``~/.specreg/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path: Optional[str] = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as fd:
            tmp_path = fd.name
            fd.write(data)
            fd.flush()
            os.fsync(fd.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


# --- Global config ---


def global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~specreg.models.GlobalConfig`, or a
        default instance when the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk."""
    data = config.model_dump(mode="json")
    _atomic_write(global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./specreg.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file is not valid JSON or not an object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


# --- Precedence resolution ---


def resolve_client_config(
    cli_server: Optional[str] = None,
    cli_token: Optional[str] = None,
) -> ClientConfig:
    """Resolve connection settings with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_server``, ``cli_token``)
        2. Environment variables (``SPECREG_SERVER``, ``SPECREG_TOKEN``,
           ``SPECREG_INSECURE``)
        3. Project config (``./specreg.json``, key ``client``)
        4. User config (``~/.config/specreg/config.json``)
        5. Defaults

    The token may be an ``env:`` or ``file:`` descriptor at any level; it is
    expanded by :func:`resolve_token`.
    """
    merged: dict[str, Any] = load_global_config().client.model_dump()

    project = load_project_config()
    if project is not None:
        project_client = project.get("client")
        if isinstance(project_client, dict):
            merged.update(project_client)

    env_server = os.environ.get(ENV_SERVER)
    if env_server:
        merged["server"] = env_server
    env_token = os.environ.get(ENV_TOKEN)
    if env_token:
        merged["token"] = env_token
    env_insecure = os.environ.get(ENV_INSECURE)
    if env_insecure:
        merged["insecure"] = env_insecure.strip().lower() in _TRUTHY

    if cli_server is not None:
        merged["server"] = cli_server
    if cli_token is not None:
        merged["token"] = cli_token

    if merged.get("token"):
        merged["token"] = resolve_token(merged["token"])

    try:
        return ClientConfig.model_validate(merged)
    except ValueError as exc:
        raise ConfigError(f"Invalid client configuration: {exc}") from exc


def resolve_spec_source(cli_spec: Optional[str] = None) -> Optional[str]:
    """Resolve which API document to load.

    Precedence: CLI flag > ``SPECREG_SPEC`` > project ``default_spec`` >
    global ``default_spec``. Returns ``None`` when nothing is configured.
    """
    if cli_spec:
        return cli_spec
    env_spec = os.environ.get(ENV_SPEC)
    if env_spec:
        return env_spec
    project = load_project_config()
    if project is not None and isinstance(project.get("default_spec"), str):
        return project["default_spec"]
    return load_global_config().default_spec


def resolve_token(source: str) -> str:
    """Expand a token descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - anything else -- used verbatim as the token

    Raises:
        ConfigError: If the variable is unset or the file cannot be read.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(f"Environment variable '{var_name}' is not set (source: {source})")
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Token file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read token file {path}: {exc}") from exc

    return source

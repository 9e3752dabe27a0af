"""Compile-option resolution, XDG data directory, and atomic file writes.

This module handles everything specroute reads from or writes to the
environment outside the OpenAPI document:

* **Precedence resolution** -- :func:`resolve_options` merges CLI flags,
  environment variables, and the project-local ``specroute.json`` into the
  :class:`~specroute.models.CompileOptions` the compiler receives.
* **Data directory** -- :func:`get_data_dir` is XDG Base Directory compliant
  on Linux/BSD and falls back to ``~/.specroute/`` elsewhere. Crash logs are
  written there.
* **Atomic writes** -- :func:`atomic_write` writes compiled output with a
  temp-file-then-rename strategy so a failed run never leaves a truncated
  file behind.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from specroute.exceptions import ConfigError
from specroute.models import CompileMode, CompileOptions, ProjectConfig

_APP_NAME = "specroute"
_PROJECT_CONFIG_FILENAME = "specroute.json"

ENV_MODE = "SPECROUTE_MODE"
ENV_PREFIX = "SPECROUTE_PREFIX"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/specroute/`` (default
    ``~/.local/share/specroute/``). On macOS/Windows: ``~/.specroute/logs/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_DATA_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}" / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On any failure the temp file is cleaned up and *path* is left untouched.
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


# --- Project-local config ---


def load_project_config(directory: Optional[Path] = None) -> Optional[ProjectConfig]:
    """Load project-local configuration from ``specroute.json``.

    Args:
        directory: Directory to look in; defaults to the current directory.

    Returns:
        The validated :class:`~specroute.models.ProjectConfig`, or ``None``
        if the file does not exist.

    Raises:
        ConfigError: If the file exists but contains invalid JSON, unknown
            keys, or values of the wrong type.
    """
    path = (directory or Path.cwd()) / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        text = path.read_text(encoding="utf-8")
        return ProjectConfig.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc


# --- Precedence resolution ---


def _parse_mode(value: str, source: str) -> CompileMode:
    try:
        return CompileMode(value.lower())
    except ValueError as exc:
        choices = ", ".join(m.value for m in CompileMode)
        raise ConfigError(f"Unknown compile mode '{value}' from {source} (expected one of: {choices})") from exc


def resolve_options(
    cli_mode: Optional[str] = None,
    cli_prefix: Optional[str] = None,
    directory: Optional[Path] = None,
) -> CompileOptions:
    """Resolve compile options with the full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_mode``, ``cli_prefix``)
        2. Environment variables (``SPECROUTE_MODE``, ``SPECROUTE_PREFIX``)
        3. Project config (``./specroute.json``)
        4. Defaults (``handler`` mode, empty prefix)

    Args:
        cli_mode: ``--mode`` value, if given.
        cli_prefix: ``--prefix`` value, if given.
        directory: Where to look for the project config; defaults to the
            current directory.

    Returns:
        The effective :class:`~specroute.models.CompileOptions`.

    Raises:
        ConfigError: If any source names an unknown mode or the project
            config is invalid.
    """
    mode = CompileMode.HANDLER
    prefix = ""

    # 3. Project-local config
    project = load_project_config(directory)
    if project is not None:
        if project.mode is not None:
            mode = project.mode
        if project.prefix is not None:
            prefix = project.prefix

    # 2. Environment variables
    env_mode = os.environ.get(ENV_MODE)
    if env_mode:
        mode = _parse_mode(env_mode, ENV_MODE)
    env_prefix = os.environ.get(ENV_PREFIX)
    if env_prefix is not None:
        prefix = env_prefix

    # 1. CLI flags
    if cli_mode is not None:
        mode = _parse_mode(cli_mode, "--mode")
    if cli_prefix is not None:
        prefix = cli_prefix

    return CompileOptions(mode=mode, prefix=prefix)

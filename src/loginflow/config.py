"""Where loginflow keeps its settings, and how the active profile is chosen.

Files:

* ``config.json`` (:class:`~loginflow.models.GlobalConfig`) and one
  ``profiles/<name>.json`` per client application
  (:class:`~loginflow.models.LoginProfile`) under the config directory;
* tokens and crash logs under the data directory;
* an optional ``./loginflow.json`` pinning a profile for one project.

The config directory is ``$XDG_CONFIG_HOME/loginflow`` and the data
directory ``$XDG_DATA_HOME/loginflow`` on Linux and the BSDs; elsewhere both
live under ``~/.loginflow``. Every write goes through :func:`atomic_write`.
"""

from __future__ import annotations

import getpass
import json
import os
import platform
import sys
import tempfile
from pathlib import Path
from typing import Any, Optional

from loginflow.exceptions import ConfigError
from loginflow.models import GlobalConfig, LoginProfile

_APP_NAME = "loginflow"
_PROJECT_FILE = "loginflow.json"

# kind -> (XDG variable, default under $HOME, fallback under ~/.loginflow)
_DIRS: dict[str, tuple[str, tuple[str, ...], tuple[str, ...]]] = {
    "config": ("XDG_CONFIG_HOME", (".config",), ()),
    "data": ("XDG_DATA_HOME", (".local", "share"), ("data",)),
}


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _app_dir(kind: str) -> Path:
    env_var, xdg_default, fallback = _DIRS[kind]
    if _is_xdg_platform():
        root = os.environ.get(env_var) or Path.home().joinpath(*xdg_default)
        path = Path(root) / _APP_NAME
    else:
        path = Path.home().joinpath(f".{_APP_NAME}", *fallback)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_dir() -> Path:
    """The config directory, created on first use."""
    return _app_dir("config")


def get_data_dir() -> Path:
    """The data directory (tokens, crash logs), created on first use."""
    return _app_dir("data")


def get_profiles_dir() -> Path:
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* via a sibling temp file and ``os.replace``.

    With *mode* set, the temp file gets those permission bits before any
    data is written to it, so a token is never briefly world-readable. If
    anything fails the temp file is removed and *path* is left as it was.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = tempfile.NamedTemporaryFile(
        "w",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
        encoding="utf-8",
    )
    try:
        with tmp:
            if mode is not None:
                os.chmod(tmp.name, mode)
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp.name, path)
    except BaseException:
        Path(tmp.name).unlink(missing_ok=True)
        raise


def _read_json(path: Path, what: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Invalid {what} at {path}: {exc}") from exc


def _write_json(path: Path, data: Any) -> None:
    atomic_write(path, json.dumps(data, indent=2) + "\n")


# --- Global config ---


def load_global_config() -> GlobalConfig:
    """The saved global config, or defaults when there is none.

    Raises:
        ConfigError: If the file is not valid JSON or does not validate.
    """
    path = get_config_dir() / "config.json"
    if not path.is_file():
        return GlobalConfig()
    data = _read_json(path, "global config")
    try:
        return GlobalConfig.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    _write_json(get_config_dir() / "config.json", config.model_dump(mode="json"))


def configured_format() -> str:
    """The ``output.format`` setting; ``"auto"`` if the config is unreadable."""
    try:
        return load_global_config().output.format
    except ConfigError:
        return "auto"


# --- Profiles ---


def _profile_path(name: str) -> Path:
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


def load_profile(name: str) -> LoginProfile:
    """Read profile *name*.

    Raises:
        ConfigError: If it does not exist, is not JSON, or does not
            validate as a :class:`~loginflow.models.LoginProfile`.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    data = _read_json(path, f"profile '{name}'")
    try:
        return LoginProfile.model_validate(data)
    except ValueError as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: LoginProfile) -> None:
    _write_json(_profile_path(profile.name), profile.model_dump(mode="json"))


def delete_profile(name: str) -> None:
    """Remove profile *name*; :class:`ConfigError` if there is none."""
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


# --- Project pin ---


def load_project_config() -> Optional[dict[str, Any]]:
    """``./loginflow.json`` as a dict, or ``None`` if the file is absent."""
    path = Path.cwd() / _PROJECT_FILE
    if not path.is_file():
        return None
    return _read_json(path, "project config")


def write_project_config(profile_name: str) -> Path:
    """Pin *profile_name* as this directory's profile."""
    path = Path.cwd() / _PROJECT_FILE
    _write_json(path, {"default_profile": profile_name})
    return path


# --- Resolution ---


def resolve_config(
    cli_profile: Optional[str] = None,
    cli_base_url: Optional[str] = None,
) -> tuple[GlobalConfig, Optional[LoginProfile]]:
    """Pick the active profile and apply base URL overrides.

    The profile name comes from the first of: *cli_profile*,
    ``LOGINFLOW_PROFILE``, ``./loginflow.json``, the global
    ``default_profile``, and finally the only saved profile when
    ``auto_select_single_profile`` is on. The base URL override comes from
    *cli_base_url*, then ``LOGINFLOW_BASE_URL``.

    Raises:
        ConfigError: If the chosen profile cannot be loaded.
    """
    global_cfg = load_global_config()
    project = load_project_config() or {}

    candidates = (
        cli_profile,
        os.environ.get("LOGINFLOW_PROFILE") or None,
        project.get("default_profile"),
        global_cfg.default_profile,
    )
    name = next((c for c in candidates if c is not None), None)
    if name is None and global_cfg.auto_select_single_profile:
        profiles = list_profiles()
        if len(profiles) == 1:
            name = profiles[0]

    if name is None:
        return global_cfg, None

    profile = load_profile(name)
    base_url = cli_base_url or os.environ.get("LOGINFLOW_BASE_URL")
    if base_url:
        profile.base_url = base_url
    return global_cfg, profile


def resolve_credential(source: str) -> str:
    """Read the API key named by *source*.

    ``env:VAR`` reads an environment variable, ``file:/path`` reads a file
    (surrounding whitespace stripped) and ``prompt`` asks on the terminal.

    Raises:
        ConfigError: If the source is unknown or yields nothing.
    """
    kind, _, target = source.partition(":")

    if kind == "env" and target:
        value = os.environ.get(target)
        if value is None:
            raise ConfigError(
                f"Environment variable '{target}' is not set (source: {source})"
            )
        return value

    if kind == "file" and target:
        path = Path(target).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for the API key: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("API key: ")

    raise ConfigError(f"Unknown credential source format: {source}")

"""Tests for loginflow.config -- XDG paths, atomic writes, profiles, precedence."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from loginflow.config import (
    atomic_write,
    configured_format,
    delete_profile,
    get_config_dir,
    get_data_dir,
    get_profiles_dir,
    list_profiles,
    load_global_config,
    load_profile,
    load_project_config,
    profile_exists,
    resolve_config,
    resolve_credential,
    save_global_config,
    save_profile,
    write_project_config,
)
from loginflow.exceptions import ConfigError
from loginflow.models import AuthEnvironment, GlobalConfig, LoginProfile, Provider


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")


def _make_profile(name: str = "test", callback_uri: str = "myapp://auth/done") -> LoginProfile:
    return LoginProfile(name=name, client_id=f"{name}-client", callback_uri=callback_uri)


# ---------------------------------------------------------------------------
# XDG path resolution
# ---------------------------------------------------------------------------


class TestXDGPaths:
    def test_config_dir_xdg_custom(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("loginflow.config._is_xdg_platform", lambda: True)
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
        assert get_config_dir() == tmp_path / "cfg" / "loginflow"
        assert get_config_dir().is_dir()

    def test_config_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("loginflow.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_config_dir() == tmp_path / ".config" / "loginflow"

    def test_data_dir_xdg_default(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("loginflow.config._is_xdg_platform", lambda: True)
        monkeypatch.delenv("XDG_DATA_HOME", raising=False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_data_dir() == tmp_path / ".local" / "share" / "loginflow"

    def test_fallback_dirs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("loginflow.config._is_xdg_platform", lambda: False)
        monkeypatch.setattr(Path, "home", lambda: tmp_path)
        assert get_config_dir() == tmp_path / ".loginflow"
        assert get_data_dir() == tmp_path / ".loginflow" / "data"

    def test_profiles_dir_is_inside_config_dir(self, isolated_config: Path) -> None:
        assert get_profiles_dir() == get_config_dir() / "profiles"


# ---------------------------------------------------------------------------
# Atomic writes
# ---------------------------------------------------------------------------


class TestAtomicWrite:
    def test_creates_parents_and_content(self, tmp_path: Path) -> None:
        target = tmp_path / "a" / "b" / "file.json"
        atomic_write(target, '{"ok": true}')
        assert target.read_text() == '{"ok": true}'

    def test_overwrites(self, tmp_path: Path) -> None:
        target = tmp_path / "file.txt"
        atomic_write(target, "old")
        atomic_write(target, "new")
        assert target.read_text() == "new"

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_mode(self, tmp_path: Path) -> None:
        target = tmp_path / "secret"
        atomic_write(target, "s", mode=0o600)
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    def test_no_temp_files_left_on_error(self, tmp_path: Path) -> None:
        target = tmp_path / "file.txt"
        atomic_write(target, "original")
        with patch("loginflow.config.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                atomic_write(target, "replacement")
        assert target.read_text() == "original"
        assert [p.name for p in tmp_path.iterdir()] == ["file.txt"]


# ---------------------------------------------------------------------------
# Global config and profiles
# ---------------------------------------------------------------------------


class TestGlobalConfig:
    def test_defaults_when_missing(self, isolated_config: Path) -> None:
        cfg = load_global_config()
        assert cfg.default_profile is None
        assert cfg.auto_select_single_profile is True
        assert cfg.output.format == "auto"

    def test_roundtrip(self, isolated_config: Path) -> None:
        save_global_config(GlobalConfig(default_profile="p"))
        assert load_global_config().default_profile == "p"

    def test_configured_format(self, isolated_config: Path) -> None:
        assert configured_format() == "auto"
        cfg = GlobalConfig()
        cfg.output.format = "json"
        save_global_config(cfg)
        assert configured_format() == "json"

    def test_configured_format_unreadable(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text("{")
        assert configured_format() == "auto"

    def test_invalid_json(self, isolated_config: Path) -> None:
        (get_config_dir() / "config.json").write_text("{nope")
        with pytest.raises(ConfigError, match="Invalid global config"):
            load_global_config()


class TestProfiles:
    def test_list_empty(self, isolated_config: Path) -> None:
        assert list_profiles() == []

    def test_save_load_list(self, isolated_config: Path) -> None:
        save_profile(_make_profile("beta"))
        save_profile(_make_profile("alpha"))
        assert list_profiles() == ["alpha", "beta"]
        loaded = load_profile("alpha")
        assert loaded.client_id == "alpha-client"
        assert loaded.provider is Provider.AUTH0
        assert profile_exists("alpha")

    def test_load_missing(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_profile("ghost")

    def test_load_invalid(self, isolated_config: Path) -> None:
        _write_json(get_profiles_dir() / "broken.json", {"name": "broken"})
        with pytest.raises(ConfigError, match="Invalid profile"):
            load_profile("broken")

    def test_delete(self, isolated_config: Path) -> None:
        save_profile(_make_profile("gone"))
        delete_profile("gone")
        assert not profile_exists("gone")
        with pytest.raises(ConfigError):
            delete_profile("gone")

    def test_list_ignores_non_json(self, isolated_config: Path) -> None:
        save_profile(_make_profile("real"))
        (get_profiles_dir() / "notes.txt").write_text("x")
        assert list_profiles() == ["real"]


class TestLoginProfile:
    def test_to_request(self) -> None:
        profile = LoginProfile(
            name="p",
            provider=Provider.MICROSOFT,
            environment=AuthEnvironment.STAGING,
            client_id="c",
            callback_uri="myapp://auth/done",
            scope="openid",
        )
        request = profile.to_request("k-1")
        assert request.provider is Provider.MICROSOFT
        assert request.environment is AuthEnvironment.STAGING
        assert request.api_key == "k-1"
        assert request.callback_uri == "myapp://auth/done"
        assert request.scope == "openid"

    def test_to_request_rejects_schemeless_callback(self) -> None:
        profile = LoginProfile(name="p", client_id="c", callback_uri="auth/done")
        with pytest.raises(ValueError, match="scheme"):
            profile.to_request("k")

    def test_service_base_url(self) -> None:
        profile = _make_profile()
        assert profile.service_base_url == "https://auth.example.com"
        profile.base_url = "http://localhost:9000/"
        assert profile.service_base_url == "http://localhost:9000"


# ---------------------------------------------------------------------------
# Project config
# ---------------------------------------------------------------------------


class TestProjectConfig:
    def test_missing(self, isolated_config: Path) -> None:
        assert load_project_config() is None

    def test_write_then_load(self, isolated_config: Path) -> None:
        path = write_project_config("my-client")
        assert path == isolated_config / "loginflow.json"
        assert load_project_config() == {"default_profile": "my-client"}

    def test_invalid_json(self, isolated_config: Path) -> None:
        (isolated_config / "loginflow.json").write_text("{")
        with pytest.raises(ConfigError):
            load_project_config()


# ---------------------------------------------------------------------------
# Precedence
# ---------------------------------------------------------------------------


class TestResolveConfig:
    """CLI > env > project > global > auto-select."""

    def test_no_profile(self, isolated_config: Path) -> None:
        cfg, profile = resolve_config()
        assert isinstance(cfg, GlobalConfig)
        assert profile is None

    def test_auto_select_single_profile(self, isolated_config: Path) -> None:
        save_profile(_make_profile("only"))
        _, profile = resolve_config()
        assert profile is not None and profile.name == "only"

    def test_auto_select_disabled(self, isolated_config: Path) -> None:
        save_profile(_make_profile("only"))
        save_global_config(GlobalConfig(auto_select_single_profile=False))
        _, profile = resolve_config()
        assert profile is None

    def test_auto_select_skipped_when_multiple(self, isolated_config: Path) -> None:
        save_profile(_make_profile("a"))
        save_profile(_make_profile("b"))
        _, profile = resolve_config()
        assert profile is None

    def test_project_overrides_global(self, isolated_config: Path) -> None:
        save_profile(_make_profile("global"))
        save_profile(_make_profile("project"))
        save_global_config(GlobalConfig(default_profile="global"))
        write_project_config("project")
        _, profile = resolve_config()
        assert profile.name == "project"

    def test_env_overrides_project(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        save_profile(_make_profile("project"))
        save_profile(_make_profile("env"))
        write_project_config("project")
        monkeypatch.setenv("LOGINFLOW_PROFILE", "env")
        _, profile = resolve_config()
        assert profile.name == "env"

    def test_cli_overrides_env(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        save_profile(_make_profile("env"))
        save_profile(_make_profile("cli"))
        monkeypatch.setenv("LOGINFLOW_PROFILE", "env")
        _, profile = resolve_config(cli_profile="cli")
        assert profile.name == "cli"

    def test_base_url_overrides(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        save_profile(_make_profile("api"))
        monkeypatch.setenv("LOGINFLOW_BASE_URL", "http://env.test")
        _, profile = resolve_config()
        assert profile.service_base_url == "http://env.test"
        _, profile = resolve_config(cli_base_url="http://cli.test")
        assert profile.service_base_url == "http://cli.test"

    def test_empty_env_profile_is_ignored(
        self, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        save_profile(_make_profile("project"))
        write_project_config("project")
        monkeypatch.setenv("LOGINFLOW_PROFILE", "")
        _, profile = resolve_config()
        assert profile.name == "project"

    def test_missing_profile_raises(self, isolated_config: Path) -> None:
        with pytest.raises(ConfigError):
            resolve_config(cli_profile="ghost")


# ---------------------------------------------------------------------------
# Credential sources
# ---------------------------------------------------------------------------


class TestResolveCredential:
    def test_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MY_KEY", "k-env")
        assert resolve_credential("env:MY_KEY") == "k-env"

    def test_env_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("MY_KEY", raising=False)
        with pytest.raises(ConfigError, match="MY_KEY"):
            resolve_credential("env:MY_KEY")

    def test_file(self, tmp_path: Path) -> None:
        key_file = tmp_path / "key"
        key_file.write_text("k-file\n")
        assert resolve_credential(f"file:{key_file}") == "k-file"

    def test_file_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            resolve_credential(f"file:{tmp_path / 'nope'}")

    def test_prompt_with_tty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: True)
        monkeypatch.setattr("getpass.getpass", lambda prompt: "k-typed")
        assert resolve_credential("prompt") == "k-typed"

    def test_prompt_without_tty(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("sys.stdin.isatty", lambda: False)
        with pytest.raises(ConfigError, match="not a TTY"):
            resolve_credential("prompt")

    def test_unknown(self) -> None:
        with pytest.raises(ConfigError, match="Unknown credential source"):
            resolve_credential("keyring:thing")

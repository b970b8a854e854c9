"""Tests for path management."""

from pathlib import Path

from svcman.config.paths import (
    ENV_VAR,
    get_config_path,
    get_launchd_user_dir,
    get_svcman_home,
    get_systemd_user_dir,
    get_user_config_dir,
    get_winsw_dir,
)


class TestGetSvcmanHome:
    """Tests for get_svcman_home()."""

    def test_default_is_home_dot_svcman(self, monkeypatch):
        monkeypatch.delenv(ENV_VAR, raising=False)
        get_svcman_home.cache_clear()

        assert get_svcman_home() == Path.home() / ".svcman"

    def test_respects_env_var(self, monkeypatch, tmp_path):
        custom_path = tmp_path / "custom-svcman"
        monkeypatch.setenv(ENV_VAR, str(custom_path))
        get_svcman_home.cache_clear()

        assert get_svcman_home() == custom_path.resolve()

    def test_expands_tilde_in_env_var(self, monkeypatch):
        monkeypatch.setenv(ENV_VAR, "~/my-svcman")
        get_svcman_home.cache_clear()

        assert get_svcman_home() == (Path.home() / "my-svcman").resolve()

    def test_config_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv(ENV_VAR, str(tmp_path))
        get_svcman_home.cache_clear()

        assert get_config_path() == tmp_path.resolve() / "config.toml"


class TestNativeDirs:
    """Tests for service manager definition directories."""

    def test_user_config_dir_honours_xdg(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
        assert get_user_config_dir() == tmp_path
        assert get_systemd_user_dir() == tmp_path / "systemd" / "user"

    def test_user_config_dir_default(self, monkeypatch):
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
        assert get_systemd_user_dir() == Path.home() / ".config" / "systemd" / "user"

    def test_launch_agents(self):
        assert get_launchd_user_dir() == Path.home() / "Library" / "LaunchAgents"

    def test_winsw_under_program_data(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ProgramData", str(tmp_path))
        assert get_winsw_dir() == tmp_path / "svcman"

"""Tests for configuration loading and validation."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
from authgrid.config import AuthgridSettings, ChallengeConfig, SessionConfig, load_config, load_config_or_default
from pydantic import ValidationError


class TestDefaults:
    def test_protocol_defaults(self) -> None:
        settings = AuthgridSettings()
        assert settings.handle_domain == "authgrid.net"
        assert settings.challenges.ttl == timedelta(seconds=120)
        assert settings.sessions.ttl == timedelta(hours=24)
        assert settings.storage.backend == "memory"
        assert settings.rate_limit.rate_per_s == 100
        assert settings.rate_limit.burst == 200

    def test_keystore_dir_expands_home(self) -> None:
        settings = AuthgridSettings()
        assert settings.client.resolved_keystore_dir == Path("~/.authgrid").expanduser()


class TestValidation:
    @pytest.mark.parametrize("ttl_s", [0, 301])
    def test_challenge_ttl_bounds(self, ttl_s: int) -> None:
        with pytest.raises(ValidationError):
            ChallengeConfig(ttl_s=ttl_s)

    def test_session_ttl_minimum(self) -> None:
        with pytest.raises(ValidationError):
            SessionConfig(ttl_s=10)

    @pytest.mark.parametrize("domain", ["", "user@authgrid.net"])
    def test_handle_domain_must_be_bare(self, domain: str) -> None:
        with pytest.raises(ValidationError, match="bare domain"):
            AuthgridSettings(handle_domain=domain)

    def test_unknown_storage_backend_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AuthgridSettings(storage={"backend": "postgres"})


class TestLoadConfig:
    def test_reads_authgrid_section(self, tmp_path: Path) -> None:
        path = tmp_path / "authgrid.yaml"
        path.write_text(
            "authgrid:\n"
            "  handle_domain: example.org\n"
            "  challenges:\n"
            "    ttl_s: 60\n"
            "  storage:\n"
            "    backend: sqlite\n"
            f"    db_path: {tmp_path / 'auth.db'}\n",
            encoding="utf-8",
        )

        settings = load_config(path)

        assert settings.handle_domain == "example.org"
        assert settings.challenges.ttl_s == 60
        assert settings.storage.backend == "sqlite"
        assert settings.storage.db_path == tmp_path / "auth.db"

    def test_env_overrides_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        path = tmp_path / "authgrid.yaml"
        path.write_text("server:\n  port: 9000\n", encoding="utf-8")
        monkeypatch.setenv("AUTHGRID_SERVER__PORT", "9100")
        monkeypatch.setenv("AUTHGRID_RATE_LIMIT__ENABLED", "false")

        settings = load_config(path)

        assert settings.server.port == 9100
        assert settings.rate_limit.enabled is False

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "authgrid.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError, match="top-level mapping"):
            load_config(path)

    def test_missing_file_falls_back_to_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AUTHGRID_HANDLE_DOMAIN", "env.example")

        settings = load_config_or_default(tmp_path / "absent.yaml")

        assert settings.handle_domain == "env.example"

"""Tests for the JSON config file."""
import json
from datetime import datetime, timedelta, timezone

import pytest

from netdisk_uploader import cli
from netdisk_uploader.config import (
    AppConfig,
    OAuthConfig,
    TokenResponse,
    create_default_config,
    load_config,
    load_config_for_auth,
    resolve_config_path,
    save_config,
    save_token,
)
from netdisk_uploader.errors import ConfigError
from netdisk_uploader.models import UploadResult


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_resolve_config_path(tmp_path, monkeypatch):
    monkeypatch.delenv("NETDISK_UPLOADER_CONFIG", raising=False)
    assert resolve_config_path().name == "config.json"

    monkeypatch.setenv("NETDISK_UPLOADER_CONFIG", str(tmp_path / "env.json"))
    assert resolve_config_path() == tmp_path / "env.json"
    assert resolve_config_path(tmp_path / "cli.json") == tmp_path / "cli.json"


def test_default_config_needs_real_credentials(tmp_path):
    path = create_default_config(tmp_path / "config.json")

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["oauth"]["client_id"] == "your_app_key_here"
    with pytest.raises(ConfigError, match="client_id"):
        load_config_for_auth(path)


def test_load_config_requires_access_token(tmp_path):
    path = _write(tmp_path / "config.json", {"app_path": "/apps/x/"})

    with pytest.raises(ConfigError, match="access_token"):
        load_config(path)


def test_load_config_reports_bad_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigError, match="parse"):
        load_config(path)


def test_load_config_reports_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="read"):
        load_config(tmp_path / "missing.json")


def test_invalid_expires_at(tmp_path):
    path = _write(tmp_path / "config.json", {"access_token": "t", "expires_at": "tomorrow"})

    with pytest.raises(ConfigError, match="expires_at"):
        load_config(path)


def test_round_trip_keeps_fields(tmp_path):
    expires = datetime(2030, 1, 2, 3, 4, 5)
    config = AppConfig(
        access_token="t",
        refresh_token="r",
        expires_at=expires,
        app_path="/apps/mine/",
        oauth=OAuthConfig(client_id="id", client_secret="secret"),
    )
    path = save_config(config, tmp_path / "config.json")

    loaded = load_config(path)

    assert loaded == config


def test_apply_token_and_expiry():
    now = datetime(2030, 1, 1)
    config = AppConfig(access_token="old", refresh_token="keep")

    config.apply_token(TokenResponse(access_token="new", expires_in=3600), now=now)

    assert config.access_token == "new"
    assert config.refresh_token == "keep"
    assert config.expires_at == now + timedelta(seconds=3600)
    assert not config.is_expired(now)
    assert config.is_expired(now + timedelta(hours=2))
    assert not AppConfig(access_token="x").is_expired()


def test_save_token_updates_file(tmp_path):
    path = _write(
        tmp_path / "config.json",
        {"access_token": "", "oauth": {"client_id": "id", "client_secret": "secret"}},
    )

    save_token(TokenResponse(access_token="fresh", refresh_token="r2", expires_in=60), path)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["access_token"] == "fresh"
    assert data["refresh_token"] == "r2"
    assert "expires_at" in data


@pytest.mark.parametrize(
    "raw, utc",
    [
        ("2030-01-01T00:00:00+08:00", datetime(2029, 12, 31, 16, 0, 0)),
        ("2030-01-01T00:00:00Z", datetime(2030, 1, 1, 0, 0, 0)),
    ],
)
def test_offset_expires_at_becomes_local_naive(tmp_path, raw, utc):
    path = _write(tmp_path / "config.json", {"access_token": "t", "expires_at": raw})

    config = load_config(path)

    assert config.expires_at.tzinfo is None
    expected_local = utc.replace(tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert config.expires_at == expected_local
    assert not config.is_expired(datetime(2029, 1, 1))
    assert config.is_expired(datetime(2031, 1, 1))


def test_offset_expires_at_does_not_break_upload(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    source = tmp_path / "a.bin"
    source.write_bytes(b"x")
    config_path = _write(
        tmp_path / "config.json",
        {"access_token": "t", "expires_at": "2999-01-01T00:00:00+08:00"},
    )
    uploaded = []

    async def fake_upload_file(self, local_path, remote_name=None, progress_callback=None):
        uploaded.append(local_path)
        return UploadResult(local_path=local_path, remote_path="/apps/a.bin")

    monkeypatch.setattr(cli.UploadOrchestrator, "upload_file", fake_upload_file)

    code = cli.run_cli(["--file", str(source), "--config", str(config_path), "--cache-dir", str(tmp_path / "c"), "--quiet"])

    assert code == 0
    assert uploaded == [source]

"""Tests for main.py -- management commands and startup failure handling.

Covers:
- add-app registers an app that the auth service can then log in against
- set-admin grants and revokes the flag; unknown users exit 1
- a missing config file or STORAGE_PATH exits 1 before anything runs
"""

import logging

import pytest

import main
from auth.store import SqlStore


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    for name in ("ENV", "STORAGE_PATH", "TOKEN_TTL", "CONFIG"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    db_path = tmp_path / "sso.db"
    config = tmp_path / "sso.env"
    config.write_text(f"STORAGE_PATH={db_path}\nENV=prod\nBCRYPT_COST=4\n")
    yield str(config), f"sqlite:///{db_path}"
    root = logging.getLogger()
    root.handlers.clear()


def test_add_app(config_file):
    config, url = config_file
    assert main.main(["--config", config, "add-app", "--id", "3", "--name", "crm", "--secret", "crm-secret"]) == 0
    store = SqlStore(url)
    try:
        assert store.get_app(3).name == "crm"
    finally:
        store.close()


def test_add_app_rejects_zero_id(config_file):
    config, _ = config_file
    assert main.main(["--config", config, "add-app", "--id", "0", "--name", "x", "--secret", "s"]) == 1


def test_add_app_duplicate_exits_1(config_file):
    config, _ = config_file
    args = ["--config", config, "add-app", "--id", "3", "--name", "crm", "--secret", "s"]
    assert main.main(args) == 0
    assert main.main(args) == 1


def test_set_admin(config_file):
    config, url = config_file
    store = SqlStore(url)
    try:
        uid = store.save_user("boss@example.com", b"h")
        assert main.main(["--config", config, "set-admin", "--user-id", str(uid)]) == 0
        assert store.is_admin(uid) is True
        assert main.main(["--config", config, "set-admin", "--user-id", str(uid), "--revoke"]) == 0
        assert store.is_admin(uid) is False
    finally:
        store.close()


def test_set_admin_unknown_user(config_file):
    config, _ = config_file
    assert main.main(["--config", config, "set-admin", "--user-id", "999"]) == 1


def test_missing_config_file_exits_1(tmp_path, capsys):
    assert main.main(["--config", str(tmp_path / "absent.env"), "serve"]) == 1
    assert "config file does not exist" in capsys.readouterr().err


def test_missing_storage_path_exits_1(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("STORAGE_PATH", raising=False)
    monkeypatch.delenv("CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    config = tmp_path / "empty.env"
    config.write_text("ENV=prod\n")
    assert main.main(["--config", str(config), "serve"]) == 1
    assert "STORAGE_PATH" in capsys.readouterr().err

"""Tests for the command-line entry point."""

from __future__ import annotations

import importlib
import logging

import pytest

from parkchat.client import ChatClient
from parkchat.config import get_default_config
from parkchat.exceptions import ConnectError

main_module = importlib.import_module("parkchat.main")


@pytest.fixture
def quiet_logging(monkeypatch, tmp_path):
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level

    class _LogManager(main_module.LogManager):
        def __init__(self):
            super().__init__(tmp_path / "logs")

    monkeypatch.setattr(main_module, "LogManager", _LogManager)
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_prompt_credentials_fills_missing_fields(monkeypatch):
    answers = iter(["zed", "Lobby"])
    monkeypatch.setattr("builtins.input", lambda label: next(answers))
    monkeypatch.setattr(main_module.getpass, "getpass", lambda label: "pw")

    config = main_module.prompt_credentials(get_default_config())
    assert config["nickname"] == "zed"
    assert config["password"] == "pw"
    assert config["start_room"] == "Lobby"


def test_prompt_credentials_keeps_default_room(monkeypatch):
    config = get_default_config()
    config["nickname"] = "zed"
    monkeypatch.setattr("builtins.input", lambda label: "")
    monkeypatch.setattr(main_module.getpass, "getpass", lambda label: "pw")

    config = main_module.prompt_credentials(config)
    assert config["nickname"] == "zed"
    assert config["start_room"] == "General"


def test_connect_failure_exits_with_diagnostic(monkeypatch, capsys, quiet_logging):
    config = get_default_config()
    config.update({"nickname": "me", "password": "pw"})
    monkeypatch.setattr(main_module, "load_config", lambda: config)

    def refuse(self, room):
        raise ConnectError(f"ws://chat.astelta.world:8080/ws/{room}", "connection refused")

    monkeypatch.setattr(ChatClient, "join_room", refuse)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main()

    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "Error while connecting to the server" in err
    assert "connection refused" in err

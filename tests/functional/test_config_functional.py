"""Functional tests for configuration loading and precedence."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from survey_app.config import DEFAULT_DSN, load_config


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in ("DATABASE_URL", "DATABASE_ECHO", "RESPONSES_MAX_PAGE_SIZE"):
        monkeypatch.delenv(key, raising=False)
    return tmp_path


def test_defaults_without_any_source():
    cfg = load_config()

    assert cfg.database.dsn == DEFAULT_DSN
    assert cfg.database.echo is False
    assert cfg.responses.max_page_size == 50


def test_json_base_then_text_override_then_env(isolated, monkeypatch):
    (isolated / "survey_config.json").write_text(
        json.dumps({"database": {"dsn": "postgresql://json/db"}, "responses": {"max_page_size": 25}}),
        encoding="utf-8",
    )
    assert load_config().responses.max_page_size == 25

    (isolated / "config").mkdir()
    (isolated / "config" / "responses.max_page_size").write_text("30\n", encoding="utf-8")
    cfg = load_config()
    assert cfg.responses.max_page_size == 30
    assert cfg.database.dsn == "postgresql://json/db"

    monkeypatch.setenv("RESPONSES_MAX_PAGE_SIZE", "40")
    monkeypatch.setenv("DATABASE_URL", "postgresql://env/db")
    monkeypatch.setenv("DATABASE_ECHO", "true")
    cfg = load_config()
    assert cfg.responses.max_page_size == 40
    assert cfg.database.dsn == "postgresql://env/db"
    assert cfg.database.echo is True


def test_invalid_page_size_is_rejected(monkeypatch):
    monkeypatch.setenv("RESPONSES_MAX_PAGE_SIZE", "0")

    with pytest.raises(ValidationError):
        load_config()

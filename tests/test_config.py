"""Environment parsing helpers in config.py."""
from __future__ import annotations

import config


def test_parse_id_list():
    assert config._parse_id_list(None) == []
    assert config._parse_id_list("") == []
    assert config._parse_id_list("1, 2,,x,2,3 ") == [1, 2, 3]


def test_as_bool(monkeypatch):
    monkeypatch.setenv("SOME_FLAG", " Yes ")
    assert config._as_bool("SOME_FLAG") is True
    monkeypatch.setenv("SOME_FLAG", "off")
    assert config._as_bool("SOME_FLAG", "true") is False
    monkeypatch.delenv("SOME_FLAG")
    assert config._as_bool("SOME_FLAG", "true") is True


def test_as_int(monkeypatch):
    monkeypatch.setenv("SOME_INT", "42")
    assert config._as_int("SOME_INT", 7) == 42
    monkeypatch.setenv("SOME_INT", "lots")
    assert config._as_int("SOME_INT", 7) == 7


def test_sticker_base_url(monkeypatch):
    monkeypatch.setenv("STICKER_BASE_URL", "https://stickers.example/ ")
    assert config._sticker_base_url() == "https://stickers.example"

    monkeypatch.delenv("STICKER_BASE_URL")
    monkeypatch.setenv("STICKER_HOSTNAME", "bot.up.railway.app/")
    assert config._sticker_base_url() == "http://bot.up.railway.app"

    monkeypatch.delenv("STICKER_HOSTNAME")
    assert config._sticker_base_url() is None

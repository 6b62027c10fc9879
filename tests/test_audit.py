"""JSONL audit trail."""
from __future__ import annotations

import json

from utils.audit import audit_log


def _lines(path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_event_written_as_json_line(tmp_path):
    audit_log(
        "sticker_sent",
        guild_id=1,
        channel_id=2,
        user_id=3,
        username="alice",
        result="ok",
        fields={"sticker": "wave", "sticker_id": 9},
        log_dir=tmp_path,
    )
    audit_log("GUILD_REMOVE", guild_id=1, log_dir=tmp_path)

    first, second = _lines(tmp_path / "audit.log")
    assert first["event"] == "sticker_sent"
    assert first["guild_id"] == 1 and first["user_id"] == 3
    assert first["sticker"] == "wave" and first["sticker_id"] == 9
    assert "ts" in first
    assert "command" not in first
    assert second["event"] == "GUILD_REMOVE"


def test_fields_cannot_shadow_record_attributes(tmp_path):
    audit_log("GUILD_JOIN", fields={"name": "My Server", "msg": "x"}, log_dir=tmp_path)
    (entry,) = _lines(tmp_path / "audit.log")
    assert entry["event"] == "GUILD_JOIN"
    assert entry["field_name"] == "My Server"


def test_never_raises(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    audit_log("x", log_dir=blocker / "sub")

"""Cogs reach storage only through the registry."""
from __future__ import annotations

from tools.check_import_boundaries import find_offenders


def test_commands_do_not_touch_the_database():
    assert find_offenders() == []


def test_offenders_are_reported(tmp_path, monkeypatch):
    import tools.check_import_boundaries as mod

    monkeypatch.setattr(mod, "REPO_ROOT", tmp_path)
    cog = tmp_path / "commands" / "bad.py"
    cog.parent.mkdir()
    cog.write_text("import sqlalchemy\nfrom utils.models import Sticker\nfrom utils.stickers import Sticker as S\n")

    found = [(str(p), ln, src) for p, ln, src in find_offenders((tmp_path / "commands",))]
    assert [ln for _, ln, _ in found] == [1, 2]
    assert found[1][2] == "from utils.models import Sticker"

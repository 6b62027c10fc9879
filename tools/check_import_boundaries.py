"""tools/check_import_boundaries.py

Run this locally / in CI to enforce storage boundaries.

Goal:
  - Cogs (commands/) talk to storage only through the registry on the bot
    (utils.sticker_registry.StickerRegistry), never to the database directly.
  - So commands/ must not import sqlalchemy, utils.db or utils.models.

Usage:
  python -m tools.check_import_boundaries
"""

from __future__ import annotations

import ast
import pathlib


REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]

SCANNED_DIRS = (REPO_ROOT / "commands",)

FORBIDDEN_MODULES = {"sqlalchemy", "utils.db", "utils.models"}


def _should_scan(path: pathlib.Path) -> bool:
    if path.name.startswith("."):
        return False
    if "venv" in path.parts or ".venv" in path.parts:
        return False
    return path.suffix == ".py"


def _is_forbidden(module: str | None) -> bool:
    if not module:
        return False
    return any(module == m or module.startswith(m + ".") for m in FORBIDDEN_MODULES)


def find_offenders(dirs=SCANNED_DIRS) -> list[tuple[pathlib.Path, int, str]]:
    offenders: list[tuple[pathlib.Path, int, str]] = []

    for base in dirs:
        for py in sorted(base.rglob("*.py")):
            if not _should_scan(py):
                continue

            try:
                tree = ast.parse(py.read_text(encoding="utf-8", errors="replace"))
            except SyntaxError:
                offenders.append((py.relative_to(REPO_ROOT), 0, "<syntax error>"))
                continue

            for node in ast.walk(tree):
                # import sqlalchemy / import utils.models
                if isinstance(node, ast.Import):
                    for alias in node.names:
                        if _is_forbidden(alias.name):
                            offenders.append((py.relative_to(REPO_ROOT), node.lineno, f"import {alias.name}"))

                # from sqlalchemy import select / from utils.db import get_sessionmaker
                if isinstance(node, ast.ImportFrom) and node.level == 0 and _is_forbidden(node.module):
                    names = ", ".join(a.name for a in node.names)
                    offenders.append((py.relative_to(REPO_ROOT), node.lineno, f"from {node.module} import {names}"))

    return offenders


def main() -> int:
    offenders = find_offenders()

    if offenders:
        print("\n❌ Import boundary violations found:\n")
        for p, ln, src in offenders:
            print(f"- {p}:{ln}: {src}")
        print("\nFix: go through bot.registry (StickerRegistry) instead of touching the database from a cog.")
        return 1

    print("✅ Import boundaries look good.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""Shared test fixtures."""

from __future__ import annotations

import json
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

import pytest


class ScriptedRunner:
    """Command runner that returns canned results and records every call.

    Rules are matched on an argument prefix and, optionally, the working
    directory. Later rules win. Unmatched commands succeed with no output.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[tuple[str, ...], Path]] = []
        self.envs: list[Mapping[str, str] | None] = []
        self._rules: list[tuple[tuple[str, ...], Path | None, int, str, str]] = []

    def on(
        self,
        *prefix: str,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
        cwd: Path | None = None,
    ) -> ScriptedRunner:
        self._rules.append((prefix, cwd, returncode, stdout, stderr))
        return self

    def run(
        self,
        args: Sequence[str],
        cwd: Path,
        *,
        capture: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        key = tuple(args)
        self.calls.append((key, Path(cwd)))
        self.envs.append(env)
        for prefix, rule_cwd, returncode, stdout, stderr in reversed(self._rules):
            if key[: len(prefix)] != prefix:
                continue
            if rule_cwd is not None and Path(cwd) != rule_cwd:
                continue
            return subprocess.CompletedProcess(list(args), returncode, stdout, stderr)
        return subprocess.CompletedProcess(list(args), 0, "", "")

    def commands(self, cwd: Path | None = None) -> list[str]:
        """Commands run (optionally only in ``cwd``), joined with spaces."""
        return [
            " ".join(args)
            for args, call_cwd in self.calls
            if cwd is None or call_cwd == cwd
        ]


def write_json(path: Path, doc: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(doc, indent=2) + "\n")


@pytest.fixture
def runner() -> ScriptedRunner:
    return ScriptedRunner()


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """Create a parent repository layout with frontend, backend and docs."""
    write_json(
        tmp_path / "frontend" / "package.json",
        {
            "name": "frontend",
            "version": "1.2.3",
            "dockerVersion": "1.0.4",
            "private": True,
            "scripts": {
                "release:web:patch": "railway up",
                "update:patch": "eas update",
            },
            "dependencies": {"expo": "^51.0.0"},
        },
    )
    write_json(
        tmp_path / "frontend" / "package-lock.json",
        {
            "name": "frontend",
            "version": "1.2.3",
            "lockfileVersion": 3,
            "packages": {"": {"name": "frontend", "version": "1.2.3"}},
        },
    )
    write_json(
        tmp_path / "backend" / "package.json",
        {"name": "backend", "version": "0.4.0", "scripts": {"deploy:patch": "x"}},
    )
    write_json(tmp_path / "docs" / "package.json", {"name": "docs", "version": "2.0.9"})
    (tmp_path / "version").write_text("1.0.4")
    return tmp_path

"""Change detection: decide whether a unit has anything worth publishing.

A unit needs publishing when any of these signals fire:
1. Uncommitted changes in its working tree
2. Local commits not yet pushed to its upstream
3. Pointer drift: the parent repository's recorded commit for the unit
   differs from what is checked out

Probes are read-only. A probe that cannot run (no upstream configured,
not a git repository) counts as "no signal" rather than stopping the run.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from .errors import ProbeFailure
from .models import Unit
from .shell import CommandRunner, describe_failure, git


def _probe(runner: CommandRunner, cwd: Path, *args: str) -> str:
    """Run a read-only git probe, raising ProbeFailure if git fails."""
    try:
        return git(runner, cwd, *args)
    except subprocess.CalledProcessError as exc:
        raise ProbeFailure(describe_failure(exc)) from exc
    except OSError as exc:
        raise ProbeFailure(str(exc)) from exc


def working_tree_dirty(runner: CommandRunner, repo: Path) -> bool:
    """True if ``git status --porcelain`` reports anything."""
    return bool(_probe(runner, repo, "status", "--porcelain"))


def unpushed_commits(runner: CommandRunner, repo: Path) -> bool:
    """True if the current branch has commits its upstream does not."""
    return bool(_probe(runner, repo, "log", "@{u}..", "--oneline"))


def pointer_drift(runner: CommandRunner, root: Path, paths: list[str]) -> bool:
    """True if the parent repository sees changes at any submodule path."""
    if not paths:
        return False
    return bool(_probe(runner, root, "status", "--porcelain", "--", *paths))


def has_changes(
    unit: Unit,
    forced: bool,
    *,
    root: Path,
    runner: CommandRunner,
    child_paths: list[str] | None = None,
) -> bool:
    """Determine whether a unit should be published.

    Args:
        unit: Unit to inspect.
        forced: If True, report changes without probing (``--force``).
        root: Parent repository root.
        runner: Command runner for git probes.
        child_paths: For a unit that tracks submodules (the root), the
            submodule paths checked for pointer drift. Nested units are
            checked for drift at their own path.

    Returns:
        True if any signal fired.
    """
    if forced:
        print(f"  {unit.name}: forced")
        return True

    repo = root / unit.path
    nested = unit.path not in ("", ".")
    drift_paths = [unit.path] if nested else list(child_paths or [])

    probes = []
    if nested:
        probes = [
            ("uncommitted changes", lambda: working_tree_dirty(runner, repo)),
            ("unpushed commits", lambda: unpushed_commits(runner, repo)),
        ]
    probes.append(
        ("submodule pointer changed", lambda: pointer_drift(runner, root, drift_paths))
    )

    for label, probe in probes:
        try:
            fired = probe()
        except ProbeFailure as exc:
            print(f"  {unit.name}: {label} check unavailable ({exc})")
            continue
        if fired:
            print(f"  {unit.name}: {label}")
            return True

    print(f"  {unit.name}: no changes")
    return False

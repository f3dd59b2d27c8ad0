"""Deploy hooks run after a unit has been pushed.

Hooks are opaque pass/fail collaborators: the pipeline only records whether
each one ran. A hook that is declared but not available in the unit (its npm
script is missing) is skipped with a warning; a hook that runs and fails
stops the whole release.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Protocol

from .errors import DeployHookFailure
from .shell import CommandRunner, run, warn

# Flags exposed on the CLI for suppressing hooks by name
KNOWN_HOOKS = ("railway", "eas")


class DeployHook(Protocol):
    name: str

    def run(self, unit_dir: Path, version: str, runner: CommandRunner) -> bool: ...


class NpmScriptHook:
    """Run ``npm run <script>`` inside the unit directory.

    The new version is exported as ``SUBRELEASE_VERSION`` so scripts can
    label their deploys.
    """

    def __init__(self, name: str, script: str) -> None:
        self.name = name
        self.script = script

    def __repr__(self) -> str:
        return f"NpmScriptHook({self.name!r}, {self.script!r})"

    def available(self, unit_dir: Path) -> bool:
        """True if the unit's package.json defines the script."""
        manifest = unit_dir / "package.json"
        if not manifest.exists():
            return False
        try:
            scripts = json.loads(manifest.read_text(encoding="utf-8")).get("scripts")
        except ValueError:
            return False
        return isinstance(scripts, dict) and self.script in scripts

    def run(self, unit_dir: Path, version: str, runner: CommandRunner) -> bool:
        """Run the hook.

        Returns:
            True if the script ran, False if it is not defined.

        Raises:
            DeployHookFailure: If the script exits non-zero.
        """
        if not self.available(unit_dir):
            warn(
                f"No {self.script} script found in {unit_dir.name}, "
                f"skipping {self.name}"
            )
            return False

        print(f"\n  {self.name}: npm run {self.script} ({unit_dir.name} {version})")
        result = run(
            runner,
            unit_dir,
            "npm",
            "run",
            self.script,
            env={"SUBRELEASE_VERSION": version},
        )
        if result.returncode != 0:
            detail = f"npm run {self.script} exited with {result.returncode}"
            if result.stderr:
                detail = f"{detail}: {result.stderr.strip()}"
            raise DeployHookFailure(
                f"{self.name} deploy failed for {unit_dir.name} ({detail})"
            )
        print(f"  {self.name}: done")
        return True


def hooks_for(hooks: dict[str, str], skip: frozenset[str]) -> list[NpmScriptHook]:
    """Build the enabled hooks for a unit, preserving declaration order."""
    return [
        NpmScriptHook(name, script)
        for name, script in hooks.items()
        if name not in skip
    ]

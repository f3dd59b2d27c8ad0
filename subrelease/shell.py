"""Shell and git utilities.

Every external command goes through a CommandRunner so the release pipeline
can be driven by a scripted runner in tests. The helpers here mirror the
plain-print output style used across the tool: phase headers, indented
progress lines, warnings on stderr.
"""

from __future__ import annotations

import os
import subprocess
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol


class CommandRunner(Protocol):
    """Anything that can execute a command in a working directory."""

    def run(
        self,
        args: Sequence[str],
        cwd: Path,
        *,
        capture: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]: ...


class LocalRunner:
    """Run commands on the local machine with subprocess.

    Captured commands return their stdout/stderr as text. Uncaptured
    commands stream directly to the terminal so users can follow long
    running deploys. A command that cannot be started (missing binary or
    working directory) returns status 127 with the OS error as stderr.
    """

    def run(
        self,
        args: Sequence[str],
        cwd: Path,
        *,
        capture: bool = True,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        full_env = {**os.environ, **env} if env else None
        try:
            return subprocess.run(
                list(args),
                cwd=cwd,
                capture_output=capture,
                text=True,
                env=full_env,
                check=False,
            )
        except OSError as exc:
            return subprocess.CompletedProcess(list(args), 127, "", str(exc))


def git(runner: CommandRunner, cwd: Path, *args: str, check: bool = True) -> str:
    """Run a git command in ``cwd`` and return stripped stdout.

    Args:
        runner: Command runner used to execute git.
        cwd: Repository directory to run in.
        *args: Arguments to pass to git (e.g., "status", "--porcelain").
        check: If True (default), raise on non-zero exit. Set to False
               for probes that may legitimately fail (e.g., no upstream).

    Raises:
        subprocess.CalledProcessError: If check is True and git fails.
    """
    result = runner.run(["git", *args], cwd)
    if check and result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode, ["git", *args], result.stdout, result.stderr
        )
    return (result.stdout or "").strip()


def run(
    runner: CommandRunner,
    cwd: Path,
    *args: str,
    env: Mapping[str, str] | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run an arbitrary command, streaming its output to the terminal.

    The caller inspects returncode; nothing is raised here.
    """
    return runner.run(list(args), cwd, capture=False, env=env)


def describe_failure(exc: subprocess.CalledProcessError) -> str:
    """Summarize a failed command for an error message."""
    cmd = " ".join(exc.cmd) if isinstance(exc.cmd, list) else str(exc.cmd)
    detail = (exc.stderr or exc.stdout or "").strip()
    message = f"`{cmd}` exited with status {exc.returncode}"
    return f"{message}: {detail}" if detail else message


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the release pipeline in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def warn(msg: str) -> None:
    """Print a non-fatal warning to stderr."""
    print(f"  Warning: {msg}", file=sys.stderr)

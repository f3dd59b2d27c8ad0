"""Commit/publish driver: stage → commit → push → tag → deploy.

Each step may short-circuit the rest. An empty staged diff is the normal
"nothing to do" outcome, not an error. Commit must precede push, tag
creation must precede tag push, and a unit only counts as published once
all git steps have completed.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

from .errors import CommitFailure, PushFailure, ReleaseError
from .hooks import hooks_for
from .models import PublishResult, ReleaseOptions, Unit, UnitState
from .shell import CommandRunner, describe_failure, git

SKIP_CI_MARKER = "[skip ci]"


def commit_message(template: str, *, name: str, version: str, skip_ci: bool) -> str:
    """Render a commit message, optionally suppressing downstream CI."""
    message = template.format(name=name, version=version)
    if skip_ci and SKIP_CI_MARKER not in message:
        message = f"{message} {SKIP_CI_MARKER}"
    return message


def stage(runner: CommandRunner, repo: Path, paths: list[str]) -> list[str]:
    """Stage ``paths`` and return the staged file names.

    Raises:
        CommitFailure: If staging fails.
    """
    try:
        git(runner, repo, "add", "--", *paths)
        staged = git(runner, repo, "diff", "--cached", "--name-only")
    except subprocess.CalledProcessError as exc:
        detail = describe_failure(exc)
        raise CommitFailure(f"Failed to stage {repo.name}: {detail}") from exc
    return staged.splitlines()


def commit(runner: CommandRunner, repo: Path, message: str) -> None:
    """Commit what is staged.

    Raises:
        CommitFailure: If the commit fails.
    """
    try:
        git(runner, repo, "commit", "-m", message)
    except subprocess.CalledProcessError as exc:
        detail = describe_failure(exc)
        raise CommitFailure(f"Failed to commit {repo.name}: {detail}") from exc
    print(f"  Committed: {message}")


def push(runner: CommandRunner, repo: Path) -> None:
    """Push the current branch to its upstream.

    Raises:
        PushFailure: If the push fails (the commit stays local).
    """
    try:
        git(runner, repo, "push")
    except subprocess.CalledProcessError as exc:
        detail = describe_failure(exc)
        raise PushFailure(f"Failed to push {repo.name}: {detail}") from exc
    print("  Pushed")


def commit_and_push(runner: CommandRunner, repo: Path, message: str) -> None:
    """Commit what is staged, then push it."""
    commit(runner, repo, message)
    push(runner, repo)


def commit_paths(
    runner: CommandRunner, repo: Path, paths: list[str], message: str
) -> bool:
    """Stage only ``paths`` in ``repo``, commit and push.

    Returns:
        False if nothing was staged, True if a commit was pushed.
    """
    staged = stage(runner, repo, paths)
    if not staged:
        print(f"  No changes to commit in {repo.name}")
        return False
    print("  Files to be committed:\n" + "\n".join(f"    {f}" for f in staged))
    commit_and_push(runner, repo, message)
    return True


def create_tag(runner: CommandRunner, repo: Path, version: str) -> bool:
    """Create and push an annotated ``v<version>`` tag.

    Idempotent: an existing tag is left alone.

    Returns:
        True if a new tag was created and pushed, False if it already existed.

    Raises:
        PushFailure: If creating or pushing the tag fails.
    """
    tag = f"v{version}"
    existing = git(runner, repo, "tag", "-l", tag, check=False)
    if existing.strip() == tag:
        print(f"  Tag {tag} already exists, skipping")
        return False

    try:
        git(runner, repo, "tag", "-a", tag, "-m", f"Release {tag}")
        print(f"  Tag {tag} created")
        git(runner, repo, "push", "origin", tag)
    except subprocess.CalledProcessError as exc:
        detail = describe_failure(exc)
        raise PushFailure(f"Failed to publish tag {tag}: {detail}") from exc
    print(f"  Tag {tag} pushed")
    return True


def publish(
    unit: Unit,
    new_version: str | None,
    options: ReleaseOptions,
    *,
    root: Path,
    runner: CommandRunner,
    old_version: str | None = None,
) -> PublishResult:
    """Publish a unit whose version has already been written.

    Args:
        unit: Unit being published.
        new_version: Version just written, or None for an unversioned unit.
        options: Invocation switches (tagging, disabled hooks).
        root: Parent repository root.
        runner: Command runner for git and hooks.
        old_version: Version before the bump, recorded in the result.

    Returns:
        A SKIPPED result if nothing was staged, otherwise a DONE result.

    Raises:
        CommitFailure, PushFailure: A git step failed.
        DeployHookFailure: A deploy hook failed. Errors raised after
            staging carry the steps already finished in ``completed``.
    """
    repo = root / unit.path
    staged = stage(runner, repo, unit.stage)
    if not staged:
        print(f"  No changes to commit in {unit.name}")
        return PublishResult(
            unit=unit.name,
            old_version=old_version,
            new_version=new_version,
            state=UnitState.SKIPPED,
        )
    print("  Files to be committed:\n" + "\n".join(f"    {f}" for f in staged))

    message = commit_message(
        unit.message,
        name=unit.name,
        version=new_version or "",
        skip_ci=unit.skip_ci,
    )
    enabled = {hook.name: hook for hook in hooks_for(unit.hooks, options.skip_hooks)}
    deploys: dict[str, bool] = {}
    done: dict[str, Any] = {
        "committed": False,
        "pushed": False,
        "tagged": False,
        "deploys": deploys,
    }
    try:
        commit(runner, repo, message)
        done["committed"] = True
        push(runner, repo)
        done["pushed"] = True

        if unit.tag and options.tag and new_version:
            done["tagged"] = create_tag(runner, repo, new_version)

        for name in unit.hooks:
            deploys[name] = False
            hook = enabled.get(name)
            if hook:
                deploys[name] = hook.run(repo, new_version or "", runner)
    except ReleaseError as exc:
        exc.completed = done
        raise

    return PublishResult(
        unit=unit.name,
        had_changes=True,
        old_version=old_version,
        new_version=new_version,
        state=UnitState.DONE,
        **done,
    )


def update_submodules(runner: CommandRunner, root: Path) -> None:
    """Pull the latest commit of every submodule into the parent checkout."""
    try:
        git(runner, root, "submodule", "update", "--remote", "--merge")
    except subprocess.CalledProcessError as exc:
        detail = describe_failure(exc)
        raise ReleaseError(f"Failed to update submodules: {detail}") from exc
    print("  Submodules updated")

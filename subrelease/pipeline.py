"""Release pipeline: detect → bump → commit → push → tag → deploy.

This module orchestrates a release across the submodules of a parent
repository:
1. Pull the latest submodule commits into the parent checkout
2. For each unit (frontend, backend, docs), detect pending changes
3. Bump the unit's version and write it to every place it is stored
4. Commit and push the unit, tag ``v<version>``, run its deploy hooks
5. Run the docker release when any of its trigger units changed
6. Commit the updated submodule pointers in the parent repository

Units run one at a time, in order, so the parent commit observes every
completed child publish. A fatal error stops the run immediately; work
already pushed is not rolled back.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

from . import detect, store
from .errors import CommitFailure, DeployHookFailure, ReleaseAborted, ReleaseError
from .models import (
    PublishResult,
    ReleaseConfig,
    ReleaseOptions,
    Unit,
    UnitState,
    VersionBump,
)
from .publish import commit_message, commit_paths, publish, update_submodules
from .shell import CommandRunner, describe_failure, git, step
from .summary import RunSummary
from .versions import increment

CI_USER_NAME = "GitHub Actions"
CI_USER_EMAIL = "actions@github.com"


def child_paths(config: ReleaseConfig, unit: Unit) -> list[str]:
    """Submodule paths tracked by ``unit`` (empty for ordinary units)."""
    return [config.unit(name).path for name in unit.children]


def commit_mirrors(
    unit: Unit, root: Path, runner: CommandRunner, version: str
) -> None:
    """Commit mirrors that live in their own nested repository.

    Each such mirror is committed (staging only the mirror file) and pushed
    before the unit itself, so the unit's commit records the updated
    submodule pointer.
    """
    base = store.unit_dir(unit, root)
    for mirror in unit.mirrors:
        if mirror.commit_message is None:
            continue
        path = base / mirror.path
        if not path.exists():
            continue
        print(f"\n  Committing {mirror.path}...")
        commit_paths(
            runner,
            path.parent,
            [path.name],
            mirror.commit_message.format(version=version),
        )


def run_unit(
    unit: Unit,
    options: ReleaseOptions,
    *,
    root: Path,
    runner: CommandRunner,
    summary: RunSummary,
    paths: list[str] | None = None,
    forced: bool | None = None,
) -> PublishResult:
    """Run one unit through its release state machine and record the result.

    START → DETECTING → (no changes) → SKIPPED
    DETECTING → VERSIONING → COMMITTING → (nothing staged) → SKIPPED
    COMMITTING → PUSHED → TAGGING → DEPLOYING → DONE
    any → FAILED

    The current version is read before anything is mutated, so a malformed
    version fails the unit without side effects. A FAILED result keeps the
    commit, push, tag and deploy steps that finished before the error.

    Args:
        unit: Unit to release.
        options: Invocation switches.
        root: Parent repository root.
        runner: Command runner.
        summary: Summary the result is recorded in (also on failure).
        paths: Submodule paths checked for pointer drift (root units).
        forced: Override ``options.force`` for this unit.

    Raises:
        ReleaseError: Any fatal error, after recording a FAILED result.
    """
    force = options.force if forced is None else forced
    state = UnitState.START
    old: str | None = None
    new: str | None = None
    try:
        state = UnitState.DETECTING
        current = store.read(unit, root) if unit.versioned else None
        old = new = str(current) if current is not None else None

        if not detect.has_changes(
            unit, force, root=root, runner=runner, child_paths=paths
        ):
            return summary.record(
                PublishResult(
                    unit=unit.name,
                    old_version=old,
                    new_version=old,
                    state=UnitState.SKIPPED,
                )
            )

        if current is not None:
            state = UnitState.VERSIONING
            next_version = increment(current, options.kind)
            bumped = VersionBump(old=str(current), new=str(next_version))
            new = bumped.new
            store.write(unit, root, next_version)
            print(
                f"  {unit.name} version: {bumped.old} → {bumped.new} "
                f"({options.kind.value})"
            )
            commit_mirrors(unit, root, runner, new)

        state = UnitState.COMMITTING
        result = publish(
            unit, new, options, root=root, runner=runner, old_version=old
        )
    except ReleaseError as exc:
        completed = exc.completed or {}
        if isinstance(exc, DeployHookFailure):
            state = UnitState.DEPLOYING
        elif completed.get("pushed"):
            state = UnitState.TAGGING
        summary.record(
            PublishResult(
                unit=unit.name,
                old_version=old,
                new_version=new,
                state=UnitState.FAILED,
                error=f"{exc} (while {state.value})",
                **completed,
            )
        )
        raise
    return summary.record(result)


def run_release(
    config: ReleaseConfig,
    options: ReleaseOptions,
    *,
    root: Path,
    runner: CommandRunner,
) -> RunSummary:
    """Execute the full release across all submodules.

    Raises:
        ReleaseAborted: A fatal error occurred; carries the partial summary.
    """
    summary = RunSummary()
    try:
        if options.submodule_update and config.submodule_update:
            step("Updating submodules")
            update_submodules(runner, root)

        for unit in config.units:
            step(f"Checking {unit.name}")
            run_unit(unit, options, root=root, runner=runner, summary=summary)

        if options.skip_docker:
            summary.note("ℹ Docker: skipped (--skip-docker)")
        elif summary.any_changed(config.docker.triggers):
            step("Docker release")
            docker = config.docker_unit()
            run_unit(
                docker,
                options,
                root=root,
                runner=runner,
                summary=summary,
                paths=child_paths(config, docker),
                forced=True,
            )
        else:
            triggers = ", ".join(config.docker.triggers)
            summary.note(f"ℹ Docker: no changes in {triggers}")

        step("Updating submodule references")
        any_unit_changed = summary.any_changed([u.name for u in config.units])
        run_unit(
            config.root,
            options,
            root=root,
            runner=runner,
            summary=summary,
            paths=child_paths(config, config.root),
            forced=any_unit_changed or options.force,
        )
    except ReleaseError as exc:
        raise ReleaseAborted(exc, summary) from exc
    return summary


def run_docker_release(
    config: ReleaseConfig,
    options: ReleaseOptions,
    *,
    root: Path,
    runner: CommandRunner,
) -> RunSummary:
    """Bump the root version file and commit a docker publish trigger.

    Changes are detected as pointer drift on the docker trigger units
    unless ``options.force`` is set.

    Raises:
        ReleaseAborted: A fatal error occurred; carries the partial summary.
    """
    summary = RunSummary()
    docker = config.docker_unit()
    try:
        if options.submodule_update and config.submodule_update:
            step("Updating submodules")
            update_submodules(runner, root)

        step("Docker release")
        result = run_unit(
            docker,
            options,
            root=root,
            runner=runner,
            summary=summary,
            paths=child_paths(config, docker),
        )
    except ReleaseError as exc:
        raise ReleaseAborted(exc, summary) from exc

    if not result.had_changes:
        print("\n  Nothing to publish. Use --force or -f to publish anyway.")
    return summary


def commit_version(
    unit: Unit,
    *,
    root: Path,
    runner: CommandRunner,
    ci_identity: bool = False,
) -> bool:
    """Commit and push a unit's version files as they are on disk.

    Args:
        unit: Versioned unit whose files are committed.
        root: Parent repository root.
        runner: Command runner.
        ci_identity: Configure the GitHub Actions author before committing.

    Returns:
        False if there was nothing to commit.
    """
    repo = store.unit_dir(unit, root)
    version = str(store.read(unit, root))
    if ci_identity:
        try:
            git(runner, repo, "config", "user.name", CI_USER_NAME)
            git(runner, repo, "config", "user.email", CI_USER_EMAIL)
        except subprocess.CalledProcessError as exc:
            detail = describe_failure(exc)
            raise CommitFailure(f"Failed to configure git identity: {detail}") from exc
    message = commit_message(
        "chore: bump version to {version}",
        name=unit.name,
        version=version,
        skip_ci=True,
    )
    committed = commit_paths(runner, repo, store.version_paths(unit), message)
    if committed:
        print(f"  Version {version} committed and pushed")
    return committed

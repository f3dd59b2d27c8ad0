"""CLI entry point for subrelease."""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import click

from . import store
from .config import load_config
from .errors import ReleaseAborted, ReleaseError
from .hooks import KNOWN_HOOKS
from .models import ReleaseConfig, ReleaseOptions, Unit
from .pipeline import commit_version, run_docker_release, run_release
from .shell import CommandRunner, LocalRunner
from .versions import BumpKind, increment

FLAG_HELP = """\
Tip: you can use flags to control the publish process:
  --force, -f        Publish even without detected changes
  --patch            Increment patch version (default)
  --minor            Increment minor version
  --major            Increment major version
  --skip-docker      Skip the docker release
  --skip-railway     Skip Railway deploys
  --skip-eas         Skip EAS updates"""


def bump_kind_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Add --patch/--minor/--major flags, passed on as ``kind``.

    When several are given the largest wins: major, then minor, then patch.
    """

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        major = kwargs.pop("major")
        minor = kwargs.pop("minor")
        kwargs.pop("patch")
        kwargs["kind"] = "major" if major else "minor" if minor else "patch"
        return f(*args, **kwargs)

    wrapper = click.option(
        "--major", is_flag=True, help="Increment the major version."
    )(wrapper)
    wrapper = click.option(
        "--minor", is_flag=True, help="Increment the minor version."
    )(wrapper)
    wrapper = click.option(
        "--patch", is_flag=True, help="Increment the patch version (default)."
    )(wrapper)
    return wrapper


@contextmanager
def release_errors() -> Iterator[None]:
    """Turn release errors into a printed summary and a non-zero exit."""
    try:
        yield
    except ReleaseAborted as exc:
        exc.summary.render()
        raise click.ClickException(
            f"Publish failed: {exc.cause}\n\n{FLAG_HELP}"
        ) from exc
    except ReleaseError as exc:
        raise click.ClickException(str(exc)) from exc


def _config(ctx: click.Context) -> ReleaseConfig:
    with release_errors():
        return load_config(ctx.obj["root"], ctx.obj["config_path"])


def _unit(ctx: click.Context, name: str) -> Unit:
    try:
        unit = _config(ctx).unit(name)
    except KeyError as exc:
        raise click.BadParameter(exc.args[0], param_hint="UNIT") from exc
    if not unit.versioned:
        raise click.BadParameter(f"{name} has no version file", param_hint="UNIT")
    return unit


def _runner(ctx: click.Context) -> CommandRunner:
    return ctx.obj["runner"]


@click.group()
@click.version_option(package_name="subrelease")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Parent repository root.",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Release config file (default: subrelease.toml or [tool.subrelease]).",
)
@click.pass_context
def cli(ctx: click.Context, root: Path, config_path: Path | None) -> None:
    """Version, commit and publish the submodules of a parent repository."""
    ctx.ensure_object(dict)
    ctx.obj["root"] = root.resolve()
    ctx.obj["config_path"] = config_path
    ctx.obj.setdefault("runner", LocalRunner())


@cli.command()
@click.argument("unit", default="docker")
@click.pass_context
def get(ctx: click.Context, unit: str) -> None:
    """Print the current version of UNIT."""
    target = _unit(ctx, unit)
    with release_errors():
        click.echo(str(store.read(target, ctx.obj["root"])))


@cli.command(name="next")
@click.argument("unit", default="docker")
@bump_kind_options
@click.option("--write", is_flag=True, help="Persist the new version.")
@click.pass_context
def next_version(ctx: click.Context, unit: str, kind: str, write: bool) -> None:
    """Print the next version of UNIT, optionally writing it."""
    target = _unit(ctx, unit)
    root = ctx.obj["root"]
    with release_errors():
        new = increment(store.read(target, root), BumpKind(kind))
        if write:
            store.write(target, root, new)
    click.echo(str(new))


@cli.command()
@click.argument("unit", default="docker")
@click.option(
    "--ci-identity",
    is_flag=True,
    help="Commit as the GitHub Actions user (for CI runners).",
)
@click.pass_context
def commit(ctx: click.Context, unit: str, ci_identity: bool) -> None:
    """Commit and push the version files of UNIT."""
    target = _unit(ctx, unit)
    with release_errors():
        committed = commit_version(
            target,
            root=ctx.obj["root"],
            runner=_runner(ctx),
            ci_identity=ci_identity,
        )
    if not committed:
        click.echo("Nothing to commit.")


@cli.command()
@click.option("-f", "--force", is_flag=True, help="Publish every unit.")
@bump_kind_options
@click.option("--skip-docker", is_flag=True, help="Skip the docker release.")
@click.option("--skip-railway", is_flag=True, help="Skip Railway deploy hooks.")
@click.option("--skip-eas", is_flag=True, help="Skip EAS update hooks.")
@click.option("--no-tag", is_flag=True, help="Do not create v<version> tags.")
@click.option(
    "--no-submodule-update",
    is_flag=True,
    help="Do not pull submodules before detecting changes.",
)
@click.pass_context
def publish(
    ctx: click.Context,
    force: bool,
    kind: str,
    skip_docker: bool,
    skip_railway: bool,
    skip_eas: bool,
    no_tag: bool,
    no_submodule_update: bool,
) -> None:
    """Release every changed submodule, then update the parent repository."""
    config = _config(ctx)
    skipped = {"railway": skip_railway, "eas": skip_eas}
    options = ReleaseOptions(
        force=force,
        kind=BumpKind(kind),
        tag=not no_tag,
        skip_hooks=frozenset(h for h in KNOWN_HOOKS if skipped[h]),
        skip_docker=skip_docker,
        submodule_update=not no_submodule_update,
    )
    click.echo(f"Version increment type: {options.kind.value}")
    if force:
        click.echo("Force mode enabled: all units will be published")

    with release_errors():
        summary = run_release(
            config, options, root=ctx.obj["root"], runner=_runner(ctx)
        )
    summary.render()
    click.echo("Publish completed.")


@cli.command()
@click.option("-f", "--force", is_flag=True, help="Publish even without changes.")
@bump_kind_options
@click.option(
    "--no-submodule-update",
    is_flag=True,
    help="Do not pull submodules before detecting changes.",
)
@click.pass_context
def docker(
    ctx: click.Context, force: bool, kind: str, no_submodule_update: bool
) -> None:
    """Bump the docker version and trigger the full build pipeline."""
    config = _config(ctx)
    options = ReleaseOptions(
        force=force,
        kind=BumpKind(kind),
        submodule_update=not no_submodule_update,
    )
    with release_errors():
        summary = run_docker_release(
            config, options, root=ctx.obj["root"], runner=_runner(ctx)
        )
    result = summary.get("docker")
    if result is not None and result.had_changes:
        click.echo(
            f"Published v{result.new_version}. "
            "The full build pipeline will be triggered."
        )

"""Data models for subrelease.

These Pydantic models describe the units being released, how their
versions are stored, and the per-unit outcome of a run.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .versions import BumpKind


class _ConfigModel(BaseModel):
    """Base for models loaded from the TOML config (hyphenated keys)."""

    model_config = ConfigDict(
        alias_generator=lambda name: name.replace("_", "-"),
        populate_by_name=True,
        extra="forbid",
    )


class Mirror(_ConfigModel):
    """A secondary location that must carry the same version as the primary.

    Attributes:
        path: File path relative to the unit directory.
        field: Dotted path of the field to update (for ``kind="field"``).
        kind: ``field`` updates one field of a JSON/TOML manifest.
              ``lockfile`` updates an npm lock file's top-level version and
              its root package entry.
        commit_message: When set, the mirror lives in a nested repository
              that is committed and pushed (staging only this file) before
              the unit itself. ``{version}`` is substituted.
    """

    path: str
    field: str = "version"
    kind: Literal["field", "lockfile"] = "field"
    commit_message: str | None = None


class Unit(_ConfigModel):
    """A publishable entity: a submodule, or the parent repository itself.

    Attributes:
        name: Display name (e.g., "frontend").
        path: Directory relative to the repository root ("." for the root).
        version_file: Primary version location relative to ``path``. A plain
              text file, or a ``.json``/``.toml`` manifest. None means the
              unit is committed without a version bump.
        version_field: Dotted field path inside a manifest primary.
        mirrors: Secondary version locations kept in sync on write.
        stage: Paths (relative to ``path``) staged before committing.
        message: Commit message template; ``{name}`` and ``{version}`` are
              substituted.
        skip_ci: Append the ``[skip ci]`` marker to the commit message.
        tag: Create and push an annotated ``v<version>`` tag.
        hooks: Deploy hook name → npm script, run in order after pushing.
        children: Names of units whose submodule pointers this unit tracks.
    """

    name: str
    path: str = "."
    version_file: str | None = None
    version_field: str = "version"
    mirrors: list[Mirror] = Field(default_factory=list)
    stage: list[str] = Field(default_factory=lambda: ["."])
    message: str = "chore: bump version to {version}"
    skip_ci: bool = False
    tag: bool = False
    hooks: dict[str, str] = Field(default_factory=dict)
    children: list[str] = Field(default_factory=list)

    @property
    def versioned(self) -> bool:
        return self.version_file is not None


class DockerConfig(_ConfigModel):
    """Settings for the container image release.

    The docker release bumps a version file in the parent repository,
    mirrors it into the frontend manifest, and commits the parent with a
    message that CI recognizes as a publish trigger.
    """

    version_file: str = "version"
    triggers: list[str] = Field(default_factory=lambda: ["frontend", "backend"])
    mirrors: list[Mirror] = Field(default_factory=list)
    message: str = "[publish] Update submodules to v{version} and trigger full build"


class ReleaseConfig(_ConfigModel):
    """Top-level release configuration.

    Attributes:
        units: Submodule units, released in this order.
        root: The parent repository unit that commits updated pointers.
        docker: Container image release settings.
        submodule_update: Run ``git submodule update --remote --merge``
              before detecting changes.
    """

    units: list[Unit]
    root: Unit
    docker: DockerConfig = Field(default_factory=DockerConfig)
    submodule_update: bool = True

    def unit(self, name: str) -> Unit:
        """Look up a unit by name, including the root and docker units."""
        if name == self.root.name:
            return self.root
        if name == "docker":
            return self.docker_unit()
        for unit in self.units:
            if unit.name == name:
                return unit
        known = ", ".join([u.name for u in self.units] + [self.root.name, "docker"])
        raise KeyError(f"Unknown unit {name!r} (known: {known})")

    def docker_unit(self) -> Unit:
        """The docker release expressed as a root-level versioned unit."""
        return Unit(
            name="docker",
            path=self.root.path,
            version_file=self.docker.version_file,
            mirrors=self.docker.mirrors,
            message=self.docker.message,
            children=self.docker.triggers,
        )


class UnitState(str, Enum):
    """States of a single unit's release pipeline."""

    START = "start"
    DETECTING = "detecting"
    VERSIONING = "versioning"
    COMMITTING = "committing"
    PUSHED = "pushed"
    TAGGING = "tagging"
    DEPLOYING = "deploying"
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (UnitState.DONE, UnitState.SKIPPED, UnitState.FAILED)


class PublishResult(BaseModel):
    """Outcome of one unit's pipeline. Immutable once created.

    Attributes:
        unit: Unit name.
        had_changes: Whether anything was published.
        old_version: Version before the run (None for unversioned units).
        new_version: Version after the run; equals old_version when skipped.
        committed: A commit was created.
        pushed: The commit was pushed.
        tagged: A new ``v<version>`` tag was created and pushed.
        deploys: Hook name → whether the hook actually ran (read-only).
        state: Terminal pipeline state.
        error: Failure message for FAILED results.
    """

    model_config = ConfigDict(frozen=True)

    unit: str
    had_changes: bool = False
    old_version: str | None = None
    new_version: str | None = None
    committed: bool = False
    pushed: bool = False
    tagged: bool = False
    deploys: Mapping[str, bool] = Field(default_factory=dict, validate_default=True)
    state: UnitState = UnitState.SKIPPED
    error: str | None = None

    @field_validator("deploys")
    @classmethod
    def _freeze_deploys(cls, value: Mapping[str, bool]) -> Mapping[str, bool]:
        return MappingProxyType(dict(value))

    @property
    def deploy_triggered(self) -> bool:
        return any(self.deploys.values())


class VersionBump(BaseModel):
    """Records a version change for a unit.

    Attributes:
        old: The version before bumping.
        new: The version after bumping.
    """

    old: str
    new: str


class ReleaseOptions(BaseModel):
    """Per-invocation switches coming from the CLI.

    Attributes:
        force: Bypass change detection.
        kind: Which version component to bump.
        tag: Create ``v<version>`` tags for units that enable tagging.
        skip_hooks: Deploy hook names the caller disabled (e.g. "railway").
        skip_docker: Do not run the docker release.
        submodule_update: Pull submodules before detecting changes.
    """

    force: bool = False
    kind: BumpKind = BumpKind.PATCH
    tag: bool = True
    skip_hooks: frozenset[str] = frozenset()
    skip_docker: bool = False
    submodule_update: bool = True

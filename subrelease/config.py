"""Release configuration loading.

Configuration is read, in order of preference, from:
1. An explicit path (``--config``)
2. ``subrelease.toml`` at the repository root
3. ``[tool.subrelease]`` in the root ``pyproject.toml``

With none present, DEFAULT_CONFIG describes the frontend/backend/docs
layout the tool was written for.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from pydantic import ValidationError

from .errors import ConfigError
from .models import DockerConfig, Mirror, ReleaseConfig, Unit

CONFIG_FILENAME = "subrelease.toml"


def _npm_unit(name: str, hooks: dict[str, str] | None = None) -> Unit:
    return Unit(
        name=name,
        path=name,
        version_file="package.json",
        mirrors=[Mirror(path="package-lock.json", kind="lockfile")],
        tag=True,
        hooks=hooks or {},
    )


DEFAULT_CONFIG = ReleaseConfig(
    units=[
        _npm_unit("frontend", {"railway": "release:web:patch", "eas": "update:patch"}),
        _npm_unit("backend", {"railway": "deploy:patch"}),
        _npm_unit("docs"),
    ],
    root=Unit(
        name="root",
        path=".",
        stage=["frontend", "backend", "docs"],
        message="chore: update submodule references",
        children=["frontend", "backend", "docs"],
    ),
    docker=DockerConfig(
        mirrors=[
            Mirror(
                path="frontend/package.json",
                field="dockerVersion",
                commit_message="chore: update dockerVersion to {version} [skip ci]",
            )
        ]
    ),
)


def load_toml(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a TOML file, preserving formatting.

    Raises:
        ConfigError: If the file is not valid TOML.
    """
    try:
        return tomlkit.parse(path.read_text(encoding="utf-8"))
    except ValueError as exc:
        raise ConfigError(f"Cannot parse {path}: {exc}") from exc


def parse_config(data: dict[str, Any], source: str) -> ReleaseConfig:
    """Validate a plain mapping into a ReleaseConfig.

    Raises:
        ConfigError: If required keys are missing or values have the wrong type.
    """
    try:
        config = ReleaseConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {source}:\n{exc}") from exc

    names = [u.name for u in config.units]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate unit names in {source}: {', '.join(duplicates)}")
    unknown = [
        c for c in config.root.children + config.docker.triggers if c not in names
    ]
    if unknown:
        raise ConfigError(f"Unknown units referenced in {source}: {', '.join(unknown)}")
    return config


def load_config(root: Path, path: Path | None = None) -> ReleaseConfig:
    """Load the release configuration for the repository at ``root``.

    Raises:
        ConfigError: If an explicit path does not exist or a file is invalid.
    """
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        return parse_config(load_toml(path).unwrap(), str(path))

    candidate = root / CONFIG_FILENAME
    if candidate.exists():
        return parse_config(load_toml(candidate).unwrap(), str(candidate))

    pyproject = root / "pyproject.toml"
    if pyproject.exists():
        section = load_toml(pyproject).unwrap().get("tool", {}).get("subrelease")
        if section is not None:
            return parse_config(section, f"{pyproject} [tool.subrelease]")

    return DEFAULT_CONFIG.model_copy(deep=True)

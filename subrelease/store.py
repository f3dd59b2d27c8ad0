"""Version storage: read and write a unit's version in every place it lives.

The primary location is authoritative. It can be:
- a plain text file holding exactly ``major.minor.patch``;
- a ``.json`` manifest (e.g. package.json), edited as an ordered mapping so
  unknown fields and key order survive;
- a ``.toml`` manifest (e.g. pyproject.toml), edited with tomlkit so
  formatting and comments survive.

Mirrors are written after the primary. A mirror that cannot be written is
reported as a warning and never undoes the primary write.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import semver
import tomlkit

from .errors import ConfigError, MalformedVersion, MirrorWriteFailure
from .models import Mirror, Unit
from .shell import warn
from .versions import DEFAULT_VERSION, parse_version


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON document, preserving key order."""
    return json.loads(path.read_text(encoding="utf-8"))


def save_json(path: Path, doc: dict[str, Any]) -> None:
    """Write a JSON document with two-space indent and a trailing newline."""
    text = json.dumps(doc, indent=2, ensure_ascii=False) + "\n"
    path.write_text(text, encoding="utf-8")


def _load_manifest(path: Path) -> Any:
    if path.suffix == ".toml":
        return tomlkit.parse(path.read_text(encoding="utf-8"))
    return load_json(path)


def _save_manifest(path: Path, doc: Any) -> None:
    if path.suffix == ".toml":
        path.write_text(tomlkit.dumps(doc), encoding="utf-8")
    else:
        save_json(path, doc)


def _is_manifest(path: Path) -> bool:
    return path.suffix in (".json", ".toml")


def get_field(doc: Any, dotted: str) -> Any:
    """Return the value at a dotted field path, or None if absent."""
    node = doc
    for key in dotted.split("."):
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def set_field(doc: Any, dotted: str, value: str) -> None:
    """Set a dotted field path, creating intermediate tables as needed.

    Only the named field is touched; sibling keys keep their order.
    """
    *parents, leaf = dotted.split(".")
    node = doc
    for key in parents:
        if key not in node:
            is_toml = isinstance(doc, tomlkit.TOMLDocument)
            node[key] = tomlkit.table() if is_toml else {}
        node = node[key]
        if not isinstance(node, dict):
            raise TypeError(f"{key!r} in {dotted!r} is not a table")
    node[leaf] = value


def unit_dir(unit: Unit, root: Path) -> Path:
    return root / unit.path


def primary_path(unit: Unit, root: Path) -> Path:
    if unit.version_file is None:
        raise ValueError(f"{unit.name} has no version file")
    return unit_dir(unit, root) / unit.version_file


def read(unit: Unit, root: Path) -> semver.Version:
    """Read the unit's current version from its primary location.

    Returns DEFAULT_VERSION (1.0.0) when the file, or the manifest field,
    does not exist yet.

    Raises:
        MalformedVersion: If the stored value is not ``major.minor.patch``.
    """
    path = primary_path(unit, root)
    if not path.exists():
        return DEFAULT_VERSION

    if not _is_manifest(path):
        return parse_version(path.read_text(encoding="utf-8"), source=str(path))

    try:
        doc = _load_manifest(path)
    except ValueError as exc:
        raise MalformedVersion(f"<unparseable manifest: {exc}>", str(path)) from exc
    value = get_field(doc, unit.version_field)
    if value is None:
        return DEFAULT_VERSION
    return parse_version(str(value), source=f"{path}:{unit.version_field}")


def write(unit: Unit, root: Path, version: semver.Version) -> list[str]:
    """Persist ``version`` to the primary location and every mirror.

    The primary write must succeed (errors propagate). Mirror failures are
    printed as warnings and returned; they do not abort.

    Returns:
        Warning messages for mirrors that could not be written.

    Raises:
        ConfigError: If the primary manifest cannot hold ``version_field``.
    """
    path = primary_path(unit, root)
    text = str(version)
    if _is_manifest(path):
        try:
            doc = _load_manifest(path) if path.exists() else _new_manifest(path)
            set_field(doc, unit.version_field, text)
        except (ValueError, TypeError) as exc:
            raise ConfigError(
                f"Cannot set {unit.version_field} in {path}: {exc}"
            ) from exc
        _save_manifest(path, doc)
    else:
        path.write_text(text, encoding="utf-8")
    print(f"  {unit.name}: wrote {text} to {path.name}")

    warnings: list[str] = []
    base = unit_dir(unit, root)
    for mirror in unit.mirrors:
        try:
            write_mirror(base / mirror.path, mirror, text)
        except MirrorWriteFailure as exc:
            warn(str(exc))
            warnings.append(str(exc))
    return warnings


def _new_manifest(path: Path) -> Any:
    return tomlkit.document() if path.suffix == ".toml" else {}


def write_mirror(path: Path, mirror: Mirror, version: str) -> None:
    """Update a single mirror location.

    A missing lock file is not an error; a missing field manifest is.

    Raises:
        MirrorWriteFailure: If the mirror could not be read, updated or saved.
    """
    if mirror.kind == "lockfile":
        if not path.exists():
            print(f"  No {path.name} found, skipping")
            return
        try:
            update_lockfile(path, version)
        except (OSError, ValueError, TypeError) as exc:
            raise MirrorWriteFailure(f"Failed to update {path}: {exc}") from exc
        print(f"  {path.name} updated to {version}")
        return

    try:
        doc = _load_manifest(path)
        set_field(doc, mirror.field, version)
        _save_manifest(path, doc)
    except (OSError, ValueError, TypeError) as exc:
        raise MirrorWriteFailure(
            f"Failed to update {mirror.field} in {path}: {exc}"
        ) from exc
    print(f"  {path.name} {mirror.field} updated to {version}")


def update_lockfile(path: Path, version: str) -> None:
    """Set the version of an npm lock file.

    Updates the top-level ``version`` and, for lockfile v2+, the root
    package entry ``packages[""].version``.
    """
    doc = load_json(path)
    doc["version"] = version
    packages = doc.get("packages")
    if isinstance(packages, dict) and isinstance(packages.get(""), dict):
        packages[""]["version"] = version
    save_json(path, doc)


def version_paths(unit: Unit) -> list[str]:
    """Paths (relative to the unit) that hold the unit's version."""
    paths = [unit.version_file] if unit.version_file else []
    return paths + [m.path for m in unit.mirrors if m.commit_message is None]

"""Version parsing and bumping utilities.

Versions are strict ``major.minor.patch`` triples. Unlike general semver,
prerelease and build metadata are rejected, as are missing components.
"""

from __future__ import annotations

import re
from enum import Enum

import semver

from .errors import MalformedVersion

_VERSION_RE = re.compile(r"^([0-9]+)\.([0-9]+)\.([0-9]+)$")

DEFAULT_VERSION = semver.Version(1, 0, 0)


class BumpKind(str, Enum):
    """Which version component to increment."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


def parse_version(version_str: str, source: str | None = None) -> semver.Version:
    """Parse a ``major.minor.patch`` string into a semver.Version.

    Surrounding whitespace is ignored.

    Raises:
        MalformedVersion: If the string has fewer or more than three
            components, or any component is not a non-negative integer.
    """
    m = _VERSION_RE.match(version_str.strip())
    if m is None:
        raise MalformedVersion(version_str, source)
    major, minor, patch = (int(g) for g in m.groups())
    return semver.Version(major, minor, patch)


def increment(
    current: semver.Version, kind: BumpKind = BumpKind.PATCH
) -> semver.Version:
    """Return the next version for the given bump kind.

    Examples:
        1.2.3 + patch → 1.2.4
        1.2.3 + minor → 1.3.0
        1.2.3 + major → 2.0.0
    """
    if kind is BumpKind.MAJOR:
        return current.bump_major()
    if kind is BumpKind.MINOR:
        return current.bump_minor()
    return current.bump_patch()

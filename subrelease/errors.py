"""Exceptions raised by the release pipeline.

Two categories are non-fatal and never escape their component:
ProbeFailure (a change-detection signal is unavailable) and
MirrorWriteFailure (a secondary version location could not be written).
Everything else stops the run.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .summary import RunSummary


class ReleaseError(Exception):
    """Base class for all release errors.

    Attributes:
        completed: Publish steps a unit finished before the error
            (``committed``, ``pushed``, ``tagged``, ``deploys``), or None
            if it failed before committing.
    """

    completed: dict[str, Any] | None = None


class ConfigError(ReleaseError):
    """The release configuration file is missing required data or invalid."""


class MalformedVersion(ReleaseError):
    """A stored version is not exactly three dot-separated integers."""

    def __init__(self, value: str, source: str | None = None) -> None:
        self.value = value
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(f"Invalid version format{where}: {value!r}")


class ProbeFailure(ReleaseError):
    """A change-detection probe could not be evaluated."""


class MirrorWriteFailure(ReleaseError):
    """A secondary version location could not be updated."""


class CommitFailure(ReleaseError):
    """Staging or committing a unit failed."""


class PushFailure(ReleaseError):
    """Pushing a commit or tag failed."""


class DeployHookFailure(ReleaseError):
    """A deploy hook returned a non-zero status."""


class ReleaseAborted(ReleaseError):
    """A fatal error stopped the run after some units were processed.

    Attributes:
        summary: Results recorded before (and including) the failing unit.
    """

    def __init__(self, cause: ReleaseError, summary: RunSummary) -> None:
        self.cause = cause
        self.summary = summary
        super().__init__(str(cause))

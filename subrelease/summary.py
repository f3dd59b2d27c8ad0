"""Run summary: the ordered record of what happened to each unit."""

from __future__ import annotations

from collections.abc import Iterator

from .models import PublishResult, UnitState


class RunSummary:
    """Append-only list of per-unit results for one invocation.

    Results are kept in the order units were processed. Nothing is
    reordered or revisited once recorded.
    """

    def __init__(self) -> None:
        self._results: list[PublishResult] = []
        self.notes: list[str] = []

    def note(self, line: str) -> None:
        """Add a run-level line (e.g. a skipped step) to the report."""
        self.notes.append(line)

    def record(self, result: PublishResult) -> PublishResult:
        if any(r.unit == result.unit for r in self._results):
            raise ValueError(f"{result.unit} already recorded")
        self._results.append(result)
        return result

    def __iter__(self) -> Iterator[PublishResult]:
        return iter(tuple(self._results))

    def __len__(self) -> int:
        return len(self._results)

    def get(self, unit: str) -> PublishResult | None:
        for result in self._results:
            if result.unit == unit:
                return result
        return None

    @property
    def changed(self) -> list[PublishResult]:
        return [r for r in self._results if r.had_changes]

    @property
    def unchanged(self) -> list[PublishResult]:
        return [r for r in self._results if r.state is UnitState.SKIPPED]

    @property
    def failed(self) -> list[PublishResult]:
        return [r for r in self._results if r.state is UnitState.FAILED]

    def any_changed(self, names: list[str]) -> bool:
        return any(r.had_changes for r in self._results if r.unit in names)

    def lines(self) -> list[str]:
        """Per-unit status lines followed by the aggregate counts."""
        lines: list[str] = []
        for result in self._results:
            title = result.unit.capitalize()
            if result.state is UnitState.FAILED:
                lines.append(f"✗ {title}: failed ({result.error})")
            elif not result.had_changes:
                lines.append(f"ℹ {title}: no changes")
            elif result.new_version:
                lines.append(f"✓ {title} v{result.new_version}")
            else:
                lines.append(f"✓ {title}: committed")
            if result.tagged:
                lines.append(f"    - Tag: v{result.new_version} created and pushed")
            for hook, ran in result.deploys.items():
                lines.append(f"    - {hook}: {'deployed' if ran else 'skipped'}")

        lines.extend(self.notes)

        lines.append("")
        lines.append(
            f"{len(self.changed)} changed, {len(self.unchanged)} unchanged"
            + (f", {len(self.failed)} failed" if self.failed else "")
        )
        return lines

    def render(self) -> None:
        print(f"\n{'=' * 60}\nPUBLISH SUMMARY\n{'=' * 60}")
        for line in self.lines():
            print(line)
        print("=" * 60)

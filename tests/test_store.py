"""Tests for subrelease.store."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import semver

from subrelease import store
from subrelease.errors import ConfigError, MalformedVersion
from subrelease.models import Mirror, Unit


def _text_unit(**kwargs) -> Unit:
    return Unit(name="docker", path=".", version_file="version", **kwargs)


def _npm_unit(**kwargs) -> Unit:
    return Unit(
        name="frontend",
        path="frontend",
        version_file="package.json",
        mirrors=[Mirror(path="package-lock.json", kind="lockfile")],
        **kwargs,
    )


class TestReadTextFile:
    def test_reads_version(self, tmp_path: Path) -> None:
        (tmp_path / "version").write_text("1.2.3\n")
        assert store.read(_text_unit(), tmp_path) == semver.Version(1, 2, 3)

    def test_missing_file_returns_default(self, tmp_path: Path) -> None:
        assert str(store.read(_text_unit(), tmp_path)) == "1.0.0"

    @pytest.mark.parametrize("content", ["1.2", "1.2.3.4", "garbage"])
    def test_malformed(self, tmp_path: Path, content: str) -> None:
        (tmp_path / "version").write_text(content)
        with pytest.raises(MalformedVersion):
            store.read(_text_unit(), tmp_path)


class TestReadManifest:
    def test_reads_json_field(self, repo: Path) -> None:
        assert str(store.read(_npm_unit(), repo)) == "1.2.3"

    def test_reads_nested_field(self, tmp_path: Path) -> None:
        (tmp_path / "meta.json").write_text('{"release": {"version": "3.1.4"}}')
        unit = Unit(
            name="meta", version_file="meta.json", version_field="release.version"
        )
        assert str(store.read(unit, tmp_path)) == "3.1.4"

    def test_missing_field_returns_default(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text('{"name": "x"}')
        unit = Unit(name="x", version_file="package.json")
        assert str(store.read(unit, tmp_path)) == "1.0.0"

    def test_malformed_field(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text('{"version": "1.0"}')
        unit = Unit(name="x", version_file="package.json")
        with pytest.raises(MalformedVersion):
            store.read(unit, tmp_path)

    def test_unparseable_json(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("{not json")
        unit = Unit(name="x", version_file="package.json")
        with pytest.raises(MalformedVersion):
            store.read(unit, tmp_path)

    def test_reads_pyproject(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "svc"\nversion = "0.7.1"\n'
        )
        unit = Unit(
            name="svc", version_file="pyproject.toml", version_field="project.version"
        )
        assert str(store.read(unit, tmp_path)) == "0.7.1"


class TestWrite:
    def test_missing_file_then_patch_bump(self, tmp_path: Path) -> None:
        """Bootstrapping: default 1.0.0, one patch bump writes exactly 1.0.1."""
        unit = _text_unit()
        current = store.read(unit, tmp_path)
        store.write(unit, tmp_path, current.bump_patch())
        assert (tmp_path / "version").read_text() == "1.0.1"

    def test_round_trip_text(self, tmp_path: Path) -> None:
        unit = _text_unit()
        store.write(unit, tmp_path, semver.Version(7, 0, 12))
        assert store.read(unit, tmp_path) == semver.Version(7, 0, 12)

    def test_round_trip_json(self, repo: Path) -> None:
        unit = _npm_unit()
        store.write(unit, repo, semver.Version(1, 3, 0))
        assert store.read(unit, repo) == semver.Version(1, 3, 0)

    def test_json_preserves_other_fields_and_order(self, repo: Path) -> None:
        path = repo / "frontend" / "package.json"
        before = json.loads(path.read_text())

        store.write(_npm_unit(), repo, semver.Version(1, 2, 4))

        after = json.loads(path.read_text())
        assert list(after) == list(before)
        assert after["version"] == "1.2.4"
        assert after["scripts"] == before["scripts"]
        assert after["dockerVersion"] == "1.0.4"
        assert path.read_text().endswith("}\n")
        assert '\n  "name": "frontend",' in path.read_text()

    def test_lockfile_mirror(self, repo: Path) -> None:
        store.write(_npm_unit(), repo, semver.Version(1, 2, 4))

        lock = json.loads((repo / "frontend" / "package-lock.json").read_text())
        assert lock["version"] == "1.2.4"
        assert lock["packages"][""]["version"] == "1.2.4"
        assert lock["lockfileVersion"] == 3

    def test_missing_lockfile_is_not_a_warning(self, repo: Path) -> None:
        (repo / "frontend" / "package-lock.json").unlink()

        warnings = store.write(_npm_unit(), repo, semver.Version(1, 2, 4))

        assert warnings == []
        assert not (repo / "frontend" / "package-lock.json").exists()

    def test_broken_mirror_is_a_warning(
        self, repo: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        (repo / "frontend" / "package-lock.json").write_text("{broken")

        warnings = store.write(_npm_unit(), repo, semver.Version(1, 2, 4))

        assert len(warnings) == 1
        assert "package-lock.json" in warnings[0]
        assert "Warning:" in capsys.readouterr().err
        # Primary write stands
        assert store.read(_npm_unit(), repo) == semver.Version(1, 2, 4)

    def test_field_mirror_in_other_file(self, repo: Path) -> None:
        unit = _text_unit(
            mirrors=[Mirror(path="frontend/package.json", field="dockerVersion")]
        )

        warnings = store.write(unit, repo, semver.Version(1, 0, 5))

        assert warnings == []
        assert (repo / "version").read_text() == "1.0.5"
        manifest = json.loads((repo / "frontend" / "package.json").read_text())
        assert manifest["dockerVersion"] == "1.0.5"
        assert manifest["version"] == "1.2.3"

    def test_missing_field_mirror_is_a_warning(self, tmp_path: Path) -> None:
        unit = _text_unit(
            mirrors=[Mirror(path="frontend/package.json", field="dockerVersion")]
        )

        warnings = store.write(unit, tmp_path, semver.Version(1, 0, 1))

        assert len(warnings) == 1
        assert (tmp_path / "version").read_text() == "1.0.1"

    def test_field_under_scalar_is_config_error(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text(json.dumps({"release": "1.0"}))
        unit = Unit(
            name="x",
            path=".",
            version_file="package.json",
            version_field="release.version",
        )

        with pytest.raises(ConfigError, match="release.version"):
            store.write(unit, tmp_path, semver.Version(1, 0, 1))
        assert json.loads((tmp_path / "package.json").read_text()) == {
            "release": "1.0"
        }

    def test_pyproject_keeps_comments(self, tmp_path: Path) -> None:
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text(
            '[project]\nname = "svc"  # service name\nversion = "0.7.1"\n'
        )
        unit = Unit(
            name="svc", version_file="pyproject.toml", version_field="project.version"
        )

        store.write(unit, tmp_path, semver.Version(0, 8, 0))

        text = pyproject.read_text()
        assert 'version = "0.8.0"' in text
        assert "# service name" in text


class TestFieldHelpers:
    def test_get_field_missing(self) -> None:
        assert store.get_field({"a": {"b": 1}}, "a.c") is None
        assert store.get_field({"a": 1}, "a.b") is None

    def test_set_field_creates_tables(self) -> None:
        doc: dict = {"name": "x"}
        store.set_field(doc, "release.version", "1.0.0")
        assert doc == {"name": "x", "release": {"version": "1.0.0"}}

    def test_set_field_rejects_scalar_parent(self) -> None:
        with pytest.raises(TypeError):
            store.set_field({"release": "1.0"}, "release.version", "1.0.0")


def test_version_paths_excludes_committed_mirrors() -> None:
    unit = _text_unit(
        mirrors=[
            Mirror(path="VERSION.txt"),
            Mirror(path="frontend/package.json", commit_message="bump {version}"),
        ]
    )
    assert store.version_paths(unit) == ["version", "VERSION.txt"]

"""Tests for the host staging/output workspace."""

from __future__ import annotations

from pathlib import Path

from gembuild.common.models import BuildRequest
from gembuild.core.config import BuilderConfig
from gembuild.core.workspace import BuildWorkspace


def make_workspace(tmp_path: Path, **overrides) -> BuildWorkspace:
    config = BuilderConfig(work_dir=str(tmp_path), **overrides)
    return BuildWorkspace(BuildRequest("widgetlib", "1.2.0"), config)


def test_exit_removes_staging_and_output(tmp_path: Path) -> None:
    with make_workspace(tmp_path) as workspace:
        (workspace.staging_dir / "widgetlib-1.2.0").mkdir(parents=True)
        workspace.output_dir.mkdir()
        workspace.gem_path.write_bytes(b"gem")

    assert not (tmp_path / "output").exists()
    assert not (tmp_path / "precompiled").exists()


def test_exit_without_directories_is_safe(tmp_path: Path) -> None:
    with make_workspace(tmp_path):
        pass

    assert list(tmp_path.iterdir()) == []


def test_keep_output(tmp_path: Path) -> None:
    with make_workspace(tmp_path, keep_output=True) as workspace:
        workspace.output_dir.mkdir()
        workspace.gem_path.write_bytes(b"gem")

    assert (tmp_path / "precompiled" / "widgetlib-1.2.0.gem").is_file()


def test_enter_clears_stale_copies_for_the_same_gem(tmp_path: Path) -> None:
    staging = tmp_path / "output"
    (staging / "widgetlib-1.2.0" / "lib").mkdir(parents=True)
    (staging / "widgetlib-1.2.0.gemspec").write_text("old")
    (staging / "other-0.1.gemspec").write_text("unrelated")

    with make_workspace(tmp_path, keep_output=True):
        assert not (staging / "widgetlib-1.2.0").exists()
        assert not (staging / "widgetlib-1.2.0.gemspec").exists()
        assert (staging / "other-0.1.gemspec").exists()

"""Shared fixtures: a scripted command runner and a fake container filesystem."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

import pytest

from gembuild.common.command_runner import CommandResult
from gembuild.common.models import BuildRequest
from gembuild.core.config import BuilderConfig

Handler = Callable[[List[str], Optional[Path]], Union[CommandResult, str, None]]

WIDGETLIB_GEMSPEC = """\
# -*- encoding: utf-8 -*-
# stub: widgetlib 1.2.0 ruby lib
# stub: ext/widgetlib/extconf.rb

Gem::Specification.new do |s|
  s.name = "widgetlib".freeze
  s.version = "1.2.0"

  s.required_rubygems_version = Gem::Requirement.new(">= 0".freeze) if s.respond_to? :required_rubygems_version=
  s.require_paths = ["lib".freeze]
  s.authors = ["Widget Team".freeze]
  s.date = "2020-01-01"
  s.extensions = ["ext/widgetlib/extconf.rb".freeze]
  s.files = ["ext/widgetlib/extconf.rb".freeze, "ext/widgetlib/widgetlib.c".freeze, "lib/widgetlib.rb".freeze]
  s.rubygems_version = "2.7.6".freeze
  s.summary = "Widgets for Ruby".freeze

  s.installed_by_version = "2.7.6" if s.respond_to? :installed_by_version
end
"""


def ok(command: Sequence[str], stdout: str = "") -> CommandResult:
    return CommandResult(command=list(command), return_code=0, stdout=stdout, stderr="", duration=0.0)


def fail(command: Sequence[str], stderr: str = "boom", return_code: int = 1) -> CommandResult:
    return CommandResult(command=list(command), return_code=return_code, stdout="", stderr=stderr, duration=0.0)


class FakeCommandRunner:
    """Records commands and answers them from registered prefix handlers."""

    def __init__(self) -> None:
        self.calls: List[Tuple[List[str], Optional[Path]]] = []
        self._handlers: List[Tuple[Tuple[str, ...], Handler]] = []

    def on(self, *prefix: str, handler: Optional[Handler] = None, result: Optional[str] = None, failure: Optional[str] = None) -> None:
        """Answer commands starting with ``prefix``; later registrations win."""
        if handler is None:
            if failure is not None:
                handler = lambda command, cwd: fail(command, failure)  # noqa: E731
            else:
                handler = lambda command, cwd: ok(command, result or "")  # noqa: E731
        self._handlers.append((tuple(prefix), handler))

    def run(self, command, *, cwd=None, timeout=None, env=None) -> CommandResult:
        command = [str(part) for part in command]
        self.calls.append((command, cwd))
        for prefix, handler in reversed(self._handlers):
            if tuple(command[: len(prefix)]) == prefix:
                outcome = handler(command, cwd)
                if isinstance(outcome, CommandResult):
                    return outcome
                return ok(command, outcome or "")
        return ok(command)

    @property
    def commands(self) -> List[List[str]]:
        return [command for command, _ in self.calls]

    def matching(self, *prefix: str) -> List[List[str]]:
        return [command for command in self.commands if tuple(command[: len(prefix)]) == prefix]


class WidgetlibScenario:
    """
    A successful ``widgetlib 1.2.0`` build.

    ``container_root`` plays the role of ``Gem.dir`` inside the container;
    ``docker cp`` copies from it and ``gem build`` drops a ``.gem`` next to
    the gemspec while recording the gemspec text it was given.
    """

    def __init__(self, tmp_path: Path, with_binary: bool = True) -> None:
        self.request = BuildRequest("widgetlib", "1.2.0")
        self.work_dir = tmp_path / "work"
        self.work_dir.mkdir()
        self.container_root = tmp_path / "container" / "gems-root"
        self.config = BuilderConfig(
            work_dir=str(self.work_dir),
            base_image="ruby:2.5-slim",
            platform="linux/arm64",
            docker_bin="docker",
            gem_bin="gem",
            ruby_bin="ruby",
            check_index=False,
        )
        self.built_gemspecs: List[str] = []
        self.runner = FakeCommandRunner()
        self._populate_container(with_binary)
        self._script_runner()

    @property
    def container_id(self) -> str:
        return self.request.container_id

    def _populate_container(self, with_binary: bool) -> None:
        gem_dir = self.container_root / "gems" / "widgetlib-1.2.0"
        (gem_dir / "lib" / "widgetlib").mkdir(parents=True)
        (gem_dir / "ext" / "widgetlib").mkdir(parents=True)
        (gem_dir / "lib" / "widgetlib.rb").write_text("require 'widgetlib/widgetlib'\n")
        (gem_dir / "ext" / "widgetlib" / "extconf.rb").write_text("require 'mkmf'\n")
        (gem_dir / "ext" / "widgetlib" / "widgetlib.c").write_text("void Init_widgetlib(void) {}\n")
        if with_binary:
            (gem_dir / "lib" / "widgetlib" / "widgetlib.so").write_bytes(b"\x7fELF")

        specs = self.container_root / "specifications"
        specs.mkdir(parents=True)
        (specs / "widgetlib-1.2.0.gemspec").write_text(WIDGETLIB_GEMSPEC)

    def _script_runner(self) -> None:
        runner = self.runner
        runner.on("docker", "container", "inspect", failure="Error: No such container")
        runner.on("docker", "exec", self.container_id, "ruby", result=f"{self.container_root}\n")
        runner.on("docker", "cp", handler=self._docker_cp)
        runner.on("gem", "build", handler=self._gem_build)

    def _docker_cp(self, command: List[str], cwd: Optional[Path]) -> CommandResult:
        source = Path(command[2].split(":", 1)[1])
        destination = Path(command[3])
        if source.is_dir():
            shutil.copytree(source, destination / source.name)
        elif source.is_file():
            shutil.copy2(source, destination / source.name)
        else:
            return fail(command, f"Error: No such container:path: {command[2]}")
        return ok(command)

    def _gem_build(self, command: List[str], cwd: Optional[Path]) -> CommandResult:
        gemspec = Path(cwd) / command[2]
        self.built_gemspecs.append(gemspec.read_text())
        (Path(cwd) / "widgetlib-1.2.0.gem").write_bytes(b"gem")
        return ok(command, "Successfully built RubyGem")


@pytest.fixture
def runner() -> FakeCommandRunner:
    return FakeCommandRunner()


@pytest.fixture
def scenario(tmp_path: Path) -> WidgetlibScenario:
    return WidgetlibScenario(tmp_path)


@pytest.fixture
def scenario_without_binary(tmp_path: Path) -> WidgetlibScenario:
    return WidgetlibScenario(tmp_path, with_binary=False)

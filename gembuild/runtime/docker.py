"""Disposable Docker image + container used to compile a gem's native extension."""

from __future__ import annotations

import logging
import posixpath
from pathlib import Path
from typing import List, Optional

from gembuild.common.command_runner import CommandResult, CommandRunner
from gembuild.common.errors import (
    BuildError,
    ContainerConflictError,
    ExtractionError,
    RuntimeEnvironmentError,
)
from gembuild.common.models import BuildRequest, ExtractedArtifact
from gembuild.core.config import BuilderConfig

from .issues import RuntimeIssue, raise_for_issues

DOCKERFILE_TEMPLATE = """\
FROM {base_image}
RUN apt-get update && apt-get install -y {packages} && rm -rf /var/lib/apt/lists/*
WORKDIR {workdir}
"""


def render_dockerfile(config: BuilderConfig) -> str:
    """Render the build image definition for the configured base image and toolchain."""
    return DOCKERFILE_TEMPLATE.format(
        base_image=config.base_image,
        packages=" ".join(config.system_packages),
        workdir=config.container_workdir,
    )


class DockerBuildEnvironment:
    """
    Image and container owned by a single build run.

    Use it as a context manager: leaving the ``with`` block tears down
    whatever this instance created, whether the block finished, raised, or
    was interrupted. Resources are only released if this instance created
    them, so a container found in conflict is never touched.
    """

    def __init__(
        self,
        request: BuildRequest,
        config: BuilderConfig,
        command_runner: CommandRunner,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.request = request
        self.config = config
        self.command_runner = command_runner
        self.logger = logger or logging.getLogger(__name__)
        self._dockerfile_written = False
        self._image_acquired = False
        self._container_acquired = False
        self._name_checked = False

    def __enter__(self) -> "DockerBuildEnvironment":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.teardown()

    @property
    def dockerfile_path(self) -> Path:
        return self.config.work_path / self.request.dockerfile_name

    @property
    def running(self) -> bool:
        return self._container_acquired

    def _docker(self, *args: str) -> CommandResult:
        return self.command_runner.run([self.config.docker_bin, *args])

    def ensure_daemon(self) -> None:
        """Fail fast when the Docker daemon is not reachable."""
        result = self._docker("info")
        if result.succeeded():
            self.logger.debug("Docker daemon is reachable")
            return
        if not result.tool_available:
            raise RuntimeEnvironmentError(
                f"Docker CLI '{self.config.docker_bin}' not found. Install Docker and try again"
            )
        reason = result.error_message("").splitlines()
        raise RuntimeEnvironmentError(
            "Docker is not running. Please start Docker and try again",
            reason[-1] if reason else None,
        )

    def provision(self) -> None:
        """
        Build the image, start the container and compile the gem inside it.

        Raises:
            ContainerConflictError: A container with the derived name already exists.
            BuildError: Any docker or in-container gem command failed.
        """
        self.ensure_name_available()
        raise_for_issues(self.build_image(), BuildError)
        raise_for_issues(self.start_container(), BuildError)
        raise_for_issues(self.compile_gem(), BuildError)

    def build_image(self) -> List[RuntimeIssue]:
        self.logger.info("Building Docker image %s (%s)...", self.request.image_tag, self.config.platform)
        self._dockerfile_written = True
        self.dockerfile_path.parent.mkdir(parents=True, exist_ok=True)
        self.dockerfile_path.write_text(render_dockerfile(self.config), encoding="utf-8")

        self._image_acquired = True
        result = self._docker(
            "build",
            "--platform",
            self.config.platform,
            "-f",
            str(self.dockerfile_path),
            "-t",
            self.request.image_tag,
            str(self.config.work_path),
        )
        if not result.succeeded():
            return [
                RuntimeIssue.from_command(
                    "DOCKER_BUILD_FAILED",
                    f"Docker build failed for image {self.request.image_tag}",
                    result,
                    subject=str(self.dockerfile_path),
                )
            ]
        self.logger.debug("Image %s built in %.1fs", self.request.image_tag, result.duration)
        return []

    def container_exists(self) -> bool:
        return self._docker("container", "inspect", self.request.container_id).succeeded()

    def ensure_name_available(self) -> None:
        """Fail before any image is built when a container already holds the derived name."""
        if self._name_checked:
            return
        if self.container_exists():
            raise ContainerConflictError(self.request.container_id)
        self._name_checked = True

    def start_container(self) -> List[RuntimeIssue]:
        container_id = self.request.container_id
        self.ensure_name_available()

        self._container_acquired = True
        result = self._docker(
            "run",
            "--name",
            container_id,
            "--platform",
            self.config.platform,
            "-d",
            self.request.image_tag,
            "tail",
            "-f",
            "/dev/null",
        )
        if not result.succeeded():
            return [
                RuntimeIssue.from_command(
                    "DOCKER_RUN_FAILED",
                    f"Could not start container {container_id}",
                    result,
                    subject=container_id,
                )
            ]
        self.logger.debug("Container %s started", container_id)
        return []

    def compile_gem(self) -> List[RuntimeIssue]:
        """Fetch, install (which compiles the extension) and unpack the gem in the container."""
        request = self.request
        self.logger.info("Downloading and compiling %s in container...", request.full_name)
        steps = [
            ("GEM_FETCH_FAILED", ["gem", "fetch", request.gem_name, "--version", request.gem_version]),
            ("GEM_INSTALL_FAILED", ["gem", "install", request.gem_filename, "--local", "--no-document"]),
            ("GEM_UNPACK_FAILED", ["gem", "unpack", request.gem_filename]),
        ]
        for code, command in steps:
            result = self.exec(*command)
            if not result.succeeded():
                return [
                    RuntimeIssue.from_command(
                        code,
                        f"'{' '.join(command)}' failed in container {request.container_id}",
                        result,
                        subject=request.full_name,
                    )
                ]
        self.logger.info("✓ Gem compiled successfully in Docker")
        return []

    def exec(self, *command: str) -> CommandResult:
        return self._docker("exec", self.request.container_id, *command)

    def gem_dir(self) -> str:
        """Ask the container's Ruby where gems are installed."""
        result = self.exec("ruby", "-e", "puts Gem.dir")
        lines = result.stdout.strip().splitlines() if result.succeeded() else []
        if not lines:
            raise ExtractionError(
                "Could not determine the gem directory inside the container",
                result.error_message("empty output from 'ruby -e \"puts Gem.dir\"'"),
            )
        return lines[-1].strip()

    def extract_artifact(self, staging_dir: Path) -> ExtractedArtifact:
        """
        Copy the installed gem and its gemspec from the container into ``staging_dir``.

        Raises:
            ExtractionError: Either copy target is missing in the container.
        """
        request = self.request
        self.logger.info("Copying compiled files...")
        gem_root = self.gem_dir()
        staging_dir.mkdir(parents=True, exist_ok=True)

        gem_source = posixpath.join(gem_root, "gems", request.full_name)
        spec_source = posixpath.join(gem_root, "specifications", request.gemspec_filename)
        gem_target = staging_dir / request.full_name
        spec_target = staging_dir / request.gemspec_filename

        self._copy_out(gem_source, staging_dir, gem_target)
        self._copy_out(spec_source, staging_dir, spec_target)

        self.logger.info("✓ Files copied from container")
        return ExtractedArtifact(gem_dir=gem_target, gemspec_path=spec_target)

    def _copy_out(self, source: str, destination: Path, expected: Path) -> None:
        result = self._docker("cp", f"{self.request.container_id}:{source}", f"{destination}/")
        if not result.succeeded():
            raise ExtractionError(f"Expected {source} in container {self.request.container_id}", result.error_message())
        if not expected.exists():
            raise ExtractionError(f"Copy of {source} did not produce {expected}")

    def teardown(self) -> None:
        """Release the container, image and Dockerfile created by this instance. Safe to call repeatedly."""
        if self._container_acquired:
            container_id = self.request.container_id
            self.logger.debug("Removing container %s", container_id)
            self._ignore_failure(self._docker("stop", container_id))
            self._ignore_failure(self._docker("rm", container_id))
            self._container_acquired = False

        if self._image_acquired:
            self.logger.debug("Removing image %s", self.request.image_tag)
            self._ignore_failure(self._docker("rmi", self.request.image_tag))
            self._image_acquired = False

        if self._dockerfile_written:
            self.dockerfile_path.unlink(missing_ok=True)
            self._dockerfile_written = False

    def _ignore_failure(self, result: CommandResult) -> None:
        if not result.succeeded():
            self.logger.debug("Ignoring cleanup failure of '%s': %s", result.display, result.error_message())

"""Ordered build pipeline: guard, build, extract, package, verify, teardown."""

from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Optional

from ..common.command_runner import CommandRunner
from ..common.errors import BuildError
from ..common.models import BuildOutcome, BuildRequest
from ..packaging.packager import GemPackager
from ..runtime.docker import DockerBuildEnvironment
from ..runtime.gem_index import RubyGemsIndex
from ..runtime.issues import raise_for_issues
from ..runtime.rubygems import RubyGemsCLI
from .config import BuilderConfig
from .workspace import BuildWorkspace


class PrecompilePipeline:
    """Run every build stage for one request, releasing resources on every exit path."""

    def __init__(
        self,
        config: BuilderConfig,
        command_runner: Optional[CommandRunner] = None,
        index: Optional[RubyGemsIndex] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.command_runner = command_runner or CommandRunner(logger=self.logger)
        self._index = index

    @property
    def index(self) -> RubyGemsIndex:
        if self._index is None:
            self._index = RubyGemsIndex(self.config, logger=self.logger)
        return self._index

    def run(self, request: BuildRequest) -> BuildOutcome:
        """
        Build, package and install the precompiled variant of ``request``.

        Teardown is registered before the Docker guard runs, so the container,
        image, Dockerfile and host directories are released whether the run
        succeeds, raises a ``GemBuildError`` or is interrupted.

        Returns:
            BuildOutcome; ``loaded_as`` is None when the load check failed.
        """
        rubygems = RubyGemsCLI(self.config, self.command_runner, logger=self.logger)

        with ExitStack() as stack:
            workspace = stack.enter_context(BuildWorkspace(request, self.config, logger=self.logger))
            environment = stack.enter_context(
                DockerBuildEnvironment(request, self.config, self.command_runner, logger=self.logger)
            )

            environment.ensure_daemon()
            environment.ensure_name_available()
            if self.config.uninstall_existing:
                rubygems.uninstall(request.gem_name)
            if self.config.check_index:
                self.check_index(request)

            environment.provision()
            extracted = environment.extract_artifact(workspace.staging_dir)

            packager = GemPackager(request, self.config, rubygems, logger=self.logger)
            artifact = packager.package(extracted)

            loaded_as = self.verify(request, rubygems)
            return BuildOutcome(request=request, artifact=artifact, loaded_as=loaded_as)

    def check_index(self, request: BuildRequest) -> None:
        issues = self.index.check_release(request.gem_name, request.gem_version)
        for issue in issues:
            if not issue.is_error():
                self.logger.warning("%s", issue.message)
        raise_for_issues(issues, BuildError)

    def verify(self, request: BuildRequest, rubygems: RubyGemsCLI) -> Optional[str]:
        self.logger.info("Testing gem functionality...")
        loaded_as = rubygems.first_loadable(request.require_candidates)
        if loaded_as:
            self.logger.info("✓ Gem loads successfully as '%s'", loaded_as)
        else:
            self.logger.warning("Could not auto-test gem loading. Manual verification may be needed.")
            self.logger.info("Try: ruby -e \"require '%s'\"", request.gem_name)
        return loaded_as

"""Host-side RubyGems and Ruby CLI operations."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

from gembuild.common.command_runner import CommandResult, CommandRunner
from gembuild.core.config import BuilderConfig

from .issues import RuntimeIssue


class RubyGemsCLI:
    """Drive the host's ``gem`` and ``ruby`` executables."""

    def __init__(
        self,
        config: BuilderConfig,
        command_runner: CommandRunner,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.command_runner = command_runner
        self.logger = logger or logging.getLogger(__name__)

    def uninstall(self, gem_name: str) -> bool:
        """Remove every installed version of ``gem_name``; failures are ignored."""
        self.logger.info("Cleaning existing %s installations...", gem_name)
        result = self.command_runner.run([self.config.gem_bin, "uninstall", gem_name, "--all", "--force", "--executables"])
        if result.succeeded():
            self.logger.info("✓ Existing installations cleaned")
        else:
            self.logger.debug("gem uninstall %s ignored: %s", gem_name, result.error_message())
        return result.succeeded()

    def build(self, gemspec_path: Path) -> tuple[CommandResult, List[RuntimeIssue]]:
        """Run ``gem build`` in the gemspec's directory."""
        result = self.command_runner.run(
            [self.config.gem_bin, "build", gemspec_path.name],
            cwd=gemspec_path.parent,
        )
        issues: List[RuntimeIssue] = []
        if not result.succeeded():
            issues.append(
                RuntimeIssue.from_command("GEM_BUILD_FAILED", f"gem build failed for {gemspec_path.name}", result)
            )
        return result, issues

    def install_local(self, gem_path: Path) -> List[RuntimeIssue]:
        """Install a local ``.gem`` file without generating documentation."""
        result = self.command_runner.run(
            [self.config.gem_bin, "install", str(gem_path), "--local", "--no-document"]
        )
        if result.succeeded():
            return []
        return [RuntimeIssue.from_command("GEM_INSTALL_FAILED", f"gem install failed for {gem_path.name}", result)]

    def can_require(self, feature: str) -> bool:
        result = self.command_runner.run([self.config.ruby_bin, "-e", f"require '{feature}'"])
        return result.succeeded()

    def first_loadable(self, candidates: Iterable[str]) -> Optional[str]:
        """Return the first candidate that ``require`` accepts, or None."""
        for candidate in candidates:
            if self.can_require(candidate):
                return candidate
            self.logger.debug("require '%s' failed", candidate)
        return None

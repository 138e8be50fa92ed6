"""Helpers that drive Docker, the host RubyGems CLI and the gem index."""

from .docker import DockerBuildEnvironment, render_dockerfile
from .gem_index import RubyGemsIndex
from .issues import IssueSeverity, RuntimeIssue, raise_for_issues
from .rubygems import RubyGemsCLI

__all__ = [
    "DockerBuildEnvironment",
    "render_dockerfile",
    "RubyGemsIndex",
    "RubyGemsCLI",
    "RuntimeIssue",
    "IssueSeverity",
    "raise_for_issues",
]

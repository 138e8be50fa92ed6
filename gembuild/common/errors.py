"""Exception hierarchy for the gem build pipeline.

Each fatal error carries the process exit code the CLI reports for it.
"""
from __future__ import annotations

from typing import Optional


class GemBuildError(Exception):
    """Base class for every fatal pipeline error."""

    exit_code = 1

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        self.details = details
        if details:
            message = f"{message}: {details}"
        super().__init__(message)


class UsageError(GemBuildError):
    """Raised when the command line arguments are invalid."""

    exit_code = 2


class RuntimeEnvironmentError(GemBuildError):
    """Raised when the container runtime is not reachable."""

    exit_code = 3


class BuildError(GemBuildError):
    """Raised when provisioning the image/container or the in-container gem steps fail."""

    exit_code = 4


class ContainerConflictError(BuildError):
    """Raised when a container with the derived name already exists."""

    def __init__(self, container_id: str) -> None:
        self.container_id = container_id
        super().__init__(
            f"Container '{container_id}' already exists (left over from a previous run?). "
            f"Remove it with 'docker rm -f {container_id}' and try again"
        )


class ExtractionError(GemBuildError):
    """Raised when the expected gem directory or gemspec is missing after the build."""

    exit_code = 5


class PackagingError(GemBuildError):
    """Raised when editing the gemspec, rebuilding or installing the gem fails."""

    exit_code = 6


class VerificationWarning(UserWarning):
    """Marker for a failed load check; never fatal unless strict verification is on."""

    exit_code = 7

"""Value objects shared by the builder, extractor and packager."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

CONTAINER_SUFFIX = "-builder"
EXTENSION_SOURCE_DIR = "ext"

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_LOAD_NAME_SEPARATOR = re.compile(r"[-_]")


def derive_container_id(gem_name: str) -> str:
    """
    Derive the container name used for a gem build.

    Every character outside ``[A-Za-z0-9]`` becomes ``-`` and ``-builder`` is
    appended, so ``semacode-ruby19`` maps to ``semacode-ruby19-builder``.
    Names that differ only in replaced characters map to the same id. Docker
    rejects ids that start with ``-``, which happens for names that do not
    begin with an ASCII letter or digit; the CLI refuses those up front.
    """
    return f"{_NON_ALNUM.sub('-', gem_name)}{CONTAINER_SUFFIX}"


def derive_base_name(gem_name: str) -> str:
    """Strip everything from the first hyphen or underscore onward."""
    return _LOAD_NAME_SEPARATOR.split(gem_name, maxsplit=1)[0]


@dataclass(frozen=True, slots=True)
class BuildRequest:
    """
    Immutable description of one build, created from the command line.

    Every resource name used by the pipeline is derived from this object so
    that two runs for the same gem agree on them.
    """

    gem_name: str
    gem_version: str
    container_id: str = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "container_id", derive_container_id(self.gem_name))

    @property
    def full_name(self) -> str:
        return f"{self.gem_name}-{self.gem_version}"

    @property
    def image_tag(self) -> str:
        # Docker repository names must be lowercase.
        return self.container_id.lower()

    @property
    def dockerfile_name(self) -> str:
        return f"Dockerfile.{self.gem_name}"

    @property
    def gem_filename(self) -> str:
        return f"{self.full_name}.gem"

    @property
    def gemspec_filename(self) -> str:
        return f"{self.full_name}.gemspec"

    @property
    def base_name(self) -> str:
        return derive_base_name(self.gem_name)

    @property
    def require_candidates(self) -> Tuple[str, ...]:
        """Names to try with ``require``, base name first."""
        candidates: List[str] = []
        for name in (self.base_name, self.gem_name):
            if name and name not in candidates:
                candidates.append(name)
        return tuple(candidates)


@dataclass(slots=True)
class ExtractedArtifact:
    """Installed gem directory and gemspec copied out of the build container."""

    gem_dir: Path
    gemspec_path: Path


@dataclass(slots=True)
class PrecompiledArtifact:
    """Extension-free gem tree and the package rebuilt from it."""

    gem_dir: Path
    gemspec_path: Path
    compiled_binaries: List[str] = field(default_factory=list)
    gem_path: Optional[Path] = None


@dataclass(slots=True)
class BuildOutcome:
    """Summary of a finished pipeline run."""

    request: BuildRequest
    artifact: PrecompiledArtifact
    loaded_as: Optional[str] = None

    @property
    def verified(self) -> bool:
        return self.loaded_as is not None

"""Turn an extracted, compiled gem into an extension-free package and install it."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Optional

from gembuild.common.errors import PackagingError
from gembuild.common.models import (
    EXTENSION_SOURCE_DIR,
    BuildRequest,
    ExtractedArtifact,
    PrecompiledArtifact,
)
from gembuild.core.config import BuilderConfig
from gembuild.runtime.issues import raise_for_issues
from gembuild.runtime.rubygems import RubyGemsCLI

from .gemspec import GemspecDocument


def find_compiled_binaries(gem_dir: Path, suffixes: Iterable[str], library_dir: str = "lib") -> List[str]:
    """Relative POSIX paths of compiled objects under ``gem_dir/library_dir``."""
    root = gem_dir / library_dir
    if not root.is_dir():
        return []
    suffixes = tuple(suffixes)
    return sorted(
        path.relative_to(gem_dir).as_posix()
        for path in root.rglob("*")
        if path.is_file() and path.name.endswith(suffixes)
    )


def list_tree(root: Path) -> List[str]:
    return sorted(path.relative_to(root).as_posix() for path in root.rglob("*") if path.is_file())


class GemPackager:
    """Build and install the precompiled variant of a gem."""

    def __init__(
        self,
        request: BuildRequest,
        config: BuilderConfig,
        rubygems: RubyGemsCLI,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.request = request
        self.config = config
        self.rubygems = rubygems
        self.logger = logger or logging.getLogger(__name__)

    @property
    def gem_dir(self) -> Path:
        return self.config.output_path / self.request.full_name

    @property
    def gem_path(self) -> Path:
        return self.config.output_path / self.request.gem_filename

    def package(self, extracted: ExtractedArtifact) -> PrecompiledArtifact:
        """Prepare the extension-free tree, then build and install it."""
        self.logger.info("Creating Bundler-compatible gem...")
        artifact = self.prepare(extracted)
        self.build_and_install(artifact)
        self.logger.info("✓ Precompiled gem installed")
        return artifact

    def prepare(self, extracted: ExtractedArtifact) -> PrecompiledArtifact:
        """
        Copy the installed gem, drop its extension sources and rewrite the gemspec.

        Raises:
            PackagingError: The tree could not be copied, the gemspec could not
                be read, or its file list references files that do not exist.
        """
        gem_dir = self.gem_dir
        try:
            if gem_dir.exists():
                shutil.rmtree(gem_dir)
            gem_dir.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(extracted.gem_dir, gem_dir, symlinks=True)
            shutil.rmtree(gem_dir / EXTENSION_SOURCE_DIR, ignore_errors=True)
            document = GemspecDocument.load(extracted.gemspec_path)
        except OSError as exc:
            raise PackagingError(f"Could not prepare {gem_dir}", str(exc)) from exc

        binaries = self.rewrite_gemspec(document, gem_dir)

        gemspec_path = gem_dir / self.request.gemspec_filename
        try:
            document.save(gemspec_path)
        except OSError as exc:
            raise PackagingError(f"Could not write {gemspec_path}", str(exc)) from exc

        return PrecompiledArtifact(gem_dir=gem_dir, gemspec_path=gemspec_path, compiled_binaries=binaries)

    def rewrite_gemspec(self, document: GemspecDocument, gem_dir: Path) -> List[str]:
        """
        Apply the precompiled-gem edits to ``document`` in place.

        The ``extensions`` attribute is removed so installers never try to
        compile again, ``ext/`` entries are dropped from the file lists, and
        every compiled object under ``lib/`` is listed in ``files``.

        Returns:
            Relative paths of the compiled objects found in ``gem_dir``.
        """
        if document.remove_attribute("extensions"):
            self.logger.debug("Removed extensions attribute from %s", self.request.gemspec_filename)

        removed = document.remove_file_entries(f"{EXTENSION_SOURCE_DIR}/")
        if removed:
            self.logger.debug("Removed %d ext/ entries from the file lists", len(removed))

        binaries = find_compiled_binaries(gem_dir, self.config.binary_suffixes)
        if binaries:
            self.logger.info("Found compiled extensions: %d file(s)", len(binaries))
        else:
            self.logger.warning(
                "No %s files found - gem may not have C extensions or compilation failed",
                "/".join(self.config.binary_suffixes),
            )

        if document.file_list("files") is None:
            files = list_tree(gem_dir)
            self.logger.info("Gemspec has no literal files list; listing %d files from %s", len(files), gem_dir)
            document.set_file_list(files)
        else:
            added = document.prepend_files(binaries)
            for path in added:
                self.logger.debug("Added %s to files", path)

        dangling = document.dangling_files(gem_dir)
        if dangling:
            raise PackagingError(
                f"Gemspec lists files missing from {gem_dir}",
                ", ".join(dangling[:10]) + (" ..." if len(dangling) > 10 else ""),
            )
        return binaries

    def build_and_install(self, artifact: PrecompiledArtifact) -> Path:
        """Run ``gem build`` on the rewritten gemspec and install the result locally."""
        _, issues = self.rubygems.build(artifact.gemspec_path)
        raise_for_issues(issues, PackagingError)

        built = artifact.gem_dir / self.request.gem_filename
        if not built.is_file():
            raise PackagingError(f"gem build did not produce {built.name} in {artifact.gem_dir}")

        target = self.gem_path
        target.unlink(missing_ok=True)
        shutil.move(str(built), str(target))
        artifact.gem_path = target

        raise_for_issues(self.rubygems.install_local(target), PackagingError)
        return target

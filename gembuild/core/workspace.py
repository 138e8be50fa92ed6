"""Host-side staging and output directories for a single build run."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import List, Optional

from ..common.models import BuildRequest
from .config import BuilderConfig


class BuildWorkspace:
    """
    Context-managed host directories used by one build.

    ``staging`` receives the files copied out of the container and ``output``
    holds the precompiled tree and the rebuilt ``.gem``. Both are deleted when
    the context exits unless ``keep_output`` is configured.

    Usage:
        with BuildWorkspace(request, config) as workspace:
            artifact = environment.extract_artifact(workspace.staging_dir)
    """

    def __init__(self, request: BuildRequest, config: BuilderConfig, logger: Optional[logging.Logger] = None):
        self.request = request
        self.config = config
        self.logger = logger or logging.getLogger(__name__)

    def __enter__(self) -> "BuildWorkspace":
        self.reset()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.config.keep_output:
            self.logger.info("Keeping build output in %s", self.output_dir)
            return
        self.cleanup()

    @property
    def staging_dir(self) -> Path:
        return self.config.staging_path

    @property
    def output_dir(self) -> Path:
        return self.config.output_path

    @property
    def gem_path(self) -> Path:
        return self.output_dir / self.request.gem_filename

    def _stale_paths(self) -> List[Path]:
        return [
            self.staging_dir / self.request.full_name,
            self.staging_dir / self.request.gemspec_filename,
        ]

    def reset(self) -> None:
        """Remove leftovers of a previous run for the same gem so copies land cleanly."""
        for path in self._stale_paths():
            if path.is_dir():
                self.logger.debug("Removing stale %s", path)
                shutil.rmtree(path, ignore_errors=True)
            elif path.exists():
                path.unlink()

    def cleanup(self) -> None:
        """Delete the staging and output trees. Safe when they never existed."""
        for directory in (self.staging_dir, self.output_dir):
            if directory.exists():
                self.logger.debug("Removing %s", directory)
                shutil.rmtree(directory, ignore_errors=True)

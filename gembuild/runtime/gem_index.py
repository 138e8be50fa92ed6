"""Pre-flight lookup of a gem version on the rubygems.org API."""

from __future__ import annotations

import logging
from typing import List, Optional
from urllib.parse import quote

import requests

from gembuild.core.config import BuilderConfig

from .issues import RuntimeIssue


class RubyGemsIndex:
    """Ask the gem index whether ``name`` has a release ``version``."""

    def __init__(
        self,
        config: BuilderConfig,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    def versions_url(self, gem_name: str) -> str:
        return f"{self.config.rubygems_url.rstrip('/')}/api/v1/versions/{quote(gem_name, safe='')}.json"

    def check_release(self, gem_name: str, gem_version: str) -> List[RuntimeIssue]:
        """
        Look the release up once; no retries.

        Returns:
            An error issue when the index says the gem or version does not
            exist, a warning issue when the index could not be consulted,
            and nothing when the release is listed.
        """
        url = self.versions_url(gem_name)
        self.logger.debug("Checking gem index: GET %s", url)
        try:
            response = self.session.get(url, timeout=self.config.index_timeout)
        except requests.RequestException as exc:
            return [self._unverified(gem_name, f"request failed: {exc}")]

        if response.status_code == 404:
            return [
                RuntimeIssue(
                    code="GEM_NOT_FOUND",
                    message=f"Gem '{gem_name}' does not exist on {self.config.rubygems_url}",
                    subject=gem_name,
                )
            ]
        if response.status_code != 200:
            return [self._unverified(gem_name, f"index returned status {response.status_code}")]

        try:
            releases = response.json()
        except ValueError:
            return [self._unverified(gem_name, "index returned invalid JSON")]

        available = {release.get("number") for release in releases if isinstance(release, dict)}
        if gem_version not in available:
            return [
                RuntimeIssue(
                    code="GEM_VERSION_NOT_FOUND",
                    message=f"Gem '{gem_name}' has no version {gem_version} on {self.config.rubygems_url}",
                    subject=f"{gem_name}-{gem_version}",
                )
            ]

        self.logger.debug("Gem index lists %s %s", gem_name, gem_version)
        return []

    def _unverified(self, gem_name: str, reason: str) -> RuntimeIssue:
        return RuntimeIssue(
            code="GEM_INDEX_UNAVAILABLE",
            message=f"Could not verify {gem_name} against the gem index ({reason}); continuing",
            severity="warning",
            subject=gem_name,
        )

"""Configuration model and loader for the gem builder."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml
from pydantic import BaseModel, Field, field_validator


class BuilderConfig(BaseModel):
    """Settings for one gem build run."""

    # Docker settings
    docker_bin: str = Field(default_factory=lambda: os.environ.get("GEMBUILD_DOCKER_BIN", "docker"))
    base_image: str = Field(
        default_factory=lambda: os.environ.get("GEMBUILD_BASE_IMAGE", "ruby:2.5-slim"),
        description="Base image providing the Ruby runtime the gem is compiled against.",
    )
    platform: str = Field(
        default_factory=lambda: os.environ.get("GEMBUILD_PLATFORM", "linux/arm64"),
        description="Target platform passed to docker build/run. One architecture per run.",
    )
    system_packages: List[str] = Field(
        default_factory=lambda: ["build-essential", "wget"],
        description="apt packages installed into the build image.",
    )
    container_workdir: str = "/build"

    # Host RubyGems settings
    gem_bin: str = Field(default_factory=lambda: os.environ.get("GEMBUILD_GEM_BIN", "gem"))
    ruby_bin: str = Field(default_factory=lambda: os.environ.get("GEMBUILD_RUBY_BIN", "ruby"))
    rubygems_url: str = Field(default_factory=lambda: os.environ.get("GEMBUILD_RUBYGEMS_URL", "https://rubygems.org"))
    index_timeout: float = Field(default=10.0, description="Seconds to wait for the rubygems.org API.")

    # Directory settings
    work_dir: str = "."
    staging_dir_name: str = "output"
    output_dir_name: str = "precompiled"

    # Packaging settings
    binary_suffixes: List[str] = Field(
        default_factory=lambda: [".so"],
        description="File suffixes identifying compiled extension objects.",
    )

    # Behaviour toggles
    uninstall_existing: bool = Field(default=True, description="Uninstall host copies of the gem before building.")
    check_index: bool = Field(default=True, description="Verify name/version against rubygems.org before building.")
    keep_output: bool = Field(default=False, description="Keep staging and output directories after the run.")
    strict_verify: bool = Field(default=False, description="Exit non-zero when the gem cannot be required.")

    @field_validator("binary_suffixes")
    @classmethod
    def _normalize_suffixes(cls, suffixes: List[str]) -> List[str]:
        normalized = []
        for suffix in suffixes:
            suffix = suffix.strip()
            if not suffix:
                continue
            normalized.append(suffix if suffix.startswith(".") else f".{suffix}")
        if not normalized:
            raise ValueError("At least one binary suffix is required.")
        return normalized

    @field_validator("platform", "base_image")
    @classmethod
    def _require_value(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Value cannot be empty.")
        return value.strip()

    @property
    def work_path(self) -> Path:
        return Path(self.work_dir)

    @property
    def staging_path(self) -> Path:
        return self.work_path / self.staging_dir_name

    @property
    def output_path(self) -> Path:
        return self.work_path / self.output_dir_name

    def with_overrides(self, **overrides: Any) -> "BuilderConfig":
        """Return a copy with the non-None overrides applied."""
        values = {key: value for key, value in overrides.items() if value is not None}
        if not values:
            return self
        return self.model_validate({**self.model_dump(), **values})

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


def load_builder_config(path: str | Path) -> BuilderConfig:
    """Load builder settings from a YAML or JSON file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Builder config file not found: {path}")

    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise ValueError(f"Builder config file {path} is not valid YAML: {exc}") from exc
    elif suffix == ".json":
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"Builder config file {path} is not valid JSON: {exc}") from exc
    else:
        raise ValueError(f"Unsupported builder config format: {suffix}")

    if data is None:
        raise ValueError(f"Builder config file {path} is empty.")
    if not isinstance(data, dict):
        raise ValueError(f"Builder config file {path} must contain a mapping.")

    return BuilderConfig.model_validate(data)


__all__ = ["BuilderConfig", "load_builder_config"]

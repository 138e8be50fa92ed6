"""Unit tests for the build request value object."""

from __future__ import annotations

import re
from dataclasses import FrozenInstanceError

import pytest

from gembuild.common.models import BuildRequest, derive_base_name, derive_container_id


@pytest.mark.parametrize(
    "gem_name",
    ["widgetlib", "semacode-ruby19", "mysql2", "ruby_parser", "foo.bar", "näive gem", "a/b:c", "---", ""],
)
def test_container_id_alphabet_and_suffix(gem_name: str) -> None:
    container_id = derive_container_id(gem_name)

    assert re.fullmatch(r"[A-Za-z0-9-]*", container_id)
    assert container_id.endswith("-builder")


def test_container_id_replaces_each_character() -> None:
    assert derive_container_id("semacode-ruby19") == "semacode-ruby19-builder"
    assert derive_container_id("ruby_parser") == "ruby-parser-builder"
    assert derive_container_id("foo..bar") == "foo--bar-builder"


def test_container_id_collision_is_deterministic() -> None:
    # Names that only differ in replaced characters share an id.
    assert derive_container_id("foo_bar") == derive_container_id("foo.bar")


def test_build_request_derived_names() -> None:
    request = BuildRequest("Widget_Lib", "1.2.0")

    assert request.container_id == "Widget-Lib-builder"
    assert request.image_tag == "widget-lib-builder"
    assert request.full_name == "Widget_Lib-1.2.0"
    assert request.gem_filename == "Widget_Lib-1.2.0.gem"
    assert request.gemspec_filename == "Widget_Lib-1.2.0.gemspec"
    assert request.dockerfile_name == "Dockerfile.Widget_Lib"


def test_build_request_is_immutable() -> None:
    request = BuildRequest("widgetlib", "1.2.0")

    with pytest.raises(FrozenInstanceError):
        request.gem_name = "other"  # type: ignore[misc]


@pytest.mark.parametrize(
    ("gem_name", "expected"),
    [
        ("semacode-ruby19", "semacode"),
        ("ruby_parser", "ruby"),
        ("nokogiri", "nokogiri"),
        ("a-b_c", "a"),
    ],
)
def test_derive_base_name(gem_name: str, expected: str) -> None:
    assert derive_base_name(gem_name) == expected


def test_require_candidates_base_name_first_without_duplicates() -> None:
    assert BuildRequest("semacode-ruby19", "0.7.4").require_candidates == ("semacode", "semacode-ruby19")
    assert BuildRequest("nokogiri", "1.13.10").require_candidates == ("nokogiri",)

"""Unit tests for structured gemspec editing."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import WIDGETLIB_GEMSPEC
from gembuild.packaging.gemspec import GemspecDocument

MULTILINE_GEMSPEC = """\
Gem::Specification.new do |spec|
  spec.name = 'oldlib'
  spec.version = '0.1.0'
  spec.extensions = ['ext/oldlib/extconf.rb']
  spec.files = [
    'README.md',
    'ext/oldlib/extconf.rb',
    'lib/oldlib.rb',
  ]
  spec.extra_rdoc_files = ['README.md', 'ext/oldlib/oldlib.c']
end
"""

COMPUTED_FILES_GEMSPEC = """\
Gem::Specification.new do |s|
  s.name = "gitlib"
  s.files = `git ls-files -z`.split("\\x0")
end
"""


def test_untouched_document_renders_identically() -> None:
    for text in (WIDGETLIB_GEMSPEC, MULTILINE_GEMSPEC, COMPUTED_FILES_GEMSPEC):
        assert GemspecDocument.parse(text).render() == text


def test_parses_literal_file_list() -> None:
    document = GemspecDocument.parse(WIDGETLIB_GEMSPEC)

    assert document.file_list() == [
        "ext/widgetlib/extconf.rb",
        "ext/widgetlib/widgetlib.c",
        "lib/widgetlib.rb",
    ]
    assert document.has_attribute("extensions")
    assert document.file_list("require_paths") == ["lib"]


def test_computed_file_list_is_not_editable() -> None:
    document = GemspecDocument.parse(COMPUTED_FILES_GEMSPEC)

    assert document.has_attribute("files")
    assert document.file_list() is None
    with pytest.raises(ValueError):
        document.prepend_files(["lib/gitlib.so"])


def test_remove_extensions_attribute() -> None:
    document = GemspecDocument.parse(WIDGETLIB_GEMSPEC)

    assert document.remove_attribute("extensions") == 1
    rendered = document.render()

    assert "s.extensions" not in rendered
    assert 's.name = "widgetlib".freeze' in rendered
    assert rendered.rstrip().endswith("end")


def test_remove_ext_entries_keeps_everything_else() -> None:
    document = GemspecDocument.parse(WIDGETLIB_GEMSPEC)

    removed = document.remove_file_entries("ext/")

    assert removed == ["ext/widgetlib/extconf.rb", "ext/widgetlib/widgetlib.c"]
    assert document.file_list() == ["lib/widgetlib.rb"]
    assert '  s.files = ["lib/widgetlib.rb".freeze]' in document.render()


def test_prepend_files_inserts_after_opening_bracket() -> None:
    document = GemspecDocument.parse(WIDGETLIB_GEMSPEC)
    document.remove_file_entries("ext/")

    added = document.prepend_files(["lib/widgetlib/widgetlib.so", "lib/widgetlib.rb"])

    assert added == ["lib/widgetlib/widgetlib.so"]
    assert document.file_list() == ["lib/widgetlib/widgetlib.so", "lib/widgetlib.rb"]
    assert (
        '  s.files = ["lib/widgetlib/widgetlib.so".freeze, "lib/widgetlib.rb".freeze]' in document.render()
    )


def test_multiline_lists_are_edited_structurally() -> None:
    document = GemspecDocument.parse(MULTILINE_GEMSPEC)

    assert document.file_list() == ["README.md", "ext/oldlib/extconf.rb", "lib/oldlib.rb"]

    document.remove_attribute("extensions")
    document.remove_file_entries("ext/")
    document.prepend_files(["lib/oldlib/oldlib.so"])
    rendered = document.render()

    assert "ext/" not in rendered
    assert '  spec.files = ["lib/oldlib/oldlib.so", "README.md", "lib/oldlib.rb"]' in rendered
    assert '  spec.extra_rdoc_files = ["README.md"]' in rendered
    # Re-parsing the output yields the same structure.
    assert GemspecDocument.parse(rendered).file_list() == ["lib/oldlib/oldlib.so", "README.md", "lib/oldlib.rb"]


def test_set_file_list_adds_missing_assignment_in_document_style() -> None:
    text = WIDGETLIB_GEMSPEC.replace(
        '  s.files = ["ext/widgetlib/extconf.rb".freeze, "ext/widgetlib/widgetlib.c".freeze, "lib/widgetlib.rb".freeze]\n',
        "",
    )
    document = GemspecDocument.parse(text)
    assert document.file_list() is None

    document.set_file_list(["lib/widgetlib.rb"])
    rendered = document.render()

    assert '  s.files = ["lib/widgetlib.rb".freeze]' in rendered
    lines = rendered.splitlines()
    assert lines.index('  s.files = ["lib/widgetlib.rb".freeze]') < lines.index("end")


def test_dangling_files(tmp_path: Path) -> None:
    (tmp_path / "lib").mkdir()
    (tmp_path / "lib" / "widgetlib.rb").write_text("")
    document = GemspecDocument.parse(WIDGETLIB_GEMSPEC)

    assert document.dangling_files(tmp_path) == ["ext/widgetlib/extconf.rb", "ext/widgetlib/widgetlib.c"]

    document.remove_file_entries("ext/")
    assert document.dangling_files(tmp_path) == []


def test_entries_with_quotes_are_escaped() -> None:
    document = GemspecDocument.parse(WIDGETLIB_GEMSPEC)
    document.set_file_list(['lib/odd"name.rb'])

    reparsed = GemspecDocument.parse(document.render())

    assert reparsed.file_list() == ['lib/odd"name.rb']

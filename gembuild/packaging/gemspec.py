"""
Structured view of a Ruby gemspec file.

Gemspecs written by RubyGems are plain Ruby of the form::

    Gem::Specification.new do |s|
      s.name = "widgetlib".freeze
      s.extensions = ["ext/widgetlib/extconf.rb".freeze]
      s.files = ["lib/widgetlib.rb".freeze, "ext/widgetlib/widgetlib.c".freeze]
    end

``GemspecDocument`` splits such a file into attribute assignments and
verbatim lines. String-array attributes are exposed as ordered path lists so
they can be edited structurally, and only edited assignments are re-rendered.
Everything else is written back unchanged.
"""

from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

FILE_LIST_ATTRIBUTES = ("files", "test_files", "extra_rdoc_files")

_ASSIGNMENT = re.compile(r"^(?P<indent>\s*)(?P<receiver>[a-z_]\w*)\.(?P<attribute>\w+)\s*=(?![=~>])\s*(?P<value>.*?)\s*$")
_STRING = re.compile(r"""(?P<quote>["'])(?P<body>(?:\\.|(?!(?P=quote)).)*)(?P=quote)(?P<freeze>\.freeze)?""")


@dataclass
class RawLine:
    """A line the document does not interpret."""

    text: str

    def render(self) -> List[str]:
        return [self.text]


@dataclass
class Assignment:
    """``<receiver>.<attribute> = <value>``, possibly spanning several lines."""

    indent: str
    receiver: str
    attribute: str
    value: str
    source_lines: List[str]
    entries: Optional[List[str]] = None
    freeze: bool = True
    dirty: bool = False

    @property
    def is_string_list(self) -> bool:
        return self.entries is not None

    def set_entries(self, entries: Sequence[str]) -> None:
        self.entries = list(entries)
        self.dirty = True

    def render(self) -> List[str]:
        if not self.dirty:
            return list(self.source_lines)
        suffix = ".freeze" if self.freeze else ""
        items = ", ".join(f'"{_escape(entry)}"{suffix}' for entry in self.entries or [])
        return [f"{self.indent}{self.receiver}.{self.attribute} = [{items}]"]


Statement = Union[RawLine, Assignment]


@dataclass
class GemspecDocument:
    """Ordered statements of a gemspec, editable by attribute."""

    statements: List[Statement] = field(default_factory=list)
    trailing_newline: bool = True

    @classmethod
    def parse(cls, text: str) -> "GemspecDocument":
        lines = text.splitlines()
        statements: List[Statement] = []
        index = 0
        while index < len(lines):
            line = lines[index]
            match = _ASSIGNMENT.match(line)
            if not match or line.lstrip().startswith("#"):
                statements.append(RawLine(line))
                index += 1
                continue

            source = [line]
            value = match.group("value")
            depth = _bracket_depth(value)
            while depth > 0 and index + 1 < len(lines):
                index += 1
                source.append(lines[index])
                value = f"{value}\n{lines[index]}"
                depth += _bracket_depth(lines[index])
            index += 1

            entries = _parse_string_list(value)
            statements.append(
                Assignment(
                    indent=match.group("indent"),
                    receiver=match.group("receiver"),
                    attribute=match.group("attribute"),
                    value=value,
                    source_lines=source,
                    entries=entries,
                    freeze=".freeze" in value if entries else True,
                )
            )
        return cls(statements=statements, trailing_newline=text.endswith("\n"))

    @classmethod
    def load(cls, path: Path) -> "GemspecDocument":
        return cls.parse(Path(path).read_text(encoding="utf-8"))

    def render(self) -> str:
        lines: List[str] = []
        for statement in self.statements:
            lines.extend(statement.render())
        text = "\n".join(lines)
        return f"{text}\n" if self.trailing_newline else text

    def save(self, path: Path) -> None:
        Path(path).write_text(self.render(), encoding="utf-8")

    # Attribute access

    def assignments(self, attribute: Optional[str] = None) -> List[Assignment]:
        return [
            statement
            for statement in self.statements
            if isinstance(statement, Assignment) and (attribute is None or statement.attribute == attribute)
        ]

    def has_attribute(self, attribute: str) -> bool:
        return bool(self.assignments(attribute))

    def remove_attribute(self, attribute: str) -> int:
        """Drop every assignment to ``attribute``; returns how many were removed."""
        before = len(self.statements)
        self.statements = [
            statement
            for statement in self.statements
            if not (isinstance(statement, Assignment) and statement.attribute == attribute)
        ]
        return before - len(self.statements)

    def file_list(self, attribute: str = "files") -> Optional[List[str]]:
        """Entries of a literal string-array attribute, or None when it is absent or computed."""
        for assignment in self.assignments(attribute):
            if assignment.is_string_list:
                return list(assignment.entries or [])
        return None

    def set_file_list(self, entries: Sequence[str], attribute: str = "files") -> None:
        """Replace the attribute's value with a literal list, adding the assignment if needed."""
        existing = self.assignments(attribute)
        if existing:
            existing[0].set_entries(entries)
            duplicates = {id(assignment) for assignment in existing[1:]}
            self.statements = [statement for statement in self.statements if id(statement) not in duplicates]
            return

        indent, receiver = self._dominant_style()
        assignment = Assignment(
            indent=indent,
            receiver=receiver,
            attribute=attribute,
            value="[]",
            source_lines=[],
            entries=[],
            freeze=self._uses_freeze(),
        )
        assignment.set_entries(entries)
        self.statements.insert(self._insertion_index(indent), assignment)

    # File list edits

    def remove_file_entries(self, prefix: str) -> List[str]:
        """Remove entries starting with ``prefix`` from every file-list attribute."""
        removed: List[str] = []
        for assignment in self.assignments():
            if assignment.attribute not in FILE_LIST_ATTRIBUTES or not assignment.is_string_list:
                continue
            kept = [entry for entry in assignment.entries or [] if not entry.startswith(prefix)]
            dropped = [entry for entry in assignment.entries or [] if entry.startswith(prefix)]
            if dropped:
                assignment.set_entries(kept)
                removed.extend(dropped)
        return removed

    def prepend_files(self, paths: Iterable[str]) -> List[str]:
        """
        Insert paths not yet listed right after the ``files`` opening bracket.

        Returns:
            The paths that were actually added, in the order given.

        Raises:
            ValueError: The document has no literal ``files`` list.
        """
        current = self.file_list("files")
        if current is None:
            raise ValueError("gemspec has no literal files list")
        added = []
        for path in paths:
            if path not in current and path not in added:
                added.append(path)
        if added:
            self.set_file_list(added + current)
        return added

    def dangling_files(self, root: Path) -> List[str]:
        """Listed paths that are not regular files under ``root``."""
        missing: List[str] = []
        for attribute in FILE_LIST_ATTRIBUTES:
            for entry in self.file_list(attribute) or []:
                if not (root / entry).is_file() and entry not in missing:
                    missing.append(entry)
        return missing

    def _dominant_style(self) -> tuple[str, str]:
        assignments = self.assignments()
        if not assignments:
            return "  ", "s"
        indent = min((a.indent for a in assignments), key=len)
        receiver = Counter(a.receiver for a in assignments).most_common(1)[0][0]
        return indent, receiver

    def _uses_freeze(self) -> bool:
        return any(".freeze" in a.value for a in self.assignments())

    def _insertion_index(self, indent: str) -> int:
        last = None
        for position, statement in enumerate(self.statements):
            if isinstance(statement, Assignment) and statement.indent == indent:
                last = position
        if last is not None:
            return last + 1
        for position in range(len(self.statements) - 1, -1, -1):
            statement = self.statements[position]
            if isinstance(statement, RawLine) and statement.text.strip() == "end":
                return position
        return len(self.statements)


def _bracket_depth(text: str) -> int:
    """Net ``[``/``]`` nesting of ``text``, ignoring brackets inside string literals."""
    depth = 0
    quote: Optional[str] = None
    escaped = False
    for char in text:
        if quote:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == quote:
                quote = None
            continue
        if char in "\"'":
            quote = char
        elif char == "#":
            break
        elif char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
    return depth


def _parse_string_list(value: str) -> Optional[List[str]]:
    """Entries of a literal array of strings, or None for any other expression."""
    body = value.strip()
    if not body.startswith("[") or not body.endswith("]"):
        return None
    inner = body[1:-1]
    entries: List[str] = []
    position = 0
    for match in _STRING.finditer(inner):
        separator = inner[position:match.start()]
        if separator.strip(" \t\r\n,"):
            return None
        entries.append(_unescape(match.group("body")))
        position = match.end()
    if inner[position:].strip(" \t\r\n,"):
        return None
    return entries


def _unescape(body: str) -> str:
    return re.sub(r"\\(.)", r"\1", body)


def _escape(path: str) -> str:
    return path.replace("\\", "\\\\").replace('"', '\\"').replace("#{", "\\#{")

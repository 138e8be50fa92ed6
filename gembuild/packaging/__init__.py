"""Gemspec editing and precompiled gem packaging."""

from .gemspec import FILE_LIST_ATTRIBUTES, Assignment, GemspecDocument, RawLine
from .packager import GemPackager, find_compiled_binaries

__all__ = [
    "FILE_LIST_ATTRIBUTES",
    "Assignment",
    "GemspecDocument",
    "RawLine",
    "GemPackager",
    "find_compiled_binaries",
]

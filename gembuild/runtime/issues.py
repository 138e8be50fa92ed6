"""Issue values reported by runtime helpers, and their conversion to pipeline errors."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Optional, Type

from ..common.command_runner import CommandResult
from ..common.errors import GemBuildError

IssueSeverity = Literal["error", "warning", "info"]


@dataclass(slots=True)
class RuntimeIssue:
    """Problem observed while driving Docker or RubyGems."""

    code: str
    message: str
    severity: IssueSeverity = "error"
    subject: Optional[str] = None
    details: Optional[str] = None

    def is_error(self) -> bool:
        """Return True when the issue is considered an error."""
        return self.severity == "error"

    @classmethod
    def from_command(
        cls,
        code: str,
        message: str,
        result: CommandResult,
        *,
        subject: Optional[str] = None,
    ) -> "RuntimeIssue":
        """Build an error issue from a failed command, keeping its output as details."""
        if not result.tool_available:
            return cls(
                code=f"{code}_TOOL_NOT_FOUND",
                message=f"{message}: '{result.command[0]}' is not installed or not on PATH",
                subject=subject,
            )
        return cls(
            code=code,
            message=message,
            subject=subject,
            details=result.error_message(f"'{result.display}' exited with status {result.return_code}"),
        )


def raise_for_issues(issues: Iterable[RuntimeIssue], error_cls: Type[GemBuildError]) -> None:
    """Raise ``error_cls`` for the first error issue, if any."""
    for issue in issues:
        if issue.is_error():
            raise error_cls(issue.message, issue.details)

"""
Request and result types for sandbox execution.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..core.exceptions import ExecutionError, GuestRuntimeError, GuestSyntaxError


class FailureKind(str, Enum):
    """Why an execution failed."""

    SYNTAX = "syntax"
    RUNTIME = "runtime"
    TIMEOUT = "timeout"
    HOST = "host"


@dataclass(slots=True)
class ExecutionRequest:
    """One guest snippet to run."""

    code: str
    timeout_ms: int = 30000
    context: Any = None


@dataclass(slots=True)
class ExecutionResult:
    """
    Outcome of one execution.

    ``output`` is meaningful only when ``ok``; ``error`` only when not.
    ``logs`` is always present, including the lines emitted before a failure.
    """

    ok: bool
    output: Any = None
    logs: list[str] = field(default_factory=list)
    error: str | None = None
    kind: FailureKind | None = None
    error_name: str | None = None  # Guest-side error class, e.g. "SyntaxError"
    duration_ms: float = 0.0

    @classmethod
    def success(cls, output: Any, logs: list[str] | None = None) -> "ExecutionResult":
        return cls(ok=True, output=output, logs=list(logs or []))

    @classmethod
    def failure(
        cls,
        error: str,
        kind: FailureKind,
        logs: list[str] | None = None,
        error_name: str | None = None,
    ) -> "ExecutionResult":
        return cls(ok=False, logs=list(logs or []), error=error, kind=kind, error_name=error_name)

    def to_dict(self) -> dict[str, Any]:
        """Wire form: ``{ok, output, logs}`` or ``{ok, logs, error}``."""
        if self.ok:
            return {"ok": True, "output": self.output, "logs": list(self.logs)}
        return {"ok": False, "logs": list(self.logs), "error": self.error}

    def as_exception(self) -> ExecutionError | None:
        """The failure as an exception carrying a user message and recovery hint."""
        if self.ok:
            return None
        message = self.error or "Unknown error"
        if self.kind is FailureKind.SYNTAX:
            return GuestSyntaxError(message)
        if self.kind is FailureKind.RUNTIME:
            return GuestRuntimeError(message, self.error_name)
        return ExecutionError(message)

"""
Custom exceptions for codemode.

Provides specific exception types for better error handling and user feedback.
"""


class CodeModeError(Exception):
    """Base exception for codemode errors."""


class ConfigurationError(CodeModeError):
    """Error in configuration."""


# Capability Errors


class CapabilityError(CodeModeError):
    """A host capability call failed."""


class CapabilityNotFoundError(CapabilityError):
    """A capability target (file, best case, guide) does not exist."""

    def __init__(self, target: str):
        super().__init__(f"NotFound: {target}")
        self.target = target
        self.user_message = f"'{target}' does not exist."
        self.recovery_hint = "Use filesystem.searchFiles({ path, pattern }) to locate it first."


class UnknownCapabilityError(CapabilityError):
    """A guest asked for a capability or method outside the binding table."""

    def __init__(self, capability: str, method: str | None = None, available: list[str] | None = None):
        target = f"{capability}.{method}" if method else capability
        listing = ", ".join(available or []) or "(none)"
        super().__init__(f"{target} is not a function. Available methods: {listing}")
        self.capability = capability
        self.method = method
        self.user_message = f"'{target}' is not provided by the sandbox."
        self.recovery_hint = f"Use one of: {listing}"


# Execution Errors


class ExecutionError(CodeModeError):
    """Base exception for execution errors."""


class GuestSyntaxError(ExecutionError):
    """Transformed guest code failed to parse."""

    def __init__(self, message: str):
        super().__init__(message)
        self.user_message = "The snippet could not be parsed."
        self.recovery_hint = "Remove import/export, type annotations and raw markup, then retry."


class GuestRuntimeError(ExecutionError):
    """Guest code parsed but threw or rejected."""

    def __init__(self, message: str, name: str | None = None):
        super().__init__(message)
        self.name = name
        self.user_message = "The snippet raised an error while running."
        self.recovery_hint = "Check the logs returned with the result for the last successful step."


class ExecutionTimeoutError(ExecutionError):
    """Guest code exceeded its wall-clock budget."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"Execution timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms
        self.user_message = f"Code execution took longer than {timeout_ms}ms and was terminated."
        self.recovery_hint = f"Avoid unbounded loops or retry with timeoutMs={timeout_ms * 2}"


class RuntimeNotFoundError(ExecutionError):
    """The guest runtime executable is not installed."""

    def __init__(self, executable: str):
        super().__init__(f"Guest runtime executable not found: {executable}")
        self.executable = executable
        self.user_message = "Node.js is required to run snippets but was not found."
        self.recovery_hint = "Install Node.js or set sandbox.node_executable / CODEMODE_NODE."


def format_error_message(error: Exception) -> str:
    """
    Format an error message for display to user.

    Args:
        error: Exception to format

    Returns:
        Formatted error message with recovery hints
    """
    if isinstance(error, CodeModeError) and hasattr(error, "user_message"):
        message = error.user_message
        if hasattr(error, "recovery_hint"):
            message += f"\n\nHint: {error.recovery_hint}"
        return message
    else:
        return str(error)

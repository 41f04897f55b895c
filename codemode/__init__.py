"""
codemode: run model-written JavaScript/TypeScript snippets in a sandbox.

Snippets are normalized into plain async JavaScript, executed in an isolated
Node child process that can reach only the ``filesystem``, ``bestcase``,
``guides`` and ``metadata`` capabilities, and their failures are rewritten
into actionable remediation messages.
"""

__version__ = "0.1.0"

from .core.config import ConfigManager, ProjectConfig
from .core.exceptions import CodeModeError
from .sandbox import ExecutionResult, FailureKind, SandboxEngine, execute, execute_async

__all__ = [
    "CodeModeError",
    "ConfigManager",
    "ExecutionResult",
    "FailureKind",
    "ProjectConfig",
    "SandboxEngine",
    "__version__",
    "execute",
    "execute_async",
]

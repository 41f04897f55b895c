"""
Sandbox engine: the ``execute`` entry point.

snippet -> SourceTransformer -> ExecutionHost -> ExecutionResult, with the
OutcomeClassifier rewriting guest syntax/runtime errors. The engine never
raises to its caller; every failure becomes ``ExecutionResult(ok=False)``.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterable
from typing import Any

from ..capabilities import build_default_facades
from ..core.config import ProjectConfig
from ..core.logging import get_logger, safe_preview
from .bindings import CapabilityFacade, CapabilityTable
from .classifier import OutcomeClassifier
from .host import ExecutionHost
from .transformer import SourceTransformer
from .types import ExecutionRequest, ExecutionResult, FailureKind

logger = get_logger(__name__)


class SandboxEngine:
    """
    Executes guest snippets against a fixed capability table.

    Façades are injected; when omitted, defaults are built from the
    configuration. Façades are shared by every call made through this engine
    and are not locked, so concurrent calls that write the same store race
    on that store.

    Args:
        config: Project configuration (defaults plus environment overrides)
        facades: Capability façades to bind instead of the defaults
        host: Execution host override, mainly for tests
        transformer: Source transformer override
    """

    def __init__(
        self,
        config: ProjectConfig | None = None,
        *,
        facades: Iterable[CapabilityFacade] | None = None,
        host: ExecutionHost | None = None,
        transformer: SourceTransformer | None = None,
    ):
        self.config = config or ProjectConfig.create_default()
        sandbox = self.config.sandbox
        self.transformer = transformer or SourceTransformer(
            projects_root=sandbox.projects_root,
            region_aware=sandbox.region_aware_rewrites,
        )
        self.host = host or ExecutionHost(
            node_executable=sandbox.node_executable,
            env_allowlist=sandbox.env_allowlist,
            max_log_lines=sandbox.max_log_lines,
            max_output_chars=sandbox.max_output_chars,
        )
        if facades is None:
            facades = build_default_facades(self.config)
        self.bindings = CapabilityTable.from_facades(facades)
        self.classifier = OutcomeClassifier(self.bindings.manifest())

    def resolve_timeout(self, timeout_ms: Any) -> int:
        """Positive integer timeouts are used as given; anything else means the default."""
        default = self.config.sandbox.default_timeout_ms
        if isinstance(timeout_ms, bool):
            return default
        if isinstance(timeout_ms, float) and timeout_ms.is_integer():
            timeout_ms = int(timeout_ms)
        if isinstance(timeout_ms, int) and timeout_ms > 0:
            return timeout_ms
        return default

    def _preview(self, code: str) -> str:
        logging_cfg = self.config.logging
        return safe_preview(
            code,
            max_length=logging_cfg.max_preview_length,
            mask=True if logging_cfg.mask_sensitive_data else None,
        )

    async def execute_async(
        self, code: str, timeout_ms: int | None = None, *, context: Any = None
    ) -> ExecutionResult:
        """Run one snippet and return its result."""
        timeout = self.resolve_timeout(timeout_ms)
        if not isinstance(code, str) or not code.strip():
            return ExecutionResult.failure("Code is required", FailureKind.HOST)

        logger.info(f"Executing snippet (timeout {timeout}ms): {self._preview(code)}")

        try:
            transformed = self.transformer.transform(code)
            injected: dict[str, Any] = {}
            if context is not None:
                injected["context"] = json.loads(json.dumps(context, default=str))
            result = await self.host.run(transformed, timeout, self.bindings, injected)
        except Exception as e:
            logger.error(f"Execution failed: {e}")
            result = ExecutionResult.failure(f"Execution error: {e!s}", FailureKind.HOST)

        if not result.ok and result.kind in (FailureKind.SYNTAX, FailureKind.RUNTIME):
            result.error = self.classifier.classify(result.error or "", code)

        if result.ok:
            logger.info(f"Execution succeeded with {len(result.logs)} log line(s)")
        else:
            kind = result.kind.value if result.kind else "unknown"
            logger.info(f"Execution failed ({kind}): {safe_preview(result.error or '', 200)}")
        return result

    async def run(self, request: ExecutionRequest) -> ExecutionResult:
        return await self.execute_async(request.code, request.timeout_ms, context=request.context)

    def execute(
        self, code: str, timeout_ms: int | None = None, *, context: Any = None
    ) -> ExecutionResult:
        """Blocking form of :meth:`execute_async`.

        Inside a running event loop this returns a host failure; await
        :meth:`execute_async` there instead.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.execute_async(code, timeout_ms, context=context))
        logger.warning("execute() called from a running event loop")
        return ExecutionResult.failure(
            "execute() cannot block inside a running event loop; await execute_async() instead",
            FailureKind.HOST,
        )


async def execute_async(
    code: str,
    timeout_ms: int | None = None,
    *,
    context: Any = None,
    engine: SandboxEngine | None = None,
) -> ExecutionResult:
    return await (engine or SandboxEngine()).execute_async(code, timeout_ms, context=context)


def execute(
    code: str,
    timeout_ms: int | None = None,
    *,
    context: Any = None,
    engine: SandboxEngine | None = None,
) -> ExecutionResult:
    """Run *code* with a fresh default engine unless one is given."""
    return (engine or SandboxEngine()).execute(code, timeout_ms, context=context)

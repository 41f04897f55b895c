"""
Execution host for guest snippets.

Runs transformed code in a short-lived Node.js child process, serves the
child's capability calls, collects its log lines in emission order and
enforces the wall-clock timeout by killing the child.
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import subprocess
import tempfile
import time
from collections import deque
from pathlib import Path
from typing import Any

from ..core.exceptions import ExecutionTimeoutError, RuntimeNotFoundError
from ..core.logging import get_logger
from .bindings import CapabilityTable, encode_result, rejection_message
from .bootstrap import RUNNER_FILENAME, RUNNER_SCRIPT
from .types import ExecutionResult, FailureKind

logger = get_logger(__name__)

# Single protocol lines can carry whole file contents.
STREAM_LIMIT = 16 * 1024 * 1024
STDERR_TAIL_CHARS = 2000


def wrap_entry_point(code: str) -> str:
    """Wrap guest code in the single async entry point the host runs."""
    return f"(async () => {{\n{code}\n}})()"


class LogBuffer:
    """Ordered log lines with a cap; overflow is summarized in one marker."""

    def __init__(self, max_lines: int = 1000):
        self.max_lines = max_lines
        self._lines: list[str] = []
        self._dropped = 0

    def append(self, line: str) -> None:
        if len(self._lines) < self.max_lines:
            self._lines.append(line)
        else:
            self._dropped += 1

    def lines(self) -> list[str]:
        if self._dropped:
            return [*self._lines, f"[TRUNCATED] {self._dropped} log lines omitted"]
        return list(self._lines)


class ExecutionHost:
    """
    Launches one Node.js child per run.

    Args:
        node_executable: Node.js binary name or path
        runner_script: Source of the runner the child executes
        runner_filename: File name the runner is written to
        env_allowlist: Extra environment variables passed through to the child
        max_log_lines: Log lines kept per run before truncation
        max_output_chars: Largest serialized output returned as-is
    """

    def __init__(
        self,
        node_executable: str = "node",
        runner_script: str = RUNNER_SCRIPT,
        runner_filename: str = RUNNER_FILENAME,
        env_allowlist: list[str] | None = None,
        max_log_lines: int = 1000,
        max_output_chars: int = 100_000,
    ):
        self.node_executable = node_executable
        self.runner_script = runner_script
        self.runner_filename = runner_filename
        self.env_allowlist = list(env_allowlist or [])
        self.max_log_lines = max(1, int(max_log_lines))
        self.max_output_chars = max(1000, int(max_output_chars))

    def resolve_executable(self) -> str | None:
        found = shutil.which(self.node_executable)
        if found:
            return found
        if Path(self.node_executable).is_file():
            return self.node_executable
        return None

    def check_health(self, timeout_seconds: float = 2.5) -> tuple[bool, str]:
        """Report whether the guest runtime can be started."""
        executable = self.resolve_executable()
        if executable is None:
            return False, f"{self.node_executable} not found on PATH"
        try:
            result = subprocess.run(
                [executable, "--version"],
                capture_output=True,
                text=True,
                timeout=timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired:
            return False, f"{self.node_executable} --version timed out"
        except OSError as e:
            return False, f"{self.node_executable} could not be started: {e}"

        if result.returncode != 0:
            detail = (result.stderr or result.stdout).strip() or "runtime unavailable"
            return False, detail
        return True, f"runtime ready ({result.stdout.strip() or 'unknown version'})"

    def _get_safe_env(self, workdir: str) -> dict[str, str]:
        safe_env = {
            "PATH": os.environ.get("PATH", os.defpath),
            "HOME": workdir,
            "TMPDIR": workdir,
        }
        for name in self.env_allowlist:
            value = os.environ.get(name)
            if value is not None:
                safe_env[name] = value
        return safe_env

    async def run(
        self,
        code: str,
        timeout_ms: int,
        bindings: CapabilityTable,
        globals: dict[str, Any] | None = None,
    ) -> ExecutionResult:
        """Run *code* under *timeout_ms* with *bindings* injected."""
        executable = self.resolve_executable()
        if executable is None:
            return ExecutionResult.failure(
                str(RuntimeNotFoundError(self.node_executable)), FailureKind.HOST
            )

        started = time.perf_counter()
        logs = LogBuffer(self.max_log_lines)
        workdir = tempfile.mkdtemp(prefix="codemode_")
        process: asyncio.subprocess.Process | None = None
        calls: set[asyncio.Task] = set()
        stderr_tail: deque[str] = deque()
        stderr_task: asyncio.Task | None = None
        write_lock = asyncio.Lock()

        try:
            runner_path = Path(workdir) / self.runner_filename
            runner_path.write_text(self.runner_script, encoding="utf-8")

            process = await asyncio.create_subprocess_exec(
                executable,
                str(runner_path),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=workdir,
                env=self._get_safe_env(workdir),
                limit=STREAM_LIMIT,
            )
            stderr_task = asyncio.create_task(self._drain_stderr(process, stderr_tail))

            await self._send(
                process,
                write_lock,
                {
                    "type": "start",
                    "code": wrap_entry_point(code),
                    "bindings": bindings.manifest(),
                    "globals": globals or {},
                    "timeoutMs": timeout_ms,
                },
            )

            try:
                outcome = await asyncio.wait_for(
                    self._pump(process, bindings, logs, calls, write_lock),
                    timeout=timeout_ms / 1000,
                )
            except asyncio.TimeoutError:
                logger.warning(f"Execution timeout after {timeout_ms}ms")
                return self._finish(
                    ExecutionResult.failure(
                        str(ExecutionTimeoutError(timeout_ms)), FailureKind.TIMEOUT, logs.lines()
                    ),
                    started,
                )

            if outcome is None:
                returncode = await process.wait()
                if stderr_task is not None:
                    await stderr_task
                tail = "".join(stderr_tail).strip()[-STDERR_TAIL_CHARS:]
                message = f"Guest runtime exited without a result (exit code {returncode})"
                if tail:
                    message += f": {tail}"
                return self._finish(
                    ExecutionResult.failure(message, FailureKind.HOST, logs.lines()), started
                )

            return self._finish(self._to_result(outcome, logs), started)

        except OSError as e:
            logger.error(f"Failed to start guest runtime: {e}")
            return self._finish(
                ExecutionResult.failure(
                    f"Failed to start guest runtime: {e}", FailureKind.HOST, logs.lines()
                ),
                started,
            )
        finally:
            pending_calls = list(calls)
            for task in pending_calls:
                task.cancel()
            if pending_calls:
                await asyncio.gather(*pending_calls, return_exceptions=True)
            if process is not None and process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()
            if stderr_task is not None and not stderr_task.done():
                stderr_task.cancel()
            shutil.rmtree(workdir, ignore_errors=True)

    def _finish(self, result: ExecutionResult, started: float) -> ExecutionResult:
        result.duration_ms = (time.perf_counter() - started) * 1000
        return result

    def _to_result(self, outcome: dict[str, Any], logs: LogBuffer) -> ExecutionResult:
        if outcome.get("ok"):
            return ExecutionResult.success(self._limit_output(outcome.get("output")), logs.lines())

        kind = FailureKind.SYNTAX if outcome.get("phase") == "compile" else FailureKind.RUNTIME
        error = outcome.get("error")
        return ExecutionResult.failure(
            str(error) if error is not None else "Unknown error",
            kind,
            logs.lines(),
            error_name=outcome.get("errorName"),
        )

    def _limit_output(self, output: Any) -> Any:
        text = json.dumps(output, default=str)
        if len(text) <= self.max_output_chars:
            return output
        return text[: self.max_output_chars] + "...[truncated]"

    async def _pump(
        self,
        process: asyncio.subprocess.Process,
        bindings: CapabilityTable,
        logs: LogBuffer,
        calls: set[asyncio.Task],
        write_lock: asyncio.Lock,
    ) -> dict[str, Any] | None:
        """Read child messages until the result arrives or the child exits."""
        assert process.stdout is not None
        while True:
            line = await process.stdout.readline()
            if not line:
                return None
            try:
                message = json.loads(line)
            except ValueError:
                logger.debug(f"Ignoring non-protocol output: {line[:200]!r}")
                continue
            if not isinstance(message, dict):
                continue

            kind = message.get("type")
            if kind == "log":
                logs.append(str(message.get("text", "")))
            elif kind == "call":
                task = asyncio.create_task(self._serve_call(process, bindings, message, write_lock))
                calls.add(task)
                task.add_done_callback(calls.discard)
            elif kind == "result":
                return message

    async def _serve_call(
        self,
        process: asyncio.subprocess.Process,
        bindings: CapabilityTable,
        message: dict[str, Any],
        write_lock: asyncio.Lock,
    ) -> None:
        call_id = message.get("id")
        capability = str(message.get("capability", ""))
        method = str(message.get("method", ""))
        args = message.get("args")
        if not isinstance(args, list):
            args = [] if args is None else [args]

        try:
            value = await bindings.dispatch(capability, method, args)
            reply = {"type": "reply", "id": call_id, "result": encode_result(value)}
        except Exception as exc:
            logger.debug(f"Capability call {capability}.{method} failed: {exc}")
            reply = {"type": "reply", "id": call_id, "error": rejection_message(exc)}
        await self._send(process, write_lock, reply)

    @staticmethod
    async def _send(
        process: asyncio.subprocess.Process, write_lock: asyncio.Lock, message: dict[str, Any]
    ) -> None:
        if process.stdin is None or process.stdin.is_closing():
            return
        data = (json.dumps(message, default=str) + "\n").encode("utf-8")
        async with write_lock:
            try:
                process.stdin.write(data)
                await process.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                logger.debug(f"Guest runtime closed its input before message {message.get('type')}")

    @staticmethod
    async def _drain_stderr(process: asyncio.subprocess.Process, tail: deque[str]) -> None:
        assert process.stderr is not None
        size = 0
        while True:
            chunk = await process.stderr.read(4096)
            if not chunk:
                return
            text = chunk.decode("utf-8", errors="replace")
            tail.append(text)
            size += len(text)
            while size > STDERR_TAIL_CHARS and len(tail) > 1:
                size -= len(tail.popleft())

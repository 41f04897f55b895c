"""
Tests for the execution host.

The host protocol is runtime-agnostic, so these tests drive it with a small
Python runner standing in for the Node.js bootstrap.
"""

import sys
import textwrap
import time

import pytest

from codemode.capabilities.filesystem import FilesystemCapability
from codemode.sandbox.bindings import CapabilityTable
from codemode.sandbox.host import ExecutionHost, LogBuffer, wrap_entry_point
from codemode.sandbox.types import FailureKind

FAKE_RUNNER = textwrap.dedent(
    """
    import json
    import sys
    import time


    def send(message):
        sys.stdout.write(json.dumps(message) + "\\n")
        sys.stdout.flush()


    start = json.loads(sys.stdin.readline())
    code = start["code"]

    if "COMPILE" in code:
        send({"type": "result", "ok": False, "error": "Unexpected token ':'",
              "errorName": "SyntaxError", "phase": "compile"})
    elif "SLEEP" in code:
        send({"type": "log", "level": "log", "text": "before sleep"})
        time.sleep(30)
    elif "CRASH" in code:
        sys.stderr.write("runner exploded\\n")
        sys.stderr.flush()
        sys.exit(3)
    elif "CALL" in code:
        method = "readFile" if "CALL_OK" in code else "list"
        send({"type": "call", "id": 1, "capability": "filesystem", "method": method,
              "args": [{"path": "a.txt"}]})
        reply = json.loads(sys.stdin.readline())
        if "error" in reply:
            send({"type": "result", "ok": False, "error": reply["error"],
                  "errorName": "Error", "phase": "run"})
        else:
            send({"type": "result", "ok": True, "output": json.loads(reply["result"])})
    elif "BIG" in code:
        send({"type": "result", "ok": True, "output": "x" * 5000})
    else:
        sys.stdout.write("not json\\n[1]\\n")
        send({"type": "log", "level": "log", "text": "hello"})
        send({"type": "result", "ok": True, "output": {
            "code": code,
            "bindings": start["bindings"],
            "globals": start["globals"],
            "timeoutMs": start["timeoutMs"],
        }})
    """
)


@pytest.fixture
def host():
    return ExecutionHost(
        node_executable=sys.executable,
        runner_script=FAKE_RUNNER,
        runner_filename="runner.py",
        max_output_chars=1000,
    )


@pytest.fixture
def filesystem_table(tmp_path):
    (tmp_path / "a.txt").write_text("alpha")
    return CapabilityTable.from_facades([FilesystemCapability(projects_root=str(tmp_path))])


class TestLogBuffer:
    def test_keeps_lines_in_order(self):
        logs = LogBuffer(max_lines=3)
        for line in ("a", "b"):
            logs.append(line)
        assert logs.lines() == ["a", "b"]

    def test_overflow_marker(self):
        logs = LogBuffer(max_lines=2)
        for line in ("a", "b", "c", "d"):
            logs.append(line)
        assert logs.lines() == ["a", "b", "[TRUNCATED] 2 log lines omitted"]


def test_wrap_entry_point():
    assert wrap_entry_point("return 1;") == "(async () => {\nreturn 1;\n})()"


class TestExecutionHost:
    @pytest.mark.asyncio
    async def test_start_message_and_success(self, host):
        result = await host.run("return 1;", 5000, CapabilityTable(), {"context": {"a": 1}})

        assert result.ok
        assert result.logs == ["hello"]
        assert result.output == {
            "code": "(async () => {\nreturn 1;\n})()",
            "bindings": {},
            "globals": {"context": {"a": 1}},
            "timeoutMs": 5000,
        }
        assert result.duration_ms > 0

    @pytest.mark.asyncio
    async def test_manifest_is_sent(self, host, filesystem_table):
        result = await host.run("return 1;", 5000, filesystem_table)
        assert result.output["bindings"] == {"filesystem": ["readFile", "writeFile", "searchFiles"]}

    @pytest.mark.asyncio
    async def test_compile_failure_is_syntax(self, host):
        result = await host.run("COMPILE", 5000, CapabilityTable())

        assert not result.ok
        assert result.kind is FailureKind.SYNTAX
        assert result.error == "Unexpected token ':'"
        assert result.error_name == "SyntaxError"

    @pytest.mark.asyncio
    async def test_capability_call_round_trip(self, host, filesystem_table):
        result = await host.run("CALL_OK", 5000, filesystem_table)

        assert result.ok
        assert result.output == {"content": "alpha", "size": 5}

    @pytest.mark.asyncio
    async def test_unknown_method_rejects_in_guest(self, host, filesystem_table):
        result = await host.run("CALL", 5000, filesystem_table)

        assert result.kind is FailureKind.RUNTIME
        assert result.error == (
            "filesystem.list is not a function. Available methods: readFile, writeFile, searchFiles"
        )

    @pytest.mark.asyncio
    async def test_timeout_kills_child_and_keeps_logs(self, host):
        started = time.monotonic()
        result = await host.run("SLEEP", 1500, CapabilityTable())

        assert time.monotonic() - started < 10
        assert result.kind is FailureKind.TIMEOUT
        assert result.error == "Execution timed out after 1500ms"
        assert result.logs == ["before sleep"]

    @pytest.mark.asyncio
    async def test_child_exit_without_result(self, host):
        result = await host.run("CRASH", 5000, CapabilityTable())

        assert result.kind is FailureKind.HOST
        assert "exit code 3" in result.error
        assert "runner exploded" in result.error

    @pytest.mark.asyncio
    async def test_large_output_is_truncated(self, host):
        result = await host.run("BIG", 5000, CapabilityTable())

        assert result.ok
        assert isinstance(result.output, str)
        assert result.output.endswith("...[truncated]")
        assert len(result.output) == 1000 + len("...[truncated]")

    @pytest.mark.asyncio
    async def test_missing_runtime(self):
        host = ExecutionHost(node_executable="codemode-missing-runtime")
        result = await host.run("return 1;", 1000, CapabilityTable())

        assert result.kind is FailureKind.HOST
        assert result.error == "Guest runtime executable not found: codemode-missing-runtime"

    def test_check_health(self, host):
        ok, detail = host.check_health()
        assert ok
        assert detail.startswith("runtime ready")

    def test_check_health_missing_runtime(self):
        ok, detail = ExecutionHost(node_executable="codemode-missing-runtime").check_health()
        assert not ok
        assert "not found" in detail

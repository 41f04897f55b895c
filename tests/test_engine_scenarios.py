"""
End-to-end runs through a real Node.js child process.
"""

import shutil
import time

import pytest

from codemode.sandbox.engine import SandboxEngine
from codemode.sandbox.types import FailureKind

requires_node = pytest.mark.skipif(shutil.which("node") is None, reason="Node.js is not installed")

pytestmark = [requires_node, pytest.mark.asyncio]

TIMEOUT_MS = 10_000


@pytest.fixture
def engine(project_config):
    return SandboxEngine(project_config)


async def test_returns_value(engine):
    result = await engine.execute_async("return 1+1;", TIMEOUT_MS)

    assert result.ok
    assert result.output == 2
    assert result.logs == []


async def test_console_lines_are_collected(engine):
    result = await engine.execute_async("console.log('hi'); return 1;", TIMEOUT_MS)

    assert result.ok
    assert result.output == 1
    assert result.logs == ["hi"]


async def test_console_levels_and_formatting(engine):
    code = "console.warn('careful'); console.error('bad', 2); console.log({ a: 1 }); return null;"
    result = await engine.execute_async(code, TIMEOUT_MS)

    assert result.logs == ["[WARN] careful", "[ERROR] bad 2", '{\n  "a": 1\n}']


async def test_infinite_loop_times_out(engine):
    started = time.monotonic()
    result = await engine.execute_async("while(true){}", 50)

    assert not result.ok
    assert result.kind is FailureKind.TIMEOUT
    assert result.error == "Execution timed out after 50ms"
    assert time.monotonic() - started < 5


async def test_module_syntax_is_explained(engine):
    result = await engine.execute_async("import {x} from 'm'; export default x;", TIMEOUT_MS)

    assert not result.ok
    assert "Module syntax (import/export)" in result.error


async def test_unknown_capability_method_lists_alternatives(engine):
    result = await engine.execute_async("return await filesystem.list();", TIMEOUT_MS)

    assert not result.ok
    for method in ("readFile", "writeFile", "searchFiles"):
        assert method in result.error


async def test_syntax_error_kind(engine):
    result = await engine.execute_async("return (1 + ;", TIMEOUT_MS)

    assert result.kind is FailureKind.SYNTAX
    assert result.error_name == "SyntaxError"


async def test_thrown_error_keeps_earlier_logs(engine):
    result = await engine.execute_async("console.log('step 1'); throw new Error('nope');", TIMEOUT_MS)

    assert result.kind is FailureKind.RUNTIME
    assert result.error == "nope"
    assert result.logs == ["step 1"]


async def test_context_is_read_only_global(engine):
    code = "context.extra = 1; return [context.user, context.extra === undefined];"
    result = await engine.execute_async(code, TIMEOUT_MS, context={"user": "ada"})

    assert result.output == ["ada", True]


async def test_filesystem_round_trip(engine, project_config, tmp_path):
    code = (
        "await filesystem.writeFile({ path: 'notes/a.txt', content: 'hello' });\n"
        "const { content } = await filesystem.readFile('notes/a.txt');\n"
        "return content;"
    )
    result = await engine.execute_async(code, TIMEOUT_MS)

    assert result.ok, result.error
    assert result.output == "hello"
    assert (tmp_path / "projects" / "notes" / "a.txt").read_text() == "hello"


async def test_missing_file_rejects_with_not_found(engine):
    result = await engine.execute_async("return await filesystem.readFile({ path: 'nope.txt' });", TIMEOUT_MS)

    assert result.kind is FailureKind.RUNTIME
    assert result.error.startswith("NotFound: ")


async def test_host_objects_are_not_reachable(engine):
    result = await engine.execute_async("return [typeof require, typeof process];", TIMEOUT_MS)
    assert result.output == ["undefined", "undefined"]

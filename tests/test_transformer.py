"""
Tests for the source transformer stages and the fixed-point pipeline.
"""

import json

import pytest
from hypothesis import given, strategies as st

from codemode.sandbox.transformer import (
    PRELUDE_MARKER,
    SourceTransformer,
    strip_parameter,
    transform,
)

FRAGMENTS = [
    "return 1 + 1;",
    "import { x } from 'm';",
    "import 'side-effect';",
    "export default function main() { return 2 }",
    "export const y = 3;",
    "export { y };",
    "const fs = require('fs');",
    "const data = fs.readFileSync('a.txt', 'utf8');",
    "const text = await filesystem.readFile('src/index.ts');",
    "await filesystem.writeFile('out.txt', 'hi');",
    "const found = await filesystem.searchFiles({ path: 'src', pattern: '*.ts' });",
    "const n: number = 4;",
    "function add(a: number, b: number): number { return a + b }",
    "type Id = string;",
    "interface Point { x: number; y: number }",
    "const v = value as string;",
    "(async () => { return 5 })();",
    "// import { z } from 'q'",
    "const s = 'it\\'s ok';",
    "const t = `a ${ `b ${c}` } d`;",
    "const r = /ab\\/c/gi;",
    "console.log(a / b / c);",
]


class TestIdempotence:
    @given(parts=st.lists(st.sampled_from(FRAGMENTS), min_size=1, max_size=6))
    def test_transform_is_idempotent(self, parts):
        source = "\n".join(parts)
        once = transform(source)
        assert transform(once) == once

    @given(parts=st.lists(st.sampled_from(FRAGMENTS), min_size=1, max_size=6))
    def test_region_aware_transform_is_idempotent(self, parts):
        transformer = SourceTransformer(region_aware=True)
        once = transformer.transform("\n".join(parts))
        assert transformer.transform(once) == once


class TestModuleStages:
    def test_module_removal_exact_output(self):
        source = "import { x } from 'm'; export default async function(){ return 1 }"
        assert transform(source) == "async function(){ return 1 }"

    def test_bare_import_removed(self):
        assert transform("import './styles.css';\nreturn 1;") == "\nreturn 1;"

    def test_export_forms(self):
        source = "export const y = 3;\nexport function f() { return y }\nexport { y, f };\nreturn f();"
        assert transform(source) == "const y = 3;\nfunction f() { return y }\n\nreturn f();"

    def test_export_default_class_and_expression(self):
        assert transform("export default class Page {}") == "class Page {}"
        assert transform("const a = 1;\nexport default a;") == "const a = 1;\na;"

    def test_require_declarations_removed(self):
        source = "const fs = require('fs');\nconst { join } = require('path');\nrequire('dotenv');\nreturn 1;"
        out = transform(source)

        assert "require" not in out
        assert out.strip() == "return 1;"


class TestSyncFilesystem:
    def test_sync_primitive_throws_guidance_at_run_time(self):
        out = transform("const s = fs.readFileSync('a.txt', 'utf8');")

        assert "readFileSync(" not in out
        assert out.startswith("const s = (() => { throw new Error(")
        assert out.endswith("('a.txt', 'utf8');")
        message = json.dumps(
            "fs.readFileSync is not available in the sandbox. "
            "Use await filesystem.readFile({ path }) instead."
        )
        assert message in out

    def test_inline_require_form(self):
        out = transform("require('fs').existsSync('x');")
        assert "filesystem.searchFiles" in out
        assert "existsSync(" not in out


class TestLegacyCalls:
    def test_positional_read_becomes_object_call(self):
        out = transform("filesystem.readFile(p)")
        prelude, body = out.split("\n", 1)

        assert body == "filesystem.readFile({ path: p })"
        assert prelude.startswith("const filesystem = " + PRELUDE_MARKER)
        assert '"/projects"' in prelude

    def test_write_and_search_keys(self):
        out = transform(
            "await filesystem.writeFile('a.txt', body);\n"
            "await filesystem.searchFiles('src', '*.vue', true);"
        )
        assert "filesystem.writeFile({ path: 'a.txt', content: body })" in out
        assert "filesystem.searchFiles({ path: 'src', pattern: '*.vue', recursive: true })" in out
        assert out.count(PRELUDE_MARKER) == 1

    def test_object_calls_untouched(self):
        source = "return await filesystem.readFile({ path: 'a' });"
        assert transform(source) == source

    @pytest.mark.parametrize(
        "source",
        [
            "filesystem.readFile(...a)",
            "await filesystem.writeFile('a.txt', ...rest);",
        ],
    )
    def test_spread_arguments_untouched(self, source):
        assert transform(source) == source

    def test_calls_quoted_in_strings_untouched(self):
        source = "const hint = 'use filesystem.readFile(p)';"
        assert transform(source) == source

    def test_prelude_uses_configured_root(self):
        out = SourceTransformer(projects_root="/work").transform("filesystem.readFile('x')")
        assert '"/work"' in out.split("\n", 1)[0]


class TestTypeStripping:
    def test_variable_annotation(self):
        assert transform("const n: number = 4;") == "const n = 4;"

    def test_uninitialized_annotation(self):
        assert transform("let total: number;") == "let total;"

    def test_function_signature(self):
        source = "function add(a: number, b: number): number { return a + b }"
        assert transform(source) == "function add(a, b) { return a + b }"

    def test_arrow_signature_with_default_and_optional(self):
        source = "const f = async (id: string, opts?: Options, n: number = 2): Promise<void> => { return id }"
        assert transform(source) == "const f = async (id, opts, n = 2) => { return id }"

    def test_single_line_declarations_removed(self):
        source = "type Id = string;\ninterface Point { x: number; y: number }\nreturn 1;"
        assert transform(source) == "\n\nreturn 1;"

    def test_multiline_declarations_pass_through(self):
        source = "interface Props {\n  id: number\n}"
        assert transform(source) == source

    def test_as_casts(self):
        assert transform("const v = value as string;") == "const v = value;"
        assert transform("const list = [1, 2] as const;") == "const list = [1, 2];"

    def test_generic_function(self):
        assert transform("function first<T>(items) { return items[0] }") == (
            "function first(items) { return items[0] }"
        )

    def test_strip_parameter(self):
        assert strip_parameter("private readonly name: string") == "name"
        assert strip_parameter("opts?: Options") == "opts"
        assert strip_parameter("n: number = 2") == "n = 2"
        assert strip_parameter("cb = (x) => x") == "cb = (x) => x"
        assert strip_parameter("{ a, b }: Props") == "{ a, b }"


class TestIife:
    def test_sole_iife_unwrapped(self):
        assert transform("(async () => { return 5 })();").strip() == "return 5"

    def test_nested_iife_unwrapped(self):
        source = "(async function () { return (async () => { return 6 })(); })();"
        assert transform(source).strip() == "return 6"

    def test_awaited_iife_unwrapped(self):
        assert transform("await (async () => {\n  return 7;\n})()").strip() == "return 7;"

    def test_iife_followed_by_code_kept(self):
        source = "(async () => { return 5 })();\nreturn 6;"
        assert transform(source) == source

    def test_iife_after_prelude(self):
        out = transform("(async () => { return await filesystem.readFile('a') })();")
        prelude, body = out.split("\n", 1)

        assert PRELUDE_MARKER in prelude
        assert body.strip() == "return await filesystem.readFile({ path: 'a' })"


class TestRegionAware:
    SOURCE = "const doc = `\nimport x from 'y';\n`;\nreturn doc;"

    def test_raw_mode_rewrites_inside_literals(self):
        assert "import" not in transform(self.SOURCE)

    def test_region_aware_mode_keeps_literal_text(self):
        assert SourceTransformer(region_aware=True).transform(self.SOURCE) == self.SOURCE

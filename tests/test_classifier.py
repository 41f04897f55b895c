"""
Tests for failure classification and remediation messages.
"""

from codemode.sandbox.classifier import OutcomeClassifier, call_shape, classify

MISSING_METHOD = (
    "filesystem.list is not a function. Available methods: readFile, writeFile, searchFiles"
)


class TestModuleRule:
    def test_unexpected_token_with_import(self):
        message = classify("Cannot use import statement outside a module", "import x from 'y'\nreturn x")

        assert message.startswith("Module syntax (import/export) is not supported")
        assert "Error: Cannot use import statement outside a module" in message
        assert "Before:" in message and "After:" in message

    def test_reference_error_for_removed_import(self):
        message = classify("x is not defined", "import {x} from 'm'; export default x;")
        assert message.startswith("Module syntax")

    def test_reference_error_for_other_name_passes_through(self):
        assert classify("y is not defined", "import {x} from 'm'; return y;") == "y is not defined"

    def test_unexpected_token_without_module_syntax(self):
        assert classify("Unexpected token ')'", "return (1 + );") == "Unexpected token ')'"


class TestMarkupRule:
    def test_markup_in_code(self):
        message = classify("Unexpected token '<'", 'return <div className="a">hi</div>;')

        assert message.startswith("Markup (JSX/HTML/Vue template) cannot appear as code")
        assert "`<template><div>Hello</div></template>`" in message

    def test_markup_inside_template_literal_is_fine(self):
        original = "const page = `<div>hi</div>`; return pag;"
        assert classify("pag is not defined", original) == "pag is not defined"


class TestTypeRule:
    def test_type_annotation(self):
        message = classify("Unexpected token ':'", "const n: number = 1; return n;")
        assert message.startswith("TypeScript type syntax is not supported")

    def test_type_text_inside_string_is_ignored(self):
        assert classify("boom", "return 'const n: number = 1';") == "boom"


class TestCapabilityRules:
    def test_unknown_method_lists_available_methods(self):
        message = classify(MISSING_METHOD, "return await filesystem.list();")

        assert message.startswith("filesystem.list is not a sandbox capability method.")
        assert "Available filesystem methods: readFile, writeFile, searchFiles" in message
        assert "await filesystem.readFile({ path })" in message
        assert "await filesystem.searchFiles({ path, pattern, recursive })" in message

    def test_positional_call(self):
        message = classify("guides.loadGuide requires an 'id'", "return await guides.loadGuide('intro');")

        assert message.startswith("guides.loadGuide takes a single object parameter")
        assert "After:\n  await guides.loadGuide({ id })" in message

    def test_object_call_is_not_positional(self):
        raw = "NotFound: guide intro"
        assert classify(raw, "return await guides.loadGuide({ id: 'intro' });") == raw

    def test_spread_call_is_not_positional(self):
        raw = "NotFound: /projects/a.txt"
        assert classify(raw, "return await filesystem.readFile(...args);") == raw

    def test_manifest_limits_known_methods(self):
        classifier = OutcomeClassifier({"filesystem": ["readFile"]})
        message = classifier.classify("nope", "await filesystem.writeFile({ path: 'a' })")

        assert "Available filesystem methods: readFile\n" in message

    def test_call_shape_for_unknown_method(self):
        assert call_shape("metadata", "summarize") == "await metadata.summarize({ ... })"


class TestRuleOrder:
    def test_last_matching_rule_wins(self):
        original = "import {x} from 'm';\nconst n: number = x;"
        message = classify("Cannot use import statement outside a module", original)
        assert message.startswith("TypeScript type syntax")

    def test_nothing_matches_returns_raw_error(self):
        assert classify("Something broke", "return 1;") == "Something broke"

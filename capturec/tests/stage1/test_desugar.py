# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Desugaring tests. Outputs are compared as printed fragment text, which is
what the command-line driver emits.
"""

from __future__ import annotations

from capturec.parser import ast as A
from capturec.stage1.clauses import CaptureMode
from capturec.test_support import codes, render, transform_single

FOO = "struct Foo { a: Int, b: Int }\nimpl Foo;\n"


def test_field_bindings_avoid_body_identifiers():
	result = transform_single(FOO + "[+self.*] || { let self_a = 2; self_a + self.a }")
	assert result.diagnostics == []
	assert render(result.expr) == (
		"{\n"
		"\tlet self_a_1 = self.a.clone();\n"
		"\tlet self_b = self.b.clone();\n"
		"\tmove || {\n"
		"\t\tlet self_a = 2;\n"
		"\t\tself_a + self_a_1\n"
		"\t}\n"
		"}"
	)


def test_root_binding_renamed_while_a_later_entry_reads_the_outer_name():
	result = transform_single("[+x, &x.a] || x.b + x.a")
	assert result.diagnostics == []
	assert render(result.expr) == "{\n\tlet x_1 = x.clone();\n\tlet x_a = &x.a;\n\tmove || x_1.b + *x_a\n}"


def test_bound_entry_renamed_when_shadowing_a_later_source():
	result = transform_single("[v = 5, +v.a] || v + v.a")
	assert result.diagnostics == []
	assert [b.name for b in result.prelude] == ["v_1", "v_a"]
	assert render(result.expr) == "{\n\tlet v_1 = 5;\n\tlet v_a = v.a.clone();\n\tmove || v_1 + v_a\n}"


def test_reference_binding_keeps_field_access_and_autoderef():
	result = transform_single("[&s] || s.a + s.len()")
	assert render(result.closure) == "move || s.a + s.len()"


def test_reference_binding_in_value_position_is_dereferenced():
	result = transform_single("[&n] || n + 1")
	assert render(result.closure) == "move || *n + 1"


def test_clone_through_reference_binding_clones_the_referent():
	result = transform_single("[&v] || v.clone()")
	assert render(result.closure) == "move || (*v).clone()"


def test_bound_expressions_see_only_earlier_bindings():
	result = transform_single("[&v, n = v.len(), m = n + 1] || m")
	# v and n feed m but the body never names them.
	assert codes(result.diagnostics) == ["W-CAP-UNUSED", "W-CAP-UNUSED"]
	assert render(result.expr) == "{\n\tlet v = &v;\n\tlet n = v.len();\n\tlet m = n + 1;\n\tmove || m\n}"


def test_bound_expression_reads_outer_scope_before_later_entries():
	result = transform_single("[w = v, &v] || w + v")
	assert render(result.expr) == "{\n\tlet w = v;\n\tlet v = &v;\n\tmove || w + *v\n}"


def test_only_move_and_clone_bindings_become_mutable():
	result = transform_single("[x, +y, &z] || { x += 1; y += 1; z }")
	assert [(b.name, b.mutable) for b in result.prelude] == [("x", True), ("y", True), ("z", False)]
	assert render(result.expr) == (
		"{\n"
		"\tlet mut x = x;\n"
		"\tlet mut y = y.clone();\n"
		"\tlet z = &z;\n"
		"\tmove || {\n"
		"\t\tx += 1;\n"
		"\t\ty += 1;\n"
		"\t\t*z\n"
		"\t}\n"
		"}"
	)


def test_reference_only_clause_emits_no_clone_or_move():
	result = transform_single("[&a, &b.c] || a + b.c")
	assert [b.mode for b in result.prelude] == [CaptureMode.REFERENCE, CaptureMode.REFERENCE]
	assert all(isinstance(b.value, A.Borrow) for b in result.prelude)


def test_cloning_self_clones_the_referent():
	result = transform_single("[+self] || self.a")
	assert render(result.expr) == "{\n\tlet self = (*self).clone();\n\tmove || self.a\n}"


def test_binding_self_by_name_clones_the_referent():
	result = transform_single("[s = self] || s.a")
	assert render(result.expr) == "{\n\tlet s = (*self).clone();\n\tmove || s.a\n}"


def test_unauthorized_references_are_left_as_written():
	result = transform_single("[&a] || a + b")
	assert codes(result.diagnostics) == ["E-CAP-UNAUTHORIZED"]
	assert render(result.closure) == "move || *a + b"


def test_nested_closure_params_shadow_captures():
	result = transform_single("[&v] || v.len() + (|v| v + 1)(2)")
	assert render(result.closure) == "move || v.len() + (|v| v + 1)(2)"


def test_move_flag_kept_when_prelude_is_empty():
	assert render(transform_single("[] move || 5").expr) == "move || 5"
	assert render(transform_single("[] || 5").expr) == "|| 5"


def test_legacy_closure_is_returned_unchanged():
	result = transform_single("move |k| k + outer")
	assert result.prelude == ()
	assert result.expr is result.original

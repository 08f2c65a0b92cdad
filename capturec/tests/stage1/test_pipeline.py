# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import logging

from capturec.core.diagnostics import DiagnosticKind
from capturec.parser import format_expr, parse_expr, parse_unit
from capturec.stage1.clauses import CaptureMode
from capturec.stage1.pipeline import TransformOptions, transform_closure, transform_expr, transform_unit
from capturec.test_support import codes, render, transform_fragment, transform_single


def test_clause_syntax_error_only_affects_its_closure():
	unit = transform_fragment("[x y] || x;\n[&a] || a")
	assert codes(unit.diagnostics) == ["E-CAP-SYNTAX"]
	diag = unit.diagnostics[0]
	assert diag.phase == "clause"
	assert (diag.span.line, diag.span.column) == (1, 4)
	first, second = unit.items
	assert render(first) == "[x y] || x"
	assert render(second) == "{\n\tlet a = &a;\n\tmove || *a\n}"
	assert unit.closures[0].table is None


def test_nested_closures_are_transformed_innermost_first():
	result = transform_single("[&v] || { let g = [+v] || v.len(); g() }")
	assert result.diagnostics == []
	assert render(result.expr) == (
		"{\n"
		"\tlet v = &v;\n"
		"\tmove || {\n"
		"\t\tlet g = {\n"
		"\t\t\tlet v = (*v).clone();\n"
		"\t\t\tmove || v.len()\n"
		"\t\t};\n"
		"\t\tg()\n"
		"\t}\n"
		"}"
	)


def test_inner_clause_uses_are_checked_against_the_outer_clause():
	unit = transform_fragment("[] || [&v] || v")
	# The inner prelude reads `v` from the outer closure, which lists nothing.
	assert codes(unit.diagnostics) == ["E-CAP-UNAUTHORIZED"]
	assert len(unit.closures) == 2


def test_transform_closure_directly():
	result = transform_closure(parse_expr("[&a, &a] || a"))
	assert [d.kind for d in result.diagnostics] == [DiagnosticKind.DUPLICATE_CAPTURE_ENTRY]
	assert not result.ok
	assert format_expr(result.expr) == "{\n\tlet a = &a;\n\tmove || *a\n}"


def test_transform_expr_reports_every_closure():
	new_expr, results = transform_expr(parse_expr("f([&a] || a, || b)"))
	assert len(results) == 2
	assert format_expr(new_expr) == "f({\n\tlet a = &a;\n\tmove || *a\n}, || b)"


def test_parallel_unit_matches_sequential():
	source = "\n".join(
		[
			"struct Foo { a: Int, b: Int }",
			"impl Foo;",
			"[+self.*] || self.a;",
			"[&v, n = v.len()] || n;",
			"[] || missing;",
			"move || w;",
			"[x y] || x",
		]
	)
	unit = parse_unit(source)
	sequential = transform_unit(unit, options=TransformOptions(jobs=1))
	parallel = transform_unit(unit, options=TransformOptions(jobs=4))
	assert [render(i) for i in parallel.items] == [render(i) for i in sequential.items]
	assert codes(parallel.diagnostics) == codes(sequential.diagnostics)
	assert [(d.span.line, d.span.column) for d in parallel.diagnostics] == [
		(d.span.line, d.span.column) for d in sequential.diagnostics
	]


def test_fragment_syntax_error_becomes_a_diagnostic():
	unit = transform_fragment("[&a] || (a + ")
	assert codes(unit.diagnostics) == ["E-FRAG-SYNTAX"]
	assert unit.diagnostics[0].phase == "parser"
	assert unit.items == [] and not unit.ok


def test_custom_self_name():
	source = "struct Foo { a: Int }\nimpl Foo;\n[+this.*] || this.a"
	unit = transform_fragment(source, options=TransformOptions(self_name="this"))
	assert unit.ok
	assert render(unit.items[0]) == "{\n\tlet this_a = this.a.clone();\n\tmove || this_a\n}"


def test_pipeline_logs_each_closure(caplog):
	with caplog.at_level(logging.DEBUG, logger="capturec.stage1.pipeline"):
		transform_fragment("[&a] || a;\n|| b")
	records = [r for r in caplog.records if r.name == "capturec.stage1.pipeline"]
	assert len(records) == 2
	assert "free variable" in records[0].getMessage()


def test_closure_in_bound_expression_is_transformed():
	unit = transform_fragment("[a = [&x] || x] || a()")
	assert unit.diagnostics == []
	(item,) = unit.items
	assert render(item) == (
		"{\n"
		"\tlet a = {\n"
		"\t\tlet x = &x;\n"
		"\t\tmove || *x\n"
		"\t};\n"
		"\tmove || a()\n"
		"}"
	)
	inner, outer = unit.closures
	assert outer.nested == [inner]
	assert inner.table.modes() == {"x": CaptureMode.REFERENCE}
	assert outer.table.modes() == {"a": CaptureMode.BOUND_EXPRESSION}


def test_closure_in_bound_expression_reports_its_own_diagnostics():
	unit = transform_fragment("[a = [] || x] || a()")
	assert codes(unit.diagnostics) == ["E-CAP-UNAUTHORIZED"]
	assert "'x'" in unit.diagnostics[0].message
	inner, outer = unit.closures
	assert outer.diagnostics == []
	assert codes(inner.diagnostics) == ["E-CAP-UNAUTHORIZED"]

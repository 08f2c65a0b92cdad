# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from capturec.core.diagnostics import Diagnostic, DiagnosticKind, has_errors, make_diagnostic, sort_diagnostics
from capturec.core.metadata import ItemSymbols, StructTable
from capturec.core.span import Span


def test_kind_codes_and_default_severity():
	assert DiagnosticKind.UNAUTHORIZED_CAPTURE.code == "E-CAP-UNAUTHORIZED"
	assert DiagnosticKind.UNAUTHORIZED_CAPTURE.default_severity == "error"
	assert DiagnosticKind.UNUSED_CAPTURE.default_severity == "warning"


def test_make_diagnostic_uses_kind_severity():
	warn = make_diagnostic(DiagnosticKind.UNUSED_CAPTURE, "unused", Span(line=1, column=2), phase="resolve")
	err = make_diagnostic(DiagnosticKind.SYNTAX_ERROR, "bad")
	assert warn.severity == "warning" and not warn.is_error
	assert err.is_error
	assert err.span == Span()
	assert warn.code == "W-CAP-UNUSED"
	assert has_errors([warn, err])
	assert not has_errors([warn])


def test_sort_diagnostics_source_order_unknown_last_and_stable():
	a = make_diagnostic(DiagnosticKind.UNAUTHORIZED_CAPTURE, "a", Span(line=2, column=1))
	b = make_diagnostic(DiagnosticKind.UNAUTHORIZED_CAPTURE, "b", Span(line=1, column=9))
	c = make_diagnostic(DiagnosticKind.UNAUTHORIZED_CAPTURE, "c")
	d = make_diagnostic(DiagnosticKind.UNKNOWN_FIELD, "d", Span(line=1, column=9))
	assert [x.message for x in sort_diagnostics([c, a, b, d])] == ["b", "d", "a", "c"]


def test_diagnostic_without_kind_has_no_code():
	assert Diagnostic(message="plain").code is None


def test_span_shifted_rebases_clause_relative_positions():
	base_line, base_col = 3, 5
	assert Span(line=1, column=1).shifted(base_line, base_col) == Span(line=3, column=5)
	assert Span(line=1, column=4).shifted(base_line, base_col) == Span(line=3, column=8)
	assert Span(line=2, column=2).shifted(base_line, base_col) == Span(line=4, column=2)
	assert Span().shifted(base_line, base_col) == Span(line=3, column=5)


def test_span_from_loc_copies_attributes():
	class Loc:
		line = 7
		column = 3

	span = Span.from_loc(Loc())
	assert (span.line, span.column) == (7, 3)
	assert Span.from_loc(None) == Span()
	assert Span.from_loc(span) is span


def test_struct_table_enumerates_in_declaration_order():
	table = StructTable.from_decls([("Foo", [("b", "Int"), ("a", "Vec")])])
	assert table.enumerate_fields("Foo") == (("b", "Int"), ("a", "Vec"))
	assert table.enumerate_fields("Missing") is None


def test_item_symbols_defaults_by_position():
	symbols = ItemSymbols(items=frozenset({"helper"}), variables=frozenset({"callback"}))
	assert symbols.is_item("helper", callee=False)
	assert not symbols.is_item("callback", callee=True)
	assert symbols.is_item("unknown", callee=True)
	assert not symbols.is_item("unknown", callee=False)

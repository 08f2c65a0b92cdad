# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
End-to-end capture scenarios: one closure in, Capture Table, prelude and
diagnostics out.
"""

from __future__ import annotations

from capturec.parser import ast as A
from capturec.stage1.clauses import CaptureMode
from capturec.test_support import codes, render, transform_single


def test_empty_clause_without_free_variables():
	result = transform_single("[] || 5")
	assert len(result.table) == 0
	assert result.diagnostics == []
	assert result.prelude == ()
	assert isinstance(result.expr, A.Closure)
	assert render(result.expr) == "|| 5"


def test_reference_capture():
	result = transform_single("[&my_vec] || my_vec.len()")
	assert result.table.modes() == {"my_vec": CaptureMode.REFERENCE}
	(binding,) = result.prelude
	assert binding.name == "my_vec"
	assert isinstance(binding.value, A.Borrow)
	assert render(result.expr) == "{\n\tlet my_vec = &my_vec;\n\tmove || my_vec.len()\n}"


def test_clone_capture():
	result = transform_single("[+my_arc] || something(my_arc)")
	assert result.table.modes() == {"my_arc": CaptureMode.CLONE}
	assert render(result.expr) == "{\n\tlet my_arc = my_arc.clone();\n\tmove || something(my_arc)\n}"


def test_mixed_entries_keep_clause_order():
	result = transform_single(
		"[my_vec, &my_string, +my_arc, some_var] || consume(my_vec, my_string.len(), my_arc, some_var)"
	)
	assert result.diagnostics == []
	assert list(result.table.modes().items()) == [
		("my_vec", CaptureMode.MOVE),
		("my_string", CaptureMode.REFERENCE),
		("my_arc", CaptureMode.CLONE),
		("some_var", CaptureMode.MOVE),
	]
	assert [b.name for b in result.prelude] == ["my_vec", "my_string", "my_arc", "some_var"]
	assert render(result.expr) == (
		"{\n"
		"\tlet my_vec = my_vec;\n"
		"\tlet my_string = &my_string;\n"
		"\tlet my_arc = my_arc.clone();\n"
		"\tlet some_var = some_var;\n"
		"\tmove || consume(my_vec, my_string.len(), my_arc, some_var)\n"
		"}"
	)


def test_self_field_wildcard_in_method():
	source = "struct Foo { some_a: Arc, some_b: Arc }\nimpl Foo;\n[+self.*] || self.some_a"
	result = transform_single(source)
	assert result.table.modes() == {"self.some_a": CaptureMode.CLONE, "self.some_b": CaptureMode.CLONE}
	assert render(result.expr) == (
		"{\n"
		"\tlet self_some_a = self.some_a.clone();\n"
		"\tlet self_some_b = self.some_b.clone();\n"
		"\tmove || self_some_a\n"
		"}"
	)


def test_bare_self_covers_field_paths_by_prefix():
	result = transform_single("[self] || self.some_a.something()")
	assert result.diagnostics == []
	assert result.table.modes() == {"self": CaptureMode.REFERENCE}
	assert render(result.expr) == "{\n\tlet self = &self;\n\tmove || self.some_a.something()\n}"


def test_unlisted_variable_is_unauthorized_and_the_rest_still_resolves():
	result = transform_single("[my_vec] || consume(my_vec, other_var)")
	assert codes(result.diagnostics) == ["E-CAP-UNAUTHORIZED"]
	(diag,) = result.diagnostics
	assert "'other_var'" in diag.message
	assert (diag.span.line, diag.span.column) == (1, 29)
	assert result.table.modes() == {"my_vec": CaptureMode.MOVE}
	assert render(result.closure) == "move || consume(my_vec, other_var)"

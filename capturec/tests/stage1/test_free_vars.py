# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from capturec.stage1.clauses import CapturePath
from capturec.stage1.free_vars import collect_free_variables
from capturec.test_support import closure_of, free_paths


def test_field_paths_are_recorded_per_field():
	assert free_paths("|| self.some_a.len() + self.some_b") == ["self.some_a", "self.some_b"]


def test_params_and_body_lets_are_local():
	assert free_paths("|x| { let y = x + z; y + w.f }") == ["z", "w.f"]


def test_whole_aggregate_use_is_a_separate_record():
	assert free_paths("|| g(s, s.a)") == ["s", "s.a"]


def test_let_initializer_sees_the_outer_binding():
	assert free_paths("|| { let q = q + 1; q }") == ["q"]


def test_nested_closure_params_are_local_to_the_nested_closure():
	assert free_paths("|| |k| k + m") == ["m"]
	assert free_paths("|k| (|| k + n)") == ["n"]


def test_method_names_are_not_field_segments():
	assert free_paths("|| v.len()") == ["v"]
	assert free_paths("|| v.inner.push(1)") == ["v.inner"]


def test_control_flow_and_deref():
	assert free_paths("|| if c { a } else { *r + b.x }") == ["c", "a", "r", "b.x"]


def test_callee_items_are_not_free():
	assert free_paths("|| something(my_arc)") == ["my_arc"]
	assert free_paths("fn helper; || helper") == []
	assert free_paths("let cb: Fn; || cb(1)") == ["cb"]


def test_uses_merge_and_keep_earliest_location():
	closure = closure_of("|| a +\n a.len() + a")
	fvs = collect_free_variables(closure)
	(fv,) = fvs
	assert fv.path == CapturePath(root="a")
	assert (fv.span.line, fv.span.column) == (1, 4)


def test_writes_are_tracked():
	closure = closure_of("|| { n += 1; *p = 2; f(&mut v, &w); n }")
	fvs = collect_free_variables(closure)
	assert fvs.paths == [CapturePath("n"), CapturePath("p"), CapturePath("v"), CapturePath("w")]
	assert fvs.get(CapturePath("n")).write
	assert fvs.get(CapturePath("v")).write
	assert not fvs.get(CapturePath("w")).write
	# `*p = 2` writes through p, not to p itself.
	assert not fvs.get(CapturePath("p")).write

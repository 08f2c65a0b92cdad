# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Clone and bound-expression bindings must be independent of the outer scope.

Each test evaluates a desugared closure with the reference evaluator,
mutates the outer value after the closure was created (or mutates the
closure's copy), and checks the other side never observes it.
"""

from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from capturec.parser import parse_expr
from capturec.test_support import transform_single
from capturec.test_support.evaluator import Cell, Env, Evaluator, Ref, make_struct

ints = st.integers(min_value=-50, max_value=50)
int_lists = st.lists(ints, max_size=6)

FOO = "struct Foo { a: Vec, b: Int }\nimpl Foo;\n"


def _method_env(a: list, b: int) -> tuple[Env, Cell]:
	"""Outer scope of a method: `self` is a reference to a Foo."""
	target = Cell(make_struct("Foo", a=list(a), b=b))
	return Env({"self": Ref(cell=target)}), target


def _run(ev: Evaluator, env: Env, source: str):
	return ev.eval(parse_expr(source), env)


@given(int_lists, ints)
@settings(max_examples=50, deadline=None)
def test_clone_capture_ignores_later_outer_mutation(values, extra):
	result = transform_single("[+v] || v.len()")
	ev = Evaluator()
	env = Env({"v": list(values)})
	closure = ev.eval(result.expr, env)
	_run(ev, env, "v.push(1)")
	_run(ev, env, f"{{ v.push({extra}); }}")
	assert ev.call(closure) == len(values)


@given(int_lists)
@settings(max_examples=50, deadline=None)
def test_mutating_the_closure_copy_leaves_outer_alone(values):
	result = transform_single("[+v] || { v.push(0); v.len() }")
	ev = Evaluator()
	env = Env({"v": list(values)})
	closure = ev.eval(result.expr, env)
	assert ev.call(closure) == len(values) + 1
	assert env.lookup("v").value == values


@given(int_lists, ints)
@settings(max_examples=50, deadline=None)
def test_field_wildcard_clones_are_independent_of_self(values, b):
	result = transform_single(FOO + "[+self.*] || self.a.len() + self.b")
	ev = Evaluator()
	env, target = _method_env(values, b)
	closure = ev.eval(result.expr, env)
	_run(ev, env, "{ self.a.push(7); self.b = 1000; }")
	assert target.value.snapshot()["b"] == 1000
	assert ev.call(closure) == len(values) + b


@given(int_lists, ints)
@settings(max_examples=50, deadline=None)
def test_bound_self_is_a_fresh_value(values, b):
	result = transform_single("[s = self] || s.a.len() + s.b")
	ev = Evaluator()
	env, _target = _method_env(values, b)
	closure = ev.eval(result.expr, env)
	_run(ev, env, "{ self.a.push(7); self.b = 1000; }")
	assert ev.call(closure) == len(values) + b


@given(int_lists)
@settings(max_examples=50, deadline=None)
def test_bound_expression_evaluated_once_before_the_body(values):
	result = transform_single("[n = v.len()] || n")
	ev = Evaluator()
	env = Env({"v": list(values)})
	closure = ev.eval(result.expr, env)
	_run(ev, env, "v.push(3)")
	assert ev.call(closure) == len(values)


def test_naive_self_copy_would_alias():
	# What the desugarer must never emit: copying the `self` reference.
	ev = Evaluator()
	env, _target = _method_env([1, 2], 0)
	closure = _run(ev, env, "{ let s = self.clone(); move || s.a.len() }")
	_run(ev, env, "self.a.push(3)")
	assert ev.call(closure) == 3


def test_reference_capture_observes_outer_mutation():
	result = transform_single("[&v] || v.len()")
	ev = Evaluator()
	env = Env({"v": [1]})
	closure = ev.eval(result.expr, env)
	_run(ev, env, "v.push(2)")
	assert ev.call(closure) == 2

# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from capturec.parser import parse_expr
from capturec.test_support.evaluator import Cell, Env, EvalError, Evaluator, Ref, make_struct


def _eval(source: str, env: Env, **functions):
	return Evaluator(functions).eval(parse_expr(source), env)


def test_let_copies_values_but_not_references():
	env = Env({"v": [1, 2]})
	assert _eval("{ let w = v; w.push(3); v.len() }", env) == 2
	assert _eval("{ let r = &v; r.push(3); v.len() }", env) == 3


def test_assignment_through_deref_and_fields():
	target = Cell(make_struct("Foo", a=1))
	env = Env({"r": Ref(cell=target), "n": 5})
	_eval("{ r.a += 4; }", env)
	assert target.value.snapshot() == {"a": 5}
	_eval("{ let p = &mut n; *p = 9; }", env)
	assert env.lookup("n").value == 9


def test_closures_capture_their_defining_scope():
	ev = Evaluator({"double": lambda x: x * 2})
	env = Env({"k": 4})
	closure = ev.eval(parse_expr("|x| double(x) + k"), env)
	assert ev.call(closure, 3) == 10


def test_errors_are_reported():
	with pytest.raises(EvalError):
		_eval("missing + 1", Env())
	closure = _eval("|x| x", Env())
	with pytest.raises(EvalError):
		Evaluator().call(closure)

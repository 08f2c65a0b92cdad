# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Tiny reference evaluator for fragment expressions (tests only).

Value model, chosen so aliasing mistakes are observable:

- every variable and every struct field lives in a `Cell`;
- `&place` produces a `Ref` to the place's cell; `*r` reads through it;
- `let` bindings and call arguments take a deep copy of non-reference
  values, so two bindings never share a struct or list;
- `x.clone()` on a value deep-copies it, on a `Ref` it copies the reference
  (both copies still point at the same cell);
- field access and method receivers auto-dereference.

Lists and strings are plain Python values; `push` and `len` are the only
collection operations.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from capturec.parser import ast as A


class EvalError(RuntimeError):
	pass


@dataclass(eq=False)
class Cell:
	value: Any = None


@dataclass(eq=False)
class Ref:
	cell: Cell
	mutable: bool = False


@dataclass(eq=False)
class StructValue:
	type_name: str
	fields: dict[str, Cell] = field(default_factory=dict)

	def snapshot(self) -> dict[str, Any]:
		return {name: cell.value for name, cell in self.fields.items()}


@dataclass(eq=False)
class ClosureValue:
	params: list[str]
	body: A.Expr
	env: "Env"


def make_struct(type_name: str, **values: Any) -> StructValue:
	return StructValue(type_name=type_name, fields={k: Cell(v) for k, v in values.items()})


def deep_copy(value: Any) -> Any:
	"""Independent copy of a value; references and closures are copied shallowly."""
	if isinstance(value, (Ref, ClosureValue)):
		return value
	if isinstance(value, StructValue):
		return StructValue(
			type_name=value.type_name,
			fields={name: Cell(deep_copy(cell.value)) for name, cell in value.fields.items()},
		)
	if isinstance(value, list):
		return [deep_copy(v) for v in value]
	return copy.copy(value)


def _deref(value: Any) -> Any:
	while isinstance(value, Ref):
		value = value.cell.value
	return value


class Env:
	def __init__(self, values: Optional[dict[str, Any]] = None, parent: Optional["Env"] = None) -> None:
		self.parent = parent
		self.cells: dict[str, Cell] = {name: Cell(v) for name, v in (values or {}).items()}

	def lookup(self, name: str) -> Optional[Cell]:
		env: Optional[Env] = self
		while env is not None:
			cell = env.cells.get(name)
			if cell is not None:
				return cell
			env = env.parent
		return None

	def bind(self, name: str, value: Any) -> Cell:
		cell = Cell(value)
		self.cells[name] = cell
		return cell


_BINARY = {
	"+": lambda a, b: a + b,
	"-": lambda a, b: a - b,
	"*": lambda a, b: a * b,
	"/": lambda a, b: a // b,
	"%": lambda a, b: a % b,
	"==": lambda a, b: a == b,
	"!=": lambda a, b: a != b,
	"<": lambda a, b: a < b,
	">": lambda a, b: a > b,
	"<=": lambda a, b: a <= b,
	">=": lambda a, b: a >= b,
}


class Evaluator:
	"""Evaluate expressions against an `Env`; `functions` supplies items."""

	def __init__(self, functions: Optional[dict[str, Callable[..., Any]]] = None) -> None:
		self.functions = dict(functions or {})

	# -- places ---------------------------------------------------------

	def place(self, e: A.Expr, env: Env) -> Cell:
		if isinstance(e, A.Name):
			cell = env.lookup(e.ident)
			if cell is None:
				raise EvalError(f"unbound variable '{e.ident}'")
			return cell
		if isinstance(e, A.Attr):
			base = _deref(self.place(e.value, env).value)
			if not isinstance(base, StructValue):
				raise EvalError(f"field access '.{e.attr}' on non-struct {base!r}")
			cell = base.fields.get(e.attr)
			if cell is None:
				raise EvalError(f"{base.type_name} has no field '{e.attr}'")
			return cell
		if isinstance(e, A.Unary) and e.op == "*":
			ref = self.eval(e.operand, env)
			if not isinstance(ref, Ref):
				raise EvalError(f"cannot dereference {ref!r}")
			return ref.cell
		return Cell(self.eval(e, env))

	# -- values ---------------------------------------------------------

	def eval(self, e: A.Expr, env: Env) -> Any:
		if isinstance(e, A.Literal):
			return e.value
		if isinstance(e, (A.Name, A.Attr)):
			if isinstance(e, A.Name) and env.lookup(e.ident) is None and e.ident in self.functions:
				return self.functions[e.ident]
			return self.place(e, env).value
		if isinstance(e, A.Borrow):
			return Ref(cell=self.place(e.value, env), mutable=e.mutable)
		if isinstance(e, A.Unary):
			if e.op == "*":
				return self.place(e, env).value
			operand = _deref(self.eval(e.operand, env))
			return -operand if e.op == "-" else not operand
		if isinstance(e, A.Binary):
			left = _deref(self.eval(e.left, env))
			right = _deref(self.eval(e.right, env))
			return _BINARY[e.op](left, right)
		if isinstance(e, A.MethodCall):
			return self._method(e, env)
		if isinstance(e, A.Call):
			func = self.eval(e.func, env)
			args = [self.eval(a, env) for a in e.args]
			return self.call(func, *args)
		if isinstance(e, A.Block):
			return self.block(e, Env(parent=env))
		if isinstance(e, A.If):
			if _deref(self.eval(e.condition, env)):
				return self.block(e.then_block, Env(parent=env))
			if e.else_branch is not None:
				return self.eval(e.else_branch, env)
			return None
		if isinstance(e, A.Closure):
			return ClosureValue(params=[p.name for p in e.params], body=e.body, env=env)
		raise EvalError(f"cannot evaluate {type(e).__name__}")

	def block(self, b: A.Block, env: Env) -> Any:
		for stmt in b.statements:
			if isinstance(stmt, A.LetStmt):
				env.bind(stmt.name, deep_copy(self.eval(stmt.value, env)))
			elif isinstance(stmt, A.AssignStmt):
				value = self.eval(stmt.value, env)
				target = self.place(stmt.target, env)
				if stmt.op == "=":
					target.value = deep_copy(value)
				else:
					target.value = _BINARY[stmt.op[0]](_deref(target.value), _deref(value))
			else:
				self.eval(stmt.value, env)
		return self.eval(b.tail, env) if b.tail is not None else None

	def call(self, func: Any, *args: Any) -> Any:
		if isinstance(func, ClosureValue):
			if len(args) != len(func.params):
				raise EvalError(f"closure expects {len(func.params)} argument(s), got {len(args)}")
			frame = Env(parent=func.env)
			for name, value in zip(func.params, args):
				frame.bind(name, deep_copy(value))
			return self.eval(func.body, frame)
		if callable(func):
			return func(*args)
		raise EvalError(f"{func!r} is not callable")

	def _method(self, e: A.MethodCall, env: Env) -> Any:
		receiver = self.place(e.receiver, env).value
		args = [self.eval(a, env) for a in e.args]
		if e.method == "clone":
			return deep_copy(receiver) if not isinstance(receiver, Ref) else receiver
		target = _deref(receiver)
		if e.method == "len":
			return len(target)
		if e.method == "push":
			if not isinstance(target, list):
				raise EvalError(f"push on non-list {target!r}")
			target.append(deep_copy(args[0]))
			return None
		if isinstance(target, StructValue) and e.method in target.fields:
			return self.call(target.fields[e.method].value, *args)
		raise EvalError(f"unknown method '{e.method}'")


__all__ = [
	"Cell",
	"ClosureValue",
	"Env",
	"EvalError",
	"Evaluator",
	"Ref",
	"StructValue",
	"deep_copy",
	"make_struct",
]

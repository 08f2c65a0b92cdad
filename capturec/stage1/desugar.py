# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Desugar a resolved closure into prelude bindings + a plain `move` closure.

	[&v, +self.*] || v.len() + self.a.len()

becomes

	{
		let v = &v;
		let self_a = self.a.clone();
		let self_b = self.b.clone();
		move || v.len() + self_a.len()
	}

Every capture is materialized once, before the closure exists, and the body
is rewritten to name those bindings instead of the outer scope. Clone and
bound-expression bindings always hold an independent value: cloning the
aggregate-self reference itself goes through `(*self).clone()` so the
closure never ends up holding a copy of the reference.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, is_dataclass, replace
from typing import Any, Optional

from capturec.parser import ast as A
from capturec.stage1.clause_parser import DEFAULT_SELF_NAME
from capturec.stage1.clauses import CaptureMode, CapturePath, CaptureTable, ResolvedCapture
from capturec.stage1.free_vars import FreeVariableSet


@dataclass(frozen=True)
class PreludeBinding:
	"""One `let` emitted ahead of the closure."""

	name: str
	path: CapturePath
	mode: CaptureMode
	value: A.Expr
	mutable: bool = False

	def to_stmt(self) -> A.LetStmt:
		return A.LetStmt(loc=None, name=self.name, value=self.value, mutable=self.mutable)


@dataclass(frozen=True)
class DesugarResult:
	"""
	`expr` replaces the original closure in the enclosing tree; `closure` is
	the rewritten closure on its own (the tail of `expr` when there is a
	prelude).
	"""

	expr: A.Expr
	closure: A.Closure
	prelude: tuple[PreludeBinding, ...] = ()


def desugar_closure(
	closure: A.Closure,
	table: CaptureTable,
	*,
	free_vars: Optional[FreeVariableSet] = None,
	self_name: str = DEFAULT_SELF_NAME,
) -> DesugarResult:
	"""
	Rewrite `closure` against `table`.

	Legacy tables leave the closure untouched. Otherwise one prelude binding is
	emitted per table entry, in table order, and free references in the body
	are redirected to them. References the table does not cover (unauthorized
	ones) are left as written.
	"""
	if table.legacy:
		return DesugarResult(expr=closure, closure=closure)

	written: set[CapturePath] = set()
	if free_vars is not None:
		for fv in free_vars:
			cap = table.covering(fv.path)
			if fv.write and cap is not None:
				written.add(cap.path)

	names = _assign_binding_names(closure, table)
	prelude: list[PreludeBinding] = []
	visible: list[tuple[ResolvedCapture, str]] = []
	for cap in table.entries:
		value = _prelude_value(cap, visible, self_name)
		mutable = cap.mode in (CaptureMode.MOVE, CaptureMode.CLONE) and cap.path in written
		prelude.append(PreludeBinding(name=names[cap.path], path=cap.path, mode=cap.mode, value=value, mutable=mutable))
		visible.append((cap, names[cap.path]))

	bindings = {cap.path: (cap, names[cap.path]) for cap in table.entries}

	def _lookup(path: CapturePath) -> Optional[tuple[ResolvedCapture, str]]:
		cap = table.covering(path)
		if cap is None:
			return None
		return bindings[cap.path]

	body = _Rewriter(_lookup, {p.name for p in closure.params}).expr(closure.body)
	new_closure = replace(closure, body=body, clause_text=None, clause_loc=None, is_move=closure.is_move or bool(prelude))
	if not prelude:
		return DesugarResult(expr=new_closure, closure=new_closure)
	block = A.Block(loc=closure.loc, statements=[b.to_stmt() for b in prelude], tail=new_closure)
	return DesugarResult(expr=block, closure=new_closure, prelude=tuple(prelude))


def _identifiers(node: Any, out: set[str]) -> set[str]:
	"""Every identifier spelled anywhere inside `node`."""
	if isinstance(node, list):
		for item in node:
			_identifiers(item, out)
		return out
	if isinstance(node, A.Name):
		out.add(node.ident)
	elif isinstance(node, (A.LetStmt, A.Param)):
		out.add(node.name)
	if is_dataclass(node) and not isinstance(node, type):
		for f in fields(node):
			_identifiers(getattr(node, f.name), out)
	return out


def _assign_binding_names(closure: A.Closure, table: CaptureTable) -> dict[CapturePath, str]:
	"""
	Pick a fresh, non-colliding name for every table entry.

	Root entries keep their own identifier (shadowing the outer binding) unless
	a later entry still has to read that identifier from the outer scope.
	Field entries become `root_field`; any name that would collide with another
	binding, with an identifier of the body or of a bound expression, or with a
	source root still to be read, gets a numeric suffix.
	"""
	taken = _identifiers(closure.body, set())
	taken |= {p.name for p in closure.params}
	for cap in table.entries:
		if cap.expr is not None:
			_identifiers(cap.expr, taken)
		if cap.mode is not CaptureMode.BOUND_EXPRESSION:
			taken.add(cap.path.root)

	names: dict[CapturePath, str] = {}
	assigned: set[str] = set()
	entries = list(table.entries)
	for index, cap in enumerate(entries):
		later_roots = {
			c.path.root for c in entries[index + 1 :] if c.mode is not CaptureMode.BOUND_EXPRESSION
		}
		if not cap.path.fields:
			natural = cap.path.root
			clash = natural in assigned or natural in later_roots
		else:
			natural = "_".join((cap.path.root,) + cap.path.fields)
			clash = natural in assigned or natural in taken
		candidate = natural
		suffix = 0
		while clash:
			suffix += 1
			candidate = f"{natural}_{suffix}"
			clash = candidate in assigned or candidate in taken
		names[cap.path] = candidate
		assigned.add(candidate)
	return names


def _path_expr(path: CapturePath) -> A.Expr:
	expr: A.Expr = A.Name(loc=None, ident=path.root)
	for field_name in path.fields:
		expr = A.Attr(loc=None, value=expr, attr=field_name)
	return expr


def _independent_clone(source: A.Expr, self_name: str) -> A.Expr:
	# `self` is a reference: clone the referent, never the reference.
	if isinstance(source, A.Name) and source.ident == self_name:
		source = A.Unary(loc=None, op="*", operand=source)
	return A.MethodCall(loc=None, receiver=source, method="clone", args=[])


def _prelude_value(
	cap: ResolvedCapture,
	visible: list[tuple[ResolvedCapture, str]],
	self_name: str,
) -> A.Expr:
	source = _path_expr(cap.path)
	if cap.mode is CaptureMode.REFERENCE:
		return A.Borrow(loc=None, value=source, mutable=False)
	if cap.mode is CaptureMode.MOVE:
		return source
	if cap.mode in (CaptureMode.CLONE, CaptureMode.FIELD_WILDCARD_CLONE):
		return _independent_clone(source, self_name)
	if cap.expr is None:
		raise ValueError(f"bound capture '{cap.path}' has no expression")

	# Bound expressions see the bindings introduced before them, nothing else.
	def _lookup(path: CapturePath) -> Optional[tuple[ResolvedCapture, str]]:
		best: Optional[tuple[ResolvedCapture, str]] = None
		for prior, name in visible:
			if prior.path.is_prefix_of(path) and (best is None or len(prior.path.fields) > len(best[0].path.fields)):
				best = (prior, name)
		return best

	expr = cap.expr
	if isinstance(expr, A.Name) and expr.ident == self_name and _lookup(CapturePath(root=self_name)) is None:
		return _independent_clone(expr, self_name)
	return _Rewriter(_lookup, set()).expr(expr)


class _Rewriter:
	"""
	Redirect free path references to prelude bindings.

	`lookup` maps a used path to the (capture, binding name) it resolves
	against. Scoping mirrors the free-variable collector so exactly the same
	chains are treated as free.
	"""

	def __init__(self, lookup, params: set[str]) -> None:
		self.lookup = lookup
		self.scopes: list[set[str]] = [set(params)]

	def _is_local(self, name: str) -> bool:
		return any(name in scope for scope in self.scopes)

	def _chain(self, expr: A.Expr) -> Optional[tuple[str, list[str]]]:
		if isinstance(expr, A.Attr):
			inner = self._chain(expr.value)
			if inner is None:
				return None
			return (inner[0], inner[1] + [expr.attr])
		if isinstance(expr, A.Name):
			return (expr.ident, [])
		return None

	def _place(self, expr: A.Expr, *, autoderef: bool) -> A.Expr:
		chain = self._chain(expr)
		if chain is None or self._is_local(chain[0]):
			return self._generic(expr)
		root, chain_fields = chain
		found = self.lookup(CapturePath(root=root, fields=tuple(chain_fields)))
		if found is None:
			return expr
		cap, binding = found
		rest = chain_fields[len(cap.path.fields) :]
		out: A.Expr = A.Name(loc=expr.loc, ident=binding)
		if cap.mode is CaptureMode.REFERENCE and not rest and not autoderef:
			out = A.Unary(loc=expr.loc, op="*", operand=out)
		for field_name in rest:
			out = A.Attr(loc=expr.loc, value=out, attr=field_name)
		return out

	def expr(self, e: A.Expr) -> A.Expr:
		if isinstance(e, (A.Name, A.Attr)):
			return self._place(e, autoderef=False)
		if isinstance(e, A.MethodCall):
			# `clone` must copy the referent, so it never autoderefs a reference binding.
			autoderef = e.method != "clone"
			receiver = self._place(e.receiver, autoderef=autoderef) if self._chain(e.receiver) else self.expr(e.receiver)
			return replace(e, receiver=receiver, args=[self.expr(a) for a in e.args])
		if isinstance(e, A.Call):
			return replace(e, func=self.expr(e.func), args=[self.expr(a) for a in e.args])
		if isinstance(e, A.Borrow):
			return replace(e, value=self.expr(e.value))
		if isinstance(e, A.Unary):
			return replace(e, operand=self.expr(e.operand))
		if isinstance(e, A.Binary):
			return replace(e, left=self.expr(e.left), right=self.expr(e.right))
		if isinstance(e, A.Block):
			return self.block(e)
		if isinstance(e, A.If):
			else_branch = self.expr(e.else_branch) if e.else_branch is not None else None
			return replace(e, condition=self.expr(e.condition), then_block=self.block(e.then_block), else_branch=else_branch)
		if isinstance(e, A.Closure):
			self.scopes.append({p.name for p in e.params})
			body = self.expr(e.body)
			self.scopes.pop()
			return replace(e, body=body)
		return e

	def _generic(self, e: A.Expr) -> A.Expr:
		if isinstance(e, A.Attr):
			return replace(e, value=self.expr(e.value))
		return e

	def block(self, b: A.Block) -> A.Block:
		self.scopes.append(set())
		statements: list[A.Stmt] = []
		for stmt in b.statements:
			if isinstance(stmt, A.LetStmt):
				value = self.expr(stmt.value)
				self.scopes[-1].add(stmt.name)
				statements.append(replace(stmt, value=value))
			elif isinstance(stmt, A.AssignStmt):
				statements.append(replace(stmt, target=self.expr(stmt.target), value=self.expr(stmt.value)))
			elif isinstance(stmt, A.ExprStmt):
				statements.append(replace(stmt, value=self.expr(stmt.value)))
		tail = self.expr(b.tail) if b.tail is not None else None
		self.scopes.pop()
		return replace(b, statements=statements, tail=tail)


__all__ = ["DesugarResult", "PreludeBinding", "desugar_closure"]

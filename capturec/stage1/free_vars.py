# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Optional

from capturec.core.metadata import ItemSymbols, SymbolResolver
from capturec.core.span import Span
from capturec.parser import ast as A
from capturec.stage1.clauses import CapturePath


@dataclass(frozen=True)
class FreeVariable:
	"""An external path used by a closure body (merged across all its uses)."""

	path: CapturePath
	span: Span = Span()
	# Index of the first use in walk order.
	order: int = 0
	# Assigned to, or borrowed `&mut`, somewhere in the body.
	write: bool = False


@dataclass(frozen=True)
class FreeVariableSet:
	"""Free variables of one closure in first-appearance order."""

	variables: tuple[FreeVariable, ...] = ()

	def __iter__(self) -> Iterator[FreeVariable]:
		return iter(self.variables)

	def __len__(self) -> int:
		return len(self.variables)

	def __contains__(self, path: object) -> bool:
		return any(v.path == path for v in self.variables)

	def get(self, path: CapturePath) -> Optional[FreeVariable]:
		for v in self.variables:
			if v.path == path:
				return v
		return None

	@property
	def paths(self) -> list[CapturePath]:
		return [v.path for v in self.variables]


@dataclass
class _Usage:
	span: Span
	order: int
	write: bool = False


def collect_free_variables(
	closure: A.Closure,
	*,
	symbols: Optional[SymbolResolver] = None,
	variables: Iterable[str] = (),
) -> FreeVariableSet:
	"""
	Collect the free variables of `closure`.

	- Params and body `let` bindings are local (a `let` is visible after its
	  own initializer, to the end of the enclosing block).
	- Field chains rooted at an external identifier are recorded at full path
	  granularity; a bare use of the root is a separate record.
	- Nested closures are walked with their params bound, so whatever they use
	  from outside is a use of this closure too.
	- Items (functions) reported by `symbols` are never free variables. Names in
	  `variables` (the roots a capture clause lists) are always variables,
	  even in callee position.
	"""
	symbols = symbols or ItemSymbols()
	forced = frozenset(variables)
	usage: dict[CapturePath, _Usage] = {}
	scopes: list[set[str]] = [{p.name for p in closure.params}]

	def _is_local(name: str) -> bool:
		return any(name in scope for scope in scopes)

	def _add_usage(root: str, fields: list[str], span: Span, *, write: bool = False) -> None:
		if _is_local(root):
			return
		path = CapturePath(root=root, fields=tuple(fields))
		entry = usage.get(path)
		if entry is None:
			usage[path] = _Usage(span=span, order=len(usage), write=write)
			return
		if span.is_known() and span.sort_key() < entry.span.sort_key():
			entry.span = span
		entry.write = entry.write or write

	def _flatten_field_chain(expr: A.Expr) -> tuple[str, list[str]] | None:
		if isinstance(expr, A.Attr):
			inner = _flatten_field_chain(expr.value)
			if inner is None:
				return None
			root, fields = inner
			return (root, fields + [expr.attr])
		if isinstance(expr, A.Name):
			return (expr.ident, [])
		return None

	def _walk_place(expr: A.Expr, *, write: bool) -> None:
		flattened = _flatten_field_chain(expr)
		if flattened is None:
			_walk_expr(expr)
			return
		root, fields = flattened
		if not fields and root not in forced and symbols.is_item(root, callee=False):
			return
		_add_usage(root, fields, A.span_of(expr.loc), write=write)

	def _walk_expr(e: A.Expr) -> None:
		if isinstance(e, (A.Name, A.Attr)):
			if _flatten_field_chain(e) is not None:
				_walk_place(e, write=False)
			else:
				_walk_expr(e.value)  # type: ignore[union-attr]
			return
		if isinstance(e, A.Literal):
			return
		if isinstance(e, A.Call):
			callee_is_item = (
				isinstance(e.func, A.Name)
				and not _is_local(e.func.ident)
				and e.func.ident not in forced
				and symbols.is_item(e.func.ident, callee=True)
			)
			if not callee_is_item:
				_walk_expr(e.func)
			for arg in e.args:
				_walk_expr(arg)
			return
		if isinstance(e, A.MethodCall):
			_walk_expr(e.receiver)
			for arg in e.args:
				_walk_expr(arg)
			return
		if isinstance(e, A.Borrow):
			_walk_place(e.value, write=e.mutable)
			return
		if isinstance(e, A.Unary):
			_walk_expr(e.operand)
			return
		if isinstance(e, A.Binary):
			_walk_expr(e.left)
			_walk_expr(e.right)
			return
		if isinstance(e, A.Block):
			_walk_block(e)
			return
		if isinstance(e, A.If):
			_walk_expr(e.condition)
			_walk_block(e.then_block)
			if e.else_branch is not None:
				_walk_expr(e.else_branch)
			return
		if isinstance(e, A.Closure):
			# Captures are per-closure, but a nested closure can only see what
			# this one captured.
			scopes.append({p.name for p in e.params})
			_walk_expr(e.body)
			scopes.pop()
			return
		raise TypeError(f"unsupported expression {type(e).__name__}")

	def _walk_block(block: A.Block) -> None:
		scopes.append(set())
		for stmt in block.statements:
			if isinstance(stmt, A.LetStmt):
				_walk_expr(stmt.value)
				scopes[-1].add(stmt.name)
			elif isinstance(stmt, A.AssignStmt):
				_walk_place(stmt.target, write=True)
				_walk_expr(stmt.value)
			elif isinstance(stmt, A.ExprStmt):
				_walk_expr(stmt.value)
		if block.tail is not None:
			_walk_expr(block.tail)
		scopes.pop()

	_walk_expr(closure.body)

	variables = tuple(
		FreeVariable(path=path, span=use.span, order=use.order, write=use.write)
		for path, use in sorted(usage.items(), key=lambda kv: kv[1].order)
	)
	return FreeVariableSet(variables=variables)


__all__ = ["FreeVariable", "FreeVariableSet", "collect_free_variables"]

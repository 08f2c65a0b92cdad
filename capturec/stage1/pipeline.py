# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Per-closure pipeline and unit driver.

	clause text -> parse_clause -> CaptureClause
	closure body -> collect_free_variables -> FreeVariableSet
	(clause, free vars, metadata) -> resolve_captures -> CaptureTable
	(table, closure) -> desugar_closure -> transformed expression

Each closure is independent; nested closures are transformed innermost first
so the enclosing closure sees their prelude bindings as ordinary uses. A
malformed clause leaves only its own closure untransformed.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, fields, replace
from typing import Optional

from capturec.core.diagnostics import Diagnostic, DiagnosticKind, has_errors, make_diagnostic, sort_diagnostics
from capturec.core.metadata import FieldEnumerator, ItemSymbols, StructTable, SymbolResolver
from capturec.parser import ast as A
from capturec.parser.parser import FragmentSyntaxError, parse_unit
from capturec.stage1.capture_resolve import ResolveContext, resolve_captures
from capturec.stage1.clause_parser import DEFAULT_SELF_NAME, ClauseSyntaxError, parse_clause
from capturec.stage1.clauses import CaptureClause, CaptureMode, CaptureTable
from capturec.stage1.desugar import PreludeBinding, desugar_closure
from capturec.stage1.free_vars import collect_free_variables

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformOptions:
	"""Driver configuration (populated from CLI flags or by callers)."""

	self_name: str = DEFAULT_SELF_NAME
	# Worker threads for independent top-level closures; 1 = sequential.
	jobs: int = 1


@dataclass
class ClosureTransform:
	"""Outcome of one closure's pipeline."""

	original: A.Closure
	expr: A.Expr
	# The rewritten closure itself (the tail of `expr` when there is a prelude).
	closure: Optional[A.Closure] = None
	clause: Optional[CaptureClause] = None
	table: Optional[CaptureTable] = None
	prelude: tuple[PreludeBinding, ...] = ()
	diagnostics: list[Diagnostic] = field(default_factory=list)
	# Closures found inside bound expressions, innermost first. Like closures
	# in the body, each carries its own diagnostics.
	nested: list["ClosureTransform"] = field(default_factory=list)

	@property
	def ok(self) -> bool:
		return not has_errors(self.diagnostics)


@dataclass
class UnitTransform:
	"""Outcome for a whole fragment: rewritten items plus every closure's result."""

	items: list[A.Expr] = field(default_factory=list)
	closures: list[ClosureTransform] = field(default_factory=list)
	diagnostics: list[Diagnostic] = field(default_factory=list)

	@property
	def ok(self) -> bool:
		return not has_errors(self.diagnostics)


def transform_closure(
	closure: A.Closure,
	*,
	context: Optional[ResolveContext] = None,
	symbols: Optional[SymbolResolver] = None,
) -> ClosureTransform:
	"""
	Run the full pipeline on one closure.

	Closures in the body are not visited (`transform_expr` handles them before
	their parent); closures inside the clause's bound expressions are, since
	they only exist once the clause is parsed.
	"""
	context = context or ResolveContext()
	diags: list[Diagnostic] = []
	nested: list[ClosureTransform] = []
	clause: Optional[CaptureClause] = None
	if closure.clause_text is not None:
		try:
			parsed = parse_clause(closure.clause_text, origin=A.span_of(closure.clause_loc), self_name=context.self_name)
		except ClauseSyntaxError as err:
			logger.debug("clause %s rejected: %s", closure.clause_text, err)
			diags.append(make_diagnostic(DiagnosticKind.SYNTAX_ERROR, str(err), err.span, phase="clause"))
			return ClosureTransform(original=closure, expr=closure, closure=closure, diagnostics=diags)
		clause = _transform_bound_exprs(parsed.clause, nested, context=context, symbols=symbols)
		diags.extend(parsed.diagnostics)

	clause_roots = [entry.path.root for entry in clause.entries] if clause is not None else []
	free_vars = collect_free_variables(closure, symbols=symbols, variables=clause_roots)
	resolved = resolve_captures(clause, free_vars, context=context, move=closure.is_move)
	diags.extend(resolved.diagnostics)
	result = desugar_closure(closure, resolved.table, free_vars=free_vars, self_name=context.self_name)
	logger.debug(
		"closure at %s: %d free variable(s), table %s, %d diagnostic(s)",
		A.span_of(closure.loc).sort_key()[1:],
		len(free_vars),
		{str(k): v.name for k, v in resolved.table.modes().items()},
		len(diags),
	)
	return ClosureTransform(
		original=closure,
		expr=result.expr,
		closure=result.closure,
		clause=clause,
		table=resolved.table,
		prelude=result.prelude,
		diagnostics=sort_diagnostics(diags),
		nested=nested,
	)


def transform_expr(
	expr: A.Expr,
	*,
	context: Optional[ResolveContext] = None,
	symbols: Optional[SymbolResolver] = None,
) -> tuple[A.Expr, list[ClosureTransform]]:
	"""Transform every closure inside `expr`, innermost first."""
	results: list[ClosureTransform] = []

	def visit(node):
		if isinstance(node, list):
			return [visit(n) for n in node]
		if not isinstance(node, (A.Expr, A.Stmt)):
			return node
		changes = {}
		for f in fields(node):
			value = getattr(node, f.name)
			if isinstance(value, (A.Expr, A.Stmt, list)):
				changes[f.name] = visit(value)
		rebuilt = replace(node, **changes)
		if isinstance(rebuilt, A.Closure):
			outcome = transform_closure(rebuilt, context=context, symbols=symbols)
			results.extend(outcome.nested)
			results.append(outcome)
			return outcome.expr
		return rebuilt

	return visit(expr), results


def _transform_bound_exprs(
	clause: CaptureClause,
	sink: list[ClosureTransform],
	*,
	context: ResolveContext,
	symbols: Optional[SymbolResolver],
) -> CaptureClause:
	"""Transform closures inside bound expressions; their results go to `sink`."""
	entries = []
	for entry in clause.entries:
		if entry.mode is CaptureMode.BOUND_EXPRESSION and entry.expr is not None:
			new_expr, inner = transform_expr(entry.expr, context=context, symbols=symbols)
			if inner:
				sink.extend(inner)
				entry = replace(entry, expr=new_expr)
		entries.append(entry)
	return replace(clause, entries=tuple(entries))


def build_context(unit: A.Unit, *, metadata: Optional[FieldEnumerator] = None, options: TransformOptions) -> ResolveContext:
	if metadata is None:
		metadata = StructTable.from_decls(
			(decl.name, [(fname, ftype.render()) for fname, ftype in decl.fields]) for decl in unit.structs
		)
	return ResolveContext(metadata=metadata, self_type=unit.self_type, self_name=options.self_name)


def transform_unit(
	unit: A.Unit,
	*,
	metadata: Optional[FieldEnumerator] = None,
	options: Optional[TransformOptions] = None,
) -> UnitTransform:
	"""
	Transform every top-level item of a unit.

	Items share only the read-only context, so with `options.jobs > 1` they
	run on a thread pool. Results keep source order either way.
	"""
	options = options or TransformOptions()
	context = build_context(unit, metadata=metadata, options=options)
	symbols = ItemSymbols(items=unit.item_names, variables=unit.variable_names)

	def _one(item: A.Expr) -> tuple[A.Expr, list[ClosureTransform]]:
		return transform_expr(item, context=context, symbols=symbols)

	if options.jobs > 1 and len(unit.items) > 1:
		with ThreadPoolExecutor(max_workers=options.jobs) as pool:
			outcomes = list(pool.map(_one, unit.items))
	else:
		outcomes = [_one(item) for item in unit.items]

	out = UnitTransform()
	for new_item, closures in outcomes:
		out.items.append(new_item)
		out.closures.extend(closures)
		for c in closures:
			out.diagnostics.extend(c.diagnostics)
	out.diagnostics = sort_diagnostics(out.diagnostics)
	return out


def transform_source(
	source: str,
	*,
	metadata: Optional[FieldEnumerator] = None,
	options: Optional[TransformOptions] = None,
) -> UnitTransform:
	"""Parse a fragment and transform it; front-end errors become diagnostics."""
	try:
		unit = parse_unit(source)
	except FragmentSyntaxError as err:
		return UnitTransform(
			diagnostics=[
				make_diagnostic(DiagnosticKind.FRAGMENT_SYNTAX_ERROR, str(err), A.span_of(err.loc), phase="parser")
			]
		)
	return transform_unit(unit, metadata=metadata, options=options)


__all__ = [
	"ClosureTransform",
	"TransformOptions",
	"UnitTransform",
	"build_context",
	"transform_closure",
	"transform_expr",
	"transform_source",
	"transform_unit",
]

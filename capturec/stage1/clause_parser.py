# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Capture clause parser.

Turns the bracketed clause text that precedes a closure into a
`CaptureClause`. Entry forms:

	x              move
	&x, &x.f       reference
	+x, +x.f       clone
	name = expr    bound expression
	+self.*        clone every declared field of the aggregate-self value
	& / = / +      clause-wide wildcard (reference / move / clone)

Malformed text raises `ClauseSyntaxError`; problems that leave a usable
clause behind (duplicate names, a repeated wildcard) are reported as
diagnostics and the first occurrence wins.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, is_dataclass, replace
from typing import Any, Optional

from lark import Token, Tree

from capturec.core.diagnostics import Diagnostic, DiagnosticKind, make_diagnostic
from capturec.core.span import Span
from capturec.parser.ast import Located
from capturec.parser.parser import FragmentSyntaxError, build_expr, parse_clause_tree
from capturec.stage1.clauses import CaptureClause, CaptureEntry, CaptureMode, CapturePath, WildcardMode

DEFAULT_SELF_NAME = "self"

_WILDCARD_KINDS = {
	"ref_wildcard": WildcardMode.REFERENCE_ALL,
	"move_wildcard": WildcardMode.MOVE_ALL,
	"clone_wildcard": WildcardMode.CLONE_ALL,
}

_PATH_ENTRY_MODES = {
	"ref_entry": CaptureMode.REFERENCE,
	"clone_entry": CaptureMode.CLONE,
	"move_entry": CaptureMode.MOVE,
}


class ClauseSyntaxError(ValueError):
	"""Malformed clause text; fatal for the closure it belongs to."""

	def __init__(self, message: str, *, span: Span) -> None:
		super().__init__(message)
		self.span = span


@dataclass
class ClauseParseResult:
	clause: CaptureClause
	diagnostics: list[Diagnostic]


def parse_clause(
	text: str,
	*,
	origin: Optional[Span] = None,
	self_name: str = DEFAULT_SELF_NAME,
) -> ClauseParseResult:
	"""
	Parse one clause.

	Args:
	  text: clause source including the brackets, e.g. "[&v, +self.*]".
	  origin: where the opening bracket sits in the enclosing source; spans in
	    the result (and in a raised ClauseSyntaxError) are rebased onto it.
	  self_name: identifier of the aggregate-self reference.
	"""
	base = origin if origin is not None and origin.is_known() else Span(line=1, column=1)

	def _span(node: Tree | Token | None) -> Span:
		line = getattr(getattr(node, "meta", node), "line", None)
		column = getattr(getattr(node, "meta", node), "column", None)
		return Span(line=line, column=column).shifted(base.line, base.column)

	try:
		tree = parse_clause_tree(text)
	except FragmentSyntaxError as err:
		loc = err.loc
		rel = Span(line=loc.line, column=loc.column) if loc is not None else Span()
		raise ClauseSyntaxError(f"malformed capture clause: {err}", span=rel.shifted(base.line, base.column)) from err

	entries: list[CaptureEntry] = []
	seen: dict[str, CaptureEntry] = {}
	wildcard = WildcardMode.NONE
	diags: list[Diagnostic] = []

	for item in tree.children:
		if not isinstance(item, Tree):
			continue
		kind = item.data
		span = _span(item)

		if kind in _WILDCARD_KINDS:
			mode = _WILDCARD_KINDS[kind]
			if wildcard is WildcardMode.NONE:
				wildcard = mode
			elif wildcard is mode:
				diags.append(
					make_diagnostic(
						DiagnosticKind.DUPLICATE_CAPTURE_ENTRY,
						f"wildcard '{mode.symbol}' appears more than once in the capture clause",
						span,
						phase="clause",
					)
				)
			else:
				raise ClauseSyntaxError(
					f"wildcard '{mode.symbol}' conflicts with earlier wildcard '{wildcard.symbol}'",
					span=span,
				)
			continue

		if kind == "bad_field_wildcard":
			raise ClauseSyntaxError("field wildcard requires the clone prefix; write '+path.*'", span=span)

		if kind == "bound_entry":
			name_tok, expr_node = item.children
			entry = CaptureEntry(
				name=name_tok.value,
				path=CapturePath(root=name_tok.value),
				mode=CaptureMode.BOUND_EXPRESSION,
				expr=_rebase_locs(build_expr(expr_node), base),
				span=span,
			)
		elif kind == "field_wildcard_entry":
			path = _build_path(item.children[0])
			if path.root != self_name:
				raise ClauseSyntaxError(
					f"field wildcard '{path}.*' applies only to the aggregate-self path '{self_name}'",
					span=span,
				)
			entry = CaptureEntry(name=f"{path}.*", path=path, mode=CaptureMode.FIELD_WILDCARD_CLONE, span=span)
		elif kind in _PATH_ENTRY_MODES:
			path = _build_path(item.children[0])
			mode = _PATH_ENTRY_MODES[kind]
			# The aggregate-self value is itself a reference; naming it bare keeps it one.
			if mode is CaptureMode.MOVE and path == CapturePath(root=self_name):
				mode = CaptureMode.REFERENCE
			entry = CaptureEntry(name=str(path), path=path, mode=mode, span=span)
		else:
			raise ClauseSyntaxError(f"unsupported capture entry '{kind}'", span=span)

		if entry.name in seen:
			diags.append(
				make_diagnostic(
					DiagnosticKind.DUPLICATE_CAPTURE_ENTRY,
					f"duplicate capture '{entry.name}' in capture clause",
					span,
					phase="clause",
					notes=[f"first declared at {seen[entry.name].span.line}:{seen[entry.name].span.column}"],
				)
			)
			continue
		seen[entry.name] = entry
		entries.append(entry)

	clause = CaptureClause(entries=tuple(entries), wildcard=wildcard, span=base)
	return ClauseParseResult(clause=clause, diagnostics=diags)


def _build_path(tree: Tree) -> CapturePath:
	names: list[str] = []

	def walk(node: Tree | Token) -> None:
		if isinstance(node, Token):
			names.append(node.value)
			return
		for child in node.children:
			walk(child)

	walk(tree)
	return CapturePath(root=names[0], fields=tuple(names[1:]))


def _rebase_locs(node: Any, base: Span) -> Any:
	"""Shift every Located inside a bound expression from clause-relative to absolute."""
	if isinstance(node, list):
		return [_rebase_locs(n, base) for n in node]
	if isinstance(node, Located):
		shifted = Span(line=node.line, column=node.column).shifted(base.line, base.column)
		return Located(line=shifted.line, column=shifted.column)
	if not is_dataclass(node) or isinstance(node, type):
		return node
	changes = {}
	for f in fields(node):
		value = getattr(node, f.name)
		if isinstance(value, (list, Located)) or (is_dataclass(value) and not isinstance(value, type)):
			changes[f.name] = _rebase_locs(value, base)
	return replace(node, **changes)


__all__ = ["ClauseParseResult", "ClauseSyntaxError", "DEFAULT_SELF_NAME", "parse_clause"]

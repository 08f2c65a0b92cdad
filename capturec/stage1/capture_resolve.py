# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Capture resolution: free variables x clause -> Capture Table.

Two independent strategies, picked by whether the closure has a clause:

- legacy (no clause): capture everything the body uses, all by reference or,
  for `move` closures, all by move. Nothing is checked.
- explicit (clause present, `[]` included): every free variable must be
  authorized by an exact entry, a covering prefix entry or the clause
  wildcard, in that order of precedence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from capturec.core.diagnostics import Diagnostic, DiagnosticKind, make_diagnostic, sort_diagnostics
from capturec.core.metadata import FieldEnumerator
from capturec.stage1.clause_parser import DEFAULT_SELF_NAME
from capturec.stage1.clauses import (
	CaptureClause,
	CaptureEntry,
	CaptureMode,
	CaptureOrigin,
	CapturePath,
	CaptureTable,
	ResolvedCapture,
	WildcardMode,
)
from capturec.stage1.free_vars import FreeVariable, FreeVariableSet


@dataclass(frozen=True)
class ResolveContext:
	"""
	Read-only inputs shared by every closure of a unit.

	`self_type` is the aggregate type of the aggregate-self reference in scope
	(None outside method bodies).
	"""

	metadata: Optional[FieldEnumerator] = None
	self_type: Optional[str] = None
	self_name: str = DEFAULT_SELF_NAME


@dataclass
class ResolveResult:
	table: CaptureTable
	diagnostics: list[Diagnostic]


@dataclass(frozen=True)
class _Expansion:
	"""A field wildcard that expanded successfully (used for UnknownField checks)."""

	root: CapturePath
	type_name: str
	fields: frozenset[str]


def resolve_captures(
	clause: Optional[CaptureClause],
	free_vars: FreeVariableSet,
	*,
	context: Optional[ResolveContext] = None,
	move: bool = False,
) -> ResolveResult:
	"""Pick the strategy by clause presence and resolve."""
	if clause is None:
		return ResolveResult(table=resolve_legacy(free_vars, move=move), diagnostics=[])
	return resolve_explicit(clause, free_vars, context=context or ResolveContext())


def _coarsest_cover(fv: FreeVariable, free_vars: FreeVariableSet) -> FreeVariable:
	"""Shortest used path that is a prefix of (or equal to) `fv.path`."""
	best = fv
	for other in free_vars:
		if other.path.is_strict_prefix_of(best.path):
			best = other
	return best


def resolve_legacy(free_vars: FreeVariableSet, *, move: bool = False) -> CaptureTable:
	"""All-by-reference (or all-by-move) capture of whatever the body uses."""
	mode = CaptureMode.MOVE if move else CaptureMode.REFERENCE
	entries: dict[CapturePath, ResolvedCapture] = {}
	coverage: list[tuple[CapturePath, CapturePath]] = []
	for fv in free_vars:
		cover = _coarsest_cover(fv, free_vars)
		if cover.path not in entries:
			entries[cover.path] = ResolvedCapture(path=cover.path, mode=mode, origin=CaptureOrigin.LEGACY, span=cover.span)
		coverage.append((fv.path, cover.path))
	return CaptureTable(entries=tuple(entries.values()), coverage=tuple(coverage), legacy=True)


def _expand_field_wildcard(
	entry: CaptureEntry,
	context: ResolveContext,
	diags: list[Diagnostic],
) -> tuple[list[ResolvedCapture], Optional[_Expansion]]:
	if context.self_type is None:
		diags.append(
			make_diagnostic(
				DiagnosticKind.ILLEGAL_SELF_WILDCARD,
				f"field wildcard '{entry.name}' used outside a method: no aggregate-self reference is in scope",
				entry.span,
				phase="resolve",
			)
		)
		return [], None

	def _unknown(message: str) -> tuple[list[ResolvedCapture], None]:
		diags.append(make_diagnostic(DiagnosticKind.UNKNOWN_FIELD, message, entry.span, phase="resolve"))
		return [], None

	metadata = context.metadata
	if metadata is None:
		return _unknown(f"cannot expand '{entry.name}': no field metadata is available")

	type_name = context.self_type
	walked = CapturePath(root=entry.path.root)
	for field_name in entry.path.fields:
		layout = metadata.enumerate_fields(type_name)
		if layout is None:
			return _unknown(f"cannot expand '{entry.name}': '{walked}' has type '{type_name}' which has no declared fields")
		field_type = dict(layout).get(field_name)
		if field_type is None:
			return _unknown(f"cannot expand '{entry.name}': type '{type_name}' has no field '{field_name}'")
		type_name = field_type
		walked = walked.child(field_name)

	layout = metadata.enumerate_fields(type_name)
	if not layout:
		return _unknown(f"cannot expand '{entry.name}': type '{type_name}' is not an aggregate with declared fields")
	expanded = [
		ResolvedCapture(
			path=entry.path.child(field_name),
			mode=CaptureMode.CLONE,
			origin=CaptureOrigin.FIELD_WILDCARD,
			span=entry.span,
		)
		for field_name, _field_type in layout
	]
	return expanded, _Expansion(root=entry.path, type_name=type_name, fields=frozenset(n for n, _ in layout))


def resolve_explicit(
	clause: CaptureClause,
	free_vars: FreeVariableSet,
	*,
	context: ResolveContext,
) -> ResolveResult:
	"""
	Authorize every free variable against `clause` and build the Capture Table.

	Precedence per free variable: exact entry, then strict-prefix entry, then
	the wildcard (never for aggregate-self paths). Two matches at the same level
	are ambiguous. Unmatched variables are reported and left out of the table;
	resolution always continues so one pass reports every problem.
	"""
	diags: list[Diagnostic] = []
	self_root = CapturePath(root=context.self_name)

	# Explicit entries override field-wildcard expansions of the same path.
	explicit_paths = {e.path for e in clause.entries if e.mode is not CaptureMode.FIELD_WILDCARD_CLONE}
	candidates: list[ResolvedCapture] = []
	expansions: list[_Expansion] = []
	for entry in clause.entries:
		if entry.mode is CaptureMode.FIELD_WILDCARD_CLONE:
			expanded, expansion = _expand_field_wildcard(entry, context, diags)
			candidates.extend(c for c in expanded if c.path not in explicit_paths)
			if expansion is not None:
				expansions.append(expansion)
			continue
		candidates.append(
			ResolvedCapture(
				path=entry.path,
				mode=entry.mode,
				origin=CaptureOrigin.EXPLICIT,
				span=entry.span,
				expr=entry.expr,
			)
		)

	wildcard_mode = clause.wildcard.capture_mode
	wildcard_entries: dict[CapturePath, ResolvedCapture] = {}
	coverage: list[tuple[CapturePath, CapturePath]] = []
	used: set[CapturePath] = set()

	for fv in free_vars:
		match = _match_explicit(fv, candidates, diags)
		if isinstance(match, _Ambiguous):
			# The entries are used, just not unambiguously.
			used.update(m.path for m in match.matches)
			continue
		if match is None and wildcard_mode is not None and not self_root.is_prefix_of(fv.path):
			cover = _coarsest_cover(fv, free_vars)
			match = wildcard_entries.get(cover.path)
			if match is None:
				match = ResolvedCapture(path=cover.path, mode=wildcard_mode, origin=CaptureOrigin.WILDCARD, span=cover.span)
				wildcard_entries[cover.path] = match
		if match is None:
			diags.append(_unmatched(fv, clause, expansions, self_root))
			continue
		coverage.append((fv.path, match.path))
		used.add(match.path)
		if fv.write and match.mode in (CaptureMode.REFERENCE, CaptureMode.BOUND_EXPRESSION):
			how = "by reference" if match.mode is CaptureMode.REFERENCE else "as a bound expression"
			diags.append(
				make_diagnostic(
					DiagnosticKind.IMMUTABLE_CAPTURE_WRITE,
					f"cannot write to '{fv.path}': it is captured {how}",
					fv.span,
					phase="resolve",
					notes=[f"capture it by move or clone to mutate the closure's copy: [{match.path}] or [+{match.path}]"],
				)
			)

	for cap in candidates:
		if cap.origin is CaptureOrigin.EXPLICIT and cap.path not in used:
			diags.append(
				make_diagnostic(
					DiagnosticKind.UNUSED_CAPTURE,
					f"capture '{cap.path}' is never used in the closure body",
					cap.span,
					phase="resolve",
				)
			)

	table = CaptureTable(
		entries=tuple(candidates) + tuple(wildcard_entries.values()),
		coverage=tuple(coverage),
	)
	return ResolveResult(table=table, diagnostics=sort_diagnostics(diags))


@dataclass(frozen=True)
class _Ambiguous:
	matches: tuple[ResolvedCapture, ...]


def _match_explicit(
	fv: FreeVariable,
	candidates: list[ResolvedCapture],
	diags: list[Diagnostic],
) -> ResolvedCapture | _Ambiguous | None:
	for level, matches in (
		("exact", [c for c in candidates if c.path == fv.path]),
		("prefix", [c for c in candidates if c.path.is_strict_prefix_of(fv.path)]),
	):
		if len(matches) == 1:
			return matches[0]
		if len(matches) > 1:
			listed = ", ".join(f"'{m.path}'" for m in matches)
			diags.append(
				make_diagnostic(
					DiagnosticKind.AMBIGUOUS_CAPTURE,
					f"'{fv.path}' is matched by more than one capture entry ({listed})",
					fv.span,
					phase="resolve",
					notes=[f"{level} matches have equal precedence; keep only one of them"],
				)
			)
			return _Ambiguous(matches=tuple(matches))
	return None


def _unmatched(
	fv: FreeVariable,
	clause: CaptureClause,
	expansions: list[_Expansion],
	self_root: CapturePath,
) -> Diagnostic:
	for expansion in expansions:
		if expansion.root.is_strict_prefix_of(fv.path):
			field_name = fv.path.fields[len(expansion.root.fields)]
			if field_name not in expansion.fields:
				return make_diagnostic(
					DiagnosticKind.UNKNOWN_FIELD,
					f"'{fv.path}' refers to field '{field_name}' which type '{expansion.type_name}' does not declare",
					fv.span,
					phase="resolve",
				)
	notes: list[str] = []
	if clause.wildcard is not WildcardMode.NONE and self_root.is_prefix_of(fv.path):
		notes.append(
			f"the wildcard '{clause.wildcard.symbol}' never covers '{self_root}'; list '{fv.path}' or '+{self_root}.*' explicitly"
		)
	return make_diagnostic(
		DiagnosticKind.UNAUTHORIZED_CAPTURE,
		f"'{fv.path}' is used in the closure body but is not listed in the capture clause",
		fv.span,
		phase="resolve",
		notes=notes,
	)


__all__ = ["ResolveContext", "ResolveResult", "resolve_captures", "resolve_explicit", "resolve_legacy"]

# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Stage1: capture clauses.

  clauses         - clause / path / table model
  clause_parser   - clause text -> CaptureClause
  free_vars       - closure body -> FreeVariableSet
  capture_resolve - (clause, free vars, metadata) -> CaptureTable
  desugar         - (closure, table) -> prelude bindings + plain closure
  pipeline        - the above per closure, and per unit
"""

from .capture_resolve import ResolveContext, ResolveResult, resolve_captures, resolve_explicit, resolve_legacy
from .clause_parser import DEFAULT_SELF_NAME, ClauseParseResult, ClauseSyntaxError, parse_clause
from .clauses import (
	CaptureClause,
	CaptureEntry,
	CaptureMode,
	CaptureOrigin,
	CapturePath,
	CaptureTable,
	ResolvedCapture,
	WildcardMode,
)
from .desugar import DesugarResult, PreludeBinding, desugar_closure
from .free_vars import FreeVariable, FreeVariableSet, collect_free_variables
from .pipeline import (
	ClosureTransform,
	TransformOptions,
	UnitTransform,
	transform_closure,
	transform_expr,
	transform_source,
	transform_unit,
)

__all__ = [
	"CaptureClause",
	"CaptureEntry",
	"CaptureMode",
	"CaptureOrigin",
	"CapturePath",
	"CaptureTable",
	"ClauseParseResult",
	"ClauseSyntaxError",
	"ClosureTransform",
	"DEFAULT_SELF_NAME",
	"DesugarResult",
	"FreeVariable",
	"FreeVariableSet",
	"PreludeBinding",
	"ResolveContext",
	"ResolveResult",
	"ResolvedCapture",
	"TransformOptions",
	"UnitTransform",
	"WildcardMode",
	"collect_free_variables",
	"desugar_closure",
	"parse_clause",
	"resolve_captures",
	"resolve_explicit",
	"resolve_legacy",
	"transform_closure",
	"transform_expr",
	"transform_source",
	"transform_unit",
]

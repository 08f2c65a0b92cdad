# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Shared helpers for tests that drive the capture passes from fragment text.

Most tests want "transform this one closure and let me look at the table,
the diagnostics and the printed output"; these helpers avoid re-spelling the
parse / context / pipeline setup in every test module.
"""

from __future__ import annotations

from typing import Iterable, Optional

from capturec.core.diagnostics import Diagnostic
from capturec.core.metadata import FieldEnumerator, ItemSymbols
from capturec.parser import ast as A
from capturec.parser.parser import parse_unit
from capturec.parser.printer import format_expr
from capturec.stage1.free_vars import FreeVariableSet, collect_free_variables
from capturec.stage1.pipeline import ClosureTransform, TransformOptions, UnitTransform, transform_source


def transform_fragment(
	source: str,
	*,
	metadata: Optional[FieldEnumerator] = None,
	options: Optional[TransformOptions] = None,
) -> UnitTransform:
	return transform_source(source, metadata=metadata, options=options)


def transform_single(source: str, *, metadata: Optional[FieldEnumerator] = None) -> ClosureTransform:
	"""
	Transform a fragment holding exactly one top-level closure item.

	Nested closures are transformed first, so the outermost closure's result is
	the last one recorded.
	"""
	unit = transform_source(source, metadata=metadata)
	assert unit.items, f"fragment produced no items: {[d.message for d in unit.diagnostics]}"
	assert len(unit.items) == 1, "expected a single closure item"
	assert unit.closures, "fragment item contains no closure"
	return unit.closures[-1]


def closure_of(source: str) -> A.Closure:
	"""Parse a fragment and return its single top-level closure untransformed."""
	unit = parse_unit(source)
	item = unit.items[-1]
	assert isinstance(item, A.Closure), f"expected a closure item, got {type(item).__name__}"
	return item


def free_paths(source: str) -> list[str]:
	"""Dotted free-variable paths of the fragment's closure, in first-use order."""
	unit = parse_unit(source)
	closure = unit.items[-1]
	fvs: FreeVariableSet = collect_free_variables(
		closure, symbols=ItemSymbols(items=unit.item_names, variables=unit.variable_names)
	)
	return [str(p) for p in fvs.paths]


def codes(diags: Iterable[Diagnostic]) -> list[Optional[str]]:
	return [d.code for d in diags]


def render(expr: A.Expr) -> str:
	return format_expr(expr)


__all__ = [
	"closure_of",
	"codes",
	"free_paths",
	"render",
	"transform_fragment",
	"transform_single",
]

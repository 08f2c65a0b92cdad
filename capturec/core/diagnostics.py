"""
Common diagnostic structure for the capture-clause passes.

Diagnostics are data: every pass appends to a list and the caller decides
what to do with it. Kinds carry a stable code so tests and JSON consumers can
match on them without depending on message wording.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from .span import Span


class DiagnosticKind(Enum):
	"""Stable diagnostic kinds (value = code printed to users)."""

	SYNTAX_ERROR = "E-CAP-SYNTAX"
	DUPLICATE_CAPTURE_ENTRY = "E-CAP-DUPLICATE"
	UNAUTHORIZED_CAPTURE = "E-CAP-UNAUTHORIZED"
	AMBIGUOUS_CAPTURE = "E-CAP-AMBIGUOUS"
	UNKNOWN_FIELD = "E-CAP-UNKNOWN-FIELD"
	ILLEGAL_SELF_WILDCARD = "E-CAP-SELF-WILDCARD"
	IMMUTABLE_CAPTURE_WRITE = "E-CAP-IMMUTABLE-WRITE"
	UNUSED_CAPTURE = "W-CAP-UNUSED"
	FRAGMENT_SYNTAX_ERROR = "E-FRAG-SYNTAX"

	@property
	def code(self) -> str:
		return self.value

	@property
	def default_severity(self) -> str:
		return "warning" if self.value.startswith("W-") else "error"


@dataclass
class Diagnostic:
	"""Represents a diagnostic produced while transforming one closure."""

	message: str
	kind: DiagnosticKind | None = None
	# Optional phase label ("clause", "resolve", "desugar", "parser").
	phase: str | None = None
	severity: str = "error"
	span: Span = field(default_factory=Span)  # Source location (Span() denotes unknown).
	notes: list[str] = field(default_factory=list)

	def __post_init__(self) -> None:
		if self.span is None:  # type: ignore[unreachable]
			self.span = Span()

	@property
	def code(self) -> str | None:
		return self.kind.code if self.kind is not None else None

	@property
	def is_error(self) -> bool:
		return self.severity == "error"


def make_diagnostic(
	kind: DiagnosticKind,
	message: str,
	span: Span | None = None,
	*,
	phase: str | None = None,
	notes: Iterable[str] = (),
) -> Diagnostic:
	"""Build a Diagnostic with the kind's default severity."""
	return Diagnostic(
		message=message,
		kind=kind,
		phase=phase,
		severity=kind.default_severity,
		span=span or Span(),
		notes=list(notes),
	)


def sort_diagnostics(diags: Iterable[Diagnostic]) -> list[Diagnostic]:
	"""Return diagnostics in ascending source order (stable for equal spans)."""
	return sorted(diags, key=lambda d: d.span.sort_key())


def has_errors(diags: Iterable[Diagnostic]) -> bool:
	return any(d.is_error for d in diags)


__all__ = ["Diagnostic", "DiagnosticKind", "make_diagnostic", "sort_diagnostics", "has_errors"]

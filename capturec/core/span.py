# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Lightweight source span representation used by diagnostics.

A Span can wrap whatever location object the front-end provides via the
`raw` field while also carrying optional file/line/column info.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Span:
	"""Represents a source span (best-effort file/line/column plus raw parser loc)."""

	file: Optional[str] = None
	line: Optional[int] = None
	column: Optional[int] = None
	end_line: Optional[int] = None
	end_column: Optional[int] = None
	raw: Any = None

	@classmethod
	def from_loc(cls, loc: Any) -> "Span":
		"""
		Construct a Span from an existing parser/location object.

		If `loc` is already a Span, it is returned unchanged; otherwise the
		front-end object is stored in `raw`.
		"""
		if loc is None:
			return cls()
		if isinstance(loc, cls):
			return loc
		return cls(
			file=getattr(loc, "file", None) or getattr(loc, "filename", None) or None,
			line=getattr(loc, "line", None),
			column=getattr(loc, "column", None),
			end_line=getattr(loc, "end_line", None),
			end_column=getattr(loc, "end_column", None),
			raw=loc,
		)

	def is_known(self) -> bool:
		return self.line is not None

	def sort_key(self) -> tuple[int, int, int]:
		"""Ascending source order; unknown spans sort after every known one."""
		if self.line is None:
			return (1, 0, 0)
		return (0, self.line, self.column or 0)

	def shifted(self, line: int, column: int) -> "Span":
		"""
		Rebase a span that is relative to a sub-fragment starting at (line, column).

		Clause text is parsed on its own; this maps positions inside it back onto
		the enclosing source.
		"""
		if self.line is None:
			return Span(file=self.file, line=line, column=column)
		if self.line == 1:
			return Span(file=self.file, line=line, column=column + (self.column or 1) - 1)
		return Span(file=self.file, line=line + self.line - 1, column=self.column)


__all__ = ["Span"]

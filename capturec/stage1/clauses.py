# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator, Optional

from capturec.core.span import Span
from capturec.parser.ast import Expr


class CaptureMode(Enum):
	"""How a value reaches the closure."""

	REFERENCE = auto()
	MOVE = auto()
	CLONE = auto()
	BOUND_EXPRESSION = auto()
	FIELD_WILDCARD_CLONE = auto()


class WildcardMode(Enum):
	"""Clause-level default for free variables without an explicit entry."""

	NONE = auto()
	REFERENCE_ALL = auto()
	MOVE_ALL = auto()
	CLONE_ALL = auto()

	@property
	def capture_mode(self) -> Optional[CaptureMode]:
		return _WILDCARD_MODES.get(self)

	@property
	def symbol(self) -> str:
		return _WILDCARD_SYMBOLS.get(self, "")


_WILDCARD_MODES = {
	WildcardMode.REFERENCE_ALL: CaptureMode.REFERENCE,
	WildcardMode.MOVE_ALL: CaptureMode.MOVE,
	WildcardMode.CLONE_ALL: CaptureMode.CLONE,
}

_WILDCARD_SYMBOLS = {
	WildcardMode.REFERENCE_ALL: "&",
	WildcardMode.MOVE_ALL: "=",
	WildcardMode.CLONE_ALL: "+",
}


@dataclass(frozen=True)
class CapturePath:
	"""
	Root identifier plus a field chain (`self.some_a` is root `self`, fields `("some_a",)`).

	`fields` ordering is significant (outermost→innermost).
	"""

	root: str
	fields: tuple[str, ...] = ()

	@classmethod
	def parse(cls, dotted: str) -> "CapturePath":
		root, *fields = dotted.split(".")
		return cls(root=root, fields=tuple(fields))

	def __str__(self) -> str:
		return ".".join((self.root,) + self.fields)

	def child(self, field_name: str) -> "CapturePath":
		return CapturePath(root=self.root, fields=self.fields + (field_name,))

	def is_prefix_of(self, other: "CapturePath") -> bool:
		"""True if `other` equals this path or extends it."""
		if self.root != other.root or len(self.fields) > len(other.fields):
			return False
		return other.fields[: len(self.fields)] == self.fields

	def is_strict_prefix_of(self, other: "CapturePath") -> bool:
		return len(self.fields) < len(other.fields) and self.is_prefix_of(other)


@dataclass(frozen=True)
class CaptureEntry:
	"""
	One entry of a capture clause.

	`name` is the identity used for duplicate detection: the identifier for
	root entries and bound expressions, the dotted path for field entries and
	`path.*` for field wildcards.
	"""

	name: str
	path: CapturePath
	mode: CaptureMode
	expr: Optional[Expr] = None
	span: Span = Span()


@dataclass(frozen=True)
class CaptureClause:
	"""Parsed clause: ordered entries plus the optional wildcard default."""

	entries: tuple[CaptureEntry, ...] = ()
	wildcard: WildcardMode = WildcardMode.NONE
	span: Span = Span()

	def entry_named(self, name: str) -> Optional[CaptureEntry]:
		for entry in self.entries:
			if entry.name == name:
				return entry
		return None


class CaptureOrigin(Enum):
	"""Where a Capture Table entry came from."""

	EXPLICIT = auto()
	FIELD_WILDCARD = auto()
	WILDCARD = auto()
	LEGACY = auto()


@dataclass(frozen=True)
class ResolvedCapture:
	"""One row of a Capture Table."""

	path: CapturePath
	mode: CaptureMode
	origin: CaptureOrigin
	span: Span = Span()
	# BOUND_EXPRESSION only: the expression evaluated once before the body.
	expr: Optional[Expr] = None

	@property
	def is_by_value(self) -> bool:
		return self.mode is not CaptureMode.REFERENCE


@dataclass(frozen=True, eq=True)
class CaptureTable(Mapping):
	"""
	Resolved, immutable path -> capture mapping consumed by the desugarer.

	`entries` is in prelude order. `coverage` records, for every free variable
	that resolved, which table path it resolves against (itself or a covering
	prefix).
	"""

	entries: tuple[ResolvedCapture, ...] = ()
	coverage: tuple[tuple[CapturePath, CapturePath], ...] = ()
	legacy: bool = False

	def __getitem__(self, key: CapturePath | str) -> ResolvedCapture:
		path = CapturePath.parse(key) if isinstance(key, str) else key
		for entry in self.entries:
			if entry.path == path:
				return entry
		raise KeyError(key)

	def __iter__(self) -> Iterator[CapturePath]:
		return (entry.path for entry in self.entries)

	def __len__(self) -> int:
		return len(self.entries)

	def covering(self, path: CapturePath) -> Optional[ResolvedCapture]:
		"""Return the table entry a free-variable path resolves against."""
		for fv_path, table_path in self.coverage:
			if fv_path == path:
				return self[table_path]
		return None

	def modes(self) -> dict[str, CaptureMode]:
		"""Dotted path -> mode, in table order (handy for tests and output)."""
		return {str(entry.path): entry.mode for entry in self.entries}


__all__ = [
	"CaptureClause",
	"CaptureEntry",
	"CaptureMode",
	"CaptureOrigin",
	"CapturePath",
	"CaptureTable",
	"ResolvedCapture",
	"WildcardMode",
]

# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Collaborator protocols supplied by the host toolchain.

The engine never infers types or resolves symbols on its own. Field layouts
come from a `FieldEnumerator` and item-vs-variable questions go to a
`SymbolResolver`. Both are read-only after construction so many closures can
be processed against the same instance concurrently.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Protocol, Tuple

FieldList = Tuple[Tuple[str, str], ...]


class FieldEnumerator(Protocol):
	"""Type-metadata capability used when expanding field wildcards."""

	def enumerate_fields(self, type_name: str) -> Optional[FieldList]:
		"""
		Return the declared `(field_name, field_type)` pairs of an aggregate.

		Order is declaration order. `None` means the type is unknown or is not an
		aggregate (no fields to enumerate).
		"""
		...


class SymbolResolver(Protocol):
	"""Symbol capability: tells items (functions) apart from variables."""

	def is_item(self, name: str, *, callee: bool) -> bool:
		"""Return True if `name` refers to an item, which is never captured."""
		...


@dataclass(frozen=True)
class StructTable:
	"""
	Immutable name -> field layout table.

	Built once from front-end `struct` declarations (or by hand in tests) and
	shared read-only between closure pipelines.
	"""

	structs: Mapping[str, FieldList] = field(default_factory=dict)

	@classmethod
	def from_decls(cls, decls: Iterable[tuple[str, Iterable[tuple[str, str]]]]) -> "StructTable":
		table: dict[str, FieldList] = {}
		for name, fields in decls:
			table[name] = tuple((fname, ftype) for fname, ftype in fields)
		return cls(structs=table)

	def enumerate_fields(self, type_name: str) -> Optional[FieldList]:
		fields = self.structs.get(type_name)
		if fields is None:
			return None
		return tuple(fields)

	def __hash__(self) -> int:
		return hash(tuple(sorted((k, tuple(v)) for k, v in self.structs.items())))


@dataclass(frozen=True)
class ItemSymbols:
	"""
	Default SymbolResolver.

	Declared items are never captured and declared variables always are. Any
	other bare identifier in callee position is treated as an item (a function
	call), everywhere else as a variable.
	"""

	items: frozenset[str] = frozenset()
	variables: frozenset[str] = frozenset()

	def is_item(self, name: str, *, callee: bool) -> bool:
		if name in self.variables:
			return False
		if name in self.items:
			return True
		return callee


__all__ = ["FieldEnumerator", "FieldList", "ItemSymbols", "StructTable", "SymbolResolver"]

# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Expression tree for closure fragments.

This is the shape the capture passes consume: identifiers, field-access
chains, calls and closures with an optional, still-unparsed capture clause.
Nodes are plain dataclasses; passes never mutate them in place and build new
trees with `dataclasses.replace` instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Union

from capturec.core.span import Span


@dataclass(frozen=True)
class Located:
	line: int
	column: int


def span_of(loc: Optional[Located]) -> Span:
	"""Convert a front-end location into a diagnostic Span."""
	if loc is None:
		return Span()
	return Span(line=loc.line, column=loc.column)


@dataclass
class TypeName:
	name: str
	args: List["TypeName"] = field(default_factory=list)

	def render(self) -> str:
		if not self.args:
			return self.name
		return f"{self.name}<{', '.join(a.render() for a in self.args)}>"


class Expr:
	loc: Optional[Located]


@dataclass
class Literal(Expr):
	loc: Optional[Located]
	value: Union[int, str, bool]


@dataclass
class Name(Expr):
	loc: Optional[Located]
	ident: str


@dataclass
class Attr(Expr):
	"""Field access `value.attr`."""

	loc: Optional[Located]
	value: Expr
	attr: str


@dataclass
class Call(Expr):
	loc: Optional[Located]
	func: Expr
	args: List[Expr]


@dataclass
class MethodCall(Expr):
	"""`receiver.method(args)`; the method name is not a field path segment."""

	loc: Optional[Located]
	receiver: Expr
	method: str
	args: List[Expr]


@dataclass
class Binary(Expr):
	loc: Optional[Located]
	op: str
	left: Expr
	right: Expr


@dataclass
class Unary(Expr):
	"""Prefix `-`, `!` or `*` (deref)."""

	loc: Optional[Located]
	op: str
	operand: Expr


@dataclass
class Borrow(Expr):
	loc: Optional[Located]
	value: Expr
	mutable: bool = False


class Stmt:
	loc: Optional[Located]


@dataclass
class LetStmt(Stmt):
	loc: Optional[Located]
	name: str
	value: Expr
	mutable: bool = False
	type_name: Optional[TypeName] = None


@dataclass
class AssignStmt(Stmt):
	"""Plain or augmented assignment (`op` is `=`, `+=`, ...)."""

	loc: Optional[Located]
	target: Expr
	op: str
	value: Expr


@dataclass
class ExprStmt(Stmt):
	loc: Optional[Located]
	value: Expr


@dataclass
class Block(Expr):
	"""Block expression: statements plus an optional tail value."""

	loc: Optional[Located]
	statements: List[Stmt]
	tail: Optional[Expr] = None


@dataclass
class If(Expr):
	loc: Optional[Located]
	condition: Expr
	then_block: Block
	else_branch: Optional[Expr] = None


@dataclass
class Param:
	name: str
	type_name: Optional[TypeName] = None


@dataclass
class Closure(Expr):
	"""
	Closure expression.

	`clause_text` is the raw bracketed clause (including the brackets) exactly
	as written, or None when the closure carries no clause at all. An empty
	clause is the string "[]", which is not the same thing as None.
	"""

	loc: Optional[Located]
	params: List[Param]
	body: Expr
	is_move: bool = False
	clause_text: Optional[str] = None
	clause_loc: Optional[Located] = None

	@property
	def has_clause(self) -> bool:
		return self.clause_text is not None


# Declarations (fragment prologue).


@dataclass
class StructDecl:
	loc: Optional[Located]
	name: str
	fields: List[tuple[str, TypeName]]


@dataclass
class ImplDecl:
	loc: Optional[Located]
	type_name: str


@dataclass
class FnDecl:
	loc: Optional[Located]
	name: str


@dataclass
class VarDecl:
	loc: Optional[Located]
	name: str
	type_name: TypeName


Decl = Union[StructDecl, ImplDecl, FnDecl, VarDecl]


@dataclass
class Unit:
	"""A parsed fragment: prologue declarations plus top-level items."""

	decls: List[Decl]
	items: List[Expr]

	@property
	def structs(self) -> List[StructDecl]:
		return [d for d in self.decls if isinstance(d, StructDecl)]

	@property
	def self_type(self) -> Optional[str]:
		impls = [d for d in self.decls if isinstance(d, ImplDecl)]
		return impls[-1].type_name if impls else None

	@property
	def item_names(self) -> frozenset[str]:
		return frozenset(d.name for d in self.decls if isinstance(d, FnDecl))

	@property
	def variable_names(self) -> frozenset[str]:
		return frozenset(d.name for d in self.decls if isinstance(d, VarDecl))


__all__ = [
	"Attr",
	"Binary",
	"Block",
	"Borrow",
	"Call",
	"Closure",
	"Decl",
	"Expr",
	"ExprStmt",
	"FnDecl",
	"If",
	"ImplDecl",
	"LetStmt",
	"Literal",
	"Located",
	"MethodCall",
	"Name",
	"Param",
	"AssignStmt",
	"Stmt",
	"StructDecl",
	"TypeName",
	"Unary",
	"Unit",
	"VarDecl",
	"span_of",
]

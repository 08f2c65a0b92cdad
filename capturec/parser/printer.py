# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Render expression trees back to fragment syntax.

Output is re-parseable by `capturec.parser.parse_expr`. Blocks are printed
one statement per line, indented with tabs; everything else is printed on a
single line with the minimum parentheses the grammar needs.
"""

from __future__ import annotations

from typing import Optional

from .ast import (
	AssignStmt,
	Attr,
	Binary,
	Block,
	Borrow,
	Call,
	Closure,
	Expr,
	ExprStmt,
	If,
	LetStmt,
	Literal,
	MethodCall,
	Name,
	Stmt,
	Unary,
)

# Binding strength; larger binds tighter.
_PREC_CLOSURE = 0
_PREC_COMPARE = 1
_PREC_SUM = 2
_PREC_PRODUCT = 3
_PREC_UNARY = 4
_PREC_POSTFIX = 5

_BINARY_PREC = {
	"==": _PREC_COMPARE,
	"!=": _PREC_COMPARE,
	"<": _PREC_COMPARE,
	">": _PREC_COMPARE,
	"<=": _PREC_COMPARE,
	">=": _PREC_COMPARE,
	"+": _PREC_SUM,
	"-": _PREC_SUM,
	"*": _PREC_PRODUCT,
	"/": _PREC_PRODUCT,
	"%": _PREC_PRODUCT,
}


def _quote(value: str) -> str:
	escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")
	return f'"{escaped}"'


def _prec(expr: Expr) -> int:
	if isinstance(expr, (Closure, If)):
		return _PREC_CLOSURE
	if isinstance(expr, Binary):
		return _BINARY_PREC.get(expr.op, _PREC_COMPARE)
	if isinstance(expr, (Unary, Borrow)):
		return _PREC_UNARY
	return _PREC_POSTFIX


def format_expr(expr: Expr, indent: int = 0) -> str:
	"""Render `expr`; `indent` is the tab depth of the line it starts on."""
	return _Printer(indent).expr(expr)


def format_stmt(stmt: Stmt, indent: int = 0) -> str:
	return _Printer(indent).stmt(stmt)


class _Printer:
	def __init__(self, indent: int) -> None:
		self.indent = indent

	def _wrap(self, expr: Expr, min_prec: int) -> str:
		text = self.expr(expr)
		if _prec(expr) < min_prec:
			return f"({text})"
		return text

	def expr(self, e: Expr) -> str:
		if isinstance(e, Literal):
			if isinstance(e.value, bool):
				return "true" if e.value else "false"
			if isinstance(e.value, str):
				return _quote(e.value)
			return str(e.value)
		if isinstance(e, Name):
			return e.ident
		if isinstance(e, Attr):
			return f"{self._wrap(e.value, _PREC_POSTFIX)}.{e.attr}"
		if isinstance(e, MethodCall):
			args = ", ".join(self.expr(a) for a in e.args)
			return f"{self._wrap(e.receiver, _PREC_POSTFIX)}.{e.method}({args})"
		if isinstance(e, Call):
			args = ", ".join(self.expr(a) for a in e.args)
			return f"{self._wrap(e.func, _PREC_POSTFIX)}({args})"
		if isinstance(e, Unary):
			return f"{e.op}{self._wrap(e.operand, _PREC_UNARY)}"
		if isinstance(e, Borrow):
			prefix = "&mut " if e.mutable else "&"
			return f"{prefix}{self._wrap(e.value, _PREC_UNARY)}"
		if isinstance(e, Binary):
			prec = _BINARY_PREC.get(e.op, _PREC_COMPARE)
			# Comparisons do not chain in the grammar.
			left = self._wrap(e.left, prec + 1 if prec == _PREC_COMPARE else prec)
			# Left-associative: an equal-precedence right operand needs parens.
			right = self._wrap(e.right, prec + 1)
			return f"{left} {e.op} {right}"
		if isinstance(e, Block):
			return self.block(e)
		if isinstance(e, If):
			out = f"if {self.expr(e.condition)} {self.block(e.then_block)}"
			if e.else_branch is not None:
				out += f" else {self.expr(e.else_branch)}"
			return out
		if isinstance(e, Closure):
			return self.closure(e)
		raise TypeError(f"cannot print {type(e).__name__}")

	def closure(self, c: Closure) -> str:
		parts: list[str] = []
		if c.clause_text is not None:
			parts.append(c.clause_text)
		if c.is_move:
			parts.append("move")
		if c.params:
			rendered = []
			for p in c.params:
				rendered.append(f"{p.name}: {p.type_name.render()}" if p.type_name is not None else p.name)
			parts.append(f"|{', '.join(rendered)}|")
		else:
			parts.append("||")
		parts.append(self.expr(c.body))
		return " ".join(parts)

	def block(self, b: Block) -> str:
		if not b.statements and b.tail is None:
			return "{}"
		inner = _Printer(self.indent + 1)
		pad = "\t" * (self.indent + 1)
		lines = ["{"]
		for stmt in b.statements:
			lines.append(pad + inner.stmt(stmt))
		if b.tail is not None:
			lines.append(pad + inner.expr(b.tail))
		lines.append("\t" * self.indent + "}")
		return "\n".join(lines)

	def stmt(self, s: Stmt) -> str:
		if isinstance(s, LetStmt):
			mut = "mut " if s.mutable else ""
			ty: Optional[str] = f": {s.type_name.render()}" if s.type_name is not None else ""
			return f"let {mut}{s.name}{ty} = {self.expr(s.value)};"
		if isinstance(s, AssignStmt):
			return f"{self.expr(s.target)} {s.op} {self.expr(s.value)};"
		if isinstance(s, ExprStmt):
			return f"{self.expr(s.value)};"
		raise TypeError(f"cannot print {type(s).__name__}")


__all__ = ["format_expr", "format_stmt"]
